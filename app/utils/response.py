"""
Standard API Response Utility

JSON endpoints answer with the same envelope so the frontend can treat them
uniformly.
"""
from typing import Any, Optional


def standard_response(
    success: bool,
    message: str,
    data: Optional[Any] = None,
    error: Optional[dict] = None,
    meta: Optional[dict] = None
) -> dict:
    """
    Create a standardized API response.

    Args:
        success: Whether the operation succeeded
        message: Human-readable message describing the result
        data: The actual payload
        error: Error details if the operation failed
        meta: Optional metadata

    Returns:
        Dictionary with the unified response structure
    """
    return {
        "success": success,
        "message": message,
        "data": data,
        "error": error,
        "meta": meta or {}
    }
