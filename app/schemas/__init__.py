# Export all schemas for convenient imports
from .common import ApiResponse
from .instagram import (
    ShortLivedToken,
    LongLivedToken,
    InstagramProfile,
    InstagramConnectionStatus,
)

__all__ = [
    "ApiResponse",
    "ShortLivedToken",
    "LongLivedToken",
    "InstagramProfile",
    "InstagramConnectionStatus",
]
