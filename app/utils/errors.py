import logging
from typing import Optional

from fastapi import HTTPException, status

logger = logging.getLogger(__name__)


class InstagramAuthError(Exception):
    """Base error for the Instagram connect flow. Messages are safe to show users."""


class InstagramTokenExchangeError(InstagramAuthError):
    """The authorization code could not be exchanged for an access token."""


class InstagramGraphError(InstagramAuthError):
    """A Graph API call made while seeding the account failed."""


def upstream_error(
    log_message: Optional[str] = None,
    *,
    user_message: str = "Upstream service is currently unavailable. Please try again later.",
    status_code: int = status.HTTP_502_BAD_GATEWAY,
) -> HTTPException:
    if log_message:
        logger.error(log_message)
    return HTTPException(status_code=status_code, detail=user_message)


def internal_error(
    log_message: Optional[str] = None,
    *,
    user_message: str = "Internal server error. Please try again later.",
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
) -> HTTPException:
    if log_message:
        logger.error(log_message)
    return HTTPException(status_code=status_code, detail=user_message)
