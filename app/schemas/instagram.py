from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator


class ShortLivedToken(BaseModel):
    """Body of a successful response from the Basic Display token endpoint."""

    access_token: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)

    @field_validator("user_id", mode="before")
    @classmethod
    def _coerce_user_id(cls, value):
        # Instagram returns a JSON number here
        return str(value) if value is not None else value


class LongLivedToken(BaseModel):
    access_token: str = Field(..., min_length=1)
    token_type: str = "bearer"
    expires_in: Optional[int] = None


class InstagramProfile(BaseModel):
    id: str
    username: Optional[str] = None
    account_type: Optional[str] = None
    media_count: Optional[int] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value):
        return str(value) if value is not None else value


class InstagramConnectionStatus(BaseModel):
    connected: bool
    username: Optional[str] = None
    account_type: Optional[str] = None
    media_count: Optional[int] = None
    token_expires_at: Optional[datetime] = None
