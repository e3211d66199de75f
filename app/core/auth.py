from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, ExpiredSignatureError, jwt

from .config import settings

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login", auto_error=False)

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE = timedelta(minutes=15)
ACCESS_COOKIE_NAME = "rp_access"

# Only whitelisted algorithms are accepted when decoding; "none" never is
ALLOWED_ALGORITHMS = [alg for alg in settings.jwt_allowed_algorithms if alg.lower() != "none"] or [ALGORITHM]


@dataclass(frozen=True)
class Principal:
    """The authenticated user a request acts on behalf of."""

    id: str


def create_access_token(data: dict, expires_delta: timedelta = ACCESS_TOKEN_EXPIRE) -> str:
    to_encode = data.copy()
    if "sub" not in to_encode:
        raise ValueError("access token requires 'sub' claim")
    to_encode.setdefault("type", "access")
    to_encode.update({"exp": datetime.now(timezone.utc) + expires_delta})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=ALLOWED_ALGORITHMS,
            options={"verify_signature": True}
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token expired")
    except JWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )


def verify_token_type(token: str, expected_type: str) -> dict:
    payload = decode_token(token)
    if payload.get("type") != expected_type:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token type")
    return payload


def _principal_from_token(access_token: Optional[str]) -> Principal:
    if not access_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = verify_token_type(access_token, "access")
    entity_id = payload.get("sub")
    if not entity_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token payload")
    return Principal(id=str(entity_id))


async def get_current_entity(request: Request, token: Optional[str] = Depends(oauth2_scheme)) -> Principal:
    """
    Get current authenticated entity.
    Reads the access token from the HttpOnly cookie (rp_access) first, then
    falls back to the Authorization header.
    """
    return _principal_from_token(request.cookies.get(ACCESS_COOKIE_NAME) or token)


class RequestIdentityProvider:
    """Resolves the principal of a request without raising for anonymous callers."""

    def __init__(self, request: Request):
        self._request = request

    async def get_current_user(self) -> Optional[Principal]:
        access_token = self._request.cookies.get(ACCESS_COOKIE_NAME)
        if not access_token:
            header = self._request.headers.get("Authorization", "")
            scheme, _, credentials = header.partition(" ")
            if scheme.lower() == "bearer":
                access_token = credentials.strip()
        try:
            return _principal_from_token(access_token)
        except HTTPException:
            return None
