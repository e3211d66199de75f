import pytest
from datetime import timedelta
from unittest.mock import MagicMock
from fastapi import HTTPException
from jose import jwt
from ...core import auth
from ...core.config import settings


def make_request(cookies=None, headers=None):
    request = MagicMock()
    request.cookies = cookies or {}
    request.headers = headers or {}
    return request


class TestTokens:

    def test_create_access_token_requires_sub(self):
        with pytest.raises(ValueError):
            auth.create_access_token({"email": "someone@example.com"})

    def test_token_round_trip(self):
        token = auth.create_access_token({"sub": "user-1"})

        payload = auth.verify_token_type(token, "access")

        assert payload["sub"] == "user-1"
        assert payload["type"] == "access"

    def test_wrong_token_type_rejected(self):
        token = auth.create_access_token({"sub": "user-1", "type": "refresh"})

        with pytest.raises(HTTPException) as exc_info:
            auth.verify_token_type(token, "access")

        assert exc_info.value.detail == "Invalid token type"

    def test_expired_token_rejected(self):
        token = auth.create_access_token({"sub": "user-1"}, expires_delta=timedelta(seconds=-5))

        with pytest.raises(HTTPException) as exc_info:
            auth.decode_token(token)

        assert exc_info.value.detail == "Token expired"

    def test_token_signed_with_other_secret_rejected(self):
        token = jwt.encode({"sub": "user-1", "type": "access"}, "not-" + settings.jwt_secret, algorithm="HS256")

        with pytest.raises(HTTPException) as exc_info:
            auth.decode_token(token)

        assert exc_info.value.detail == "Invalid token"


class TestRequestIdentityProvider:

    @pytest.mark.asyncio
    async def test_principal_from_cookie(self):
        token = auth.create_access_token({"sub": "user-1"})
        provider = auth.RequestIdentityProvider(make_request(cookies={auth.ACCESS_COOKIE_NAME: token}))

        assert await provider.get_current_user() == auth.Principal(id="user-1")

    @pytest.mark.asyncio
    async def test_principal_from_bearer_header(self):
        token = auth.create_access_token({"sub": "user-2"})
        provider = auth.RequestIdentityProvider(make_request(headers={"Authorization": f"Bearer {token}"}))

        assert await provider.get_current_user() == auth.Principal(id="user-2")

    @pytest.mark.asyncio
    async def test_anonymous_request(self):
        provider = auth.RequestIdentityProvider(make_request())

        assert await provider.get_current_user() is None

    @pytest.mark.asyncio
    async def test_garbage_token(self):
        provider = auth.RequestIdentityProvider(make_request(cookies={auth.ACCESS_COOKIE_NAME: "not-a-jwt"}))

        assert await provider.get_current_user() is None


class TestGetCurrentEntity:

    @pytest.mark.asyncio
    async def test_missing_token_raises_401(self):
        with pytest.raises(HTTPException) as exc_info:
            await auth.get_current_entity(make_request(), token=None)

        assert exc_info.value.status_code == 401
        assert exc_info.value.headers == {"WWW-Authenticate": "Bearer"}

    @pytest.mark.asyncio
    async def test_cookie_wins_over_header_token(self):
        cookie_token = auth.create_access_token({"sub": "cookie-user"})
        header_token = auth.create_access_token({"sub": "header-user"})

        principal = await auth.get_current_entity(
            make_request(cookies={auth.ACCESS_COOKIE_NAME: cookie_token}), token=header_token
        )

        assert principal.id == "cookie-user"
