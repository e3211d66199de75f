import logging
from typing import Any, Dict, Type
from urllib.parse import urlencode

import httpx
from pydantic import ValidationError

from ..core.config import Settings, settings
from ..schemas.instagram import InstagramProfile, LongLivedToken, ShortLivedToken
from ..utils.errors import InstagramAuthError, InstagramGraphError, InstagramTokenExchangeError
from ..utils.log_sanitizer import sanitize_dict_for_log

logger = logging.getLogger(__name__)

AUTHORIZE_URL = "https://api.instagram.com/oauth/authorize"
TOKEN_URL = "https://api.instagram.com/oauth/access_token"
GRAPH_BASE_URL = "https://graph.instagram.com"

DEFAULT_SCOPES = ("user_profile", "user_media")
PROFILE_FIELDS = "id,username,account_type,media_count"


def _parse_json(response: httpx.Response, url: str, error_cls: Type[InstagramAuthError]) -> Dict[str, Any]:
    try:
        body = response.json()
    except ValueError:
        logger.error(
            "[INSTAGRAM] Invalid JSON from %s (status %s). Preview: %s",
            url,
            response.status_code,
            response.text[:200],
        )
        raise error_cls("Instagram returned an invalid response. Please try again later.")
    return body if isinstance(body, dict) else {}


def _graph_error_message(body: Dict[str, Any]) -> str:
    error = body.get("error")
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return body.get("error_message") or "Unknown error"


class InstagramClient:
    """Thin async client for the Instagram OAuth and Graph endpoints used when connecting an account."""

    def __init__(self, app_id: str, app_secret: str, redirect_uri: str, timeout_s: float = 10.0):
        self.app_id = app_id
        self.app_secret = app_secret
        self.redirect_uri = redirect_uri
        self.timeout_s = timeout_s

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "InstagramClient":
        return cls(
            app_id=config.instagram_app_id or "",
            app_secret=config.instagram_app_secret or "",
            redirect_uri=config.instagram_redirect_uri,
            timeout_s=config.instagram_timeout_s,
        )

    def build_authorize_url(self, state: str, scopes=DEFAULT_SCOPES) -> str:
        query = urlencode({
            "client_id": self.app_id,
            "redirect_uri": self.redirect_uri,
            "scope": ",".join(scopes),
            "response_type": "code",
            "state": state,
        })
        return f"{AUTHORIZE_URL}?{query}"

    async def exchange_code(self, code: str) -> ShortLivedToken:
        """
        Exchange an authorization code for a short-lived user token.

        Makes exactly one request; codes are single use so nothing is retried.

        Raises:
            InstagramTokenExchangeError: on timeout, transport failure, invalid
                JSON, or a response without ``access_token``.
        """
        form = {
            "client_id": self.app_id,
            "client_secret": self.app_secret,
            "grant_type": "authorization_code",
            "redirect_uri": self.redirect_uri,
            "code": code,
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                response = await client.post(TOKEN_URL, data=form)
        except httpx.TimeoutException as exc:
            logger.error("[INSTAGRAM] Token exchange timed out after %ss: %s", self.timeout_s, exc)
            raise InstagramTokenExchangeError("Instagram did not respond in time. Please try again.") from exc
        except httpx.RequestError as exc:
            logger.error("[INSTAGRAM] Unable to reach token endpoint %s: %s", TOKEN_URL, exc)
            raise InstagramTokenExchangeError("Unable to reach Instagram. Please try again.") from exc

        body = _parse_json(response, TOKEN_URL, InstagramTokenExchangeError)

        if not body.get("access_token"):
            logger.error("[INSTAGRAM] Failed to get access token: %s", sanitize_dict_for_log(body))
            raise InstagramTokenExchangeError(
                f"Failed to get access token: {body.get('error_message') or 'Unknown error'}"
            )

        try:
            return ShortLivedToken.model_validate(body)
        except ValidationError as exc:
            logger.error("[INSTAGRAM] Token response missing user id: %s", sanitize_dict_for_log(body))
            raise InstagramTokenExchangeError("Instagram did not return a user id for this account.") from exc

    async def _graph_get(self, path: str, params: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{GRAPH_BASE_URL}/{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                response = await client.get(url, params=params)
        except httpx.TimeoutException as exc:
            logger.error("[INSTAGRAM] Graph request to %s timed out: %s", url, exc)
            raise InstagramGraphError("Instagram did not respond in time. Please try again.") from exc
        except httpx.RequestError as exc:
            logger.error("[INSTAGRAM] Unable to reach %s: %s", url, exc)
            raise InstagramGraphError("Unable to reach Instagram. Please try again.") from exc

        body = _parse_json(response, url, InstagramGraphError)

        if not (200 <= response.status_code < 300):
            error_msg = _graph_error_message(body)
            logger.error(
                "[INSTAGRAM] Graph error %s from %s: %s",
                response.status_code,
                url,
                sanitize_dict_for_log(body),
            )
            raise InstagramGraphError(f"Instagram request failed: {error_msg}")

        return body

    async def exchange_long_lived_token(self, short_lived_token: str) -> LongLivedToken:
        body = await self._graph_get(
            "access_token",
            {
                "grant_type": "ig_exchange_token",
                "client_secret": self.app_secret,
                "access_token": short_lived_token,
            },
        )
        try:
            return LongLivedToken.model_validate(body)
        except ValidationError as exc:
            raise InstagramGraphError("Instagram did not return a long-lived token.") from exc

    async def get_profile(self, access_token: str) -> InstagramProfile:
        body = await self._graph_get("me", {"fields": PROFILE_FIELDS, "access_token": access_token})
        try:
            return InstagramProfile.model_validate(body)
        except ValidationError as exc:
            raise InstagramGraphError("Instagram returned an incomplete profile.") from exc
