"""
Instagram OAuth callback handling.

The callback walks a fixed sequence of checks. Each check either lets the
request continue or produces the terminal redirect for the user. Everything
the handler touches outside itself (cookies, the signed-in user, Instagram,
persistence) is passed in, so each branch can be driven with plain fakes.
"""
import hmac
import logging
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Protocol
from urllib.parse import quote, urlencode

from ..core.auth import Principal
from ..core.config import Settings, settings
from ..schemas.instagram import ShortLivedToken
from ..utils.errors import InstagramAuthError
from ..utils.log_sanitizer import sanitize_for_log

logger = logging.getLogger(__name__)

STATE_COOKIE_NAME = "instagram_auth_state"

LANDING_PATH = "/clubs"
LOGIN_PATH = "/auth/login"

INVALID_STATE_DESCRIPTION = "Security validation failed. Please try connecting your Instagram account again."
GENERIC_SERVER_ERROR = "Something went wrong while connecting your Instagram account. Please try again."
RATE_LIMITED_DESCRIPTION = "Too many connection attempts. Please wait a minute and try again."


class CookieStore(Protocol):
    def get(self, name: str) -> Optional[str]: ...

    def delete(self, name: str) -> None: ...


class IdentityProvider(Protocol):
    async def get_current_user(self) -> Optional[Principal]: ...


class TokenExchanger(Protocol):
    async def exchange_code(self, code: str) -> ShortLivedToken: ...


class AccountSeeder(Protocol):
    async def seed_account(self, provider_user_id: str, short_lived_token: str): ...


SeederFactory = Callable[[Principal], AccountSeeder]


@dataclass(frozen=True)
class CallbackConfig:
    site_url: str
    strict_state: bool

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "CallbackConfig":
        return cls(site_url=config.site_url.rstrip("/"), strict_state=config.enforce_state)


@dataclass(frozen=True)
class CallbackParams:
    code: Optional[str] = None
    state: Optional[str] = None
    error: Optional[str] = None
    error_reason: Optional[str] = None
    error_description: Optional[str] = None

    @classmethod
    def from_query(cls, query: Mapping[str, str]) -> "CallbackParams":
        return cls(
            code=query.get("code"),
            state=query.get("state"),
            error=query.get("error"),
            error_reason=query.get("error_reason"),
            error_description=query.get("error_description"),
        )


@dataclass(frozen=True)
class CallbackRedirect:
    url: str


def build_redirect(site_url: str, path: str, **params: Optional[str]) -> CallbackRedirect:
    """Redirect under the site with every query value percent-encoded. None values are dropped."""
    query = urlencode({k: v for k, v in params.items() if v is not None}, safe="/", quote_via=quote)
    return CallbackRedirect(url=f"{site_url}{path}?{query}")


class InstagramCallbackHandler:
    def __init__(
        self,
        config: CallbackConfig,
        *,
        cookies: CookieStore,
        identity: IdentityProvider,
        token_exchanger: TokenExchanger,
        seeder_factory: SeederFactory,
    ):
        self.config = config
        self._cookies = cookies
        self._identity = identity
        self._tokens = token_exchanger
        self._seeder_factory = seeder_factory

    async def handle(self, params: CallbackParams) -> CallbackRedirect:
        try:
            return await self._run(params)
        finally:
            # The state token is single use whichever way the callback ends
            self._cookies.delete(STATE_COOKIE_NAME)

    async def _run(self, params: CallbackParams) -> CallbackRedirect:
        for check in (self._check_provider_error, self._check_code, self._check_state):
            redirect = check(params)
            if redirect is not None:
                return redirect

        principal = await self._identity.get_current_user()
        if principal is None:
            return self._redirect(LOGIN_PATH, next=LANDING_PATH)

        try:
            token = await self._tokens.exchange_code(params.code)
            seeder = self._seeder_factory(principal)
            await seeder.seed_account(str(token.user_id), token.access_token)
        except InstagramAuthError as exc:
            logger.exception("[INSTAGRAM] Callback failed for owner=%s", principal.id)
            return self._redirect(LANDING_PATH, error="server_error", description=str(exc))
        except Exception:
            logger.exception("[INSTAGRAM] Unexpected callback error for owner=%s", principal.id)
            return self._redirect(LANDING_PATH, error="server_error", description=GENERIC_SERVER_ERROR)

        logger.info("[INSTAGRAM] Account connected for owner=%s", principal.id)
        return self._redirect(LANDING_PATH, success="instagram_connected")

    def _check_provider_error(self, params: CallbackParams) -> Optional[CallbackRedirect]:
        if not params.error:
            return None
        logger.error(
            "[INSTAGRAM] OAuth error: error=%s reason=%s description=%s",
            sanitize_for_log(params.error),
            sanitize_for_log(params.error_reason),
            sanitize_for_log(params.error_description),
        )
        return self._redirect(LANDING_PATH, error=params.error, description=params.error_description)

    def _check_code(self, params: CallbackParams) -> Optional[CallbackRedirect]:
        if params.code:
            return None
        return self._redirect(LANDING_PATH, error="no_code")

    def _check_state(self, params: CallbackParams) -> Optional[CallbackRedirect]:
        stored_state = self._cookies.get(STATE_COOKIE_NAME)
        self._cookies.delete(STATE_COOKIE_NAME)

        if stored_state and params.state and hmac.compare_digest(
            stored_state.encode("utf-8"), params.state.encode("utf-8")
        ):
            return None

        logger.warning(
            "[INSTAGRAM] State mismatch or missing in callback (cookie_present=%s, strict=%s)",
            bool(stored_state),
            self.config.strict_state,
        )
        if self.config.strict_state:
            return self._redirect(LANDING_PATH, error="invalid_state", description=INVALID_STATE_DESCRIPTION)
        return None

    def _redirect(self, path: str, **params: Optional[str]) -> CallbackRedirect:
        return build_redirect(self.config.site_url, path, **params)
