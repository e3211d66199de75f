import logging
import secrets

from fastapi import APIRouter, Depends, HTTPException, Request, status
from slowapi import Limiter  # type: ignore
from slowapi.util import get_remote_address
from starlette.responses import RedirectResponse, Response

from ..core.auth import Principal, RequestIdentityProvider, get_current_entity
from ..core.config import settings
from ..schemas import ApiResponse
from ..services.instagram_account_service import InstagramAccountService, get_connection_status
from ..services.instagram_callback import (
    LANDING_PATH,
    RATE_LIMITED_DESCRIPTION,
    STATE_COOKIE_NAME,
    CallbackConfig,
    CallbackParams,
    InstagramCallbackHandler,
    build_redirect,
)
from ..services.instagram_client import InstagramClient
from ..utils.cookies import RequestCookieStore
from ..utils.errors import internal_error
from ..utils.response import standard_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth/instagram", tags=["instagram"])
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)

STATE_COOKIE_MAX_AGE = 10 * 60
CALLBACK_PATH = f"{router.prefix}/callback"


def get_instagram_client() -> InstagramClient:
    return InstagramClient.from_settings(settings)


def _ensure_configured() -> None:
    if not settings.instagram_app_id or not settings.instagram_app_secret:
        raise internal_error(
            "[INSTAGRAM] INSTAGRAM_APP_ID / INSTAGRAM_APP_SECRET are not set",
            user_message="Instagram OAuth is not configured",
        )


@router.get("")
@limiter.limit("20/minute")
async def instagram_login(request: Request, client: InstagramClient = Depends(get_instagram_client)):
    _ensure_configured()

    state = secrets.token_urlsafe(32)
    response = RedirectResponse(url=client.build_authorize_url(state), status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        key=STATE_COOKIE_NAME,
        value=state,
        httponly=True,
        samesite="lax",
        secure=settings.is_production,
        max_age=STATE_COOKIE_MAX_AGE,
        path="/",
    )
    return response


@router.get("/callback")
@limiter.limit("20/minute")
async def instagram_callback(request: Request, client: InstagramClient = Depends(get_instagram_client)):
    cookies = RequestCookieStore(request, secure=settings.is_production)
    handler = InstagramCallbackHandler(
        CallbackConfig.from_settings(settings),
        cookies=cookies,
        identity=RequestIdentityProvider(request),
        token_exchanger=client,
        seeder_factory=lambda principal: InstagramAccountService(principal.id, client),
    )

    outcome = await handler.handle(CallbackParams.from_query(request.query_params))
    return cookies.apply(RedirectResponse(url=outcome.url, status_code=status.HTTP_307_TEMPORARY_REDIRECT))


@router.get("/status", response_model=ApiResponse)
async def instagram_status(current_entity: Principal = Depends(get_current_entity)):
    try:
        connection = await get_connection_status(current_entity.id)
    except Exception as e:
        logger.error(f"[INSTAGRAM] Failed to load connection status: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to load Instagram connection status. Please try again.",
        )

    message = "Instagram account connected" if connection.connected else "No Instagram account connected"
    return standard_response(True, message, data=connection.model_dump(mode="json"))


def rate_limited_callback_response(request: Request) -> Response:
    """The callback answers a tripped rate limit like any other failure: a redirect that consumes the state cookie."""
    cookies = RequestCookieStore(request, secure=settings.is_production)
    cookies.delete(STATE_COOKIE_NAME)
    outcome = build_redirect(
        settings.site_url.rstrip("/"),
        LANDING_PATH,
        error="rate_limited",
        description=RATE_LIMITED_DESCRIPTION,
    )
    return cookies.apply(RedirectResponse(url=outcome.url, status_code=status.HTTP_307_TEMPORARY_REDIRECT))
