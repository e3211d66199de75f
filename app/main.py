import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from sqlalchemy import text
from .core.config import settings
from .core.database import engine, init_db
from .routers import instagram_oauth
from .middleware import RequestIDMiddleware

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(title="Instagram Connect")

limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
app.state.limiter = limiter


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> Response:
    if request.url.path == instagram_oauth.CALLBACK_PATH:
        logger.warning("[INSTAGRAM] Callback rate limited: %s", exc.detail)
        return instagram_oauth.rate_limited_callback_response(request)
    return _rate_limit_exceeded_handler(request, exc)


app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.site_url.rstrip("/")],
    allow_credentials=True,
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept", "X-Request-ID"],
    max_age=600,
)
app.add_middleware(RequestIDMiddleware)


@app.on_event("startup")
def startup():
    init_db()
    logger.info("Instagram connect service started (environment=%s)", settings.environment)


app.include_router(instagram_oauth.router)


@app.get("/health")
async def health_check():
    return {"status": "healthy", "service": "Instagram Connect"}


@app.get("/readiness")
async def readiness_check():
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return {"status": "ready", "database": "connected"}
    except Exception as e:
        logger.error(f"[HEALTH] Readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "not ready", "error": "Database check failed"})


@app.get("/liveness")
async def liveness_check():
    return {"status": "alive", "service": "Instagram Connect"}
