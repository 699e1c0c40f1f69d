"""
Offerten Pricing API
FastAPI backend for building-inspection quotes: cost calculation, manual price
overrides with debounced persistence, and price-sheet documents.
"""
import os
import time
import logging
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

# .env is optional; real environment variables take precedence
load_dotenv()

from offerten.services.logging_config import setup_logging  # noqa: E402
from offerten.services.middleware import RequestTimingMiddleware  # noqa: E402
from offerten.services.config_store import ConfigurationUnavailableError  # noqa: E402
from offerten.services.quote_repository import QuoteNotFoundError  # noqa: E402
from offerten.services.quote_sessions import QuoteSessionRegistry, SessionNotOpenError  # noqa: E402

_log_level = os.getenv("LOG_LEVEL", "INFO")
_json_logs = os.getenv("LOG_FORMAT", "json").lower() != "text"
setup_logging(level=_log_level, json_output=_json_logs)
logger = logging.getLogger("offerten-api")

_PROCESS_START = time.monotonic()
VERSION = "1.0.0"

if not os.getenv("DATABASE_URL"):
    logger.warning("MISSING env var: DATABASE_URL — running in dev mode")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if getattr(app.state, "sessions", None) is None:
        app.state.sessions = QuoteSessionRegistry()
    try:
        from offerten.db import init_db
        await init_db()
    except Exception as e:
        logger.warning(f"Table init warning: {e}")

    yield

    # pending debounced writes must land before the process exits
    await app.state.sessions.close_all()


app = FastAPI(
    title="Offerten Pricing API",
    version=VERSION,
    description="Cost calculation and quote pricing for building-condition surveys",
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# Domain errors -> HTTP
# ---------------------------------------------------------------------------
@app.exception_handler(ConfigurationUnavailableError)
async def configuration_unavailable_handler(request: Request, exc: ConfigurationUnavailableError):
    logger.error(f"Configuration unavailable on {request.url.path}: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(QuoteNotFoundError)
async def quote_not_found_handler(request: Request, exc: QuoteNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(SessionNotOpenError)
async def session_not_open_handler(request: Request, exc: SessionNotOpenError):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


# ---------------------------------------------------------------------------
# CORS — restricted to allowed origins from env
# ---------------------------------------------------------------------------
_cors_default = "http://localhost:3000,http://localhost:8000"
cors_origins = [o.strip() for o in os.getenv("CORS_ORIGINS", _cors_default).split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "X-Requested-With", "X-Request-ID"],
)
# Request timing + X-Request-ID must be outermost so it wraps all other middleware
app.add_middleware(RequestTimingMiddleware)

# Routers
from offerten.api.settings_routes import router as settings_router  # noqa: E402
from offerten.api.quote_routes import router as quote_router  # noqa: E402

app.include_router(settings_router)
app.include_router(quote_router)


@app.get("/health")
async def health_check(request: Request):
    sessions = getattr(request.app.state, "sessions", None)
    return {
        "status": "active",
        "version": VERSION,
        "db_configured": bool(os.getenv("DATABASE_URL")),
        "open_sessions": len(sessions) if sessions is not None else 0,
        "uptime_seconds": round(time.monotonic() - _PROCESS_START, 1),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("offerten.main:app", host="0.0.0.0", port=8000, reload=True)
