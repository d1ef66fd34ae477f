# adlaunch/main.py
"""
FastAPI application for campaign provisioning.
Internal service: every campaign route expects X-Internal-API-Key.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from adlaunch.core import config
from adlaunch.core.exceptions import OrchestrationError
from adlaunch.core.logging_config import setup_logging
from adlaunch.db.session import init_db, test_db_connection
from adlaunch.api.deps import require_internal_api_key
from adlaunch.api.v1.router import api_router

log = logging.getLogger("adlaunch")


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging("adlaunch", config.LOG_LEVEL)
    log.info("=" * 80)
    log.info(f"🚀 adlaunch starting ({config.ENVIRONMENT})")
    log.info("=" * 80)
    try:
        init_db()
        if test_db_connection():
            log.info("✅ Database initialized")
    except Exception as e:
        log.error(f"❌ Database error: {e}")
    yield
    log.info("👋 adlaunch shutting down")


app = FastAPI(
    title="adlaunch - Campaign Provisioning",
    description="Step-by-step ad campaign provisioning for Meta and Google Ads",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# ────────────────────────────────────────────
# Error handling
# ────────────────────────────────────────────

@app.exception_handler(OrchestrationError)
async def orchestration_error_handler(request: Request, exc: OrchestrationError):
    level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    log.log(level, f"{request.method} {request.url.path} -> {exc.status_code} {exc.code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


# ────────────────────────────────────────────
# Routes
# ────────────────────────────────────────────

app.include_router(api_router, prefix="/api/v1", dependencies=[Depends(require_internal_api_key)])


@app.get("/healthz", tags=["System"])
def health():
    """Health check endpoint"""
    db_ok = test_db_connection()

    return {
        "status": "ok" if db_ok else "degraded",
        "environment": config.ENVIRONMENT,
        "database_ok": db_ok,
        "meta_token_ok": bool(config.META_SYSTEM_USER_TOKEN),
        "google_ads_ok": bool(config.GOOGLE_ADS_DEVELOPER_TOKEN and config.GOOGLE_ADS_REFRESH_TOKEN),
        "manager_api_ok": bool(config.MANAGER_API_URL),
        "sandbox_account": config.use_sandbox_account(),
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8100)
