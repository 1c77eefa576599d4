# app/main.py
"""
FastAPI application entry point.
Includes security middleware, global error handlers, all routers, and the
escalation engine lifecycle (started on boot, stopped on shutdown).
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from app.routers import alerts, escalations, health
from app.database import create_tables
from app.config import settings
from app.services.engine_config import EngineConfig
from app.services.escalation_manager import EscalationManager
from app.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="Workforce Alert Engine API",
    description="Attendance alert detection, deduplication and escalation.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (allow the supervisor dashboard to call the API) ───────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to dashboard origin in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    async def dispatch(self, request: Request, call_next):
        open_paths = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}
        if request.url.path in open_paths or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Global Exception Handler ─────────────────────────────────────────────────
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(alerts.router,      prefix="/api/v1", tags=["🔔 Alerts"])
app.include_router(escalations.router, prefix="/api/v1", tags=["📈 Escalations"])
app.include_router(health.router,      prefix="/api/v1", tags=["💚 Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info("🚀 Workforce Alert Engine starting up...")
    create_tables()
    logger.info("✅ Database tables ready")

    if settings.ENGINE_AUTOSTART:
        manager = EscalationManager(EngineConfig.from_settings(settings))
        manager.start()
        app.state.escalation_manager = manager
    else:
        logger.info("ENGINE_AUTOSTART disabled — alert loops not started")

    logger.info(f"🌐 Listening on http://{settings.BACKEND_IP}:{settings.BACKEND_PORT}")
    logger.info("📖 API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("🛑 Workforce Alert Engine shutting down...")
    manager = getattr(app.state, "escalation_manager", None)
    if manager is not None:
        manager.stop()
        await manager.wait_closed()
