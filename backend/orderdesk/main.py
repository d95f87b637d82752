import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from orderdesk.api.v1 import api_router
from orderdesk.config import settings
from orderdesk.core.deps import RuntimeDep
from orderdesk.core.error_handlers import register_error_handlers
from orderdesk.core.logging_config import configure_logging
from orderdesk.core.middleware import RequestIDMiddleware
from orderdesk.runtime import OfflineRuntime

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    runtime = OfflineRuntime.build(settings)
    await runtime.start()
    app.state.runtime = runtime
    yield
    # Shutdown: let a running pass finish, then close the local store
    await runtime.stop()
    app.state.runtime = None


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/api/docs",
    openapi_url="/api/openapi.json",
    lifespan=lifespan,
)

# --- Middleware (outermost first) ---

app.add_middleware(RequestIDMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)

# --- Error handlers ---
register_error_handlers(app)

# --- Routes ---
app.include_router(api_router)


@app.get("/api/health")
async def health_check(runtime: RuntimeDep):
    """Local store check plus the current connectivity flag.

    Being offline is a normal operating mode and does not degrade health.
    """
    import time

    checks: dict = {"version": settings.APP_VERSION}
    healthy = True

    start = time.monotonic()
    try:
        await runtime.store.ping()
        checks["local_store"] = {"status": "ok", "latency_ms": round((time.monotonic() - start) * 1000, 1)}
    except Exception as exc:
        healthy = False
        checks["local_store"] = {"status": "error", "detail": str(exc)[:200]}

    checks["online"] = runtime.connectivity.is_online()
    checks["pending_orders"] = runtime.order_sync.status.pending_count
    checks["held_orders"] = len(runtime.repository.held())
    checks["status"] = "healthy" if healthy else "degraded"

    status_code = 200 if healthy else 503
    return JSONResponse(content=checks, status_code=status_code)
