"""Main FastAPI application for the FitPlan backend."""
from fastapi import FastAPI, Request

from fitplan.api.routes.chat import router as chat_router
from fitplan.api.routes.completions import router as completions_router
from fitplan.api.routes.plans import router as plans_router
from fitplan.api.routes.streak import router as streak_router
from fitplan.api.routes.sync import router as sync_router
from fitplan.core.config import settings
from fitplan.core.logging import configure_logging
from fitplan.core.middleware import RequestContextMiddleware
from fitplan.observability.client import init_opik, shutdown_opik
from fitplan.observability.tracing import trace

configure_logging(log_level=settings.log_level)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(RequestContextMiddleware)
app.include_router(plans_router)
app.include_router(completions_router)
app.include_router(streak_router)
app.include_router(sync_router)
app.include_router(chat_router)


@app.on_event("startup")
async def startup_observability() -> None:
    """Initialize observability backends after the event loop starts."""
    init_opik()


@app.on_event("shutdown")
async def shutdown_observability() -> None:
    shutdown_opik()


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok"}
