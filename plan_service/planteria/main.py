"""FastAPI application entrypoint."""
from contextlib import asynccontextmanager

from fastapi import FastAPI

from planteria import __version__
from planteria.logging_config import configure_logging, get_logger
from planteria.middleware.correlation_id import CorrelationIdMiddleware
from planteria.middleware.rate_limit import RateLimitMiddleware
from planteria.routers import (
    actions_router,
    api_health_router,
    api_keys_router,
    deliverables_router,
    generation_router,
    integration_router,
    outcomes_router,
    plans_router,
)

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown: logging, generation worker, teardown."""
    configure_logging()
    logger.info("app_started", version=__version__)
    from planteria.services.generation_worker import start_generation_worker, stop_generation_worker
    await start_generation_worker(app)
    yield
    await stop_generation_worker()
    logger.info("app_shutdown")


app = FastAPI(
    title="Planteria",
    version=__version__,
    lifespan=lifespan,
)
app.add_middleware(RateLimitMiddleware)
app.add_middleware(CorrelationIdMiddleware)

app.include_router(api_health_router)
app.include_router(plans_router)
app.include_router(outcomes_router)
app.include_router(deliverables_router)
app.include_router(actions_router)
app.include_router(api_keys_router)
app.include_router(generation_router)
app.include_router(integration_router)


@app.get("/")
def root() -> dict[str, str]:
    """Root endpoint: app name and version."""
    return {"name": "planteria", "version": __version__}
