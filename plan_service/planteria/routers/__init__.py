"""API routers."""
from planteria.routers.api_health_router import router as api_health_router
from planteria.routers.plans_router import router as plans_router
from planteria.routers.outcomes_router import router as outcomes_router
from planteria.routers.deliverables_router import router as deliverables_router
from planteria.routers.actions_router import router as actions_router
from planteria.routers.api_keys_router import router as api_keys_router
from planteria.routers.generation_router import router as generation_router
from planteria.routers.integration_router import router as integration_router

__all__ = [
    "api_health_router",
    "plans_router",
    "outcomes_router",
    "deliverables_router",
    "actions_router",
    "api_keys_router",
    "generation_router",
    "integration_router",
]
