"""SQLAlchemy models for the plan service."""
from planteria.models.plan import Plan
from planteria.models.outcome import Outcome
from planteria.models.deliverable import Deliverable
from planteria.models.action import Action
from planteria.models.plan_thread import PlanThread
from planteria.models.plan_adjustment_event import PlanAdjustmentEvent
from planteria.models.user_api_key import UserApiKey

__all__ = [
    "Plan",
    "Outcome",
    "Deliverable",
    "Action",
    "PlanThread",
    "PlanAdjustmentEvent",
    "UserApiKey",
]
