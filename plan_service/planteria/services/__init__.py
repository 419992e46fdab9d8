"""Business logic services."""
from planteria.services.ownership_service import (
    OwnershipChain,
    require_action_ownership,
    require_deliverable_ownership,
    require_outcome_ownership,
    require_plan_ownership,
)
from planteria.services.replace_service import apply_plan_adjustment, replace_plan_tree

__all__ = [
    "OwnershipChain",
    "require_action_ownership",
    "require_deliverable_ownership",
    "require_outcome_ownership",
    "require_plan_ownership",
    "apply_plan_adjustment",
    "replace_plan_tree",
]
