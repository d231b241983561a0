"""
ideagen/models/plan.py

Subscription tiers and the model chosen for each.
"""

from enum import Enum
from pydantic import BaseModel, ConfigDict


class Plan(str, Enum):
    """
    Capability tier derived from the session token's plan claim.

    The resolver only ever produces FREE, PRO or PREMIUM; UNKNOWN exists so
    a model policy has an explicit entry for anything else.
    """
    FREE = "free"
    PRO = "pro"
    PREMIUM = "premium"
    UNKNOWN = "unknown"


class PlanSelection(BaseModel):
    """Resolved tier plus the provider model serving it."""
    model_config = ConfigDict(frozen=True)

    plan: Plan
    model: str

    @property
    def label(self) -> str:
        return self.plan.value
