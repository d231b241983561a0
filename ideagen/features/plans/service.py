"""
ideagen/features/plans/service.py

Plan resolution.

Handles:
- Reading the plan claim from verified session claims
- Stripping Clerk's namespace prefix ("u:" user plan, "o:" organization plan)
- Mapping the plan slug to a tier, and the tier to a provider model

Pure functions only: no I/O, no settings lookups inside the resolver.
"""

import re
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from ideagen.models.plan import Plan, PlanSelection


DEFAULT_PLAN_CLAIM = "pla"

_PREFIX_RE = re.compile(r"^[A-Za-z]:")

# Case-sensitive slugs as published in the billing dashboard
PLAN_SLUGS = {
    "premium_subscription": Plan.PREMIUM,
    "pro_plan": Plan.PRO,
}


@dataclass(frozen=True)
class ModelPolicy:
    """Which model serves which tier. Anything not premium gets the default."""
    premium_model: str = "llama-3.3-70b-versatile"
    default_model: str = "llama-3.1-8b-instant"

    def model_for(self, plan: Plan) -> str:
        if plan is Plan.PREMIUM:
            return self.premium_model
        return self.default_model

    @classmethod
    def from_settings(cls, cfg) -> "ModelPolicy":
        return cls(premium_model=cfg.MODEL_PREMIUM, default_model=cfg.MODEL_DEFAULT)


DEFAULT_POLICY = ModelPolicy()


def strip_plan_prefix(value: str) -> str:
    """Drop a single-letter namespace prefix such as "u:" or "o:"."""
    return _PREFIX_RE.sub("", value, count=1)


def plan_from_slug(slug: str) -> Plan:
    return PLAN_SLUGS.get(slug, Plan.FREE)


def plan_claim_value(claims: Optional[Mapping[str, Any]], claim: str = DEFAULT_PLAN_CLAIM) -> str:
    if not claims:
        return ""
    value = claims.get(claim)
    return value if isinstance(value, str) else ""


def resolve_plan(
    claims: Optional[Mapping[str, Any]],
    policy: ModelPolicy = DEFAULT_POLICY,
    claim: str = DEFAULT_PLAN_CLAIM,
) -> PlanSelection:
    """
    Resolve verified claims to a plan and model.

    Missing, non-string or unrecognised plan claims resolve to the free tier.

    Examples:
        {"pla": "u:premium_subscription"} -> premium
        {"pla": "o:pro_plan"}             -> pro
        {} or {"pla": "o:unknown_tier"}   -> free
    """
    plan = plan_from_slug(strip_plan_prefix(plan_claim_value(claims, claim)))
    return PlanSelection(plan=plan, model=policy.model_for(plan))


def resolve(claims: Optional[Mapping[str, Any]], policy: ModelPolicy = DEFAULT_POLICY) -> Tuple[Plan, str]:
    selection = resolve_plan(claims, policy)
    return selection.plan, selection.model
