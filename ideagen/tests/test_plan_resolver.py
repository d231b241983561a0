"""
Tests for plan resolution and model selection.
"""
from types import MappingProxyType

import pytest

from ideagen.features.plans.service import (
    ModelPolicy,
    resolve,
    resolve_plan,
    strip_plan_prefix,
)
from ideagen.models.plan import Plan, PlanSelection

from ideagen.tests.mocks import make_settings


POLICY = ModelPolicy(premium_model="top-model", default_model="cheap-model")


@pytest.mark.parametrize(
    "claim, expected",
    [
        ("u:premium_subscription", Plan.PREMIUM),
        ("o:premium_subscription", Plan.PREMIUM),
        ("premium_subscription", Plan.PREMIUM),
        ("o:pro_plan", Plan.PRO),
        ("u:pro_plan", Plan.PRO),
        ("", Plan.FREE),
        ("o:unknown_tier", Plan.FREE),
        ("u:Premium_Subscription", Plan.FREE),
        ("x:y:pro_plan", Plan.FREE),
        ("free_user", Plan.FREE),
    ],
)
def test_plan_claim_values(claim, expected):
    selection = resolve_plan({"pla": claim}, POLICY)
    assert selection.plan is expected


def test_missing_claim_resolves_to_free():
    assert resolve_plan({"sub": "user_1"}, POLICY).plan is Plan.FREE
    assert resolve_plan({}, POLICY).plan is Plan.FREE
    assert resolve_plan(None, POLICY).plan is Plan.FREE


def test_non_string_claim_resolves_to_free():
    assert resolve_plan({"pla": {"slug": "pro_plan"}}, POLICY).plan is Plan.FREE
    assert resolve_plan({"pla": 42}, POLICY).plan is Plan.FREE


def test_strip_plan_prefix_only_removes_one_letter_namespace():
    assert strip_plan_prefix("u:pro_plan") == "pro_plan"
    assert strip_plan_prefix("o:pro_plan") == "pro_plan"
    assert strip_plan_prefix("pro_plan") == "pro_plan"
    assert strip_plan_prefix("org:pro_plan") == "org:pro_plan"
    assert strip_plan_prefix("1:pro_plan") == "1:pro_plan"


def test_model_mapping_premium_gets_top_model():
    assert resolve_plan({"pla": "u:premium_subscription"}, POLICY).model == "top-model"
    assert resolve_plan({"pla": "u:pro_plan"}, POLICY).model == "cheap-model"
    assert resolve_plan({}, POLICY).model == "cheap-model"


def test_model_policy_is_total():
    for plan in Plan:
        assert POLICY.model_for(plan) in {"top-model", "cheap-model"}
    assert POLICY.model_for(Plan.UNKNOWN) == "cheap-model"


def test_resolve_returns_plan_and_model_tuple():
    assert resolve({"pla": "o:pro_plan"}, POLICY) == (Plan.PRO, "cheap-model")


def test_resolver_accepts_read_only_claims():
    claims = MappingProxyType({"pla": "u:premium_subscription"})
    assert resolve_plan(claims, POLICY).plan is Plan.PREMIUM


def test_custom_claim_name():
    selection = resolve_plan({"plan": "u:pro_plan"}, POLICY, claim="plan")
    assert selection.plan is Plan.PRO


def test_policy_from_settings():
    cfg = make_settings(MODEL_PREMIUM="big", MODEL_DEFAULT="small")
    policy = ModelPolicy.from_settings(cfg)
    assert policy.model_for(Plan.PREMIUM) == "big"
    assert policy.model_for(Plan.FREE) == "small"


def test_plan_selection_frozen():
    selection = PlanSelection(plan=Plan.PRO, model="m")
    assert selection.label == "pro"
    with pytest.raises(Exception):
        selection.model = "other"
