"""Subscription plan definitions and session-limit rules."""

from __future__ import annotations

from dataclasses import dataclass, asdict
from typing import Dict, List, Literal, Optional

from pydantic.alias_generators import to_camel

PlanTier = Literal["BASIC", "STANDARD", "PREMIUM"]

PLAN_TIERS = ("BASIC", "STANDARD", "PREMIUM")


@dataclass(frozen=True)
class Plan:
    name: str
    display_name: str
    description: str
    price_in_cents: int
    tier: str
    # 0 means unlimited
    session_limit: int
    course_inclusion: str  # NONE|PARTIAL|FULL
    family_size: int
    support_tier: str  # EMAIL|PRIORITY|PREMIUM
    featured: bool = False

    def to_dict(self) -> Dict:
        data = {to_camel(key): value for key, value in asdict(self).items()}
        data["features"] = get_plan_features(self.tier)
        data["formattedPrice"] = f"${self.price_in_cents / 100:.2f}"
        return data


DEFAULT_PLANS = (
    Plan(
        name="basic",
        display_name="Basic",
        description="Perfect for getting started with essential tech support",
        price_in_cents=4900,
        tier="BASIC",
        session_limit=2,
        course_inclusion="NONE",
        family_size=1,
        support_tier="EMAIL",
    ),
    Plan(
        name="standard",
        display_name="Standard",
        description="Great for ongoing learning and regular support needs",
        price_in_cents=9900,
        tier="STANDARD",
        session_limit=5,
        course_inclusion="PARTIAL",
        family_size=1,
        support_tier="PRIORITY",
        featured=True,
    ),
    Plan(
        name="premium",
        display_name="Premium",
        description="Full access with unlimited sessions and family coverage",
        price_in_cents=19900,
        tier="PREMIUM",
        session_limit=0,
        course_inclusion="FULL",
        family_size=2,
        support_tier="PREMIUM",
    ),
)

_PLAN_FEATURES: Dict[str, List[str]] = {
    "BASIC": [
        "2 sessions per month",
        "Email support",
        "10% off courses",
    ],
    "STANDARD": [
        "5 sessions per month",
        "Priority support",
        "20% off courses",
        "15% off gift certificates",
    ],
    "PREMIUM": [
        "Unlimited sessions",
        "24/7 premium support",
        "All courses included",
        "Family coverage (2 people)",
    ],
}


def get_all_plans() -> List[Plan]:
    return list(DEFAULT_PLANS)


def get_plan(tier: str) -> Optional[Plan]:
    for plan in DEFAULT_PLANS:
        if plan.tier == (tier or "").upper():
            return plan
    return None


def get_plan_features(tier: str) -> List[str]:
    return list(_PLAN_FEATURES.get((tier or "").upper(), []))


def get_session_limit(tier: str) -> Optional[int]:
    """Monthly session allowance, or None when the plan is unlimited or unknown."""
    plan = get_plan(tier)
    if plan is None or plan.session_limit == 0:
        return None
    return plan.session_limit


def has_exceeded_session_limit(tier: str, sessions_this_month: int) -> bool:
    limit = get_session_limit(tier)
    if limit is None:
        return False
    return sessions_this_month >= limit


def plan_includes_all_courses(tier: str) -> bool:
    return (tier or "").upper() == "PREMIUM"
