"""Challenge plans and their fixed risk rules.

Every plan risks 7 pips per trade.  Standard plans target 21 pips (1:3),
pro plans target 42 pips (1:6).
"""

from dataclasses import dataclass

STOP_PIPS = 7

PLAN_REWARD_PIPS: dict[str, int] = {
    "standard": 21,
    "pro": 42,
}


@dataclass(frozen=True)
class AccountPlan:
    """A purchasable challenge account."""

    label: str
    plan_type: str  # "standard" or "pro"
    account_size: float
    challenge_target: float
    verification_target: float
    max_loss: float
    cost: float


# Keyed by price, matching how plans are sold.
ACCOUNT_PLANS: dict[str, AccountPlan] = {
    "50": AccountPlan("5K Challenge (Standard)", "standard", 5_000, 500, 250, 500, 50),
    "75": AccountPlan("5K Challenge (Pro)", "pro", 5_000, 500, 250, 500, 75),
    "100": AccountPlan("10K Challenge (Standard)", "standard", 10_000, 1_000, 500, 1_000, 100),
    "150": AccountPlan("10K Challenge (Pro)", "pro", 10_000, 1_000, 500, 1_000, 150),
    "190": AccountPlan("25K Challenge (Standard)", "standard", 25_000, 2_500, 1_250, 2_500, 190),
    "285": AccountPlan("25K Challenge (Pro)", "pro", 25_000, 2_500, 1_250, 2_500, 285),
}


def normalize_plan_type(plan_type: str | None) -> str:
    """Map any stored account type onto ``"standard"`` or ``"pro"``."""
    return "pro" if str(plan_type or "").strip().lower() == "pro" else "standard"


def reward_pips_for(plan_type: str | None) -> int:
    """Take-profit distance in pips for *plan_type* (unknown → standard)."""
    return PLAN_REWARD_PIPS[normalize_plan_type(plan_type)]


def plan_for_cost(cost: str | int) -> AccountPlan:
    """Look up a plan by its price.

    Raises:
        KeyError: If no plan is sold at *cost*.
    """
    return ACCOUNT_PLANS[str(cost)]
