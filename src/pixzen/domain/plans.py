"""Plans, trial window and feature limits - pure rules, no I/O."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta

TRIAL_DAYS = 7

# Subscription status of a paying account
ACTIVE_STATUS = "ativo"

# Monthly message allowance synthesized while in trial
TRIAL_MONTHLY_MESSAGES = 999

# Monthly message caps by subscription plano (-1 = unlimited)
UNLIMITED = -1
UNLIMITED_REPORTED_LIMIT = 999999
DEFAULT_USAGE_LIMIT = 30
USAGE_LIMITS: dict[str, int] = {
    "free": 30,
    "basic": 200,
    "premium": UNLIMITED,
    "trial": 50,
}


@dataclass(frozen=True)
class PlanLimits:
    messages_per_month: int
    audio_enabled: bool
    image_enabled: bool
    whatsapp_enabled: bool


SUBSCRIPTION_LIMITS: dict[str, PlanLimits] = {
    "starter": PlanLimits(
        messages_per_month=0,
        audio_enabled=False,
        image_enabled=False,
        whatsapp_enabled=False,
    ),
    "premium": PlanLimits(
        messages_per_month=UNLIMITED,
        audio_enabled=True,
        image_enabled=True,
        whatsapp_enabled=True,
    ),
}


@dataclass(frozen=True)
class TrialStatus:
    is_expired: bool
    is_active: bool
    days_remaining: int

    @property
    def in_trial(self) -> bool:
        """Trial running and no paid subscription."""
        return self.days_remaining > 0 and not self.is_active


ACTIVE = TrialStatus(is_expired=False, is_active=True, days_remaining=0)
EXPIRED = TrialStatus(is_expired=True, is_active=False, days_remaining=0)


def compute_trial_status(start: datetime, now: datetime) -> TrialStatus:
    """Trial status for a window started at `start`.

    Elapsed days are whole days (floor). Expired once 7 full days passed.
    """
    elapsed_days = (now - start) // timedelta(days=1)
    return TrialStatus(
        is_expired=elapsed_days >= TRIAL_DAYS,
        is_active=False,
        days_remaining=max(0, TRIAL_DAYS - elapsed_days),
    )


@dataclass(frozen=True)
class EffectivePlan:
    name: str
    limits: PlanLimits
    in_trial: bool


def effective_plan(trial: TrialStatus, subscription_plan: str | None) -> EffectivePlan:
    """Resolve the plan whose feature flags apply to the next message.

    - active subscription: its plano (premium when unset)
    - running trial: premium, with audio/image on and 999 messages
    - otherwise: starter
    """
    in_trial = trial.in_trial
    if trial.is_active:
        name = subscription_plan or "premium"
    elif in_trial:
        name = "premium"
    else:
        name = "starter"

    limits = SUBSCRIPTION_LIMITS.get(name, SUBSCRIPTION_LIMITS["starter"])
    if in_trial:
        limits = replace(
            limits,
            audio_enabled=True,
            image_enabled=True,
            messages_per_month=TRIAL_MONTHLY_MESSAGES,
        )
    return EffectivePlan(name=name, limits=limits, in_trial=in_trial)


def usage_limit_for(plan: str | None) -> int:
    """Monthly cap for a subscription plano; unknown plans get the free cap."""
    return USAGE_LIMITS.get(plan or "free", DEFAULT_USAGE_LIMIT)
