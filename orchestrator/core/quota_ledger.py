"""
Quota Ledger

Computes the remaining panel-generation allowance for a user and decides
whether the current chapter index passes the tier's cadence gate.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, Optional

from models import PanelQuotaInfo, SubscriptionTier

from core.errors import StorageError

logger = logging.getLogger("orchestrator.quota")


@dataclass(frozen=True)
class QuotaRule:
    limit: int
    monthly: bool


QUOTA_POLICY: Dict[str, QuotaRule] = {
    SubscriptionTier.FREE.value: QuotaRule(limit=4, monthly=False),
    SubscriptionTier.PLUS.value: QuotaRule(limit=10, monthly=True),
    SubscriptionTier.PREMIUM.value: QuotaRule(limit=30, monthly=True),
}

# Every Nth chapter after the origin gets a panel
CADENCE_INTERVAL = {
    SubscriptionTier.PREMIUM.value: 2,
    SubscriptionTier.PLUS.value: 3,
    SubscriptionTier.FREE.value: 3,
}

UNKNOWN_TIER_RULE = QuotaRule(limit=0, monthly=False)


@dataclass
class QuotaStatus:
    tier: str
    limit: int
    used: int
    monthly: bool

    @property
    def has_quota(self) -> bool:
        return self.used < self.limit

    @property
    def remaining(self) -> int:
        return max(self.limit - self.used, 0)

    def to_info(self) -> PanelQuotaInfo:
        return PanelQuotaInfo(
            tier=self.tier,
            limit=self.limit,
            used=self.used,
            remaining=self.remaining,
            window="monthly" if self.monthly else "lifetime",
        )


def get_quota_rule(tier: Optional[str]) -> QuotaRule:
    return QUOTA_POLICY.get(tier or "", UNKNOWN_TIER_RULE)


def month_window_start(now: Optional[datetime] = None) -> datetime:
    """First instant of the current calendar month in UTC."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    now = now.astimezone(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)


def is_cadence_eligible(tier: Optional[str], chapter_index: int) -> bool:
    """
    Premium: indices 3, 5, 7... Plus/free: indices 4, 7, 10...
    Index 1 (origin) never passes this gate, nor does an unknown tier.
    """
    if chapter_index <= 1:
        return False
    interval = CADENCE_INTERVAL.get(tier or "")
    if interval is None:
        return False
    return (chapter_index - 1) % interval == 0


async def evaluate_quota(store, user_id: str, tier: Optional[str], now: Optional[datetime] = None) -> QuotaStatus:
    """
    Count the user's panels in the tier's window.

    Raises:
        StorageError: if the usage count cannot be read. Callers treat
        this as "skip the panel".
    """
    rule = get_quota_rule(tier)
    since = month_window_start(now) if rule.monthly else None
    used = await store.count_usage_panels(user_id, since=since)
    return QuotaStatus(tier=tier or "", limit=rule.limit, used=used, monthly=rule.monthly)


async def should_generate_panel(
    store,
    user_id: str,
    tier: Optional[str],
    chapter_index: int,
    now: Optional[datetime] = None,
) -> bool:
    """Both gates must pass; a failed usage read means no panel."""
    if not is_cadence_eligible(tier, chapter_index):
        logger.info(f"[should_generate_panel] Chapter {chapter_index} not on {tier} cadence")
        return False
    try:
        status = await evaluate_quota(store, user_id, tier, now=now)
    except StorageError as e:
        logger.warning(f"[should_generate_panel] Could not read panel usage for {user_id}, skipping panel: {e}")
        return False
    if not status.has_quota:
        logger.info(f"[should_generate_panel] Quota exhausted for {user_id}: {status.used}/{status.limit}")
    return status.has_quota
