"""
Reward Ledger - point credits and tier derivation.

DESIGN PRINCIPLES:
- Every credit adds to both the spendable balance and the lifetime total
- Tier is recomputed from the lifetime total in the same write, never set on its own
- Credits tied to a report are guarded by a per-report flag so they are issued once
"""

from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
import logging

from app.core.exceptions import ValidationError
from app.core.settings import settings
from app.models.user import RewardTier
from app.services.storage import ReportStore, UserStore, get_report_store, get_user_store

logger = logging.getLogger(__name__)


def tier_thresholds() -> List[Tuple[int, str]]:
    """Ascending (cutoff, tier) pairs."""
    return [
        (0, RewardTier.BRONZE.value),
        (settings.SILVER_TIER_POINTS, RewardTier.SILVER.value),
        (settings.GOLD_TIER_POINTS, RewardTier.GOLD.value),
        (settings.PLATINUM_TIER_POINTS, RewardTier.PLATINUM.value),
    ]


def tier_for(total_earned: int) -> str:
    """Highest tier whose cutoff the lifetime total has reached."""
    tier = RewardTier.BRONZE.value
    for cutoff, name in tier_thresholds():
        if total_earned >= cutoff:
            tier = name
    return tier


class RewardLedger:
    """
    Applies point credits to users.
    """

    def __init__(self, user_store: Optional[UserStore] = None, report_store: Optional[ReportStore] = None):
        self._user_store = user_store
        self._report_store = report_store

    @property
    def users(self) -> UserStore:
        return self._user_store or get_user_store()

    @property
    def reports(self) -> ReportStore:
        return self._report_store or get_report_store()

    async def credit(self, user_id: str, points: int) -> Optional[Dict]:
        """
        Add points to a user's balance and lifetime total, then recompute tier.

        Returns the updated user, or None when the user no longer exists.
        """
        if points <= 0:
            raise ValidationError("Reward points must be a positive integer")

        user = await self.users.apply_credit(user_id, points, tier_for)
        if user is None:
            logger.warning(f"Reward credit skipped: user {user_id} not found")
            return None

        rewards = user.get("rewards", {})
        logger.info(
            f"Credited {points} points to {user_id} "
            f"(balance={rewards.get('points')}, lifetime={rewards.get('total_earned')}, tier={rewards.get('level')})"
        )
        return user

    async def issue_completion_reward(self, report_id: str) -> bool:
        """
        Credit the reporter of a completed report, at most once per report.

        The report's `rewards.completion_awarded_at` flag is claimed with a
        conditional update before the credit, so retries are no-ops. A crash
        between the flag and the credit loses the reward rather than doubling it.

        Returns True when this call issued the reward.
        """
        points = settings.COMPLETION_REWARD_POINTS
        now = datetime.now(timezone.utc)
        applied, report = await self.reports.conditional_update(
            report_id,
            guard={"rewards.completion_awarded_at": (None,), "status": ("completed",)},
            updates={
                "rewards.completion_awarded_at": now,
                "rewards.completion_points": points,
            },
        )
        if not applied:
            logger.info(f"Completion reward for report {report_id} already issued or not due")
            return False

        await self.credit(report["reporter"], points)
        return True


# Global ledger instance (singleton pattern)
_reward_ledger: Optional[RewardLedger] = None


def get_reward_ledger() -> RewardLedger:
    global _reward_ledger
    if _reward_ledger is None:
        _reward_ledger = RewardLedger()
    return _reward_ledger
