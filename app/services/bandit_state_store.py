"""
Per-user bandit state and its persistence facade.

UserBanditState is an immutable value; BanditBrain.update_state returns a
new one and the caller saves it here. The store carries no business logic
beyond folding rows written under retired arm ids.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import utcnow
from app.models.bandit_arm_state import BanditArmStateRecord
from app.services.arm_catalog import LEGACY_ARM_ALIASES

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BanditArmState:
    """Beta posterior for one arm."""
    alpha: float
    beta: float
    trials: int = 0
    updated_at: Optional[datetime] = None

    @property
    def mean(self) -> float:
        total = self.alpha + self.beta
        return self.alpha / total if total > 0 else 0.5


@dataclass(frozen=True)
class UserBanditState:
    """
    Mapping of arm id to BanditArmState for one user.
    Arms missing from the mapping are at the prior.
    """
    arms: Mapping[str, BanditArmState] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "arms", MappingProxyType(dict(self.arms)))

    @property
    def total_trials(self) -> int:
        return sum(arm.trials for arm in self.arms.values())

    def get(self, arm_id: str) -> Optional[BanditArmState]:
        return self.arms.get(arm_id)

    def with_arm(self, arm_id: str, arm_state: BanditArmState) -> "UserBanditState":
        """Return a copy with one arm replaced."""
        arms = dict(self.arms)
        arms[arm_id] = arm_state
        return UserBanditState(arms=arms)


def fold_legacy_arms(
    rows: Dict[str, BanditArmState],
    prior_alpha: float,
    prior_beta: float,
) -> Dict[str, BanditArmState]:
    """
    Merge states stored under retired arm ids into their successors.

    Each legacy posterior is averaged with the successor's current value
    (the prior if absent); trial counts are summed.
    """
    folded = {arm_id: state for arm_id, state in rows.items() if arm_id not in LEGACY_ARM_ALIASES}

    for legacy_id, new_id in LEGACY_ARM_ALIASES.items():
        legacy = rows.get(legacy_id)
        if legacy is None:
            continue
        current = folded.get(new_id) or BanditArmState(alpha=prior_alpha, beta=prior_beta)
        folded[new_id] = BanditArmState(
            alpha=(current.alpha + legacy.alpha) / 2,
            beta=(current.beta + legacy.beta) / 2,
            trials=current.trials + legacy.trials,
            updated_at=max(
                (ts for ts in (current.updated_at, legacy.updated_at) if ts is not None),
                default=None,
            ),
        )
        logger.info(f"Folded legacy arm {legacy_id} into {new_id}")

    return folded


class BanditStateStore:
    """Loads and saves UserBanditState through the bandit_arm_states table."""

    def __init__(self, db: AsyncSession, prior_alpha: float = 2.0, prior_beta: float = 2.0):
        self.db = db
        self.prior_alpha = prior_alpha
        self.prior_beta = prior_beta

    async def _load_rows(self, user_id: uuid.UUID) -> List[BanditArmStateRecord]:
        result = await self.db.execute(
            select(BanditArmStateRecord)
            .where(BanditArmStateRecord.user_id == user_id)
        )
        return list(result.scalars().all())

    async def get(self, user_id: uuid.UUID) -> UserBanditState:
        """
        Get a user's bandit state.

        Returns an empty state (never None) for users with no history.
        """
        rows = await self._load_rows(user_id)
        arms = {
            row.arm_id: BanditArmState(
                alpha=row.alpha,
                beta=row.beta,
                trials=row.trials,
                updated_at=row.updated_at,
            )
            for row in rows
        }
        if any(arm_id in LEGACY_ARM_ALIASES for arm_id in arms):
            arms = fold_legacy_arms(arms, self.prior_alpha, self.prior_beta)
        return UserBanditState(arms=arms)

    async def save(self, user_id: uuid.UUID, state: UserBanditState) -> None:
        """
        Overwrite the stored state for a user (last write wins).

        Legacy rows are removed once their data has been folded into
        the state being saved. The caller owns the commit.
        """
        rows = {row.arm_id: row for row in await self._load_rows(user_id)}

        for arm_id, arm_state in state.arms.items():
            row = rows.pop(arm_id, None)
            if row is None:
                row = BanditArmStateRecord(user_id=user_id, arm_id=arm_id)
                self.db.add(row)
            row.alpha = arm_state.alpha
            row.beta = arm_state.beta
            row.trials = arm_state.trials
            row.updated_at = arm_state.updated_at or utcnow()

        for arm_id, row in rows.items():
            if arm_id in LEGACY_ARM_ALIASES:
                await self.db.delete(row)

        await self.db.flush()
