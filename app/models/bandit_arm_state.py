"""
BanditArmState database model.
Beta posterior parameters per (user, arm).
"""

import uuid
from datetime import datetime

from sqlalchemy import Float, Integer, String, DateTime, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, GUID, utcnow


class BanditArmStateRecord(Base):
    """
    One row per user and arm. Rows are overwritten on every save;
    alpha and beta only ever grow.
    """
    __tablename__ = "bandit_arm_states"
    __table_args__ = (
        UniqueConstraint("user_id", "arm_id", name="uq_bandit_arm_states_user_arm"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        nullable=False,
        index=True,
    )
    arm_id: Mapped[str] = mapped_column(String(32), nullable=False)

    alpha: Mapped[float] = mapped_column(Float, nullable=False, default=2.0)
    beta: Mapped[float] = mapped_column(Float, nullable=False, default=2.0)
    trials: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<BanditArmStateRecord(user={self.user_id}, arm={self.arm_id}, a={self.alpha:.2f}, b={self.beta:.2f})>"
