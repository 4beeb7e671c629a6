"""
Mission database model.
A user's coaching focus for one phase of one season.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, Float, Integer, String, Text, DateTime, ForeignKey, Enum, Index
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base, GUID, utcnow
from app.services.arm_catalog import Dimension, UserMode


class Mission(Base):
    """
    Mission model, created once per (user, season, phase).
    Stores the selected arm, the rendered copy, the selection diagnostics,
    and the user's edit history. arm_id is NULL on rows written before
    arms were recorded.
    """
    __tablename__ = "missions"
    __table_args__ = (
        Index("ix_missions_user_created", "user_id", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        primary_key=True,
        default=uuid.uuid4,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(GUID(), nullable=False)
    season_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(),
        ForeignKey("seasons.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    phase_index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Bandit selection
    arm_id: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    mode: Mapped[Optional[UserMode]] = mapped_column(Enum(UserMode), nullable=True)
    target_dimension: Mapped[Dimension] = mapped_column(
        Enum(Dimension),
        nullable=False,
        default=Dimension.Q,
    )
    sample_value: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    ucb_bonus: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    context_boost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    final_score: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Rendered copy
    action: Mapped[str] = mapped_column(Text, nullable=False)
    hint: Mapped[str] = mapped_column(Text, nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # User edits (not a reward signal)
    original_action: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    original_hint: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    change_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    edited_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    # Learning bookkeeping
    feedback_rating: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    feedback_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    last_outcome_window_end: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    mission_end_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Mission(id={self.id}, user={self.user_id}, arm={self.arm_id}, phase={self.phase_index})>"
