"""
Season database models.
Season holds the org-wide OKR for a multi-week cycle; ActiveSeason is
the lock row that makes exactly one season current.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, String, Text, DateTime, ForeignKey, Enum, Index, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base, GUID, utcnow
from app.services.arm_catalog import Dimension


class Season(Base):
    """
    Season model: an org-level objective with a fixed start and end.
    Text fields are produced by the narrative generator and are opaque
    to the bandit; only target_dimension feeds arm selection.
    """
    __tablename__ = "seasons"

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        primary_key=True,
        default=uuid.uuid4,
    )
    target_dimension: Mapped[Dimension] = mapped_column(
        Enum(Dimension),
        nullable=False,
        default=Dimension.Q,
    )
    focus_kpi: Mapped[str] = mapped_column(String(50), nullable=False, default="custom_okr")

    # OKR
    objective: Mapped[str] = mapped_column(Text, nullable=False)
    key_result: Mapped[str] = mapped_column(Text, nullable=False)
    strategy_name: Mapped[str] = mapped_column(Text, nullable=False)
    narrative_text: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Presentation
    ai_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    icon_char: Mapped[str] = mapped_column(String(32), nullable=False, default="construction")
    theme_color: Mapped[str] = mapped_column(String(16), nullable=False, default="#475569")

    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_by: Mapped[Optional[uuid.UUID]] = mapped_column(GUID(), nullable=True)

    start_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Season(id={self.id}, target={self.target_dimension}, end_at={self.end_at})>"


class ActiveSeason(Base):
    """
    Lock row pointing at the current season.
    The partial unique index allows at most one row with is_active = true;
    a losing concurrent insert fails with an IntegrityError.
    """
    __tablename__ = "active_seasons"
    __table_args__ = (
        Index(
            "uq_active_seasons_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        primary_key=True,
        default=uuid.uuid4,
    )
    season_id: Mapped[uuid.UUID] = mapped_column(
        GUID(),
        ForeignKey("seasons.id", ondelete="CASCADE"),
        nullable=False,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=utcnow,
        nullable=False,
    )

    season: Mapped["Season"] = relationship("Season", lazy="joined")

    def __repr__(self) -> str:
        return f"<ActiveSeason(season={self.season_id}, active={self.is_active}, expires_at={self.expires_at})>"
