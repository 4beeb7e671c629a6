"""Models package initialization - imports all models for easy access."""

from app.models.season import Season, ActiveSeason
from app.models.mission import Mission
from app.models.bandit_arm_state import BanditArmStateRecord

__all__ = [
    "Season",
    "ActiveSeason",
    "Mission",
    "BanditArmStateRecord",
]
