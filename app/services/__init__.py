"""Services package initialization."""

from app.services.arm_catalog import (
    ARM_CATALOG,
    Arm,
    Dimension,
    UserMode,
    get_arm,
)
from app.services.random_variates import RandomVariateSampler

__all__ = [
    "ARM_CATALOG",
    "Arm",
    "Dimension",
    "UserMode",
    "get_arm",
    "RandomVariateSampler",
]
