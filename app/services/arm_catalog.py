"""
Static arm registry for the mission bandit.

Each arm is a coaching focus tied to one of the three competency
dimensions. The catalog order is significant: it breaks score ties.
"""

import enum
from dataclasses import dataclass
from typing import Dict, Optional, Tuple


class Dimension(str, enum.Enum):
    """Competency axes scored by the evaluation pipeline."""
    LU = "LU"  # learning, sharing, relationships
    Q = "Q"    # quality, speed, finish
    O = "O"    # improvement, innovation


class UserMode(str, enum.Enum):
    """Usage mode the user is currently in."""
    EARN = "EARN"
    LEARN = "LEARN"
    TEAM = "TEAM"


@dataclass(frozen=True)
class Arm:
    """A selectable coaching focus."""
    id: str
    dimension: Dimension
    focus_label: str
    description: str


ARM_CATALOG: Tuple[Arm, ...] = (
    Arm(
        id="Arm_LU",
        dimension=Dimension.LU,
        focus_label="Learning & Sharing",
        description="Knowledge sharing, helping teammates, dialogue and relationship building",
    ),
    Arm(
        id="Arm_Q",
        dimension=Dimension.Q,
        focus_label="Quality & Efficiency",
        description="Work speed, precision, and a better finished result",
    ),
    Arm(
        id="Arm_O",
        dimension=Dimension.O,
        focus_label="Improvement & Innovation",
        description="Improvement proposals, adopting new tools, shortening processes",
    ),
)

ARMS_BY_ID: Dict[str, Arm] = {arm.id: arm for arm in ARM_CATALOG}

# Additive boost per mode, keyed by the arm's dimension
MODE_BOOSTS: Dict[UserMode, Dict[Dimension, float]] = {
    UserMode.EARN: {Dimension.Q: 0.3},
    UserMode.LEARN: {Dimension.LU: 0.3, Dimension.O: 0.2},
    UserMode.TEAM: {Dimension.LU: 0.2, Dimension.O: 0.3},
}

# Retired arm ids still found in old state rows
LEGACY_ARM_ALIASES: Dict[str, str] = {
    "Arm_Speed": "Arm_Q",
    "Arm_Quality": "Arm_Q",
    "Arm_Share": "Arm_LU",
    "Arm_Support": "Arm_LU",
    "Arm_Dialog": "Arm_LU",
    "Arm_Innovate": "Arm_O",
}


def get_arm(arm_id: str) -> Optional[Arm]:
    """Look up an arm by id, or None if it is not in the catalog."""
    return ARMS_BY_ID.get(arm_id)


def arms_for_dimension(dimension: Dimension) -> Tuple[Arm, ...]:
    return tuple(arm for arm in ARM_CATALOG if arm.dimension == dimension)
