"""Recovery time recommendation from the last session's load."""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from history.records import SECONDS_PER_DAY


@dataclass(frozen=True)
class RecoveryEstimate:
    """Recommended recovery after the most recent session."""
    hours: int
    level: str               # light, moderate, hard, very_hard
    label: str
    hours_remaining: Optional[float] = None
    last_activity: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'hours': self.hours,
            'level': self.level,
            'label': self.label,
            'hours_remaining': None if self.hours_remaining is None else round(self.hours_remaining),
            'last_activity': self.last_activity,
        }


# (max TRIMP, max load ratio, hours, level, label); first match wins
RECOVERY_TIERS = (
    (30, 0.5, 24, 'light', 'Easy Recovery'),
    (80, 1.0, 36, 'moderate', 'Moderate Recovery'),
    (150, 1.5, 48, 'hard', 'Hard Session Recovery'),
)
EXTENDED_TIER = (72, 'very_hard', 'Extended Recovery')


def estimate_recovery(last_trimp: float, current_ctl: float) -> RecoveryEstimate:
    """
    Recovery tier from the last session's TRIMP relative to fitness.

    Args:
        last_trimp: TRIMP of the most recent session
        current_ctl: Current chronic training load

    Returns:
        RecoveryEstimate without time remaining
    """
    load_ratio = last_trimp / current_ctl if current_ctl > 0 else 2.0

    for max_trimp, max_ratio, hours, level, label in RECOVERY_TIERS:
        if last_trimp < max_trimp or load_ratio < max_ratio:
            return RecoveryEstimate(hours=hours, level=level, label=label)

    hours, level, label = EXTENDED_TIER
    return RecoveryEstimate(hours=hours, level=level, label=label)


def hours_remaining(recovery_hours: float, last_activity_date: datetime, as_of: datetime) -> float:
    """Recovery hours left since the last activity (never negative)."""
    hours_since = (as_of - last_activity_date).total_seconds() / SECONDS_PER_DAY * 24
    return max(0.0, recovery_hours - hours_since)
