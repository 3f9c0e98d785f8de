"""
Training-load summary: fitness, fatigue, form, VDOT and recovery.

The tracker is pure: given activities, personal bests, settings and a
reference time it always produces the same TrainingMetrics.
"""

import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from history.records import PersonalBest, TrainingActivity
from prediction.errors import ConfigurationError
from .metrics import (
    activity_trimp,
    build_daily_trimp,
    calculate_fitness_frame,
    calculate_weekly_trimp,
    classify_form,
    fitness_points,
    FitnessPoint,
)
from .recovery import RecoveryEstimate, estimate_recovery, hours_remaining
from .vdot import VDOTEstimate, current_vdot, vdot_history

logger = logging.getLogger(__name__)

TSB_HISTORY_DAYS = 90
WEEKLY_TRIMP_WEEKS = 12


@dataclass(frozen=True)
class TrainingLoadSettings:
    """Athlete physiology used for TRIMP."""
    resting_hr: float = 60.0
    max_hr: float = 190.0
    gender: str = 'male'

    @classmethod
    def from_dict(cls, d: Optional[Mapping[str, Any]]) -> 'TrainingLoadSettings':
        """Create settings from a mapping with snake_case or camelCase keys."""
        if not d:
            return cls()
        defaults = cls()
        return cls(
            resting_hr=float(d.get('resting_hr', d.get('restingHR', defaults.resting_hr))),
            max_hr=float(d.get('max_hr', d.get('maxHR', defaults.max_hr))),
            gender=str(d.get('gender', defaults.gender)).lower(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def validate(self) -> Tuple[bool, str]:
        """Validate settings constraints."""
        issues = []

        if not (20 <= self.resting_hr <= 120):
            issues.append("Resting HR must be in [20, 120]")
        if not (100 <= self.max_hr <= 230):
            issues.append("Max HR must be in [100, 230]")
        if self.max_hr <= self.resting_hr:
            issues.append("Max HR must exceed resting HR")
        if self.gender not in ('male', 'female'):
            issues.append("Gender must be 'male' or 'female'")

        if issues:
            return False, "; ".join(issues)
        return True, "Valid"

    def ensure_valid(self) -> 'TrainingLoadSettings':
        ok, message = self.validate()
        if not ok:
            raise ConfigurationError(f"Invalid training load settings: {message}")
        return self


@dataclass(frozen=True)
class FitnessSummary:
    """Current fitness/fatigue/form and recent history."""
    ctl: float
    atl: float
    tsb: float
    form_status: str
    tsb_data: List[FitnessPoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ctl': round(self.ctl, 1),
            'atl': round(self.atl, 1),
            'tsb': round(self.tsb, 1),
            'form_status': self.form_status,
            'tsb_data': [point.to_dict() for point in self.tsb_data],
        }


@dataclass(frozen=True)
class TrainingMetrics:
    """Complete training-load summary."""
    fitness: FitnessSummary
    vdot: VDOTEstimate
    vdot_history: List[Dict[str, Any]]
    recovery: RecoveryEstimate
    weekly_trimp: List[Dict[str, Any]]
    last_updated: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fitness': self.fitness.to_dict(),
            'vdot': self.vdot.to_dict(),
            'vdot_history': list(self.vdot_history),
            'recovery': self.recovery.to_dict(),
            'weekly_trimp': list(self.weekly_trimp),
            'last_updated': self.last_updated.isoformat(),
        }


class TrainingLoadTracker:
    """
    Converts activities into the training-load summary.

    Usage:
        tracker = TrainingLoadTracker(TrainingLoadSettings(resting_hr=55))
        metrics = tracker.summarize(activities, recent_bests, all_bests, as_of)
    """

    def __init__(self, settings: Optional[TrainingLoadSettings] = None):
        self.settings = (settings or TrainingLoadSettings()).ensure_valid()

    def trimp(self, activity: TrainingActivity) -> float:
        s = self.settings
        return activity_trimp(activity, s.resting_hr, s.max_hr, s.gender)

    def fitness(self, activities: Iterable[TrainingActivity], as_of: datetime):
        """
        Daily TRIMP series and its fitness frame.

        Returns:
            Tuple of (daily TRIMP Series, DataFrame with ctl/atl/tsb)
        """
        s = self.settings
        daily = build_daily_trimp(activities, as_of, s.resting_hr, s.max_hr, s.gender)
        return daily, calculate_fitness_frame(daily)

    def summarize(
        self,
        activities: Iterable[TrainingActivity],
        recent_bests: Iterable[PersonalBest],
        all_bests: Iterable[PersonalBest],
        as_of: datetime,
        history_weeks: int = 52,
    ) -> TrainingMetrics:
        """
        Build the full training-load summary.

        Args:
            activities: Running activities
            recent_bests: Personal bests from the last 12 weeks (current VDOT)
            all_bests: Personal bests for the VDOT history window
            as_of: Reference "now"
            history_weeks: Weeks of VDOT history

        Returns:
            TrainingMetrics
        """
        activities = list(activities)
        daily, frame = self.fitness(activities, as_of)

        if len(frame):
            latest = frame.iloc[-1]
            ctl, atl, tsb = float(latest.ctl), float(latest.atl), float(latest.tsb)
        else:
            ctl = atl = tsb = 0.0

        fitness = FitnessSummary(
            ctl=ctl,
            atl=atl,
            tsb=tsb,
            form_status=classify_form(tsb),
            tsb_data=fitness_points(frame.tail(TSB_HISTORY_DAYS)),
        )

        last_activity = max(activities, key=lambda a: a.date) if activities else None
        last_trimp = self.trimp(last_activity) if last_activity else 0.0
        recovery = estimate_recovery(last_trimp, ctl)
        if last_activity is not None:
            recovery = RecoveryEstimate(
                hours=recovery.hours,
                level=recovery.level,
                label=recovery.label,
                hours_remaining=hours_remaining(recovery.hours, last_activity.date, as_of),
                last_activity={
                    'name': last_activity.name,
                    'date': last_activity.date.isoformat(),
                    'trimp': round(last_trimp, 1),
                },
            )

        logger.debug("Training load as of %s: CTL %.1f ATL %.1f TSB %.1f", as_of, ctl, atl, tsb)

        return TrainingMetrics(
            fitness=fitness,
            vdot=current_vdot(recent_bests),
            vdot_history=vdot_history(all_bests, as_of, history_weeks),
            recovery=recovery,
            weekly_trimp=calculate_weekly_trimp(daily, as_of, WEEKLY_TRIMP_WEEKS),
            last_updated=as_of,
        )
