"""
Canonical history records consumed by the modelling core.

Everything the prediction and training-load engines see has already been
normalised into these types at the storage boundary (see normalize.py).
Records are immutable historical facts: quality, pace trends and loads are
always derived, never stored.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
import math


SECONDS_PER_DAY = 86400.0

# Distances used throughout the app, in meters
DISTANCE_METERS = {
    '1K': 1000,
    '1.5K': 1500,
    '2K': 2000,
    '3K': 3000,
    '5K': 5000,
    '10K': 10000,
    '15K': 15000,
    '21.1K': 21100,
    '42.2K': 42200,
}


def days_between(earlier: datetime, later: datetime) -> float:
    """Fractional days from `earlier` to `later` (negative if reversed)."""
    return (later - earlier).total_seconds() / SECONDS_PER_DAY


@dataclass(frozen=True)
class RacePerformance:
    """A race, parkrun or time trial result."""
    distance_meters: float
    time_seconds: float
    date: datetime
    name: Optional[str] = None
    tags: Tuple[str, ...] = ()

    def __post_init__(self):
        if not (self.distance_meters >= 0):
            raise ValueError(f"distance_meters must be >= 0, got {self.distance_meters}")
        if not (self.time_seconds > 0):
            raise ValueError(f"time_seconds must be > 0, got {self.time_seconds}")

    @property
    def pace_seconds_per_km(self) -> float:
        """Average pace in seconds per kilometer (inf for zero distance)."""
        if self.distance_meters <= 0:
            return math.inf
        return self.time_seconds / (self.distance_meters / 1000)

    def days_since(self, as_of: datetime) -> float:
        return days_between(self.date, as_of)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'distance_meters': self.distance_meters,
            'time_seconds': self.time_seconds,
            'date': self.date.isoformat(),
            'name': self.name,
            'tags': list(self.tags),
        }


@dataclass(frozen=True)
class TrainingActivity:
    """A single training session (run)."""
    date: datetime
    distance_meters: float
    duration_seconds: float
    average_heart_rate: Optional[float] = None
    name: Optional[str] = None
    activity_type: str = 'Run'

    @property
    def duration_minutes(self) -> float:
        return self.duration_seconds / 60

    @property
    def has_heart_rate(self) -> bool:
        return self.average_heart_rate is not None and self.average_heart_rate > 0

    def days_since(self, as_of: datetime) -> float:
        return days_between(self.date, as_of)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date.isoformat(),
            'distance_meters': self.distance_meters,
            'duration_seconds': self.duration_seconds,
            'average_heart_rate': self.average_heart_rate,
            'name': self.name,
            'activity_type': self.activity_type,
        }


@dataclass(frozen=True)
class PersonalBest:
    """Best effort at a labelled distance."""
    distance_label: str
    distance_meters: float
    time_seconds: float
    date: datetime


@dataclass(frozen=True)
class RunClassification:
    """Store-side summary of how the runs in a window were classified."""
    races: int
    hard_efforts: int
    total_runs: int


@dataclass
class PredictionData:
    """History bundle fetched once per prediction request."""
    recent_races: List[RacePerformance] = field(default_factory=list)
    activities: List[TrainingActivity] = field(default_factory=list)
    race_to_training_ratio: Optional[float] = None
    run_classification: Optional[RunClassification] = None

    def races_within(self, days: float, as_of: datetime) -> List[RacePerformance]:
        """Races no older than `days` days."""
        return [r for r in self.recent_races if r.days_since(as_of) <= days]

    def activities_within(self, days: float, as_of: datetime) -> List[TrainingActivity]:
        """Activities no older than `days` days."""
        return [a for a in self.activities if a.days_since(as_of) <= days]

    def races_by_recency(self) -> List[RacePerformance]:
        """Races sorted most recent first."""
        return sorted(self.recent_races, key=lambda r: r.date, reverse=True)
