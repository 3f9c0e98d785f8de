"""
Storage collaborator interface and an in-memory implementation.

The production app reads history from a document store; the modelling core
only depends on the `PerformanceStore` protocol below. `InMemoryStore`
backs the CLI, demos and tests, and can be populated from CSV exports.
"""

from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol, Union

import pandas as pd

from .normalize import normalize_activities, normalize_personal_bests, normalize_races
from .records import (
    DISTANCE_METERS,
    PersonalBest,
    PredictionData,
    RacePerformance,
    RunClassification,
    TrainingActivity,
)


class PerformanceStore(Protocol):
    """Async read interface of the storage collaborator."""

    async def get_prediction_data(self, weeks_back: int) -> PredictionData:
        ...

    async def get_all_personal_bests(self, weeks_back: int) -> List[PersonalBest]:
        ...

    async def get_activities(self) -> List[TrainingActivity]:
        ...


def distance_label_for(distance_meters: float, tolerance: float = 0.02) -> Optional[str]:
    """Label of the standard distance within `tolerance` of the given distance."""
    for label, meters in DISTANCE_METERS.items():
        if abs(distance_meters - meters) / meters <= tolerance:
            return label
    return None


def derive_personal_bests(races: Iterable[RacePerformance]) -> List[PersonalBest]:
    """Best race per standard distance label."""
    best: Dict[str, PersonalBest] = {}
    for race in races:
        label = distance_label_for(race.distance_meters)
        if label is None:
            continue
        current = best.get(label)
        if current is None or race.time_seconds < current.time_seconds:
            best[label] = PersonalBest(
                distance_label=label,
                distance_meters=race.distance_meters,
                time_seconds=race.time_seconds,
                date=race.date,
            )
    return list(best.values())


class InMemoryStore:
    """
    PerformanceStore holding normalised history in memory.

    Window filtering (`weeks_back`) is applied relative to `clock()`, so a
    fixed clock makes every read deterministic.
    """

    def __init__(
        self,
        races: Iterable[Any] = (),
        activities: Iterable[Any] = (),
        personal_bests: Optional[Iterable[Any]] = None,
        race_to_training_ratio: Optional[float] = None,
        run_classification: Optional[RunClassification] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """
        Initialize the store.

        Args:
            races: Race records (canonical or raw mappings)
            activities: Activity records (canonical or raw mappings)
            personal_bests: Explicit personal bests (derived from races if None)
            race_to_training_ratio: Optional externally computed ratio
            run_classification: Optional run classification summary
            clock: Callable returning "now" (defaults to datetime.now)
        """
        self.races = normalize_races(races)
        self.activities = normalize_activities(activities)
        self.personal_bests = (
            normalize_personal_bests(personal_bests)
            if personal_bests is not None
            else derive_personal_bests(self.races)
        )
        self.race_to_training_ratio = race_to_training_ratio
        self.run_classification = run_classification
        self.clock = clock or datetime.now

    @classmethod
    def from_csv(
        cls,
        races_path: Union[str, Path],
        activities_path: Optional[Union[str, Path]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> 'InMemoryStore':
        """
        Load history from CSV exports.

        Column names may use any alias understood by `history.normalize`
        (e.g. `distance`, `moving_time`, `start_date`).
        """
        frame = pd.read_csv(races_path)
        races = frame.where(frame.notna(), None).to_dict(orient='records')
        activities = []
        if activities_path is not None:
            frame = pd.read_csv(activities_path)
            activities = frame.where(frame.notna(), None).to_dict(orient='records')
        return cls(races=races, activities=activities, clock=clock)

    def _cutoff(self, weeks_back: int) -> datetime:
        return self.clock() - timedelta(weeks=weeks_back)

    async def get_prediction_data(self, weeks_back: int) -> PredictionData:
        cutoff = self._cutoff(weeks_back)
        return PredictionData(
            recent_races=[r for r in self.races if r.date >= cutoff],
            activities=[a for a in self.activities if a.date >= cutoff],
            race_to_training_ratio=self.race_to_training_ratio,
            run_classification=self.run_classification,
        )

    async def get_all_personal_bests(self, weeks_back: int) -> List[PersonalBest]:
        cutoff = self._cutoff(weeks_back)
        return [pb for pb in self.personal_bests if pb.date >= cutoff]

    async def get_activities(self) -> List[TrainingActivity]:
        return list(self.activities)
