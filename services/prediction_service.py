"""
Prediction request orchestration.

History is fetched once per request from the injected store and reused for
every target distance. Modelling is synchronous and pure; only the store
call is awaited.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from history.records import DISTANCE_METERS, PredictionData
from history.store import PerformanceStore
from prediction.adjustments import RaceConditions
from prediction.data_quality import DataQuality, assess_data_quality
from prediction.endurance import EnduranceProfile
from prediction.errors import ConfigurationError, DataFetchError, InsufficientDataError
from prediction.params import PredictionParams
from prediction.predictor import MultiModelPredictor
from prediction.results import METHOD_ENHANCED, PredictionResult

logger = logging.getLogger(__name__)


DEFAULT_DISTANCES: Dict[str, float] = {
    '5K': DISTANCE_METERS['5K'],
    '10K': DISTANCE_METERS['10K'],
    '21.1K': DISTANCE_METERS['21.1K'],
    '42.2K': DISTANCE_METERS['42.2K'],
}


@dataclass(frozen=True)
class CustomDistance:
    """Extra target distance requested by the caller."""
    label: str
    meters: float

    def __post_init__(self):
        if not self.label:
            raise ConfigurationError("Custom distance needs a label")
        if not (isinstance(self.meters, (int, float)) and math.isfinite(self.meters) and self.meters > 0):
            raise ConfigurationError(f"Custom distance '{self.label}' must be positive, got {self.meters!r}")

    @classmethod
    def parse(cls, text: str) -> 'CustomDistance':
        """Parse a LABEL=METERS string."""
        label, sep, meters = text.partition('=')
        if not sep:
            raise ConfigurationError(f"Expected LABEL=METERS, got '{text}'")
        try:
            return cls(label.strip(), float(meters))
        except ValueError as exc:
            raise ConfigurationError(f"Invalid distance in '{text}'") from exc


@dataclass(frozen=True)
class PredictionReport:
    """Everything returned for one prediction request."""
    predictions: Dict[str, PredictionResult]
    data_quality: DataQuality
    endurance_profile: EnduranceProfile
    last_updated: datetime
    data_source: str
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'predictions': {label: result.to_dict() for label, result in self.predictions.items()},
            'data_quality': self.data_quality.to_dict(),
            'endurance_profile': self.endurance_profile.to_dict(),
            'last_updated': self.last_updated.isoformat(),
            'data_source': self.data_source,
            'warnings': list(self.warnings),
        }


def describe_data_source(data: PredictionData, weeks_back: int) -> str:
    classification = data.run_classification
    if classification is not None:
        return (f"{classification.races} races, {classification.hard_efforts} hard efforts "
                f"from {classification.total_runs} runs")
    return f"{len(data.recent_races)} races, {weeks_back} weeks"


def resolve_distances(custom_distances: Iterable[Union[CustomDistance, Mapping[str, Any]]] = ()) -> Dict[str, float]:
    """Default distances plus custom ones (custom labels override defaults)."""
    distances = dict(DEFAULT_DISTANCES)
    for custom in custom_distances:
        if not isinstance(custom, CustomDistance):
            custom = CustomDistance(str(custom.get('label', '')), custom.get('meters'))
        distances[custom.label] = float(custom.meters)
    return distances


def build_report(
    data: PredictionData,
    as_of: datetime,
    weeks_back: int = 16,
    custom_distances: Iterable[Union[CustomDistance, Mapping[str, Any]]] = (),
    days_until_race: Optional[float] = None,
    race_conditions: Optional[Union[RaceConditions, Mapping[str, Any]]] = None,
    predictor: Optional[MultiModelPredictor] = None,
) -> PredictionReport:
    """
    Build a prediction report from already-fetched history.

    Args:
        data: Prediction history
        as_of: Reference "now"
        weeks_back: History window the data was fetched with
        custom_distances: Extra target distances
        days_until_race: Days until race day
        race_conditions: RaceConditions or a raw mapping
        predictor: Predictor to use (default parameters if None)

    Returns:
        PredictionReport

    Raises:
        InsufficientDataError: fewer than 2 usable races and fewer than 2
            usable activities
    """
    predictor = predictor or MultiModelPredictor()
    usable_races = predictor.estimator.valid_races(data.recent_races)
    usable_activities = [a for a in data.activities if a.distance_meters > 0 and a.duration_seconds > 0]

    if len(usable_races) < 2 and len(usable_activities) < 2:
        raise InsufficientDataError(len(usable_races), len(usable_activities))

    if not isinstance(race_conditions, RaceConditions):
        race_conditions = RaceConditions.from_dict(race_conditions)

    warnings = []
    if len(usable_races) < 2:
        warnings.append(
            f"Only {len(usable_races)} usable race(s): predictions rely on population defaults "
            "and training features"
        )

    distances = resolve_distances(custom_distances)
    profile, predictions = predictor.predict_all(
        distances, data, as_of, days_until_race=days_until_race, conditions=race_conditions,
    )

    fallbacks = [label for label, result in predictions.items() if result.method != METHOD_ENHANCED]
    if fallbacks:
        warnings.append(f"Fallback models used for: {', '.join(fallbacks)}")

    logger.info("Generated %d predictions from %d races and %d activities (profile exponent %.3f)",
                len(predictions), len(data.recent_races), len(data.activities), profile.exponent)

    return PredictionReport(
        predictions=predictions,
        data_quality=assess_data_quality(data, as_of),
        endurance_profile=profile,
        last_updated=as_of,
        data_source=describe_data_source(data, weeks_back),
        warnings=warnings,
    )


class PredictionService:
    """
    Async facade over the prediction engine.

    Usage:
        service = PredictionService(store)
        report = await service.generate_predictions(weeks_back=16)
    """

    def __init__(
        self,
        store: PerformanceStore,
        params: Optional[PredictionParams] = None,
        clock: Optional[Callable[[], datetime]] = None,
        verbose: bool = False,
    ):
        """
        Initialize service.

        Args:
            store: Storage collaborator
            params: Prediction parameters (uses defaults if None)
            clock: Callable returning "now" (defaults to datetime.now)
            verbose: Record prediction traces

        Raises:
            ConfigurationError: if params fail validation
        """
        self.params = params or PredictionParams()
        ok, message = self.params.validate()
        if not ok:
            raise ConfigurationError(f"Invalid prediction parameters: {message}")

        self.store = store
        self.clock = clock or datetime.now
        self.predictor = MultiModelPredictor(self.params, verbose=verbose)

    async def fetch(self, weeks_back: int) -> PredictionData:
        """Fetch history from the store, wrapping any failure in DataFetchError."""
        try:
            return await self.store.get_prediction_data(weeks_back)
        except DataFetchError:
            raise
        except Exception as exc:
            raise DataFetchError(f"Failed to fetch prediction data: {exc}") from exc

    async def generate_predictions(
        self,
        weeks_back: int = 16,
        custom_distances: Iterable[Union[CustomDistance, Mapping[str, Any]]] = (),
        days_until_race: Optional[float] = None,
        race_conditions: Optional[Union[RaceConditions, Mapping[str, Any]]] = None,
    ) -> PredictionReport:
        """
        Predict race times for the default and custom distances.

        Args:
            weeks_back: History window in weeks
            custom_distances: Extra target distances
            days_until_race: Days until race day (enables taper adjustment)
            race_conditions: Expected race-day conditions

        Returns:
            PredictionReport
        """
        if weeks_back <= 0:
            raise ConfigurationError(f"weeks_back must be positive, got {weeks_back}")

        data = await self.fetch(weeks_back)
        return build_report(
            data,
            as_of=self.clock(),
            weeks_back=weeks_back,
            custom_distances=custom_distances,
            days_until_race=days_until_race,
            race_conditions=race_conditions,
            predictor=self.predictor,
        )

    async def generate_predictions_for_race_date(
        self,
        race_date: datetime,
        custom_distances: Iterable[Union[CustomDistance, Mapping[str, Any]]] = (),
        race_conditions: Optional[Union[RaceConditions, Mapping[str, Any]]] = None,
    ) -> PredictionReport:
        """
        Predict for a specific race date.

        The history window grows with the time to race day:
        weeks_back = clamp(ceil(days / 7) + 8, 8, 24).
        """
        days_until_race, weeks_back = race_date_window(race_date, self.clock())
        return await self.generate_predictions(
            weeks_back=weeks_back,
            custom_distances=custom_distances,
            days_until_race=days_until_race,
            race_conditions=race_conditions,
        )


def race_date_window(race_date: datetime, now: datetime) -> Tuple[int, int]:
    """Days until the race (rounded up) and the matching history window in weeks."""
    days_until_race = math.ceil((race_date - now).total_seconds() / 86400)
    weeks_back = min(24, max(8, math.ceil(days_until_race / 7) + 8))
    return days_until_race, weeks_back
