"""
Training-metrics request orchestration with a short-lived cache.

The summary is recomputed from full history on a cache miss. Concurrent
refreshes compute the same result, so the cache is simply last-writer-wins.
"""

import logging
import time
from datetime import datetime
from typing import Any, Callable, Mapping, Optional, Union

from history.store import PerformanceStore
from prediction.errors import DataFetchError
from training_load.tracker import TrainingLoadSettings, TrainingLoadTracker, TrainingMetrics

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 300.0
CURRENT_VDOT_WEEKS = 12
VDOT_HISTORY_WEEKS = 52


class TrainingMetricsService:
    """
    Async facade over the training-load tracker.

    Usage:
        service = TrainingMetricsService(store, TrainingLoadSettings(max_hr=185))
        metrics = await service.get_training_metrics()
    """

    def __init__(
        self,
        store: PerformanceStore,
        settings: Optional[TrainingLoadSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
        cache_ttl: float = CACHE_TTL_SECONDS,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize service.

        Args:
            store: Storage collaborator
            settings: Athlete settings (defaults if None)
            clock: Callable returning "now" for the metrics
            cache_ttl: Cache lifetime in seconds
            monotonic: Monotonic time source for cache expiry

        Raises:
            ConfigurationError: if settings fail validation
        """
        self.store = store
        self.tracker = TrainingLoadTracker(settings)
        self.clock = clock or datetime.now
        self.cache_ttl = cache_ttl
        self.monotonic = monotonic
        self._cache: Optional[TrainingMetrics] = None
        self._cache_time = 0.0

    @property
    def settings(self) -> TrainingLoadSettings:
        return self.tracker.settings

    def update_settings(self, settings: Union[TrainingLoadSettings, Mapping[str, Any]]) -> None:
        """Replace settings (validated) and invalidate the cache."""
        if not isinstance(settings, TrainingLoadSettings):
            settings = TrainingLoadSettings.from_dict(settings)
        self.tracker = TrainingLoadTracker(settings)
        self.clear_cache()

    def clear_cache(self) -> None:
        self._cache = None
        self._cache_time = 0.0

    def _cache_valid(self) -> bool:
        return self._cache is not None and (self.monotonic() - self._cache_time) < self.cache_ttl

    async def get_training_metrics(self) -> TrainingMetrics:
        """
        Fitness, VDOT, recovery and weekly load summary.

        Returns the cached summary when it is younger than the TTL.

        Raises:
            DataFetchError: if the store fails
        """
        if self._cache_valid():
            return self._cache

        try:
            activities = await self.store.get_activities()
            recent_bests = await self.store.get_all_personal_bests(CURRENT_VDOT_WEEKS)
            all_bests = await self.store.get_all_personal_bests(VDOT_HISTORY_WEEKS)
        except DataFetchError:
            raise
        except Exception as exc:
            raise DataFetchError(f"Failed to fetch training history: {exc}") from exc

        metrics = self.tracker.summarize(
            activities, recent_bests, all_bests, as_of=self.clock(), history_weeks=VDOT_HISTORY_WEEKS,
        )
        logger.info("Training metrics refreshed: CTL %.1f, form %s",
                    metrics.fitness.ctl, metrics.fitness.form_status)

        self._cache = metrics
        self._cache_time = self.monotonic()
        return metrics
