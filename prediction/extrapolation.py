"""
Weighted extrapolation of recent races to a target distance.

Each recent race is scaled to the target with the personal exponent:

    ln T_target = ln T_race + b * ln(D_target / D_race)

and the estimates are averaged in log space with weights favouring recent,
similar-distance, high-quality races.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from history.records import RacePerformance
from .params import PredictionParams
from .quality import QualityScorer


@dataclass(frozen=True)
class ExtrapolationResult:
    """Weighted log-space estimate from recent races."""
    log_prediction: Optional[float]
    confidence: float
    races_used: int = 0
    total_weight: float = 0.0

    @property
    def is_available(self) -> bool:
        return self.log_prediction is not None and math.isfinite(self.log_prediction)

    @property
    def predicted_time(self) -> Optional[float]:
        if not self.is_available:
            return None
        return math.exp(self.log_prediction)


EMPTY_EXTRAPOLATION = ExtrapolationResult(log_prediction=None, confidence=0.0)


class WeightedRaceExtrapolator:
    """Extrapolates up to six recent races to a target distance."""

    def __init__(
        self,
        params: Optional[PredictionParams] = None,
        quality_scorer: Optional[QualityScorer] = None,
    ):
        self.params = params or PredictionParams()
        self.quality_scorer = quality_scorer or QualityScorer()

    def extrapolate(
        self,
        target_distance: float,
        races: Iterable[RacePerformance],
        exponent: float,
        as_of: datetime,
    ) -> ExtrapolationResult:
        """
        Weighted log-space estimate of the target time.

        Args:
            target_distance: Target distance (m)
            races: Race history
            exponent: Personal Riegel exponent
            as_of: Reference "now" for recency weights

        Returns:
            ExtrapolationResult (log_prediction None when nothing usable)
        """
        p = self.params
        recent = sorted(
            (r for r in races if r.distance_meters >= p.min_race_distance and r.time_seconds > 0),
            key=lambda r: r.date,
            reverse=True,
        )[:p.max_recent_races]

        if not recent:
            return EMPTY_EXTRAPOLATION

        sum_weighted_log = 0.0
        sum_weights = 0.0
        used = 0

        for race in recent:
            ratio = target_distance / race.distance_meters
            if ratio > p.ratio_max or ratio < p.ratio_min:
                continue

            log_ratio = math.log(ratio)
            log_estimate = math.log(race.time_seconds) + exponent * log_ratio
            if not math.isfinite(log_estimate):
                continue

            recency = math.exp(-race.days_since(as_of) / p.recency_decay_days)
            similarity = math.exp(-abs(log_ratio) / p.similarity_scale)
            weight = recency * similarity * self.quality_scorer.score(race)
            if not math.isfinite(weight) or weight <= 0:
                continue

            sum_weighted_log += log_estimate * weight
            sum_weights += weight
            used += 1

        if sum_weights == 0 or not math.isfinite(sum_weights):
            return EMPTY_EXTRAPOLATION

        log_prediction = sum_weighted_log / sum_weights
        if not math.isfinite(log_prediction):
            return EMPTY_EXTRAPOLATION

        return ExtrapolationResult(
            log_prediction=log_prediction,
            confidence=min(p.profile_confidence_max, sum_weights / p.extrapolation_confidence_scale),
            races_used=used,
            total_weight=sum_weights,
        )
