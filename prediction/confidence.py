"""
Confidence scoring and uncertainty intervals.

Confidence (clamped to [0.4, 0.85]) is the sum of four components:

    data        min(0.3, races in last 90 days / 10)
    agreement   max(0, 0.3 * (1 - 2 * CV(model outputs)))   (>= 2 models)
    experience  min(0.2, similar-distance races * 0.05)
    consistency weekly volume consistency * 0.2

The interval width is a per-distance base uncertainty scaled by
(2 - confidence) and by how well the fitted power law back-tests against the
runner's own recent races (MAPE * 20, clamped to [0.3, 1.5]). Bounds are
asymmetric: runners miss slow more often than they beat a prediction.
"""

import logging
from datetime import datetime
from typing import Iterable, Optional, Sequence

import numpy as np

from history.records import PredictionData, RacePerformance
from .endurance import EnduranceProfile
from .features import calculate_volume_consistency
from .params import PredictionParams
from .results import PredictionInterval

logger = logging.getLogger(__name__)


class ConfidenceEstimator:
    """Scores prediction trustworthiness and derives intervals."""

    def __init__(self, params: Optional[PredictionParams] = None):
        self.params = params or PredictionParams()

    def agreement(self, model_outputs: Sequence[float]) -> float:
        """Agreement bonus from the coefficient of variation of model outputs."""
        outputs = np.asarray([m for m in model_outputs if m is not None], dtype=float)
        if len(outputs) < 2 or not np.all(np.isfinite(outputs)) or outputs.mean() <= 0:
            return 0.0
        cv = outputs.std() / outputs.mean()
        return max(0.0, 0.3 * (1 - 2 * cv))

    def estimate(
        self,
        target_distance: float,
        model_outputs: Sequence[float],
        data: PredictionData,
        as_of: datetime,
    ) -> float:
        """
        Confidence for a combined prediction.

        Args:
            target_distance: Target distance (m)
            model_outputs: Times from the individual models (s)
            data: Prediction history
            as_of: Reference "now"

        Returns:
            Confidence in [confidence_min, confidence_max]
        """
        p = self.params
        recent_races = data.races_within(p.confidence_recent_days, as_of)

        confidence = min(0.3, len(recent_races) / 10)
        confidence += self.agreement(model_outputs)

        similar = sum(
            1 for r in data.recent_races
            if r.distance_meters > 0
            and p.similar_ratio_min <= target_distance / r.distance_meters <= p.similar_ratio_max
        )
        confidence += min(0.2, similar * 0.05)
        confidence += calculate_volume_consistency(data.activities) * 0.2

        return float(np.clip(confidence, p.confidence_min, p.confidence_max))

    def residual_variance_factor(self, races: Iterable[RacePerformance], profile: EnduranceProfile) -> float:
        """
        Back-test the power law against up to 10 recent races.

        Returns:
            clamp(MAPE * 20) to [0.3, 1.5]; 1.0 with fewer than 3 races
        """
        p = self.params
        recent = sorted(
            (r for r in races if r.distance_meters >= p.min_race_distance and r.time_seconds > 0),
            key=lambda r: r.date,
            reverse=True,
        )[:p.backtest_races]

        if len(recent) < 3:
            return 1.0

        actual = np.array([r.time_seconds for r in recent], dtype=float)
        predicted = np.array([profile.predict_time(r.distance_meters) for r in recent], dtype=float)
        errors = np.abs(actual - predicted) / actual

        mape = float(np.mean(errors))
        if not np.isfinite(mape):
            logger.warning("Non-finite back-test error, using maximum residual factor")
            return p.residual_factor_max
        return float(np.clip(mape * p.mape_scale, p.residual_factor_min, p.residual_factor_max))

    def base_uncertainty(self, target_distance: float) -> float:
        """Base relative uncertainty for the distance tier."""
        tiers = self.params.base_uncertainty
        if target_distance <= 5000:
            return tiers[0]
        if target_distance <= 10000:
            return tiers[1]
        if target_distance <= 21100:
            return tiers[2]
        return tiers[3]

    def interval(
        self,
        prediction: float,
        confidence: float,
        target_distance: float,
        races: Iterable[RacePerformance],
        profile: EnduranceProfile,
    ) -> PredictionInterval:
        """
        Asymmetric interval around a prediction.

        Args:
            prediction: Predicted time (s)
            confidence: Prediction confidence
            target_distance: Target distance (m)
            races: Race history used for the back-test
            profile: Fitted endurance profile

        Returns:
            PredictionInterval
        """
        p = self.params
        factor = self.residual_variance_factor(races, profile)
        u = self.base_uncertainty(target_distance) * (2 - confidence) * factor

        lower = prediction * (1 - u * p.lower_multiplier)
        upper = prediction * (1 + u * p.upper_multiplier)
        return PredictionInterval(
            lower=lower,
            upper=upper,
            margin=(upper - lower) / 2,
            percentile_80_lower=prediction * (1 - u * p.p80_lower_multiplier),
            percentile_80_upper=prediction * (1 + u * p.p80_upper_multiplier),
            uncertainty_percent=u * 100,
        )
