"""
Multi-model race-time predictor.

For each target distance three estimates are combined in log space:

1. Personal power law      ln T = alpha + b * ln D
2. Critical speed          T = (D - D') / CS               (when fitted)
3. Weighted extrapolation  recent races scaled with b

    combined = 0.4 * PL + 0.4 * WR + 0.2 * CS    (all three)
             = 0.3 * PL + 0.7 * WR               (no CS)
             = PL                                (power law alone)

Training features, taper, race conditions and the store-supplied
race-to-training ratio are then added as log-space adjustments.

Failures degrade through a fixed ladder rather than raising:

    enhanced multi-model -> power-law-only (classic Riegel) -> pace table

Each downgrade is logged at WARNING. With `verbose=True` every intermediate
value is recorded on the result's `trace` and logged at DEBUG.
"""

import logging
import math
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np

from history.records import PredictionData, RacePerformance
from .adjustments import (
    RaceConditions,
    conditions_adjustment,
    optimal_conditions_prediction,
    taper_adjustment,
    training_consistency,
)
from .confidence import ConfidenceEstimator
from .endurance import EnduranceParameterEstimator, EnduranceProfile
from .errors import NumericInstabilityError
from .extrapolation import WeightedRaceExtrapolator
from .factors import identify_prediction_factors
from .features import extract_features, feature_log_adjustment
from .params import PredictionParams
from .plausibility import PlausibilityEnforcer
from .quality import QualityScorer
from .results import (
    METHOD_ENHANCED,
    METHOD_FALLBACK,
    METHOD_POWER_LAW,
    ContributingModels,
    PredictionInterval,
    PredictionResult,
)

logger = logging.getLogger(__name__)

# Errors that move a prediction one rung down the fallback ladder
LADDER_ERRORS = (NumericInstabilityError, ArithmeticError, ValueError)


def _finite(stage: str, value: float) -> float:
    if value is None or not math.isfinite(value):
        raise NumericInstabilityError(stage, value)
    return value


class MultiModelPredictor:
    """
    Predicts race times from an endurance profile and training history.

    Usage:
        predictor = MultiModelPredictor()
        profile = predictor.fit_profile(data, as_of)
        result = predictor.predict(10000, data, profile, as_of)
    """

    def __init__(self, params: Optional[PredictionParams] = None, verbose: bool = False):
        """
        Initialize predictor.

        Args:
            params: Prediction parameters (uses defaults if None)
            verbose: Record and log every intermediate value
        """
        self.params = params or PredictionParams()
        self.verbose = verbose
        self.quality_scorer = QualityScorer()
        self.estimator = EnduranceParameterEstimator(self.params, self.quality_scorer)
        self.extrapolator = WeightedRaceExtrapolator(self.params, self.quality_scorer)
        self.confidence_estimator = ConfidenceEstimator(self.params)
        self.plausibility = PlausibilityEnforcer(self.params)

    def fit_profile(self, data: PredictionData, as_of: datetime) -> EnduranceProfile:
        return self.estimator.estimate(data.recent_races, as_of)

    # ═══════════════════════════════════════════════════════════════════════════
    # PACE TABLE (last rung)
    # ═══════════════════════════════════════════════════════════════════════════

    def pace_table_time(self, target_distance: float) -> float:
        """Heuristic time from the static pace table."""
        pace = self.params.pace_table_default
        for max_distance, table_pace in self.params.pace_table:
            if target_distance <= max_distance:
                pace = table_pace
                break
        return target_distance / 1000 * pace

    def pace_table_prediction(self, target_distance: float, reason: str = '') -> PredictionResult:
        """Pace-table fallback result: confidence 0.3, +/-10% interval."""
        p = self.params
        time_seconds = self.pace_table_time(target_distance)
        trace = {'fallback_reason': reason} if self.verbose else None
        return PredictionResult(
            distance_meters=target_distance,
            predicted_time_seconds=time_seconds,
            confidence=p.fallback_confidence,
            interval=PredictionInterval.symmetric(time_seconds, p.fallback_margin),
            method=METHOD_FALLBACK,
            trace=trace,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # LADDER
    # ═══════════════════════════════════════════════════════════════════════════

    def predict(
        self,
        target_distance: float,
        data: PredictionData,
        profile: EnduranceProfile,
        as_of: datetime,
        days_until_race: Optional[float] = None,
        conditions: Optional[RaceConditions] = None,
    ) -> PredictionResult:
        """
        Predict a race time, degrading through the fallback ladder.

        Args:
            target_distance: Target distance (m), must be positive
            data: Prediction history
            profile: Fitted endurance profile
            as_of: Reference "now"
            days_until_race: Days until race day (enables taper adjustment)
            conditions: Expected race-day conditions

        Returns:
            PredictionResult (never raises for a valid distance)
        """
        target_distance = float(target_distance)
        if not (math.isfinite(target_distance) and target_distance > 0):
            raise ValueError(f"target_distance must be a positive finite number, got {target_distance!r}")

        conditions = conditions or RaceConditions()

        try:
            return self.predict_enhanced(target_distance, data, profile, as_of, days_until_race, conditions)
        except LADDER_ERRORS as exc:
            logger.warning("Enhanced model failed for %.0f m (%s), falling back to power law",
                           target_distance, exc)

        try:
            return self.predict_power_law_only(target_distance, data, as_of)
        except LADDER_ERRORS as exc:
            logger.warning("Power-law model failed for %.0f m (%s), falling back to pace table",
                           target_distance, exc)

        return self.pace_table_prediction(target_distance, reason='all models failed')

    def predict_all(
        self,
        distances: Mapping[str, float],
        data: PredictionData,
        as_of: datetime,
        days_until_race: Optional[float] = None,
        conditions: Optional[RaceConditions] = None,
        profile: Optional[EnduranceProfile] = None,
    ) -> Tuple[EnduranceProfile, Dict[str, PredictionResult]]:
        """
        Predict every distance and enforce cross-distance plausibility.

        Args:
            distances: Target distances keyed by label
            data: Prediction history
            as_of: Reference "now"
            days_until_race: Days until race day
            conditions: Expected race-day conditions
            profile: Pre-fitted profile (fitted from `data` if None)

        Returns:
            Tuple of (profile, predictions keyed by label in distance order)
        """
        profile = profile or self.fit_profile(data, as_of)
        predictions = {}
        for label, meters in sorted(distances.items(), key=lambda item: item[1]):
            predictions[label] = self.predict(meters, data, profile, as_of, days_until_race, conditions)
        return profile, self.plausibility.enforce(predictions)

    # ═══════════════════════════════════════════════════════════════════════════
    # ENHANCED MULTI-MODEL
    # ═══════════════════════════════════════════════════════════════════════════

    def combine(
        self,
        log_power_law: float,
        log_weighted: Optional[float],
        cs_time: Optional[float],
    ) -> Tuple[float, str]:
        """
        Weighted log-space combination of the available models.

        Returns:
            Tuple of (combined log time, description of the weighting)
        """
        p = self.params
        if log_weighted is not None and cs_time is not None:
            log_cs = math.log(cs_time) if cs_time > 0 else float('nan')
            if math.isfinite(log_cs):
                w_pl, w_wr, w_cs = p.weights_all_models
                return w_pl * log_power_law + w_wr * log_weighted + w_cs * log_cs, 'power_law+races+cs'
            w_pl, w_wr = p.weights_no_cs_log
            return w_pl * log_power_law + w_wr * log_weighted, 'power_law+races'
        if log_weighted is not None:
            w_pl, w_wr = p.weights_two_models
            return w_pl * log_power_law + w_wr * log_weighted, 'power_law+races'
        return log_power_law, 'power_law'

    def predict_enhanced(
        self,
        target_distance: float,
        data: PredictionData,
        profile: EnduranceProfile,
        as_of: datetime,
        days_until_race: Optional[float] = None,
        conditions: Optional[RaceConditions] = None,
    ) -> PredictionResult:
        """Enhanced multi-model prediction (raises LADDER_ERRORS on numeric failure)."""
        p = self.params
        conditions = conditions or RaceConditions()
        trace: Dict[str, Any] = {}

        log_target = math.log(target_distance)
        if not (math.isfinite(log_target) and math.isfinite(profile.alpha) and math.isfinite(profile.exponent)):
            return self.pace_table_prediction(target_distance, reason='invalid endurance parameters')

        # 1. Personal power law
        log_base = profile.alpha + profile.exponent * log_target
        if not math.isfinite(log_base) or log_base > p.max_log_base:
            return self.pace_table_prediction(target_distance, reason=f'log prediction {log_base!r}')
        base_time = math.exp(log_base)
        if base_time > p.max_time_seconds:
            return self.pace_table_prediction(target_distance, reason=f'power law {base_time:.0f} s')
        trace.update(log_target=log_target, log_base=log_base, power_law=base_time)

        # 2. Critical speed
        cs_time = profile.predict_critical_speed_time(target_distance)
        trace['critical_speed'] = cs_time

        # 3. Weighted race extrapolation
        extrapolation = self.extrapolator.extrapolate(target_distance, data.recent_races, profile.exponent, as_of)
        log_weighted = extrapolation.log_prediction if extrapolation.is_available else None
        trace.update(weighted_log=log_weighted, weighted_confidence=extrapolation.confidence,
                     weighted_races_used=extrapolation.races_used)

        # 4. Combination
        combined, weighting = self.combine(log_base, log_weighted, cs_time)
        combined = _finite('combination', combined)
        trace.update(weighting=weighting, combined_log=combined)

        # 5. Training features
        features = extract_features(target_distance, data, as_of, p)
        feature_adjustment = _finite('features', feature_log_adjustment(target_distance, features, p))
        combined += feature_adjustment
        trace.update(features=features.to_dict(), feature_adjustment=feature_adjustment)

        # 6. Taper
        if days_until_race is not None:
            consistency = training_consistency(data, as_of, p)
            taper = taper_adjustment(days_until_race, consistency, conditions, p)
            combined += math.log(1 + taper)
            trace.update(training_consistency=consistency, taper_adjustment=taper)

        # 7. Race conditions
        conditions_change = conditions_adjustment(target_distance, conditions, p)
        combined += math.log(1 + conditions_change)
        trace['conditions_adjustment'] = conditions_change

        # 8. Race vs training
        race_adjustment = 0.0
        if data.race_to_training_ratio:
            race_adjustment = 1 - data.race_to_training_ratio
            combined += math.log(1 + race_adjustment)
        trace['race_training_adjustment'] = race_adjustment

        combined = _finite('adjustments', combined)
        final_time = math.exp(combined) if combined <= p.max_log_base else math.inf
        trace['final_log'] = combined
        if not math.isfinite(final_time) or final_time <= 0 or final_time > p.max_time_seconds:
            return self.pace_table_prediction(target_distance, reason=f'final prediction {final_time!r}')

        # 9. Confidence, interval, extras
        models = ContributingModels(
            power_law=base_time,
            critical_speed=cs_time,
            weighted_races=extrapolation.predicted_time,
        )
        confidence = self.confidence_estimator.estimate(target_distance, models.values(), data, as_of)
        interval = self.confidence_estimator.interval(
            final_time, confidence, target_distance, data.recent_races, profile,
        )
        thirty_day = self.thirty_day_change(target_distance, final_time, data.recent_races, profile.exponent, as_of)

        trace.update(final_time=final_time, confidence=confidence,
                     uncertainty_percent=interval.uncertainty_percent, thirty_day_change=thirty_day)
        if self.verbose:
            logger.debug("Prediction trace for %.0f m: %s", target_distance, trace)

        return PredictionResult(
            distance_meters=target_distance,
            predicted_time_seconds=final_time,
            confidence=confidence,
            interval=interval,
            contributing_models=models,
            factors=tuple(identify_prediction_factors(target_distance, data, as_of)),
            method=METHOD_ENHANCED,
            thirty_day_change=thirty_day,
            optimal_prediction=optimal_conditions_prediction(final_time, target_distance, conditions, p),
            race_training_adjustment=race_adjustment,
            trace=trace if self.verbose else None,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # POWER-LAW-ONLY (classic Riegel)
    # ═══════════════════════════════════════════════════════════════════════════

    def classic_exponent(self, distance_ratio: float) -> float:
        """Classic Riegel exponent, nudged for big jumps in distance."""
        p = self.params
        if distance_ratio > 4:
            return p.classic_exponent + p.classic_exponent_step
        if distance_ratio < 0.5:
            return p.classic_exponent - p.classic_exponent_step
        return p.classic_exponent

    def predict_power_law_only(
        self,
        target_distance: float,
        data: PredictionData,
        as_of: datetime,
    ) -> PredictionResult:
        """
        Classic Riegel prediction from up to five recent races.

        Weights combine a 30-day recency decay with rank (1, 1/2, 1/3, ...).
        Falls through to the pace table when there are no usable races.
        """
        p = self.params
        races = sorted(
            (r for r in data.recent_races if r.distance_meters >= p.min_race_distance),
            key=lambda r: r.date,
            reverse=True,
        )[:p.classic_races]

        if not races:
            return self.pace_table_prediction(target_distance, reason='no races for power law')

        ratios = np.array([target_distance / r.distance_meters for r in races], dtype=float)
        exponents = np.array([self.classic_exponent(ratio) for ratio in ratios])
        times = np.array([r.time_seconds for r in races], dtype=float) * ratios ** exponents
        recency = np.exp(-np.array([r.days_since(as_of) for r in races]) / p.classic_decay_days)
        weights = recency / np.arange(1, len(races) + 1)

        total_weight = _finite('power law weights', float(weights.sum()))
        if total_weight <= 0:
            raise NumericInstabilityError('power law weights', total_weight)
        prediction = _finite('power law', float(np.sum(times * weights) / total_weight))
        if prediction <= 0 or prediction > p.max_time_seconds:
            raise NumericInstabilityError('power law', prediction)

        confidence = float(np.clip(min(0.9, total_weight / 2), p.fallback_confidence, p.confidence_max))
        uncertainty = self.confidence_estimator.base_uncertainty(target_distance) * (2 - confidence)

        return PredictionResult(
            distance_meters=target_distance,
            predicted_time_seconds=prediction,
            confidence=confidence,
            interval=PredictionInterval.symmetric(prediction, uncertainty),
            contributing_models=ContributingModels(power_law=prediction),
            factors=tuple(identify_prediction_factors(target_distance, data, as_of)),
            method=METHOD_POWER_LAW,
            trace={'weights': weights.tolist(), 'times': times.tolist()} if self.verbose else None,
        )

    # ═══════════════════════════════════════════════════════════════════════════
    # TRENDS
    # ═══════════════════════════════════════════════════════════════════════════

    def thirty_day_change(
        self,
        target_distance: float,
        prediction: float,
        races: List[RacePerformance],
        exponent: float,
        as_of: datetime,
    ) -> Optional[float]:
        """
        Change in target-equivalent performance over the last 30 days.

        Races are scaled to the target with the personal exponent. The mean
        of the last 30 days minus the mean of days 30-60 is capped at +/-10%
        of the prediction. Negative means faster.

        Returns:
            Change in whole seconds, or None without races in both windows
        """
        p = self.params
        usable = [r for r in races if r.distance_meters >= p.min_race_distance]
        if len(usable) < 2:
            return None

        window = p.trend_window_days
        recent, older = [], []
        for race in usable:
            normalized = race.time_seconds * (target_distance / race.distance_meters) ** exponent
            days = race.days_since(as_of)
            if days <= window:
                recent.append(normalized)
            elif days <= 2 * window:
                older.append(normalized)

        if not recent or not older:
            return None

        change = float(np.mean(recent) - np.mean(older))
        max_change = prediction * p.trend_max_change
        return float(round(max(-max_change, min(max_change, change))))
