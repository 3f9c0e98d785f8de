"""
Training features that nudge a prediction in log space.

Each feature is a score in [0, 1]; the predictor multiplies it by a small
negative coefficient (see PredictionParams) so a well-prepared runner gets
a slightly faster prediction:

- volume_consistency: 1 - CV of weekly volumes
- distance_experience: races within 0.5-2x the target distance
- form_trend: improvement of 5K-normalised race pace, recent vs older
- hr_efficiency: improvement of HR-per-pace ratio, recent vs older
- long_run_preparation: long runs relative to the target (HM and up)
"""

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, Optional, Sequence

import numpy as np
from scipy import stats

from history.records import PredictionData, RacePerformance, TrainingActivity
from .params import PredictionParams

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainingFeatures:
    """Feature scores for one target distance."""
    is_valid: bool
    volume_consistency: float = 0.0
    distance_experience: float = 0.0
    form_trend: float = 0.0
    hr_efficiency: Optional[float] = None
    long_run_preparation: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


INVALID_FEATURES = TrainingFeatures(is_valid=False)


def week_key(date: datetime) -> str:
    """Calendar-year week bucket: whole weeks since 1 January."""
    start_of_year = datetime(date.year, 1, 1)
    week = int((date - start_of_year).total_seconds() // (7 * 86400))
    return f"{date.year}-W{week}"


def calculate_volume_consistency(activities: Sequence[TrainingActivity]) -> float:
    """
    Consistency of weekly running volume.

    Args:
        activities: Training activities

    Returns:
        max(0, 1 - CV) of weekly distance; 0 with fewer than 4 activities
        or fewer than 4 distinct weeks
    """
    if len(activities) < 4:
        return 0.0

    weekly: Dict[str, float] = {}
    for activity in activities:
        key = week_key(activity.date)
        weekly[key] = weekly.get(key, 0.0) + activity.distance_meters

    volumes = np.array(list(weekly.values()), dtype=float)
    if len(volumes) < 4 or volumes.mean() <= 0:
        return 0.0

    cv = float(stats.variation(volumes))
    if not math.isfinite(cv):
        return 0.0
    return max(0.0, 1.0 - cv)


def calculate_distance_experience(target_distance: float, races: Iterable[RacePerformance]) -> float:
    """Share of up to five races within 0.5-2x of the target distance."""
    similar = [
        r for r in races
        if r.distance_meters > 0 and 0.5 <= target_distance / r.distance_meters <= 2.0
    ]
    return min(1.0, len(similar) / 5)


def calculate_form_trend(races: Iterable[RacePerformance], exponent: float = 0.06) -> float:
    """
    Relative improvement in 5K-equivalent pace, recent half vs older half.

    Races shorter than 3 km are ignored. Pace is normalised with
    pace * (5000 / d) ** exponent. Positive means the runner is getting
    faster; the result is clipped to [0, 1].
    """
    ordered = sorted(
        (r for r in races if r.distance_meters >= 3000),
        key=lambda r: r.date,
        reverse=True,
    )
    if len(ordered) < 2:
        return 0.0

    split = math.ceil(len(ordered) / 2)

    def normalized_pace(race: RacePerformance) -> float:
        return race.pace_seconds_per_km * (5000 / race.distance_meters) ** exponent

    recent = np.mean([normalized_pace(r) for r in ordered[:split]])
    older = np.mean([normalized_pace(r) for r in ordered[split:]])
    if older <= 0:
        return 0.0

    return float(np.clip((older - recent) / older, 0.0, 1.0))


def calculate_hr_efficiency(activities: Iterable[TrainingActivity]) -> float:
    """
    Improvement in heart rate per unit pace, recent half vs older half.

    Args:
        activities: Activities carrying average heart rate

    Returns:
        Relative change clipped to [0, 1]; 0 with fewer than 3 usable runs
    """
    ordered = sorted(
        (a for a in activities
         if a.has_heart_rate and a.distance_meters > 0 and a.duration_seconds > 0),
        key=lambda a: a.date,
        reverse=True,
    )
    ratios = [a.average_heart_rate / (a.duration_seconds / (a.distance_meters / 1000)) for a in ordered]
    if len(ratios) < 3:
        return 0.0

    split = len(ratios) // 2
    recent = np.mean(ratios[:split])
    older = np.mean(ratios[split:])
    if older <= 0:
        return 0.0

    return float(np.clip((recent - older) / older, 0.0, 1.0))


def calculate_long_run_preparation(target_distance: float, activities: Iterable[TrainingActivity]) -> float:
    """
    Long-run readiness for a target distance.

    long runs are >= 60% of the target, very long runs >= 80%.
    Score = 0.6 * min(1, long/10) + 0.4 * min(1, very_long/5).
    """
    distances = np.array([a.distance_meters for a in activities], dtype=float)
    long_runs = int(np.sum(distances >= 0.6 * target_distance))
    very_long_runs = int(np.sum(distances >= 0.8 * target_distance))
    return 0.6 * min(1.0, long_runs / 10) + 0.4 * min(1.0, very_long_runs / 5)


def extract_features(
    target_distance: float,
    data: PredictionData,
    as_of: datetime,
    params: Optional[PredictionParams] = None,
) -> TrainingFeatures:
    """
    Extract all feature scores for a target distance.

    Returns INVALID_FEATURES when fewer than `min_feature_activities`
    activities fall inside the feature window.
    """
    p = params or PredictionParams()
    recent_activities = data.activities_within(p.feature_window_days, as_of)

    if len(recent_activities) < p.min_feature_activities:
        logger.debug("Skipping feature adjustments: %d activities in the last %.0f days",
                     len(recent_activities), p.feature_window_days)
        return INVALID_FEATURES

    hr_activities = [a for a in recent_activities if a.has_heart_rate]
    hr_efficiency = None
    if len(hr_activities) >= p.min_hr_activities:
        hr_efficiency = calculate_hr_efficiency(hr_activities)

    long_run_preparation = None
    if target_distance >= p.long_run_min_target:
        long_run_preparation = calculate_long_run_preparation(target_distance, recent_activities)

    return TrainingFeatures(
        is_valid=True,
        volume_consistency=calculate_volume_consistency(recent_activities),
        distance_experience=calculate_distance_experience(target_distance, data.recent_races),
        form_trend=calculate_form_trend(data.recent_races, p.form_trend_exponent),
        hr_efficiency=hr_efficiency,
        long_run_preparation=long_run_preparation,
    )


def feature_log_adjustment(
    target_distance: float,
    features: TrainingFeatures,
    params: Optional[PredictionParams] = None,
) -> float:
    """Log-additive adjustment from feature scores (0 when features are invalid)."""
    p = params or PredictionParams()
    if not features.is_valid:
        return 0.0

    adjustment = (
        features.volume_consistency * p.coef_volume_consistency
        + features.distance_experience * p.coef_distance_experience
        + features.form_trend * p.coef_form_trend
    )
    if features.hr_efficiency is not None:
        adjustment += features.hr_efficiency * p.coef_hr_efficiency
    if target_distance >= p.long_run_min_target and features.long_run_preparation is not None:
        adjustment += features.long_run_preparation * p.coef_long_run

    return adjustment
