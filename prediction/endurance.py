"""
Personal endurance profile fitting.

Two models are fitted from race history:

1. Riegel power law in log space:
       ln T = alpha + b * ln D
   fitted by weighted least squares. Weights combine recency
   (exp(-days/60)) and race quality. The exponent b is the runner's personal
   fatigue factor, clamped to [1.02, 1.12].

2. Critical speed (two-parameter hyperbolic model):
       D = CS * T + D'
   fitted by ordinary least squares over races lasting 3-30 minutes. CS is
   the sustainable speed (m/s) and D' the finite anaerobic capacity (m).

References:
- Riegel (1981): Athletic records and human endurance
- Monod & Scherrer (1965), Hill (1993): critical power/speed
"""

import logging
import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

import numpy as np
from scipy import stats

from history.records import RacePerformance
from .params import PredictionParams
from .quality import QualityScorer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnduranceProfile:
    """Fitted personal endurance parameters."""
    alpha: float
    exponent: float
    critical_speed: Optional[float] = None      # m/s
    anaerobic_capacity: Optional[float] = None  # D' in meters
    confidence: float = 0.3
    base_race_count: int = 0
    raw_exponent: Optional[float] = None

    @property
    def has_critical_speed(self) -> bool:
        return self.critical_speed is not None and self.anaerobic_capacity is not None

    def predict_log_time(self, distance_meters: float) -> float:
        """ln(time) predicted by the power law (may be non-finite)."""
        with np.errstate(divide='ignore', invalid='ignore'):
            return self.alpha + self.exponent * float(np.log(distance_meters))

    def predict_time(self, distance_meters: float) -> float:
        """Power-law time in seconds (may be non-finite)."""
        with np.errstate(over='ignore'):
            return float(np.exp(self.predict_log_time(distance_meters)))

    def predict_critical_speed_time(self, distance_meters: float) -> Optional[float]:
        """Critical-speed time, or None when unavailable for this distance."""
        if not self.has_critical_speed or distance_meters <= self.anaerobic_capacity:
            return None
        return (distance_meters - self.anaerobic_capacity) / self.critical_speed

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def default_profile(params: Optional[PredictionParams] = None, base_race_count: int = 0) -> EnduranceProfile:
    """Population default: ~22:00 5K runner with the classic 1.06 exponent."""
    params = params or PredictionParams()
    return EnduranceProfile(
        alpha=params.default_alpha,
        exponent=params.default_exponent,
        confidence=params.default_confidence,
        base_race_count=base_race_count,
        raw_exponent=params.default_exponent,
    )


# ═══════════════════════════════════════════════════════════════════════════════
# CRITICAL SPEED
# ═══════════════════════════════════════════════════════════════════════════════

def fit_critical_speed(
    distances: np.ndarray,
    times: np.ndarray,
    params: Optional[PredictionParams] = None,
) -> Tuple[Optional[float], Optional[float]]:
    """
    Fit distance = CS * time + D' by ordinary least squares.

    Only efforts lasting between cs_min_time and cs_max_time are used.

    Args:
        distances: Race distances (m)
        times: Race times (s)
        params: Prediction parameters

    Returns:
        Tuple of (critical_speed, anaerobic_capacity); (None, None) when
        there are too few efforts, the times are identical, or CS falls
        outside the plausible range. D' is floored at 0.
    """
    params = params or PredictionParams()
    distances = np.asarray(distances, dtype=float)
    times = np.asarray(times, dtype=float)

    mask = (times >= params.cs_min_time) & (times <= params.cs_max_time)
    if mask.sum() < params.cs_min_races:
        return None, None

    cs_times = times[mask]
    cs_distances = distances[mask]
    if np.ptp(cs_times) == 0:
        return None, None

    fit = stats.linregress(cs_times, cs_distances)
    critical_speed = float(fit.slope)
    d_prime = float(fit.intercept)

    if not math.isfinite(critical_speed) or not (params.cs_min <= critical_speed <= params.cs_max):
        logger.debug("Rejecting critical speed %.3f m/s (outside [%.1f, %.1f])",
                     critical_speed, params.cs_min, params.cs_max)
        return None, None

    return critical_speed, max(0.0, d_prime)


# ═══════════════════════════════════════════════════════════════════════════════
# POWER LAW
# ═══════════════════════════════════════════════════════════════════════════════

class EnduranceParameterEstimator:
    """
    Fits an EnduranceProfile from race history.

    Usage:
        estimator = EnduranceParameterEstimator()
        profile = estimator.estimate(races, as_of=datetime.now())
    """

    def __init__(
        self,
        params: Optional[PredictionParams] = None,
        quality_scorer: Optional[QualityScorer] = None,
    ):
        self.params = params or PredictionParams()
        self.quality_scorer = quality_scorer or QualityScorer()

    def valid_races(self, races: Iterable[RacePerformance]) -> List[RacePerformance]:
        """Races long enough to fit and with finite log distance/time."""
        valid = []
        for race in races:
            if race.distance_meters < self.params.min_race_distance or race.time_seconds <= 0:
                continue
            if not (math.isfinite(math.log(race.distance_meters))
                    and math.isfinite(math.log(race.time_seconds))):
                continue
            valid.append(race)
        return valid

    def estimate(self, races: Iterable[RacePerformance], as_of: datetime) -> EnduranceProfile:
        """
        Fit the personal power law and critical-speed model.

        Args:
            races: Race history
            as_of: Reference "now" for recency weights

        Returns:
            EnduranceProfile (default profile with fewer than 2 valid races)
        """
        p = self.params
        valid = self.valid_races(races)

        if len(valid) < 2:
            logger.info("Only %d valid races, using default endurance profile", len(valid))
            return default_profile(p, base_race_count=len(valid))

        distances = np.array([r.distance_meters for r in valid], dtype=float)
        times = np.array([r.time_seconds for r in valid], dtype=float)
        log_d = np.log(distances)
        log_t = np.log(times)

        recency = np.exp(-np.array([r.days_since(as_of) for r in valid]) / p.recency_decay_days)
        quality = np.array([self.quality_scorer.score(r) for r in valid])
        weights = recency * quality
        total_weight = weights.sum()

        if not np.isfinite(total_weight) or total_weight <= 0:
            logger.warning("Degenerate race weights (sum=%r), using default endurance profile", total_weight)
            return default_profile(p, base_race_count=len(valid))

        mean_log_d = np.sum(weights * log_d) / total_weight
        mean_log_t = np.sum(weights * log_t) / total_weight

        numerator = np.sum(weights * (log_d - mean_log_d) * (log_t - mean_log_t))
        denominator = np.sum(weights * (log_d - mean_log_d) ** 2)

        if denominator == 0 or not np.isfinite(denominator):
            raw_exponent = p.default_exponent
        else:
            raw_exponent = float(numerator / denominator)
            if not math.isfinite(raw_exponent):
                raw_exponent = p.default_exponent

        alpha = float(mean_log_t - raw_exponent * mean_log_d)
        if not math.isfinite(alpha):
            alpha = p.default_alpha

        exponent = float(np.clip(raw_exponent, p.exponent_min, p.exponent_max))
        critical_speed, d_prime = fit_critical_speed(distances, times, p)

        profile = EnduranceProfile(
            alpha=alpha,
            exponent=exponent,
            critical_speed=critical_speed,
            anaerobic_capacity=d_prime,
            confidence=min(p.profile_confidence_max, len(valid) / p.profile_confidence_races),
            base_race_count=len(valid),
            raw_exponent=raw_exponent,
        )
        logger.debug("Fitted endurance profile: %s", profile)
        return profile


if __name__ == '__main__':
    from datetime import timedelta

    now = datetime(2024, 6, 1)
    races = [
        RacePerformance(5000, 1200, now - timedelta(days=10), name='parkrun'),
        RacePerformance(10000, 2520, now - timedelta(days=40), name='10K race'),
        RacePerformance(3000, 690, now - timedelta(days=25)),
    ]
    profile = EnduranceParameterEstimator().estimate(races, now)
    print(f"alpha={profile.alpha:.4f} exponent={profile.exponent:.4f} (raw {profile.raw_exponent:.4f})")
    print(f"CS={profile.critical_speed} D'={profile.anaerobic_capacity} confidence={profile.confidence:.2f}")
    for d in (5000, 10000, 21100, 42200):
        print(f"  {d:6d} m: {profile.predict_time(d):8.1f} s")
