"""
Tunable parameters for the race-time prediction engine.

Every constant the predictor relies on lives here so that a run can be
reproduced (or re-tuned) from a single JSON file. All percentage values are
expressed as decimals (e.g., 0.02 = 2%).
"""

from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Tuple, Union
import json

from .errors import ConfigurationError


@dataclass
class PredictionParams:
    """
    Tunable parameters for endurance fitting, combination and calibration.
    """

    # ═══════════════════════════════════════════════════════════════════════════
    # ENDURANCE PROFILE (Riegel power law + critical speed)
    # ═══════════════════════════════════════════════════════════════════════════
    # Default alpha reproduces a ~22:00 5K with exponent 1.06

    default_alpha: float = -1.843
    default_exponent: float = 1.06
    default_confidence: float = 0.3

    exponent_min: float = 1.02
    exponent_max: float = 1.12
    recency_decay_days: float = 60.0     # exp(-days/60) recency weight
    min_race_distance: float = 1000.0    # Races shorter than this are ignored

    cs_min_races: int = 3
    cs_min_time: float = 180.0           # Seconds
    cs_max_time: float = 1800.0
    cs_min: float = 2.5                  # m/s
    cs_max: float = 6.0

    profile_confidence_races: float = 5.0
    profile_confidence_max: float = 0.9

    # ═══════════════════════════════════════════════════════════════════════════
    # WEIGHTED RACE EXTRAPOLATION
    # ═══════════════════════════════════════════════════════════════════════════

    max_recent_races: int = 6
    ratio_min: float = 0.1               # target / race distance
    ratio_max: float = 10.0
    similarity_scale: float = 2.0        # exp(-|ln ratio| / scale)
    extrapolation_confidence_scale: float = 2.0

    # ═══════════════════════════════════════════════════════════════════════════
    # MODEL COMBINATION (log space)
    # ═══════════════════════════════════════════════════════════════════════════

    weights_all_models: Tuple[float, float, float] = (0.4, 0.4, 0.2)  # power law, races, CS
    weights_no_cs_log: Tuple[float, float] = (0.5, 0.5)
    weights_two_models: Tuple[float, float] = (0.3, 0.7)              # power law, races
    max_log_base: float = 15.0
    max_time_seconds: float = 36000.0

    # ═══════════════════════════════════════════════════════════════════════════
    # TRAINING FEATURE ADJUSTMENTS
    # ═══════════════════════════════════════════════════════════════════════════
    # Negative coefficients: more of the feature means a faster prediction

    feature_window_days: float = 84.0
    min_feature_activities: int = 5
    min_hr_activities: int = 3
    coef_volume_consistency: float = -0.03
    coef_distance_experience: float = -0.02
    coef_form_trend: float = -0.025
    coef_hr_efficiency: float = -0.015
    coef_long_run: float = -0.02
    long_run_min_target: float = 21100.0
    form_trend_exponent: float = 0.06

    # ═══════════════════════════════════════════════════════════════════════════
    # TAPER
    # ═══════════════════════════════════════════════════════════════════════════

    consistency_window_days: float = 28.0
    consistency_activities: float = 12.0
    taper_short_days: int = 14
    taper_long_days: int = 56
    taper_base: float = -0.01
    taper_optimal_bonus: float = -0.015
    taper_weekly_rate: float = 0.002
    taper_max_weeks: float = 6.0
    taper_long_cap: float = 0.015

    # ═══════════════════════════════════════════════════════════════════════════
    # RACE CONDITIONS
    # ═══════════════════════════════════════════════════════════════════════════

    temperature_factors: Dict[int, float] = field(default_factory=lambda: {
        5: 1.02, 10: 1.0, 15: 1.0, 20: 1.01, 25: 1.03, 30: 1.06,
    })
    cold_penalty: float = 0.02           # Below 5 C
    heat_penalty: float = 0.08           # Above 30 C
    optimal_weather_bonus: float = -0.015
    flat_course_bonus: float = -0.01
    reference_pace_min_per_km: float = 5.0
    elevation_minutes_per_meter_km: float = 1.75 / 60
    wind_strong_kmh: float = 20.0
    wind_strong_penalty: float = 0.03
    wind_moderate_kmh: float = 10.0
    wind_moderate_penalty: float = 0.015
    altitude_threshold: float = 1000.0
    altitude_penalty_per_km: float = 0.02

    # ═══════════════════════════════════════════════════════════════════════════
    # CONFIDENCE & INTERVALS
    # ═══════════════════════════════════════════════════════════════════════════

    confidence_min: float = 0.4
    confidence_max: float = 0.85
    confidence_recent_days: float = 90.0
    similar_ratio_min: float = 0.7
    similar_ratio_max: float = 1.4
    base_uncertainty: Tuple[float, float, float, float] = (0.015, 0.02, 0.025, 0.035)
    backtest_races: int = 10
    mape_scale: float = 20.0
    residual_factor_min: float = 0.3
    residual_factor_max: float = 1.5
    lower_multiplier: float = 0.8
    upper_multiplier: float = 1.2
    p80_lower_multiplier: float = 0.6
    p80_upper_multiplier: float = 0.9

    # ═══════════════════════════════════════════════════════════════════════════
    # PACE-TABLE FALLBACK
    # ═══════════════════════════════════════════════════════════════════════════
    # (max distance in meters, seconds per km); anything longer uses default

    pace_table: Tuple[Tuple[float, float], ...] = ((5000.0, 240.0), (10000.0, 250.0), (21100.0, 270.0))
    pace_table_default: float = 300.0
    fallback_confidence: float = 0.3
    fallback_margin: float = 0.10

    # ═══════════════════════════════════════════════════════════════════════════
    # POWER-LAW-ONLY FALLBACK (classic Riegel over recent races)
    # ═══════════════════════════════════════════════════════════════════════════

    classic_races: int = 5
    classic_decay_days: float = 30.0
    classic_exponent: float = 1.06
    classic_exponent_step: float = 0.01  # +/- for big jumps up / down in distance

    # ═══════════════════════════════════════════════════════════════════════════
    # PLAUSIBILITY
    # ═══════════════════════════════════════════════════════════════════════════

    plausibility_ratios: Dict[str, float] = field(default_factory=lambda: {
        '5K_10K': 2.08, '10K_21.1K': 2.15, '21.1K_42.2K': 2.10,
    })
    plausibility_bounds: Dict[str, Tuple[float, float]] = field(default_factory=lambda: {
        '5K_10K': (2.05, 2.25),
        '10K_21.1K': (2.12, 2.30),
        '5K_21.1K': (4.35, 5.20),
        '21.1K_42.2K': (2.10, 2.30),
    })
    clamp_confidence_penalty: float = 0.8
    bounds_confidence_penalty: float = 0.7
    plausibility_confidence_floor: float = 0.3

    # ═══════════════════════════════════════════════════════════════════════════
    # TRENDS
    # ═══════════════════════════════════════════════════════════════════════════

    trend_window_days: float = 30.0
    trend_max_change: float = 0.10

    def to_dict(self) -> Dict[str, Any]:
        """Convert parameters to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'PredictionParams':
        """
        Create parameters from dictionary.

        JSON round-trips turn tuples into lists and integer keys into
        strings; both are converted back here. Unknown keys raise TypeError.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(d) - known
        if unknown:
            raise TypeError(f"Unknown prediction parameters: {sorted(unknown)}")

        values = dict(d)
        for name in ('weights_all_models', 'weights_no_cs_log', 'weights_two_models', 'base_uncertainty'):
            if name in values:
                values[name] = tuple(values[name])
        if 'pace_table' in values:
            values['pace_table'] = tuple(tuple(row) for row in values['pace_table'])
        if 'temperature_factors' in values:
            values['temperature_factors'] = {
                int(k): float(v) for k, v in values['temperature_factors'].items()
            }
        if 'plausibility_bounds' in values:
            values['plausibility_bounds'] = {
                k: tuple(v) for k, v in values['plausibility_bounds'].items()
            }
        return cls(**values)

    def validate(self) -> Tuple[bool, str]:
        """Validate parameter constraints."""
        issues = []

        if not (0 < self.exponent_min <= self.default_exponent <= self.exponent_max):
            issues.append("Exponent: 0 < min <= default <= max")

        if not (0 < self.cs_min < self.cs_max):
            issues.append("Critical speed bounds must satisfy 0 < min < max")

        if self.recency_decay_days <= 0:
            issues.append("Recency decay must be positive")

        for name in ('weights_all_models', 'weights_no_cs_log', 'weights_two_models'):
            weights = getattr(self, name)
            if abs(sum(weights) - 1.0) > 1e-9 or min(weights) < 0:
                issues.append(f"{name} must be non-negative and sum to 1")

        if not (0 < self.confidence_min <= self.confidence_max <= 1):
            issues.append("Confidence: 0 < min <= max <= 1")

        if not (0 < self.residual_factor_min <= self.residual_factor_max):
            issues.append("Residual factor: 0 < min <= max")

        if len(self.base_uncertainty) != 4:
            issues.append("base_uncertainty needs one value per distance tier (4)")

        distances = [row[0] for row in self.pace_table]
        if distances != sorted(distances):
            issues.append("pace_table distances must be ascending")

        for key, (low, high) in self.plausibility_bounds.items():
            if not (0 < low <= high):
                issues.append(f"Plausibility bounds for {key} must satisfy 0 < low <= high")

        if not (0 < self.max_time_seconds):
            issues.append("max_time_seconds must be positive")

        if issues:
            return False, "; ".join(issues)
        return True, "Valid"


def load_params(path: Union[str, Path]) -> PredictionParams:
    """
    Load parameters from a JSON file.

    The file may contain any subset of fields; missing ones keep defaults.
    Raises ConfigurationError for unknown fields or failed validation.
    """
    with open(path) as f:
        data = json.load(f)

    try:
        params = PredictionParams.from_dict(data)
    except TypeError as exc:
        raise ConfigurationError(str(exc)) from exc

    ok, message = params.validate()
    if not ok:
        raise ConfigurationError(f"Invalid prediction parameters in {path}: {message}")
    return params
