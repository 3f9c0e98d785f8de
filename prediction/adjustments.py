"""
Race-day adjustments: taper and environmental conditions.

Both return a fractional change x (e.g. 0.03 = 3% slower) which the
predictor applies as ln(1 + x) in log space.
"""

import math
from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from history.records import PredictionData
from .params import PredictionParams


@dataclass(frozen=True)
class RaceConditions:
    """Expected race-day conditions. Unset fields contribute nothing."""
    temperature: Optional[float] = None     # Celsius
    wind_speed: Optional[float] = None      # km/h
    elevation: Optional[float] = None       # meters of gain
    altitude: Optional[float] = None        # meters above sea level
    optimal_taper: bool = False
    optimal_weather: bool = False
    flat_course: bool = False

    @classmethod
    def from_dict(cls, d: Optional[Mapping[str, Any]]) -> 'RaceConditions':
        """Build from a mapping with snake_case or camelCase keys."""
        if not d:
            return cls()

        def pick(snake: str, camel: str) -> Any:
            return d.get(snake, d.get(camel))

        def number(value: Any) -> Optional[float]:
            return None if value is None else float(value)

        return cls(
            temperature=number(d.get('temperature')),
            wind_speed=number(pick('wind_speed', 'windSpeed')),
            elevation=number(d.get('elevation')),
            altitude=number(d.get('altitude')),
            optimal_taper=bool(pick('optimal_taper', 'optimalTaper')),
            optimal_weather=bool(pick('optimal_weather', 'optimalWeather')),
            flat_course=bool(pick('flat_course', 'flatCourse')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


OPTIMAL_CONDITIONS = RaceConditions(
    temperature=12.0,
    wind_speed=0.0,
    elevation=0.0,
    optimal_taper=True,
    optimal_weather=True,
    flat_course=True,
)


def training_consistency(data: PredictionData, as_of: datetime, params: Optional[PredictionParams] = None) -> float:
    """min(1, activities in the last 28 days / 12)."""
    p = params or PredictionParams()
    recent = data.activities_within(p.consistency_window_days, as_of)
    return min(1.0, len(recent) / p.consistency_activities)


def taper_adjustment(
    days_until_race: float,
    consistency: float,
    conditions: Optional[RaceConditions] = None,
    params: Optional[PredictionParams] = None,
) -> float:
    """
    Expected fractional change from training/taper before race day.

    Args:
        days_until_race: Days until the race
        consistency: Training consistency in [0, 1]
        conditions: Race conditions (only `optimal_taper` is used)
        params: Prediction parameters

    Returns:
        Fractional change (negative = faster)
    """
    p = params or PredictionParams()
    conditions = conditions or RaceConditions()

    if days_until_race <= 0:
        return 0.0

    bonus = p.taper_optimal_bonus if conditions.optimal_taper else 0.0

    if days_until_race <= p.taper_short_days:
        # In the taper window
        return p.taper_base * consistency + bonus
    if days_until_race <= p.taper_long_days:
        # Still building: gradual improvement
        weeks = min(p.taper_max_weeks, days_until_race / 7)
        improvement = -min(p.taper_long_cap, weeks * p.taper_weekly_rate * consistency)
        return improvement + bonus * 0.5
    return p.taper_base * consistency


def _temperature_adjustment(temperature: float, p: PredictionParams) -> float:
    if temperature < 5:
        return p.cold_penalty
    if temperature > 30:
        return p.heat_penalty
    # Half-up rounding to the nearest 5 C
    bucket = int(math.floor(temperature / 5 + 0.5) * 5)
    return p.temperature_factors.get(bucket, 1.0) - 1.0


def conditions_adjustment(
    target_distance: float,
    conditions: Optional[RaceConditions] = None,
    params: Optional[PredictionParams] = None,
) -> float:
    """
    Fractional change from weather, course and altitude.

    Each term is optional and additive. `optimal_weather` only applies when
    no temperature is given; `flat_course` only when no elevation is given.
    """
    p = params or PredictionParams()
    c = conditions or RaceConditions()
    total = 0.0

    if c.temperature is not None:
        total += _temperature_adjustment(c.temperature, p)
    elif c.optimal_weather:
        total += p.optimal_weather_bonus

    if c.elevation is not None and c.elevation > 0:
        gain_per_km = c.elevation / (target_distance / 1000)
        penalty_min_per_km = gain_per_km * p.elevation_minutes_per_meter_km
        total += penalty_min_per_km / p.reference_pace_min_per_km
    elif c.flat_course:
        total += p.flat_course_bonus

    if c.wind_speed is not None:
        if c.wind_speed > p.wind_strong_kmh:
            total += p.wind_strong_penalty
        elif c.wind_speed > p.wind_moderate_kmh:
            total += p.wind_moderate_penalty

    if c.altitude is not None and c.altitude > p.altitude_threshold:
        total += (c.altitude / 1000) * p.altitude_penalty_per_km

    return total


def optimal_conditions_prediction(
    prediction: float,
    target_distance: float,
    conditions: Optional[RaceConditions] = None,
    params: Optional[PredictionParams] = None,
) -> Dict[str, float]:
    """
    Prediction re-expressed under optimal race-day conditions.

    Returns:
        Dict with `time`, `improvement` (seconds) and `improvement_percent`
    """
    current = conditions_adjustment(target_distance, conditions, params)
    optimal = conditions_adjustment(target_distance, OPTIMAL_CONDITIONS, params)
    optimal_time = prediction / (1 + current) * (1 + optimal)
    return {
        'time': round(optimal_time),
        'improvement': round(prediction - optimal_time),
        'improvement_percent': round((prediction - optimal_time) / prediction * 100),
    }
