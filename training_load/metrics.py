"""
Core training-load metrics: TRIMP, daily load series and CTL/ATL/TSB.

Based on:
- Banister (1991): TRIMP formula
- Banister impulse-response model: fitness (CTL, 42-day time constant),
  fatigue (ATL, 7-day time constant) and form (TSB = CTL - ATL)

The smoothing recurrence is

    load_t = load_{t-1} + (trimp_t - load_{t-1}) / time_constant,   load_0 = 0

which requires a dense daily series: rest days must be present as zeros.
"""

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import numpy as np
import pandas as pd

from history.records import TrainingActivity


CTL_TIME_CONSTANT = 42
ATL_TIME_CONSTANT = 7


def calculate_delta_hr(hr_avg: float, hr_rest: float, hr_max: float) -> float:
    """
    Calculate heart rate reserve fraction (Delta HR).

    Args:
        hr_avg: Average heart rate during session (bpm)
        hr_rest: Resting heart rate (bpm)
        hr_max: Maximum heart rate (bpm)

    Returns:
        Delta HR as fraction [0, 1]
    """
    if hr_max <= hr_rest:
        raise ValueError(f"hr_max ({hr_max}) must be greater than hr_rest ({hr_rest})")

    delta_hr = (hr_avg - hr_rest) / (hr_max - hr_rest)
    return float(np.clip(delta_hr, 0.0, 1.0))


def calculate_y_factor(delta_hr: float, gender: str = 'male') -> float:
    """
    Calculate the Y weighting factor for TRIMP.

    Based on Banister's gender-specific exponential weighting.

    Args:
        delta_hr: Heart rate reserve fraction
        gender: 'male' or 'female'

    Returns:
        Y factor (exponential intensity weighting)
    """
    if gender.lower() == 'male':
        # Males: Y = 0.64 * e^(1.92 * deltaHR)
        return 0.64 * math.exp(1.92 * delta_hr)
    elif gender.lower() == 'female':
        # Females: Y = 0.86 * e^(1.67 * deltaHR)
        return 0.86 * math.exp(1.67 * delta_hr)
    else:
        raise ValueError(f"Gender must be 'male' or 'female', got '{gender}'")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def calculate_trimp(
    duration_min: Optional[float],
    hr_avg: Optional[float],
    hr_rest: float = 60.0,
    hr_max: float = 190.0,
    gender: str = 'male',
) -> float:
    """
    Calculate Training Impulse (TRIMP) for a session.

    TRIMP = Duration × ΔHR × Y

    Any missing or invalid input (no heart rate, non-positive duration,
    hr_max <= hr_rest, unknown gender) yields 0.

    Args:
        duration_min: Session duration in minutes
        hr_avg: Average heart rate during session (bpm)
        hr_rest: Resting heart rate (bpm), default 60
        hr_max: Maximum heart rate (bpm), default 190
        gender: 'male' or 'female'

    Returns:
        TRIMP value (arbitrary units)
    """
    if not (_is_number(duration_min) and _is_number(hr_avg)
            and _is_number(hr_rest) and _is_number(hr_max)):
        return 0.0
    if duration_min <= 0 or hr_avg <= 0 or hr_max <= hr_rest:
        return 0.0

    try:
        delta_hr = calculate_delta_hr(hr_avg, hr_rest, hr_max)
        y_factor = calculate_y_factor(delta_hr, gender)
    except (ValueError, AttributeError):
        return 0.0

    trimp = duration_min * delta_hr * y_factor
    return trimp if math.isfinite(trimp) else 0.0


def activity_trimp(
    activity: TrainingActivity,
    hr_rest: float = 60.0,
    hr_max: float = 190.0,
    gender: str = 'male',
) -> float:
    """TRIMP for a single activity (0 without heart rate)."""
    return calculate_trimp(
        duration_min=activity.duration_minutes,
        hr_avg=activity.average_heart_rate,
        hr_rest=hr_rest,
        hr_max=hr_max,
        gender=gender,
    )


def build_daily_trimp(
    activities: Iterable[TrainingActivity],
    as_of: datetime,
    hr_rest: float = 60.0,
    hr_max: float = 190.0,
    gender: str = 'male',
) -> pd.Series:
    """
    Dense daily TRIMP series.

    TRIMP is summed per calendar day. The series starts on the first day with
    positive TRIMP and runs through `as_of`'s date, with rest days as 0.

    Args:
        activities: Training activities
        as_of: Reference "now" (last day of the series)
        hr_rest: Resting heart rate
        hr_max: Maximum heart rate
        gender: 'male' or 'female'

    Returns:
        pd.Series of daily TRIMP indexed by date (empty without any load)
    """
    rows = []
    for activity in activities:
        trimp = activity_trimp(activity, hr_rest, hr_max, gender)
        if trimp > 0:
            rows.append({'date': pd.Timestamp(activity.date).normalize(), 'trimp': trimp})

    if not rows:
        return pd.Series(dtype=float, name='trimp')

    df = pd.DataFrame(rows)
    daily = df.groupby('date')['trimp'].sum()

    end = max(pd.Timestamp(as_of).normalize(), daily.index.max())
    full_range = pd.date_range(start=daily.index.min(), end=end, freq='D')
    daily = daily.reindex(full_range, fill_value=0.0)
    daily.index.name = 'date'
    daily.name = 'trimp'
    return daily


def calculate_ewma(values: np.ndarray, time_constant: float) -> np.ndarray:
    """
    Exponentially weighted load average starting from zero.

    Uses the formula: EWMA_t = EWMA_{t-1} + (value_t - EWMA_{t-1}) / time_constant

    Args:
        values: Array of daily values (e.g., TRIMP)
        time_constant: Decay constant in days (42 for CTL, 7 for ATL)

    Returns:
        Array of EWMA values (same length as input)
    """
    values = np.nan_to_num(np.asarray(values, dtype=float), nan=0.0)
    n = len(values)

    if n == 0:
        return np.array([])

    ewma = np.zeros(n)
    previous = 0.0
    for i in range(n):
        previous = previous + (values[i] - previous) / time_constant
        ewma[i] = previous

    return ewma


def calculate_ctl(daily_trimp: pd.Series) -> pd.Series:
    """Chronic Training Load (fitness), 42-day time constant."""
    return pd.Series(calculate_ewma(daily_trimp.values, CTL_TIME_CONSTANT),
                     index=daily_trimp.index, name='ctl')


def calculate_atl(daily_trimp: pd.Series) -> pd.Series:
    """Acute Training Load (fatigue), 7-day time constant."""
    return pd.Series(calculate_ewma(daily_trimp.values, ATL_TIME_CONSTANT),
                     index=daily_trimp.index, name='atl')


def calculate_fitness_frame(daily_trimp: pd.Series) -> pd.DataFrame:
    """
    CTL, ATL and TSB for every day of the series.

    Returns:
        DataFrame indexed by date with columns trimp, ctl, atl, tsb
    """
    ctl = calculate_ctl(daily_trimp)
    atl = calculate_atl(daily_trimp)
    return pd.DataFrame({
        'trimp': daily_trimp,
        'ctl': ctl,
        'atl': atl,
        'tsb': ctl - atl,
    })


@dataclass(frozen=True)
class FitnessPoint:
    """One day of the fitness/fatigue/form series."""
    date: datetime
    ctl: float
    atl: float
    tsb: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date.strftime('%Y-%m-%d'),
            'ctl': round(self.ctl, 1),
            'atl': round(self.atl, 1),
            'tsb': round(self.tsb, 1),
        }


def fitness_points(frame: pd.DataFrame) -> List[FitnessPoint]:
    return [
        FitnessPoint(date=ts.to_pydatetime(), ctl=row.ctl, atl=row.atl, tsb=row.tsb)
        for ts, row in frame.iterrows()
    ]


def classify_form(tsb: float) -> str:
    """
    Classify Training Stress Balance into form states.

    States:
        - fresh:    TSB > 10
        - optimal:  -10 < TSB <= 10
        - tired:    -25 < TSB <= -10
        - fatigued: TSB <= -25

    Args:
        tsb: Training Stress Balance

    Returns:
        Form classification string
    """
    if tsb > 10:
        return 'fresh'
    elif tsb > -10:
        return 'optimal'
    elif tsb > -25:
        return 'tired'
    else:
        return 'fatigued'


def calculate_weekly_trimp(daily_trimp: pd.Series, as_of: datetime, weeks: int = 12) -> List[Dict[str, Any]]:
    """
    Weekly TRIMP totals for the last `weeks` weeks.

    Each week is the 7 days ending (exclusive) on a day counted back from
    `as_of` in whole weeks, oldest first.

    Returns:
        List of {week_start, week_end, trimp}
    """
    today = pd.Timestamp(as_of).normalize()
    result = []
    for w in range(weeks - 1, -1, -1):
        week_end = today - pd.Timedelta(days=7 * w)
        week_start = week_end - pd.Timedelta(days=7)
        if len(daily_trimp):
            mask = (daily_trimp.index >= week_start) & (daily_trimp.index < week_end)
            total = float(daily_trimp[mask].sum())
        else:
            total = 0.0
        result.append({
            'week_start': week_start.strftime('%Y-%m-%d'),
            'week_end': week_end.strftime('%Y-%m-%d'),
            'trimp': round(total),
        })
    return result


if __name__ == '__main__':
    print("Testing training-load metrics...")

    trimp = calculate_trimp(duration_min=30, hr_avg=140, hr_rest=60, hr_max=190, gender='male')
    print(f"30 min session, HR 140: TRIMP = {trimp:.2f}")

    steady = calculate_ewma(np.full(365, 50.0), CTL_TIME_CONSTANT)
    print(f"CTL after a year of TRIMP 50/day: {steady[-1]:.2f}")
    print(f"Form at TSB -15: {classify_form(-15)}")
