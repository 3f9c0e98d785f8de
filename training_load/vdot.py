"""
VDOT (Jack Daniels) aerobic capacity estimates.

For a performance over distance d (m) in t minutes:

    v    = d / t                                              (m/min)
    VO2  = -4.60 + 0.182258 v + 0.000104 v^2
    frac = 0.8 + 0.1894393 e^(-0.012778 t) + 0.2989558 e^(-0.1932605 t)
    VDOT = VO2 / frac

Reference:
- Daniels & Gilbert (1979): Oxygen Power
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from history.records import PersonalBest

VDOT_RANGE = (15.0, 85.0)
VDOT_DISTANCE_RANGE = (1500.0, 42200.0)  # meters
VDOT_WINDOW_DAYS = 28


def estimate_vdot(distance_meters: float, time_seconds: float) -> Optional[float]:
    """
    Estimate VDOT from a single performance.

    Args:
        distance_meters: Distance in meters
        time_seconds: Time in seconds

    Returns:
        VDOT rounded to 0.1, or None when implausible (outside [15, 85])
    """
    if not (distance_meters > 0 and time_seconds > 0):
        return None

    time_minutes = time_seconds / 60
    velocity = distance_meters / time_minutes

    vo2 = -4.60 + 0.182258 * velocity + 0.000104 * velocity ** 2
    fraction = (0.8
                + 0.1894393 * math.exp(-0.012778 * time_minutes)
                + 0.2989558 * math.exp(-0.1932605 * time_minutes))

    if fraction <= 0:
        return None

    vdot = vo2 / fraction
    if not (VDOT_RANGE[0] <= vdot <= VDOT_RANGE[1]):
        return None

    return round(vdot, 1)


@dataclass(frozen=True)
class VDOTEstimate:
    """Current VDOT with its supporting performances."""
    value: Optional[float]
    confidence: float
    based_on: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'vdot': self.value,
            'confidence': round(self.confidence, 2),
            'based_on': list(self.based_on),
        }


def _usable(pb: PersonalBest) -> bool:
    low, high = VDOT_DISTANCE_RANGE
    return low <= pb.distance_meters <= high and pb.time_seconds > 0


def current_vdot(personal_bests: Iterable[PersonalBest]) -> VDOTEstimate:
    """
    Weighted VDOT from the best performance per distance.

    Longer distances are weighted more (min(2, d/5000)); confidence reaches 1
    with three or more distances.

    Args:
        personal_bests: Bests from the last 12 weeks

    Returns:
        VDOTEstimate (value None without a usable performance)
    """
    best_by_distance: Dict[str, PersonalBest] = {}
    for pb in personal_bests:
        if not _usable(pb):
            continue
        current = best_by_distance.get(pb.distance_label)
        if current is None or pb.time_seconds < current.time_seconds:
            best_by_distance[pb.distance_label] = pb

    estimates = []
    for pb in best_by_distance.values():
        vdot = estimate_vdot(pb.distance_meters, pb.time_seconds)
        if vdot is not None:
            estimates.append((pb.distance_label, vdot, min(2.0, pb.distance_meters / 5000)))

    if not estimates:
        return VDOTEstimate(value=None, confidence=0.0)

    total_weight = sum(weight for _, _, weight in estimates)
    weighted = sum(vdot * weight for _, vdot, weight in estimates) / total_weight

    return VDOTEstimate(
        value=round(weighted, 1),
        confidence=min(1.0, len(estimates) / 3),
        based_on=[{'distance': label, 'vdot': vdot} for label, vdot, _ in estimates],
    )


def vdot_history(
    personal_bests: Iterable[PersonalBest],
    as_of: datetime,
    weeks_back: int = 52,
) -> List[Dict[str, Any]]:
    """
    Best VDOT per 4-week window, stepping back from `weeks_back` weeks ago.

    Windows end every 4 weeks (weeks_back, weeks_back - 4, ... >= 0 weeks
    ago) and span the 28 days before their end. Windows without a usable
    performance are omitted.

    Returns:
        List of {date, vdot}, oldest first
    """
    pbs = [pb for pb in personal_bests if _usable(pb)]
    history = []

    for w in range(weeks_back, -1, -4):
        window_end = as_of - timedelta(weeks=w)
        window_start = window_end - timedelta(days=VDOT_WINDOW_DAYS)

        best = None
        for pb in pbs:
            if not (window_start <= pb.date <= window_end):
                continue
            vdot = estimate_vdot(pb.distance_meters, pb.time_seconds)
            if vdot is not None and (best is None or vdot > best):
                best = vdot

        if best is not None:
            history.append({'date': window_end.strftime('%Y-%m-%d'), 'vdot': best})

    return history
