"""
Data quality assessment for a prediction request.

Score components (max 100):
    recent races (<= 90 days)       10 each, max 40
    recent activities (<= 84 days)  1.5 each, max 30
    recency of latest race          20 - 0.5 * days, min 0
    distance variety                2 per distinct whole km, max 10
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List

from history.records import PredictionData


@dataclass(frozen=True)
class DataQuality:
    """Overall data quality summary."""
    score: int
    level: str                   # 'high', 'medium' or 'low'
    recommendations: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'score': self.score,
            'level': self.level,
            'recommendations': list(self.recommendations),
        }


MAX_SCORE = 100.0


def get_data_quality_recommendations(data: PredictionData, as_of: datetime) -> List[str]:
    """Actionable suggestions for improving prediction accuracy."""
    recommendations = []

    if len(data.races_within(60, as_of)) < 2:
        recommendations.append('Complete a recent time trial or race for more accurate predictions')

    long_runs = [a for a in data.activities_within(42, as_of) if a.distance_meters >= 15000]
    if len(long_runs) < 2:
        recommendations.append('Include more long runs (15km+) in your training')

    if len(data.activities_within(7, as_of)) < 3:
        recommendations.append('Maintain consistent training (3+ runs per week)')

    return recommendations


def assess_data_quality(data: PredictionData, as_of: datetime) -> DataQuality:
    """
    Score how much history supports the predictions.

    Args:
        data: Prediction history
        as_of: Reference "now"

    Returns:
        DataQuality with a 0-100 score, level and recommendations
    """
    score = 0.0

    recent_races = sorted(data.races_within(90, as_of), key=lambda r: r.date, reverse=True)
    score += min(40.0, len(recent_races) * 10)

    recent_activities = data.activities_within(84, as_of)
    score += min(30.0, len(recent_activities) * 1.5)

    if recent_races:
        score += max(0.0, 20 - recent_races[0].days_since(as_of) * 0.5)

    variety = len({round(r.distance_meters / 1000) for r in data.recent_races})
    score += min(10.0, variety * 2)

    fraction = score / MAX_SCORE
    if fraction > 0.8:
        level = 'high'
    elif fraction > 0.5:
        level = 'medium'
    else:
        level = 'low'

    return DataQuality(
        score=round(fraction * 100),
        level=level,
        recommendations=get_data_quality_recommendations(data, as_of),
    )
