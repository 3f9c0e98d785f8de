"""Human-readable factors explaining a prediction."""

from datetime import datetime
from typing import List

from history.records import PredictionData
from .results import PredictionFactor


def identify_prediction_factors(
    target_distance: float,
    data: PredictionData,
    as_of: datetime,
) -> List[PredictionFactor]:
    """
    List the main positive and negative influences on a prediction.

    Considers the store's run classification, the race-day boost implied by
    `race_to_training_ratio`, 28-day training volume relative to the target
    and the number of races at a similar distance (0.8-1.2x).

    Args:
        target_distance: Target distance (m)
        data: Prediction history
        as_of: Reference "now"

    Returns:
        List of PredictionFactor
    """
    factors = []

    classification = data.run_classification
    if classification is not None:
        if classification.races >= 3:
            factors.append(PredictionFactor(
                name='Strong race data', impact='positive', strength='high',
                value=f"{classification.races} races", percentage=15,
            ))
        elif classification.races > 0:
            factors.append(PredictionFactor(
                name='Limited race data', impact='negative', strength='medium',
                value=f"Only {classification.races} race(s)", percentage=-10,
            ))

    ratio = data.race_to_training_ratio
    if ratio is not None and 0 < ratio < 0.9:
        improvement = round((1 - ratio) * 100)
        factors.append(PredictionFactor(
            name='Race day performance boost', impact='positive', strength='high',
            value=f"{improvement}% faster in races", percentage=improvement,
        ))

    recent_volume = sum(a.distance_meters for a in data.activities_within(28, as_of))
    volume_ratio = recent_volume / target_distance
    if volume_ratio > 4:
        factors.append(PredictionFactor(
            name='Excellent training volume', impact='positive', strength='high',
            value=f"{round(volume_ratio)}x race distance", percentage=8,
        ))
    elif volume_ratio > 2.5:
        factors.append(PredictionFactor(
            name='Good training volume', impact='positive', strength='medium',
            value=f"{round(volume_ratio, 1)}x race distance", percentage=5,
        ))
    elif volume_ratio < 1.5:
        factors.append(PredictionFactor(
            name='Low training volume', impact='negative', strength='high',
            value=f"Only {round(volume_ratio, 1)}x race distance", percentage=-12,
        ))

    similar = sum(
        1 for r in data.recent_races
        if r.distance_meters > 0 and 0.8 <= target_distance / r.distance_meters <= 1.2
    )
    if similar >= 3:
        factors.append(PredictionFactor(
            name='Strong distance experience', impact='positive', strength='medium',
            value=f"{similar} similar distance efforts", percentage=6,
        ))
    elif similar == 0:
        factors.append(PredictionFactor(
            name='No recent distance experience', impact='negative', strength='medium',
            value='Extrapolating from other distances', percentage=-8,
        ))

    return factors
