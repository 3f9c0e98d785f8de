"""
Cross-distance consistency checks.

Predictions for 5K, 10K, half and full marathon are compared pairwise in
order of distance. A longer race can never be run at a faster pace than a
shorter one: when that happens the longer prediction is reset to the
shorter time times a fixed ratio and its confidence is cut. Time ratios
outside physiological bounds also reduce confidence.

The reset is not capped at `max_time_seconds`. For a very slow runner the
marathon can fall back to the pace table at a pace faster than the half
marathon; the reset then yields half x 2.10, which may exceed 10 hours.
Pace monotonicity wins over the cap, and a warning is logged.
"""

import logging
from typing import Dict, List, Optional, Tuple

from .params import PredictionParams
from .results import PredictionResult

logger = logging.getLogger(__name__)


# (key, meters) in ascending order
STANDARD_RACES: Tuple[Tuple[str, float], ...] = (
    ('5K', 5000.0),
    ('10K', 10000.0),
    ('21.1K', 21097.5),
    ('42.2K', 42195.0),
)

DISTANCE_TOLERANCE = 0.01
RATIO_EPSILON = 1e-9


class PlausibilityEnforcer:
    """Enforces non-decreasing pace across the standard distances."""

    def __init__(self, params: Optional[PredictionParams] = None):
        self.params = params or PredictionParams()

    def _match_standard(self, predictions: Dict[str, PredictionResult]) -> Dict[str, str]:
        """Map standard keys to prediction labels by distance (within 1%)."""
        matched = {}
        for key, meters in STANDARD_RACES:
            for label, result in predictions.items():
                if abs(result.distance_meters - meters) <= meters * DISTANCE_TOLERANCE:
                    matched[key] = label
                    break
        return matched

    def _outside_bounds(self, pair: str, ratio: float) -> bool:
        bounds = self.params.plausibility_bounds.get(pair)
        if bounds is None:
            return False
        low, high = bounds
        return ratio < low - RATIO_EPSILON or ratio > high + RATIO_EPSILON

    def enforce(self, predictions: Dict[str, PredictionResult]) -> Dict[str, PredictionResult]:
        """
        Apply plausibility constraints.

        Args:
            predictions: Predictions keyed by distance label

        Returns:
            New dict with adjusted predictions (input is not modified)
        """
        p = self.params
        adjusted = dict(predictions)
        matched = self._match_standard(adjusted)
        present: List[str] = [key for key, _ in STANDARD_RACES if key in matched]

        for shorter_key, longer_key in zip(present, present[1:]):
            pair = f"{shorter_key}_{longer_key}"
            shorter = adjusted[matched[shorter_key]]
            longer = adjusted[matched[longer_key]]

            if longer.pace_seconds_per_km < shorter.pace_seconds_per_km:
                fixed_ratio = p.plausibility_ratios.get(pair)
                if fixed_ratio is None:
                    fixed_ratio = longer.distance_meters / shorter.distance_meters
                new_time = shorter.predicted_time_seconds * fixed_ratio
                logger.info("%s pace faster than %s pace, resetting %s to %.0f s",
                            longer_key, shorter_key, longer_key, new_time)
                longer = longer.with_time(new_time, longer.confidence * p.clamp_confidence_penalty)
                if new_time > p.max_time_seconds:
                    logger.warning("%s reset to %.0f s exceeds the %.0f s cap",
                                   longer_key, new_time, p.max_time_seconds)

            ratio = longer.predicted_time_seconds / shorter.predicted_time_seconds
            if self._outside_bounds(pair, ratio):
                logger.debug("%s ratio %.3f outside bounds", pair, ratio)
                longer = longer.with_confidence(longer.confidence * p.bounds_confidence_penalty)

            adjusted[matched[longer_key]] = longer

        if all(key in matched for key in ('5K', '10K', '21.1K')):
            five_k = adjusted[matched['5K']]
            half = adjusted[matched['21.1K']]
            ratio = half.predicted_time_seconds / five_k.predicted_time_seconds
            if self._outside_bounds('5K_21.1K', ratio):
                logger.debug("5K_21.1K ratio %.3f outside bounds", ratio)
                adjusted[matched['21.1K']] = half.with_confidence(half.confidence * p.bounds_confidence_penalty)

        floor = p.plausibility_confidence_floor
        for label, result in adjusted.items():
            if result.confidence < floor:
                adjusted[label] = result.with_confidence(floor)

        return adjusted
