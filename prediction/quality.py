"""
Race record reliability scoring.

A multiplier in [0, 1.5] used to weight races in every fit. Official races
and timed events are trusted more; GPS-implausible paces are discounted.
"""

from history.records import RacePerformance


STANDARD_DISTANCES = (5000.0, 10000.0, 21097.5, 42195.0)

MAX_QUALITY = 1.5
PLAUSIBLE_PACE_RANGE = (120.0, 600.0)  # seconds per km


class QualityScorer:
    """Rates how much a single race result can be trusted."""

    def __init__(
        self,
        race_bonus: float = 1.2,
        timed_event_bonus: float = 1.1,
        implausible_pace_penalty: float = 0.5,
        standard_distance_bonus: float = 1.1,
        standard_tolerance: float = 0.01,
    ):
        self.race_bonus = race_bonus
        self.timed_event_bonus = timed_event_bonus
        self.implausible_pace_penalty = implausible_pace_penalty
        self.standard_distance_bonus = standard_distance_bonus
        self.standard_tolerance = standard_tolerance

    def score(self, race: RacePerformance) -> float:
        """
        Quality multiplier for a race.

        Rules are multiplicative and applied in order: official race name,
        parkrun/time trial name, implausible pace, standard distance. The
        result is capped at 1.5.

        Args:
            race: Race to score

        Returns:
            Multiplier in [0, 1.5]
        """
        quality = 1.0
        name = (race.name or '').lower()

        if 'race' in name:
            quality *= self.race_bonus
        if 'parkrun' in name or 'time trial' in name:
            quality *= self.timed_event_bonus

        pace = race.pace_seconds_per_km
        low, high = PLAUSIBLE_PACE_RANGE
        if pace < low or pace > high:
            quality *= self.implausible_pace_penalty

        if self.is_standard_distance(race.distance_meters):
            quality *= self.standard_distance_bonus

        return min(MAX_QUALITY, quality)

    def is_standard_distance(self, distance_meters: float) -> bool:
        return any(
            abs(distance_meters - standard) <= standard * self.standard_tolerance
            for standard in STANDARD_DISTANCES
        )
