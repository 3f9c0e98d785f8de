"""
Synthetic runner history for demos and tests.

Generates plausible race results and training logs for a handful of runner
archetypes:
- Race times follow a personal Riegel curve with day-to-day noise
- Training weeks mix easy runs with a weekend long run
- Compliance modelling (missed sessions) and HR drift with effort

All generation is driven by a seeded numpy RandomState so the same seed
always yields the same history.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional, Tuple
import numpy as np

from .records import RacePerformance, TrainingActivity
from .store import InMemoryStore


@dataclass
class RunnerArchetype:
    """Physiological and behavioural template for a synthetic runner."""
    name: str
    five_k_seconds: float         # Current 5K ability
    riegel_exponent: float        # Personal fatigue exponent
    runs_per_week: int
    easy_pace_factor: float       # Easy pace as a multiple of 5K pace
    weekly_km: float              # Typical weekly volume
    long_run_km: float
    hr_rest: float
    hr_max: float
    compliance_rate: float        # Probability of completing a planned run
    race_noise: float = 0.02      # Relative std-dev of race performances

    @property
    def five_k_pace(self) -> float:
        """5K pace in seconds per km."""
        return self.five_k_seconds / 5.0

    def race_time(self, distance_meters: float) -> float:
        """Noise-free race time at a distance from the personal curve."""
        return self.five_k_seconds * (distance_meters / 5000.0) ** self.riegel_exponent


# ═══════════════════════════════════════════════════════════════════════════════
# RUNNER ARCHETYPES
# ═══════════════════════════════════════════════════════════════════════════════

def create_beginner() -> RunnerArchetype:
    """Newer runner, low volume, steep fatigue curve."""
    return RunnerArchetype(
        name='beginner',
        five_k_seconds=1680.0,
        riegel_exponent=1.10,
        runs_per_week=3,
        easy_pace_factor=1.30,
        weekly_km=18.0,
        long_run_km=8.0,
        hr_rest=68.0,
        hr_max=192.0,
        compliance_rate=0.75,
        race_noise=0.03,
    )


def create_recreational() -> RunnerArchetype:
    """Regular club runner around a 22-minute 5K."""
    return RunnerArchetype(
        name='recreational',
        five_k_seconds=1320.0,
        riegel_exponent=1.06,
        runs_per_week=4,
        easy_pace_factor=1.25,
        weekly_km=35.0,
        long_run_km=16.0,
        hr_rest=58.0,
        hr_max=188.0,
        compliance_rate=0.85,
    )


def create_competitive() -> RunnerArchetype:
    """High-volume competitive runner with good endurance."""
    return RunnerArchetype(
        name='competitive',
        five_k_seconds=1050.0,
        riegel_exponent=1.04,
        runs_per_week=6,
        easy_pace_factor=1.22,
        weekly_km=75.0,
        long_run_km=28.0,
        hr_rest=48.0,
        hr_max=186.0,
        compliance_rate=0.95,
        race_noise=0.015,
    )


ARCHETYPES: Dict[str, Callable[[], RunnerArchetype]] = {
    'beginner': create_beginner,
    'recreational': create_recreational,
    'competitive': create_competitive,
}

RACE_DISTANCES = (5000, 5000, 10000, 21100)
RACE_NAMES = {
    5000: ('Saturday parkrun', 'Club 5K race'),
    10000: ('10K road race', 'Club 10K time trial'),
    21100: ('Half marathon race',),
}


# ═══════════════════════════════════════════════════════════════════════════════
# GENERATION
# ═══════════════════════════════════════════════════════════════════════════════

def _get_run_schedule(runs_per_week: int) -> List[int]:
    """Typical run days (0=Monday) for a given frequency."""
    schedules = {
        2: [2, 5],
        3: [1, 3, 6],
        4: [1, 3, 5, 6],
        5: [0, 1, 3, 5, 6],
        6: [0, 1, 2, 4, 5, 6],
        7: list(range(7)),
    }
    return schedules.get(runs_per_week, [1, 3, 6])


def generate_race_history(
    runner: RunnerArchetype,
    n_races: int,
    weeks: int,
    as_of: datetime,
    rng: np.random.RandomState,
) -> List[RacePerformance]:
    """
    Generate race results spread over the last `weeks` weeks.

    Args:
        runner: Runner archetype
        n_races: Number of races to generate
        weeks: History window in weeks
        as_of: Reference "now"
        rng: Random state

    Returns:
        Races sorted oldest first
    """
    races = []
    for _ in range(n_races):
        distance = int(rng.choice(RACE_DISTANCES))
        days_ago = int(rng.randint(3, max(4, weeks * 7)))
        # Older races were run at slightly lower fitness
        fitness_drift = 1.0 + 0.0002 * days_ago
        noise = 1.0 + rng.normal(0, runner.race_noise)
        time_seconds = runner.race_time(distance) * fitness_drift * max(0.9, noise)
        names = RACE_NAMES[distance]
        races.append(RacePerformance(
            distance_meters=float(distance),
            time_seconds=round(time_seconds, 1),
            date=as_of - timedelta(days=days_ago),
            name=names[rng.randint(len(names))],
        ))
    return sorted(races, key=lambda r: r.date)


def generate_training_activities(
    runner: RunnerArchetype,
    weeks: int,
    as_of: datetime,
    rng: np.random.RandomState,
    with_heart_rate: bool = True,
) -> List[TrainingActivity]:
    """
    Generate a training log ending the day before `as_of`.

    Args:
        runner: Runner archetype
        weeks: Number of weeks to generate
        as_of: Reference "now"
        rng: Random state
        with_heart_rate: Attach average heart rate to each run

    Returns:
        Activities sorted oldest first
    """
    run_days = _get_run_schedule(runner.runs_per_week)
    easy_km = (runner.weekly_km - runner.long_run_km) / max(1, len(run_days) - 1)
    start = (as_of - timedelta(weeks=weeks)).replace(hour=7, minute=0, second=0, microsecond=0)

    activities = []
    for week in range(weeks):
        for day in run_days:
            date = start + timedelta(days=week * 7 + day)
            if date >= as_of:
                continue
            if rng.random_sample() > runner.compliance_rate:
                continue

            is_long = day == run_days[-1]
            km = runner.long_run_km if is_long else easy_km
            km = max(2.0, km * rng.uniform(0.85, 1.15))
            pace = runner.five_k_pace * runner.easy_pace_factor * rng.uniform(0.95, 1.05)
            if is_long:
                pace *= 1.03

            heart_rate = None
            if with_heart_rate:
                reserve = runner.hr_max - runner.hr_rest
                effort = 0.68 if is_long else 0.62
                heart_rate = round(runner.hr_rest + reserve * (effort + rng.normal(0, 0.03)))

            activities.append(TrainingActivity(
                date=date,
                distance_meters=round(km * 1000.0, 1),
                duration_seconds=round(km * pace),
                average_heart_rate=heart_rate,
                name='Long run' if is_long else 'Easy run',
            ))
    return activities


def generate_history(
    archetype: str = 'recreational',
    weeks: int = 16,
    n_races: int = 4,
    seed: Optional[int] = 42,
    as_of: Optional[datetime] = None,
    with_heart_rate: bool = True,
) -> Tuple[List[RacePerformance], List[TrainingActivity]]:
    """
    Generate a complete race and training history for one archetype.

    Args:
        archetype: Key into ARCHETYPES
        weeks: History window in weeks
        n_races: Number of races (0 for a training-only log)
        seed: Random seed for reproducibility
        as_of: Reference "now" (defaults to today at noon)
        with_heart_rate: Attach heart rate to training runs

    Returns:
        Tuple of (races, activities)
    """
    if archetype not in ARCHETYPES:
        raise ValueError(f"Unknown archetype '{archetype}', expected one of {sorted(ARCHETYPES)}")

    runner = ARCHETYPES[archetype]()
    as_of = as_of or datetime.now().replace(hour=12, minute=0, second=0, microsecond=0)
    rng = np.random.RandomState(seed)

    races = generate_race_history(runner, n_races, weeks, as_of, rng)
    activities = generate_training_activities(runner, weeks, as_of, rng, with_heart_rate)
    return races, activities


def generate_store(
    archetype: str = 'recreational',
    weeks: int = 16,
    n_races: int = 4,
    seed: Optional[int] = 42,
    as_of: Optional[datetime] = None,
) -> InMemoryStore:
    """Synthetic history wrapped in an InMemoryStore with a fixed clock."""
    as_of = as_of or datetime.now().replace(hour=12, minute=0, second=0, microsecond=0)
    races, activities = generate_history(archetype, weeks, n_races, seed, as_of)
    return InMemoryStore(races=races, activities=activities, clock=lambda: as_of)


if __name__ == '__main__':
    print("Testing synthetic history generation...")

    now = datetime(2024, 6, 1, 12)
    races, activities = generate_history('recreational', weeks=12, seed=7, as_of=now)

    print(f"\n{len(races)} races:")
    for race in races:
        print(f"  {race.date:%Y-%m-%d}  {race.distance_meters:7.0f} m  "
              f"{race.time_seconds:7.1f} s  {race.name}")

    total_km = sum(a.distance_meters for a in activities) / 1000
    print(f"\n{len(activities)} activities, {total_km:.1f} km total")
