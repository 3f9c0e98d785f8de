"""Race and training history: canonical records, normalisation and storage."""

from .records import (
    DISTANCE_METERS,
    PersonalBest,
    PredictionData,
    RacePerformance,
    RunClassification,
    TrainingActivity,
)
from .normalize import normalize_activities, normalize_prediction_data, normalize_races
from .store import InMemoryStore, PerformanceStore, derive_personal_bests
from .synthetic import generate_history, generate_store

__all__ = [
    # Records
    'DISTANCE_METERS',
    'PersonalBest',
    'PredictionData',
    'RacePerformance',
    'RunClassification',
    'TrainingActivity',
    # Normalisation
    'normalize_activities',
    'normalize_prediction_data',
    'normalize_races',
    # Storage
    'InMemoryStore',
    'PerformanceStore',
    'derive_personal_bests',
    # Synthetic data
    'generate_history',
    'generate_store',
]
