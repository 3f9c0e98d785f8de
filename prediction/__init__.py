"""
Race-time prediction engine.

This package provides:
- Race quality scoring
- Personal endurance profile fitting (power law + critical speed)
- Weighted extrapolation of recent races
- Multi-model combination with training, taper and conditions adjustments
- Confidence calibration and uncertainty intervals
- Cross-distance plausibility enforcement
"""

from .errors import (
    ConfigurationError,
    DataFetchError,
    ForecastError,
    InsufficientDataError,
    NumericInstabilityError,
)
from .params import PredictionParams, load_params
from .quality import QualityScorer
from .endurance import EnduranceParameterEstimator, EnduranceProfile, default_profile, fit_critical_speed
from .extrapolation import ExtrapolationResult, WeightedRaceExtrapolator
from .adjustments import RaceConditions, conditions_adjustment, taper_adjustment
from .results import ContributingModels, PredictionFactor, PredictionInterval, PredictionResult
from .confidence import ConfidenceEstimator
from .plausibility import PlausibilityEnforcer
from .data_quality import DataQuality, assess_data_quality
from .predictor import MultiModelPredictor

__all__ = [
    # Errors
    'ConfigurationError',
    'DataFetchError',
    'ForecastError',
    'InsufficientDataError',
    'NumericInstabilityError',
    # Parameters
    'PredictionParams',
    'load_params',
    # Models
    'QualityScorer',
    'EnduranceParameterEstimator',
    'EnduranceProfile',
    'default_profile',
    'fit_critical_speed',
    'ExtrapolationResult',
    'WeightedRaceExtrapolator',
    'RaceConditions',
    'conditions_adjustment',
    'taper_adjustment',
    # Results
    'ContributingModels',
    'PredictionFactor',
    'PredictionInterval',
    'PredictionResult',
    # Calibration
    'ConfidenceEstimator',
    'PlausibilityEnforcer',
    'DataQuality',
    'assess_data_quality',
    # Engine
    'MultiModelPredictor',
]
