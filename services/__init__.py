"""Async services wiring the storage collaborator to the modelling core."""

from .prediction_service import (
    CustomDistance,
    PredictionReport,
    PredictionService,
    build_report,
)
from .training_metrics_service import TrainingMetricsService

__all__ = [
    'CustomDistance',
    'PredictionReport',
    'PredictionService',
    'build_report',
    'TrainingMetricsService',
]
