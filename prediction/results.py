"""Prediction result types."""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class PredictionInterval:
    """Asymmetric uncertainty interval around a prediction (seconds)."""
    lower: float
    upper: float
    margin: float
    percentile_80_lower: float
    percentile_80_upper: float
    uncertainty_percent: float = 0.0

    @classmethod
    def symmetric(cls, prediction: float, fraction: float) -> 'PredictionInterval':
        """Plain +/- fraction interval (used by fallbacks)."""
        lower = prediction * (1 - fraction)
        upper = prediction * (1 + fraction)
        return cls(
            lower=lower,
            upper=upper,
            margin=(upper - lower) / 2,
            percentile_80_lower=lower,
            percentile_80_upper=upper,
            uncertainty_percent=fraction * 100,
        )

    def scaled(self, factor: float) -> 'PredictionInterval':
        """Interval rescaled with the prediction it surrounds."""
        return PredictionInterval(
            lower=self.lower * factor,
            upper=self.upper * factor,
            margin=self.margin * factor,
            percentile_80_lower=self.percentile_80_lower * factor,
            percentile_80_upper=self.percentile_80_upper * factor,
            uncertainty_percent=self.uncertainty_percent,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'lower': round(self.lower),
            'upper': round(self.upper),
            'margin': round(self.margin),
            'percentile_80_lower': round(self.percentile_80_lower),
            'percentile_80_upper': round(self.percentile_80_upper),
            'uncertainty_percent': round(self.uncertainty_percent, 1),
        }


@dataclass(frozen=True)
class ContributingModels:
    """Individual model outputs behind a combined prediction (seconds)."""
    power_law: Optional[float] = None
    critical_speed: Optional[float] = None
    weighted_races: Optional[float] = None

    def values(self) -> List[float]:
        return [v for v in (self.power_law, self.critical_speed, self.weighted_races) if v is not None]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'power_law': None if self.power_law is None else round(self.power_law),
            'critical_speed': None if self.critical_speed is None else round(self.critical_speed),
            'weighted_races': None if self.weighted_races is None else round(self.weighted_races),
        }


@dataclass(frozen=True)
class PredictionFactor:
    """A human-readable influence on a prediction."""
    name: str
    impact: str          # 'positive' or 'negative'
    strength: str        # 'low', 'medium' or 'high'
    value: str = ''
    percentage: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'impact': self.impact,
            'strength': self.strength,
            'value': self.value,
            'percentage': self.percentage,
        }


METHOD_ENHANCED = 'Enhanced Multi-Model'
METHOD_POWER_LAW = 'Power Law'
METHOD_FALLBACK = 'Fallback'


@dataclass(frozen=True)
class PredictionResult:
    """Final prediction for one target distance."""
    distance_meters: float
    predicted_time_seconds: float
    confidence: float
    interval: PredictionInterval
    contributing_models: ContributingModels = field(default_factory=ContributingModels)
    factors: Tuple[PredictionFactor, ...] = ()
    method: str = METHOD_ENHANCED
    thirty_day_change: Optional[float] = None
    optimal_prediction: Optional[Dict[str, float]] = None
    race_training_adjustment: float = 0.0
    trace: Optional[Dict[str, Any]] = None

    @property
    def pace_seconds_per_km(self) -> float:
        return self.predicted_time_seconds / (self.distance_meters / 1000)

    def with_time(self, predicted_time_seconds: float, confidence: float) -> 'PredictionResult':
        """Copy with a new time (interval rescaled) and confidence."""
        factor = predicted_time_seconds / self.predicted_time_seconds
        return replace(
            self,
            predicted_time_seconds=predicted_time_seconds,
            confidence=confidence,
            interval=self.interval.scaled(factor),
        )

    def with_confidence(self, confidence: float) -> 'PredictionResult':
        return replace(self, confidence=confidence)

    def to_dict(self) -> Dict[str, Any]:
        result = {
            'distance_meters': self.distance_meters,
            'prediction': round(self.predicted_time_seconds),
            'confidence': round(self.confidence, 3),
            'range': self.interval.to_dict(),
            'method': self.method,
            'models': self.contributing_models.to_dict(),
            'factors': [f.to_dict() for f in self.factors],
            'thirty_day_change': self.thirty_day_change,
            'optimal_prediction': self.optimal_prediction,
            'race_training_adjustment': self.race_training_adjustment,
        }
        if self.trace is not None:
            result['trace'] = self.trace
        return result
