"""
Tests for the async prediction and training-metrics services.

Run with: python -m pytest tests/test_services.py -v
"""

import asyncio
from datetime import datetime, timedelta

import matplotlib
import pytest

matplotlib.use('Agg')

from analysis.reports import format_time, generate_prediction_report, generate_training_report
from analysis.visualizations import create_dashboard, plot_fitness_fatigue_form, save_dashboard
from history.records import RacePerformance, TrainingActivity
from history.store import InMemoryStore
from history.synthetic import generate_store
from prediction.errors import ConfigurationError, DataFetchError, InsufficientDataError
from prediction.params import PredictionParams
from services.prediction_service import CustomDistance, PredictionService, race_date_window
from services.training_metrics_service import TrainingMetricsService
from training_load.tracker import TrainingLoadSettings


NOW = datetime(2024, 6, 1, 12)


def scenario_a_store() -> InMemoryStore:
    return InMemoryStore(
        races=[
            RacePerformance(5000, 1200, NOW - timedelta(days=10)),
            RacePerformance(10000, 2520, NOW - timedelta(days=40)),
        ],
        activities=[
            TrainingActivity(NOW - timedelta(days=d), 8000, 2700, average_heart_rate=145)
            for d in range(1, 30, 2)
        ],
        clock=lambda: NOW,
    )


class FailingStore:
    """Store whose every read fails."""

    async def get_prediction_data(self, weeks_back):
        raise ConnectionError('store unavailable')

    async def get_all_personal_bests(self, weeks_back):
        raise ConnectionError('store unavailable')

    async def get_activities(self):
        raise ConnectionError('store unavailable')


class CountingStore(InMemoryStore):
    """InMemoryStore that counts activity fetches."""

    fetches = 0

    async def get_activities(self):
        self.fetches += 1
        return await super().get_activities()


class FakeMonotonic:
    """Manually advanced monotonic clock."""

    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


# =============================================================================
# Prediction service
# =============================================================================

class TestPredictionService:
    """Tests for PredictionService."""

    def test_default_distances(self):
        """A report covers 5K, 10K, half and full marathon in order."""
        service = PredictionService(scenario_a_store(), clock=lambda: NOW)
        report = asyncio.run(service.generate_predictions())

        assert list(report.predictions) == ['5K', '10K', '21.1K', '42.2K']
        assert report.predictions['5K'].predicted_time_seconds == pytest.approx(1200, rel=0.05)
        assert report.last_updated == NOW
        assert report.endurance_profile.base_race_count == 2
        assert report.data_quality.level in ('low', 'medium', 'high')

    def test_custom_distances(self):
        """Custom distances are predicted alongside the defaults."""
        service = PredictionService(scenario_a_store(), clock=lambda: NOW)
        report = asyncio.run(service.generate_predictions(
            custom_distances=[CustomDistance('15K', 15000), {'label': 'Mile', 'meters': 1609.34}],
        ))
        assert list(report.predictions)[0] == 'Mile'
        ten_k = report.predictions['10K'].predicted_time_seconds
        assert report.predictions['15K'].predicted_time_seconds > ten_k

    def test_to_dict(self):
        """The report serialises with rounded predictions."""
        service = PredictionService(scenario_a_store(), clock=lambda: NOW)
        payload = asyncio.run(service.generate_predictions()).to_dict()
        assert isinstance(payload['predictions']['5K']['prediction'], int)
        assert payload['last_updated'] == NOW.isoformat()
        assert 'score' in payload['data_quality']

    def test_conditions_mapping(self):
        """Race conditions may be passed as a camelCase mapping."""
        service = PredictionService(scenario_a_store(), clock=lambda: NOW)
        plain = asyncio.run(service.generate_predictions())
        hot = asyncio.run(service.generate_predictions(race_conditions={'temperature': 30, 'windSpeed': 25}))
        assert hot.predictions['10K'].predicted_time_seconds > plain.predictions['10K'].predicted_time_seconds

    def test_training_only(self):
        """Activities alone still give predictions, with a warning."""
        store = InMemoryStore(
            activities=[TrainingActivity(NOW - timedelta(days=d), 8000, 2880) for d in range(1, 41, 2)],
            clock=lambda: NOW,
        )
        report = asyncio.run(PredictionService(store, clock=lambda: NOW).generate_predictions())
        assert len(report.predictions) == 4
        assert all(r.confidence <= 0.4 for r in report.predictions.values())
        assert report.warnings

    def test_insufficient_data(self):
        """Fewer than two races and two activities raises InsufficientDataError."""
        store = InMemoryStore(
            races=[RacePerformance(5000, 1200, NOW - timedelta(days=3))],
            activities=[TrainingActivity(NOW - timedelta(days=1), 8000, 2880)],
            clock=lambda: NOW,
        )
        with pytest.raises(InsufficientDataError) as excinfo:
            asyncio.run(PredictionService(store, clock=lambda: NOW).generate_predictions())
        assert excinfo.value.race_count == 1
        assert excinfo.value.activity_count == 1

    def test_store_failure(self):
        """Store failures surface as DataFetchError."""
        service = PredictionService(FailingStore(), clock=lambda: NOW)
        with pytest.raises(DataFetchError) as excinfo:
            asyncio.run(service.generate_predictions())
        assert isinstance(excinfo.value.__cause__, ConnectionError)

    def test_cancellation_propagates(self):
        """Cancelling a request is not converted into DataFetchError."""

        class SlowStore(InMemoryStore):
            async def get_prediction_data(self, weeks_back):
                await asyncio.sleep(10)

        async def cancel_request():
            service = PredictionService(SlowStore(clock=lambda: NOW), clock=lambda: NOW)
            task = asyncio.ensure_future(service.generate_predictions())
            await asyncio.sleep(0)
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                return 'cancelled'
            return 'completed'

        assert asyncio.run(cancel_request()) == 'cancelled'

    def test_concurrent_requests_agree(self):
        """Concurrent requests over the same store give identical results."""
        service = PredictionService(scenario_a_store(), clock=lambda: NOW)

        async def both():
            return await asyncio.gather(service.generate_predictions(), service.generate_predictions())

        first, second = asyncio.run(both())
        assert first.to_dict() == second.to_dict()

    def test_invalid_params(self):
        """Invalid parameters are rejected at construction."""
        with pytest.raises(ConfigurationError):
            PredictionService(scenario_a_store(), PredictionParams(confidence_min=0.9, confidence_max=0.5))

    def test_invalid_weeks(self):
        """weeks_back must be positive."""
        service = PredictionService(scenario_a_store(), clock=lambda: NOW)
        with pytest.raises(ConfigurationError):
            asyncio.run(service.generate_predictions(weeks_back=0))

    @pytest.mark.parametrize('text', ['15K', '=15000', 'Hill=-5', 'Trail=far'])
    def test_invalid_custom_distance(self, text):
        """Malformed custom distances raise ConfigurationError."""
        with pytest.raises(ConfigurationError):
            CustomDistance.parse(text)

    def test_parse_custom_distance(self):
        """LABEL=METERS strings parse into CustomDistance."""
        assert CustomDistance.parse('Mile=1609.34') == CustomDistance('Mile', 1609.34)

    @pytest.mark.parametrize('days,expected', [(1, (1, 9)), (10, (10, 10)), (200, (200, 24)), (-3, (-3, 8))])
    def test_race_date_window(self, days, expected):
        """History window is ceil(days / 7) + 8 weeks, clamped to [8, 24]."""
        assert race_date_window(NOW + timedelta(days=days), NOW) == expected

    def test_race_date_predictions(self):
        """Predicting for a race date applies the taper."""
        service = PredictionService(scenario_a_store(), clock=lambda: NOW)
        plain = asyncio.run(service.generate_predictions(weeks_back=10))
        tapered = asyncio.run(service.generate_predictions_for_race_date(NOW + timedelta(days=10)))
        assert tapered.predictions['10K'].predicted_time_seconds < plain.predictions['10K'].predicted_time_seconds


# =============================================================================
# Training metrics service
# =============================================================================

class TestTrainingMetricsService:
    """Tests for TrainingMetricsService."""

    def make_service(self, monotonic=None):
        store = CountingStore(
            races=[RacePerformance(5000, 1200, NOW - timedelta(days=10))],
            activities=[
                TrainingActivity(NOW - timedelta(days=d), 8000, 2700, average_heart_rate=150)
                for d in range(1, 60)
            ],
            clock=lambda: NOW,
        )
        service = TrainingMetricsService(store, clock=lambda: NOW, monotonic=monotonic or FakeMonotonic())
        return store, service

    def test_metrics(self):
        """Metrics include fitness, VDOT and recovery."""
        _, service = self.make_service()
        metrics = asyncio.run(service.get_training_metrics())
        assert metrics.fitness.ctl > 0
        assert metrics.vdot.value == pytest.approx(49.8, abs=0.1)
        assert metrics.recovery.last_activity is not None
        assert metrics.last_updated == NOW

    def test_cache_within_ttl(self):
        """A second call within five minutes is served from cache."""
        clock = FakeMonotonic()
        store, service = self.make_service(clock)
        first = asyncio.run(service.get_training_metrics())
        clock.now += 299
        second = asyncio.run(service.get_training_metrics())
        assert second is first
        assert store.fetches == 1

    def test_cache_expires(self):
        """After the TTL the summary is recomputed."""
        clock = FakeMonotonic()
        store, service = self.make_service(clock)
        asyncio.run(service.get_training_metrics())
        clock.now += 301
        asyncio.run(service.get_training_metrics())
        assert store.fetches == 2

    def test_update_settings_invalidates(self):
        """Changing settings clears the cache and changes the load."""
        store, service = self.make_service()
        before = asyncio.run(service.get_training_metrics())
        service.update_settings({'maxHR': 175, 'restingHR': 50})
        after = asyncio.run(service.get_training_metrics())
        assert store.fetches == 2
        assert service.settings == TrainingLoadSettings(50, 175, 'male')
        assert after.fitness.ctl != before.fitness.ctl

    def test_invalid_settings(self):
        """Invalid settings are rejected and the old ones kept."""
        _, service = self.make_service()
        with pytest.raises(ConfigurationError):
            service.update_settings(TrainingLoadSettings(gender='unknown'))
        assert service.settings == TrainingLoadSettings()

    def test_store_failure(self):
        """Store failures surface as DataFetchError."""
        service = TrainingMetricsService(FailingStore(), clock=lambda: NOW)
        with pytest.raises(DataFetchError):
            asyncio.run(service.get_training_metrics())


# =============================================================================
# Reports
# =============================================================================

class TestReports:
    """Tests for text report formatting."""

    @pytest.mark.parametrize('seconds,expected', [
        (1200, '20:00'), (3725.4, '1:02:05'), (59.6, '1:00'), (None, '--'), (float('inf'), '--'),
    ])
    def test_format_time(self, seconds, expected):
        """Times format as M:SS or H:MM:SS."""
        assert format_time(seconds) == expected

    def test_reports_render(self):
        """Prediction and training reports render for synthetic history."""
        store = generate_store('recreational', weeks=16, seed=42, as_of=NOW)
        report = asyncio.run(PredictionService(store, clock=lambda: NOW).generate_predictions())
        metrics = asyncio.run(TrainingMetricsService(store, clock=lambda: NOW).get_training_metrics())

        text = generate_prediction_report(report)
        assert 'PREDICTIONS' in text
        assert '42.2K' in text
        assert 'Form status' in generate_training_report(metrics)

    def test_dashboard(self, tmp_path):
        """The dashboard renders to an image file."""
        store = generate_store('competitive', weeks=16, seed=1, as_of=NOW)
        report = asyncio.run(PredictionService(store, clock=lambda: NOW).generate_predictions())
        metrics = asyncio.run(TrainingMetricsService(store, clock=lambda: NOW).get_training_metrics())

        path = tmp_path / 'dashboard.png'
        save_dashboard(str(path), report=report, metrics=metrics)
        assert path.exists() and path.stat().st_size > 0

    def test_charts_without_load(self):
        """Charts handle a log without heart rate."""
        store = InMemoryStore(
            races=[RacePerformance(5000, 1200, NOW - timedelta(days=10))],
            activities=[TrainingActivity(NOW - timedelta(days=1), 8000, 2880)],
            clock=lambda: NOW,
        )
        metrics = asyncio.run(TrainingMetricsService(store, clock=lambda: NOW).get_training_metrics())
        fig = plot_fitness_fatigue_form(metrics)
        assert fig.axes[0].get_title() == 'Fitness, Fatigue and Form'
        assert len(create_dashboard(metrics=metrics).axes) == 4
