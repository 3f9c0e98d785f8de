"""
Tests for the race-time prediction engine.

Tests cover:
1. Parameters and race quality
2. Endurance profile fitting (power law, critical speed)
3. Weighted extrapolation and adjustments
4. Confidence and intervals
5. Cross-distance plausibility
6. The multi-model predictor and its fallback ladder

Run with: python -m pytest tests/test_prediction.py -v
"""

import json
import math
from datetime import datetime, timedelta

import numpy as np
import pytest

from history.records import PredictionData, RacePerformance, RunClassification, TrainingActivity
from prediction.adjustments import (
    RaceConditions,
    conditions_adjustment,
    optimal_conditions_prediction,
    taper_adjustment,
    training_consistency,
)
from prediction.confidence import ConfidenceEstimator
from prediction.data_quality import assess_data_quality
from prediction.endurance import (
    EnduranceParameterEstimator,
    EnduranceProfile,
    default_profile,
    fit_critical_speed,
)
from prediction.errors import ConfigurationError, InsufficientDataError, NumericInstabilityError
from prediction.extrapolation import WeightedRaceExtrapolator
from prediction.factors import identify_prediction_factors
from prediction.features import (
    INVALID_FEATURES,
    TrainingFeatures,
    calculate_distance_experience,
    calculate_form_trend,
    calculate_hr_efficiency,
    calculate_long_run_preparation,
    calculate_volume_consistency,
    extract_features,
    feature_log_adjustment,
)
from prediction.params import PredictionParams, load_params
from prediction.plausibility import PlausibilityEnforcer
from prediction.predictor import MultiModelPredictor
from prediction.quality import QualityScorer
from prediction.results import (
    METHOD_ENHANCED,
    METHOD_FALLBACK,
    METHOD_POWER_LAW,
    PredictionInterval,
    PredictionResult,
)


NOW = datetime(2024, 6, 1, 12)
STANDARD = {'5K': 5000, '10K': 10000, '21.1K': 21100, '42.2K': 42200}


def scenario_a() -> PredictionData:
    """5K in 20:00 ten days ago, 10K in 42:00 forty days ago."""
    return PredictionData(recent_races=[
        RacePerformance(5000, 1200, NOW - timedelta(days=10)),
        RacePerformance(10000, 2520, NOW - timedelta(days=40)),
    ])


def easy_runs(n=20, heart_rate=None) -> list:
    return [
        TrainingActivity(NOW - timedelta(days=2 * i + 1), 8000, 2880, average_heart_rate=heart_rate)
        for i in range(n)
    ]


def make_result(distance, time_seconds, confidence=0.6) -> PredictionResult:
    return PredictionResult(
        distance_meters=distance,
        predicted_time_seconds=time_seconds,
        confidence=confidence,
        interval=PredictionInterval.symmetric(time_seconds, 0.05),
    )


# =============================================================================
# Parameters
# =============================================================================

class TestPredictionParams:
    """Tests for PredictionParams configuration."""

    def test_defaults_valid(self):
        """Default parameters pass validation."""
        ok, message = PredictionParams().validate()
        assert ok, message

    def test_json_round_trip(self):
        """to_dict survives JSON and from_dict restores tuples and int keys."""
        params = PredictionParams()
        restored = PredictionParams.from_dict(json.loads(json.dumps(params.to_dict())))
        assert restored == params

    def test_unknown_key(self):
        """Unknown fields are rejected."""
        with pytest.raises(TypeError):
            PredictionParams.from_dict({'not_a_param': 1})

    def test_weights_must_sum_to_one(self):
        """Combination weights are validated."""
        ok, message = PredictionParams(weights_two_models=(0.5, 0.7)).validate()
        assert not ok
        assert 'weights_two_models' in message

    def test_load_params(self, tmp_path):
        """Partial JSON files keep defaults for missing fields."""
        path = tmp_path / 'params.json'
        path.write_text(json.dumps({'recency_decay_days': 45}))
        params = load_params(path)
        assert params.recency_decay_days == 45
        assert params.default_exponent == 1.06

    def test_load_invalid_params(self, tmp_path):
        """Invalid files raise ConfigurationError."""
        path = tmp_path / 'params.json'
        path.write_text(json.dumps({'exponent_min': 1.2}))
        with pytest.raises(ConfigurationError):
            load_params(path)


# =============================================================================
# Race quality
# =============================================================================

class TestQualityScorer:
    """Tests for race reliability scoring."""

    def test_official_race(self):
        """Named races at standard distances are trusted most."""
        race = RacePerformance(5000, 1200, NOW, name='Club 5K race')
        assert QualityScorer().score(race) == pytest.approx(1.2 * 1.1)

    def test_parkrun(self):
        """Timed events get a smaller bonus."""
        race = RacePerformance(5000, 1200, NOW, name='Saturday parkrun')
        assert QualityScorer().score(race) == pytest.approx(1.1 * 1.1)

    def test_implausible_pace(self):
        """GPS-implausible paces are discounted."""
        race = RacePerformance(5000, 300, NOW)
        assert QualityScorer().score(race) == pytest.approx(0.5 * 1.1)

    def test_capped(self):
        """Quality never exceeds 1.5."""
        race = RacePerformance(5000, 1200, NOW, name='parkrun race time trial')
        assert QualityScorer().score(race) <= 1.5


# =============================================================================
# Endurance profile
# =============================================================================

class TestEnduranceProfile:
    """Tests for power-law and critical-speed fitting."""

    def test_two_race_fit(self):
        """Two races define the exponent exactly."""
        profile = EnduranceParameterEstimator().estimate(scenario_a().recent_races, NOW)
        assert profile.exponent == pytest.approx(math.log(2.1) / math.log(2), rel=1e-9)
        assert profile.predict_time(5000) == pytest.approx(1200, rel=1e-9)
        assert profile.base_race_count == 2
        assert not profile.has_critical_speed

    def test_exponent_clamped(self):
        """The exponent is clamped to [1.02, 1.12] but the raw fit is kept."""
        races = [
            RacePerformance(5000, 1200, NOW - timedelta(days=5)),
            RacePerformance(10000, 3000, NOW - timedelta(days=6)),
        ]
        profile = EnduranceParameterEstimator().estimate(races, NOW)
        assert profile.exponent == 1.12
        assert profile.raw_exponent == pytest.approx(math.log(2.5) / math.log(2))

    def test_default_profile_with_one_race(self):
        """Fewer than two valid races gives the population default."""
        races = [RacePerformance(5000, 1200, NOW), RacePerformance(400, 60, NOW)]
        profile = EnduranceParameterEstimator().estimate(races, NOW)
        assert profile.alpha == default_profile().alpha
        assert profile.exponent == 1.06
        assert profile.base_race_count == 1

    def test_critical_speed_fit(self):
        """D = CS * T + D' is recovered from exact data."""
        times = np.array([300.0, 600.0, 1200.0])
        cs, d_prime = fit_critical_speed(4.0 * times + 200, times)
        assert cs == pytest.approx(4.0)
        assert d_prime == pytest.approx(200.0)

    def test_critical_speed_rejected(self):
        """Identical times or implausible speeds give no fit."""
        assert fit_critical_speed([1000, 1200, 1400], [300, 300, 300]) == (None, None)
        times = np.array([300.0, 600.0, 1200.0])
        assert fit_critical_speed(10.0 * times, times) == (None, None)

    def test_critical_speed_time(self):
        """CS time is (D - D') / CS and unavailable below D'."""
        profile = EnduranceProfile(alpha=-2.0, exponent=1.06, critical_speed=4.0, anaerobic_capacity=200)
        assert profile.predict_critical_speed_time(5000) == pytest.approx(1200)
        assert profile.predict_critical_speed_time(100) is None


# =============================================================================
# Extrapolation
# =============================================================================

class TestWeightedExtrapolation:
    """Tests for weighted race extrapolation."""

    def test_consistent_races(self):
        """Races on the same power law extrapolate to that law."""
        exponent = math.log(2.1) / math.log(2)
        result = WeightedRaceExtrapolator().extrapolate(5000, scenario_a().recent_races, exponent, NOW)
        assert result.is_available
        assert result.predicted_time == pytest.approx(1200, rel=1e-9)
        assert result.races_used == 2

    def test_out_of_range_ratio(self):
        """Races more than 10x shorter than the target are skipped."""
        races = [RacePerformance(1000, 200, NOW - timedelta(days=1))]
        result = WeightedRaceExtrapolator().extrapolate(42200, races, 1.06, NOW)
        assert not result.is_available
        assert result.predicted_time is None


# =============================================================================
# Features and adjustments
# =============================================================================

class TestFeaturesAndAdjustments:
    """Tests for training features, taper and race conditions."""

    def test_features_need_activities(self):
        """Fewer than 5 recent activities disables feature adjustments."""
        data = PredictionData(activities=easy_runs(3))
        assert not extract_features(10000, data, NOW).is_valid

    def test_volume_consistency_bounds(self):
        """Consistency is in [0, 1] and perfect for identical weeks."""
        value = calculate_volume_consistency(easy_runs(20))
        assert 0.0 <= value <= 1.0
        assert calculate_volume_consistency([]) == 0.0

    def test_training_consistency(self):
        """Consistency saturates at 12 activities in 28 days."""
        assert training_consistency(PredictionData(activities=easy_runs(20)), NOW) == 1.0
        assert training_consistency(PredictionData(), NOW) == 0.0

    @pytest.mark.parametrize('days,consistency,optimal,expected', [
        (0, 1.0, False, 0.0),
        (10, 1.0, False, -0.01),
        (10, 1.0, True, -0.025),
        (30, 1.0, False, -(30 / 7) * 0.002),
        (100, 0.5, False, -0.005),
    ])
    def test_taper(self, days, consistency, optimal, expected):
        """Taper effect depends on days to race and consistency."""
        conditions = RaceConditions(optimal_taper=optimal)
        assert taper_adjustment(days, consistency, conditions) == pytest.approx(expected)

    @pytest.mark.parametrize('temperature,expected', [
        (2, 0.02), (12.4, 0.0), (17.5, 0.01), (22.4, 0.01), (35, 0.08),
    ])
    def test_temperature(self, temperature, expected):
        """Temperatures map to the nearest 5 C bucket."""
        assert conditions_adjustment(5000, RaceConditions(temperature=temperature)) == pytest.approx(expected)

    def test_conditions_are_additive(self):
        """Wind and altitude penalties add up."""
        conditions = RaceConditions(wind_speed=25, altitude=2000)
        assert conditions_adjustment(5000, conditions) == pytest.approx(0.03 + 0.04)

    def test_bonuses_only_without_measurements(self):
        """Weather and course bonuses apply only when no value is given."""
        assert conditions_adjustment(5000, RaceConditions(optimal_weather=True, flat_course=True)) == \
            pytest.approx(-0.025)
        assert conditions_adjustment(5000, RaceConditions(temperature=10, optimal_weather=True)) == 0.0

    def test_camel_case_conditions(self):
        """from_dict accepts camelCase keys."""
        conditions = RaceConditions.from_dict({'windSpeed': 15, 'flatCourse': True})
        assert conditions.wind_speed == 15.0
        assert conditions.flat_course

    def test_optimal_conditions(self):
        """Hot races improve under optimal conditions."""
        optimal = optimal_conditions_prediction(1200, 5000, RaceConditions(temperature=30))
        assert optimal['time'] == round(1200 / 1.06 * 0.99)
        assert optimal['improvement'] > 0

    @pytest.mark.parametrize('race_distances,expected', [
        ([5000, 10000, 20000, 21097.5, 4000], 0.6),
        ([10000] * 7, 1.0),
        ([], 0.0),
    ])
    def test_distance_experience(self, race_distances, expected):
        """Races within 0.5-2x of a 10K count, saturating at five."""
        races = [RacePerformance(d, d * 0.25, NOW - timedelta(days=i + 1)) for i, d in enumerate(race_distances)]
        assert calculate_distance_experience(10000, races) == pytest.approx(expected)

    @pytest.mark.parametrize('times_recent_first,expected', [
        ([1140, 1200], 12 / 240),
        ([1140, 1160, 1200, 1220], 12 / 242),
        ([1260, 1200], 0.0),
        ([1200], 0.0),
    ])
    def test_form_trend(self, times_recent_first, expected):
        """5K pace improvement of the recent half over the older half."""
        races = [
            RacePerformance(5000, t, NOW - timedelta(days=10 * (i + 1)))
            for i, t in enumerate(times_recent_first)
        ]
        # Races under 3 km are ignored
        races.append(RacePerformance(1000, 150, NOW - timedelta(days=1)))
        assert calculate_form_trend(races) == pytest.approx(expected)

    @pytest.mark.parametrize('heart_rates_recent_first,expected', [
        ([150, 150, 140, 140], 10 / 140),
        ([160, 150, 150], 10 / 150),
        ([140, 150, 150], 0.0),
        ([150, 140], 0.0),
    ])
    def test_hr_efficiency(self, heart_rates_recent_first, expected):
        """Relative change of heart rate per unit pace at a constant 5:00/km."""
        activities = [
            TrainingActivity(NOW - timedelta(days=i + 1), 10000, 3000, average_heart_rate=hr)
            for i, hr in enumerate(heart_rates_recent_first)
        ]
        assert calculate_hr_efficiency(activities) == pytest.approx(expected)

    @pytest.mark.parametrize('distances,expected', [
        ([13000] * 4 + [18000] * 2, 0.6 * 0.6 + 0.4 * 0.4),
        ([20000] * 20, 1.0),
        ([8000] * 10, 0.0),
    ])
    def test_long_run_preparation(self, distances, expected):
        """Long runs are >= 60% and very long runs >= 80% of a half marathon."""
        activities = [TrainingActivity(NOW - timedelta(days=i + 1), d, d * 0.33) for i, d in enumerate(distances)]
        assert calculate_long_run_preparation(21100, activities) == pytest.approx(expected)

    @pytest.mark.parametrize('target,hr_efficiency,expected', [
        (10000, 0.1, -0.015 - 0.008 - 0.005 - 0.0015),
        (10000, None, -0.015 - 0.008 - 0.005),
        (42195, 0.1, -0.015 - 0.008 - 0.005 - 0.0015 - 0.01),
    ])
    def test_feature_coefficients(self, target, hr_efficiency, expected):
        """Each feature score is weighted by its own coefficient."""
        features = TrainingFeatures(
            is_valid=True,
            volume_consistency=0.5,
            distance_experience=0.4,
            form_trend=0.2,
            hr_efficiency=hr_efficiency,
            long_run_preparation=0.5,
        )
        assert feature_log_adjustment(target, features) == pytest.approx(expected)
        assert feature_log_adjustment(target, INVALID_FEATURES) == 0.0

    @pytest.mark.parametrize('target,elevation,flat_course,expected', [
        (10000, 50, False, 5 * 1.75 / 60 / 5),
        (5000, 100, False, 20 * 1.75 / 60 / 5),
        (10000, 100, True, 10 * 1.75 / 60 / 5),
        (10000, 0, True, -0.01),
    ])
    def test_elevation(self, target, elevation, flat_course, expected):
        """Climbing costs 1.75 min per 60 m/km relative to a 5:00/km pace."""
        conditions = RaceConditions(elevation=elevation, flat_course=flat_course)
        assert conditions_adjustment(target, conditions) == pytest.approx(expected)


# =============================================================================
# Confidence
# =============================================================================

class TestConfidence:
    """Tests for confidence scoring and intervals."""

    def test_bounds(self):
        """Confidence stays in [0.4, 0.85]."""
        estimator = ConfidenceEstimator()
        low = estimator.estimate(5000, [1200], PredictionData(), NOW)
        races = [RacePerformance(5000, 1200 + i, NOW - timedelta(days=i + 1)) for i in range(10)]
        high = estimator.estimate(
            5000, [1200, 1201, 1199], PredictionData(recent_races=races, activities=easy_runs(40)), NOW)
        assert low == 0.4
        assert high == 0.85

    def test_agreement(self):
        """Identical model outputs earn the full agreement bonus."""
        estimator = ConfidenceEstimator()
        assert estimator.agreement([1200, 1200]) == pytest.approx(0.3)
        assert estimator.agreement([1200]) == 0.0

    def test_residual_factor(self):
        """Back-test factor is 1 with few races and clamped otherwise."""
        estimator = ConfidenceEstimator()
        profile = EnduranceParameterEstimator().estimate(scenario_a().recent_races, NOW)
        assert estimator.residual_variance_factor(scenario_a().recent_races, profile) == 1.0

        races = scenario_a().recent_races + [RacePerformance(10000, 2520, NOW - timedelta(days=50))]
        assert estimator.residual_variance_factor(races, profile) == 0.3

    def test_interval_is_asymmetric(self):
        """The upper bound is further from the prediction than the lower."""
        estimator = ConfidenceEstimator()
        interval = estimator.interval(1200, 0.6, 5000, [], default_profile())
        assert interval.lower < 1200 < interval.upper
        assert interval.upper - 1200 > 1200 - interval.lower
        assert interval.percentile_80_lower > interval.lower


# =============================================================================
# Plausibility
# =============================================================================

class TestPlausibility:
    """Tests for cross-distance plausibility."""

    def test_faster_pace_is_reset(self):
        """A longer race at a faster pace is reset with the fixed ratio."""
        predictions = {'5K': make_result(5000, 1200), '10K': make_result(10000, 2300)}
        adjusted = PlausibilityEnforcer().enforce(predictions)

        assert adjusted['10K'].predicted_time_seconds == pytest.approx(1200 * 2.08)
        assert adjusted['10K'].confidence == pytest.approx(0.6 * 0.8)
        assert adjusted['10K'].interval.upper == pytest.approx(1200 * 2.08 * 1.05)
        assert predictions['10K'].predicted_time_seconds == 2300

    def test_monotonic_pace(self):
        """After enforcement pace never decreases with distance."""
        predictions = {
            '5K': make_result(5000, 1200),
            '10K': make_result(10000, 2300),
            '21.1K': make_result(21100, 4500),
            '42.2K': make_result(42200, 9000),
        }
        adjusted = PlausibilityEnforcer().enforce(predictions)
        paces = [adjusted[label].pace_seconds_per_km for label in STANDARD]
        assert paces == sorted(paces)

    def test_idempotent(self):
        """Enforcing twice changes nothing further."""
        predictions = {'5K': make_result(5000, 1200), '10K': make_result(10000, 2300)}
        enforcer = PlausibilityEnforcer()
        once = enforcer.enforce(predictions)
        twice = enforcer.enforce(once)
        assert twice['10K'].predicted_time_seconds == once['10K'].predicted_time_seconds

    def test_confidence_floor(self):
        """Confidence never drops below 0.3."""
        predictions = {'5K': make_result(5000, 1200, 0.31), '10K': make_result(10000, 2300, 0.31)}
        adjusted = PlausibilityEnforcer().enforce(predictions)
        assert adjusted['10K'].confidence == 0.3

    def test_custom_distances_untouched(self):
        """Non-standard distances are not compared."""
        predictions = {'5K': make_result(5000, 1200), '15K': make_result(15000, 3000)}
        adjusted = PlausibilityEnforcer().enforce(predictions)
        assert adjusted['15K'].predicted_time_seconds == 3000

    @pytest.mark.parametrize('times,expected_confidence', [
        ({'5K': 1200, '10K': 2760}, {'5K': 0.6, '10K': 0.42}),
        ({'5K': 1200, '10K': 2462, '21.1K': 5219.7}, {'5K': 0.6, '10K': 0.6, '21.1K': 0.42}),
        ({'21.1K': 5000, '42.2K': 11600}, {'21.1K': 0.6, '42.2K': 0.42}),
        ({'5K': 1200, '10K': 2520}, {'5K': 0.6, '10K': 0.6}),
    ])
    def test_ratio_bounds_penalty(self, times, expected_confidence):
        """Ratios outside the bounds table cost 30% confidence without changing times."""
        predictions = {label: make_result(STANDARD[label], t) for label, t in times.items()}
        adjusted = PlausibilityEnforcer().enforce(predictions)
        for label, t in times.items():
            assert adjusted[label].predicted_time_seconds == t
            assert adjusted[label].confidence == pytest.approx(expected_confidence[label])

    def test_reset_can_exceed_time_cap(self, caplog):
        """Pace monotonicity wins over the 10 hour cap, with a warning."""
        predictions = {'21.1K': make_result(21100, 20000), '42.2K': make_result(42200, 300 * 42.2)}
        with caplog.at_level('WARNING', logger='prediction.plausibility'):
            adjusted = PlausibilityEnforcer().enforce(predictions)

        assert adjusted['42.2K'].predicted_time_seconds == pytest.approx(20000 * 2.10)
        assert adjusted['42.2K'].predicted_time_seconds > PredictionParams().max_time_seconds
        assert 'exceeds' in caplog.text


# =============================================================================
# Predictor
# =============================================================================

class TestMultiModelPredictor:
    """Tests for the full predictor and its fallback ladder."""

    def test_scenario_a(self):
        """Two races give finite, monotonic predictions; 5K near 20:00."""
        predictor = MultiModelPredictor()
        profile, predictions = predictor.predict_all(STANDARD, scenario_a(), NOW)

        times = [predictions[label].predicted_time_seconds for label in STANDARD]
        assert all(math.isfinite(t) and t > 0 for t in times)
        assert times == sorted(times)
        assert predictions['5K'].predicted_time_seconds == pytest.approx(1200, rel=0.05)
        assert predictions['5K'].method == METHOD_ENHANCED
        assert list(predictions) == list(STANDARD)

    def test_scenario_b(self):
        """Training-only history still predicts with low confidence."""
        data = PredictionData(activities=easy_runs(20))
        _, predictions = MultiModelPredictor().predict_all(STANDARD, data, NOW)

        assert len(predictions) == 4
        for result in predictions.values():
            assert math.isfinite(result.predicted_time_seconds)
            assert result.confidence <= 0.4

    def test_idempotent(self):
        """Identical inputs give identical results."""
        predictor = MultiModelPredictor()
        data = PredictionData(recent_races=scenario_a().recent_races, activities=easy_runs(20, 145))
        profile = predictor.fit_profile(data, NOW)
        a = predictor.predict(21100, data, profile, NOW, days_until_race=10)
        b = predictor.predict(21100, data, profile, NOW, days_until_race=10)
        assert a == b

    def test_bounds_property(self):
        """Every prediction is positive, finite and inside its interval."""
        predictor = MultiModelPredictor()
        data = PredictionData(recent_races=scenario_a().recent_races, activities=easy_runs(20, 145))
        profile = predictor.fit_profile(data, NOW)
        for distance in (1500, 3000, 5000, 8000, 15000, 21100, 30000, 42200):
            result = predictor.predict(distance, data, profile, NOW)
            assert 0 < result.predicted_time_seconds < 36000
            assert result.interval.lower <= result.predicted_time_seconds <= result.interval.upper
            assert 0.3 <= result.confidence <= 0.85

    def test_invalid_distance(self):
        """Non-positive distances are rejected."""
        predictor = MultiModelPredictor()
        with pytest.raises(ValueError):
            predictor.predict(0, scenario_a(), default_profile(), NOW)
        with pytest.raises(ValueError):
            predictor.predict(float('nan'), scenario_a(), default_profile(), NOW)

    def test_invalid_profile_uses_pace_table(self):
        """Non-finite profile parameters fall back to the pace table."""
        predictor = MultiModelPredictor()
        profile = EnduranceProfile(alpha=float('nan'), exponent=1.06)
        result = predictor.predict(10000, scenario_a(), profile, NOW)
        assert result.method == METHOD_FALLBACK
        assert result.predicted_time_seconds == pytest.approx(2500)
        assert result.confidence == 0.3

    def test_huge_prediction_uses_pace_table(self):
        """Predictions beyond ten hours fall back to the pace table."""
        profile = EnduranceProfile(alpha=5.0, exponent=1.12)
        result = MultiModelPredictor().predict(42200, PredictionData(), profile, NOW)
        assert result.method == METHOD_FALLBACK
        assert result.predicted_time_seconds == pytest.approx(42.2 * 300)

    def test_power_law_fallback(self, monkeypatch):
        """A numeric failure in the enhanced model drops to classic Riegel."""
        predictor = MultiModelPredictor()

        def unstable(*args, **kwargs):
            raise NumericInstabilityError('combination', float('nan'))

        monkeypatch.setattr(predictor, 'predict_enhanced', unstable)
        result = predictor.predict(5000, scenario_a(), default_profile(), NOW)
        assert result.method == METHOD_POWER_LAW
        assert 1200 <= result.predicted_time_seconds <= 2520 * 0.5 ** 1.06

    def test_pace_table_without_races(self, monkeypatch):
        """Without races the power-law rung falls through to the pace table."""
        predictor = MultiModelPredictor()
        def overflow(*args, **kwargs):
            raise ArithmeticError('overflow')

        monkeypatch.setattr(predictor, 'predict_enhanced', overflow)
        result = predictor.predict(5000, PredictionData(), default_profile(), NOW)
        assert result.method == METHOD_FALLBACK
        assert result.predicted_time_seconds == pytest.approx(1200)

    def test_taper_makes_faster(self):
        """Ten days out with consistent training predicts a faster time."""
        predictor = MultiModelPredictor()
        data = PredictionData(recent_races=scenario_a().recent_races, activities=easy_runs(20))
        profile = predictor.fit_profile(data, NOW)
        baseline = predictor.predict(10000, data, profile, NOW)
        tapered = predictor.predict(10000, data, profile, NOW, days_until_race=10)
        assert tapered.predicted_time_seconds < baseline.predicted_time_seconds

    def test_race_to_training_ratio(self):
        """A store-supplied ratio scales the prediction by 1 + (1 - ratio)."""
        predictor = MultiModelPredictor()
        data = scenario_a()
        profile = predictor.fit_profile(data, NOW)
        plain = predictor.predict(10000, data, profile, NOW)
        data.race_to_training_ratio = 0.95
        boosted = predictor.predict(10000, data, profile, NOW)
        assert boosted.predicted_time_seconds == pytest.approx(plain.predicted_time_seconds * 1.05)
        assert boosted.race_training_adjustment == pytest.approx(0.05)

    def test_verbose_trace(self):
        """Traces are only recorded in verbose mode."""
        data = scenario_a()
        profile = default_profile()
        assert MultiModelPredictor().predict(5000, data, profile, NOW).trace is None
        trace = MultiModelPredictor(verbose=True).predict(5000, data, profile, NOW).trace
        assert 'combined_log' in trace

    def test_thirty_day_change(self):
        """Trend compares the last 30 days with the 30 before."""
        predictor = MultiModelPredictor()
        races = [
            RacePerformance(5000, 1200, NOW - timedelta(days=10)),
            RacePerformance(5000, 1260, NOW - timedelta(days=45)),
        ]
        assert predictor.thirty_day_change(5000, 1200, races, 1.06, NOW) == -60
        assert predictor.thirty_day_change(5000, 1200, races[:1], 1.06, NOW) is None


# =============================================================================
# Data quality and factors
# =============================================================================

class TestDataQualityAndFactors:
    """Tests for data-quality scoring and prediction factors."""

    def test_scenario_a_quality(self):
        """Two recent races without training is low quality."""
        quality = assess_data_quality(scenario_a(), NOW)
        assert quality.score == 39
        assert quality.level == 'low'
        assert any('long runs' in rec for rec in quality.recommendations)

    def test_factors(self):
        """Classification, race boost and volume become factors."""
        data = PredictionData(
            recent_races=scenario_a().recent_races,
            activities=easy_runs(20),
            race_to_training_ratio=0.85,
            run_classification=RunClassification(races=4, hard_efforts=2, total_runs=30),
        )
        names = [f.name for f in identify_prediction_factors(5000, data, NOW)]
        assert 'Strong race data' in names
        assert 'Race day performance boost' in names
        assert 'Excellent training volume' in names

    def test_insufficient_data_message(self):
        """InsufficientDataError carries counts and guidance."""
        error = InsufficientDataError(0, 1)
        assert error.race_count == 0
        assert 'at least two races' in str(error)
