#!/usr/bin/env python3
"""
Race time prediction and training load - CLI Entry Point

Usage:
    python main.py predict [--races FILE] [--activities FILE] [--weeks W]
                           [--distance LABEL=METERS] [--days-until-race D]
    python main.py metrics [--races FILE] [--activities FILE] [--max-hr HR]
    python main.py demo [--archetype NAME] [--seed S]
    python main.py test
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime

from analysis.reports import (
    export_predictions_csv,
    format_time,
    generate_prediction_report,
    generate_training_report,
)
from analysis.visualizations import save_dashboard
from history.store import InMemoryStore
from history.synthetic import ARCHETYPES, generate_store
from prediction.adjustments import RaceConditions
from prediction.errors import ForecastError
from prediction.params import PredictionParams, load_params
from services.prediction_service import CustomDistance, PredictionService
from services.training_metrics_service import TrainingMetricsService
from training_load.tracker import TrainingLoadSettings

logger = logging.getLogger(__name__)


def build_store(args) -> InMemoryStore:
    """CSV-backed store when --races is given, otherwise synthetic history."""
    if getattr(args, 'races', None):
        logger.info("Loading history from %s", args.races)
        return InMemoryStore.from_csv(args.races, args.activities)
    logger.info("Using synthetic '%s' history (seed %d)", args.archetype, args.seed)
    now = datetime.now().replace(hour=12, minute=0, second=0, microsecond=0)
    return generate_store(args.archetype, weeks=max(args.weeks, 16), seed=args.seed, as_of=now)


def build_conditions(args) -> RaceConditions:
    return RaceConditions(
        temperature=args.temperature,
        wind_speed=args.wind,
        elevation=args.elevation,
        altitude=args.altitude,
        optimal_taper=args.optimal_taper,
        optimal_weather=args.optimal_weather,
        flat_course=args.flat_course,
    )


def run_predict(args):
    """Predict race times for the default and requested distances."""
    params = load_params(args.params) if args.params else PredictionParams()
    store = build_store(args)
    service = PredictionService(store, params, clock=store.clock, verbose=args.verbose)

    custom = [CustomDistance.parse(text) for text in args.distance]
    conditions = build_conditions(args)

    if args.race_date:
        race_date = datetime.strptime(args.race_date, '%Y-%m-%d')
        report = asyncio.run(service.generate_predictions_for_race_date(
            race_date, custom_distances=custom, race_conditions=conditions,
        ))
    else:
        report = asyncio.run(service.generate_predictions(
            weeks_back=args.weeks,
            custom_distances=custom,
            days_until_race=args.days_until_race,
            race_conditions=conditions,
        ))

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))
    else:
        print(generate_prediction_report(report))

    if args.output:
        export_predictions_csv(report.predictions, args.output)
        print(f"Predictions saved to: {args.output}")

    if args.plot:
        save_dashboard(args.plot, report=report)
        print(f"Chart saved to: {args.plot}")

    return report


def run_metrics(args):
    """Print fitness, VDOT and recovery for the athlete."""
    settings = TrainingLoadSettings(resting_hr=args.resting_hr, max_hr=args.max_hr, gender=args.gender)
    store = build_store(args)
    service = TrainingMetricsService(store, settings, clock=store.clock)

    metrics = asyncio.run(service.get_training_metrics())

    if args.json:
        print(json.dumps(metrics.to_dict(), indent=2))
    else:
        print(generate_training_report(metrics))

    if args.plot:
        save_dashboard(args.plot, metrics=metrics)
        print(f"Chart saved to: {args.plot}")
    return metrics


def run_demo(args):
    """Predictions and training load for a synthetic runner."""
    print(f"Running demo for a synthetic '{args.archetype}' runner (seed {args.seed})...")
    now = datetime.now().replace(hour=12, minute=0, second=0, microsecond=0)
    store = generate_store(args.archetype, weeks=16, seed=args.seed, as_of=now)

    async def both():
        report = await PredictionService(store, clock=store.clock).generate_predictions()
        metrics = await TrainingMetricsService(store, clock=store.clock).get_training_metrics()
        return report, metrics

    report, metrics = asyncio.run(both())
    print(generate_prediction_report(report, title=f"Race Time Predictions ({args.archetype})"))
    print(generate_training_report(metrics))

    if args.plot:
        save_dashboard(args.plot, report=report, metrics=metrics)
        print(f"Dashboard saved to: {args.plot}")
    return report, metrics


def run_tests():
    """Quick end-to-end checks."""
    print("Running tests...\n")

    print("Testing training-load metrics...")
    from training_load.metrics import calculate_trimp
    from training_load.vdot import estimate_vdot

    trimp = calculate_trimp(60, 140, 60, 180, gender='male')
    assert trimp > 0, "TRIMP should be positive"
    print(f"  TRIMP test passed: {trimp:.2f}")

    vdot = estimate_vdot(5000, 1200)
    assert vdot is not None and 49 < vdot < 51, f"VDOT for 20:00 5K should be ~49.8, got {vdot}"
    print(f"  VDOT test passed: {vdot}")

    print("\nTesting predictions...")
    now = datetime(2024, 6, 1, 12)
    store = InMemoryStore(
        races=[
            {'distance_meters': 5000, 'time_seconds': 1200, 'date': datetime(2024, 5, 22)},
            {'distance_meters': 10000, 'time_seconds': 2520, 'date': datetime(2024, 4, 22)},
        ],
        clock=lambda: now,
    )
    report = asyncio.run(PredictionService(store, clock=lambda: now).generate_predictions())
    five_k = report.predictions['5K'].predicted_time_seconds
    assert 1100 < five_k < 1300, f"5K prediction should be near 20:00, got {five_k:.0f}"
    times = [report.predictions[label].predicted_time_seconds for label in ('5K', '10K', '21.1K', '42.2K')]
    assert times == sorted(times), "Predictions should increase with distance"
    print(f"  Prediction test passed: 5K {format_time(five_k)}")

    print("\n" + "="*50)
    print("ALL TESTS PASSED!")
    print("="*50)


def add_history_arguments(parser):
    parser.add_argument('--races', help='Race history CSV')
    parser.add_argument('--activities', help='Training activities CSV')
    parser.add_argument('--archetype', default='recreational', choices=sorted(ARCHETYPES),
                        help='Synthetic runner when no CSV is given')
    parser.add_argument('--seed', type=int, default=42, help='Random seed for synthetic history')
    parser.add_argument('--weeks', type=int, default=16, help='History window in weeks')
    parser.add_argument('--json', action='store_true', help='Print JSON instead of a text report')
    parser.add_argument('--plot', help='Save charts to an image file')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Race time prediction and training load')
    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'], help='Logging level')
    subparsers = parser.add_subparsers(dest='command', help='Available commands')

    # Predict command
    pr_parser = subparsers.add_parser('predict', help='Predict race times')
    add_history_arguments(pr_parser)
    pr_parser.add_argument('--params', help='Prediction parameters JSON')
    pr_parser.add_argument('--distance', action='append', default=[],
                           help='Extra distance as LABEL=METERS (repeatable)')
    pr_parser.add_argument('--days-until-race', type=float, help='Days until race day')
    pr_parser.add_argument('--race-date', help='Race date (YYYY-MM-DD)')
    pr_parser.add_argument('--temperature', type=float, help='Race temperature (C)')
    pr_parser.add_argument('--wind', type=float, help='Wind speed (km/h)')
    pr_parser.add_argument('--elevation', type=float, help='Elevation gain (m)')
    pr_parser.add_argument('--altitude', type=float, help='Race altitude (m)')
    pr_parser.add_argument('--optimal-taper', action='store_true', help='Assume a full taper')
    pr_parser.add_argument('--optimal-weather', action='store_true',
                           help='Assume ideal weather (ignored with --temperature)')
    pr_parser.add_argument('--flat-course', action='store_true',
                           help='Assume a flat course (ignored with --elevation)')
    pr_parser.add_argument('--output', help='Export predictions to CSV')
    pr_parser.add_argument('--verbose', action='store_true', help='Record prediction traces')

    # Metrics command
    mt_parser = subparsers.add_parser('metrics', help='Training load summary')
    add_history_arguments(mt_parser)
    mt_parser.add_argument('--resting-hr', type=float, default=60.0, help='Resting heart rate')
    mt_parser.add_argument('--max-hr', type=float, default=190.0, help='Maximum heart rate')
    mt_parser.add_argument('--gender', default='male', choices=['male', 'female'])

    # Demo command
    demo_parser = subparsers.add_parser('demo', help='Run on synthetic history')
    demo_parser.add_argument('--archetype', default='recreational', choices=sorted(ARCHETYPES))
    demo_parser.add_argument('--seed', type=int, default=42, help='Random seed')
    demo_parser.add_argument('--plot', help='Save the dashboard to an image file')

    # Test command
    subparsers.add_parser('test', help='Run quick checks')
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    try:
        if args.command == 'predict':
            run_predict(args)
        elif args.command == 'metrics':
            run_metrics(args)
        elif args.command == 'demo':
            run_demo(args)
        elif args.command == 'test':
            run_tests()
        else:
            parser.print_help()
    except ForecastError as exc:
        logger.error("%s", exc)
        sys.exit(1)


if __name__ == '__main__':
    main()
