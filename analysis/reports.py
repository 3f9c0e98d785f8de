"""
Text report generation for race predictions and training load.

Formats PredictionReport and TrainingMetrics for the terminal and exports
predictions to CSV.
"""

import csv
import math
from datetime import datetime
from typing import Dict, Optional

from prediction.results import PredictionResult
from services.prediction_service import PredictionReport
from training_load.tracker import TrainingMetrics


def format_time(seconds: Optional[float]) -> str:
    """
    Format seconds as H:MM:SS (or M:SS under an hour).

    Args:
        seconds: Duration in seconds

    Returns:
        Formatted string, '--' when missing or not finite
    """
    if seconds is None or not math.isfinite(seconds) or seconds < 0:
        return '--'
    total = int(round(seconds))
    hours, remainder = divmod(total, 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


def format_pace(seconds_per_km: Optional[float]) -> str:
    """Format a pace as M:SS/km."""
    if seconds_per_km is None or not math.isfinite(seconds_per_km) or seconds_per_km <= 0:
        return '--'
    return f"{format_time(seconds_per_km)}/km"


def _prediction_row(label: str, result: PredictionResult) -> str:
    interval = result.interval
    return (f"{label[:10]:<10} "
            f"{format_time(result.predicted_time_seconds):>9} "
            f"{format_pace(result.pace_seconds_per_km):>11} "
            f"{format_time(interval.lower):>9} - {format_time(interval.upper):<9} "
            f"{result.confidence * 100:>5.0f}% "
            f"{result.method}\n")


def generate_prediction_report(
    report: PredictionReport,
    title: str = "Race Time Predictions",
) -> str:
    """
    Generate a text report from a prediction report.

    Args:
        report: PredictionReport from the prediction service
        title: Report title

    Returns:
        Formatted report string
    """
    profile = report.endurance_profile
    quality = report.data_quality

    text = f"""
{'='*70}
{title}
{'='*70}
As of:        {report.last_updated:%Y-%m-%d %H:%M}
Data source:  {report.data_source}
Data quality: {quality.score}/100 ({quality.level})

PREDICTIONS
-----------
"""
    text += f"{'Distance':<10} {'Time':>9} {'Pace':>11} {'Range':^21} {'Conf':>6} Method\n"
    text += "-" * 70 + "\n"
    for label, result in report.predictions.items():
        text += _prediction_row(label, result)

    cs = (f"{profile.critical_speed:.2f} m/s (D' {profile.anaerobic_capacity:.0f} m)"
          if profile.has_critical_speed else 'not available')
    text += f"""
ENDURANCE PROFILE
-----------------
Fatigue exponent:          {profile.exponent:>8.3f}
Critical speed:            {cs}
Profile confidence:        {profile.confidence:>8.2f}
Races used:                {profile.base_race_count:>8d}
"""

    changes = [(label, r.thirty_day_change) for label, r in report.predictions.items()
               if r.thirty_day_change is not None]
    if changes:
        text += "\n30-DAY TREND\n------------\n"
        for label, change in changes:
            direction = "faster" if change < 0 else "slower"
            text += f"{label:<10} {abs(change):>6.0f} s {direction}\n"

    factor_lines = []
    for label, result in report.predictions.items():
        for factor in result.factors:
            sign = '+' if factor.impact == 'positive' else '-'
            detail = f" ({factor.value})" if factor.value else ''
            factor_lines.append(f"  [{sign}] {label}: {factor.name}{detail}")
    if factor_lines:
        text += "\nKEY FACTORS\n-----------\n" + "\n".join(factor_lines) + "\n"

    if quality.recommendations:
        text += "\nRECOMMENDATIONS\n---------------\n"
        text += "".join(f"  * {rec}\n" for rec in quality.recommendations)

    if report.warnings:
        text += "\nWARNINGS\n--------\n"
        text += "".join(f"  ! {warning}\n" for warning in report.warnings)

    text += "\n" + "=" * 70 + "\n"
    return text


def generate_training_report(
    metrics: TrainingMetrics,
    title: str = "Training Load Summary",
) -> str:
    """
    Generate a text report from training metrics.

    Args:
        metrics: TrainingMetrics from the training metrics service
        title: Report title

    Returns:
        Formatted report string
    """
    fitness = metrics.fitness
    recovery = metrics.recovery
    vdot = metrics.vdot
    vdot_text = f"{vdot.value:.1f}" if vdot.value is not None else 'n/a'

    text = f"""
{'='*70}
{title}
{'='*70}
As of: {metrics.last_updated:%Y-%m-%d %H:%M}

FITNESS / FATIGUE / FORM
------------------------
Fitness (CTL):             {fitness.ctl:>8.1f}
Fatigue (ATL):             {fitness.atl:>8.1f}
Form (TSB):                {fitness.tsb:>+8.1f}
Form status:               {fitness.form_status:>8}

AEROBIC CAPACITY
----------------
VDOT:                      {vdot_text:>8}
Confidence:                {vdot.confidence:>8.2f}
Performances used:         {len(vdot.based_on):>8d}

RECOVERY
--------
Recommendation:            {recovery.label} ({recovery.hours} h)
"""
    if recovery.hours_remaining is not None:
        text += f"Hours remaining:           {recovery.hours_remaining:>8.0f}\n"

    text += "\nWEEKLY TRIMP\n------------\n"
    peak = max((w['trimp'] for w in metrics.weekly_trimp), default=0) or 1
    for week in metrics.weekly_trimp:
        bar = '#' * int(round(30 * week['trimp'] / peak))
        text += f"{week['week_start']}  {week['trimp']:>5d}  {bar}\n"

    text += "\n" + "=" * 70 + "\n"
    return text


def export_predictions_csv(predictions: Dict[str, PredictionResult], filepath: str) -> None:
    """
    Export predictions to CSV.

    Args:
        predictions: Predictions by label
        filepath: Output file path
    """
    headers = [
        'label', 'distance_meters', 'predicted_time_seconds', 'pace_seconds_per_km',
        'lower', 'upper', 'confidence', 'method',
    ]

    with open(filepath, 'w', newline='') as f:
        writer = csv.DictWriter(f, fieldnames=headers)
        writer.writeheader()

        for label, result in predictions.items():
            writer.writerow({
                'label': label,
                'distance_meters': result.distance_meters,
                'predicted_time_seconds': round(result.predicted_time_seconds, 1),
                'pace_seconds_per_km': round(result.pace_seconds_per_km, 1),
                'lower': round(result.interval.lower, 1),
                'upper': round(result.interval.upper, 1),
                'confidence': round(result.confidence, 3),
                'method': result.method,
            })


if __name__ == '__main__':
    import asyncio

    from history.synthetic import generate_store
    from services import PredictionService, TrainingMetricsService

    now = datetime(2024, 6, 1, 12)
    store = generate_store('recreational', weeks=16, seed=42, as_of=now)

    report = asyncio.run(PredictionService(store, clock=lambda: now).generate_predictions())
    print(generate_prediction_report(report))

    metrics = asyncio.run(TrainingMetricsService(store, clock=lambda: now).get_training_metrics())
    print(generate_training_report(metrics))
