"""
Normalisation of raw storage records into canonical history types.

Raw records arrive from several sources (Strava sync, manual entries, the
document store) with inconsistent field names: `distance` vs
`distanceMeters`, `date` vs `start_date`, `moving_time` vs `time`, and so
on. This module is the single place that knows about those aliases. The
modelling core only ever receives RacePerformance / TrainingActivity /
PersonalBest instances.

Records that cannot be normalised are dropped with a warning rather than
failing the whole batch.
"""

import logging
import math
from datetime import datetime
from typing import Any, Iterable, List, Mapping, Optional

import pandas as pd

from .records import (
    PersonalBest,
    PredictionData,
    RacePerformance,
    RunClassification,
    TrainingActivity,
)

logger = logging.getLogger(__name__)


RUN_ACTIVITY_TYPES = ('Run', 'TrailRun', 'VirtualRun')

# ═══════════════════════════════════════════════════════════════════════════════
# FIELD ALIASES (first match wins)
# ═══════════════════════════════════════════════════════════════════════════════

DISTANCE_KEYS = ('distance_meters', 'distanceMeters', 'distance')
RACE_TIME_KEYS = ('time_seconds', 'timeSeconds', 'time', 'moving_time', 'elapsed_time')
DURATION_KEYS = ('duration_seconds', 'durationSeconds', 'moving_time', 'time', 'elapsed_time')
DATE_KEYS = ('date', 'start_date', 'start_date_local', 'startDate')
HEART_RATE_KEYS = ('average_heart_rate', 'averageHeartRate', 'average_heartrate')
TYPE_KEYS = ('activity_type', 'type', 'sport_type')


def _first(record: Mapping[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = record.get(key)
        if value is not None:
            return value
    return None


def parse_time_string(value: Any) -> float:
    """
    Parse a duration into seconds.

    Accepts numbers and "MM:SS" / "H:MM:SS" strings.

    Args:
        value: Raw duration

    Returns:
        Duration in seconds (0.0 when unparseable)
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0

    text = str(value).strip()
    parts = text.split(':')
    try:
        if len(parts) == 3:
            return int(parts[0]) * 3600 + int(parts[1]) * 60 + float(parts[2])
        if len(parts) == 2:
            return int(parts[0]) * 60 + float(parts[1])
        return float(text)
    except ValueError:
        return 0.0


def parse_date(value: Any) -> datetime:
    """
    Parse a timestamp into a naive UTC datetime.

    Handles datetimes, ISO strings, epoch seconds and objects exposing
    `to_datetime()`/`ToDatetime()` (document-store timestamps).
    """
    if hasattr(value, 'ToDatetime'):
        value = value.ToDatetime()
    elif hasattr(value, 'to_datetime') and not isinstance(value, pd.Timestamp):
        value = value.to_datetime()

    if isinstance(value, (int, float)):
        ts = pd.Timestamp(value, unit='s')
    else:
        ts = pd.Timestamp(value)

    if pd.isna(ts):
        raise ValueError(f"Unparseable date: {value!r}")
    if ts.tzinfo is not None:
        ts = ts.tz_convert('UTC').tz_localize(None)
    return ts.to_pydatetime()


def _finite(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _text(value: Any) -> Optional[str]:
    """Non-empty string or None (NaN cells from CSV exports become None)."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _tags(value: Any) -> tuple:
    """Tags from a sequence or a `;`-separated string; missing cells give ()."""
    if isinstance(value, str):
        return tuple(tag.strip() for tag in value.split(";") if tag.strip())
    if isinstance(value, (list, tuple, set, frozenset)):
        return tuple(str(tag) for tag in value)
    return ()


# ═══════════════════════════════════════════════════════════════════════════════
# SINGLE RECORDS
# ═══════════════════════════════════════════════════════════════════════════════

def race_from_record(record: Mapping[str, Any]) -> RacePerformance:
    """Build a RacePerformance from a raw record (raises ValueError if invalid)."""
    distance = _finite(_first(record, DISTANCE_KEYS))
    time_seconds = parse_time_string(_first(record, RACE_TIME_KEYS))
    date_value = _first(record, DATE_KEYS)

    if distance is None or date_value is None:
        raise ValueError(f"Race record missing distance or date: {dict(record)!r}")

    return RacePerformance(
        distance_meters=distance,
        time_seconds=time_seconds,
        date=parse_date(date_value),
        name=_text(record.get('name')),
        tags=_tags(record.get('tags')),
    )


def activity_from_record(record: Mapping[str, Any]) -> TrainingActivity:
    """Build a TrainingActivity from a raw record (raises ValueError if invalid)."""
    date_value = _first(record, DATE_KEYS)
    if date_value is None:
        raise ValueError(f"Activity record missing date: {dict(record)!r}")

    distance = _finite(_first(record, DISTANCE_KEYS)) or 0.0
    duration = parse_time_string(_first(record, DURATION_KEYS))
    heart_rate = _finite(_first(record, HEART_RATE_KEYS))

    return TrainingActivity(
        date=parse_date(date_value),
        distance_meters=max(0.0, distance),
        duration_seconds=max(0.0, duration),
        average_heart_rate=heart_rate if heart_rate and heart_rate > 0 else None,
        name=_text(record.get('name')),
        activity_type=_text(_first(record, TYPE_KEYS)) or 'Run',
    )


def personal_best_from_record(record: Mapping[str, Any]) -> PersonalBest:
    """Build a PersonalBest from a raw record (raises ValueError if invalid)."""
    distance = _finite(_first(record, DISTANCE_KEYS))
    time_seconds = parse_time_string(_first(record, RACE_TIME_KEYS))
    date_value = _first(record, DATE_KEYS)
    label = record.get('distance_label') or record.get('distanceLabel') or record.get('distance')

    if distance is None or date_value is None or time_seconds <= 0:
        raise ValueError(f"Personal best record incomplete: {dict(record)!r}")

    return PersonalBest(
        distance_label=str(label) if label is not None else f"{distance:.0f}m",
        distance_meters=distance,
        time_seconds=time_seconds,
        date=parse_date(date_value),
    )


# ═══════════════════════════════════════════════════════════════════════════════
# BATCHES
# ═══════════════════════════════════════════════════════════════════════════════

def _normalize_many(records: Iterable[Any], builder, kind: str) -> list:
    normalized = []
    for record in records:
        if isinstance(record, (RacePerformance, TrainingActivity, PersonalBest)):
            normalized.append(record)
            continue
        try:
            normalized.append(builder(record))
        except (ValueError, TypeError) as exc:
            logger.warning("Dropping unusable %s record: %s", kind, exc)
    return normalized


def normalize_races(records: Iterable[Any]) -> List[RacePerformance]:
    return _normalize_many(records, race_from_record, 'race')


def normalize_activities(records: Iterable[Any], runs_only: bool = True) -> List[TrainingActivity]:
    """Normalise activity records, optionally keeping only running activities."""
    activities = _normalize_many(records, activity_from_record, 'activity')
    if runs_only:
        activities = [a for a in activities if a.activity_type in RUN_ACTIVITY_TYPES]
    return activities


def normalize_personal_bests(records: Iterable[Any]) -> List[PersonalBest]:
    return _normalize_many(records, personal_best_from_record, 'personal best')


def normalize_prediction_data(raw: Mapping[str, Any]) -> PredictionData:
    """
    Convert a raw `getPredictionData` payload into PredictionData.

    Args:
        raw: Mapping with `recentRaces`/`recent_races`, `activities` and
             optional `raceToTrainingRatio`, `runClassification`

    Returns:
        PredictionData with canonical records
    """
    races = raw.get('recent_races', raw.get('recentRaces')) or []
    activities = raw.get('activities') or []
    ratio = _finite(raw.get('race_to_training_ratio', raw.get('raceToTrainingRatio')))

    classification = raw.get('run_classification', raw.get('runClassification'))
    if isinstance(classification, Mapping):
        classification = RunClassification(
            races=int(classification.get('races', 0)),
            hard_efforts=int(classification.get('hard_efforts', classification.get('hardEfforts', 0))),
            total_runs=int(classification.get('total_runs', classification.get('totalRuns', 0))),
        )

    return PredictionData(
        recent_races=normalize_races(races),
        activities=normalize_activities(activities),
        race_to_training_ratio=ratio if ratio and ratio > 0 else None,
        run_classification=classification,
    )
