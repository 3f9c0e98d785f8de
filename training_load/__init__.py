"""
Training-load engine.

This package provides:
- Load quantification (Banister TRIMP)
- Fitness, fatigue and form (CTL, ATL, TSB)
- Aerobic capacity (Daniels VDOT)
- Recovery recommendations
"""

from .metrics import (
    calculate_trimp,
    calculate_ewma,
    calculate_ctl,
    calculate_atl,
    build_daily_trimp,
    classify_form,
)
from .vdot import VDOTEstimate, estimate_vdot, current_vdot, vdot_history
from .recovery import RecoveryEstimate, estimate_recovery
from .tracker import TrainingLoadSettings, TrainingLoadTracker, TrainingMetrics

__all__ = [
    # Metrics
    'calculate_trimp',
    'calculate_ewma',
    'calculate_ctl',
    'calculate_atl',
    'build_daily_trimp',
    'classify_form',
    # VDOT
    'VDOTEstimate',
    'estimate_vdot',
    'current_vdot',
    'vdot_history',
    # Recovery
    'RecoveryEstimate',
    'estimate_recovery',
    # Tracker
    'TrainingLoadSettings',
    'TrainingLoadTracker',
    'TrainingMetrics',
]
