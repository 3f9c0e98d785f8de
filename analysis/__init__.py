"""Reporting and visualization utilities."""

from .reports import (
    export_predictions_csv,
    format_pace,
    format_time,
    generate_prediction_report,
    generate_training_report,
)
from .visualizations import (
    create_dashboard,
    plot_fitness_fatigue_form,
    plot_predictions,
    plot_vdot_history,
    plot_weekly_trimp,
    save_dashboard,
)

__all__ = [
    'export_predictions_csv',
    'format_pace',
    'format_time',
    'generate_prediction_report',
    'generate_training_report',
    'create_dashboard',
    'plot_fitness_fatigue_form',
    'plot_predictions',
    'plot_vdot_history',
    'plot_weekly_trimp',
    'save_dashboard',
]
