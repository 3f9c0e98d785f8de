"""
Visualization utilities for predictions and training load.

Provides charts for:
- Fitness, fatigue and form (CTL/ATL/TSB)
- Weekly training load
- VDOT history
- Predicted race times with uncertainty intervals
"""

from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt

from services.prediction_service import PredictionReport
from training_load.tracker import TrainingMetrics
from .reports import format_time


# TSB bands matching classify_form
FORM_BANDS = (
    (10, 40, 'green', 'Fresh'),
    (-10, 10, 'blue', 'Optimal'),
    (-25, -10, 'orange', 'Tired'),
    (-60, -25, 'red', 'Fatigued'),
)


def _axes(ax: Optional[plt.Axes], figsize: Tuple[int, int]):
    if ax is None:
        return plt.subplots(figsize=figsize)
    return ax.get_figure(), ax


def plot_fitness_fatigue_form(
    metrics: TrainingMetrics,
    title: str = "Fitness, Fatigue and Form",
    figsize: Tuple[int, int] = (12, 6),
    show_zones: bool = True,
    ax: Optional[plt.Axes] = None
) -> plt.Figure:
    """
    Plot CTL, ATL and TSB over the last 90 days.

    Args:
        metrics: Training metrics
        title: Plot title
        figsize: Figure size
        show_zones: Shade the form bands behind TSB
        ax: Optional existing axes

    Returns:
        Matplotlib figure
    """
    fig, ax = _axes(ax, figsize)

    points = metrics.fitness.tsb_data
    if not points:
        ax.text(0.5, 0.5, 'No heart-rate data', ha='center', va='center', transform=ax.transAxes)
        ax.set_title(title)
        return fig

    dates = [p.date for p in points]

    if show_zones:
        for low, high, color, label in FORM_BANDS:
            ax.axhspan(low, high, alpha=0.08, color=color, label=label)

    ax.plot(dates, [p.ctl for p in points], 'b-', linewidth=2, label='Fitness (CTL)')
    ax.plot(dates, [p.atl for p in points], 'r-', linewidth=1.5, label='Fatigue (ATL)')
    ax.plot(dates, [p.tsb for p in points], 'g--', linewidth=1.5, label='Form (TSB)')
    ax.axhline(0, color='black', linewidth=0.5)

    ax.set_xlabel('Date')
    ax.set_ylabel('Load (TRIMP)')
    ax.set_title(title)
    ax.legend(loc='upper left', fontsize=8)
    ax.grid(True, alpha=0.3)
    fig.autofmt_xdate()

    return fig


def plot_weekly_trimp(
    metrics: TrainingMetrics,
    title: str = "Weekly Training Load",
    figsize: Tuple[int, int] = (10, 5),
    ax: Optional[plt.Axes] = None
) -> plt.Figure:
    """Bar chart of weekly TRIMP with the mean marked."""
    fig, ax = _axes(ax, figsize)

    weeks = metrics.weekly_trimp
    labels = [w['week_start'][5:] for w in weeks]
    values = np.array([w['trimp'] for w in weeks], dtype=float)

    ax.bar(range(len(values)), values, color='steelblue', alpha=0.8)
    if len(values) and values.mean() > 0:
        ax.axhline(values.mean(), color='red', linestyle='--', linewidth=1,
                   label=f'Mean: {values.mean():.0f}')
        ax.legend()

    ax.set_xticks(range(len(labels)))
    ax.set_xticklabels(labels, rotation=45, ha='right')
    ax.set_xlabel('Week starting')
    ax.set_ylabel('TRIMP')
    ax.set_title(title)
    ax.grid(True, alpha=0.3, axis='y')

    return fig


def plot_vdot_history(
    metrics: TrainingMetrics,
    title: str = "VDOT History",
    figsize: Tuple[int, int] = (10, 5),
    ax: Optional[plt.Axes] = None
) -> plt.Figure:
    """Best VDOT per 4-week window."""
    fig, ax = _axes(ax, figsize)

    history = metrics.vdot_history
    if history:
        dates = pd.to_datetime([h['date'] for h in history])
        ax.plot(dates, [h['vdot'] for h in history], 'o-', color='purple', linewidth=2)
        if metrics.vdot.value is not None:
            ax.axhline(metrics.vdot.value, color='gray', linestyle=':',
                       label=f'Current: {metrics.vdot.value:.1f}')
            ax.legend()
        fig.autofmt_xdate()
    else:
        ax.text(0.5, 0.5, 'No qualifying performances', ha='center', va='center', transform=ax.transAxes)

    ax.set_xlabel('Date')
    ax.set_ylabel('VDOT')
    ax.set_title(title)
    ax.grid(True, alpha=0.3)

    return fig


def plot_predictions(
    report: PredictionReport,
    title: str = "Predicted Race Pace",
    figsize: Tuple[int, int] = (10, 6),
    ax: Optional[plt.Axes] = None
) -> plt.Figure:
    """
    Plot predicted pace per distance with asymmetric error bars.

    Args:
        report: Prediction report
        title: Plot title
        figsize: Figure size
        ax: Optional existing axes

    Returns:
        Matplotlib figure
    """
    fig, ax = _axes(ax, figsize)

    labels: List[str] = list(report.predictions)
    results = [report.predictions[label] for label in labels]
    km = np.array([r.distance_meters / 1000 for r in results])
    pace = np.array([r.pace_seconds_per_km for r in results]) / 60
    lower = np.array([r.interval.lower for r in results]) / km / 60
    upper = np.array([r.interval.upper for r in results]) / km / 60
    confidence = np.array([r.confidence for r in results])

    x = np.arange(len(labels))
    ax.errorbar(x, pace, yerr=[pace - lower, upper - pace], fmt='none', ecolor='gray', capsize=5)
    scatter = ax.scatter(x, pace, c=confidence, cmap='RdYlGn', vmin=0.3, vmax=0.85, s=80, zorder=3)
    fig.colorbar(scatter, ax=ax, label='Confidence')

    for i, result in enumerate(results):
        ax.annotate(format_time(result.predicted_time_seconds), (x[i], pace[i]),
                    textcoords='offset points', xytext=(8, 8), fontsize=9)

    ax.set_xticks(x)
    ax.set_xticklabels(labels)
    ax.set_xlabel('Distance')
    ax.set_ylabel('Pace (min/km)')
    ax.set_title(title)
    ax.grid(True, alpha=0.3)

    return fig


def create_dashboard(
    report: Optional[PredictionReport] = None,
    metrics: Optional[TrainingMetrics] = None,
    figsize: Tuple[int, int] = (16, 10),
) -> plt.Figure:
    """
    Combine the available charts into one figure.

    Args:
        report: Prediction report (optional)
        metrics: Training metrics (optional)
        figsize: Figure size

    Returns:
        Matplotlib figure
    """
    fig, axes = plt.subplots(2, 2, figsize=figsize)
    axes = axes.flatten()

    if report is not None:
        plot_predictions(report, ax=axes[0])
    else:
        axes[0].set_visible(False)

    if metrics is not None:
        plot_fitness_fatigue_form(metrics, ax=axes[1])
        plot_weekly_trimp(metrics, ax=axes[2])
        plot_vdot_history(metrics, ax=axes[3])
    else:
        for ax in axes[1:]:
            ax.set_visible(False)

    fig.tight_layout()
    return fig


def save_dashboard(
    filepath: str,
    report: Optional[PredictionReport] = None,
    metrics: Optional[TrainingMetrics] = None,
) -> None:
    """Render the dashboard to an image file."""
    fig = create_dashboard(report, metrics)
    fig.savefig(filepath, dpi=120, bbox_inches='tight')
    plt.close(fig)
