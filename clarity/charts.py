"""Matplotlib charts for the review analytics dashboard.

All figures use the same dark palette and are returned as PIL images so the
CLI can save them and tests can inspect them.
"""

from __future__ import annotations

import io
from typing import Optional, Sequence

import matplotlib
matplotlib.use("Agg")  # non-interactive backend -- render to image buffers
import matplotlib.pyplot as plt
import numpy as np
from matplotlib.figure import Figure
from PIL import Image

from clarity.analytics import analyze_review_patterns
from clarity.models import Review, ReviewMetrics

# -- Palette -------------------------------------------------------------
_BG = "#2b2b2b"
_FG = "#e0e0e0"
_ACCENT = "#6a9fb5"
_BLUE_LINE = "#6a9fb5"
_ORANGE = "#d08c4a"
_GRID = "#444444"


# -----------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------

def _fig_to_pil(fig: Figure, dpi: int = 100) -> Image.Image:
    """Render a matplotlib Figure to a PIL Image and close it."""
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=dpi, bbox_inches="tight",
                facecolor=fig.get_facecolor(), edgecolor="none")
    plt.close(fig)
    buf.seek(0)
    return Image.open(buf)


def _style_axes(ax, title: str) -> None:
    ax.set_facecolor(_BG)
    ax.set_title(title, color=_FG, fontsize=11, fontweight="bold")
    ax.tick_params(colors=_FG, labelsize=8)
    ax.spines["bottom"].set_color(_GRID)
    ax.spines["left"].set_color(_GRID)
    ax.spines["top"].set_visible(False)
    ax.spines["right"].set_visible(False)
    ax.yaxis.grid(color=_GRID, linewidth=0.5)


# -----------------------------------------------------------------------
# Weekly pattern
# -----------------------------------------------------------------------

def weekday_pattern(
    reviews: Sequence[Review],
    *,
    title: str = "Reviews by Day of Week",
    size: tuple[int, int] = (560, 260),
    dpi: int = 100,
) -> Image.Image:
    """Bar chart of completed reviews per day of week; the best day is highlighted."""
    patterns = analyze_review_patterns(reviews)
    labels = [d.name[:3] for d in patterns.weekly_breakdown]
    counts = np.array([d.count for d in patterns.weekly_breakdown])
    colours = [
        _ORANGE if d.name == patterns.best_day and d.count > 0 else _ACCENT
        for d in patterns.weekly_breakdown
    ]

    fig_w, fig_h = size[0] / dpi, size[1] / dpi
    fig = Figure(figsize=(fig_w, fig_h), dpi=dpi, facecolor=_BG)
    ax = fig.add_subplot(111)
    x = np.arange(len(labels))
    ax.bar(x, counts, color=colours, width=0.6)
    ax.set_xticks(x)
    ax.set_xticklabels(labels)
    ax.set_ylim(0, max(int(counts.max()) + 1, 1))
    ax.set_ylabel("Reviews", color=_FG, fontsize=9)
    _style_axes(ax, title)

    return _fig_to_pil(fig, dpi=dpi)


# -----------------------------------------------------------------------
# Metrics timeseries
# -----------------------------------------------------------------------

def metrics_timeseries(
    metrics: Sequence[ReviewMetrics],
    *,
    title: str = "Tasks Completed per Day",
    size: tuple[int, int] = (560, 240),
    dpi: int = 100,
) -> Optional[Image.Image]:
    """Line chart of tasks completed per day, with daily-review days marked.

    Returns *None* if fewer than two metrics rows are provided.
    """
    rows = sorted(metrics, key=lambda m: m.date)
    if len(rows) < 2:
        return None

    dates = [m.date for m in rows]
    completed = [m.tasks_completed for m in rows]
    reviewed = [(m.date, m.tasks_completed) for m in rows if m.daily_reviews_completed > 0]

    fig_w, fig_h = size[0] / dpi, size[1] / dpi
    fig = Figure(figsize=(fig_w, fig_h), dpi=dpi, facecolor=_BG)
    ax = fig.add_subplot(111)

    ax.plot(dates, completed, color=_BLUE_LINE, linewidth=2, marker="o",
            markersize=4, markerfacecolor=_ACCENT, markeredgecolor="white",
            markeredgewidth=0.5)
    ax.fill_between(dates, completed, alpha=0.15, color=_ACCENT)
    if reviewed:
        rx, ry = zip(*reviewed)
        ax.scatter(rx, ry, color=_ORANGE, s=36, zorder=3, label="Daily review")
        ax.legend(facecolor=_BG, edgecolor=_GRID, labelcolor=_FG, fontsize=8)

    ax.set_ylim(0, max(max(completed) + 1, 1))
    ax.set_ylabel("Tasks", color=_FG, fontsize=9)
    _style_axes(ax, title)

    fig.autofmt_xdate(rotation=30, ha="right")

    return _fig_to_pil(fig, dpi=dpi)
