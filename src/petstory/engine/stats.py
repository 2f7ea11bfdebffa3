# src/petstory/engine/stats.py
"""Aggregate completion statistics across plots."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from petstory.canon import crud, queries
from petstory.models import PlotStats, ProgressStatus


def completion_rate(completed: int, total: int) -> float:
    """Percentage of ``total`` that is ``completed``, rounded to two places."""
    if total == 0:
        return 0
    return round(completed / total * 100, 2)


async def progress_stats(session: AsyncSession) -> list[PlotStats]:
    """Return per-plot user counts by progress status."""
    plots = await crud.list_plots(session)
    counts = await queries.count_progress_by_status(session)
    stats = []
    for plot in plots:
        by_status = counts.get(plot.id, {})
        total = sum(by_status.values())
        completed = by_status.get(ProgressStatus.COMPLETED, 0)
        stats.append(
            PlotStats(
                plot_id=plot.id,
                plot_title=plot.title,
                total_users=total,
                completed_users=completed,
                in_progress_users=by_status.get(ProgressStatus.IN_PROGRESS, 0),
                not_started_users=by_status.get(ProgressStatus.NOT_STARTED, 0),
                completion_rate=completion_rate(completed, total),
            )
        )
    return stats


__all__ = ["completion_rate", "progress_stats"]
