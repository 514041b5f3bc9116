from __future__ import annotations

from typing import Iterable

from .hierarchy import TaskIndex
from .project_models import Health, ProjectStats, TaskStatus, WorkItem
from .rollup import weighted_progress


def compute_project_stats(items: Iterable[WorkItem]) -> ProjectStats:
    """
    Headline numbers for a recomputed snapshot.

    Counts cover every item; average progress is weighted by duration over
    leaves only so summary items are not counted twice.
    """

    index = TaskIndex.build(items)
    everything = list(index.by_id.values())
    return ProjectStats(
        total_tasks=len(everything),
        completed_tasks=sum(1 for item in everything if item.status == TaskStatus.COMPLETED),
        at_risk_tasks=sum(1 for item in everything if item.health == Health.RED),
        average_progress=weighted_progress(index.leaves()),
        critical_path=[item.id for item in everything if item.is_critical],
    )
