from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Iterable

from .dates import day_count
from .hierarchy import TaskIndex
from .project_models import Health, TaskStatus, WorkItem

logger = logging.getLogger(__name__)

_HEALTH_SEVERITY = (Health.RED, Health.AMBER, Health.GREEN)


def normalize_leaf_health(item: WorkItem) -> Health:
    """
    Health a leaf must carry given its status and risk flag.

    In Progress keeps a manual Red or Amber; every other status forces its
    colour, with the risk flag lifting otherwise-green states to Amber.
    """

    status = item.status
    if status == TaskStatus.BLOCKED:
        return Health.RED
    if status == TaskStatus.IN_PROGRESS:
        if item.health == Health.RED:
            return Health.RED
        if item.health == Health.AMBER or item.is_at_risk:
            return Health.AMBER
        return Health.GREEN
    if status == TaskStatus.ON_HOLD or item.is_at_risk:
        return Health.AMBER
    if status == TaskStatus.COMPLETED:
        return Health.GREEN
    return Health.GRAY


def rollup_hierarchy(items: Iterable[WorkItem]) -> list[WorkItem]:
    """
    Return a new collection with every parent recomputed from its children.

    Leaves get their health normalised first. Parents are then finalised
    bottom-up so a grandparent only ever aggregates already-final
    children; a parent loop raises ``HierarchyCycleError``. The input
    collection and its items are left untouched.
    """

    index = TaskIndex.build(items)
    resolved: dict[str, WorkItem] = {}

    for item in index.by_id.values():
        if not index.is_parent(item.id):
            health = normalize_leaf_health(item)
            resolved[item.id] = item if health == item.health else replace(item, health=health)

    parents = index.parents_bottom_up()
    for task_id in parents:
        children = [resolved[child_id] for child_id in index.child_ids(task_id)]
        resolved[task_id] = _aggregate(index.by_id[task_id], children)

    logger.debug("Rolled up %d parent(s) across %d item(s)", len(parents), len(index.by_id))
    return [resolved[item.id] for item in index.items]


def _aggregate(parent: WorkItem, children: list[WorkItem]) -> WorkItem:
    start = min(child.start_date for child in children)
    end = max(child.end_date for child in children)
    return replace(
        parent,
        start_date=start,
        end_date=end,
        duration=day_count(start, end),
        progress=weighted_progress(children),
        health=_rollup_health(children),
        status=_rollup_status(children),
    )


def weighted_progress(items: list[WorkItem]) -> int:
    """Duration-weighted average progress, rounded half up; 0 when no duration."""

    total_duration = sum(item.duration for item in items)
    if total_duration <= 0:
        return 0
    weighted = sum(item.progress * item.duration for item in items) / total_duration
    return int(math.floor(weighted + 0.5))


def _rollup_health(children: list[WorkItem]) -> Health:
    present = {child.health for child in children}
    for health in _HEALTH_SEVERITY:
        if health in present:
            return health
    return Health.GRAY


def _rollup_status(children: list[WorkItem]) -> TaskStatus:
    statuses = [child.status for child in children]
    if TaskStatus.BLOCKED in statuses:
        return TaskStatus.BLOCKED
    if all(status == TaskStatus.COMPLETED for status in statuses):
        return TaskStatus.COMPLETED
    if any(status in (TaskStatus.IN_PROGRESS, TaskStatus.COMPLETED, TaskStatus.ON_HOLD) for status in statuses):
        return TaskStatus.IN_PROGRESS
    return TaskStatus.NOT_STARTED
