from __future__ import annotations

import logging
from collections import deque
from dataclasses import replace
from datetime import date
from typing import Iterable

from .dates import add_days
from .errors import Cycle, DependencyCycleError
from .hierarchy import TaskIndex
from .project_models import Dependency, WorkItem
from .scheduling import find_dependency_cycle

logger = logging.getLogger(__name__)


def identify_critical_path(items: Iterable[WorkItem]) -> list[WorkItem]:
    """
    Return a new collection with ``is_critical`` and ``total_float`` recomputed.

    Backward pass over leaves only:

    - project end is the latest leaf end date;
    - a leaf without leaf successors must finish by the project end;
    - otherwise it must finish the day before the latest start any successor
      can afford;
    - float is the gap between its end and that late finish, floored at 0.

    A parent is critical when any leaf below it is, and carries the smallest
    float found among those leaves.
    """

    index = TaskIndex.build(items)
    leaves = index.leaves()
    if not leaves:
        return [replace(item, is_critical=False, total_float=0) for item in index.items]

    project_end = max(leaf.end_date for leaf in leaves)
    logger.debug("Project end %s across %d leaf item(s)", project_end, len(leaves))

    successors = index.leaf_successor_links()
    late_finish = _late_finishes(index, [leaf.id for leaf in leaves], successors, project_end)
    floats = {leaf.id: max(0, (late_finish[leaf.id] - leaf.end_date).days) for leaf in leaves}

    # (any critical, min float) over the leaves below a parent; None without leaves.
    summary: dict[str, tuple[bool, int] | None] = {}
    for task_id in index.parents_bottom_up():
        found: list[tuple[bool, int]] = []
        for child_id in index.child_ids(task_id):
            if index.is_parent(child_id):
                below = summary[child_id]
                if below is not None:
                    found.append(below)
            else:
                found.append((floats[child_id] == 0, floats[child_id]))
        summary[task_id] = (any(critical for critical, _ in found), min(f for _, f in found)) if found else None

    updated: dict[str, WorkItem] = {}
    for task_id, item in index.by_id.items():
        if index.is_parent(task_id):
            below = summary[task_id]
            critical, total_float = below if below is not None else (False, 0)
        else:
            total_float = floats[task_id]
            critical = total_float == 0
        updated[task_id] = replace(item, is_critical=critical, total_float=total_float)

    return [updated[item.id] for item in index.items]


def _late_finishes(
    index: TaskIndex,
    leaf_ids: list[str],
    successors: dict[str, list[tuple[str, Dependency]]],
    project_end: date,
) -> dict[str, date]:
    # Reverse topological order: a leaf is resolved once all of its successors are.
    pending = {task_id: len(successors.get(task_id, [])) for task_id in leaf_ids}
    predecessors: dict[str, list[str]] = {}
    for pred_id, links in successors.items():
        for succ_id, _link in links:
            predecessors.setdefault(succ_id, []).append(pred_id)

    queue = deque(task_id for task_id in leaf_ids if pending[task_id] == 0)
    late_finish: dict[str, date] = {}

    while queue:
        task_id = queue.popleft()
        finish = project_end
        for succ_id, _link in successors.get(task_id, []):
            successor = index.by_id[succ_id]
            latest_start = add_days(late_finish[succ_id], -(successor.duration - 1))
            finish = min(finish, add_days(latest_start, -1))
        late_finish[task_id] = finish

        for pred_id in predecessors.get(task_id, []):
            pending[pred_id] -= 1
            if pending[pred_id] == 0:
                queue.append(pred_id)

    if len(late_finish) != len(leaf_ids):
        unresolved = [task_id for task_id in leaf_ids if task_id not in late_finish]
        raise DependencyCycleError(find_dependency_cycle(unresolved, successors) or Cycle(unresolved))
    return late_finish
