from __future__ import annotations

import logging
from collections import deque
from dataclasses import replace
from datetime import date
from typing import Iterable

from .dates import add_days, end_from_duration
from .errors import Cycle, DependencyCycleError
from .hierarchy import TaskIndex
from .project_models import Dependency, DependencyType, WorkItem
from .rollup import rollup_hierarchy

logger = logging.getLogger(__name__)


def minimum_start(link: Dependency, predecessor: WorkItem, successor: WorkItem) -> date:
    """
    Earliest start ``successor`` may have under ``link`` to ``predecessor``.

    Finish-based links (FF, SF) constrain the successor's end; they are
    translated to a start through the successor's own duration.
    """

    lag = link.lag_days
    if link.type == DependencyType.SS:
        return add_days(predecessor.start_date, lag)
    if link.type == DependencyType.FF:
        return add_days(predecessor.end_date, lag - (successor.duration - 1))
    if link.type == DependencyType.SF:
        return add_days(predecessor.start_date, lag - (successor.duration - 1))
    return add_days(predecessor.end_date, 1 + lag)


def propagate_changes(items: Iterable[WorkItem], edited_id: str) -> list[WorkItem]:
    """
    Push successors of ``edited_id`` later until no link is violated, then roll up.

    - Only leaves act as source or target; links into or out of parents are ignored.
    - Successors are only ever delayed, never pulled earlier.
    - An item is re-expanded only when its dates moved since it was last
      expanded, so redundant paths terminate at a fixed point.
    - A precedence cycle that keeps delaying itself raises ``DependencyCycleError``.
    """

    return propagate_from_many(items, [edited_id])


def propagate_from_many(items: Iterable[WorkItem], seed_ids: Iterable[str]) -> list[WorkItem]:
    """Breadth-first propagation seeded with several edited ids."""

    index = TaskIndex.build(items)
    successors = index.leaf_successor_links()
    current: dict[str, WorkItem] = dict(index.by_id)

    queue = deque(seed_ids)
    # id -> dates the item had when its successors were last checked
    processed: dict[str, tuple[date, date]] = {}
    expansions: dict[str, int] = {}

    while queue:
        task_id = queue.popleft()
        if task_id not in current:
            logger.debug("Propagation source %r not found; skipped", task_id)
            continue
        if index.is_parent(task_id):
            continue

        predecessor = current[task_id]
        dates = (predecessor.start_date, predecessor.end_date)
        if processed.get(task_id) == dates:
            continue
        processed[task_id] = dates
        expansions[task_id] = expansions.get(task_id, 0) + 1
        if expansions[task_id] > len(current):
            cycle = find_dependency_cycle(list(current), successors)
            raise DependencyCycleError(cycle or Cycle([task_id, task_id]))

        for succ_id, link in successors.get(task_id, []):
            successor = current[succ_id]
            earliest = minimum_start(link, predecessor, successor)
            if successor.start_date >= earliest:
                continue
            logger.debug(
                "Pushing %r from %s to %s (%s %s%+d)",
                succ_id,
                successor.start_date,
                earliest,
                link.type.value,
                task_id,
                link.lag_days,
            )
            current[succ_id] = replace(
                successor,
                start_date=earliest,
                end_date=end_from_duration(earliest, successor.duration),
            )
            queue.append(succ_id)

    return rollup_hierarchy(current.get(item.id, item) for item in index.items)


def find_dependency_cycle(order: list[str], successors: dict[str, list[tuple[str, Dependency]]]) -> Cycle | None:
    """Return the first precedence cycle reachable in ``order``, if any."""

    state: dict[str, str] = {}
    for start_id in order:
        if start_id in state:
            continue
        state[start_id] = "visiting"
        stack = [start_id]
        pending = [iter(successors.get(start_id, []))]
        while pending:
            step = next(pending[-1], None)
            if step is None:
                pending.pop()
                state[stack.pop()] = "done"
                continue
            succ_id = step[0]
            succ_state = state.get(succ_id)
            if succ_state == "visiting":
                return Cycle(stack[stack.index(succ_id) :] + [succ_id])
            if succ_state is None:
                state[succ_id] = "visiting"
                stack.append(succ_id)
                pending.append(iter(successors.get(succ_id, [])))
    return None
