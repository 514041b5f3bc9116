from __future__ import annotations

import logging
import uuid
from dataclasses import replace
from datetime import date
from typing import Any, Iterable

from .critical_path import identify_critical_path
from .dates import day_count, end_from_duration
from .dependency_notation import parse_dependency_notation
from .errors import TaskEditError
from .hierarchy import TaskIndex, hierarchy_positions, last_descendant_index
from .project_models import Health, TaskStatus, WorkItem
from .rollup import rollup_hierarchy
from .scheduling import propagate_from_many

logger = logging.getLogger(__name__)

DEFAULT_DURATION_DAYS = 5
DEFAULT_TASK_NAME = "New Task"
DEFAULT_OWNER = "Unassigned"
DEFAULT_ROLE = "Contributor"

SCHEDULE_FIELDS = frozenset({"start_date", "end_date", "duration"})
DERIVED_FIELDS = frozenset({"is_critical", "total_float"})
EDITABLE_FIELDS = frozenset(
    {
        "name",
        "parent_id",
        "progress",
        "status",
        "health",
        "dependencies",
        "is_milestone",
        "is_at_risk",
        "is_expanded",
        "owner",
        "role",
        "baseline_start",
        "baseline_end",
    }
) | SCHEDULE_FIELDS


def create_new_task(parent_id: str | None, start_date: date, task_id: str | None = None) -> WorkItem:
    """Factory for a fresh, not yet assessed item starting on ``start_date``."""

    return WorkItem(
        id=task_id or f"task-{uuid.uuid4().hex[:12]}",
        parent_id=parent_id,
        name=DEFAULT_TASK_NAME,
        start_date=start_date,
        end_date=end_from_duration(start_date, DEFAULT_DURATION_DAYS),
        duration=DEFAULT_DURATION_DAYS,
        progress=0,
        status=TaskStatus.NOT_STARTED,
        health=Health.GRAY,
        owner=DEFAULT_OWNER,
        role=DEFAULT_ROLE,
    )


def recompute(items: Iterable[WorkItem]) -> list[WorkItem]:
    """Rollup followed by the critical path pass."""
    return identify_critical_path(rollup_hierarchy(items))


def add_task(items: list[WorkItem], item: WorkItem) -> list[WorkItem]:
    """Insert ``item`` after the last descendant of its parent, then recompute."""

    index = TaskIndex.build(items)
    if item.id in index.by_id:
        raise TaskEditError(f"item '{item.id}' already exists")

    if item.parent_id is not None and item.parent_id in index.by_id:
        insert_at = last_descendant_index(items, item.parent_id) + 1
    else:
        insert_at = len(items)
    updated = list(items)
    updated.insert(insert_at, item)
    return recompute(updated)


def delete_task(items: list[WorkItem], task_id: str) -> list[WorkItem]:
    """Remove ``task_id`` and all of its descendants, plus links that pointed at them."""

    index = TaskIndex.build(items)
    if task_id not in index.by_id:
        raise TaskEditError(f"unknown item '{task_id}'")

    removed = {task_id, *index.descendant_ids(task_id)}
    logger.debug("Deleting %d item(s) under %r", len(removed), task_id)
    kept: list[WorkItem] = []
    for item in items:
        if item.id in removed:
            continue
        links = tuple(dep for dep in item.dependencies if dep.predecessor_id not in removed)
        kept.append(item if links == item.dependencies else replace(item, dependencies=links))
    return recompute(kept)


def update_task(items: list[WorkItem], task_id: str, **changes: Any) -> list[WorkItem]:
    """
    Apply an edit and run the full recompute transaction.

    Schedule edits keep the item internally consistent before propagation:
    a new start keeps the duration and moves the end, a new end recomputes
    the duration, a new duration moves the end. Date or link changes run the
    propagator; anything else only rolls up. The critical path pass always
    runs last.
    """

    index = TaskIndex.build(items)
    item = index.get(task_id)
    if item is None:
        raise TaskEditError(f"unknown item '{task_id}'")

    derived = changes.keys() & DERIVED_FIELDS
    if derived:
        raise TaskEditError(f"{sorted(derived)} are computed and cannot be edited")
    unknown = changes.keys() - EDITABLE_FIELDS
    if unknown:
        raise TaskEditError(f"unknown field(s) {sorted(unknown)}")
    if index.is_parent(task_id) and changes.keys() & SCHEDULE_FIELDS:
        raise TaskEditError(f"dates of summary item '{task_id}' are derived from its children")
    if "progress" in changes and not 0 <= int(changes["progress"]) <= 100:
        raise TaskEditError(f"progress must be within 0..100, got {changes['progress']}")

    edited = _apply_schedule_changes(item, changes)
    updated = [edited if other.id == task_id else other for other in items]

    seeds: list[str] = []
    if changes.keys() & SCHEDULE_FIELDS:
        seeds.append(task_id)
    if "dependencies" in changes:
        seeds.extend(dep.predecessor_id for dep in edited.dependencies)

    if seeds:
        return identify_critical_path(propagate_from_many(updated, seeds))
    return recompute(updated)


def set_dependencies_from_notation(items: list[WorkItem], task_id: str, text: str) -> list[WorkItem]:
    """Replace the links of ``task_id`` with parsed shorthand and recompute."""

    positions = hierarchy_positions(items)
    links = parse_dependency_notation(text, positions, owner_id=task_id)
    return update_task(items, task_id, dependencies=links)


def _apply_schedule_changes(item: WorkItem, changes: dict[str, Any]) -> WorkItem:
    values = dict(changes)
    if "dependencies" in values:
        values["dependencies"] = tuple(values["dependencies"])
    try:
        if "status" in values:
            values["status"] = TaskStatus(values["status"])
        if "health" in values:
            values["health"] = Health(values["health"])
    except ValueError as exc:
        raise TaskEditError(str(exc)) from exc

    start = values.get("start_date", item.start_date)
    if "duration" in values and "end_date" in values:
        raise TaskEditError("pass either duration or end_date, not both")
    if "duration" in values:
        duration = int(values["duration"])
        if duration < 1:
            raise TaskEditError(f"duration must be at least 1 day, got {duration}")
        values["duration"] = duration
        values["end_date"] = end_from_duration(start, duration)
    elif "end_date" in values:
        end = values["end_date"]
        if end < start:
            raise TaskEditError(f"end date {end} precedes start date {start}")
        values["duration"] = day_count(start, end)
    elif "start_date" in values:
        values["end_date"] = end_from_duration(start, item.duration)

    return replace(item, **values)
