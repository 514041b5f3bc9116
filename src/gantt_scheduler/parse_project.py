from __future__ import annotations

import datetime as _dt
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, TypeVar

import yaml

from .dates import day_count, end_from_duration, parse_day
from .dependency_notation import parse_dependency_notation
from .errors import DependencyParseError, ProjectValidationError
from .hierarchy import hierarchy_positions
from .project_models import Dependency, DependencyType, Health, Project, TaskStatus, WorkItem

E = TypeVar("E", bound=Enum)

_TASK_KEYS = {
    "id",
    "name",
    "parent",
    "start_date",
    "end_date",
    "duration",
    "progress",
    "status",
    "health",
    "depends_on",
    "milestone",
    "at_risk",
    "expanded",
    "owner",
    "role",
    "baseline_start",
    "baseline_end",
}


@dataclass(frozen=True)
class _Path:
    """Helper to produce readable YAML path strings like tasks[3].depends_on[0]."""

    parts: tuple[str, ...] = ()

    def child(self, segment: str) -> "_Path":
        return _Path(self.parts + (segment,))

    def __str__(self) -> str:
        return ".".join(self.parts) if self.parts else "root"


def load_project(path: str) -> Project:
    """Load a Project from a YAML (or JSON) file at the given path (no recompute)."""

    with open(path, "r", encoding="utf-8") as fh:
        raw = yaml.safe_load(fh)

    return parse_project(raw)


def parse_project(data: Any) -> Project:
    path = _Path()
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping at top level")
    _assert_allowed_keys(data, {"project", "tasks"}, path)

    project_raw = data.get("project")
    if not isinstance(project_raw, dict):
        raise ProjectValidationError(f"{path}: missing required mapping 'project'")
    _assert_allowed_keys(project_raw, {"name", "last_updated"}, path.child("project"))
    name = _require_str(project_raw, "name", path.child("project"))
    last_updated = _parse_timestamp(project_raw.get("last_updated"), path.child("project.last_updated"))

    tasks_raw = data.get("tasks")
    if tasks_raw is None:
        raise ProjectValidationError(f"{path}: missing required field 'tasks'")
    if not isinstance(tasks_raw, list):
        raise ProjectValidationError(f"{path}.tasks: expected list")

    ids: set[str] = set()
    items: list[WorkItem] = []
    pending_notation: dict[str, tuple[str, _Path]] = {}
    for idx, task_raw in enumerate(tasks_raw):
        task_path = path.child(f"tasks[{idx}]")
        item, notation = _parse_task(task_raw, task_path, ids)
        items.append(item)
        if notation is not None:
            pending_notation[item.id] = (notation, task_path.child("depends_on"))

    _validate_parents(items, ids)
    items = _resolve_notation(items, pending_notation)
    _validate_predecessors(items, ids)
    return Project(name=name, items=items, last_updated=last_updated)


def _parse_task(data: Any, path: _Path, ids: set[str]) -> tuple[WorkItem, str | None]:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping for task")
    _assert_allowed_keys(data, _TASK_KEYS, path)

    task_id = _require_id(data, "id", path)
    if task_id in ids:
        raise ProjectValidationError(f"{path.child('id')}: duplicate id '{task_id}'")
    ids.add(task_id)

    parent_id = None
    if data.get("parent") is not None:
        parent_id = _require_id(data, "parent", path)

    is_milestone = _parse_bool(data, "milestone", path, default=False)
    start = _parse_date(_require_value(data, "start_date", path), path.child("start_date"))
    start, end, duration = _parse_span(data, start, is_milestone, path)

    progress = data.get("progress", 0)
    if not isinstance(progress, int) or isinstance(progress, bool) or not 0 <= progress <= 100:
        raise ProjectValidationError(f"{path.child('progress')}: expected integer 0..100")

    notation: str | None = None
    dependencies: tuple[Dependency, ...] = ()
    depends_on = data.get("depends_on")
    if isinstance(depends_on, str):
        notation = depends_on
    elif isinstance(depends_on, list):
        dependencies = tuple(
            _parse_dependency(dep, path.child(f"depends_on[{idx}]")) for idx, dep in enumerate(depends_on)
        )
    elif depends_on is not None:
        raise ProjectValidationError(f"{path.child('depends_on')}: expected shorthand string or list of mappings")

    item = WorkItem(
        id=task_id,
        parent_id=parent_id,
        name=_optional_str(data, "name", path),
        start_date=start,
        end_date=end,
        duration=duration,
        progress=progress,
        status=_parse_enum(TaskStatus, data.get("status", TaskStatus.NOT_STARTED.value), path.child("status")),
        health=_parse_enum(Health, data.get("health", Health.GRAY.value), path.child("health")),
        dependencies=dependencies,
        is_milestone=is_milestone,
        is_at_risk=_parse_bool(data, "at_risk", path, default=False),
        is_expanded=_parse_bool(data, "expanded", path, default=True),
        owner=_optional_str(data, "owner", path),
        role=_optional_str(data, "role", path),
        baseline_start=_optional_date(data, "baseline_start", path),
        baseline_end=_optional_date(data, "baseline_end", path),
    )
    return item, notation


def _parse_span(data: dict[str, Any], start: _dt.date, is_milestone: bool, path: _Path) -> tuple[_dt.date, _dt.date, int]:
    has_end = data.get("end_date") is not None
    has_duration = data.get("duration") is not None

    duration = None
    if has_duration:
        duration = data["duration"]
        if not isinstance(duration, int) or isinstance(duration, bool) or duration < 1:
            raise ProjectValidationError(f"{path.child('duration')}: expected positive integer")

    if has_end:
        end = _parse_date(data["end_date"], path.child("end_date"))
        if end < start:
            raise ProjectValidationError(f"{path.child('end_date')}: {end} precedes start_date {start}")
        span = day_count(start, end)
        if duration is not None and duration != span:
            raise ProjectValidationError(
                f"{path.child('duration')}: {duration} disagrees with {span} inclusive days from {start} to {end}"
            )
        return start, end, span

    if duration is None:
        if not is_milestone:
            raise ProjectValidationError(f"{path}: tasks must define end_date or duration")
        duration = 1
    return start, end_from_duration(start, duration), duration


def _parse_dependency(data: Any, path: _Path) -> Dependency:
    if not isinstance(data, dict):
        raise ProjectValidationError(f"{path}: expected mapping with 'predecessor'")
    _assert_allowed_keys(data, {"predecessor", "type", "lag"}, path)
    predecessor = _require_id(data, "predecessor", path)
    link_type = _parse_dependency_type(data.get("type", DependencyType.FS.value), path.child("type"))
    lag = data.get("lag", 0)
    if not isinstance(lag, int) or isinstance(lag, bool):
        raise ProjectValidationError(f"{path.child('lag')}: expected integer days")
    return Dependency(predecessor_id=predecessor, type=link_type, lag_days=lag)


def _parse_dependency_type(value: Any, path: _Path) -> DependencyType:
    if isinstance(value, str):
        for member in DependencyType:
            if value.strip().lower() in (member.value.lower(), member.label.lower()):
                return member
    raise ProjectValidationError(f"{path}: expected one of FS, SS, FF, SF")


def _resolve_notation(items: list[WorkItem], pending: dict[str, tuple[str, _Path]]) -> list[WorkItem]:
    if not pending:
        return items
    positions = hierarchy_positions(items)
    resolved: list[WorkItem] = []
    for item in items:
        if item.id not in pending:
            resolved.append(item)
            continue
        text, path = pending[item.id]
        try:
            links = parse_dependency_notation(text, positions, owner_id=item.id)
        except DependencyParseError as exc:
            raise ProjectValidationError(f"{path}: {exc}") from exc
        resolved.append(replace(item, dependencies=links))
    return resolved


def _validate_parents(items: list[WorkItem], ids: set[str]) -> None:
    for idx, item in enumerate(items):
        if item.parent_id is None:
            continue
        if item.parent_id not in ids:
            raise ProjectValidationError(f"tasks[{idx}].parent: unknown task '{item.parent_id}'")
        if item.parent_id == item.id:
            raise ProjectValidationError(f"tasks[{idx}].parent: task cannot be its own parent")


def _validate_predecessors(items: list[WorkItem], ids: set[str]) -> None:
    for idx, item in enumerate(items):
        for dep in item.dependencies:
            if dep.predecessor_id not in ids:
                raise ProjectValidationError(
                    f"tasks[{idx}].depends_on: task '{item.id}' depends on unknown task '{dep.predecessor_id}'"
                )


def dump_project(project: Project, path: str) -> None:
    """Write ``project`` as YAML in the same shape ``load_project`` reads."""

    with open(path, "w", encoding="utf-8") as fh:
        yaml.safe_dump(project_to_dict(project), fh, sort_keys=False, allow_unicode=True)


def project_to_dict(project: Project) -> dict[str, Any]:
    header: dict[str, Any] = {"name": project.name}
    if project.last_updated is not None:
        header["last_updated"] = project.last_updated.isoformat(timespec="seconds")
    return {"project": header, "tasks": [_task_to_dict(item) for item in project.items]}


def _task_to_dict(item: WorkItem) -> dict[str, Any]:
    data: dict[str, Any] = {
        "id": item.id,
        "name": item.name,
        "parent": item.parent_id,
        "start_date": item.start_date.isoformat(),
        "end_date": item.end_date.isoformat(),
        "duration": item.duration,
        "progress": item.progress,
        "status": TaskStatus(item.status).value,
        "health": Health(item.health).value,
    }
    if item.dependencies:
        data["depends_on"] = [
            {"predecessor": dep.predecessor_id, "type": DependencyType(dep.type).value, "lag": dep.lag_days}
            for dep in item.dependencies
        ]
    if item.is_milestone:
        data["milestone"] = True
    if item.is_at_risk:
        data["at_risk"] = True
    if not item.is_expanded:
        data["expanded"] = False
    if item.owner:
        data["owner"] = item.owner
    if item.role:
        data["role"] = item.role
    if item.baseline_start is not None:
        data["baseline_start"] = item.baseline_start.isoformat()
    if item.baseline_end is not None:
        data["baseline_end"] = item.baseline_end.isoformat()
    return data


def _assert_allowed_keys(data: dict[str, Any], allowed: set[str], path: _Path) -> None:
    extras = sorted(str(key) for key in set(data.keys()) - allowed)
    if extras:
        raise ProjectValidationError(f"{path}: unexpected fields {extras}")


def _require_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    if not isinstance(value, str) or not value.strip():
        raise ProjectValidationError(f"{path.child(key)}: expected non-empty string")
    return value


def _optional_str(data: dict[str, Any], key: str, path: _Path) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ProjectValidationError(f"{path.child(key)}: expected string")
    return value


def _require_id(data: dict[str, Any], key: str, path: _Path) -> str:
    value = _require_value(data, key, path)
    # YAML reads unquoted 7 as an int; 2.1 must be quoted to survive as text.
    if isinstance(value, int) and not isinstance(value, bool):
        return str(value)
    if not isinstance(value, str) or not value.strip():
        raise ProjectValidationError(f"{path.child(key)}: expected non-empty string id (quote ids like '2.1')")
    return value


def _require_value(data: dict[str, Any], key: str, path: _Path) -> Any:
    if key not in data:
        raise ProjectValidationError(f"{path}: missing required field '{key}'")
    return data[key]


def _parse_bool(data: dict[str, Any], key: str, path: _Path, default: bool) -> bool:
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ProjectValidationError(f"{path.child(key)}: expected true or false")
    return value


def _parse_enum(enum_cls: type[E], value: Any, path: _Path) -> E:
    if isinstance(value, str):
        wanted = value.strip().lower()
        for member in enum_cls:
            if wanted in (str(member.value).lower(), member.name.lower()):
                return member
    choices = ", ".join(str(member.value) for member in enum_cls)
    raise ProjectValidationError(f"{path}: expected one of {choices}")


def _parse_date(value: Any, path: _Path) -> _dt.date:
    try:
        return parse_day(value)
    except ValueError as exc:
        raise ProjectValidationError(f"{path}: expected YYYY-MM-DD date") from exc


def _optional_date(data: dict[str, Any], key: str, path: _Path) -> _dt.date | None:
    value = data.get(key)
    if value is None:
        return None
    return _parse_date(value, path.child(key))


def _parse_timestamp(value: Any, path: _Path) -> _dt.datetime | None:
    if value is None:
        return None
    if isinstance(value, _dt.datetime):
        return value
    if isinstance(value, str):
        try:
            return _dt.datetime.fromisoformat(value)
        except ValueError as exc:
            raise ProjectValidationError(f"{path}: expected ISO timestamp") from exc
    raise ProjectValidationError(f"{path}: expected ISO timestamp")
