from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Literal


class TaskStatus(str, Enum):
    """Workflow state of an item; values match the labels used in project files."""

    NOT_STARTED = "Not Started"
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    ON_HOLD = "On Hold"
    BLOCKED = "Blocked"


class Health(str, Enum):
    """Traffic-light (RAG) indicator."""

    GREEN = "Green"
    AMBER = "Amber"
    RED = "Red"
    GRAY = "Gray"


class DependencyType(str, Enum):
    """Precedence link kinds, keyed by their shorthand code."""

    FS = "FS"
    SS = "SS"
    FF = "FF"
    SF = "SF"

    @property
    def label(self) -> str:
        return _DEPENDENCY_LABELS[self]


_DEPENDENCY_LABELS = {
    DependencyType.FS: "Finish-to-Start",
    DependencyType.SS: "Start-to-Start",
    DependencyType.FF: "Finish-to-Finish",
    DependencyType.SF: "Start-to-Finish",
}


RowKind = Literal["summary", "bar", "milestone"]
"""Display kinds: summary (parent), bar (leaf work item), milestone (leaf marker)."""


@dataclass(frozen=True)
class Dependency:
    """Precedence link from a predecessor to the item that owns this link."""

    predecessor_id: str
    type: DependencyType = DependencyType.FS
    lag_days: int = 0


@dataclass(frozen=True)
class WorkItem:
    """
    A single schedulable item of the project tree.

    Whether an item is a parent (summary) or a leaf is not stored here; it is
    derived from the whole collection on every pass. ``is_critical`` and
    ``total_float`` are written by the critical path pass only.
    """

    id: str
    start_date: date
    end_date: date
    duration: int
    parent_id: str | None = None
    name: str = ""
    progress: int = 0
    status: TaskStatus = TaskStatus.NOT_STARTED
    health: Health = Health.GRAY
    dependencies: tuple[Dependency, ...] = ()
    is_milestone: bool = False
    is_at_risk: bool = False
    is_expanded: bool = True
    owner: str = ""
    role: str = ""
    baseline_start: date | None = None
    baseline_end: date | None = None
    is_critical: bool = False
    total_float: int = 0


@dataclass
class Project:
    """Root container loaded from and written to project files."""

    name: str
    items: list[WorkItem] = field(default_factory=list)
    last_updated: datetime | None = None


@dataclass(frozen=True)
class ProjectStats:
    """Headline numbers for a recomputed snapshot."""

    total_tasks: int
    completed_tasks: int
    at_risk_tasks: int
    average_progress: int
    critical_path: list[str] = field(default_factory=list)


@dataclass
class TaskRow:
    """
    Flattened view of a snapshot used by table renderers.

    Only visible items are turned into rows; indentation mirrors tree depth
    and ``position`` is the outline number (``2.1``) used by the dependency
    shorthand.
    """

    order: int
    indent: int
    kind: RowKind
    task_id: str
    position: str
    name: str
    start_date: date
    end_date: date
    duration: int
    progress: int
    status: TaskStatus
    health: Health
    is_critical: bool
    total_float: int
    depends_on: str = ""
