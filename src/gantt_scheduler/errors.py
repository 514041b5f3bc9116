from __future__ import annotations

from dataclasses import dataclass


class GanttError(Exception):
    """Base class for errors raised by the scheduling engine and its boundary."""


class ProjectValidationError(GanttError):
    """Raised when a project file is invalid (bad fields, duplicates, unknown refs)."""


class DependencyParseError(GanttError):
    """Raised when dependency shorthand such as ``2.1FS+3`` cannot be parsed."""


class TaskEditError(GanttError):
    """Raised when an edit targets an unknown item or a field it may not change."""


@dataclass(frozen=True)
class Cycle:
    """Represents a detected cycle path for error reporting."""

    path: list[str]

    def __str__(self) -> str:
        return " -> ".join(self.path)


class StructuralCycleError(GanttError):
    """Raised when the parent tree or the precedence graph contains a cycle."""

    kind = "structure"

    def __init__(self, cycle: Cycle) -> None:
        self.cycle = cycle
        super().__init__(f"{self.kind} cycle detected: {cycle}")


class HierarchyCycleError(StructuralCycleError):
    kind = "Parent"


class DependencyCycleError(StructuralCycleError):
    kind = "Dependency"
