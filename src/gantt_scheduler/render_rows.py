from __future__ import annotations

from typing import Iterable, List

from .dependency_notation import format_dependency_notation
from .hierarchy import TaskIndex, hierarchy_positions, visible_items
from .project_models import RowKind, TaskRow, WorkItem


def to_render_rows(items: Iterable[WorkItem]) -> list[TaskRow]:
    """
    Convert a recomputed snapshot into a flat list of display rows.

    Rows follow depth-first tree order; children of collapsed items are
    skipped. Summary rows precede their children and nested rows increase
    indent by 1.
    """

    snapshot = list(items)
    index = TaskIndex.build(snapshot)
    positions = hierarchy_positions(snapshot)

    rows: List[TaskRow] = []
    for order, item in enumerate(visible_items(snapshot)):
        rows.append(
            TaskRow(
                order=order,
                indent=index.depth(item.id),
                kind=_row_kind(index, item),
                task_id=item.id,
                position=positions.get(item.id, ""),
                name=item.name,
                start_date=item.start_date,
                end_date=item.end_date,
                duration=item.duration,
                progress=item.progress,
                status=item.status,
                health=item.health,
                is_critical=item.is_critical,
                total_float=item.total_float,
                depends_on=format_dependency_notation(item.dependencies, positions),
            )
        )
    return rows


def _row_kind(index: TaskIndex, item: WorkItem) -> RowKind:
    if index.is_parent(item.id):
        return "summary"
    if item.is_milestone:
        return "milestone"
    return "bar"


def format_table(rows: Iterable[TaskRow]) -> str:
    """Plain-text table with one line per row; critical rows are marked with '*'."""

    header = ("#", "Task", "Start", "End", "Days", "%", "Status", "RAG", "Float", "Deps")
    lines = [header]
    for row in rows:
        marker = "*" if row.is_critical else " "
        label = f"{'  ' * row.indent}{'<>' if row.kind == 'milestone' else ''}{row.name or row.task_id}"
        lines.append(
            (
                f"{marker}{row.position}",
                label,
                row.start_date.isoformat(),
                row.end_date.isoformat(),
                str(row.duration),
                str(row.progress),
                row.status.value,
                row.health.value,
                str(row.total_float),
                row.depends_on,
            )
        )

    widths = [max(len(line[col]) for line in lines) for col in range(len(header))]
    return "\n".join(
        "  ".join(cell.ljust(width) for cell, width in zip(line, widths)).rstrip() for line in lines
    )
