import datetime as dt
from dataclasses import replace

from gantt_scheduler.dates import end_from_duration
from gantt_scheduler.edits import recompute
from gantt_scheduler.project_models import Dependency, DependencyType, WorkItem
from gantt_scheduler.render_rows import format_table, to_render_rows


def _item(task_id, start, duration, parent=None, **fields):
    start_date = dt.date.fromisoformat(start)
    return WorkItem(
        id=task_id,
        parent_id=parent,
        name=f"Task {task_id}",
        start_date=start_date,
        end_date=end_from_duration(start_date, duration),
        duration=duration,
        **fields,
    )


def _items():
    return recompute(
        [
            _item("p", "2024-01-01", 1),
            _item("a", "2024-01-01", 2, parent="p"),
            _item("b", "2024-01-03", 3, parent="p", dependencies=(Dependency("a", DependencyType.SS, 1),)),
            _item("m", "2024-01-06", 1, is_milestone=True, dependencies=(Dependency("b", DependencyType.FS, 0),)),
        ]
    )


def test_rows_follow_tree_order_with_indent_and_kind():
    rows = to_render_rows(_items())

    assert [(row.task_id, row.indent, row.kind, row.position) for row in rows] == [
        ("p", 0, "summary", "1"),
        ("a", 1, "bar", "1.1"),
        ("b", 1, "bar", "1.2"),
        ("m", 0, "milestone", "2"),
    ]
    assert [row.order for row in rows] == [0, 1, 2, 3]


def test_rows_carry_schedule_and_shorthand():
    rows = {row.task_id: row for row in to_render_rows(_items())}

    assert rows["p"].start_date == dt.date(2024, 1, 1)
    assert rows["p"].end_date == dt.date(2024, 1, 5)
    assert rows["b"].depends_on == "1.1SS+1"
    assert rows["m"].depends_on == "1.2FS"
    assert rows["m"].is_critical
    assert rows["p"].is_critical


def test_collapsed_summary_hides_children():
    items = [replace(item, is_expanded=False) if item.id == "p" else item for item in _items()]

    assert [row.task_id for row in to_render_rows(items)] == ["p", "m"]


def test_table_marks_critical_rows():
    table = format_table(to_render_rows(_items()))
    lines = table.splitlines()

    assert lines[0].split()[:3] == ["#", "Task", "Start"]
    assert lines[1].startswith("*1")
    assert "<>Task m" in lines[4]
    assert "1.1SS+1" in lines[3]
