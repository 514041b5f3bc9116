import datetime as dt

import pytest

from gantt_scheduler.dates import end_from_duration
from gantt_scheduler.edits import (
    DEFAULT_DURATION_DAYS,
    add_task,
    create_new_task,
    delete_task,
    recompute,
    set_dependencies_from_notation,
    update_task,
)
from gantt_scheduler.errors import DependencyParseError, TaskEditError
from gantt_scheduler.hierarchy import visible_items
from gantt_scheduler.project_models import Dependency, DependencyType, Health, TaskStatus, WorkItem
from gantt_scheduler.summary import compute_project_stats


def _item(task_id, start, duration, parent=None, **fields):
    start_date = dt.date.fromisoformat(start)
    return WorkItem(
        id=task_id,
        parent_id=parent,
        name=task_id,
        start_date=start_date,
        end_date=end_from_duration(start_date, duration),
        duration=duration,
        **fields,
    )


def _by_id(items):
    return {item.id: item for item in items}


def _project():
    return recompute(
        [
            _item("1", "2023-11-01", 1),
            _item("1.1", "2023-11-01", 5, parent="1", status=TaskStatus.COMPLETED, progress=100),
            _item("1.2", "2023-11-06", 10, parent="1", status=TaskStatus.IN_PROGRESS, progress=50),
            _item("2", "2023-11-16", 1),
            _item(
                "2.1",
                "2023-11-16",
                10,
                parent="2",
                dependencies=(Dependency("1.2", DependencyType.FS, 0),),
            ),
            _item("2.2", "2023-11-26", 5, parent="2", dependencies=(Dependency("2.1", DependencyType.FS, 0),)),
        ]
    )


def test_new_task_defaults():
    task = create_new_task("1", dt.date(2023, 11, 1))

    assert task.parent_id == "1"
    assert task.duration == DEFAULT_DURATION_DAYS
    assert task.end_date == dt.date(2023, 11, 5)
    assert task.status == TaskStatus.NOT_STARTED
    assert task.health == Health.GRAY
    assert task.dependencies == ()
    assert task.progress == 0
    assert task.id.startswith("task-")
    assert task.id != create_new_task(None, dt.date(2023, 11, 1)).id


def test_moving_start_keeps_duration_and_pushes_successors():
    result = _by_id(update_task(_project(), "1.2", start_date=dt.date(2023, 11, 8)))

    assert result["1.2"].end_date == dt.date(2023, 11, 17)
    assert result["1.2"].duration == 10
    assert result["2.1"].start_date == dt.date(2023, 11, 18)
    assert result["2.2"].start_date == dt.date(2023, 11, 28)
    assert result["2"].end_date == dt.date(2023, 12, 2)
    assert result["1"].end_date == dt.date(2023, 11, 17)


def test_changing_duration_moves_end():
    result = _by_id(update_task(_project(), "2.2", duration=2))

    assert result["2.2"].end_date == dt.date(2023, 11, 27)
    assert result["2"].duration == 12


def test_changing_end_recomputes_duration():
    result = _by_id(update_task(_project(), "1.1", end_date=dt.date(2023, 11, 3)))

    assert result["1.1"].duration == 3


def test_end_before_start_is_rejected():
    with pytest.raises(TaskEditError):
        update_task(_project(), "1.1", end_date=dt.date(2023, 10, 1))


@pytest.mark.parametrize("duration", [0, -3])
def test_non_positive_duration_is_rejected(duration):
    with pytest.raises(TaskEditError):
        update_task(_project(), "1.1", duration=duration)


def test_duration_and_end_together_are_rejected():
    with pytest.raises(TaskEditError):
        update_task(_project(), "1.1", duration=3, end_date=dt.date(2023, 11, 3))


def test_status_edit_only_rolls_up():
    result = _by_id(update_task(_project(), "2.1", status="Blocked"))

    assert result["2.1"].health == Health.RED
    assert result["2"].status == TaskStatus.BLOCKED
    assert result["2"].health == Health.RED


def test_summary_dates_and_derived_fields_are_not_editable():
    items = _project()

    with pytest.raises(TaskEditError):
        update_task(items, "1", start_date=dt.date(2024, 1, 1))
    with pytest.raises(TaskEditError):
        update_task(items, "1.1", is_critical=True)
    with pytest.raises(TaskEditError):
        update_task(items, "missing", progress=10)
    with pytest.raises(TaskEditError):
        update_task(items, "1.1", progress=120)
    with pytest.raises(TaskEditError):
        update_task(items, "1.1", status="Done-ish")


def test_new_link_pushes_the_edited_successor():
    items = _project()

    result = _by_id(set_dependencies_from_notation(items, "1.1", "2.2FS+1"))

    assert result["1.1"].dependencies == (Dependency("2.2", DependencyType.FS, 1),)
    assert result["1.1"].start_date == dt.date(2023, 12, 2)


def test_bad_shorthand_leaves_links_unchanged():
    items = _project()

    with pytest.raises(DependencyParseError):
        set_dependencies_from_notation(items, "2.2", "2.1FS, 7.7")

    assert _by_id(items)["2.2"].dependencies == (Dependency("2.1", DependencyType.FS, 0),)


def test_delete_removes_subtree_and_dangling_links():
    result = delete_task(_project(), "1")

    assert [item.id for item in result] == ["2", "2.1", "2.2"]
    assert _by_id(result)["2.1"].dependencies == ()


def test_delete_unknown_item_raises():
    with pytest.raises(TaskEditError):
        delete_task(_project(), "nope")


def test_add_task_lands_after_last_descendant():
    new_task = create_new_task("1", dt.date(2023, 11, 20), task_id="1.3")

    result = add_task(_project(), new_task)

    assert [item.id for item in result][:4] == ["1", "1.1", "1.2", "1.3"]
    assert _by_id(result)["1"].end_date == dt.date(2023, 11, 24)


def test_add_task_rejects_duplicate_id():
    with pytest.raises(TaskEditError):
        add_task(_project(), create_new_task(None, dt.date(2023, 1, 1), task_id="2"))


def test_collapsed_items_hide_descendants():
    items = update_task(_project(), "1", is_expanded=False)

    assert [item.id for item in visible_items(items)] == ["1", "2", "2.1", "2.2"]


def test_project_stats():
    stats = compute_project_stats(_project())

    assert stats.total_tasks == 6
    assert stats.completed_tasks == 1
    assert stats.at_risk_tasks == 0
    # (100*5 + 50*10) / 30 leaf days
    assert stats.average_progress == 33
    assert stats.critical_path == ["1", "1.2", "2", "2.1", "2.2"]
