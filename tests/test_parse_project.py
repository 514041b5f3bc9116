import datetime as dt
import textwrap

import pytest

from gantt_scheduler.errors import ProjectValidationError
from gantt_scheduler.parse_project import dump_project, load_project, parse_project
from gantt_scheduler.project_models import Dependency, DependencyType, Health, TaskStatus

PROJECT_YAML = textwrap.dedent(
    """
    project:
      name: Website relaunch
    tasks:
      - id: "1"
        name: Discovery
        start_date: 2023-11-01
        duration: 1
      - id: "1.1"
        name: Interviews
        parent: "1"
        start_date: 2023-11-01
        end_date: 2023-11-05
        status: Completed
        progress: 100
        owner: Sam
      - id: "1.2"
        name: Findings
        parent: "1"
        start_date: "2023-11-06"
        duration: 3
        status: in progress
        health: Amber
        depends_on: "1.1FS"
      - id: launch
        name: Launch
        start_date: 2023-11-20
        milestone: true
        at_risk: true
        depends_on:
          - predecessor: "1.2"
            type: Finish-to-Start
            lag: 2
    """
)


def _write(tmp_path, text):
    path = tmp_path / "project.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_loads_flat_task_list(tmp_path):
    project = load_project(str(_write(tmp_path, PROJECT_YAML)))

    assert project.name == "Website relaunch"
    assert [item.id for item in project.items] == ["1", "1.1", "1.2", "launch"]

    interviews = project.items[1]
    assert interviews.parent_id == "1"
    assert interviews.duration == 5
    assert interviews.status == TaskStatus.COMPLETED
    assert interviews.owner == "Sam"

    findings = project.items[2]
    assert findings.end_date == dt.date(2023, 11, 8)
    assert findings.status == TaskStatus.IN_PROGRESS
    assert findings.health == Health.AMBER
    assert findings.dependencies == (Dependency("1.1", DependencyType.FS, 0),)

    launch = project.items[3]
    assert launch.is_milestone and launch.is_at_risk
    assert launch.duration == 1
    assert launch.dependencies == (Dependency("1.2", DependencyType.FS, 2),)


def test_round_trip_through_dump(tmp_path):
    project = load_project(str(_write(tmp_path, PROJECT_YAML)))
    project.last_updated = dt.datetime(2023, 11, 2, 9, 30)
    out = tmp_path / "out.yaml"

    dump_project(project, str(out))
    again = load_project(str(out))

    assert again.items == project.items
    assert again.last_updated == project.last_updated


def test_json_files_are_accepted(tmp_path):
    path = tmp_path / "project.json"
    path.write_text(
        '{"project": {"name": "J"}, "tasks": [{"id": "a", "start_date": "2023-01-01", "duration": 2}]}',
        encoding="utf-8",
    )

    assert load_project(str(path)).items[0].end_date == dt.date(2023, 1, 2)


def _minimal(**task):
    base = {"id": "a", "start_date": "2023-01-01", "duration": 2}
    base.update(task)
    return {"project": {"name": "P"}, "tasks": [base]}


@pytest.mark.parametrize(
    ("task", "fragment"),
    [
        ({"colour": "red"}, "unexpected fields"),
        ({"duration": 0}, "tasks[0].duration"),
        ({"duration": 3, "end_date": "2023-01-02"}, "disagrees"),
        ({"end_date": "2022-12-31", "duration": None}, "precedes"),
        ({"progress": 101}, "tasks[0].progress"),
        ({"status": "Done"}, "tasks[0].status"),
        ({"parent": "ghost"}, "unknown task 'ghost'"),
        ({"depends_on": "9FS"}, "tasks[0].depends_on"),
        ({"depends_on": [{"predecessor": "ghost"}]}, "unknown task 'ghost'"),
        ({"depends_on": [{"predecessor": "a", "type": "XX"}]}, "depends_on[0].type"),
        ({"start_date": "yesterday"}, "tasks[0].start_date"),
        ({"id": 2.1}, "quote ids"),
    ],
)
def test_invalid_tasks_raise_with_path(task, fragment):
    with pytest.raises(ProjectValidationError) as excinfo:
        parse_project(_minimal(**task))

    assert fragment in str(excinfo.value)


def test_duplicate_ids_are_rejected():
    data = _minimal()
    data["tasks"].append({"id": "a", "start_date": "2023-01-01", "duration": 1})

    with pytest.raises(ProjectValidationError, match="duplicate id"):
        parse_project(data)


def test_task_without_span_is_rejected():
    data = {"project": {"name": "P"}, "tasks": [{"id": "a", "start_date": "2023-01-01"}]}

    with pytest.raises(ProjectValidationError, match="end_date or duration"):
        parse_project(data)


def test_top_level_shape_is_checked():
    with pytest.raises(ProjectValidationError):
        parse_project([])
    with pytest.raises(ProjectValidationError):
        parse_project({"project": {"name": "P"}})
    with pytest.raises(ProjectValidationError):
        parse_project({"project": {}, "tasks": []})
