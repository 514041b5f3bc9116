from __future__ import annotations

import argparse
import datetime as dt
import logging
import sys
from pathlib import Path

import yaml

from .edits import delete_task, recompute, set_dependencies_from_notation, update_task
from .errors import DependencyParseError, ProjectValidationError, StructuralCycleError, TaskEditError
from .parse_project import dump_project, load_project
from .project_models import Project, WorkItem
from .render_rows import format_table, to_render_rows
from .summary import compute_project_stats

logger = logging.getLogger("gantt_scheduler")


def _parse_date(value: str) -> dt.date:
    try:
        return dt.date.fromisoformat(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD") from exc


def _split_assignment(value: str) -> tuple[str, str]:
    task_id, sep, rest = value.partition("=")
    if not sep or not task_id:
        raise argparse.ArgumentTypeError(f"expected ID=VALUE, got '{value}'")
    return task_id, rest


def _edit(field: str, convert=None):
    """argparse type that tags an ID=VALUE edit with the field it changes."""

    def parse(value: str) -> tuple[str, str, object]:
        task_id, rest = _split_assignment(value)
        if convert is None:
            return field, task_id, rest
        try:
            return field, task_id, convert(rest)
        except ValueError as exc:
            raise argparse.ArgumentTypeError(f"invalid value '{rest}' for '{task_id}'") from exc

    return parse


def _delete(value: str) -> tuple[str, str, None]:
    return "delete", value, None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Recompute rollups, dependency pushes and the critical path of a project file",
        epilog="Edits are applied one by one in command-line order.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("project", help="Path to project YAML (JSON accepted)")
    parser.add_argument("--out", help="Write the recomputed project to this YAML path")
    edits = dict(dest="edits", action="append", default=[])
    parser.add_argument("--set-start", type=_edit("start_date", _parse_date), metavar="ID=DATE", **edits)
    parser.add_argument("--set-end", type=_edit("end_date", _parse_date), metavar="ID=DATE", **edits)
    parser.add_argument("--set-duration", type=_edit("duration", int), metavar="ID=DAYS", **edits)
    parser.add_argument("--set-progress", type=_edit("progress", int), metavar="ID=PCT", **edits)
    parser.add_argument("--set-status", type=_edit("status"), metavar="ID=STATUS", **edits)
    parser.add_argument(
        "--set-deps",
        type=_edit("dependencies"),
        metavar="ID=SHORTHAND",
        help="Replace links, e.g. 3=2.1FS+3,2SS",
        **edits,
    )
    parser.add_argument("--delete", type=_delete, metavar="ID", help="Delete an item and its subtree", **edits)
    parser.add_argument("--no-stats", dest="stats", action="store_false", help="Do not print summary statistics")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log engine decisions to stderr")
    return parser


def _apply_edits(items: list[WorkItem], edits: list[tuple[str, str, object]]) -> list[WorkItem]:
    for field, task_id, value in edits:
        if field == "delete":
            items = delete_task(items, task_id)
        elif field == "dependencies":
            items = set_dependencies_from_notation(items, task_id, value)
        else:
            items = update_task(items, task_id, **{field: value})
    return items


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    project_path = Path(args.project)

    try:
        project: Project = load_project(str(project_path))
    except (yaml.YAMLError, ProjectValidationError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    except FileNotFoundError:
        print(f"Error: project file not found: {project_path}", file=sys.stderr)
        return 1

    try:
        items = _apply_edits(recompute(project.items), args.edits)
    except (TaskEditError, DependencyParseError, StructuralCycleError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2
    logger.debug("Recomputed %d item(s) of %r", len(items), project.name)

    print(project.name)
    print(format_table(to_render_rows(items)))
    if args.stats:
        stats = compute_project_stats(items)
        print()
        print(
            f"{stats.total_tasks} tasks, {stats.completed_tasks} completed, {stats.at_risk_tasks} red, "
            f"{stats.average_progress}% done"
        )
        print(f"Critical: {', '.join(stats.critical_path) or '-'}")

    if args.out:
        result = Project(name=project.name, items=items, last_updated=dt.datetime.now().replace(microsecond=0))
        try:
            dump_project(result, args.out)
        except OSError as exc:
            print(f"Error: cannot write {args.out}: {exc}", file=sys.stderr)
            return 1

    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
