from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable

from .errors import Cycle, HierarchyCycleError
from .project_models import Dependency, WorkItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskIndex:
    """
    Arena over a flat item collection, rebuilt once per pass.

    - ``by_id`` maps ids to items (first occurrence wins on duplicates).
    - ``children`` maps a parent id to its child ids in collection order.
    - ``roots`` lists items without a resolvable parent, in collection order.

    Parent/leaf classification is answered from ``children``; nothing is
    cached on the items themselves.
    """

    items: tuple[WorkItem, ...]
    by_id: dict[str, WorkItem]
    children: dict[str, list[str]]
    roots: list[str]

    @classmethod
    def build(cls, items: Iterable[WorkItem]) -> "TaskIndex":
        ordered = tuple(items)
        by_id: dict[str, WorkItem] = {}
        for item in ordered:
            if item.id in by_id:
                logger.debug("Duplicate item id %r ignored after first occurrence", item.id)
                continue
            by_id[item.id] = item

        children: dict[str, list[str]] = {}
        roots: list[str] = []
        for item in by_id.values():
            parent_id = item.parent_id
            if parent_id is not None and parent_id in by_id:
                children.setdefault(parent_id, []).append(item.id)
                continue
            if parent_id is not None:
                logger.debug("Item %r has unknown parent %r; treating it as a root", item.id, parent_id)
            roots.append(item.id)

        return cls(items=ordered, by_id=by_id, children=children, roots=roots)

    def get(self, task_id: str) -> WorkItem | None:
        return self.by_id.get(task_id)

    def is_parent(self, task_id: str) -> bool:
        return bool(self.children.get(task_id))

    def is_leaf(self, task_id: str) -> bool:
        return task_id in self.by_id and not self.is_parent(task_id)

    def child_ids(self, task_id: str) -> list[str]:
        return self.children.get(task_id, [])

    def leaves(self) -> list[WorkItem]:
        return [item for item in self.by_id.values() if not self.is_parent(item.id)]

    def leaf_successor_links(self) -> dict[str, list[tuple[str, Dependency]]]:
        """
        Map a predecessor id to ``(successor_id, link)`` pairs.

        Only leaf successors and leaf predecessors are kept; links naming an
        unknown item are dropped.
        """

        links: dict[str, list[tuple[str, Dependency]]] = {}
        for item in self.by_id.values():
            if self.is_parent(item.id):
                continue
            for dep in item.dependencies:
                if dep.predecessor_id not in self.by_id:
                    logger.debug("Item %r links to unknown predecessor %r; skipped", item.id, dep.predecessor_id)
                    continue
                if self.is_parent(dep.predecessor_id):
                    continue
                links.setdefault(dep.predecessor_id, []).append((item.id, dep))
        return links

    def descendant_ids(self, task_id: str) -> list[str]:
        """All transitive descendants of ``task_id`` in depth-first order."""

        result: list[str] = []
        seen = {task_id}
        stack = list(reversed(self.child_ids(task_id)))
        while stack:
            current = stack.pop()
            if current in seen:
                # Only an item on a parent loop can be reached twice.
                raise HierarchyCycleError(self._parent_loop(current))
            seen.add(current)
            result.append(current)
            stack.extend(reversed(self.child_ids(current)))
        return result

    def depth(self, task_id: str) -> int:
        chain = [task_id]
        current = self.by_id.get(task_id)
        while current is not None and current.parent_id in self.by_id:
            if current.parent_id in chain:
                raise HierarchyCycleError(self._parent_loop(current.parent_id))
            chain.append(current.parent_id)
            current = self.by_id[current.parent_id]
        return len(chain) - 1

    def parents_bottom_up(self) -> list[str]:
        """
        Parent ids ordered so each one comes after every parent below it.

        Walks the tree with an explicit stack, so depth is not bounded by the
        interpreter's recursion limit. Parents unreachable from a root sit on
        a parent loop and raise ``HierarchyCycleError``.
        """

        order: list[str] = []
        state: dict[str, str] = {}
        for start_id in [*self.roots, *self.by_id]:
            if start_id in state or not self.is_parent(start_id):
                continue
            state[start_id] = "visiting"
            trail = [start_id]
            pending = [iter(self.child_ids(start_id))]
            while pending:
                child_id = next(pending[-1], None)
                if child_id is None:
                    pending.pop()
                    done_id = trail.pop()
                    state[done_id] = "done"
                    order.append(done_id)
                    continue
                if not self.is_parent(child_id) or state.get(child_id) == "done":
                    continue
                if state.get(child_id) == "visiting":
                    raise HierarchyCycleError(Cycle(trail[trail.index(child_id) :] + [child_id]))
                state[child_id] = "visiting"
                trail.append(child_id)
                pending.append(iter(self.child_ids(child_id)))
        return order

    def _parent_loop(self, task_id: str) -> Cycle:
        """Follow parent links from ``task_id`` until an id repeats; ``task_id`` must be on the loop."""

        chain = [task_id]
        parent_id = self.by_id[task_id].parent_id
        while parent_id != task_id:
            chain.append(parent_id)
            parent_id = self.by_id[parent_id].parent_id
        return Cycle(chain + [task_id])


def hierarchy_positions(items: Iterable[WorkItem]) -> dict[str, str]:
    """
    Outline numbers for every item reachable from a root.

    Roots are numbered ``1``, ``2`` ... in collection order and children
    extend their parent's number (``2.1``, ``2.1.3``).
    """

    index = TaskIndex.build(items)
    positions: dict[str, str] = {}
    stack = [(task_id, str(number)) for number, task_id in enumerate(index.roots, start=1)]
    stack.reverse()
    while stack:
        task_id, position = stack.pop()
        positions[task_id] = position
        children = [(child_id, f"{position}.{number}") for number, child_id in enumerate(index.child_ids(task_id), 1)]
        stack.extend(reversed(children))
    return positions


def visible_items(items: Iterable[WorkItem]) -> list[WorkItem]:
    """Depth-first display order, hiding the children of collapsed items."""

    index = TaskIndex.build(items)
    visible: list[WorkItem] = []
    stack = list(reversed(index.roots))
    while stack:
        item = index.by_id[stack.pop()]
        visible.append(item)
        if item.is_expanded:
            stack.extend(reversed(index.child_ids(item.id)))
    return visible


def last_descendant_index(items: list[WorkItem], task_id: str) -> int:
    """Index of the last item in ``items`` that is ``task_id`` or one of its descendants."""

    index = TaskIndex.build(items)
    members = {task_id, *index.descendant_ids(task_id)}
    positions = [idx for idx, item in enumerate(items) if item.id in members]
    return max(positions) if positions else len(items) - 1
