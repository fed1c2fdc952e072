"""Build ordered, leveled task lists from the flat parent relation."""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Set

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskRow:
    """A task placed in the display order."""

    task: Any
    level: int
    has_children: bool = False
    expanded: bool = False


def find_cycle_members(parent_of: Mapping[str, Optional[str]]) -> Set[str]:
    """Return ids that are their own ancestor.

    ``parent_of`` maps every id in the working set to its parent id; a
    parent outside the mapping ends the chain. Each id is visited once.
    """
    members: Set[str] = set()
    state: Dict[str, int] = {}  # 1 = on current path, 2 = finished

    for start in parent_of:
        if start in state:
            continue
        path: List[str] = []
        node: Optional[str] = start
        while node is not None and node in parent_of and node not in state:
            state[node] = 1
            path.append(node)
            node = parent_of[node]
        if node is not None and state.get(node) == 1:
            members.update(path[path.index(node):])
        for visited in path:
            state[visited] = 2
    return members


def ancestor_chain(start_id: Optional[str], parent_of: Mapping[str, Optional[str]]) -> List[str]:
    """Walk parent links upward from ``start_id`` (inclusive).

    Stops at a missing parent or on the first repeated id, so a corrupt
    chain cannot loop.
    """
    chain: List[str] = []
    seen: Set[str] = set()
    node = start_id
    while node is not None and node not in seen:
        chain.append(node)
        seen.add(node)
        node = parent_of.get(node)
    return chain


def build_hierarchy(
    tasks: Sequence[Any],
    expanded: Optional[Iterable[str]] = None,
) -> List[TaskRow]:
    """Order one container's tasks depth-first, parents before children.

    ``tasks`` must already be scoped to a single container and is taken to
    be in insertion order; siblings keep that order. Children of a parent
    whose id is not in ``expanded`` are left out, together with all their
    descendants. ``expanded=None`` expands every parent.

    Tasks whose parent is missing from ``tasks`` are roots. A task caught
    in a parent cycle is also promoted to root, with a warning.
    """
    expand_all = expanded is None
    expanded_ids = set() if expanded is None else set(expanded)

    by_id: Dict[str, Any] = {}
    ordered: List[Any] = []
    for task in tasks:
        if task.id in by_id:
            logger.warning("Duplicate task id %s ignored in hierarchy build", task.id)
            continue
        by_id[task.id] = task
        ordered.append(task)

    parent_of = {task.id: task.parent_id for task in ordered}
    cyclic = find_cycle_members(parent_of)
    if cyclic:
        logger.warning(
            "Task hierarchy cycle detected; treating tasks as roots",
            extra={"task_ids": sorted(cyclic)},
        )

    roots: List[Any] = []
    children: Dict[str, List[Any]] = defaultdict(list)
    for task in ordered:
        parent_id = task.parent_id
        if parent_id is None or task.id in cyclic:
            roots.append(task)
        elif parent_id not in by_id:
            logger.debug("Task %s references missing parent %s; shown as root", task.id, parent_id)
            roots.append(task)
        else:
            children[parent_id].append(task)

    rows: List[TaskRow] = []
    visited: Set[str] = set()

    def walk(root: Any) -> None:
        stack = [(root, 0)]
        while stack:
            task, level = stack.pop()
            if task.id in visited:
                continue
            visited.add(task.id)
            kids = children.get(task.id, [])
            is_open = expand_all or task.id in expanded_ids
            rows.append(
                TaskRow(task=task, level=level, has_children=bool(kids), expanded=is_open and bool(kids))
            )
            if is_open:
                stack.extend((kid, level + 1) for kid in reversed(kids))

    for root in roots:
        walk(root)

    if expand_all and len(visited) < len(ordered):
        # Unreachable only if the parent map is corrupt in a way not caught above.
        for task in ordered:
            if task.id not in visited:
                logger.warning("Task %s unreachable from any root; shown as root", task.id)
                walk(task)

    return rows


def row_positions(rows: Sequence[TaskRow]) -> Dict[str, int]:
    """Map task id to its row index."""
    return {row.task.id: index for index, row in enumerate(rows)}
