"""Index dependency edges between tasks and lay them out over rows."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Set, Tuple


@dataclass(frozen=True)
class DependencyEdge:
    """Directed connector from a prerequisite's row to its dependent's row."""

    from_pos: int
    to_pos: int
    from_id: str
    to_id: str


def normalize_dependency_ids(task_id: str, dependency_ids: Iterable[str]) -> Tuple[List[str], bool]:
    """Drop duplicates and self references, keeping declaration order.

    Returns the cleaned list and whether a self reference was removed.
    """
    cleaned: List[str] = []
    had_self = False
    for dep_id in dependency_ids:
        if dep_id == task_id:
            had_self = True
            continue
        if dep_id and dep_id not in cleaned:
            cleaned.append(dep_id)
    return cleaned, had_self


class DependencyIndex:
    """Forward and reverse dependency lookup over a working set of tasks.

    Declared dependencies that point outside the working set are kept in
    the declared counts but never appear in ``depends_on`` or in edges.
    The stored records are not modified.
    """

    def __init__(self, tasks: Sequence[Any]):
        self._order: List[str] = []
        self._declared: Dict[str, List[str]] = {}
        for task in tasks:
            if task.id in self._declared:
                continue
            self._order.append(task.id)
            self._declared[task.id], _ = normalize_dependency_ids(task.id, task.dependency_ids or [])

        present = set(self._order)
        self.forward: Dict[str, List[str]] = {}
        self.reverse: Dict[str, List[str]] = {task_id: [] for task_id in self._order}
        for task_id in self._order:
            resolved = [dep_id for dep_id in self._declared[task_id] if dep_id in present]
            self.forward[task_id] = resolved
            for dep_id in resolved:
                self.reverse[dep_id].append(task_id)

    def depends_on(self, task_id: str) -> List[str]:
        """Ids ``task_id`` depends on that exist in the working set."""
        return list(self.forward.get(task_id, []))

    def depended_on_by(self, task_id: str) -> List[str]:
        """Ids in the working set that declare ``task_id`` as a dependency."""
        return list(self.reverse.get(task_id, []))

    def dependency_sets(self) -> Tuple[Dict[str, Set[str]], Dict[str, Set[str]]]:
        """Forward and reverse indexes as sets, for order-free comparison."""
        return (
            {task_id: set(ids) for task_id, ids in self.forward.items()},
            {task_id: set(ids) for task_id, ids in self.reverse.items()},
        )

    def declared_count(self, task_id: str) -> int:
        """Declared dependencies, including ones that cannot be resolved."""
        return len(self._declared.get(task_id, []))

    def has_dependencies(self, task_id: str) -> bool:
        return self.declared_count(task_id) > 0

    def is_depended_on(self, task_id: str) -> bool:
        return bool(self.reverse.get(task_id))

    def edges(self, positions: Mapping[str, int]) -> List[DependencyEdge]:
        """Edges whose endpoints both have a row, ordered by dependent row."""
        result: List[DependencyEdge] = []
        dependents = sorted((pos, task_id) for task_id, pos in positions.items() if task_id in self.forward)
        for to_pos, task_id in dependents:
            for dep_id in self.forward[task_id]:
                from_pos = positions.get(dep_id)
                if from_pos is None:
                    continue
                result.append(DependencyEdge(from_pos=from_pos, to_pos=to_pos, from_id=dep_id, to_id=task_id))
        return result

    def hidden_count(self, task_id: str, positions: Mapping[str, int]) -> int:
        """Declared dependencies of ``task_id`` that get no connector."""
        if task_id not in positions:
            return self.declared_count(task_id)
        shown = sum(1 for dep_id in self.forward.get(task_id, []) if dep_id in positions)
        return self.declared_count(task_id) - shown

    def describe(self, task_id: str, positions: Mapping[str, int]) -> Dict[str, Any]:
        """Display annotation for one task."""
        return {
            "task_id": task_id,
            "depends_on": self.depends_on(task_id),
            "depended_on_by": self.depended_on_by(task_id),
            "declared_count": self.declared_count(task_id),
            "hidden_count": self.hidden_count(task_id, positions),
            "has_dependencies": self.has_dependencies(task_id),
            "is_depended_on": self.is_depended_on(task_id),
        }
