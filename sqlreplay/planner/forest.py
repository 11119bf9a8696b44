"""Dependency planner: builds an ordered forest of SQL scripts from the relations manifest and the discovered files."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlreplay.core.errors import RelationCycleError
from sqlreplay.core.logging_utils import log_event
from sqlreplay.planner.relations import Relation

ROOT_SERIAL = 1
FIRST_DEPENDENCY_SERIAL = 2


@dataclass(frozen=True)
class ScriptEntry:
    """One placement request. ``parent_id`` is the script that depends on this one."""

    id: str
    file_path: str
    serial: int
    parent_id: Optional[str] = None


@dataclass(eq=False)
class ForestNode:
    """A script in the forest; ``children`` must run before the node itself."""

    id: str
    file_path: str
    children: List["ForestNode"] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "file_path": self.file_path,
            "children": [child.to_dict() for child in self.children],
        }


def resolve_path(basename: str, files: Sequence[str]) -> str:
    """Return the first path in ``files`` whose basename is ``basename``, or ``""``."""
    for path in files:
        if os.path.basename(path) == basename:
            return path
    return ""


def build_entries(relations: Iterable[Relation], files: Sequence[str]) -> List[ScriptEntry]:
    """Build the placement list, stable-sorted by serial.

    Every discovered file gets serial 1 so it is placed before any declared
    dependency; dependencies get increasing serials from 2 in manifest order.

    Args:
        relations (Iterable[Relation]): Manifest records in order.
        files (Sequence[str]): Discovered ``.sql`` paths in walk order.

    Returns:
        List[ScriptEntry]: Entries in placement order.
    """
    entries: List[ScriptEntry] = []
    serial = FIRST_DEPENDENCY_SERIAL
    for relation in relations:
        for dep in relation.dependencies:
            entries.append(
                ScriptEntry(
                    id=dep,
                    parent_id=relation.file,
                    file_path=resolve_path(dep, files),
                    serial=serial,
                )
            )
            serial += 1
    for path in files:
        entries.append(ScriptEntry(id=os.path.basename(path), file_path=path, serial=ROOT_SERIAL))
    return sorted(entries, key=lambda entry: entry.serial)


class Forest:
    """Arena of script nodes addressed by index, with a basename lookup.

    Tree edges give the JSON shape; every declared dependency is also kept as
    an ordering edge so a script claimed by two parents still runs before both.
    """

    def __init__(self) -> None:
        self.nodes: List[ForestNode] = []
        self._root_ids: List[int] = []
        self._parent: List[Optional[int]] = []
        self._after: List[List[int]] = []
        self._by_id: Dict[str, int] = {}
        # parent id -> children declared before any node with that id existed
        self._pending: Dict[str, List[int]] = {}

    @property
    def roots(self) -> List[ForestNode]:
        return [self.nodes[idx] for idx in self._root_ids]

    def get(self, node_id: str) -> Optional[ForestNode]:
        idx = self._by_id.get(node_id)
        return None if idx is None else self.nodes[idx]

    def add_root(self, node_id: str, file_path: str) -> int:
        """Append a new root node; the first node with a given id owns the lookup.

        Children that were declared under this id before it existed are
        attached to the new owner.
        """
        idx = len(self.nodes)
        self.nodes.append(ForestNode(id=node_id, file_path=file_path))
        self._parent.append(None)
        self._after.append([])
        self._root_ids.append(idx)
        if node_id not in self._by_id:
            self._by_id[node_id] = idx
            for child in self._pending.pop(node_id, []):
                self._attach(child, idx)
        return idx

    def place(self, entry: ScriptEntry) -> None:
        """Insert one entry, attaching it under its declared parent when that parent exists."""
        if entry.parent_id is None:
            if entry.id in self._by_id:
                log_event(
                    "planner.duplicate_basename",
                    {"id": entry.id, "file_path": entry.file_path, "kept": self.nodes[self._by_id[entry.id]].file_path},
                )
            self.add_root(entry.id, entry.file_path)
            return

        child = self._by_id.get(entry.id)
        if child is None:
            child = self.add_root(entry.id, entry.file_path)
        parent = self._by_id.get(entry.parent_id)
        if parent is None:
            self._pending.setdefault(entry.parent_id, []).append(child)
            return
        self._attach(child, parent)

    def _attach(self, child: int, parent: int) -> None:
        if child in self._after[parent]:
            return
        path = self._dependency_path(child, parent)
        if path is not None:
            raise RelationCycleError([self.nodes[parent].id] + [self.nodes[idx].id for idx in path])
        self._after[parent].append(child)
        if self._parent[child] is None:
            self._root_ids.remove(child)
            self._parent[child] = parent
            self.nodes[parent].children.append(self.nodes[child])

    def _dependency_path(self, start: int, target: int) -> Optional[List[int]]:
        """Return the dependency chain from ``start`` to ``target``, if any."""
        stack = [(start, [start])]
        seen = set()
        while stack:
            idx, path = stack.pop()
            if idx == target:
                return path
            if idx in seen:
                continue
            seen.add(idx)
            for dep in self._after[idx]:
                stack.append((dep, path + [dep]))
        return None

    def post_order(self) -> List[ForestNode]:
        """Return every node once, each after all of its dependencies.

        For a plain tree this is the left-to-right post-order of each root in
        insertion order.
        """
        emitted: set[int] = set()
        order: List[ForestNode] = []

        def _visit(idx: int) -> None:
            if idx in emitted:
                return
            for dep in self._after[idx]:
                _visit(dep)
            emitted.add(idx)
            order.append(self.nodes[idx])

        for idx in self._root_ids:
            _visit(idx)
        return order

    def post_order_ids(self) -> List[str]:
        return [node.id for node in self.post_order()]

    def to_dicts(self) -> List[Dict[str, Any]]:
        return [node.to_dict() for node in self.roots]


def plan_forest(relations: Iterable[Relation], files: Sequence[str]) -> Forest:
    """Plan the execution forest for ``files`` given the manifest ``relations``.

    Raises:
        RelationCycleError: When the relations declare a dependency cycle.
    """
    forest = Forest()
    for entry in build_entries(relations, files):
        forest.place(entry)
    return forest


def forest_to_json(forest: Forest) -> str:
    """Serialize the forest as a compact JSON array of root nodes."""
    return json.dumps(forest.to_dicts(), ensure_ascii=False, separators=(",", ":"))
