"""Reachability over the organization forest.

Organizations arrive as a flat snapshot of ``(id, parent_id)`` records. The
snapshot is indexed once and every walk is iterative and bounded, so
malformed data (dangling parents, cycles) degrades to "no further
ancestors" instead of raising or looping.
"""
from __future__ import annotations

from collections.abc import Hashable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

import structlog

log = structlog.get_logger(__name__)

@dataclass(frozen=True)
class OrgNode:
    id: Hashable
    parent_id: Hashable | None = None

    @classmethod
    def of(cls, record: Any) -> OrgNode:
        """Accept an ``OrgNode``, a mapping or any object with ``id``/``parent_id``."""
        if isinstance(record, OrgNode):
            return record
        if isinstance(record, Mapping):
            return cls(id=record["id"], parent_id=record.get("parent_id"))
        return cls(id=record.id, parent_id=getattr(record, "parent_id", None))

class OrgTree:
    def __init__(self, orgs: Iterable[Any] = ()) -> None:
        self._parents: dict[Hashable, Hashable | None] = {}
        self._children: dict[Hashable, list[Hashable]] = {}

        for node in map(OrgNode.of, orgs):
            if node.id in self._parents:
                log.debug("orgtree.duplicate_org", org_id=str(node.id))
                continue
            self._parents[node.id] = node.parent_id
            if node.parent_id is not None:
                self._children.setdefault(node.parent_id, []).append(node.id)

    def __len__(self) -> int:
        return len(self._parents)

    def __contains__(self, org_id: object) -> bool:
        return org_id in self._parents

    def parent_of(self, org_id: Hashable) -> Hashable | None:
        return self._parents.get(org_id)

    def children_of(self, org_id: Hashable) -> tuple[Hashable, ...]:
        return tuple(self._children.get(org_id, ()))

    def is_descendant(self, ancestor_id: Hashable, candidate_id: Hashable) -> bool:
        """True if ``ancestor_id`` appears on ``candidate_id``'s parent chain."""
        if ancestor_id == candidate_id or candidate_id not in self._parents:
            return False

        parent = self._parents[candidate_id]
        hops = 1
        while parent is not None:
            if parent == ancestor_id:
                return True
            if parent not in self._parents:
                return False
            # at most len() lookups; a valid chain never needs more
            if hops >= len(self._parents):
                log.warning("orgtree.cycle_detected", org_id=str(candidate_id))
                return False
            hops += 1
            parent = self._parents[parent]
        return False

    def reachable(self, root_id: Hashable) -> frozenset[Hashable]:
        """``root_id`` plus all of its descendants."""
        if root_id not in self._parents:
            return frozenset({root_id})

        seen = {root_id}
        stack = [root_id]
        while stack:
            current = stack.pop()
            for child in self._children.get(current, ()):
                if child in seen:
                    log.warning("orgtree.cycle_detected", org_id=str(child))
                    continue
                seen.add(child)
                stack.append(child)
        return frozenset(seen)

def as_tree(orgs: OrgTree | Iterable[Any]) -> OrgTree:
    return orgs if isinstance(orgs, OrgTree) else OrgTree(orgs)

def is_descendant(ancestor_id: Hashable, candidate_id: Hashable, all_orgs: OrgTree | Iterable[Any]) -> bool:
    return as_tree(all_orgs).is_descendant(ancestor_id, candidate_id)

def reachable_org_ids(root_id: Hashable, all_orgs: OrgTree | Iterable[Any]) -> frozenset[Hashable]:
    return as_tree(all_orgs).reachable(root_id)
