"""Fork ancestry between sessions.

A session forked from another records the parent's id in ``forked_from``.
The graph indexes records by id and links each one to its parent only when
that parent is present in the same record set, so dangling references
become roots. Cycles (which a well-formed store never produces) are cut
while the graph is built.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, Sequence

from ccsessions.models import SessionRecord

logger = logging.getLogger("ccsessions.forks")

_UNVISITED, _IN_PROGRESS, _DONE = 0, 1, 2


@dataclass(frozen=True)
class ForkGraph:
    children: dict[str, tuple[str, ...]] = field(default_factory=dict)
    parents: dict[str, str] = field(default_factory=dict)
    roots: tuple[str, ...] = ()
    broken_cycles: tuple[str, ...] = ()
    ids: frozenset[str] = frozenset()

    def __contains__(self, session_id: object) -> bool:
        return session_id in self.ids

    def has_children(self, session_id: str) -> bool:
        return bool(self.children.get(session_id))

    def children_of(self, session_id: str) -> tuple[str, ...]:
        return self.children.get(session_id, ())

    def parent_of(self, session_id: str) -> str | None:
        return self.parents.get(session_id)

    def ancestors(self, session_id: str) -> list[str]:
        """Parent chain from the nearest parent up to the root."""
        chain: list[str] = []
        current = self.parents.get(session_id)
        while current is not None and len(chain) <= len(self.parents):
            chain.append(current)
            current = self.parents.get(current)
        return chain


def _cut_cycles(order: Sequence[str], parent_of: dict[str, str]) -> list[str]:
    """Remove parent edges until the parent map is acyclic.

    Each node has at most one parent, so every cycle is found by walking
    parent links from unvisited nodes. The cycle member that comes first in
    ``order`` loses its parent edge. Runs in linear time.
    """
    position = {session_id: index for index, session_id in enumerate(order)}
    state: dict[str, int] = {}
    cut: list[str] = []

    for start in order:
        if state.get(start, _UNVISITED) != _UNVISITED:
            continue
        path: list[str] = []
        current: str | None = start
        while current is not None and state.get(current, _UNVISITED) == _UNVISITED:
            state[current] = _IN_PROGRESS
            path.append(current)
            current = parent_of.get(current)

        if current is not None and state.get(current) == _IN_PROGRESS:
            cycle = path[path.index(current):]
            victim = min(cycle, key=position.__getitem__)
            del parent_of[victim]
            cut.append(victim)

        for node in path:
            state[node] = _DONE
    return cut


def build_fork_graph(records: Iterable[SessionRecord]) -> ForkGraph:
    """Build the parent/children relation for ``records``.

    Input order is kept for roots and within each child bucket; callers sort
    by recency first so siblings list newest first. Later duplicates of an id
    are ignored.
    """
    order: list[str] = []
    forked_from: dict[str, str | None] = {}
    for record in records:
        if record.id in forked_from:
            continue
        order.append(record.id)
        forked_from[record.id] = record.forked_from

    parent_of: dict[str, str] = {}
    for session_id in order:
        parent = forked_from[session_id]
        if parent and parent != session_id and parent in forked_from:
            parent_of[session_id] = parent

    broken = _cut_cycles(order, parent_of)
    if broken:
        logger.warning("Broke %d fork cycle(s) at: %s", len(broken), ", ".join(broken))

    buckets: dict[str, list[str]] = {}
    for session_id in order:
        parent = parent_of.get(session_id)
        if parent is not None:
            buckets.setdefault(parent, []).append(session_id)

    child_ids = set(parent_of)
    roots = tuple(session_id for session_id in order if session_id not in child_ids)

    return ForkGraph(
        children={parent: tuple(kids) for parent, kids in buckets.items()},
        parents=parent_of,
        roots=roots,
        broken_cycles=tuple(broken),
        ids=frozenset(order),
    )


@dataclass(frozen=True)
class SessionSnapshot:
    """Ordered records, an id index and their fork graph.

    Shared read-only by every view computation; a rescan replaces it whole.
    """

    records: tuple[SessionRecord, ...] = ()
    by_id: dict[str, SessionRecord] = field(default_factory=dict)
    graph: ForkGraph = field(default_factory=ForkGraph)

    @classmethod
    def from_records(cls, records: Iterable[SessionRecord]) -> "SessionSnapshot":
        by_id: dict[str, SessionRecord] = {}
        ordered: list[SessionRecord] = []
        for record in records:
            if record.id in by_id:
                continue
            by_id[record.id] = record
            ordered.append(record)
        return cls(records=tuple(ordered), by_id=by_id, graph=build_fork_graph(ordered))

    def __contains__(self, session_id: object) -> bool:
        return session_id in self.by_id

    def get(self, session_id: str) -> SessionRecord | None:
        return self.by_id.get(session_id)

    def order_of(self, session_ids: Iterable[str]) -> list[str]:
        """Keep only known ids, in snapshot (recency) order."""
        wanted = set(session_ids)
        return [record.id for record in self.records if record.id in wanted]
