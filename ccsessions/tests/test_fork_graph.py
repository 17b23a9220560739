import unittest
from datetime import datetime, timedelta, timezone

from ccsessions.fork_graph import SessionSnapshot, build_fork_graph
from ccsessions.models import SessionRecord
from ccsessions.scanner import session_sort_key

BASE = datetime(2026, 1, 10, 9, 0, tzinfo=timezone.utc)


def _record(session_id: str, forked_from: str | None = None, age_minutes: int = 0) -> SessionRecord:
    stamp = BASE - timedelta(minutes=age_minutes)
    return SessionRecord(id=session_id, forked_from=forked_from, created=stamp, modified=stamp)


class ForkGraphTests(unittest.TestCase):
    def test_siblings_are_listed_newest_first(self) -> None:
        records = sorted(
            [
                _record("parent", age_minutes=60),
                _record("older-child", "parent", age_minutes=30),
                _record("newer-child", "parent", age_minutes=5),
            ],
            key=session_sort_key,
        )

        graph = build_fork_graph(records)

        self.assertEqual(graph.roots, ("parent",))
        self.assertEqual(graph.children_of("parent"), ("newer-child", "older-child"))
        self.assertEqual(graph.parent_of("older-child"), "parent")
        self.assertTrue(graph.has_children("parent"))
        self.assertFalse(graph.has_children("older-child"))

    def test_dangling_parent_becomes_root(self) -> None:
        graph = build_fork_graph([_record("orphan", "not-loaded"), _record("other")])

        self.assertEqual(graph.roots, ("orphan", "other"))
        self.assertIsNone(graph.parent_of("orphan"))
        self.assertEqual(graph.children, {})

    def test_self_fork_is_a_root(self) -> None:
        graph = build_fork_graph([_record("loop", "loop")])
        self.assertEqual(graph.roots, ("loop",))
        self.assertEqual(graph.broken_cycles, ())

    def test_cycle_is_cut_at_earliest_member(self) -> None:
        with self.assertLogs("ccsessions.forks", level="WARNING"):
            graph = build_fork_graph(
                [
                    _record("a", "c"),
                    _record("b", "a"),
                    _record("c", "b"),
                    _record("d", "c"),
                ]
            )

        self.assertEqual(graph.broken_cycles, ("a",))
        self.assertEqual(graph.roots, ("a",))
        self.assertEqual(graph.children_of("a"), ("b",))
        self.assertEqual(graph.children_of("b"), ("c",))
        self.assertEqual(graph.children_of("c"), ("d",))
        self.assertEqual(graph.ancestors("d"), ["c", "b", "a"])

    def test_later_duplicate_ids_are_ignored(self) -> None:
        graph = build_fork_graph([_record("x"), _record("y", "x"), _record("y")])
        self.assertEqual(graph.roots, ("x",))
        self.assertEqual(graph.children_of("x"), ("y",))

    def test_every_session_appears_exactly_once(self) -> None:
        records = [
            _record("r1"),
            _record("c1", "r1"),
            _record("g1", "c1"),
            _record("c2", "r1"),
            _record("dangling", "missing"),
            _record("p", "q"),
            _record("q", "p"),
        ]

        graph = build_fork_graph(records)

        placed = list(graph.roots)
        for kids in graph.children.values():
            placed.extend(kids)
        self.assertCountEqual(placed, [record.id for record in records])
        self.assertEqual(graph.ids, frozenset(record.id for record in records))
        for root in graph.roots:
            self.assertIsNone(graph.parent_of(root))


class SessionSnapshotTests(unittest.TestCase):
    def test_lookup_and_ordering(self) -> None:
        snapshot = SessionSnapshot.from_records([_record("new"), _record("mid", "new"), _record("old")])

        self.assertIn("mid", snapshot)
        self.assertNotIn("gone", snapshot)
        self.assertEqual(snapshot.get("mid").forked_from, "new")
        self.assertIsNone(snapshot.get("gone"))
        self.assertEqual(snapshot.order_of(["old", "gone", "new"]), ["new", "old"])
        self.assertEqual(snapshot.graph.children_of("new"), ("mid",))


if __name__ == "__main__":
    unittest.main()
