import threading
import unittest
from datetime import datetime, timedelta, timezone

from conceptgraph.graph.analytics import graph_stats, group_by_strength
from conceptgraph.graph.models import Concept, Connection, pair_key
from conceptgraph.graph.store import GraphStore
from conceptgraph.graph.update import apply_document


class FakeClock:
    def __init__(self):
        self.now = datetime(2025, 9, 18, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def tick(self, seconds=60):
        self.now = self.now + timedelta(seconds=seconds)


class TestModels(unittest.TestCase):
    def test_concept_validation(self):
        with self.assertRaises(ValueError):
            Concept(name="")
        with self.assertRaises(ValueError):
            Concept(name="A", mention_count=0)
        with self.assertRaises(ValueError):
            Concept(name="A", last_updated=datetime(2025, 9, 18, 12, 0))
        with self.assertRaises(ValueError):
            Concept(name="A", description=None)

    def test_connection_validation(self):
        with self.assertRaises(ValueError):
            Connection(a="A", b="A", strength=0.5, source_document="d")
        with self.assertRaises(ValueError):
            Connection(a="A", b="B", strength=1.5, source_document="d")
        with self.assertRaises(ValueError):
            Connection(a="A", b="B", strength=-0.1, source_document="d")
        with self.assertRaises(ValueError):
            Connection(a="A", b="B", strength=0.5, source_document=None)

    def test_pair_key_is_unordered(self):
        self.assertEqual(pair_key("B", "A"), pair_key("A", "B"))
        c = Connection(a="B", b="A", strength=0.5, source_document="d")
        self.assertEqual(c.key, ("A", "B"))
        self.assertEqual(c.title, "B ↔ A")
        self.assertEqual(c.other("B"), "A")


class TestGraphStore(unittest.TestCase):
    def setUp(self):
        self.clock = FakeClock()
        self.store = GraphStore(clock=self.clock)

    def test_upsert_concept_creates_then_increments(self):
        c = self.store.upsert_concept("A")
        self.assertEqual(c.mention_count, 1)
        self.assertEqual(c.last_updated, self.clock.now)

        self.clock.tick()
        c2 = self.store.upsert_concept("A")
        self.assertEqual(c2.mention_count, 2)
        self.assertEqual(c2.last_updated, self.clock.now)
        # earlier value handed out is untouched
        self.assertEqual(c.mention_count, 1)

    def test_upsert_concept_rejects_empty_name(self):
        with self.assertRaises(ValueError):
            self.store.upsert_concept("")

    def test_upsert_connection_rules(self):
        self.store.upsert_concept("A")
        self.store.upsert_concept("B")

        self.assertIsNone(self.store.upsert_connection("A", "A", "d1"))
        self.assertIsNone(self.store.upsert_connection("A", "Missing", "d1"))

        first = self.store.upsert_connection("A", "B", "d1")
        self.assertEqual(first.strength, 0.5)
        self.assertEqual(first.source_document, "d1")

        second = self.store.upsert_connection("B", "A", "d2")
        self.assertEqual(second.strength, 0.6)
        self.assertEqual(second.source_document, "d2")
        self.assertEqual(len(self.store.snapshot().connections), 1)

    def test_strength_is_capped(self):
        self.store.upsert_concept("A")
        self.store.upsert_concept("B")
        strengths = [self.store.upsert_connection("A", "B", "d").strength for _ in range(10)]
        self.assertEqual(strengths[:6], [0.5, 0.6, 0.7, 0.8, 0.9, 1.0])
        self.assertEqual(strengths[-1], 1.0)
        self.assertEqual(strengths, sorted(strengths))

    def test_get_and_connections_of_unknown(self):
        self.assertIsNone(self.store.get_concept("nope"))
        self.assertEqual(self.store.connections_of("nope"), [])

    def test_delete_concept_cascades(self):
        apply_document(self.store, "d1", ["A", "B", "C"])
        self.assertTrue(self.store.delete_concept("A"))

        self.assertIsNone(self.store.get_concept("A"))
        snap = self.store.snapshot()
        self.assertEqual([c.key for c in snap.connections], [("B", "C")])
        self.assertEqual(self.store.connections_of("A"), [])
        self.assertEqual(len(self.store.connections_of("B")), 1)

        self.assertFalse(self.store.delete_concept("A"))

    def test_deleted_concept_is_recreated_fresh(self):
        apply_document(self.store, "d1", ["A", "B"])
        self.store.delete_concept("A")
        apply_document(self.store, "d2", ["A", "B"])
        self.assertEqual(self.store.get_concept("A").mention_count, 1)
        self.assertEqual(self.store.get_connection("A", "B").strength, 0.5)

    def test_set_description(self):
        self.store.upsert_concept("A")
        c = self.store.set_description("A", "first letter")
        self.assertEqual(c.description, "first letter")
        self.assertIsNone(self.store.set_description("B", "x"))
        # extraction never touches the description
        self.store.upsert_concept("A")
        self.assertEqual(self.store.get_concept("A").description, "first letter")

    def test_reset_rejects_dangling_connection_and_keeps_state(self):
        apply_document(self.store, "d1", ["A", "B"])
        with self.assertRaises(ValueError):
            self.store.reset(
                [Concept(name="X")],
                [Connection(a="X", b="Y", strength=0.5, source_document="d")],
            )
        self.assertIsNotNone(self.store.get_concept("A"))
        self.assertIsNotNone(self.store.get_connection("A", "B"))

    def test_reset_rejects_duplicate_pair(self):
        with self.assertRaises(ValueError):
            self.store.reset(
                [Concept(name="A"), Concept(name="B")],
                [
                    Connection(a="A", b="B", strength=0.5, source_document="d"),
                    Connection(a="B", b="A", strength=0.7, source_document="d"),
                ],
            )

    def test_concurrent_updates_keep_pairs_unique(self):
        names = ["A", "B", "C", "D"]

        def worker(i):
            for j in range(25):
                apply_document(self.store, f"doc-{i}-{j}", names)

        threads = [threading.Thread(target=worker, args=(i,)) for i in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        snap = self.store.snapshot()
        keys = [c.key for c in snap.connections]
        self.assertEqual(len(keys), len(set(keys)))
        self.assertEqual(len(keys), 6)
        for c in snap.connections:
            self.assertEqual(c.strength, 1.0)
        for concept in snap.concepts:
            self.assertEqual(concept.mention_count, 100)

    def test_readers_never_see_a_half_applied_document(self):
        names = ["A", "B", "C", "D"]
        done = threading.Event()
        seen_connections = set()
        mixed_counts = []

        def writer(i):
            for j in range(50):
                apply_document(self.store, f"doc-{i}-{j}", names)

        def reader():
            while not done.is_set():
                seen_connections.add(graph_stats(self.store).connections)
                groups = group_by_strength(self.store)
                seen_connections.add(sum(len(conns) for _, conns in groups.items()))
                counts = {c.mention_count for c in self.store.snapshot().concepts}
                if len(counts) > 1:
                    mixed_counts.append(counts)

        reader_thread = threading.Thread(target=reader)
        reader_thread.start()
        writers = [threading.Thread(target=writer, args=(i,)) for i in range(4)]
        for t in writers:
            t.start()
        for t in writers:
            t.join()
        done.set()
        reader_thread.join()

        self.assertLessEqual(seen_connections, {0, 6})
        self.assertEqual(mixed_counts, [])


if __name__ == "__main__":
    unittest.main()
