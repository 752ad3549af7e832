import json
import tempfile
import unittest
from pathlib import Path

from typer.testing import CliRunner

from conceptgraph.cli import app
from conceptgraph.engine import KnowledgeGraphEngine


class TestCli(unittest.TestCase):
    def setUp(self):
        self.runner = CliRunner()
        self.tmp = tempfile.TemporaryDirectory()
        self.root = Path(self.tmp.name)
        self.db = self.root / "graph.db"
        notes = self.root / "notes"
        notes.mkdir()
        (notes / "one.md").write_text("[[Apple]] [[Banana]] [[Cherry]]", encoding="utf-8")
        (notes / "two.md").write_text("[[Apple]] [[Banana]]", encoding="utf-8")
        self.notes = notes

    def tearDown(self):
        self.tmp.cleanup()

    def invoke(self, *args):
        return self.runner.invoke(app, list(args))

    def ingest(self):
        res = self.invoke("ingest", "--input", str(self.notes), "--db", str(self.db))
        self.assertEqual(res.exit_code, 0, res.output)
        return res

    def test_ingest_then_insights(self):
        res = self.ingest()
        self.assertIn("Documents seen: 2", res.output)

        res = self.invoke("insights", "--db", str(self.db))
        self.assertEqual(res.exit_code, 0, res.output)
        self.assertIn("Density", res.output)
        self.assertIn("1. Apple (2 connections)", res.output)

    def test_search_and_show(self):
        self.ingest()
        res = self.invoke("search", "app", "--db", str(self.db))
        self.assertEqual(res.exit_code, 0, res.output)
        self.assertIn("Apple", res.output)

        res = self.invoke("show", "Apple", "--db", str(self.db))
        self.assertEqual(res.exit_code, 0, res.output)
        self.assertIn("mentions: 2", res.output)
        self.assertIn("Banana (0.60, medium, from two.md)", res.output)

        res = self.invoke("show", "Durian", "--db", str(self.db))
        self.assertEqual(res.exit_code, 2)

    def test_describe_and_delete(self):
        self.ingest()
        res = self.invoke("describe", "Apple", "A fruit", "--db", str(self.db))
        self.assertEqual(res.exit_code, 0, res.output)

        res = self.invoke("delete", "Cherry", "--db", str(self.db))
        self.assertEqual(res.exit_code, 0, res.output)
        self.assertIn("Deleted Cherry and 2 connection(s)", res.output)

        with KnowledgeGraphEngine.open(self.db) as engine:
            self.assertEqual(engine.get_concept("Apple").description, "A fruit")
            self.assertIsNone(engine.get_concept("Cherry"))

    def test_export_import(self):
        self.ingest()
        out = self.root / "state.json"
        res = self.invoke("export", "--out", str(out), "--db", str(self.db))
        self.assertEqual(res.exit_code, 0, res.output)
        state = json.loads(out.read_text(encoding="utf-8"))
        self.assertEqual(sorted(state["concepts"]), ["Apple", "Banana", "Cherry"])

        other_db = self.root / "other.db"
        res = self.invoke("import", "--input", str(out), "--db", str(other_db))
        self.assertEqual(res.exit_code, 0, res.output)
        self.assertIn("Imported 3 concepts, 3 connections", res.output)

    def test_import_rejects_corrupt_state(self):
        bad = self.root / "bad.json"
        bad.write_text(json.dumps({"concepts": {}, "connections": [{"from": "A", "to": "B", "strength": 0.5}]}))
        res = self.invoke("import", "--input", str(bad), "--db", str(self.db))
        self.assertEqual(res.exit_code, 2)
        self.assertIn("Refusing to import", res.output)

    def test_connections_grouped(self):
        self.ingest()
        res = self.invoke("connections", "--db", str(self.db))
        self.assertEqual(res.exit_code, 0, res.output)
        self.assertIn("Medium connections (3)", res.output)

    def test_doctor(self):
        res = self.invoke("doctor", "--db", str(self.db))
        self.assertEqual(res.exit_code, 1)

        self.ingest()
        res = self.invoke("doctor", "--db", str(self.db))
        self.assertEqual(res.exit_code, 0, res.output)
        self.assertIn("Concepts: 3", res.output)


if __name__ == "__main__":
    unittest.main()
