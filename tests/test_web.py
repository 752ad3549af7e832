import unittest

from fastapi.testclient import TestClient

from conceptgraph.engine import KnowledgeGraphEngine
from conceptgraph.web.server import create_app


class TestWebApi(unittest.TestCase):
    def setUp(self):
        self.engine = KnowledgeGraphEngine()
        self.client = TestClient(create_app(engine=self.engine))

    def post_doc(self, doc_id, content):
        r = self.client.post("/api/documents", json={"document_id": doc_id, "content": content})
        self.assertEqual(r.status_code, 200, r.text)
        return r.json()

    def test_document_changed_and_insights(self):
        data = self.post_doc("d1", "[[A]] [[B]] [[C]]")
        self.assertEqual(data["connections_created"], 3)

        r = self.client.get("/api/insights")
        body = r.json()
        self.assertEqual(body["density"], 100)
        self.assertEqual(body["most_connected"][0], {"concept": "A", "connections": 2})
        self.assertEqual(body["clusters"], [{"concepts": ["A", "B", "C"], "density": 67}])

    def test_document_validation(self):
        r = self.client.post("/api/documents", json={"content": "[[A]]"})
        self.assertEqual(r.status_code, 400)
        self.assertFalse(r.json()["ok"])

    def test_concept_endpoints(self):
        self.post_doc("d1", "[[Apple]] [[Banana]]")

        r = self.client.get("/api/concepts/Apple")
        self.assertEqual(r.status_code, 200)
        concept = r.json()["concept"]
        self.assertEqual(concept["mentionCount"], 1)
        self.assertEqual(concept["neighbors"][0]["concept"], "Banana")

        r = self.client.put("/api/concepts/Apple/description", json={"description": "red"})
        self.assertEqual(r.json()["concept"]["description"], "red")

        self.assertEqual(self.client.get("/api/concepts/Nope").status_code, 404)

        r = self.client.delete("/api/concepts/Banana")
        self.assertEqual(r.status_code, 200)
        self.assertEqual(self.client.get("/api/connections").json()["groups"]["medium"], [])

    def test_concept_names_with_slashes(self):
        self.post_doc("d1", "[[TCP/IP]] [[OSI]]")

        r = self.client.get("/api/concepts/TCP/IP")
        self.assertEqual(r.status_code, 200, r.text)
        self.assertEqual(r.json()["concept"]["name"], "TCP/IP")
        self.assertEqual(r.json()["concept"]["neighbors"][0]["concept"], "OSI")

        r = self.client.put("/api/concepts/TCP/IP/description", json={"description": "protocol suite"})
        self.assertEqual(r.status_code, 200, r.text)
        self.assertEqual(self.engine.get_concept("TCP/IP").description, "protocol suite")

        r = self.client.delete("/api/concepts/TCP/IP")
        self.assertEqual(r.status_code, 200, r.text)
        self.assertIsNone(self.engine.get_concept("TCP/IP"))
        self.assertIsNotNone(self.engine.get_concept("OSI"))

    def test_document_id_is_kept_verbatim(self):
        self.post_doc(" d1 ", "[[A]] [[B]]")
        self.assertEqual(self.engine.store.get_connection("A", "B").source_document, " d1 ")

        r = self.client.post("/api/documents", json={"document_id": "   ", "content": "[[A]]"})
        self.assertEqual(r.status_code, 400)

    def test_search(self):
        self.post_doc("d1", "[[Apple]] [[Banana]]")
        results = self.client.get("/api/search", params={"q": "app"}).json()["results"]
        self.assertEqual([(r["kind"], r["relevance"]) for r in results], [("concept", 0.8), ("connection", 0.6)])
        self.assertEqual(self.client.get("/api/search", params={"q": " "}).json()["results"], [])

    def test_state_roundtrip_and_rejection(self):
        self.post_doc("d1", "[[A]] [[B]]")
        state = self.client.get("/api/state").json()

        bad = {"concepts": state["concepts"], "connections": state["connections"] + [
            {"from": "A", "to": "A", "strength": 0.5, "source": "x"}
        ]}
        r = self.client.put("/api/state", json=bad)
        self.assertEqual(r.status_code, 400)
        self.assertEqual(self.client.get("/api/state").json(), state)

        r = self.client.put("/api/state", json={"concepts": {}, "connections": []})
        self.assertEqual(r.json(), {"ok": True, "concepts": 0, "connections": 0})

    def test_health(self):
        body = self.client.get("/api/health").json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["concepts"], 0)


if __name__ == "__main__":
    unittest.main()
