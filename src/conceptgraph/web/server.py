from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any

logger = logging.getLogger(__name__)


def create_app(*, default_db_path: str | None = None, engine=None):
    """Build the JSON API around one engine.

    `engine` is used as-is when given (tests pass an in-memory one);
    otherwise the database at `default_db_path` is opened.
    """
    # Lazy import so the core CLI works without web deps.
    from fastapi import Body, FastAPI
    from fastapi.responses import JSONResponse

    from .. import __version__
    from ..config import Settings
    from ..engine import KnowledgeGraphEngine
    from ..errors import CorruptStateError
    from ..graph.persistence import concept_to_dict, connection_to_dict

    settings = Settings()
    db_path = default_db_path or settings.db_path
    owns_engine = engine is None
    if engine is None:
        engine = KnowledgeGraphEngine.open(db_path)
        logger.info("serving graph from %s", db_path)

    @asynccontextmanager
    async def lifespan(_app):
        yield
        if owns_engine:
            engine.close()

    app = FastAPI(title="Concept Graph", version=__version__, lifespan=lifespan)
    app.state.engine = engine

    def _error(message: str, status_code: int) -> JSONResponse:
        return JSONResponse({"ok": False, "error": message}, status_code=status_code)

    def _concept_view(name: str) -> dict[str, Any] | None:
        concept = engine.get_concept(name)
        if concept is None:
            return None
        return {
            "name": concept.name,
            **concept_to_dict(concept),
            "connections": engine.connection_count(name),
        }

    @app.get("/api/health")
    def health():
        stats = engine.stats()
        return {"ok": True, "version": __version__, "concepts": stats.concepts, "connections": stats.connections}

    @app.post("/api/documents")
    def document_changed(payload: dict[str, Any]):
        document_id = payload.get("document_id")
        content = payload.get("content")
        if not isinstance(document_id, str) or not document_id.strip():
            return _error("document_id is required", 400)
        if not isinstance(content, str):
            return _error("content must be a string", 400)
        stats = engine.on_document_changed(document_id, content)
        return {"ok": True, **stats.as_dict()}

    @app.get("/api/concepts")
    def concepts(limit: int | None = None):
        out = []
        for name, _count in engine.most_connected(limit):
            view = _concept_view(name)
            if view is not None:
                out.append(view)
        return {"ok": True, "concepts": out}

    # Names may contain "/"; the description route is matched first.
    @app.put("/api/concepts/{name:path}/description")
    def describe(name: str, payload: dict[str, Any]):
        description = payload.get("description")
        if not isinstance(description, str):
            return _error("description must be a string", 400)
        if engine.set_description(name, description) is None:
            return _error(f"Unknown concept: {name}", 404)
        return {"ok": True, "concept": _concept_view(name)}

    @app.get("/api/concepts/{name:path}")
    def concept(name: str):
        view = _concept_view(name)
        if view is None:
            return _error(f"Unknown concept: {name}", 404)
        view["neighbors"] = [
            {"concept": c.other(name), **connection_to_dict(c)} for c in engine.connections_of(name)
        ]
        return {"ok": True, "concept": view}

    @app.delete("/api/concepts/{name:path}")
    def delete(name: str):
        if not engine.delete_concept(name):
            return _error(f"Unknown concept: {name}", 404)
        return {"ok": True}

    @app.get("/api/connections")
    def connections():
        groups = engine.group_by_strength()
        return {
            "ok": True,
            "groups": {label: [connection_to_dict(c) for c in conns] for label, conns in groups.items()},
        }

    @app.get("/api/insights")
    def insights(limit: int = 5):
        stats = engine.stats()
        return {
            "ok": True,
            "concepts": stats.concepts,
            "connections": stats.connections,
            "density": stats.density,
            "most_connected": [{"concept": n, "connections": c} for n, c in engine.most_connected(limit)],
            "clusters": [{"concepts": list(cl.members), "density": cl.density} for cl in engine.clusters()],
        }

    @app.get("/api/search")
    def search(q: str = ""):
        return {"ok": True, "results": [r.as_dict() for r in engine.search(q)]}

    @app.get("/api/state")
    def get_state():
        return engine.export_state()

    @app.put("/api/state")
    def put_state(state: Any = Body(...)):
        try:
            engine.import_state(state)
        except CorruptStateError as e:
            return _error(str(e), 400)
        stats = engine.stats()
        return {"ok": True, "concepts": stats.concepts, "connections": stats.connections}

    return app
