from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv


load_dotenv()


@dataclass(frozen=True)
class Settings:
    # SQLite file holding the persisted graph state.
    db_path: str = os.getenv("CONCEPTGRAPH_DB_PATH", "./data/graph.db")

    log_level: str = os.getenv("CONCEPTGRAPH_LOG_LEVEL", "WARNING")

    # Web API
    host: str = os.getenv("CONCEPTGRAPH_HOST", "127.0.0.1")
    port: int = int(os.getenv("CONCEPTGRAPH_PORT", "8000"))
