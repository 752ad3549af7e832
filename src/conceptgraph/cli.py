from __future__ import annotations

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import httpx
import typer
from rich.console import Console
from rich.table import Table
from rich.text import Text

from . import log
from .config import Settings
from .engine import KnowledgeGraphEngine
from .errors import CorruptStateError
from .graph.analytics import strength_group
from .graph.persistence import format_timestamp
from .ingest.runner import IngestOptions, ingest_notes


app = typer.Typer(add_completion=False, help="Concept graph: weighted co-occurrence graph of the concepts linked in your notes.")
console = Console()

DB_HELP = "SQLite DB holding the graph state"


@app.callback()
def main(
    log_level: str | None = typer.Option(None, "--log-level", help="Logging level (DEBUG, INFO, WARNING...)"),
):
    settings = Settings()
    log.setup(log_level or settings.log_level)


@contextmanager
def _engine(db: Path) -> Iterator[KnowledgeGraphEngine]:
    try:
        engine = KnowledgeGraphEngine.open(db)
    except CorruptStateError as e:
        console.print(f"Stored graph is corrupt: {e}", style="red", markup=False)
        console.print("Fix: restore a backup with `conceptgraph import`, or start from a new --db.", style="yellow")
        raise typer.Exit(code=2)
    try:
        yield engine
    finally:
        engine.close()


def _default_db() -> Path:
    return Path(Settings().db_path)


@app.command()
def ingest(
    input: Path = typer.Option(..., "--input", exists=True, file_okay=False, dir_okay=True),
    db: Path = typer.Option(_default_db(), "--db", help=DB_HELP),
):
    """Apply every Markdown/text note under a directory to the graph."""
    with _engine(db) as engine:
        res = ingest_notes(engine=engine, options=IngestOptions(input_dir=input))

    console.print(f"Documents seen: {res['documents_seen']}")
    console.print(f"Documents with concepts: {res['documents_with_concepts']}")
    console.print(f"Mentions: {res['mentions']}")
    console.print(f"New connections: {res['connections_created']}")


@app.command()
def apply(
    path: Path = typer.Argument(..., exists=True, file_okay=True, dir_okay=False),
    db: Path = typer.Option(_default_db(), "--db", help=DB_HELP),
    doc_id: str | None = typer.Option(None, "--doc-id", help="Document id (defaults to the file name)"),
):
    """Apply one saved note to the graph."""
    text = path.read_text(encoding="utf-8", errors="replace")
    with _engine(db) as engine:
        stats = engine.on_document_changed(doc_id or path.name, text)

    for k, v in stats.as_dict().items():
        console.print(f"{k}: {v}", markup=False)


@app.command()
def concepts(
    db: Path = typer.Option(_default_db(), "--db", help=DB_HELP),
    limit: int | None = typer.Option(None, help="Show at most this many concepts"),
):
    """List concepts, most connected first."""
    with _engine(db) as engine:
        ranked = engine.most_connected(limit)
        rows = [(name, count, engine.get_concept(name)) for name, count in ranked]

    if not rows:
        console.print("No concepts yet. Link concepts in your notes with [[Concept]].", style="yellow", markup=False)
        return

    table = Table(title="Concepts")
    table.add_column("concept")
    table.add_column("connections", justify="right")
    table.add_column("mentions", justify="right")
    table.add_column("last updated")
    for name, count, concept in rows:
        if concept is None:
            continue
        table.add_row(
            Text(name),
            Text(str(count)),
            Text(str(concept.mention_count)),
            Text(format_timestamp(concept.last_updated)),
        )
    console.print(table)


@app.command()
def connections(
    db: Path = typer.Option(_default_db(), "--db", help=DB_HELP),
):
    """List connections grouped by strength."""
    with _engine(db) as engine:
        groups = engine.group_by_strength()

    if not any(conns for _, conns in groups.items()):
        console.print("No connections yet.", style="yellow")
        return

    colors = {"strong": "green", "medium": "yellow", "weak": "red"}
    for label, conns in groups.items():
        table = Table(title=f"{label.capitalize()} connections ({len(conns)})", title_style=colors[label])
        table.add_column("from")
        table.add_column("to")
        table.add_column("strength", justify="right")
        table.add_column("source")
        for c in conns:
            table.add_row(Text(c.a), Text(c.b), Text(f"{c.strength:.2f}"), Text(c.source_document))
        console.print(table)


@app.command()
def insights(
    db: Path = typer.Option(_default_db(), "--db", help=DB_HELP),
    limit: int = typer.Option(5, help="How many top concepts to show"),
):
    """Most connected concepts, clusters and graph density."""
    with _engine(db) as engine:
        top = engine.most_connected(limit)
        found = engine.clusters()
        stats = engine.stats()

    table = Table(title="Knowledge Growth")
    table.add_column("Metric")
    table.add_column("Value")
    table.add_row("Concepts", str(stats.concepts))
    table.add_row("Connections", str(stats.connections))
    table.add_row("Density", f"{stats.density}%")
    console.print(table)

    console.print("\nMost connected:", style="bold")
    if not top or top[0][1] == 0:
        console.print("- no connections yet", style="yellow")
    for i, (name, count) in enumerate(top, start=1):
        console.print(f"{i}. {name} ({count} connections)", markup=False)

    console.print("\nClusters:", style="bold")
    if not found:
        console.print("- no clusters identified yet", style="yellow")
    for cl in found:
        console.print(f"- {', '.join(cl.members)} (density {cl.density}%)", markup=False)


@app.command()
def search(
    query: str = typer.Argument(...),
    db: Path = typer.Option(_default_db(), "--db", help=DB_HELP),
):
    """Search concept names and connections."""
    with _engine(db) as engine:
        results = engine.search(query)

    if not results:
        console.print("No results found.", style="yellow")
        return

    table = Table(title=f"Results for {query!r}")
    table.add_column("#", justify="right", width=4)
    table.add_column("kind")
    table.add_column("title")
    table.add_column("relevance", justify="right")
    for i, r in enumerate(results, start=1):
        table.add_row(Text(str(i)), Text(r.kind), Text(r.title), Text(f"{round(r.relevance * 100)}%"))
    console.print(table)


@app.command()
def show(
    name: str = typer.Argument(...),
    db: Path = typer.Option(_default_db(), "--db", help=DB_HELP),
):
    """Show one concept and its connections."""
    with _engine(db) as engine:
        concept = engine.get_concept(name)
        conns = engine.connections_of(name)

    if concept is None:
        console.print(f"Unknown concept: {name}", style="yellow", markup=False)
        raise typer.Exit(code=2)

    console.print(concept.name, style="bold", markup=False)
    console.print(f"mentions: {concept.mention_count}", markup=False)
    console.print(f"last updated: {format_timestamp(concept.last_updated)}", markup=False)
    if concept.description:
        console.print(f"description: {concept.description}", markup=False)
    if conns:
        console.print("connections:", markup=False)
        for c in sorted(conns, key=lambda c: c.strength, reverse=True):
            console.print(
                f"- {c.other(name)} ({c.strength:.2f}, {strength_group(c.strength)}, from {c.source_document})",
                markup=False,
            )


@app.command()
def describe(
    name: str = typer.Argument(...),
    description: str = typer.Argument(...),
    db: Path = typer.Option(_default_db(), "--db", help=DB_HELP),
):
    """Set the description of a concept."""
    with _engine(db) as engine:
        concept = engine.set_description(name, description)

    if concept is None:
        console.print(f"Unknown concept: {name}", style="yellow", markup=False)
        raise typer.Exit(code=2)
    console.print(f"Updated {name}", markup=False)


@app.command()
def delete(
    name: str = typer.Argument(...),
    db: Path = typer.Option(_default_db(), "--db", help=DB_HELP),
):
    """Delete a concept and all of its connections."""
    with _engine(db) as engine:
        removed = len(engine.connections_of(name))
        deleted = engine.delete_concept(name)

    if not deleted:
        console.print(f"Unknown concept: {name}", style="yellow", markup=False)
        raise typer.Exit(code=2)
    console.print(f"Deleted {name} and {removed} connection(s)", markup=False)


@app.command("export")
def export_cmd(
    out: Path = typer.Option(..., "--out", help="Output JSON path"),
    db: Path = typer.Option(_default_db(), "--db", help=DB_HELP),
):
    """Export the graph state as JSON."""
    with _engine(db) as engine:
        state = engine.export_state()

    out.parent.mkdir(parents=True, exist_ok=True)
    with out.open("w", encoding="utf-8") as f:
        json.dump(state, f, ensure_ascii=False, indent=2)
    console.print(f"Wrote {len(state['concepts'])} concepts, {len(state['connections'])} connections to {out}")


@app.command("import")
def import_cmd(
    input: Path = typer.Option(..., "--input", exists=True, file_okay=True, dir_okay=False),
    db: Path = typer.Option(_default_db(), "--db", help=DB_HELP),
):
    """Replace the graph with a previously exported JSON state."""
    try:
        state = json.loads(input.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"Not a JSON file: {e}", style="red", markup=False)
        raise typer.Exit(code=2)

    with _engine(db) as engine:
        try:
            engine.import_state(state)
        except CorruptStateError as e:
            console.print(f"Refusing to import: {e}", style="red", markup=False)
            raise typer.Exit(code=2)
        stats = engine.stats()

    console.print(f"Imported {stats.concepts} concepts, {stats.connections} connections")


@app.command()
def doctor(
    db: Path = typer.Option(_default_db(), "--db", help=DB_HELP),
    url: str | None = typer.Option(None, "--url", help="Also check a running API server, e.g. http://127.0.0.1:8000"),
):
    """Check the stored graph (and optionally a running server)."""
    ok = True

    console.print("DB:")
    if not db.exists():
        console.print(f"- Missing DB: {db}", style="yellow")
        console.print("  Fix: run `conceptgraph ingest --input ... --db ...`", style="yellow")
        ok = False
    else:
        try:
            engine = KnowledgeGraphEngine.open(db)
        except CorruptStateError as e:
            console.print(f"- Stored graph is corrupt: {e}", style="red", markup=False)
            ok = False
        else:
            try:
                stats = engine.stats()
            finally:
                engine.close()
            console.print(f"- Concepts: {stats.concepts}", style="green" if stats.concepts else "yellow")
            console.print(f"- Connections: {stats.connections}", style="green" if stats.connections else "yellow")

    if url:
        base = url.rstrip("/")
        console.print("\nServer:")
        try:
            r = httpx.get(f"{base}/api/health", timeout=5.0)
            r.raise_for_status()
            data = r.json()
            console.print(f"- Reachable at {base} ({data.get('concepts', 0)} concepts)", style="green")
        except httpx.HTTPError as e:
            console.print(f"- Not reachable at {base}: {e}", style="red", markup=False)
            console.print("  Fix: start it with `conceptgraph serve`.", style="yellow")
            ok = False

    if not ok:
        raise typer.Exit(code=1)


@app.command()
def serve(
    db: Path = typer.Option(_default_db(), "--db", help=DB_HELP),
    host: str | None = typer.Option(None, "--host"),
    port: int | None = typer.Option(None, "--port"),
):
    """Run the JSON API (FastAPI)."""
    try:
        import uvicorn
    except ImportError:
        console.print("Missing web dependencies. Install: `pip install -e '.[web]'`", style="red")
        raise typer.Exit(code=2)

    from .web.server import create_app

    settings = Settings()
    try:
        app_ = create_app(default_db_path=str(db))
    except CorruptStateError as e:
        console.print(f"Stored graph is corrupt: {e}", style="red", markup=False)
        raise typer.Exit(code=2)
    uvicorn.run(app_, host=host or settings.host, port=int(port or settings.port))


if __name__ == "__main__":
    app()
