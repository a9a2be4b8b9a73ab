"""Main CLI entry point using Typer."""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from starbound_kb import __version__
from starbound_kb.config import PolicyError, get_db_path, get_policy_path, load_policy
from starbound_kb.ingestion import (
    Collected,
    SourceFieldFile,
    WriteSummary,
    collect_centrifuge_recipes,
    collect_lab_recipes,
    collect_lua_doc_sets,
    collect_recipes,
    collect_research_nodes,
    collect_source_fields,
    write_asset_schemas,
    write_extractions,
    write_lua_api,
    write_recipes,
    write_research_nodes,
)
from starbound_kb.ingestion.lua_docs import LuaDocSet
from starbound_kb.logging import configure_logging, reset_logging
from starbound_kb.schemas.database import TABLE_SCHEMAS
from starbound_kb.schemas.policy import ExtractionPolicy
from starbound_kb.schemas.records import ParsedExtraction, ParsedRecipe, ResearchNode
from starbound_kb.store import LanceKnowledgeStore

SAMPLE_SIZE = 5

app = typer.Typer(
    name="sbkb",
    help="Build a Starbound modding knowledge base from docs, engine source and mod data.",
    add_completion=False,
)

DbOption = Annotated[
    Path | None,
    typer.Option(
        "--db",
        help="Path to the LanceDB database (default: SBKB_DB_PATH or the bundled location).",
    ),
]
DryRunOption = Annotated[
    bool,
    typer.Option(
        "--dry-run",
        "-n",
        help="Print what would be extracted without writing.",
    ),
]
PolicyOption = Annotated[
    Path | None,
    typer.Option(
        "--policy",
        help="YAML file overriding extraction heuristics (default: SBKB_POLICY_PATH).",
    ),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"starbound-kb v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log at DEBUG level (overrides SBKB_LOG_LEVEL)."),
    ] = False,
) -> None:
    """Starbound KB - extraction pipeline for Starbound modding data."""
    if verbose:
        reset_logging()
        configure_logging(level=logging.DEBUG)
    else:
        configure_logging()


def _require_dir(console: Console, path: Path, message: str) -> None:
    if not path.is_dir():
        console.print(f"[red]❌ {message}: {path}[/red]")
        raise typer.Exit(1)


def _resolve_policy(console: Console, policy_path: Path | None) -> ExtractionPolicy:
    try:
        return load_policy(policy_path or get_policy_path())
    except PolicyError as e:
        console.print(f"[red]❌ {e}[/red]")
        raise typer.Exit(1) from e


def _print_header(console: Console, title: str, root: Path, db: Path | None, dry_run: bool) -> None:
    console.print(f"\n🛰️  [bold]{title}[/bold] (starbound-kb v{__version__})")
    console.print("━" * 40)
    console.print(f"📁 Input: [cyan]{root}[/cyan]")
    if dry_run:
        console.print("🧪 Dry run: [yellow]nothing will be written[/yellow]")
    else:
        console.print(f"🗄️  Database: [cyan]{db}[/cyan]")
    console.print()


def _print_written(console: Console, store: LanceKnowledgeStore, summaries: list[WriteSummary]) -> None:
    totals: dict[str, int] = {}
    search_rows = 0
    for summary in summaries:
        for table, count in summary.rows.items():
            totals[table] = totals.get(table, 0) + count
        search_rows += summary.search_rows

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task("🔍 Building FTS indexes...", total=None)
        store.refresh_search_index()

    console.print()
    console.print("✅ [bold green]Done![/bold green]")
    for table, count in totals.items():
        console.print(f"   📦 {table}: [green]{count}[/green] rows written")
    console.print(f"   🔍 Search rows: [green]{search_rows}[/green]")


# === lua-docs ===


def _print_lua_report(console: Console, doc_sets: list[LuaDocSet]) -> None:
    for doc_set in doc_sets:
        table = Table(title=f"📘 {doc_set.source.name}: {doc_set.directory}")
        table.add_column("File", style="cyan")
        table.add_column("Functions", justify="right", style="green")
        for file_name, count in doc_set.file_counts.items():
            table.add_row(file_name, str(count))
        console.print(table)
        console.print(f"Total: [green]{len(doc_set.functions)}[/green] functions\n")

        for fn in doc_set.functions[:SAMPLE_SIZE]:
            console.print(f"   [bold]{escape(fn.return_type)}[/bold] {escape(fn.signature.splitlines()[0])}")
            if fn.description:
                console.print(f"      [dim]{escape(fn.description[:100])}[/dim]")
        console.print()


@app.command("lua-docs")
def lua_docs(
    source_path: Annotated[
        Path,
        typer.Option(
            "--source-path",
            "-s",
            help="OpenStarbound repository root (containing doc/lua).",
        ),
    ],
    dry_run: DryRunOption = False,
    db: DbOption = None,
    policy: PolicyOption = None,
) -> None:
    """Extract the Lua API reference from OpenStarbound's Markdown docs."""

    console = Console()
    _require_dir(console, source_path, "Path does not exist")
    lua_doc_dir = source_path / "doc" / "lua"
    _require_dir(console, lua_doc_dir, "Could not find doc/lua/ directory")
    extraction_policy = _resolve_policy(console, policy)

    db_path = db or get_db_path()
    _print_header(console, "Lua API docs", lua_doc_dir, db_path, dry_run)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task("📖 Parsing Markdown...", total=None)
        doc_sets = collect_lua_doc_sets(lua_doc_dir, extraction_policy)

    if len(doc_sets) == 1:
        console.print("   [dim]No openstarbound/ extension docs found, skipping.[/dim]")

    if dry_run:
        _print_lua_report(console, doc_sets)
        return

    store = LanceKnowledgeStore(db_path)
    summaries = [write_lua_api(store, doc_set) for doc_set in doc_sets if doc_set.functions]
    _print_written(console, store, summaries)


# === source-schemas ===


def _print_fields_report(console: Console, files: list[SourceFieldFile]) -> None:
    table = Table(title="🧬 Asset schemas recovered from engine source")
    table.add_column("File", style="cyan")
    table.add_column("Asset type", style="green")
    table.add_column("Fields", justify="right")
    for source_file in files:
        asset_type = source_file.asset_type if source_file.mapped else f"[yellow]{source_file.asset_type} (unmapped)[/yellow]"
        table.add_row(source_file.file_name, asset_type, str(len(source_file.fields)))
    console.print(table)

    for source_file in files[:SAMPLE_SIZE]:
        console.print(f"\n   [bold]{source_file.asset_type}[/bold]")
        for extracted in source_file.fields[:SAMPLE_SIZE]:
            default = f" = {extracted.default_value}" if extracted.default_value else ""
            marker = "?" if extracted.optional else ""
            console.print(
                f"      {escape(extracted.field_name)}{marker}: {escape(extracted.type)}{escape(default)}"
                f" [dim]({extracted.pattern})[/dim]"
            )


@app.command("source-schemas")
def source_schemas(
    source_path: Annotated[
        Path,
        typer.Option(
            "--source-path",
            "-s",
            help="OpenStarbound repository root (containing source/game).",
        ),
    ],
    dry_run: DryRunOption = False,
    db: DbOption = None,
    policy: PolicyOption = None,
) -> None:
    """Recover asset field schemas from OpenStarbound's C++ database loaders."""

    console = Console()
    _require_dir(console, source_path, "Path does not exist")
    game_source_dir = source_path / "source" / "game"
    _require_dir(console, game_source_dir, "Could not find source/game/ directory")
    extraction_policy = _resolve_policy(console, policy)

    db_path = db or get_db_path()
    _print_header(console, "Engine asset schemas", game_source_dir, db_path, dry_run)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        progress.add_task("🔎 Scanning Star*Database.cpp...", total=None)
        files = collect_source_fields(game_source_dir, extraction_policy)

    unmapped = [f.file_name for f in files if not f.mapped]
    if unmapped:
        console.print(f"[yellow]⚠️  No asset mapping for: {', '.join(unmapped)}[/yellow]")

    if dry_run:
        _print_fields_report(console, files)
        return

    store = LanceKnowledgeStore(db_path)
    summary = write_asset_schemas(store, files)
    _print_written(console, store, [summary])


# === fu ===


def _print_collected(console: Console, label: str, collected: Collected) -> None:  # type: ignore[type-arg]
    for notice in collected.notices:
        console.print(f"   [dim]{escape(notice)}[/dim]")
    skipped = f", [yellow]{collected.skipped}[/yellow] skipped" if collected.skipped else ""
    console.print(f"   {label}: [green]{len(collected.records)}[/green]{skipped}")


def _print_fu_samples(
    console: Console,
    recipes: list[ParsedRecipe],
    extractions: list[ParsedExtraction],
    nodes: list[ResearchNode],
) -> None:
    if recipes:
        console.print("\n[bold]Sample recipes:[/bold]")
        for r in recipes[:SAMPLE_SIZE]:
            inputs = " + ".join(f"{i.item} x{i.count}" for i in r.inputs)
            console.print(escape(f"   {r.output_item} x{r.output_count} <- {inputs} [{', '.join(r.groups)}]"))
    if extractions:
        console.print("\n[bold]Sample extractions:[/bold]")
        for e in extractions[:SAMPLE_SIZE]:
            outputs = ", ".join(f"{o.item} x{o.count} [{o.tier}]" for o in e.outputs[:3])
            console.print(escape(f"   {e.input_item} ({e.method}) -> {outputs}"))
    if nodes:
        console.print("\n[bold]Sample research nodes:[/bold]")
        for n in nodes[:SAMPLE_SIZE]:
            prerequisites = ", ".join(n.prerequisites) or "none"
            console.print(escape(f"   {n.key} ({n.name}) requires {prerequisites}"))


@app.command("fu")
def frackin_universe(
    fu_path: Annotated[
        Path,
        typer.Option(
            "--fu-path",
            "-f",
            help="FrackinUniverse mod directory or source checkout.",
        ),
    ],
    dry_run: DryRunOption = False,
    db: DbOption = None,
    policy: PolicyOption = None,
) -> None:
    """Extract recipes, extraction tables and research trees from Frackin' Universe."""

    console = Console()
    _require_dir(console, fu_path, "Path does not exist")
    extraction_policy = _resolve_policy(console, policy)

    db_path = db or get_db_path()
    _print_header(console, "Frackin' Universe", fu_path, db_path, dry_run)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("🔨 Scanning .recipe files...", total=None)
        recipes = collect_recipes(fu_path)
        progress.update(task, description="🌀 Parsing centrifuge tables...")
        centrifuge = collect_centrifuge_recipes(fu_path, extraction_policy)
        progress.update(task, description="🧪 Parsing lab configs...")
        labs = collect_lab_recipes(fu_path, extraction_policy)
        progress.update(task, description="🔬 Building research trees...")
        nodes = collect_research_nodes(fu_path)

    _print_collected(console, "Crafting recipes", recipes)
    _print_collected(console, "Centrifuge records", centrifuge)
    _print_collected(console, "Lab records", labs)
    console.print(f"   Research nodes: [green]{len(nodes)}[/green]")

    if dry_run:
        _print_fu_samples(console, recipes.records, centrifuge.records + labs.records, nodes)
        return

    store = LanceKnowledgeStore(db_path)
    summaries = [
        write_recipes(store, recipes.records),
        write_extractions(store, centrifuge.records),
        write_extractions(store, labs.records),
        write_research_nodes(store, nodes),
    ]
    _print_written(console, store, summaries)


# === info ===


@app.command()
def info(db: DbOption = None) -> None:
    """Show database information."""

    console = Console()
    db_path = db or get_db_path()
    store = LanceKnowledgeStore(db_path)
    initialized = store.is_initialized()

    console.print("\n🗄️  [bold]Starbound KB Database Info[/bold]")
    console.print("━" * 40)
    console.print(f"📁 Path: [cyan]{db_path}[/cyan]")
    console.print(f"✅ Initialized: {'[green]Yes[/green]' if initialized else '[red]No[/red]'}")

    if not initialized:
        return

    table = Table(title="📊 Rows per table")
    table.add_column("Table", style="cyan")
    table.add_column("Rows", justify="right", style="green")
    for name in TABLE_SCHEMAS:
        table.add_row(name, str(store.count(name)))
    console.print(table)

    sources = Table(title="🌐 Sources")
    sources.add_column("Name", style="cyan")
    sources.add_column("Version")
    sources.add_column("Description", max_width=50)
    for row in store.rows("sources"):
        sources.add_row(row["name"], row.get("version") or "-", row.get("description") or "")
    console.print(sources)


if __name__ == "__main__":
    app()
