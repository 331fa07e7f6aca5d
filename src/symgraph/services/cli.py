"""symgraph CLI entry point."""

from __future__ import annotations

import json
import logging
import sys
import threading
from pathlib import Path
from typing import Any

import click

from symgraph import __version__
from symgraph.infrastructure.config import ConfigError, IndexConfig, load_config, resolve_db_path
from symgraph.infrastructure.store import SymbolStore
from symgraph.symbols.models import NODE_KINDS

_LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

_project_option = click.option(
    "--project",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=None,
    help="Project root (default: current directory).",
)
_json_option = click.option("--json", "output_json", is_flag=True, help="Output as JSON.")


def _configure_logging(level: int) -> None:
    # No-op when the host process already installed handlers.
    logging.basicConfig(format=_LOG_FORMAT, datefmt="%H:%M:%S", stream=sys.stderr)
    logging.getLogger().setLevel(level)
    # One debug line per filtered change otherwise.
    logging.getLogger("watchfiles.main").setLevel(logging.WARNING)


@click.group()
@click.version_option(version=__version__, prog_name="symgraph")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Minimal output (errors only).")
@click.pass_context
def main(ctx: click.Context, *, verbose: bool, quiet: bool) -> None:
    """symgraph - symbol and relationship index for source code."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    if verbose:
        _configure_logging(logging.DEBUG)
    elif quiet:
        _configure_logging(logging.ERROR)
    else:
        _configure_logging(logging.WARNING)


def _load_config_or_exit(project_root: Path) -> IndexConfig:
    try:
        return load_config(project_root)
    except ConfigError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)


def _open_index(project_root: Path) -> tuple[SymbolStore, IndexConfig]:
    """Open the existing index of *project_root* or exit with an error."""
    config = _load_config_or_exit(project_root)
    db_path = resolve_db_path(project_root, config)
    if not db_path.exists():
        click.echo("Error: index not found. Run `symgraph index` first.", err=True)
        sys.exit(1)
    return SymbolStore(db_path), config


def _echo_json(data: Any) -> None:
    click.echo(json.dumps(data, ensure_ascii=False, indent=2))


@main.command()
@_project_option
@_json_option
def index(*, project: Path | None, output_json: bool) -> None:
    """Rebuild the symbol index from scratch."""
    from symgraph.infrastructure.reindex import index_project
    from symgraph.symbols.parser import GrammarLoadError, SyntaxTreeProvider

    project_root = (project or Path.cwd()).resolve()
    config = _load_config_or_exit(project_root)

    with SymbolStore(resolve_db_path(project_root, config)) as store:
        try:
            result = index_project(project_root, store, SyntaxTreeProvider(), config=config)
        except GrammarLoadError as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)

    if output_json:
        _echo_json(result.to_dict())
        return

    click.echo(f"Files:   {result.files_indexed} (of {result.files_scanned} scanned)")
    click.echo(f"Nodes:   {result.nodes_created}")
    click.echo(f"Edges:   {result.edges_created}")
    if result.errors:
        click.echo("")
        for err in result.errors:
            click.echo(f"  [ERR] {err}")


@main.command()
@click.argument("file_path")
@_project_option
@_json_option
def symbols(file_path: str, *, project: Path | None, output_json: bool) -> None:
    """Show the declarations of FILE_PATH (relative to the project root)."""
    from symgraph.services.queries import file_structure

    project_root = (project or Path.cwd()).resolve()
    store, _config = _open_index(project_root)
    with store:
        data = file_structure(store, Path(file_path).as_posix())

    if output_json:
        _echo_json(data)
        return
    if not data["symbols"]:
        click.echo(f"No symbols indexed for {data['file_path']}.")
        return

    from rich.console import Console
    from rich.table import Table

    table = Table(title=data["file_path"])
    table.add_column("Lines", justify="right", style="dim")
    table.add_column("Kind", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Exported")
    table.add_column("Signature", overflow="fold")
    for sym in data["symbols"]:
        table.add_row(
            f"{sym['start_line']}-{sym['end_line']}",
            sym["kind"],
            sym["name"],
            "yes" if sym["exported"] else "",
            sym["signature"] or "",
        )
    Console().print(table)


@main.command()
@click.argument("query")
@click.option(
    "--kind",
    type=click.Choice(sorted(NODE_KINDS)),
    default=None,
    help="Filter results by symbol kind.",
)
@click.option("--limit", default=None, type=click.IntRange(min=1), help="Max results.")
@click.option(
    "--case-sensitive/--ignore-case",
    default=None,
    help="Case-sensitive name matching (default from config.yml).",
)
@_project_option
@_json_option
def search(
    query: str,
    *,
    kind: str | None,
    limit: int | None,
    case_sensitive: bool | None,
    project: Path | None,
    output_json: bool,
) -> None:
    """Search symbols whose name contains QUERY."""
    from symgraph.services.queries import search_symbols

    project_root = (project or Path.cwd()).resolve()
    store, config = _open_index(project_root)
    with store:
        data = search_symbols(
            store,
            query,
            kind,
            limit=limit if limit is not None else config.search_limit,
            case_sensitive=(
                case_sensitive if case_sensitive is not None else config.case_sensitive_search
            ),
        )

    if output_json:
        _echo_json(data)
        return
    if not data["results"]:
        click.echo("No results found.")
        return
    for r in data["results"]:
        click.echo(f"  [{r['kind']}] {r['name']}  {r['file_path']}:{r['start_line']}")


@main.command()
@click.option("--file", "file_path", default=None, help="Project-relative source file.")
@click.option("--symbol", "symbol_name", default=None, help="Exact symbol name.")
@_project_option
@_json_option
def deps(
    *,
    file_path: str | None,
    symbol_name: str | None,
    project: Path | None,
    output_json: bool,
) -> None:
    """Show outgoing relationships of a file or a symbol."""
    from symgraph.services.queries import dependencies

    if not file_path and not symbol_name:
        click.echo("Error: provide --file or --symbol.", err=True)
        sys.exit(1)

    project_root = (project or Path.cwd()).resolve()
    store, _config = _open_index(project_root)
    with store:
        data = dependencies(
            store,
            file_path=Path(file_path).as_posix() if file_path else None,
            symbol_name=symbol_name,
        )

    if output_json:
        _echo_json(data)
        return
    if not data["dependencies"]:
        click.echo("No dependencies found.")
        return
    for dep in data["dependencies"]:
        src, dst = dep["source"], dep["target"]
        click.echo(
            f"  {src['name']} ({src['file_path']}) "
            f"--{dep['relation']}--> {dst['name']} ({dst['file_path']})"
        )


@main.command()
@_project_option
@_json_option
def status(*, project: Path | None, output_json: bool) -> None:
    """Show index statistics."""
    project_root = (project or Path.cwd()).resolve()
    store, _config = _open_index(project_root)
    with store:
        counts = store.counts()
        by_kind = store.kind_counts()
        last_indexed = store.get_meta("last_indexed_at", "never")
        version = store.get_meta("symgraph_version", "unknown")
        db_path = store.db_path

    if output_json:
        _echo_json(
            {
                "version": version,
                "last_indexed_at": last_indexed,
                "db_path": str(db_path),
                "files_count": counts.files,
                "nodes_count": counts.nodes,
                "edges_count": counts.edges,
                "by_kind": by_kind,
            }
        )
        return

    from rich.console import Console
    from rich.panel import Panel
    from rich.table import Table

    console = Console()
    console.print(
        Panel(f"Last index: {last_indexed}", title=f"symgraph v{version}", border_style="blue")
    )
    console.print(
        f"  Files: [bold]{counts.files}[/]   "
        f"Nodes: [bold]{counts.nodes}[/]   "
        f"Edges: [bold]{counts.edges}[/]"
    )
    if by_kind:
        kind_table = Table(title="By Kind", show_header=False, box=None, padding=(0, 1))
        kind_table.add_column("kind", style="cyan")
        kind_table.add_column("count", justify="right")
        for kind, cnt in by_kind.items():
            kind_table.add_row(kind, str(cnt))
        console.print()
        console.print(kind_table)


@main.command("watch")
@click.option("--debounce", default=500, type=int, help="Debounce delay in ms.")
@_project_option
@click.pass_context
def watch_cmd(ctx: click.Context, *, debounce: int, project: Path | None) -> None:
    """Index the project, then keep the index in sync with file changes.

    Press Ctrl+C to stop.
    """
    from rich.console import Console

    from symgraph.infrastructure.reindex import index_project
    from symgraph.infrastructure.watcher import ChangeWatcher
    from symgraph.symbols.parser import GrammarLoadError, SyntaxTreeProvider

    if not ctx.obj.get("verbose") and not ctx.obj.get("quiet"):
        logging.getLogger().setLevel(logging.INFO)

    console = Console()
    project_root = (project or Path.cwd()).resolve()
    config = _load_config_or_exit(project_root)

    def on_regenerate(pending: int) -> None:
        console.print(f"[green]Regeneration triggered[/green] ({pending} change(s))")

    provider = SyntaxTreeProvider()
    with SymbolStore(resolve_db_path(project_root, config)) as store:
        watcher = ChangeWatcher(
            store,
            provider,
            config=config,
            on_regenerate=on_regenerate,
            debounce_ms=debounce,
        )
        try:
            result = index_project(project_root, store, provider, config=config, watcher=watcher)
        except GrammarLoadError as exc:
            click.echo(f"Error: {exc}", err=True)
            sys.exit(1)

        console.print(
            f"[bold blue]Indexed[/bold blue] {result.files_indexed} file(s), "
            f"{result.nodes_created} node(s), {result.edges_created} edge(s)"
        )
        console.print(f"[dim]Watching {project_root}  |  Press Ctrl+C to stop[/dim]")

        try:
            threading.Event().wait()
        except KeyboardInterrupt:
            console.print("\n[yellow]Watch stopped.[/yellow]")
        finally:
            watcher.stop()
