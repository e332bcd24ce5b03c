#!/usr/bin/env python3
"""kvscope CLI - Main entry point.

Commands:
- explore: interactive explorer (TUI)
- eval: evaluate a path or expression against a document
- paths: list canonical child paths
- functions: expression function catalog
- search: deep search below a path
- decode: decode an embedded string value
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
import sys
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
import typer
import yaml

from kvscope import __version__
from kvscope.config import ExplorerConfig, find_config_file, load_explorer_config
from kvscope.errors import ConfigError, LoaderError
from kvscope.loader import load_document
from kvscope.nav import child_segment
from kvscope.session import Explorer, StatusResult

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="kvscope",
    help="Explore nested JSON/YAML data with paths and expressions.",
    add_completion=False,
    no_args_is_help=True,
)


def _config(ctx: typer.Context) -> ExplorerConfig:
    return ctx.obj["config"] if ctx.obj else ExplorerConfig()


def _open(ctx: typer.Context, file: str) -> Explorer:
    try:
        root = load_document(file)
    except LoaderError as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    return Explorer(root, _config(ctx))


def _check(status: StatusResult) -> None:
    if not status.ok:
        err_console.print(f"[red]Error:[/red] {status.message}")
        raise typer.Exit(1)


def _render(value: Any, as_yaml: bool) -> str:
    if as_yaml:
        return yaml.safe_dump(json.loads(json.dumps(value, default=str)), sort_keys=False).rstrip()
    return json.dumps(value, indent=2, ensure_ascii=False, default=str)


@app.command()
def explore(
    ctx: typer.Context,
    file: str = typer.Argument(..., help="Document to explore ('-' for stdin)"),
    start: Optional[str] = typer.Option(None, "--path", "-p", help="Initial path or expression"),
):
    """Launch the interactive explorer."""
    from kvscope.tui.app import KvscopeApp

    explorer = _open(ctx, file)
    if start:
        _check(explorer.goto(start))
    KvscopeApp(explorer, title=file).run()


@app.command(name="eval")
def eval_command(
    ctx: typer.Context,
    file: str = typer.Argument(..., help="Document ('-' for stdin)"),
    expression: str = typer.Argument(..., help="Path or expression, e.g. _.items.size()"),
    as_yaml: bool = typer.Option(False, "--yaml", help="YAML output"),
    quiet: bool = typer.Option(False, "-q", "--quiet", help="Print only the value"),
):
    """Evaluate a path or expression and print the result."""
    explorer = _open(ctx, file)
    outcome = explorer.evaluate(expression)
    if not outcome.success:
        err_console.print(f"[red]Error:[/red] {outcome.error}")
        raise typer.Exit(1)
    typer.echo(_render(outcome.node, as_yaml))
    if not quiet:
        where = str(outcome.path) if outcome.path is not None else "(computed)"
        err_console.print(f"[dim]{outcome.result_type} @ {where}[/dim]")


@app.command()
def paths(
    ctx: typer.Context,
    file: str = typer.Argument(..., help="Document ('-' for stdin)"),
    base: str = typer.Option("_", "--base", "-b", help="Path to list children of"),
):
    """List the canonical paths of a node's children."""
    explorer = _open(ctx, file)
    _check(explorer.goto(base))
    if explorer.path is None:
        err_console.print("[red]Error:[/red] computed results have no paths")
        raise typer.Exit(1)
    for row in explorer.rows():
        child = explorer.path.child(child_segment(row.key))
        typer.echo(f"{child}\t{row.type_tag}")


@app.command()
def functions(
    ctx: typer.Context,
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Only this category"),
    search: Optional[str] = typer.Option(None, "--search", "-s", help="Filter by name/description"),
):
    """Show the expression function catalog."""
    explorer = Explorer(None, _config(ctx))
    registry = explorer.registry
    entries = registry.search(search) if search else registry.all()
    if category:
        entries = [fn for fn in entries if fn.category == category]
    if not entries:
        console.print("[yellow]No functions match.[/yellow]")
        raise typer.Exit(1)

    table = Table(title=f"{len(entries)} function(s)")
    table.add_column("Name", style="cyan")
    table.add_column("Kind")
    table.add_column("Category")
    table.add_column("Signature")
    table.add_column("Description")
    order = {c: i for i, c in enumerate(registry.categories())}
    for fn in sorted(entries, key=lambda f: (order.get(f.category, len(order)), f.name)):
        table.add_row(fn.name, "method" if fn.is_method else "global", fn.category, fn.signature, fn.description)
    console.print(table)


@app.command(name="search")
def search_command(
    ctx: typer.Context,
    file: str = typer.Argument(..., help="Document ('-' for stdin)"),
    query: str = typer.Argument(..., help="Case-insensitive text to find in keys and values"),
    base: str = typer.Option("_", "--base", "-b", help="Search below this path"),
):
    """Deep-search keys and values below a path."""
    explorer = _open(ctx, file)
    _check(explorer.goto(base))
    status = explorer.run_search(query)
    _check(status)
    for hit in explorer.search.hits:
        console.print(f"[cyan]{escape(str(hit.full_path))}[/cyan] = {escape(str(hit.value))}", highlight=False)
    err_console.print(f"[dim]{status.message}[/dim]")


@app.command()
def decode(
    ctx: typer.Context,
    file: str = typer.Argument(..., help="Document ('-' for stdin)"),
    path: str = typer.Argument(..., help="Path of the encoded string"),
    as_yaml: bool = typer.Option(False, "--yaml", help="YAML output"),
):
    """Decode an embedded JSON, base64 or token string and print its structure."""
    explorer = _open(ctx, file)
    _check(explorer.goto(path))
    before = explorer.node
    _check(explorer.decode())
    if explorer.node is before:
        err_console.print(f"[yellow]Nothing to decode at {explorer.path_text}[/yellow]")
        raise typer.Exit(1)
    typer.echo(_render(explorer.node, as_yaml))


def version_callback(value: bool):
    if value:
        typer.echo(f"kvscope v{__version__}")
        typer.echo(f"Config: {find_config_file() or 'defaults'}")
        raise typer.Exit()


@app.callback()
def common(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", help="kvscope.toml or a directory holding one"),
    debug: bool = typer.Option(False, "--debug", help="Verbose logging to stderr"),
    version: bool = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        help="Show version and exit.",
    ),
):
    """
    kvscope - explore nested data

    Paths look like _.items[0].name or _["key.with.dots"]; anything else is
    evaluated as an expression with _ bound to the document root.
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    try:
        ctx.obj = {"config": load_explorer_config(config)}
    except ConfigError as e:
        err_console.print(f"[red]Config error:[/red] {e}")
        raise typer.Exit(2)


if __name__ == "__main__":
    app()
