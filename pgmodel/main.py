from __future__ import annotations

import asyncio
import json
import sys
from typing import Any, List, Optional

import typer
from rich import box
from rich.console import Console
from rich.table import Table

from pgmodel.config import get_settings
from pgmodel.infrastructure.db_factory import build_dsn, create_store
from pgmodel.infrastructure.store import QueryResult
from pgmodel.utils.logging import configure_logging

app = typer.Typer(help="pgmodel CLI.")


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"pool=({settings.db_pool_min_size},{settings.db_pool_max_size}) "
        f"prefetch={settings.db_stream_prefetch} query_log={settings.query_log}"
    )


def parse_param(raw: str) -> Any:
    """Decode a command-line parameter as JSON, keeping it as text when it is not JSON."""
    try:
        return json.loads(raw)
    except ValueError:
        return raw


async def _run_sql(dsn: str, sql: str, params: List[str]) -> QueryResult:
    store = await create_store(dsn, min_size=1, max_size=1)
    try:
        return await store.execute(sql, [parse_param(p) for p in params])
    finally:
        await store.close()


def render_rows(result: QueryResult, console: Optional[Console] = None) -> None:
    """Print query rows as a rich table."""
    console = console or Console()
    if not result.rows:
        console.print("[dim](0 rows)[/dim]")
        return
    table = Table(box=box.SIMPLE_HEAVY, show_lines=False)
    columns = list(result.rows[0])
    for column in columns:
        table.add_column(column)
    for row in result.rows:
        table.add_row(*("" if row.get(c) is None else str(row.get(c)) for c in columns))
    console.print(table)
    console.print(f"[dim]({result.row_count} rows)[/dim]")


@app.command()
def query(
    sql: str = typer.Argument(..., help="SQL with $1, $2 ... placeholders."),
    params: Optional[List[str]] = typer.Argument(None, help="Positional parameter values; JSON literals (1, true, null) are decoded."),
    dsn: Optional[str] = typer.Option(None, "--dsn", help="Override the configured DSN."),
    as_json: bool = typer.Option(False, "--json", help="Print rows as JSON instead of a table."),
) -> None:
    """
    Run one SQL statement and print the rows it returns.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    result = asyncio.run(_run_sql(dsn or build_dsn(settings), sql, params or []))
    if as_json:
        typer.echo(json.dumps(result.rows, indent=2, default=str))
    else:
        render_rows(result)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
