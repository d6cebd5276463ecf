#!/usr/bin/env python3
"""Show one page of a leaderboard dimension."""

from __future__ import annotations

import sys
from pathlib import Path
from typing import Annotated

import typer

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from db import create_db_engine, create_session_factory, ensure_schema
from domain.config import DEFAULT_CONFIG_PATH, load_engine_config, resolve_db_url
from domain.leaderboard import Dimension, TimeWindow
from domain.pipeline import get_leaderboard

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Query the leaderboard, all-time or over a recent window.",
)


@app.command()
def show_leaderboard(
    dimension: Annotated[
        str,
        typer.Argument(help="wins, win_rate, avg_per_dart, avg_per_turn, 180s or checkout_percentage."),
    ],
    page: Annotated[
        int,
        typer.Option("--page", help="1-based page number."),
    ] = 1,
    window: Annotated[
        str,
        typer.Option("--window", help="all-time, 30-days or 7-days."),
    ] = TimeWindow.ALL_TIME.value,
    config_path: Annotated[
        Path,
        typer.Option("--config-path", help="Engine TOML config."),
    ] = DEFAULT_CONFIG_PATH,
    db_url: Annotated[
        str | None,
        typer.Option(
            "--db-url",
            help="Database URL. Defaults to DARTS_STATS_DB_URL, then the config file.",
        ),
    ] = None,
) -> None:
    """Print ranked rows with their primary and tie-break values."""
    if page <= 0:
        raise typer.BadParameter("--page must be greater than 0")
    try:
        selected = Dimension(dimension)
    except ValueError as exc:
        available = ", ".join(item.value for item in Dimension)
        raise typer.BadParameter(
            f"Unsupported dimension '{dimension}'. Choose one of: {available}.",
            param_hint="dimension",
        ) from exc
    try:
        selected_window = TimeWindow(window)
    except ValueError as exc:
        available = ", ".join(item.value for item in TimeWindow)
        raise typer.BadParameter(
            f"Unsupported window '{window}'. Choose one of: {available}.",
            param_hint="--window",
        ) from exc

    config = load_engine_config(config_path)
    engine = create_db_engine(resolve_db_url(config, db_url))
    ensure_schema(engine)
    session_factory = create_session_factory(engine)

    result = get_leaderboard(
        session_factory=session_factory,
        dimension=selected,
        page=page,
        leaderboard=config.leaderboard,
        window=selected_window,
    )
    if not result.rows:
        typer.echo(f"No leaderboard rows for dimension='{selected.value}' page={page}.")
        return

    typer.echo(
        f"dimension={selected.value} window={selected_window.value} page={page} total={result.total_entries} "
        f"refreshed_at={result.refreshed_at} stale={result.is_stale} "
        f"pending_players={result.pending_players}"
    )
    for row in result.rows:
        secondary = "" if row.secondary_tiebreak_value is None else f" tiebreak2={row.secondary_tiebreak_value:.2f}"
        typer.echo(
            f"{row.rank:3d}. {row.player_name:<20} "
            f"value={row.primary_value:8.2f} tiebreak={row.tiebreak_value:8.2f}{secondary}"
        )


if __name__ == "__main__":
    app()
