#!/usr/bin/env python3
"""Rebuild the materialized leaderboard and recent-games summary, once or periodically."""

from __future__ import annotations

import json
import logging
import sys
import time
from pathlib import Path
from typing import Annotated

import typer

ROOT_DIR = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT_DIR / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from db import create_db_engine, create_session_factory, ensure_schema
from domain.config import DEFAULT_CONFIG_PATH, load_engine_config, resolve_db_url
from domain.leaderboard import Dimension
from domain.pipeline import refresh_leaderboard, refresh_recent_games

logger = logging.getLogger(__name__)

app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    help="Full projection refresh: every (or one) leaderboard dimension plus recent games.",
)


def _parse_dimension(value: str | None) -> list[Dimension] | None:
    if value is None:
        return None
    try:
        return [Dimension(value)]
    except ValueError as exc:
        available = ", ".join(dimension.value for dimension in Dimension)
        raise typer.BadParameter(
            f"Unsupported dimension '{value}'. Choose one of: {available}.",
            param_hint="--dimension",
        ) from exc


@app.command()
def refresh(
    dimension: Annotated[
        str | None,
        typer.Option("--dimension", help="Only refresh this dimension."),
    ] = None,
    interval: Annotated[
        int,
        typer.Option(
            "--interval",
            help="Seconds between refreshes. 0 refreshes once and exits.",
        ),
    ] = 0,
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
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Python logging level."),
    ] = "INFO",
) -> None:
    """Rebuild leaderboard rows from player aggregates and the recent-games summary from games."""
    if interval < 0:
        raise typer.BadParameter("--interval must be >= 0")
    logging.basicConfig(level=log_level.upper())
    dimensions = _parse_dimension(dimension)
    config = load_engine_config(config_path)
    logger.debug("Engine config: %s", json.dumps(config.as_config_json(), sort_keys=True))

    engine = create_db_engine(resolve_db_url(config, db_url))
    ensure_schema(engine)
    session_factory = create_session_factory(engine)

    while True:
        counts = refresh_leaderboard(session_factory=session_factory, dimensions=dimensions)
        recent = refresh_recent_games(session_factory=session_factory)
        summary = " ".join(f"{key.value}={value}" for key, value in counts.items())
        typer.echo(f"{summary} recent_games={recent}")
        if interval == 0:
            return
        time.sleep(interval)


if __name__ == "__main__":
    app()
