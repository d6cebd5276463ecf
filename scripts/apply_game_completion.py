#!/usr/bin/env python3
"""Fold completed games into player lifetime aggregates."""

from __future__ import annotations

import json
import logging
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
from domain.errors import DartsStatsError
from domain.pipeline import apply_game_completion

logger = logging.getLogger(__name__)

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Apply completed games to player aggregates (idempotent per game).",
)


@app.command()
def apply_games(
    game_ids: Annotated[
        list[int],
        typer.Argument(help="Ids of completed games to aggregate."),
    ],
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
    ] = "WARNING",
) -> None:
    """Aggregate each game; games aggregated before are reported as skipped."""
    logging.basicConfig(level=log_level.upper())
    config = load_engine_config(config_path)
    logger.debug("Engine config: %s", json.dumps(config.as_config_json(), sort_keys=True))

    engine = create_db_engine(resolve_db_url(config, db_url))
    ensure_schema(engine)
    session_factory = create_session_factory(engine)

    failures = 0
    for game_id in game_ids:
        try:
            summary = apply_game_completion(
                session_factory=session_factory,
                game_id=game_id,
                leaderboard=config.leaderboard,
            )
        except DartsStatsError as exc:
            failures += 1
            typer.echo(f"game_id={game_id} error={exc}", err=True)
            continue

        status = "applied" if summary.applied else "skipped"
        typer.echo(
            f"game_id={game_id} status={status} "
            f"players={list(summary.player_ids)} "
            f"leaderboard_refreshed={summary.leaderboard_refreshed}"
        )

    if failures:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
