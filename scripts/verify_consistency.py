#!/usr/bin/env python3
"""Audit stored aggregates against their source records, optionally repairing them."""

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
from domain.pipeline import repair_aggregates, verify_consistency
from domain.verification import VerificationScope

logger = logging.getLogger(__name__)

app = typer.Typer(
    add_completion=False,
    no_args_is_help=False,
    help="Consistency verifier for player, participant and league aggregates.",
)


@app.command()
def verify(
    player_id: Annotated[
        int | None,
        typer.Option("--player-id", help="Only verify this player."),
    ] = None,
    game_id: Annotated[
        int | None,
        typer.Option("--game-id", help="Only verify this game and its players."),
    ] = None,
    repair: Annotated[
        bool,
        typer.Option(
            "--repair/--no-repair",
            help="Recompute player aggregates from participants after reporting.",
        ),
    ] = False,
    config_path: Annotated[
        Path,
        typer.Option("--config-path", help="Engine TOML config."),
    ] = DEFAULT_CONFIG_PATH,
    db_url: Annotated[
        str | None,
        typer.Option("--db-url", help="Database URL override."),
    ] = None,
    log_level: Annotated[
        str,
        typer.Option("--log-level", help="Python logging level."),
    ] = "WARNING",
) -> None:
    """Report every discrepancy; exit code 1 when any remain."""
    if player_id is not None and game_id is not None:
        raise typer.BadParameter("Use either --player-id or --game-id, not both.")
    if repair and game_id is not None:
        raise typer.BadParameter("--repair works on all players or one --player-id.")
    logging.basicConfig(level=log_level.upper())

    if player_id is not None:
        scope = VerificationScope.player(player_id)
    elif game_id is not None:
        scope = VerificationScope.game(game_id)
    else:
        scope = VerificationScope.all()

    config = load_engine_config(config_path)

    logger.debug("Engine config: %s", json.dumps(config.as_config_json(), sort_keys=True))
    engine = create_db_engine(resolve_db_url(config, db_url))
    ensure_schema(engine)
    session_factory = create_session_factory(engine)

    report = verify_consistency(session_factory=session_factory, scope=scope)
    checked = " ".join(f"{entity}={count}" for entity, count in sorted(report.checked.items()))
    typer.echo(f"scope={scope.kind.value} checked: {checked} discrepancies={len(report.discrepancies)}")
    for discrepancy in report.discrepancies:
        typer.echo(discrepancy.describe())

    if repair and report.for_entity("player"):
        repaired = repair_aggregates(session_factory=session_factory, player_id=player_id)
        typer.echo(f"repaired_players={repaired}")
        report = verify_consistency(session_factory=session_factory, scope=scope)
        typer.echo(f"after_repair discrepancies={len(report.discrepancies)}")

    if not report.ok:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
