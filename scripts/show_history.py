#!/usr/bin/env python3
"""Show the recent-games summary or a player's head-to-head records."""

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
from domain.pipeline import get_head_to_head, get_recent_games
from repositories.game_repository import player_names

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Query game history.",
)


def _session_factory(config_path: Path, db_url: str | None):
    config = load_engine_config(config_path)
    engine = create_db_engine(resolve_db_url(config, db_url))
    ensure_schema(engine)
    return create_session_factory(engine)


@app.command()
def recent(
    limit: Annotated[
        int,
        typer.Option("--limit", help="Number of games to show."),
    ] = 20,
    config_path: Annotated[
        Path,
        typer.Option("--config-path", help="Engine TOML config."),
    ] = DEFAULT_CONFIG_PATH,
    db_url: Annotated[
        str | None,
        typer.Option("--db-url", help="Database URL override."),
    ] = None,
) -> None:
    """Print the newest completed games from the summary projection."""
    if limit <= 0:
        raise typer.BadParameter("--limit must be greater than 0")
    result = get_recent_games(session_factory=_session_factory(config_path, db_url), limit=limit)

    typer.echo(f"games={len(result.rows)} refreshed_at={result.refreshed_at} pending_games={result.pending_games}")
    for game in result.rows:
        winner = game.winner_name or "-"
        typer.echo(
            f"#{game.game_id} {game.game_type} {game.win_condition} players={game.player_count} "
            f"winner={winner} darts={game.total_darts} turns={game.total_turns} "
            f"with_180s={game.players_with_180s} minutes={game.duration_minutes:.2f}"
        )


@app.command("head-to-head")
def head_to_head(
    player_id: Annotated[int, typer.Argument(help="Player id.")],
    opponent_id: Annotated[
        int | None,
        typer.Option("--opponent", help="Only this opponent."),
    ] = None,
    config_path: Annotated[
        Path,
        typer.Option("--config-path", help="Engine TOML config."),
    ] = DEFAULT_CONFIG_PATH,
    db_url: Annotated[
        str | None,
        typer.Option("--db-url", help="Database URL override."),
    ] = None,
) -> None:
    """Print wins and losses against each opponent over shared games."""
    session_factory = _session_factory(config_path, db_url)
    records = get_head_to_head(session_factory=session_factory, player_id=player_id, opponent_id=opponent_id)
    with session_factory() as session:
        names = player_names(session, [player_id, *(record.opponent_id for record in records)])

    typer.echo(f"player={names[player_id]} opponents={len(records)}")
    for record in records:
        typer.echo(
            f"  vs {names[record.opponent_id]:<20} games={record.games:3d} "
            f"W={record.wins:3d} L={record.losses:3d} win_rate={record.win_rate:6.2f}"
        )


if __name__ == "__main__":
    app()
