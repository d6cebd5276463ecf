#!/usr/bin/env python3
"""Show league standings or a tournament bracket."""

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
from domain.bracket import TournamentFormat, round_name
from domain.config import DEFAULT_CONFIG_PATH, load_engine_config, resolve_db_url
from repositories.game_repository import player_names
from repositories.league_repository import get_standings
from repositories.tournament_repository import get_bracket

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Query competition state.",
)


def _session_factory(config_path: Path, db_url: str | None):
    config = load_engine_config(config_path)
    engine = create_db_engine(resolve_db_url(config, db_url))
    ensure_schema(engine)
    return create_session_factory(engine)


@app.command()
def league(
    league_id: Annotated[int, typer.Argument(help="League id.")],
    config_path: Annotated[
        Path,
        typer.Option("--config-path", help="Engine TOML config."),
    ] = DEFAULT_CONFIG_PATH,
    db_url: Annotated[
        str | None,
        typer.Option("--db-url", help="Database URL override."),
    ] = None,
) -> None:
    """Print the ranked league table."""
    session_factory = _session_factory(config_path, db_url)
    with session_factory() as session:
        standings = get_standings(session, league_id)
        names = player_names(session, [standing.row.player_id for standing in standings])

    typer.echo(f"league_id={league_id} players={len(standings)}")
    for standing in standings:
        row = standing.row
        typer.echo(
            f"{standing.rank:2d}. {names[row.player_id]:<20} "
            f"P={row.matches_played:2d} W={row.wins:2d} D={row.draws:2d} L={row.losses:2d} "
            f"legs={row.legs_won}-{row.legs_lost} diff={row.leg_difference:+d} pts={row.points:3d}"
        )


@app.command()
def tournament(
    tournament_id: Annotated[int, typer.Argument(help="Tournament id.")],
    config_path: Annotated[
        Path,
        typer.Option("--config-path", help="Engine TOML config."),
    ] = DEFAULT_CONFIG_PATH,
    db_url: Annotated[
        str | None,
        typer.Option("--db-url", help="Database URL override."),
    ] = None,
) -> None:
    """Print every bracket match grouped by round, then the placements."""
    session_factory = _session_factory(config_path, db_url)
    with session_factory() as session:
        bracket = get_bracket(session, tournament_id)
        names = player_names(session, [participant.player_id for participant in bracket.participants])

    tournament_format = TournamentFormat(bracket.tournament.format)
    typer.echo(
        f"tournament_id={tournament_id} name={bracket.tournament.name} "
        f"format={tournament_format.value} status={bracket.tournament.status}"
    )
    for round_number, matches in bracket.rounds.items():
        typer.echo(round_name(tournament_format, bracket.tournament.total_rounds, round_number))
        for match in matches:
            player1 = "BYE" if match.player1_bye else names.get(match.player1_id, "TBD")
            player2 = "BYE" if match.player2_bye else names.get(match.player2_id, "TBD")
            winner = names.get(match.winner_id, "-")
            typer.echo(f"  #{match.match_number} {player1} vs {player2} status={match.status} winner={winner}")

    placed = sorted(
        (participant for participant in bracket.participants if participant.final_placement is not None),
        key=lambda participant: participant.final_placement,
    )
    for participant in placed:
        typer.echo(f"{participant.final_placement:2d}. {names[participant.player_id]}")


if __name__ == "__main__":
    app()
