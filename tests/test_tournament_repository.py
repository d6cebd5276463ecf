"""Repository tests for tournament creation and bracket progression."""

from __future__ import annotations

import pytest
from sqlalchemy import or_, select

from domain.bracket import TournamentFormat
from domain.config import TournamentConfig
from domain.errors import MatchStateError, ReferentialIntegrityError, TopologyError, ValidationError
from models import TournamentMatch, TournamentParticipant
from repositories.tournament_repository import (
    create_tournament,
    get_bracket,
    get_match,
    report_match_result,
    start_match,
)

SINGLE = TournamentConfig(name="Winter Open", format=TournamentFormat.SINGLE_ELIMINATION, bracket_size=8)
FOUR = TournamentConfig(name="Club Night", format=TournamentFormat.SINGLE_ELIMINATION, bracket_size=4)
DOUBLE = TournamentConfig(name="Doubles Cup", format=TournamentFormat.DOUBLE_ELIMINATION, bracket_size=4)


def _participants(session, tournament_id: int) -> dict[int, TournamentParticipant]:
    rows = session.execute(
        select(TournamentParticipant)
        .where(TournamentParticipant.tournament_id == tournament_id)
        .execution_options(populate_existing=True)
    ).scalars()
    return {row.player_id: row for row in rows}


def _ready_matches(session, tournament_id: int) -> list[TournamentMatch]:
    return list(
        session.execute(
            select(TournamentMatch)
            .where(TournamentMatch.tournament_id == tournament_id, TournamentMatch.status == "ready")
            .order_by(TournamentMatch.round.asc(), TournamentMatch.match_number.asc())
            .execution_options(populate_existing=True)
        ).scalars()
    )


def _play_out(session, tournament_id: int, seeds: dict[int, int]) -> None:
    """Report every ready match until none remain; the better seed always wins."""
    while True:
        ready = _ready_matches(session, tournament_id)
        if not ready:
            return
        match = ready[0]
        winner = min((match.player1_id, match.player2_id), key=lambda player_id: seeds[player_id])
        report_match_result(session, match.id, winner)


def test_create_single_elimination_with_byes(session, players) -> None:
    ids = players("P1", "P2", "P3", "P4", "P5", "P6")
    bracket = create_tournament(session, SINGLE, ids)

    assert bracket.tournament.total_rounds == 3
    assert sum(len(matches) for matches in bracket.rounds.values()) == 7

    # seeds 1 and 2 face byes and advance by walkover
    walkover = bracket.match(1, 1)
    assert walkover.status == "completed"
    assert walkover.winner_id == ids[0]
    assert bracket.match(1, 3).winner_id == ids[1]
    assert bracket.match(1, 2).status == "ready"
    assert bracket.match(2, 1).player1_id == ids[0]
    assert bracket.match(2, 1).status == "pending"
    assert bracket.match(2, 2).player1_id == ids[1]

    positions = {row.player_id: row.bracket_position for row in bracket.participants}
    assert positions[ids[0]] == 1
    assert positions[ids[3]] == 3


def test_full_single_elimination_run_assigns_placements(session, players) -> None:
    ids = players(*(f"P{number}" for number in range(1, 9)))
    bracket = create_tournament(session, SINGLE, ids)
    seeds = {player_id: seed for seed, player_id in enumerate(ids, start=1)}

    _play_out(session, bracket.tournament.id, seeds)

    final = get_bracket(session, bracket.tournament.id)
    assert final.tournament.status == "completed"
    assert final.tournament.winner_id == ids[0]
    placements = {row.player_id: row.final_placement for row in final.participants}
    assert placements[ids[0]] == 1
    assert placements[ids[1]] == 2
    assert placements[ids[2]] == placements[ids[3]] == 3
    assert all(placements[player_id] == 5 for player_id in ids[4:])

    eliminated = _participants(session, bracket.tournament.id)
    assert eliminated[ids[7]].eliminated_in_round == 1
    assert eliminated[ids[1]].eliminated_in_round == 3
    assert not eliminated[ids[0]].eliminated


def test_double_elimination_loser_gets_a_second_chance(session, players) -> None:
    p1, p2, p3, p4 = players("P1", "P2", "P3", "P4")
    bracket = create_tournament(session, DOUBLE, [p1, p2, p3, p4])
    tournament_id = bracket.tournament.id

    report_match_result(session, bracket.match(1, 1).id, p1)
    report_match_result(session, bracket.match(1, 2).id, p2)
    assert not _participants(session, tournament_id)[p4].eliminated

    losers_first = get_match(session, bracket.match(-1, 1).id)
    assert (losers_first.player1_id, losers_first.player2_id) == (p4, p3)
    assert losers_first.status == "ready"

    report_match_result(session, losers_first.id, p3)
    knocked_out = _participants(session, tournament_id)[p4]
    assert knocked_out.eliminated
    assert knocked_out.eliminated_in_round == -1

    report_match_result(session, bracket.match(2, 1).id, p1)
    report_match_result(session, bracket.match(-2, 1).id, p2)
    grand_final = get_match(session, bracket.match(3, 1).id)
    assert (grand_final.player1_id, grand_final.player2_id) == (p1, p2)

    result = report_match_result(session, grand_final.id, p1)
    assert result.tournament_completed

    placements = {
        player_id: row.final_placement for player_id, row in _participants(session, tournament_id).items()
    }
    assert placements == {p1: 1, p2: 2, p3: 3, p4: 4}

    slots = session.execute(
        select(TournamentMatch.round, TournamentMatch.match_number).where(
            TournamentMatch.tournament_id == tournament_id,
            or_(TournamentMatch.player1_id == p4, TournamentMatch.player2_id == p4),
        )
    ).all()
    assert sorted(slots) == [(-1, 1), (1, 1)]


def test_reporting_is_idempotent_and_rejects_a_changed_winner(session, players) -> None:
    ids = players("P1", "P2", "P3", "P4")
    bracket = create_tournament(session, FOUR, ids)
    first = bracket.match(1, 1)

    applied = report_match_result(session, first.id, ids[0])
    assert applied.applied
    assert applied.loser_id == ids[3]

    repeated = report_match_result(session, first.id, ids[0])
    assert not repeated.applied
    assert get_match(session, bracket.match(2, 1).id).player1_id == ids[0]

    with pytest.raises(MatchStateError):
        report_match_result(session, first.id, ids[3])


def test_report_validation(session, players) -> None:
    ids = players("P1", "P2", "P3", "P4", "Outsider")
    bracket = create_tournament(session, FOUR, ids[:4])

    with pytest.raises(ValidationError):
        report_match_result(session, bracket.match(1, 1).id, ids[4])
    with pytest.raises(MatchStateError):
        report_match_result(session, bracket.match(2, 1).id, ids[0])
    with pytest.raises(ReferentialIntegrityError):
        report_match_result(session, 9999, ids[0])


def test_start_match_links_the_game(session, players, game_factory) -> None:
    ids = players("P1", "P2", "P3", "P4")
    bracket = create_tournament(session, FOUR, ids)
    ready = bracket.match(1, 1)
    game = game_factory(session, {ids[0]: [[20, 20, 20]], ids[3]: [[5, 5, 5]]})
    other = game_factory(session, {ids[0]: [[20, 20, 20]], ids[3]: [[5, 5, 5]]})

    started = start_match(session, ready.id, game.id)
    assert started.status == "in_progress"
    assert started.game_id == game.id
    assert start_match(session, ready.id, game.id).game_id == game.id

    with pytest.raises(MatchStateError):
        start_match(session, ready.id, other.id)
    with pytest.raises(MatchStateError):
        start_match(session, bracket.match(2, 1).id, other.id)
    with pytest.raises(ReferentialIntegrityError):
        start_match(session, bracket.match(1, 2).id, 9999)


def test_invalid_tournaments_write_nothing(session, players) -> None:
    ids = players("P1", "P2", "P3")
    with pytest.raises(TopologyError):
        create_tournament(session, SINGLE, [ids[0], ids[0], ids[1]])
    with pytest.raises(TopologyError):
        create_tournament(session, DOUBLE, ids[:1])
    with pytest.raises(ReferentialIntegrityError):
        create_tournament(session, SINGLE, [ids[0], 9999])
    assert session.execute(select(TournamentMatch)).scalars().all() == []
