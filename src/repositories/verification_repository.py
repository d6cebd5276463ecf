"""Consistency verifier and the explicit aggregate repair."""

from __future__ import annotations

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from domain.errors import ReferentialIntegrityError
from domain.league import result_deltas
from domain.stats import PLAYER_COUNTER_FIELDS, ParticipantCounters
from domain.turns import summarize_turns
from domain.verification import ScopeKind, VerificationReport, VerificationScope
from models import Game, GameParticipant, League, Player
from repositories.common import utcnow
from repositories.game_repository import fetch_turns
from repositories.league_repository import (
    STANDING_FIELDS,
    fetch_results,
    fetch_standing_rows,
    points_system,
)
from repositories.stats_repository import recompute_player_counters

logger = logging.getLogger(__name__)


def _scoped_player_ids(session: Session, scope: VerificationScope) -> list[int]:
    if scope.kind is ScopeKind.PLAYER:
        if session.get(Player, scope.entity_id) is None:
            raise ReferentialIntegrityError("player", scope.entity_id)
        return [scope.entity_id]
    stmt = select(Player.id).order_by(Player.id.asc())
    if scope.kind is ScopeKind.GAME:
        stmt = (
            select(GameParticipant.player_id)
            .where(GameParticipant.game_id == scope.entity_id)
            .order_by(GameParticipant.player_id.asc())
        )
    return [int(player_id) for player_id in session.execute(stmt).scalars()]


def _scoped_games(session: Session, scope: VerificationScope) -> list[Game]:
    stmt = select(Game).order_by(Game.id.asc()).execution_options(populate_existing=True)
    if scope.kind is ScopeKind.GAME:
        stmt = stmt.where(Game.id == scope.entity_id)
    elif scope.kind is ScopeKind.PLAYER:
        stmt = stmt.where(
            Game.id.in_(select(GameParticipant.game_id).where(GameParticipant.player_id == scope.entity_id))
        )
    games = list(session.execute(stmt).scalars())
    if scope.kind is ScopeKind.GAME and not games:
        raise ReferentialIntegrityError("game", scope.entity_id)
    return games


def verify(session: Session, scope: VerificationScope | None = None) -> VerificationReport:
    """Recompute aggregates from scratch and report every mismatch.

    Never writes. Checks player counters against participants, participant
    counters against turns, completed games against the aggregation marker and,
    for a whole-store scope, league standings against their fixtures.
    """
    scope = scope or VerificationScope.all()
    report = VerificationReport(scope=scope)

    player_ids = _scoped_player_ids(session, scope)
    expected = recompute_player_counters(session, player_ids)
    players = session.execute(
        select(Player).where(Player.id.in_(player_ids)).execution_options(populate_existing=True)
    ).scalars()
    for player in players:
        actual = {field: getattr(player, field) for field in PLAYER_COUNTER_FIELDS}
        report.compare("player", player.id, expected[player.id], actual)

    for game in _scoped_games(session, scope):
        if game.completed_at is None:
            report.count("game")
            continue
        report.compare("game", game.id, {"aggregated": True}, {"aggregated": game.aggregated_at is not None})

        participants = session.execute(
            select(GameParticipant)
            .where(GameParticipant.game_id == game.id)
            .order_by(GameParticipant.id.asc())
            .execution_options(populate_existing=True)
        ).scalars().all()
        turns = fetch_turns(session, [participant.id for participant in participants])
        for participant in participants:
            recomputed = summarize_turns(turns[participant.id], scoring_mode=game.scoring_mode)
            stored = ParticipantCounters.from_row(participant)
            report.compare("participant", participant.id, recomputed.as_dict(), stored.as_dict())

    if scope.kind is ScopeKind.ALL:
        _verify_leagues(session, report)

    if report.ok:
        logger.info("Verification passed scope=%s checked=%s", scope.kind.value, report.checked)
    else:
        logger.warning(
            "Verification found %s discrepancies scope=%s",
            len(report.discrepancies),
            scope.kind.value,
        )
    return report


def _verify_leagues(session: Session, report: VerificationReport) -> None:
    leagues = session.execute(select(League).order_by(League.id.asc())).scalars().all()
    for league in leagues:
        points = points_system(league)
        expected: dict[int, dict[str, int]] = {}
        for row in fetch_standing_rows(session, league.id):
            expected[row.player_id] = {field: 0 for field in STANDING_FIELDS}
        for result in fetch_results(session, league.id):
            for player_id, deltas in result_deltas(result, points).items():
                totals = expected.setdefault(player_id, {field: 0 for field in STANDING_FIELDS})
                for field, delta in deltas.items():
                    totals[field] += delta
        for row in fetch_standing_rows(session, league.id):
            actual = {field: getattr(row, field) for field in STANDING_FIELDS}
            report.compare("league_participant", row.player_id, expected[row.player_id], actual)


def repair_player_aggregates(session: Session, player_id: int | None = None) -> list[int]:
    """Overwrite player counters with values recomputed from participants.

    Only invoked explicitly by an operator; returns the repaired player ids.
    """
    scope = VerificationScope.all() if player_id is None else VerificationScope.player(player_id)
    player_ids = _scoped_player_ids(session, scope)
    expected = recompute_player_counters(session, player_ids)

    players = session.execute(
        select(Player).where(Player.id.in_(player_ids)).execution_options(populate_existing=True)
    ).scalars()
    repaired: list[int] = []
    now = utcnow()
    for player in players:
        actual = {field: getattr(player, field) for field in PLAYER_COUNTER_FIELDS}
        if actual == expected[player.id]:
            continue
        session.execute(
            update(Player)
            .where(Player.id == player.id)
            .values(updated_at=now, **expected[player.id])
            .execution_options(synchronize_session=False)
        )
        repaired.append(player.id)

    if repaired:
        logger.warning("Repaired aggregates for players=%s", repaired)
    return repaired


__all__ = ["repair_player_aggregates", "verify"]
