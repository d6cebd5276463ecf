"""Transactional entry points: each call owns exactly one session transaction.

These are the event handlers that run when a game or a match completes.
Everything a transition causes (aggregation, bracket or league progression,
a synchronous projection refresh) commits together or not at all.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from sqlalchemy.orm import Session

from domain.config import LeaderboardConfig, LeagueConfig, TournamentConfig
from domain.errors import IdempotencyConflict
from domain.leaderboard import Dimension, TimeWindow
from domain.league import RankedStanding
from domain.stats import HeadToHead
from domain.verification import VerificationReport, VerificationScope
from repositories import game_repository, league_repository, stats_repository, tournament_repository
from repositories import leaderboard_repository, recent_games_repository, verification_repository
from repositories.leaderboard_repository import LeaderboardPage
from repositories.league_repository import LeagueMatchResult
from repositories.recent_games_repository import RecentGamesPage
from repositories.tournament_repository import MatchResult, TournamentBracket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregationSummary:
    """Outcome of folding one game into player aggregates."""

    game_id: int
    applied: bool
    player_ids: tuple[int, ...]
    leaderboard_refreshed: bool


@dataclass(frozen=True)
class GameCompletionSummary:
    game_id: int
    transitioned: bool
    aggregation: AggregationSummary
    tournament_match: MatchResult | None
    league_match: LeagueMatchResult | None


def _run(session_factory, work: Callable[[Session], object]):
    with session_factory() as session:
        try:
            result = work(session)
            session.commit()
        except Exception:
            session.rollback()
            raise
    return result


def _aggregate(session: Session, game_id: int, leaderboard: LeaderboardConfig | None) -> AggregationSummary:
    try:
        player_ids = stats_repository.apply_game_completion(session, game_id)
    except IdempotencyConflict:
        logger.warning("Game id=%s already aggregated; treating as no-op", game_id)
        return AggregationSummary(game_id=game_id, applied=False, player_ids=(), leaderboard_refreshed=False)

    refreshed = False
    if leaderboard is not None and leaderboard.refresh_mode == "sync":
        for player_id in sorted(player_ids):
            leaderboard_repository.refresh_player(session, player_id)
        recent_games_repository.refresh_recent_game(session, game_id)
        refreshed = True
    return AggregationSummary(
        game_id=game_id,
        applied=True,
        player_ids=tuple(player_ids),
        leaderboard_refreshed=refreshed,
    )


def _aggregate_if_completed(
    session: Session,
    game_id: int | None,
    leaderboard: LeaderboardConfig | None,
) -> None:
    if game_id is None:
        return
    game = game_repository.get_game(session, game_id)
    if game.completed_at is not None and game.aggregated_at is None:
        _aggregate(session, game_id, leaderboard)


def apply_game_completion(
    *,
    session_factory,
    game_id: int,
    leaderboard: LeaderboardConfig | None = None,
) -> AggregationSummary:
    """Aggregate one completed game; a repeated call is a successful no-op."""
    return _run(session_factory, lambda session: _aggregate(session, game_id, leaderboard))


def complete_game(
    *,
    session_factory,
    game_id: int,
    winner_id: int | None = None,
    ended_without_winner: bool = False,
    leaderboard: LeaderboardConfig | None = None,
) -> GameCompletionSummary:
    """Finalize counters, complete the game and run everything it triggers.

    A game linked to a tournament or league match also completes that match.
    A game that ends without a winner completes its league fixture as a draw.
    """

    def work(session: Session) -> GameCompletionSummary:
        game = game_repository.get_game(session, game_id)
        if game.completed_at is None:
            game_repository.finalize_participant_stats(session, game_id)
        transitioned = game_repository.mark_game_completed(
            session,
            game_id,
            winner_id=winner_id,
            ended_without_winner=ended_without_winner,
        )
        aggregation = _aggregate(session, game_id, leaderboard)

        tournament_result = None
        tournament_match = tournament_repository.find_match_for_game(session, game_id)
        if tournament_match is not None and winner_id is not None:
            tournament_result = tournament_repository.report_match_result(
                session,
                tournament_match.id,
                winner_id,
            )

        league_result = None
        league_match = league_repository.find_match_for_game(session, game_id)
        if league_match is not None:
            league_result = league_repository.report_league_result(
                session,
                league_match.id,
                winner_id=winner_id,
                is_draw=winner_id is None,
            )

        return GameCompletionSummary(
            game_id=game_id,
            transitioned=transitioned,
            aggregation=aggregation,
            tournament_match=tournament_result,
            league_match=league_result,
        )

    return _run(session_factory, work)


def refresh_leaderboard(
    *,
    session_factory,
    dimensions: Iterable[Dimension] | None = None,
) -> dict[Dimension, int]:
    return _run(session_factory, lambda session: leaderboard_repository.refresh_leaderboard(session, dimensions))


def get_leaderboard(
    *,
    session_factory,
    dimension: Dimension | str,
    page: int = 1,
    window: TimeWindow | str = TimeWindow.ALL_TIME,
    leaderboard: LeaderboardConfig | None = None,
) -> LeaderboardPage:
    config = leaderboard or LeaderboardConfig()
    return _run(
        session_factory,
        lambda session: leaderboard_repository.get_leaderboard(
            session,
            dimension,
            page=page,
            page_size=config.page_size,
            max_staleness_seconds=config.max_staleness_seconds,
            window=window,
        ),
    )



def refresh_recent_games(*, session_factory) -> int:
    return _run(session_factory, recent_games_repository.refresh_recent_games)


def get_recent_games(*, session_factory, limit: int = 20) -> RecentGamesPage:
    return _run(session_factory, lambda session: recent_games_repository.get_recent_games(session, limit=limit))


def get_head_to_head(
    *,
    session_factory,
    player_id: int,
    opponent_id: int | None = None,
) -> list[HeadToHead]:
    """Records against every opponent, or against one when ``opponent_id`` is given."""

    def work(session: Session) -> list[HeadToHead]:
        if opponent_id is None:
            return stats_repository.get_head_to_head(session, player_id)
        return [stats_repository.get_head_to_head_record(session, player_id, opponent_id)]

    return _run(session_factory, work)

def create_tournament(
    *,
    session_factory,
    config: TournamentConfig,
    seeded_player_ids: Sequence[int],
) -> TournamentBracket:
    return _run(
        session_factory,
        lambda session: tournament_repository.create_tournament(session, config, seeded_player_ids),
    )


def report_match_result(
    *,
    session_factory,
    match_id: int,
    winner_id: int,
    leaderboard: LeaderboardConfig | None = None,
) -> MatchResult:
    """Complete a bracket match; its underlying game is aggregated in the same transaction."""

    def work(session: Session) -> MatchResult:
        result = tournament_repository.report_match_result(session, match_id, winner_id)
        match = tournament_repository.get_match(session, match_id)
        _aggregate_if_completed(session, match.game_id, leaderboard)
        return result

    return _run(session_factory, work)


def create_league(
    *,
    session_factory,
    config: LeagueConfig,
    player_ids: Sequence[int],
) -> int:
    """Returns the new league id."""
    return _run(
        session_factory,
        lambda session: league_repository.create_league(session, config, player_ids).id,
    )


def report_league_result(
    *,
    session_factory,
    match_id: int,
    winner_id: int | None = None,
    is_draw: bool = False,
    player1_legs: int | None = None,
    player2_legs: int | None = None,
    leaderboard: LeaderboardConfig | None = None,
) -> LeagueMatchResult:
    def work(session: Session) -> LeagueMatchResult:
        result = league_repository.report_league_result(
            session,
            match_id,
            winner_id=winner_id,
            is_draw=is_draw,
            player1_legs=player1_legs,
            player2_legs=player2_legs,
        )
        match = league_repository.get_match(session, match_id)
        _aggregate_if_completed(session, match.game_id, leaderboard)
        return result

    return _run(session_factory, work)


def get_standings(*, session_factory, league_id: int) -> list[RankedStanding]:
    return _run(session_factory, lambda session: league_repository.get_standings(session, league_id))


def verify_consistency(
    *,
    session_factory,
    scope: VerificationScope | None = None,
) -> VerificationReport:
    """Read-only audit; the transaction is rolled back either way."""
    with session_factory() as session:
        try:
            return verification_repository.verify(session, scope)
        finally:
            session.rollback()


def repair_aggregates(*, session_factory, player_id: int | None = None) -> list[int]:
    return _run(
        session_factory,
        lambda session: verification_repository.repair_player_aggregates(session, player_id),
    )


__all__ = [
    "AggregationSummary",
    "GameCompletionSummary",
    "apply_game_completion",
    "complete_game",
    "create_league",
    "create_tournament",
    "get_head_to_head",
    "get_leaderboard",
    "get_recent_games",
    "get_standings",
    "refresh_leaderboard",
    "refresh_recent_games",
    "repair_aggregates",
    "report_league_result",
    "report_match_result",
    "verify_consistency",
]
