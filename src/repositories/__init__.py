"""Database repository helpers."""

from repositories.game_repository import (
    add_participant,
    create_game,
    finalize_participant_stats,
    get_or_create_player,
    mark_game_completed,
    record_turn,
)
from repositories.leaderboard_repository import (
    LeaderboardPage,
    LeaderboardRow,
    get_leaderboard,
    refresh_leaderboard,
    refresh_player,
)
from repositories.league_repository import (
    LeagueMatchResult,
    apply_match_result,
    create_league,
    get_standings,
    report_league_result,
    start_league_match,
)
from repositories.recent_games_repository import (
    RecentGame,
    RecentGamesPage,
    get_recent_games,
    refresh_recent_game,
    refresh_recent_games,
)
from repositories.stats_repository import (
    apply_game_completion,
    fetch_player_totals,
    fetch_window_totals,
    get_head_to_head,
    get_head_to_head_record,
    get_player_totals,
)
from repositories.tournament_repository import (
    MatchResult,
    TournamentBracket,
    create_tournament,
    get_bracket,
    report_match_result,
    start_match,
)
from repositories.verification_repository import repair_player_aggregates, verify

__all__ = [
    "LeaderboardPage",
    "LeaderboardRow",
    "LeagueMatchResult",
    "MatchResult",
    "RecentGame",
    "RecentGamesPage",
    "TournamentBracket",
    "add_participant",
    "apply_game_completion",
    "apply_match_result",
    "create_game",
    "create_league",
    "create_tournament",
    "fetch_player_totals",
    "fetch_window_totals",
    "finalize_participant_stats",
    "get_bracket",
    "get_head_to_head",
    "get_head_to_head_record",
    "get_leaderboard",
    "get_or_create_player",
    "get_player_totals",
    "get_recent_games",
    "get_standings",
    "mark_game_completed",
    "record_turn",
    "refresh_leaderboard",
    "refresh_player",
    "refresh_recent_game",
    "refresh_recent_games",
    "report_league_result",
    "report_match_result",
    "repair_player_aggregates",
    "start_league_match",
    "start_match",
    "verify",
]
