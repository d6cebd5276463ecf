"""ORM models."""

from models.base import Base
from models.game import Game, GameParticipant, Turn
from models.leaderboard import LeaderboardEntry
from models.league import League, LeagueMatch, LeagueParticipant
from models.player import Player
from models.recent_game import RecentGameSummary
from models.tournament import Tournament, TournamentMatch, TournamentParticipant

__all__ = [
    "Base",
    "Game",
    "GameParticipant",
    "LeaderboardEntry",
    "League",
    "LeagueMatch",
    "LeagueParticipant",
    "Player",
    "RecentGameSummary",
    "Tournament",
    "TournamentMatch",
    "TournamentParticipant",
    "Turn",
]
