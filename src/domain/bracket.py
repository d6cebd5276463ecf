"""Pure bracket topology for single and double elimination tournaments.

Match keys are ``(round, match_number)``. Winners-bracket rounds are
``1..k`` for a bracket of ``2**k`` slots, losers-bracket rounds are
``-1..-2(k-1)`` and the double-elimination grand final is round ``k + 1``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, replace
from enum import Enum

from domain.errors import TopologyError

MatchKey = tuple[int, int]


class TournamentFormat(str, Enum):
    SINGLE_ELIMINATION = "single_elimination"
    DOUBLE_ELIMINATION = "double_elimination"


@dataclass(frozen=True)
class MatchSpec:
    """One bracket node before it is persisted."""

    round: int
    match_number: int
    winner_next: MatchKey | None = None
    winner_next_slot: int | None = None
    loser_next: MatchKey | None = None
    loser_next_slot: int | None = None
    player1_seed: int | None = None
    player2_seed: int | None = None
    player1_bye: bool = False
    player2_bye: bool = False

    @property
    def key(self) -> MatchKey:
        return (self.round, self.match_number)

    @property
    def is_void(self) -> bool:
        """Both feeders are byes: the match never gets a player."""
        return self.player1_bye and self.player2_bye


@dataclass(frozen=True)
class BracketPlan:
    format: TournamentFormat
    bracket_size: int
    total_rounds: int
    matches: tuple[MatchSpec, ...]

    def by_key(self) -> dict[MatchKey, MatchSpec]:
        return {match.key: match for match in self.matches}

    @property
    def final_key(self) -> MatchKey:
        if self.format is TournamentFormat.DOUBLE_ELIMINATION:
            return (self.total_rounds + 1, 1)
        return (self.total_rounds, 1)


def is_power_of_two(value: int) -> bool:
    return value >= 1 and value & (value - 1) == 0


def seed_order(bracket_size: int) -> list[int]:
    """Standard seed placement: 1 v N, 2 v N-1, with top seeds kept apart.

    ``seed_order(8) == [1, 8, 4, 5, 2, 7, 3, 6]``; consecutive pairs are the
    first-round matches.
    """
    if not is_power_of_two(bracket_size):
        raise TopologyError(f"Bracket size must be a power of two, got {bracket_size}")
    order = [1]
    while len(order) < bracket_size:
        mirror = 2 * len(order) + 1
        order = [seed for top in order for seed in (top, mirror - top)]
    return order


def build_bracket(
    tournament_format: TournamentFormat,
    bracket_size: int,
    player_count: int,
) -> BracketPlan:
    """Build the full match graph and resolve byes for ``player_count`` seeds."""
    if not is_power_of_two(bracket_size) or bracket_size < 2:
        raise TopologyError(f"Bracket size must be a power of two >= 2, got {bracket_size}")
    if tournament_format is TournamentFormat.DOUBLE_ELIMINATION and bracket_size < 4:
        raise TopologyError("Double elimination needs a bracket size of at least 4")
    if player_count < 2:
        raise TopologyError(f"Need at least 2 players, got {player_count}")
    if player_count > bracket_size:
        raise TopologyError(
            f"{player_count} players do not fit into a bracket of size {bracket_size}"
        )

    total_rounds = bracket_size.bit_length() - 1
    if tournament_format is TournamentFormat.SINGLE_ELIMINATION:
        matches = _single_elimination(bracket_size, total_rounds)
    else:
        matches = _double_elimination(bracket_size, total_rounds)

    matches = _seed_first_round(matches, bracket_size, player_count)
    matches = _propagate_byes(matches)
    return BracketPlan(
        format=tournament_format,
        bracket_size=bracket_size,
        total_rounds=total_rounds,
        matches=tuple(matches),
    )


def _feed_slot(index: int) -> tuple[int, int]:
    """Target match number and slot for the ``index``-th (1-based) feeder of a merge round."""
    return (index + 1) // 2, 1 if index % 2 == 1 else 2


def _single_elimination(bracket_size: int, total_rounds: int) -> list[MatchSpec]:
    matches: list[MatchSpec] = []
    for round_number in range(1, total_rounds + 1):
        for match_number in range(1, bracket_size // 2**round_number + 1):
            winner_next = None
            winner_slot = None
            if round_number < total_rounds:
                next_number, winner_slot = _feed_slot(match_number)
                winner_next = (round_number + 1, next_number)
            matches.append(
                MatchSpec(
                    round=round_number,
                    match_number=match_number,
                    winner_next=winner_next,
                    winner_next_slot=winner_slot,
                )
            )
    return matches


def _losers_round_size(bracket_size: int, losers_round: int) -> int:
    # rounds 2j-1 and 2j both hold bracket_size / 2**(j+1) matches
    j = (losers_round + 1) // 2
    return bracket_size // 2 ** (j + 1)


def _double_elimination(bracket_size: int, total_rounds: int) -> list[MatchSpec]:
    losers_rounds = 2 * (total_rounds - 1)
    grand_final = (total_rounds + 1, 1)
    matches: list[MatchSpec] = []

    for round_number in range(1, total_rounds + 1):
        round_size = bracket_size // 2**round_number
        for match_number in range(1, round_size + 1):
            if round_number < total_rounds:
                next_number, winner_slot = _feed_slot(match_number)
                winner_next: MatchKey = (round_number + 1, next_number)
            else:
                winner_next, winner_slot = grand_final, 1

            if round_number == 1:
                loser_number, loser_slot = _feed_slot(match_number)
                loser_next: MatchKey = (-1, loser_number)
            else:
                # winners-bracket losers drop in reversed order to avoid early rematches
                target_round = 2 * (round_number - 1)
                target_size = _losers_round_size(bracket_size, target_round)
                loser_next = (-target_round, target_size - match_number + 1)
                loser_slot = 2
            matches.append(
                MatchSpec(
                    round=round_number,
                    match_number=match_number,
                    winner_next=winner_next,
                    winner_next_slot=winner_slot,
                    loser_next=loser_next,
                    loser_next_slot=loser_slot,
                )
            )

    for losers_round in range(1, losers_rounds + 1):
        for match_number in range(1, _losers_round_size(bracket_size, losers_round) + 1):
            if losers_round == losers_rounds:
                winner_next, winner_slot = grand_final, 2
            elif losers_round % 2 == 1:
                # odd rounds feed slot 1 of the same position in the drop-in round
                winner_next, winner_slot = (-(losers_round + 1), match_number), 1
            else:
                next_number, winner_slot = _feed_slot(match_number)
                winner_next = (-(losers_round + 1), next_number)
            matches.append(
                MatchSpec(
                    round=-losers_round,
                    match_number=match_number,
                    winner_next=winner_next,
                    winner_next_slot=winner_slot,
                )
            )

    matches.append(MatchSpec(round=grand_final[0], match_number=grand_final[1]))
    return matches


def _seed_first_round(
    matches: list[MatchSpec],
    bracket_size: int,
    player_count: int,
) -> list[MatchSpec]:
    order = seed_order(bracket_size)
    seeded: list[MatchSpec] = []
    for match in matches:
        if match.round != 1:
            seeded.append(match)
            continue
        seed1 = order[2 * (match.match_number - 1)]
        seed2 = order[2 * (match.match_number - 1) + 1]
        seeded.append(
            replace(
                match,
                player1_seed=seed1 if seed1 <= player_count else None,
                player2_seed=seed2 if seed2 <= player_count else None,
                player1_bye=seed1 > player_count,
                player2_bye=seed2 > player_count,
            )
        )
    return seeded


def _processing_order(match: MatchSpec) -> tuple[int, int, int]:
    # winners bracket first, then losers rounds ascending, grand final last
    if match.round > 0:
        return (0, match.round, match.match_number)
    return (1, -match.round, match.match_number)


def _propagate_byes(matches: list[MatchSpec]) -> list[MatchSpec]:
    """Mark every slot that can never be filled because its feeder is a bye.

    A match with one bye is a walkover: its winner output is live but it has
    no loser. A match with two byes produces neither.
    """
    by_key = {match.key: match for match in matches}
    finals = [match for match in matches if match.winner_next is None]
    ordered = sorted((match for match in matches if match.winner_next is not None), key=_processing_order)

    for original in ordered:
        match = by_key[original.key]
        byes = int(match.player1_bye) + int(match.player2_bye)
        if byes == 2 and match.winner_next is not None:
            by_key[match.winner_next] = _mark_bye(by_key[match.winner_next], match.winner_next_slot)
        if byes >= 1 and match.loser_next is not None:
            by_key[match.loser_next] = _mark_bye(by_key[match.loser_next], match.loser_next_slot)

    for final in finals:
        if by_key[final.key].is_void:
            raise TopologyError("Bracket has no live path to the final match")
    return [by_key[match.key] for match in matches]


def _mark_bye(match: MatchSpec, slot: int | None) -> MatchSpec:
    if slot == 1:
        return replace(match, player1_bye=True)
    if slot == 2:
        return replace(match, player2_bye=True)
    raise TopologyError(f"Invalid slot {slot!r} for match {match.key}")


def walk_winner_path(plan: BracketPlan, start: MatchKey) -> list[MatchKey]:
    """Follow ``winner_next`` pointers from ``start``; raises on a cycle."""
    by_key = plan.by_key()
    path: list[MatchKey] = []
    seen: set[MatchKey] = set()
    current: MatchKey | None = start
    while current is not None:
        if current in seen:
            raise TopologyError(f"Cycle detected at match {current}")
        seen.add(current)
        path.append(current)
        current = by_key[current].winner_next
    return path


def elimination_stage(tournament_format: TournamentFormat, total_rounds: int, round_number: int) -> int:
    """Order in which eliminations happen; a later stage means a better finish."""
    if tournament_format is TournamentFormat.SINGLE_ELIMINATION:
        return round_number
    if round_number < 0:
        return -round_number
    if round_number == total_rounds + 1:
        return 2 * (total_rounds - 1) + 1
    return 0


def final_placements(
    champion_id: int,
    eliminated_stage: Mapping[int, int],
) -> dict[int, int]:
    """Placement tiers: everyone eliminated at the same stage shares a placement.

    ``eliminated_stage`` maps player id to its elimination stage. A player's
    placement is one plus the number of players who lasted strictly longer.
    """
    placements = {champion_id: 1}
    for player_id, stage in eliminated_stage.items():
        if player_id == champion_id:
            continue
        outlasted_by = 1 + sum(
            1
            for other_id, other_stage in eliminated_stage.items()
            if other_id != champion_id and other_stage > stage
        )
        placements[player_id] = 1 + outlasted_by
    return placements


def round_name(tournament_format: TournamentFormat, total_rounds: int, round_number: int) -> str:
    if tournament_format is TournamentFormat.DOUBLE_ELIMINATION:
        if round_number > total_rounds:
            return "Grand Final"
        if round_number < 0:
            return f"Losers Round {-round_number}"
    rounds_from_end = total_rounds - round_number
    if rounds_from_end == 0:
        return "Final"
    if rounds_from_end == 1:
        return "Semi-Finals"
    if rounds_from_end == 2:
        return "Quarter-Finals"
    return f"Round {round_number}"


__all__ = [
    "BracketPlan",
    "MatchKey",
    "MatchSpec",
    "TournamentFormat",
    "build_bracket",
    "elimination_stage",
    "final_placements",
    "is_power_of_two",
    "round_name",
    "seed_order",
    "walk_winner_path",
]
