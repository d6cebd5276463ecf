"""Turn validation and the fold from turns to per-game participant counters."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from domain.errors import ValidationError
from domain.stats import ParticipantCounters

MIN_DARTS_PER_TURN = 1
MAX_DARTS_PER_TURN = 3
MAX_DART_SCORE = 60
MAX_TURN_TOTAL = 180
HIGH_SCORE_THRESHOLD = 140
WIN_CONDITIONS = ("exact", "below")
SCORING_MODES = ("per-dart", "per-turn")


class TurnRecord(Protocol):
    """Fields shared by ``TurnInput`` and the ``turns`` ORM row."""

    dart_scores: Sequence[int]
    turn_total: int
    score_before: int
    is_busted: bool
    is_checkout_attempt: bool
    is_successful_checkout: bool


@dataclass(frozen=True)
class TurnInput:
    """A finalized turn as handed over by the gameplay engine."""

    turn_number: int
    round_number: int
    dart_scores: tuple[int, ...]
    turn_total: int
    score_before: int
    score_after: int
    is_busted: bool = False
    is_checkout_attempt: bool = False
    is_successful_checkout: bool = False


def validate_turn(turn: TurnInput, *, win_condition: str = "exact") -> None:
    """Reject a turn whose dart-level arithmetic is inconsistent."""
    if turn.turn_number < 1:
        raise ValidationError(f"turn_number must be >= 1, got {turn.turn_number}")
    if turn.round_number < 0:
        raise ValidationError(f"round_number must be >= 0, got {turn.round_number}")

    dart_count = len(turn.dart_scores)
    if dart_count < MIN_DARTS_PER_TURN or dart_count > MAX_DARTS_PER_TURN:
        raise ValidationError(
            f"A turn must have {MIN_DARTS_PER_TURN}-{MAX_DARTS_PER_TURN} darts, got {dart_count}"
        )
    for dart in turn.dart_scores:
        if isinstance(dart, bool) or not isinstance(dart, int):
            raise ValidationError(f"Dart score must be an integer, got {dart!r}")
        if dart < 0 or dart > MAX_DART_SCORE:
            raise ValidationError(f"Dart score must be between 0 and {MAX_DART_SCORE}, got {dart}")

    darts_sum = sum(turn.dart_scores)
    if turn.turn_total != darts_sum:
        raise ValidationError(
            f"Turn total ({turn.turn_total}) does not match sum of dart scores ({darts_sum})"
        )
    if turn.score_before < 0:
        raise ValidationError(f"score_before must be >= 0, got {turn.score_before}")

    if not turn.is_busted and turn.score_after != turn.score_before - turn.turn_total:
        raise ValidationError(
            "Score calculation mismatch: "
            f"{turn.score_before} - {turn.turn_total} != {turn.score_after}"
        )

    if turn.is_successful_checkout:
        if turn.is_busted:
            raise ValidationError("A busted turn cannot be a successful checkout")
        if not turn.is_checkout_attempt:
            raise ValidationError("A successful checkout must also be a checkout attempt")
        finished = turn.score_after == 0 if win_condition == "exact" else turn.score_after <= 0
        if not finished:
            raise ValidationError(
                f"Successful checkout must finish the leg, score_after={turn.score_after}"
            )


def summarize_turns(
    turns: Iterable[TurnRecord],
    *,
    scoring_mode: str,
) -> ParticipantCounters:
    """Fold one participant's turns into its per-game counters.

    Every turn counts toward ``total_turns``. A busted turn contributes
    nothing else except its checkout-attempt flag. In ``per-turn`` scoring
    mode only the turn total is entered: every turn, busted or not, counts as
    three darts and ``max_dart`` stays 0.
    """
    if scoring_mode not in SCORING_MODES:
        raise ValueError(f"Unknown scoring_mode: {scoring_mode!r}")
    per_turn = scoring_mode == "per-turn"

    total_turns = 0
    total_darts = 0
    total_score = 0
    max_dart = 0
    max_turn = 0
    count_180s = 0
    count_140_plus = 0
    checkout_attempts = 0
    checkout_successes = 0
    best_checkout = 0

    for turn in turns:
        total_turns += 1
        if per_turn:
            total_darts += MAX_DARTS_PER_TURN
        if turn.is_checkout_attempt:
            checkout_attempts += 1
        if turn.is_successful_checkout:
            checkout_successes += 1
            best_checkout = max(best_checkout, turn.score_before)
        if turn.is_busted:
            continue

        darts = list(turn.dart_scores)
        if not per_turn:
            total_darts += len(darts)
        total_score += turn.turn_total
        max_turn = max(max_turn, turn.turn_total)
        if darts and not per_turn:
            max_dart = max(max_dart, max(darts))
        if turn.turn_total == MAX_TURN_TOTAL:
            count_180s += 1
        elif turn.turn_total >= HIGH_SCORE_THRESHOLD:
            count_140_plus += 1

    return ParticipantCounters(
        total_turns=total_turns,
        total_darts=total_darts,
        total_score=total_score,
        max_dart=max_dart,
        max_turn=max_turn,
        count_180s=count_180s,
        count_140_plus=count_140_plus,
        checkout_attempts=checkout_attempts,
        checkout_successes=checkout_successes,
        best_checkout=best_checkout,
    )


def dense_finish_ranks(finish_rounds: Mapping[int, int | None]) -> dict[int, int]:
    """Dense-rank participants by finish round; unfinished participants rank last.

    Participants finishing in the same round share a rank.
    """
    finished = sorted({value for value in finish_rounds.values() if value is not None})
    rank_by_round = {finish_round: index for index, finish_round in enumerate(finished, start=1)}
    unfinished_rank = len(finished) + 1
    return {
        participant_id: rank_by_round[finish_round] if finish_round is not None else unfinished_rank
        for participant_id, finish_round in finish_rounds.items()
    }


__all__ = [
    "HIGH_SCORE_THRESHOLD",
    "MAX_DARTS_PER_TURN",
    "MAX_DART_SCORE",
    "MAX_TURN_TOTAL",
    "SCORING_MODES",
    "TurnInput",
    "TurnRecord",
    "WIN_CONDITIONS",
    "dense_finish_ranks",
    "summarize_turns",
    "validate_turn",
]
