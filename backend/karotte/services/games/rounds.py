"""Per-round results.

A round is either answered or unanswered, never both; the two shapes are
separate classes so that "was this answered" is an ``isinstance`` check
rather than a test for a missing field.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple, Union

from .words import GENDERED, Position, WordEntry, verdict_map


RESULT_CORRECT = 'correct'
RESULT_WRONG = 'wrong'
RESULT_UNANSWERED = 'unanswered'


@dataclass(frozen=True)
class UnansweredRound:
    round: int
    word: str
    frequency: int
    verdicts: Dict[Position, bool]


@dataclass(frozen=True)
class AnsweredRound:
    round: int
    word: str
    frequency: int
    verdicts: Dict[Position, bool]
    selected_pos: Position
    score_delta: int
    duration_ms: int


RoundResult = Union[AnsweredRound, UnansweredRound]


def unanswered(round_number: int, entry: WordEntry) -> UnansweredRound:
    return UnansweredRound(round_number, entry.word, entry.frequency, verdict_map(entry))


def answered(round_number: int, entry: WordEntry, selected_pos: Position,
             score_delta: int, duration_ms: int) -> AnsweredRound:
    return AnsweredRound(
        round_number,
        entry.word,
        entry.frequency,
        verdict_map(entry),
        Position(selected_pos),
        int(score_delta),
        max(0, int(duration_ms)),
    )


def correct_positions(result: RoundResult) -> Tuple[Position, ...]:
    found = tuple(pos for pos in GENDERED if result.verdicts.get(pos))
    return found or (Position.NONE,)


def is_correct(result: RoundResult) -> bool:
    return isinstance(result, AnsweredRound) and result.selected_pos in correct_positions(result)


def result_state(result: RoundResult) -> str:
    if not isinstance(result, AnsweredRound):
        return RESULT_UNANSWERED
    return RESULT_CORRECT if is_correct(result) else RESULT_WRONG


@dataclass(frozen=True)
class SessionStats:
    answered_count: int
    correct_count: int
    rounds_count: int
    accuracy: Optional[float]
    average_duration_ms: float

    def to_dict(self):
        return {
            'answered_count': self.answered_count,
            'correct_count': self.correct_count,
            'rounds_count': self.rounds_count,
            'accuracy': self.accuracy,
            'average_duration_ms': self.average_duration_ms,
        }


def session_stats(rounds: Iterable[RoundResult]) -> SessionStats:
    rounds = list(rounds)
    answered_rounds = [r for r in rounds if isinstance(r, AnsweredRound)]
    answered_count = len(answered_rounds)
    correct_count = sum(1 for r in answered_rounds if is_correct(r))
    accuracy = correct_count / answered_count if answered_count else None
    average = (
        sum(r.duration_ms for r in answered_rounds) / answered_count
        if answered_count else 0
    )
    return SessionStats(answered_count, correct_count, len(rounds), accuracy, average)
