import math
from typing import Iterable

from .rounds import AnsweredRound, RoundResult, is_correct

DEFAULT_PEAK_FREQUENCY = 2000
DEFAULT_PENALTY_BASE = 1.15


def score_for_frequency(frequency: int, k: int = DEFAULT_PEAK_FREQUENCY) -> int:
    """Carrots awarded for a correct answer on a word of the given rank.

    ``20 * x * e^(1 - x)`` with ``x = frequency / k``: close to zero for the
    most common words, peaking at 20 when ``frequency == k`` and decaying for
    rare ones.
    """
    x = frequency / k
    return math.ceil(20 * x * math.exp(1 - x))


def wrong_penalty(score: int, prior_wrong_count: int, base: float = DEFAULT_PENALTY_BASE) -> int:
    """Survival deduction, growing geometrically with earlier wrong answers."""
    return math.ceil(score * base ** prior_wrong_count)


def prior_wrong_count(rounds: Iterable[RoundResult]) -> int:
    """Wrong answers so far; unanswered rounds do not count."""
    return sum(1 for r in rounds if isinstance(r, AnsweredRound) and not is_correct(r))


def score_delta(
    frequency: int,
    correct: bool,
    mode: str,
    wrong_before: int,
    k: int = DEFAULT_PEAK_FREQUENCY,
    base: float = DEFAULT_PENALTY_BASE,
) -> int:
    """Score change for one answer.

    Correct answers earn ``score_for_frequency``. Wrong answers cost the
    escalating penalty in survival mode and nothing in timed mode.
    """
    gained = score_for_frequency(frequency, k)
    if correct:
        return gained
    if mode == 'survival':
        return -wrong_penalty(gained, wrong_before, base)
    return 0
