"""Single-player game session state machine.

``GameSession`` owns the shuffled word order, the cursor, the running score
and the round history. It reacts to one event at a time (mode selection,
round-ready, answer, advance, countdown tick) and freezes into a finished
state the first time any end condition holds:

- timed mode: the countdown reached zero
- survival mode: the score dropped below zero
- either mode: the cursor ran past the last word

Events arriving in a state that does not accept them are ignored and return
False; they are expected UI races, not errors.
"""

import logging
import random
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, Sequence

from karotte.errors import PersistenceError
from .countdown import RUNNING, Countdown
from .records import MODES, HistoryRecord, round_rows
from .rounds import RoundResult, SessionStats, answered, session_stats, unanswered
from .scoring import DEFAULT_PEAK_FREQUENCY, DEFAULT_PENALTY_BASE, prior_wrong_count, score_delta
from .telemetry import Telemetry, safe_track
from .words import WordEntry, correct_positions, parse_position

logger = logging.getLogger(__name__)

STATUS_IDLE = 'idle'
STATUS_RUNNING = 'running'
STATUS_FINISHED = 'finished'
TIMED_SECONDS = 60


def run_now(fn: Callable[[], None]) -> None:
    fn()


def _utc(ts: float) -> datetime:
    return datetime.fromtimestamp(ts, tz=timezone.utc)


@dataclass(frozen=True)
class FinishedGame:
    record: HistoryRecord
    stats: SessionStats
    best_before: int
    best_after: int
    is_new_record: bool

    def to_dict(self):
        return {
            'mode': self.record.mode,
            'score': self.record.score,
            'stats': self.stats.to_dict(),
            'best_before': self.best_before,
            'best_after': self.best_after,
            'is_new_record': self.is_new_record,
            'started_at': self.record.started_at.isoformat(),
            'ended_at': self.record.ended_at.isoformat(),
        }


class GameSession:
    def __init__(
        self,
        words: Sequence[WordEntry],
        *,
        best_records,
        history,
        telemetry: Optional[Telemetry] = None,
        clock: Callable[[], float] = time.time,
        rng=None,
        dispatch: Callable[[Callable[[], None]], None] = run_now,
        timed_seconds: float = TIMED_SECONDS,
        penalty_base: float = DEFAULT_PENALTY_BASE,
        peak_frequency: int = DEFAULT_PEAK_FREQUENCY,
    ):
        self._source_words = list(words)
        self._best_records = best_records
        self._history = history
        self._telemetry = telemetry
        self._clock = clock
        self._rng = rng or random.Random()
        self._dispatch = dispatch
        self._penalty_base = penalty_base
        self._peak_frequency = peak_frequency
        self._countdown = Countdown(timed_seconds, clock, on_complete=self._on_time_up)
        # Bumped on every start/leave so stale timers and saves can tell
        # they belong to an abandoned run.
        self.generation = 0
        self.saved_record_id: Optional[int] = None
        self._reset(None)

    # --- projections -------------------------------------------------------

    @property
    def mode(self) -> Optional[str]:
        return self._mode

    @property
    def status(self) -> str:
        if self._mode is None:
            return STATUS_IDLE
        return STATUS_FINISHED if self._finalized else STATUS_RUNNING

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def word_count(self) -> int:
        return len(self._words)

    @property
    def current_word(self) -> Optional[WordEntry]:
        if 0 <= self._index < len(self._words):
            return self._words[self._index]
        return None

    @property
    def score(self) -> int:
        return self._score

    @property
    def selected_pos(self):
        return self._selected_pos

    @property
    def rounds(self) -> List[RoundResult]:
        return list(self._rounds)

    @property
    def countdown(self) -> Countdown:
        return self._countdown

    @property
    def countdown_running(self) -> bool:
        return self._countdown.state == RUNNING

    @property
    def remaining_seconds(self) -> Optional[int]:
        if self._mode != 'timed':
            return None
        return self._countdown.remaining_seconds

    @property
    def awaiting_round_ready(self) -> bool:
        return self._pending_ready

    def stats(self) -> SessionStats:
        return session_stats(self._rounds)

    def snapshot(self):
        stats = self.stats()
        current = None
        word = self.current_word
        if word is not None and not self._finalized:
            current = {'round': self._index + 1, 'word': word.word, 'frequency': word.frequency}
            if self._selected_pos is not None:
                current['selected_pos'] = int(self._selected_pos)
                current['correct_positions'] = [int(p) for p in correct_positions(word)]
        return {
            'status': self.status,
            'mode': self._mode,
            'current_index': self._index,
            'word_count': len(self._words),
            'current': current,
            'score': self._score,
            'answered_count': stats.answered_count,
            'correct_count': stats.correct_count,
            'remaining_seconds': self.remaining_seconds,
            'countdown_running': self.countdown_running,
            'awaiting_round_ready': self.awaiting_round_ready,
            'rounds': [row.to_dict() for row in round_rows(self._rounds)],
            'result': self.result.to_dict() if self.result else None,
        }

    # --- events ------------------------------------------------------------

    def start_game(self, mode: str) -> bool:
        """Begin a fresh run. Anything in flight is discarded."""
        if mode not in MODES:
            raise ValueError(f'unknown mode: {mode!r}')
        self.generation += 1
        self._reset(mode)
        words = list(self._source_words)
        self._rng.shuffle(words)
        self._words = words
        self._started_at = self._clock()
        # The countdown is armed here but only starts once the first round
        # is on screen (on_round_ready).
        self._pending_ready = mode == 'timed'
        if words:
            self._start_round()
        logger.info(f"[start] mode={mode} words={len(words)} generation={self.generation}")
        safe_track(self._telemetry, 'mode_selected', {'mode': mode})
        self._settle()
        return True

    def on_round_ready(self) -> bool:
        if self._mode != 'timed' or not self._pending_ready or self._finalized:
            return self._noop('ready')
        self._pending_ready = False
        self._round_started_at = self._clock()
        self._countdown.start()
        logger.info(f"[timer-start] generation={self.generation} duration={self._countdown.duration}s")
        return True

    def submit_answer(self, position) -> bool:
        pos = parse_position(position)
        self.tick()
        word = self.current_word
        if word is None or self._finalized:
            return self._noop('answer', 'no open round')
        if self._selected_pos is not None:
            return self._noop('answer', 'round already answered')

        duration_ms = max(0, int((self._clock() - self._round_started_at) * 1000))
        correct_set = correct_positions(word)
        correct = pos in correct_set
        wrong_before = prior_wrong_count(self._rounds)
        delta = score_delta(
            word.frequency, correct, self._mode, wrong_before,
            self._peak_frequency, self._penalty_base,
        )

        self._selected_pos = pos
        self._score += delta
        self._rounds.append(answered(self._index + 1, word, pos, delta, duration_ms))

        safe_track(self._telemetry, 'answer_selected', {
            'mode': self._mode,
            'round': self._index + 1,
            'word': word.word,
            'selected_pos': int(pos),
            'correct_pos_list': [int(p) for p in correct_set],
            'is_correct': correct,
            'duration_ms': duration_ms,
            'score_delta': delta,
            'score_after': self._score,
            'wrong_count_before': wrong_before,
        })

        if self._mode == 'survival' and self._score < 0:
            self._settle()
            return True
        # Multi-gender words keep the round open after a correct pick.
        if correct and len(correct_set) == 1:
            self._advance()
        self._settle()
        return True

    def advance_round(self) -> bool:
        self.tick()
        if self._mode is None or self._finalized:
            return self._noop('advance')
        self._advance()
        self._settle()
        return True

    def tick(self) -> bool:
        """Deliver a countdown expiry if the deadline has passed."""
        return self._countdown.tick()

    def back_to_mode_select(self) -> bool:
        self.generation += 1
        self._reset(None)
        logger.info(f"[leave] generation={self.generation}")
        return True

    # --- internals ---------------------------------------------------------

    def _reset(self, mode: Optional[str]) -> None:
        self._countdown.stop()
        self._mode = mode
        self._words: List[WordEntry] = []
        self._index = 0
        self._score = 0
        self._rounds: List[RoundResult] = []
        self._selected_pos = None
        self._time_up = False
        self._pending_ready = False
        self._finalized = False
        self._started_at = self._clock()
        self._round_started_at = self._started_at
        self.result: Optional[FinishedGame] = None
        self.saved_record_id = None

    def _noop(self, event: str, reason: str = 'not accepted') -> bool:
        logger.debug(f"[noop] event={event} status={self.status} reason={reason}")
        return False

    def _start_round(self) -> None:
        self._selected_pos = None
        self._round_started_at = self._clock()

    def _has_current_result(self) -> bool:
        return bool(self._rounds) and self._rounds[-1].round == self._index + 1

    def _close_open_round(self) -> None:
        word = self.current_word
        if word is not None and not self._has_current_result():
            self._rounds.append(unanswered(self._index + 1, word))

    def _advance(self) -> None:
        # A skipped word still gets its (unanswered) history entry.
        self._close_open_round()
        self._index += 1
        if self._index < len(self._words):
            self._start_round()

    def _on_time_up(self) -> None:
        self._time_up = True
        logger.info(f"[timer-fire] generation={self.generation} round={self._index + 1}")
        self._settle()

    def _should_finish(self) -> bool:
        if self._mode is None:
            return False
        return (
            self._time_up
            or (self._mode == 'survival' and self._score < 0)
            or self._index >= len(self._words)
        )

    def _settle(self) -> None:
        if not self._finalized and self._should_finish():
            self._finalize()

    def _finalize(self) -> None:
        self._finalized = True
        self._close_open_round()
        self._countdown.pause()

        stats = session_stats(self._rounds)
        value = self._score if self._mode == 'timed' else stats.answered_count
        best_before, best_after = self._update_best(value)
        record = HistoryRecord(
            mode=self._mode,
            score=self._score,
            correct_count=stats.correct_count,
            started_at=_utc(self._started_at),
            ended_at=_utc(self._clock()),
            rounds=tuple(self._rounds),
            best_before=best_before,
        )
        self.result = FinishedGame(record, stats, best_before, best_after, best_after > best_before)

        logger.info(
            f"[finish] mode={self._mode} generation={self.generation} score={self._score} "
            f"rounds={stats.rounds_count} answered={stats.answered_count} new_record={self.result.is_new_record}"
        )
        safe_track(self._telemetry, 'game_finished', {
            'mode': self._mode,
            'final_score': self._score,
            'answered_count': stats.answered_count,
            'correct_count': stats.correct_count,
            'rounds_count': stats.rounds_count,
            'accuracy': stats.accuracy,
            'average_duration_ms': stats.average_duration_ms,
            'best_before': best_before,
            'best_after': best_after,
            'is_new_record': self.result.is_new_record,
            'score_schema': record.schema,
        })

        generation = self.generation
        self._dispatch(lambda: self._persist(record, generation))

    def _update_best(self, value: int):
        before = 0
        try:
            before = self._best_records.read(self._mode)
            after = max(before, value)
            self._best_records.write(self._mode, after)
        except PersistenceError as exc:
            logger.error(f"[best-fail] mode={self._mode} error={exc}")
            return before, before
        return before, after

    def _persist(self, record: HistoryRecord, generation: int) -> None:
        try:
            record_id = self._history.save(record)
        except PersistenceError as exc:
            logger.error(f"[persist-fail] mode={record.mode} generation={generation} error={exc}")
            return
        logger.info(f"[persist] mode={record.mode} generation={generation} id={record_id}")
        if generation == self.generation:
            self.saved_record_id = record_id
