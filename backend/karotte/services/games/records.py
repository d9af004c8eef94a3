"""Finished-session history records and their on-disk shapes.

Three payload shapes have been stored over time:

schema 1
    flat rounds (``resultState`` + ``correctPosList``), record stamped with a
    millisecond ``timestamp`` and ``finalScore``.
schema 2
    the same flat rounds, record keyed by ``startedAt``/``endedAt``.
schema 3 (current)
    nested rounds carrying a ``verdictMap``; ``selectedPos``, ``carrot`` and
    ``duration`` exist only on answered rounds.

``to_payload`` only ever writes schema 3. ``load_record`` reads all three
into a ``HistoryRecord``.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from karotte.errors import RecordFormatError
from .rounds import (
    AnsweredRound,
    RoundResult,
    SessionStats,
    UnansweredRound,
    correct_positions,
    result_state,
    session_stats,
)
from .words import GENDERED, LETTERS, Position, parse_position

SCHEMA_FLAT_TIMESTAMP = 1
SCHEMA_FLAT_ENDED_AT = 2
SCHEMA_NESTED = 3
HISTORY_SCHEMA = SCHEMA_NESTED

MODES = ('timed', 'survival')
BEST_KEYS = {'timed': 'historicalBestCarrot', 'survival': 'historicalBestAnswered'}
# Older writers stored the survival best under this key.
LEGACY_BEST_KEYS = {'survival': 'historicalBestCorrect'}


@dataclass(frozen=True)
class HistoryRecord:
    mode: str
    score: int
    correct_count: int
    started_at: datetime
    ended_at: datetime
    rounds: Tuple[RoundResult, ...]
    best_before: int = 0
    schema: int = HISTORY_SCHEMA
    id: Optional[int] = None


@dataclass(frozen=True)
class SummaryRow:
    round: int
    word: str
    frequency: int
    selected_pos: Optional[Position]
    correct_pos_list: Tuple[Position, ...]
    result_state: str
    duration_ms: int
    gained_score: int

    def to_dict(self):
        return {
            'round': self.round,
            'word': self.word,
            'frequency': self.frequency,
            'selected_pos': int(self.selected_pos) if self.selected_pos is not None else None,
            'correct_pos_list': [int(p) for p in self.correct_pos_list],
            'result_state': self.result_state,
            'duration_ms': self.duration_ms,
            'gained_score': self.gained_score,
        }


def summary_rows(record: HistoryRecord) -> List[SummaryRow]:
    return round_rows(record.rounds)


def round_rows(rounds: Iterable[RoundResult]) -> List[SummaryRow]:
    rows = []
    for r in rounds:
        is_answered = isinstance(r, AnsweredRound)
        rows.append(SummaryRow(
            round=r.round,
            word=r.word,
            frequency=r.frequency,
            selected_pos=r.selected_pos if is_answered else None,
            correct_pos_list=correct_positions(r),
            result_state=result_state(r),
            duration_ms=r.duration_ms if is_answered else 0,
            gained_score=r.score_delta if is_answered else 0,
        ))
    return rows


def record_stats(record: HistoryRecord) -> SessionStats:
    """Round-derived stats, with the correct count the record itself stores."""
    stats = session_stats(record.rounds)
    answered_count = stats.answered_count
    return replace(
        stats,
        correct_count=record.correct_count,
        accuracy=record.correct_count / answered_count if answered_count else None,
    )


# --- writing ---------------------------------------------------------------

def _iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def round_to_payload(result: RoundResult) -> Dict[str, Any]:
    payload = {
        'word': result.word,
        'frequency': result.frequency,
        'verdictMap': {str(int(pos)): bool(result.verdicts.get(pos, False)) for pos in Position},
    }
    if isinstance(result, AnsweredRound):
        payload['selectedPos'] = int(result.selected_pos)
        payload['carrot'] = result.score_delta
        payload['duration'] = result.duration_ms
    return payload


def to_payload(record: HistoryRecord) -> Dict[str, Any]:
    if record.mode not in MODES:
        raise RecordFormatError(f'unknown mode {record.mode!r}')
    return {
        'schema': HISTORY_SCHEMA,
        'mode': record.mode,
        'carrot': record.score,
        'correct': record.correct_count,
        'startedAt': _iso(record.started_at),
        'endedAt': _iso(record.ended_at),
        'rounds': [round_to_payload(r) for r in record.rounds],
        BEST_KEYS[record.mode]: record.best_before,
    }


# --- reading ---------------------------------------------------------------

def _parse_time(value, field_name: str) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError as exc:
            raise RecordFormatError(f'{field_name}: bad timestamp {value!r}') from exc
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    raise RecordFormatError(f'{field_name}: bad timestamp {value!r}')


def _int(raw: Dict[str, Any], *keys: str, default: Optional[int] = None) -> int:
    for key in keys:
        value = raw.get(key)
        if value is None:
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise RecordFormatError(f'{key}: expected a number, got {value!r}')
        if isinstance(value, float) and not value.is_integer():
            raise RecordFormatError(f'{key}: expected a whole number, got {value!r}')
        return int(value)
    if default is None:
        raise RecordFormatError(f'missing field {keys[0]!r}')
    return default


def _verdicts(raw: Dict[str, Any]) -> Dict[Position, bool]:
    verdict_map = raw.get('verdictMap')
    legacy_list = raw.get('correctPosList')
    if not isinstance(verdict_map, dict) and not isinstance(legacy_list, list):
        raise RecordFormatError(f'round {raw.get("word")!r} has no verdictMap or correctPosList')

    correct = set()
    if isinstance(verdict_map, dict):
        for pos in GENDERED:
            if verdict_map.get(str(int(pos))) is True or verdict_map.get(LETTERS[pos]) is True:
                correct.add(pos)
    if isinstance(legacy_list, list):
        for value in legacy_list:
            try:
                pos = parse_position(value)
            except ValueError as exc:
                raise RecordFormatError(f'bad correctPosList entry {value!r}') from exc
            if pos != Position.NONE:
                correct.add(pos)

    verdicts = {pos: pos in correct for pos in GENDERED}
    verdicts[Position.NONE] = not correct
    return verdicts


def load_round(raw: Any, index: int) -> RoundResult:
    """Normalize one round of any shape; ``index`` is its 0-based position."""
    if not isinstance(raw, dict):
        raise RecordFormatError(f'round {index + 1} is not an object')
    word = raw.get('word')
    if not isinstance(word, str):
        raise RecordFormatError(f'round {index + 1} has no word')
    number = _int(raw, 'round', default=index + 1)
    frequency = _int(raw, 'frequency')
    verdicts = _verdicts(raw)

    selected = raw.get('selectedPos')
    if selected is None or raw.get('resultState') == 'unanswered':
        return UnansweredRound(number, word, frequency, verdicts)
    try:
        selected_pos = parse_position(selected)
    except ValueError as exc:
        raise RecordFormatError(f'round {number}: bad selectedPos {selected!r}') from exc
    return AnsweredRound(
        number,
        word,
        frequency,
        verdicts,
        selected_pos,
        _int(raw, 'carrot', 'gainedScore', default=0),
        max(0, _int(raw, 'duration', 'durationMs', default=0)),
    )


def _load_rounds(payload: Dict[str, Any]) -> Tuple[RoundResult, ...]:
    rounds = payload.get('rounds')
    if not isinstance(rounds, list):
        raise RecordFormatError('record has no rounds list')
    return tuple(load_round(raw, i) for i, raw in enumerate(rounds))


def _mode(payload: Dict[str, Any]) -> str:
    mode = payload.get('mode')
    if mode not in MODES:
        raise RecordFormatError(f'unknown mode {mode!r}')
    return mode


def _correct_count(payload, rounds, *keys) -> int:
    return _int(payload, *keys, default=session_stats(rounds).correct_count)


def _read_flat_timestamp(payload, record_id):
    rounds = _load_rounds(payload)
    ended_at = _parse_time(payload.get('timestamp'), 'timestamp')
    return HistoryRecord(
        mode=_mode(payload),
        score=_int(payload, 'finalScore', 'carrot'),
        correct_count=_correct_count(payload, rounds, 'correctCount', 'correct'),
        started_at=ended_at,
        ended_at=ended_at,
        rounds=rounds,
        best_before=0,
        schema=SCHEMA_FLAT_TIMESTAMP,
        id=record_id,
    )


def _read_flat_ended_at(payload, record_id):
    rounds = _load_rounds(payload)
    ended_at = _parse_time(payload.get('endedAt'), 'endedAt')
    started_raw = payload.get('startedAt')
    return HistoryRecord(
        mode=_mode(payload),
        score=_int(payload, 'finalScore', 'carrot'),
        correct_count=_correct_count(payload, rounds, 'correctCount', 'correct'),
        started_at=_parse_time(started_raw, 'startedAt') if started_raw is not None else ended_at,
        ended_at=ended_at,
        rounds=rounds,
        best_before=0,
        schema=SCHEMA_FLAT_ENDED_AT,
        id=record_id,
    )


def _read_nested(payload, record_id):
    mode = _mode(payload)
    rounds = _load_rounds(payload)
    best_keys = [BEST_KEYS[mode]]
    if mode in LEGACY_BEST_KEYS:
        best_keys.append(LEGACY_BEST_KEYS[mode])
    return HistoryRecord(
        mode=mode,
        score=_int(payload, 'carrot', 'finalScore'),
        correct_count=_correct_count(payload, rounds, 'correct', 'correctCount'),
        started_at=_parse_time(payload.get('startedAt'), 'startedAt'),
        ended_at=_parse_time(payload.get('endedAt'), 'endedAt'),
        rounds=rounds,
        best_before=_int(payload, *best_keys, default=0),
        schema=SCHEMA_NESTED,
        id=record_id,
    )


_READERS = {
    SCHEMA_FLAT_TIMESTAMP: _read_flat_timestamp,
    SCHEMA_FLAT_ENDED_AT: _read_flat_ended_at,
    SCHEMA_NESTED: _read_nested,
}
# Field a payload must carry for its declared schema to be trusted.
_ANCHORS = {
    SCHEMA_FLAT_TIMESTAMP: 'timestamp',
    SCHEMA_FLAT_ENDED_AT: 'endedAt',
    SCHEMA_NESTED: 'endedAt',
}


def detect_schema(payload: Dict[str, Any]) -> int:
    """Trust the ``schema`` discriminator; sniff fields when it is absent or
    contradicted by the payload (early writers reused ``schema: 1``)."""
    declared = payload.get('schema')
    if declared in _READERS and _ANCHORS[declared] in payload:
        return declared
    if 'timestamp' in payload:
        return SCHEMA_FLAT_TIMESTAMP
    if 'endedAt' in payload:
        rounds = payload.get('rounds') or []
        nested = 'carrot' in payload or any(
            isinstance(r, dict) and 'verdictMap' in r for r in rounds
        )
        return SCHEMA_NESTED if nested else SCHEMA_FLAT_ENDED_AT
    raise RecordFormatError(f'unrecognized history payload (schema={declared!r})')


def load_record(payload: Any, record_id: Optional[int] = None) -> HistoryRecord:
    if not isinstance(payload, dict):
        raise RecordFormatError('history payload is not an object')
    return _READERS[detect_schema(payload)](payload, record_id)
