"""Vocabulary entries and the sources that supply them."""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from karotte.errors import LoadError


class Position(IntEnum):
    NONE = 0
    MASCULINE = 1
    NEUTER = 2
    FEMININE = 3


GENDERED = (Position.MASCULINE, Position.NEUTER, Position.FEMININE)
LETTERS = {Position.MASCULINE: 'M', Position.NEUTER: 'N', Position.FEMININE: 'F'}
CSV_COLUMNS = ('word', 'frequency', 'pos_m', 'pos_n', 'pos_f')


def parse_position(value) -> Position:
    """Accept 0-3 or one of 'M'/'N'/'F'/'none'; raise ValueError otherwise."""
    if isinstance(value, str):
        key = value.strip().upper()
        for pos, letter in LETTERS.items():
            if key == letter:
                return pos
        if key in ('NONE', '0'):
            return Position.NONE
        if key.isdigit():
            value = int(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f'invalid position: {value!r}')
    return Position(value)


@dataclass(frozen=True)
class WordEntry:
    word: str
    frequency: int
    genders: FrozenSet[Position] = frozenset()

    def __post_init__(self):
        if not isinstance(self.word, str) or not self.word.strip():
            raise LoadError(f'word entry has no text: {self.word!r}')
        if isinstance(self.frequency, bool) or not isinstance(self.frequency, int) or self.frequency < 1:
            raise LoadError(f'word {self.word!r} has invalid frequency rank {self.frequency!r}')
        if not set(self.genders) <= set(GENDERED):
            raise LoadError(f'word {self.word!r} has invalid gender flags {sorted(self.genders)!r}')
        object.__setattr__(self, 'genders', frozenset(self.genders))

    @classmethod
    def from_flags(cls, word, frequency, pos_m=0, pos_n=0, pos_f=0) -> 'WordEntry':
        flags = {Position.MASCULINE: pos_m, Position.NEUTER: pos_n, Position.FEMININE: pos_f}
        genders = set()
        for pos, flag in flags.items():
            if flag not in (0, 1, True, False):
                raise LoadError(f'word {word!r} has non-binary flag {LETTERS[pos]}={flag!r}')
            if flag:
                genders.add(pos)
        return cls(word=word, frequency=frequency, genders=frozenset(genders))


def correct_positions(entry: WordEntry) -> Tuple[Position, ...]:
    """Ordered correct answers; a word with no gender answers to NONE."""
    found = tuple(pos for pos in GENDERED if pos in entry.genders)
    return found or (Position.NONE,)


def verdict_map(entry: WordEntry) -> Dict[Position, bool]:
    correct = set(correct_positions(entry))
    return {pos: pos in correct for pos in Position}


class WordSource:
    """Loads the ordered word list once and caches it.

    Subclasses implement ``_load``. A failed load raises LoadError and leaves
    the cache empty so the next ``load_words`` call retries.
    """

    def __init__(self):
        self._cache: Optional[List[WordEntry]] = None

    def load_words(self) -> List[WordEntry]:
        if self._cache is None:
            words = list(self._load())
            if not words:
                raise LoadError('word list is empty')
            self._cache = words
        return list(self._cache)

    def invalidate(self) -> None:
        self._cache = None

    def _load(self) -> Iterable[WordEntry]:
        raise NotImplementedError


class StaticWordSource(WordSource):
    def __init__(self, words: Iterable[WordEntry]):
        super().__init__()
        self._words = list(words)

    def _load(self):
        return self._words


class DatabaseWordSource(WordSource):
    """Reads the ``word`` table ordered by frequency rank."""

    def _load(self):
        from sqlalchemy.exc import SQLAlchemyError
        from karotte.models import Word

        try:
            rows = Word.query.order_by(Word.frequency, Word.id).all()
        except SQLAlchemyError as exc:
            raise LoadError(f'word table unavailable: {exc}') from exc
        return [row.to_entry() for row in rows]


def read_words_csv(path: str) -> List[WordEntry]:
    """Parse a CSV with columns word,frequency,pos_m,pos_n,pos_f."""
    import pandas as pd

    try:
        df = pd.read_csv(path, encoding='utf-8')
    except (OSError, ValueError) as exc:
        raise LoadError(f'cannot read {path}: {exc}') from exc

    missing = [c for c in CSV_COLUMNS if c not in df.columns]
    if missing:
        raise LoadError(f'{path}: missing columns {", ".join(missing)}')

    df = df[list(CSV_COLUMNS)]
    if df.isnull().values.any():
        raise LoadError(f'{path}: empty cells are not allowed')

    duplicated = df['word'][df['word'].duplicated()].tolist()
    if duplicated:
        raise LoadError(f'{path}: duplicate words {", ".join(map(str, duplicated[:5]))}')

    entries = []
    for line, row in enumerate(df.to_dict('records'), start=2):
        try:
            entries.append(WordEntry.from_flags(
                str(row['word']).strip(),
                int(row['frequency']),
                int(row['pos_m']),
                int(row['pos_n']),
                int(row['pos_f']),
            ))
        except (TypeError, ValueError) as exc:
            raise LoadError(f'{path}:{line}: {exc}') from exc
        except LoadError as exc:
            raise LoadError(f'{path}:{line}: {exc}') from exc
    return entries
