import pytest

from karotte.errors import LoadError
from karotte.services.games.words import (
    DatabaseWordSource,
    Position,
    StaticWordSource,
    WordEntry,
    WordSource,
    correct_positions,
    parse_position,
    read_words_csv,
)
from conftest import M, N, F, word


@pytest.mark.parametrize('raw, expected', [
    (0, Position.NONE),
    (3, Position.FEMININE),
    ('m', Position.MASCULINE),
    (' F ', Position.FEMININE),
    ('none', Position.NONE),
    ('2', Position.NEUTER),
    (Position.NEUTER, Position.NEUTER),
])
def test_parse_position(raw, expected):
    assert parse_position(raw) == expected


@pytest.mark.parametrize('raw', ['X', 4, -1, True, None, 1.0, ''])
def test_parse_position_rejects_garbage(raw):
    with pytest.raises(ValueError):
        parse_position(raw)


@pytest.mark.parametrize('kwargs', [
    {'word': '', 'frequency': 10},
    {'word': '   ', 'frequency': 10},
    {'word': 'Tisch', 'frequency': 0},
    {'word': 'Tisch', 'frequency': '10'},
    {'word': 'Tisch', 'frequency': 10, 'genders': {Position.NONE}},
])
def test_invalid_word_entries(kwargs):
    with pytest.raises(LoadError):
        WordEntry(**kwargs)


def test_from_flags():
    entry = WordEntry.from_flags('Joghurt', 4000, 1, 1, 0)
    assert entry.genders == frozenset({M, N})
    with pytest.raises(LoadError):
        WordEntry.from_flags('Joghurt', 4000, 2, 0, 0)


def test_correct_positions_are_ordered_and_default_to_none():
    assert correct_positions(word('See', 900, F, M)) == (M, F)
    assert correct_positions(word('Eltern', 800)) == (Position.NONE,)


class FlakySource(WordSource):
    def __init__(self, failures):
        super().__init__()
        self.failures = failures
        self.calls = 0

    def _load(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise LoadError('word table unavailable')
        return [word('Tisch', 500, M)]


def test_source_caches_after_success():
    source = FlakySource(failures=0)
    first = source.load_words()
    first.clear()
    assert len(source.load_words()) == 1
    assert source.calls == 1
    source.invalidate()
    source.load_words()
    assert source.calls == 2


def test_failed_load_is_retried():
    source = FlakySource(failures=1)
    with pytest.raises(LoadError):
        source.load_words()
    assert source.load_words()[0].word == 'Tisch'
    assert source.calls == 2


def test_empty_word_list_is_a_load_error():
    with pytest.raises(LoadError):
        StaticWordSource([]).load_words()


def test_database_source_orders_by_frequency(seeded_app):
    words = DatabaseWordSource().load_words()
    assert [w.word for w in words] == ['Wasser', 'Haus', 'Tisch', 'Katze', 'Joghurt']
    assert words[-1].genders == frozenset({M, N})


def test_database_source_without_rows(flask_app):
    with pytest.raises(LoadError):
        DatabaseWordSource().load_words()


def write_csv(tmp_path, text):
    path = tmp_path / 'words.csv'
    path.write_text(text, encoding='utf-8')
    return str(path)


def test_read_words_csv(tmp_path):
    path = write_csv(tmp_path, (
        'word,frequency,pos_m,pos_n,pos_f,notes\n'
        'Tisch,500,1,0,0,\n'
        'Joghurt,4000,1,1,0,both\n'
        'Eltern,800,0,0,0,plural\n'
    ))
    entries = read_words_csv(path)
    assert [e.word for e in entries] == ['Tisch', 'Joghurt', 'Eltern']
    assert entries[1].genders == frozenset({M, N})
    assert correct_positions(entries[2]) == (Position.NONE,)


@pytest.mark.parametrize('text, message', [
    ('word,frequency,pos_m,pos_n\nTisch,500,1,0\n', 'missing columns pos_f'),
    ('word,frequency,pos_m,pos_n,pos_f\nTisch,,1,0,0\n', 'empty cells'),
    ('word,frequency,pos_m,pos_n,pos_f\nTisch,500,1,0,0\nTisch,600,1,0,0\n', 'duplicate words Tisch'),
    ('word,frequency,pos_m,pos_n,pos_f\nTisch,500,1,0,0\nHaus,300,0,2,0\n', ':3:'),
    ('word,frequency,pos_m,pos_n,pos_f\nTisch,0,1,0,0\n', ':2:'),
    ('word,frequency,pos_m,pos_n,pos_f\nTisch,many,1,0,0\n', ':2:'),
])
def test_read_words_csv_rejects_bad_rows(tmp_path, text, message):
    path = write_csv(tmp_path, text)
    with pytest.raises(LoadError) as excinfo:
        read_words_csv(path)
    assert message in str(excinfo.value)


def test_read_words_csv_missing_file(tmp_path):
    with pytest.raises(LoadError):
        read_words_csv(str(tmp_path / 'nope.csv'))
