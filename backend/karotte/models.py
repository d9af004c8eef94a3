from karotte import db
from karotte.services.games.words import WordEntry
import json


class Word(db.Model):
    __tablename__ = 'word'
    id = db.Column(db.Integer, primary_key=True)
    word = db.Column(db.String(128), unique=True, nullable=False, index=True)
    frequency = db.Column(db.Integer, nullable=False, index=True)  # rank, 1 = most frequent
    pos_m = db.Column(db.Boolean, default=False, nullable=False)
    pos_n = db.Column(db.Boolean, default=False, nullable=False)
    pos_f = db.Column(db.Boolean, default=False, nullable=False)

    @classmethod
    def from_entry(cls, entry: WordEntry) -> 'Word':
        genders = {int(p) for p in entry.genders}
        return cls(
            word=entry.word,
            frequency=entry.frequency,
            pos_m=1 in genders,
            pos_n=2 in genders,
            pos_f=3 in genders,
        )

    def to_entry(self) -> WordEntry:
        return WordEntry.from_flags(
            self.word,
            self.frequency,
            bool(self.pos_m),
            bool(self.pos_n),
            bool(self.pos_f),
        )


class GameRecord(db.Model):
    """One finished session. ``payload`` holds the JSON-encoded record; the
    columns beside it exist for ordering and filtering."""
    __tablename__ = 'game_history'
    id = db.Column(db.Integer, primary_key=True)
    schema = db.Column(db.Integer, nullable=False)
    mode = db.Column(db.String(16), nullable=False, index=True)
    started_at = db.Column(db.DateTime(timezone=True), nullable=True)
    ended_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    payload = db.Column(db.Text, nullable=False)

    def payload_dict(self):
        return json.loads(self.payload)


class BestRecord(db.Model):
    __tablename__ = 'best_record'
    mode = db.Column(db.String(16), primary_key=True)
    value = db.Column(db.Integer, nullable=False, default=0)
