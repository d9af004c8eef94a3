"""Best-record and history stores.

The engine receives these at construction. The in-memory versions back the
engine tests; the SQL versions run against the Flask-SQLAlchemy session.
"""

import json
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from karotte.errors import PersistenceError
from .records import HistoryRecord, load_record, to_payload


class InMemoryBestRecordStore:
    def __init__(self, initial: Optional[Dict[str, int]] = None):
        self.values: Dict[str, int] = dict(initial or {})

    def read(self, mode: str) -> int:
        return self.values.get(mode, 0)

    def write(self, mode: str, value: int) -> None:
        self.values[mode] = int(value)


class InMemoryHistoryStore:
    def __init__(self):
        self._rows: Dict[int, dict] = {}
        self._next_id = 1

    def save(self, record: HistoryRecord) -> int:
        record_id = self._next_id
        self._next_id += 1
        self._rows[record_id] = to_payload(record)
        return record_id

    def get(self, record_id: int) -> Optional[HistoryRecord]:
        payload = self._rows.get(record_id)
        return load_record(payload, record_id) if payload is not None else None

    def list_all(self, mode: Optional[str] = None) -> List[HistoryRecord]:
        records = [load_record(p, i) for i, p in self._rows.items()]
        if mode is not None:
            records = [r for r in records if r.mode == mode]
        return sorted(records, key=lambda r: (r.ended_at, r.id), reverse=True)

    def delete_one(self, record_id: int) -> bool:
        return self._rows.pop(record_id, None) is not None

    def clear_all(self) -> None:
        self._rows.clear()


class SqlBestRecordStore:
    def read(self, mode: str) -> int:
        from karotte import db
        from karotte.models import BestRecord

        try:
            row = db.session.get(BestRecord, mode)
        except SQLAlchemyError as exc:
            raise PersistenceError(f'cannot read best record for {mode}: {exc}') from exc
        return row.value if row else 0

    def write(self, mode: str, value: int) -> None:
        from karotte import db
        from karotte.models import BestRecord

        try:
            row = db.session.get(BestRecord, mode)
            if row is None:
                row = BestRecord(mode=mode, value=int(value))
            else:
                row.value = int(value)
            db.session.add(row)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(f'cannot write best record for {mode}: {exc}') from exc

    def all(self) -> Dict[str, int]:
        from karotte.models import BestRecord

        try:
            return {row.mode: row.value for row in BestRecord.query.all()}
        except SQLAlchemyError as exc:
            raise PersistenceError(f'cannot read best records: {exc}') from exc


class SqlHistoryStore:
    def save(self, record: HistoryRecord) -> int:
        from karotte import db
        from karotte.models import GameRecord

        payload = to_payload(record)
        row = GameRecord(
            schema=payload['schema'],
            mode=record.mode,
            started_at=record.started_at,
            ended_at=record.ended_at,
            payload=json.dumps(payload),
        )
        try:
            db.session.add(row)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(f'cannot save history record: {exc}') from exc
        return row.id

    def get(self, record_id: int) -> Optional[HistoryRecord]:
        from karotte import db
        from karotte.models import GameRecord

        try:
            row = db.session.get(GameRecord, record_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f'cannot read history record {record_id}: {exc}') from exc
        return load_record(row.payload_dict(), row.id) if row else None

    def list_all(self, mode: Optional[str] = None) -> List[HistoryRecord]:
        from karotte.models import GameRecord

        query = GameRecord.query
        if mode is not None:
            query = query.filter_by(mode=mode)
        try:
            rows = query.order_by(GameRecord.ended_at.desc(), GameRecord.id.desc()).all()
        except SQLAlchemyError as exc:
            raise PersistenceError(f'cannot list history: {exc}') from exc
        return [load_record(row.payload_dict(), row.id) for row in rows]

    def delete_one(self, record_id: int) -> bool:
        from karotte import db
        from karotte.models import GameRecord

        try:
            deleted = GameRecord.query.filter_by(id=record_id).delete()
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(f'cannot delete history record {record_id}: {exc}') from exc
        return deleted > 0

    def clear_all(self) -> None:
        from karotte import db
        from karotte.models import GameRecord

        try:
            GameRecord.query.delete()
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise PersistenceError(f'cannot clear history: {exc}') from exc
