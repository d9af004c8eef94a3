from flask import Blueprint, jsonify, request, current_app
from karotte.errors import PersistenceError, RecordFormatError
from karotte.services.games.records import MODES, HistoryRecord, record_stats, summary_rows
from karotte.services.games.stores import SqlHistoryStore

history = Blueprint('history', __name__)


def record_to_dict(record: HistoryRecord):
    return {
        'id': record.id,
        'schema': record.schema,
        'mode': record.mode,
        'score': record.score,
        'correct_count': record.correct_count,
        'started_at': record.started_at.isoformat(),
        'ended_at': record.ended_at.isoformat(),
        'best_before': record.best_before,
        'stats': record_stats(record).to_dict(),
        'rounds': [row.to_dict() for row in summary_rows(record)],
    }


@history.errorhandler(PersistenceError)
def _persistence_failed(exc):
    current_app.logger.error(f"[history-fail] {exc}")
    return jsonify({'error': 'History store unavailable'}), 500


@history.errorhandler(RecordFormatError)
def _unreadable_record(exc):
    current_app.logger.error(f"[history-corrupt] {exc}")
    return jsonify({'error': f'Unreadable history record: {exc}'}), 500


@history.route('', methods=['GET'])
def list_history():
    """
    Lists finished sessions, newest first, optionally for one mode.
    """
    mode = request.args.get('mode')
    if mode is not None and mode not in MODES:
        return jsonify({'error': f"mode must be one of {', '.join(MODES)}"}), 400
    records = SqlHistoryStore().list_all(mode=mode)
    return jsonify([record_to_dict(r) for r in records])


@history.route('/<int:record_id>', methods=['GET'])
def get_record(record_id):
    record = SqlHistoryStore().get(record_id)
    if record is None:
        return jsonify({'error': 'Record not found'}), 404
    return jsonify(record_to_dict(record))


@history.route('/<int:record_id>', methods=['DELETE'])
def delete_record(record_id):
    if not SqlHistoryStore().delete_one(record_id):
        return jsonify({'error': 'Record not found'}), 404
    return jsonify({'message': 'Record deleted.'})


@history.route('', methods=['DELETE'])
def clear_history():
    SqlHistoryStore().clear_all()
    return jsonify({'message': 'History cleared.'})
