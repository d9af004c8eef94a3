import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///karotte.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Timed mode countdown (seconds)
    TIMED_DURATION_SEC = int(os.environ.get('TIMED_DURATION_SEC', '60'))
    # Survival penalty multiplier per earlier wrong answer
    SURVIVAL_WRONG_PENALTY_BASE = float(os.environ.get('SURVIVAL_WRONG_PENALTY_BASE', '1.15'))
    # Frequency rank that earns the highest score
    SCORE_PEAK_FREQUENCY = int(os.environ.get('SCORE_PEAK_FREQUENCY', '2000'))
    # Untouched in-memory sessions are dropped after this long
    SESSION_TIMEOUT_MINUTES = int(os.environ.get('SESSION_TIMEOUT_MINUTES', '120'))
    # Telemetry sink: 'socket' (session room), 'log', or 'none'
    TELEMETRY_SINK = os.environ.get('TELEMETRY_SINK', 'socket')
    # Optional: heartbeat interval for countdown worker logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
    # Optional: CSV used by `flask db-reset` to seed the word table
    WORDS_CSV = os.environ.get('WORDS_CSV')
