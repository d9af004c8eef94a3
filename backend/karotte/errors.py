class KarotteError(Exception):
    """Base class for errors raised by the game backend."""


class LoadError(KarotteError):
    """Word list could not be loaded or is malformed.

    Fatal to starting a session; the caller may retry the load.
    """


class PersistenceError(KarotteError):
    """A history or best-record write/read failed."""


class RecordFormatError(KarotteError):
    """A stored history payload matches none of the known shapes."""
