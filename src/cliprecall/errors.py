"""Error taxonomy for the clipboard history engine.

None of these are fatal to the host process: the monitor, dispatcher and
persistence worker catch them and degrade to "no-op this cycle".
"""


class ClipboardEngineError(Exception):
    pass


class ReadFailure(ClipboardEngineError):
    """The system clipboard could not be read this tick."""


class ClassifyFailure(ClipboardEngineError):
    """A snapshot had no recognisable representation."""


class WriteFailure(ClipboardEngineError):
    """The requested representation could not be written to the clipboard."""


class PersistenceFailure(ClipboardEngineError):
    """A background flush or load against durable storage failed."""
