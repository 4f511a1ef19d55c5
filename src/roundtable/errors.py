"""Exception hierarchy shared by the memory subsystem and engines."""

from __future__ import annotations


class RoundtableError(Exception):
    """Base class for all Roundtable errors."""


class StorageError(RoundtableError):
    """Durable storage could not serve a request."""


class RecordNotFound(StorageError):
    """No durable record exists for the requested subject code."""

    def __init__(self, code: str) -> None:
        super().__init__(f"no memory record for {code!r}")
        self.code = code


class DurableIOError(StorageError):
    """Reading, writing or deleting a durable record failed."""


class SummarizerUnavailable(RoundtableError):
    """An operation needs a summarizer but none is configured."""


class SummarizationError(RoundtableError):
    """Summarizing discussion rounds failed."""


class ExtractionError(RoundtableError):
    """Extracting facts or key points failed."""


class EngineError(RoundtableError):
    """A language-model engine call failed."""
