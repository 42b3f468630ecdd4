"""
Error types raised by the MVP counter.

Every failure the command line reports derives from MvpCounterError, so the
entry point can turn any of them into exit code 1 with a single handler.
"""


class MvpCounterError(Exception):
    """Base class for all MVP counter failures."""


class ArgumentError(MvpCounterError):
    """Wrong argument count or a worker count that is not a positive integer."""


class InputUnavailable(MvpCounterError):
    """The input file could not be opened or read."""


class OutOfMemory(MvpCounterError):
    """An allocation for the map, an entry or the report buffer failed."""


class ReportWriteError(MvpCounterError):
    """The report file could not be created, written or closed."""


class MalformedRecord(MvpCounterError):
    """A record without a comma was found while running in strict mode."""

    def __init__(self, line_number, record):
        self.line_number = line_number
        self.record = record
        super().__init__(f"Record {line_number:,} has no comma: {record!r}")
