"""Exception hierarchy for notesync."""

from typing import Optional


class NoteSyncError(Exception):
    """Base class for all notesync errors.

    Args:
        message (str): Human readable description

    Attributes:
        message (str): Human readable description
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class IndexOutOfRange(NoteSyncError, IndexError):
    """A positional store operation was given an index outside the sequence.

    Args:
        index (int): The rejected position
        length (int): Length of the sequence at the time of the call

    Attributes:
        index (int): The rejected position
        length (int): Length of the sequence at the time of the call
    """

    def __init__(self, index: int, length: int):
        self.index = index
        self.length = length
        super().__init__(f"Note index {index} out of range for {length} note(s)")


class StoreInvariantViolation(NoteSyncError):
    """The note store was asked to do something that breaks its invariants.

    This is a programming error and is never handled inside the package.
    """

    pass


class RemoteOperationFailed(NoteSyncError):
    """A request against the notes backend did not succeed.

    Args:
        operation (str): Gateway operation that failed (e.g. "create_note")
        message (str): Error description
        status_code (int): HTTP status code, 0 when no response was received

    Attributes:
        operation (str): Gateway operation that failed
        message (str): Error description
        status_code (int): HTTP status code, 0 when no response was received
    """

    def __init__(self, operation: str, message: str, status_code: Optional[int] = 0):
        self.operation = operation
        self.status_code = status_code or 0
        super().__init__(message)

    def __str__(self) -> str:
        return f"{self.operation} failed: {self.message}"
