"""Error taxonomy for the chat session."""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Why an operation did not produce a value."""

    VALIDATION = "validation"  # empty submit, never surfaced
    BUSY = "busy"  # same flow already in flight, never surfaced
    EXHAUSTED = "exhausted"  # no older history left, never surfaced
    NETWORK = "network"
    SERVICE = "service"
    DECODE = "decode"  # per-record, recovered by the decoder


class ChatSessionError(Exception):
    """Base class for failures raised at the service boundary."""

    kind = ErrorKind.NETWORK

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NetworkError(ChatSessionError):
    """The request could not be issued or the response never fully arrived."""

    kind = ErrorKind.NETWORK


class ServiceError(ChatSessionError):
    """The remote service answered with a non-success status or an unusable body."""

    kind = ErrorKind.SERVICE

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DecodeError(ChatSessionError):
    """A single streamed record could not be parsed."""

    kind = ErrorKind.DECODE

    def __init__(self, message: str, record: str) -> None:
        super().__init__(message)
        self.record = record
