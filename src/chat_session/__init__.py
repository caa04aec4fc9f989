"""In-memory chat session state with streaming reply decoding and history paging."""

from .config import ClientSettings
from .controller import SessionController, create_session
from .domain.errors import ErrorKind
from .domain.models import Message, Role, SessionSnapshot, SessionStatus
from .domain.results import Err, Ok

__all__ = [
    "ClientSettings",
    "Err",
    "ErrorKind",
    "Message",
    "Ok",
    "Role",
    "SessionController",
    "SessionSnapshot",
    "SessionStatus",
    "create_session",
]
