"""Model server enumerations."""

from enum import Enum, IntEnum


class MessageType(str, Enum):
    """Default types of a model server message.

    Servers may be extended with custom types, so the ``type`` of a received
    message is kept as a plain string and only mapped on demand.
    """

    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"
    OPEN = "open"
    CLOSE = "close"
    FULL_UPDATE = "fullUpdate"
    INCREMENTAL_UPDATE = "incrementalUpdate"
    DIRTY_STATE = "dirtyState"
    VALIDATION_RESULT = "validationResult"
    KEEP_ALIVE = "keepAlive"
    UNKNOWN = "unknown"

    @classmethod
    def from_value(cls, value: str) -> "MessageType":
        """Map a raw type string to a member, falling back to ``UNKNOWN``."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class DiagnosticSeverity(IntEnum):
    """Severity levels of a validation diagnostic."""

    OK = 0
    INFO = 1
    WARNING = 2
    ERROR = 4
    CANCEL = 8


class SubscriptionState(str, Enum):
    """Lifecycle state of a subscription connection."""

    CLOSED = "closed"  # Not connected (initial and terminal)
    OPENING = "opening"  # Registered, handshake in progress
    OPEN = "open"  # Handshake done, receiving notifications


class SubscriptionStatus(str, Enum):
    """Outcome of a subscribe call."""

    SUBSCRIBED = "subscribed"  # New connection registered
    REPLACED = "replaced"  # Existing connection closed and replaced
