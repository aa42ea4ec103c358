"""Domain types of the model server client.

- enums.py: Message types, diagnostic severities, subscription states
- models.py: Wire envelope, models, diagnostics, commands, options
- events.py: Raw subscription connection events
- errors.py: Client exception hierarchy
"""

from .enums import DiagnosticSeverity, MessageType, SubscriptionState, SubscriptionStatus
from .errors import MessageMappingError, ModelServerError, SubscriptionConflictError
from .events import CloseEvent, ErrorEvent, MessageEvent, OpenEvent
from .models import (
    CompoundCommand,
    Diagnostic,
    Model,
    ModelServerCommand,
    ModelServerMessage,
    ServerConfiguration,
    SubscriptionOptions,
)

__all__ = [
    # Enums
    "DiagnosticSeverity",
    "MessageType",
    "SubscriptionState",
    "SubscriptionStatus",
    # Errors
    "MessageMappingError",
    "ModelServerError",
    "SubscriptionConflictError",
    # Wire models
    "CompoundCommand",
    "Diagnostic",
    "Model",
    "ModelServerCommand",
    "ModelServerMessage",
    "ServerConfiguration",
    "SubscriptionOptions",
    # Events
    "CloseEvent",
    "ErrorEvent",
    "MessageEvent",
    "OpenEvent",
]
