"""Asyncio client for the EMF.cloud model server.

Provides the typed REST operations of the model server API and a
subscription channel delivering live model updates over WebSocket.
"""

from .application import Settings, app_settings, configure_logging, message_mapper
from .domain import (
    CloseEvent,
    CompoundCommand,
    Diagnostic,
    DiagnosticSeverity,
    ErrorEvent,
    MessageEvent,
    MessageMappingError,
    MessageType,
    Model,
    ModelServerCommand,
    ModelServerError,
    ModelServerMessage,
    OpenEvent,
    ServerConfiguration,
    SubscriptionConflictError,
    SubscriptionOptions,
    SubscriptionState,
    SubscriptionStatus,
)
from .infrastructure import ModelServerClient, ModelServerPaths, SubscriptionChannel, SubscriptionListener, SubscriptionResult

__version__ = "0.1.0"

__all__ = [
    # Client
    "ModelServerClient",
    "ModelServerPaths",
    "SubscriptionChannel",
    "SubscriptionListener",
    "SubscriptionResult",
    # Settings
    "Settings",
    "app_settings",
    "configure_logging",
    "message_mapper",
    # Errors
    "ModelServerError",
    "MessageMappingError",
    "SubscriptionConflictError",
    # Wire models
    "CompoundCommand",
    "Diagnostic",
    "DiagnosticSeverity",
    "MessageType",
    "Model",
    "ModelServerCommand",
    "ModelServerMessage",
    "ServerConfiguration",
    "SubscriptionOptions",
    "SubscriptionState",
    "SubscriptionStatus",
    # Events
    "CloseEvent",
    "ErrorEvent",
    "MessageEvent",
    "OpenEvent",
]
