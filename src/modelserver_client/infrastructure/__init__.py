"""Infrastructure layer: REST client and subscription channel."""

from .client import ModelServerClient
from .paths import ModelServerPaths
from .subscription import (
    SubscriptionChannel,
    SubscriptionConnection,
    SubscriptionListener,
    SubscriptionResult,
    keep_alive_interval,
    to_websocket_url,
)

__all__ = [
    # REST
    "ModelServerClient",
    "ModelServerPaths",
    # Subscriptions
    "SubscriptionChannel",
    "SubscriptionConnection",
    "SubscriptionListener",
    "SubscriptionResult",
    "keep_alive_interval",
    "to_websocket_url",
]
