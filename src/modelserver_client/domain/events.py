"""Subscription connection events.

Raw events forwarded to a subscription listener. They carry what the
underlying WebSocket reported, without interpreting message payloads.
"""

import json
from dataclasses import dataclass
from typing import Any

from .models import ModelServerMessage


@dataclass(frozen=True)
class OpenEvent:
    """The connection handshake completed."""

    target: str


@dataclass(frozen=True)
class MessageEvent:
    """A frame was received on the connection."""

    data: str | bytes

    def json(self) -> Any:
        return json.loads(self.data)

    def as_message(self) -> ModelServerMessage:
        """Decode the frame as a model server message envelope.

        Raises:
            pydantic.ValidationError: If the frame is not a valid envelope
        """
        return ModelServerMessage.model_validate_json(self.data)


@dataclass(frozen=True)
class CloseEvent:
    """The connection was closed, by either side."""

    code: int | None = None
    reason: str = ""
    was_clean: bool = True


@dataclass(frozen=True)
class ErrorEvent:
    """The connection failed to open or failed while running."""

    error: BaseException
