"""Model server client exceptions.

Every failure surfaced by a REST operation is a :class:`ModelServerError`,
whatever its origin (server error envelope, HTTP status, transport failure
or an unexpected payload shape), so callers need a single ``except`` clause.
"""

from typing import Any

from .models import ModelServerMessage


class ModelServerError(Exception):
    """Error reported by, or while talking to, the model server.

    Attributes:
        message: Human-readable error message
        code: HTTP status code or transport error name, when known
        data: Raw payload of the server error envelope, if any
    """

    def __init__(self, response: ModelServerMessage | str, code: str | None = None, cause: Exception | None = None):
        if isinstance(response, ModelServerMessage):
            message = response.data_as_text()
            self.data: Any = response.data
        else:
            message = response
            self.data = None
        super().__init__(message)
        self.message = message
        self.code = code
        self.cause = cause

    def __str__(self) -> str:
        if self.code:
            return f"{self.message} (code: {self.code})"
        return self.message


class MessageMappingError(ModelServerError):
    """The ``data`` of a message does not have the requested shape."""

    pass


class SubscriptionConflictError(ModelServerError):
    """A subscription for the model URI is already registered."""

    def __init__(self, model_uri: str):
        super().__init__(f"{model_uri}: Cannot open new subscription, already subscribed!")
        self.model_uri = model_uri
