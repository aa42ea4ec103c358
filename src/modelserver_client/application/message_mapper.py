"""Message mappers.

Functions converting the ``data`` of a :class:`ModelServerMessage` into the
shape a client operation returns. A mapper raises :class:`MessageMappingError`
when ``data`` cannot be interpreted as the requested shape; a server-side
failure (``type == "error"``) is handled before any mapper runs.
"""

from typing import Any, TypeVar

from modelserver_client.domain.enums import MessageType
from modelserver_client.domain.errors import MessageMappingError
from modelserver_client.domain.models import Model, ModelServerMessage
from modelserver_client.utils.type_guards import TypeGuardFn, is_defined_object

T = TypeVar("T")


def as_string(message: ModelServerMessage) -> str:
    """Return ``data`` as-is if it is a string, JSON-encoded otherwise."""
    return message.data_as_text()


def as_string_array(message: ModelServerMessage) -> list[str]:
    if isinstance(message.data, list):
        return message.data
    raise MessageMappingError('Cannot map "data" property to list[str]!')


def as_boolean(message: ModelServerMessage) -> bool:
    """Return ``data`` if it is a boolean, ``False`` otherwise. Never raises."""
    return message.data if isinstance(message.data, bool) else False


def as_model_array(message: ModelServerMessage) -> list[Model[Any]]:
    """Convert a ``{uri: content}`` mapping into a list of models.

    The list follows the key order of the mapping.
    """
    if is_defined_object(message.data):
        return [Model(modelUri=uri, content=content) for uri, content in message.data.items()]
    raise MessageMappingError('Cannot map "data" property to list[Model]!')


def as_object(message: ModelServerMessage) -> dict[str, Any]:
    if is_defined_object(message.data):
        return message.data
    raise MessageMappingError('Cannot map "data" property to object!')


def as_type(message: ModelServerMessage, type_guard: TypeGuardFn[T], error_msg: str | None = None) -> T:
    """Return ``data`` typed as ``T`` if it passes the given type guard.

    Args:
        message: The message to map
        type_guard: Predicate checking that ``data`` is a ``T``
        error_msg: Custom message of the error raised when the check fails

    Raises:
        MessageMappingError: If the type guard rejects ``data``
    """
    if type_guard(message.data):
        return message.data
    raise MessageMappingError(error_msg or 'Cannot map "data" property to the desired type!')


def is_success(message: ModelServerMessage) -> bool:
    """Whether the message type is ``success``; every other type yields ``False``."""
    return message.type == MessageType.SUCCESS.value
