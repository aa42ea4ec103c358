"""Model server client.

Typed asyncio client for the model server REST API (CRUD, validation,
command editing, undo/redo, server configuration) and its subscription
channel for live model updates.

Every REST operation follows the same pipeline:
1. Send the HTTP request
2. Wrap transport failures and non-2xx responses into a ModelServerError
3. Reject responses whose envelope type is "error" with a ModelServerError
4. Map the envelope ``data`` to the operation result (see message_mapper)

Usage:
    async with ModelServerClient("http://localhost:8081/api/v1/") as client:
        if await client.ping():
            coffee = await client.get("Coffee.ecore")
            await client.edit("Coffee.ecore", ModelServerCommand(type="updateTaskName", properties={"text": "Brew"}))
            await client.subscribe("Coffee.ecore", MyListener(), SubscriptionOptions(timeout=30000))
"""

import logging
import time
from collections.abc import Callable
from typing import Any, TypeVar, overload

import httpx
from opentelemetry import trace
from pydantic import ValidationError

from modelserver_client.application import message_mapper
from modelserver_client.application.settings import Settings, app_settings
from modelserver_client.domain.enums import MessageType
from modelserver_client.domain.errors import MessageMappingError, ModelServerError
from modelserver_client.domain.models import Diagnostic, Model, ModelServerCommand, ModelServerMessage, ServerConfiguration, SubscriptionOptions
from modelserver_client.observability import request_duration, request_failures, requests_sent
from modelserver_client.utils.type_guards import TypeGuardFn

from .paths import ModelServerPaths
from .subscription import ConnectFn, SubscriptionChannel, SubscriptionResult

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

M = TypeVar("M")
T = TypeVar("T")

Mapper = Callable[[ModelServerMessage], T]


def _query(**params: Any) -> dict[str, str]:
    """Drop unset query parameters and render booleans the way the server expects."""
    query: dict[str, str] = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        query[key] = str(value)
    return query


def _resolve_format_or_guard(format_or_guard: Any, format: str | None) -> tuple[TypeGuardFn[Any] | None, str | None]:
    """Split a ``format_or_guard`` argument into (type guard, format).

    A callable is a type guard (the format then comes from ``format``),
    anything else is a format hint.
    """
    if callable(format_or_guard):
        return format_or_guard, format
    return None, format_or_guard if format_or_guard is not None else format


def _object_or_typed(type_guard: TypeGuardFn[Any] | None) -> Mapper[Any]:
    if type_guard is None:
        return message_mapper.as_object
    return lambda message: message_mapper.as_type(message, type_guard)


def _as_diagnostic(message: ModelServerMessage) -> Diagnostic:
    data = message_mapper.as_type(message, Diagnostic.is_diagnostic, 'Cannot map "data" property to Diagnostic!')
    try:
        return Diagnostic.model_validate(data)
    except ValidationError as e:
        raise MessageMappingError(f"Cannot map \"data\" property to Diagnostic! {e.error_count()} invalid field(s)", cause=e) from e


class ModelServerClient:
    """
    Client for a model server.

    Handles:
    - Model CRUD and element lookup
    - Save/close, validation and schema retrieval
    - Command editing with undo/redo
    - Server configuration and liveness (ping)
    - Live-update subscriptions (see SubscriptionChannel)

    Operations accepting ``format_or_guard`` return the raw object when given a
    format string (or nothing), and the value typed by the guard when given a
    type guard function.
    """

    def __init__(
        self,
        base_url: str,
        default_format: str = "json",
        timeout: float = 30.0,
        connect: ConnectFn | None = None,
    ) -> None:
        """
        Initialize the model server client.

        Args:
            base_url: Base URL of the model server API (e.g., http://localhost:8081/api/v1/)
            default_format: Format used by edit and subscribe when none is given
            timeout: HTTP timeout in seconds
            connect: WebSocket connect function for subscriptions (defaults to websockets.connect)
        """
        self._base_url = base_url if base_url.endswith("/") else f"{base_url}/"
        self._default_format = default_format
        self._timeout = timeout
        self._client: httpx.AsyncClient | None = None
        self.subscriptions = SubscriptionChannel(self._base_url, default_format, connect)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ModelServerClient":
        """Create a client from the connection settings."""
        settings = settings or app_settings
        return cls(
            base_url=settings.modelserver_base_url,
            default_format=settings.modelserver_default_format,
            timeout=settings.modelserver_timeout,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def default_format(self) -> str:
        return self._default_format

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                follow_redirects=True,
            )
        return self._client

    async def aclose(self) -> None:
        """Close all subscriptions and the HTTP client."""
        await self.subscriptions.close_all()
        if self._client and not self._client.is_closed:
            await self._client.aclose()
        self._client = None

    async def __aenter__(self) -> "ModelServerClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()

    # =========================================================================
    # MODELS
    # =========================================================================

    @overload
    async def get(self, model_uri: str, format_or_guard: str | None = None, format: str | None = None) -> dict[str, Any]: ...

    @overload
    async def get(self, model_uri: str, format_or_guard: TypeGuardFn[M], format: str | None = None) -> M: ...

    async def get(self, model_uri: str, format_or_guard: Any = None, format: str | None = None) -> Any:
        """Get the content of a model."""
        type_guard, format = _resolve_format_or_guard(format_or_guard, format)
        return await self._send(
            "get",
            "GET",
            ModelServerPaths.MODEL_CRUD,
            _object_or_typed(type_guard),
            params=_query(modeluri=model_uri, format=format),
        )

    @overload
    async def get_all(self, format_or_guard: str | None = None, format: str | None = None) -> list[Model[Any]]: ...

    @overload
    async def get_all(self, format_or_guard: TypeGuardFn[M], format: str | None = None) -> list[Model[M]]: ...

    async def get_all(self, format_or_guard: Any = None, format: str | None = None) -> list[Model[Any]]:
        """Get all models loaded by the server.

        With a type guard, the content of every model must pass the guard.
        """
        type_guard, format = _resolve_format_or_guard(format_or_guard, format)

        def map_models(message: ModelServerMessage) -> list[Model[Any]]:
            models = message_mapper.as_model_array(message)
            if type_guard is not None:
                for model in models:
                    if not type_guard(model.content):
                        raise MessageMappingError(f"Could not map content of model {model.model_uri}. Type guard check failed")
            return models

        return await self._send("get_all", "GET", ModelServerPaths.MODEL_CRUD, map_models, params=_query(format=format))

    async def get_model_uris(self) -> list[str]:
        """Get the URIs of all models known to the server."""
        return await self._send("get_model_uris", "GET", ModelServerPaths.MODEL_URIS, message_mapper.as_string_array)

    @overload
    async def get_element_by_id(self, model_uri: str, element_id: str, format_or_guard: str | None = None, format: str | None = None) -> dict[str, Any]: ...

    @overload
    async def get_element_by_id(self, model_uri: str, element_id: str, format_or_guard: TypeGuardFn[M], format: str | None = None) -> M: ...

    async def get_element_by_id(self, model_uri: str, element_id: str, format_or_guard: Any = None, format: str | None = None) -> Any:
        """Get a model element by its id."""
        type_guard, format = _resolve_format_or_guard(format_or_guard, format)
        return await self._send(
            "get_element_by_id",
            "GET",
            ModelServerPaths.MODEL_ELEMENT,
            _object_or_typed(type_guard),
            params=_query(modeluri=model_uri, elementid=element_id, format=format),
        )

    @overload
    async def get_element_by_name(self, model_uri: str, element_name: str, format_or_guard: str | None = None, format: str | None = None) -> dict[str, Any]: ...

    @overload
    async def get_element_by_name(self, model_uri: str, element_name: str, format_or_guard: TypeGuardFn[M], format: str | None = None) -> M: ...

    async def get_element_by_name(self, model_uri: str, element_name: str, format_or_guard: Any = None, format: str | None = None) -> Any:
        """Get a model element by its name."""
        type_guard, format = _resolve_format_or_guard(format_or_guard, format)
        return await self._send(
            "get_element_by_name",
            "GET",
            ModelServerPaths.MODEL_ELEMENT,
            _object_or_typed(type_guard),
            params=_query(modeluri=model_uri, elementname=element_name, format=format),
        )

    @overload
    async def create(self, model_uri: str, model: dict[str, Any] | str, format_or_guard: str | None = None, format: str | None = None) -> dict[str, Any]: ...

    @overload
    async def create(self, model_uri: str, model: dict[str, Any] | str, format_or_guard: TypeGuardFn[M], format: str | None = None) -> M: ...

    async def create(self, model_uri: str, model: dict[str, Any] | str, format_or_guard: Any = None, format: str | None = None) -> Any:
        """Create a model. ``model`` is the content as an object or a preformatted string."""
        type_guard, format = _resolve_format_or_guard(format_or_guard, format)
        return await self._send(
            "create",
            "POST",
            ModelServerPaths.MODEL_CRUD,
            _object_or_typed(type_guard),
            params=_query(modeluri=model_uri, format=format),
            body={"data": model},
        )

    @overload
    async def update(self, model_uri: str, model: dict[str, Any] | str, format_or_guard: str | None = None, format: str | None = None) -> dict[str, Any]: ...

    @overload
    async def update(self, model_uri: str, model: dict[str, Any] | str, format_or_guard: TypeGuardFn[M], format: str | None = None) -> M: ...

    async def update(self, model_uri: str, model: dict[str, Any] | str, format_or_guard: Any = None, format: str | None = None) -> Any:
        """Update (patch) the content of a model."""
        type_guard, format = _resolve_format_or_guard(format_or_guard, format)
        return await self._send(
            "update",
            "PATCH",
            ModelServerPaths.MODEL_CRUD,
            _object_or_typed(type_guard),
            params=_query(modeluri=model_uri, format=format),
            body={"data": model},
        )

    async def delete(self, model_uri: str) -> bool:
        return await self._send("delete", "DELETE", ModelServerPaths.MODEL_CRUD, message_mapper.is_success, params=_query(modeluri=model_uri))

    async def close(self, model_uri: str) -> bool:
        """Close a model on the server (discarding unsaved changes)."""
        return await self._send("close", "POST", ModelServerPaths.CLOSE, message_mapper.is_success, params=_query(modeluri=model_uri))

    async def save(self, model_uri: str) -> bool:
        return await self._send("save", "GET", ModelServerPaths.SAVE, message_mapper.is_success, params=_query(modeluri=model_uri))

    async def save_all(self) -> bool:
        return await self._send("save_all", "GET", ModelServerPaths.SAVE_ALL, message_mapper.is_success)

    # =========================================================================
    # VALIDATION & SCHEMAS
    # =========================================================================

    async def validate(self, model_uri: str) -> Diagnostic:
        """Validate a model.

        Returns:
            The root Diagnostic of the validation result
        """
        return await self._send("validate", "GET", ModelServerPaths.VALIDATION, _as_diagnostic, params=_query(modeluri=model_uri))

    async def get_validation_constraints(self, model_uri: str) -> str:
        return await self._send(
            "get_validation_constraints",
            "GET",
            ModelServerPaths.VALIDATION_CONSTRAINTS,
            message_mapper.as_string,
            params=_query(modeluri=model_uri),
        )

    async def get_type_schema(self, model_uri: str) -> str:
        """Get the JSON schema of the model's types."""
        return await self._send("get_type_schema", "GET", ModelServerPaths.TYPE_SCHEMA, message_mapper.as_string, params=_query(modeluri=model_uri))

    async def get_ui_schema(self, schema_name: str) -> str:
        """Get a UI schema by name."""
        return await self._send("get_ui_schema", "GET", ModelServerPaths.UI_SCHEMA, message_mapper.as_string, params=_query(schemaname=schema_name))

    # =========================================================================
    # SERVER
    # =========================================================================

    async def configure_server(self, configuration: ServerConfiguration) -> bool:
        """Set the server workspace root (and UI schema folder).

        ``file://`` prefixes are stripped; the server expects file system paths.
        """
        return await self._send(
            "configure_server",
            "PUT",
            ModelServerPaths.SERVER_CONFIGURE,
            message_mapper.is_success,
            body=configuration.to_request_body(),
        )

    async def ping(self) -> bool:
        """Check whether the server is up.

        Raises:
            ModelServerError: If the server cannot be reached
        """
        return await self._send("ping", "GET", ModelServerPaths.SERVER_PING, message_mapper.is_success)

    # =========================================================================
    # EDITING
    # =========================================================================

    async def edit(self, model_uri: str, command: ModelServerCommand | dict[str, Any], format: str | None = None) -> bool:
        """Execute a command on a model."""
        payload = command.to_payload() if isinstance(command, ModelServerCommand) else command
        return await self._send(
            "edit",
            "PATCH",
            ModelServerPaths.EDIT,
            message_mapper.is_success,
            params=_query(modeluri=model_uri, format=format or self._default_format),
            body={"data": payload},
        )

    async def undo(self, model_uri: str) -> str:
        return await self._send("undo", "GET", ModelServerPaths.UNDO, message_mapper.as_string, params=_query(modeluri=model_uri))

    async def redo(self, model_uri: str) -> str:
        return await self._send("redo", "GET", ModelServerPaths.REDO, message_mapper.as_string, params=_query(modeluri=model_uri))

    # =========================================================================
    # SUBSCRIPTIONS
    # =========================================================================

    async def subscribe(self, model_uri: str, listener: Any, options: SubscriptionOptions | None = None) -> SubscriptionResult:
        """Subscribe to live updates of a model. See SubscriptionChannel.subscribe."""
        return await self.subscriptions.subscribe(model_uri, listener, options)

    async def unsubscribe(self, model_uri: str) -> bool:
        return await self.subscriptions.unsubscribe(model_uri)

    async def send(self, model_uri: str, message: ModelServerMessage | str | bytes) -> bool:
        """Send a message on the subscription of a model; no-op if not subscribed."""
        return await self.subscriptions.send(model_uri, message)

    # =========================================================================
    # REQUEST PIPELINE
    # =========================================================================

    async def _send(
        self,
        operation: str,
        method: str,
        path: str,
        mapper: Mapper[T],
        params: dict[str, str] | None = None,
        body: Any = None,
    ) -> T:
        """Send a request and map the response envelope.

        Subclasses use this to add operations for custom server endpoints.

        Raises:
            ModelServerError: On transport failures, error responses and unexpected payloads
        """
        client = await self._get_client()
        start_time = time.time()

        with tracer.start_as_current_span(f"modelserver.{operation}") as span:
            span.set_attribute("http.method", method)
            span.set_attribute("modelserver.path", path)
            requests_sent.add(1, {"operation": operation})

            try:
                message = await self._exchange(client, method, path, params, body)
                result = mapper(message)
            except ModelServerError as e:
                span.set_attribute("error", True)
                span.set_attribute("error.message", str(e))
                request_failures.add(1, {"operation": operation, "code": e.code or "none"})
                logger.error(f"Model server {operation} failed: {e}")
                raise
            finally:
                duration_ms = (time.time() - start_time) * 1000
                request_duration.record(duration_ms, {"operation": operation})

            logger.debug(f"Model server {operation} succeeded in {duration_ms:.1f}ms")
            return result

    async def _exchange(
        self,
        client: httpx.AsyncClient,
        method: str,
        path: str,
        params: dict[str, str] | None,
        body: Any,
    ) -> ModelServerMessage:
        """Perform the HTTP exchange and return the response envelope."""
        logger.debug(f"{method} {path} params={params}")
        try:
            response = await client.request(method, path, params=params, json=body)
        except httpx.TimeoutException as e:
            raise ModelServerError(str(e) or f"Request to {path} timed out", code=type(e).__name__, cause=e) from e
        except httpx.RequestError as e:
            raise ModelServerError(str(e) or f"Request to {path} failed", code=type(e).__name__, cause=e) from e

        payload = self._decode(response)

        if response.is_error:
            code = str(response.status_code)
            if ModelServerMessage.is_message(payload):
                raise ModelServerError(ModelServerMessage.model_validate(payload), code=code)
            raise ModelServerError(response.text.strip() or f"HTTP {response.status_code} {response.reason_phrase}", code=code)

        if not ModelServerMessage.is_message(payload):
            raise MessageMappingError(f"Unexpected response from {path}: {response.text[:200]}")

        message = ModelServerMessage.model_validate(payload)
        if message.type == MessageType.ERROR.value:
            raise ModelServerError(message)
        return message

    @staticmethod
    def _decode(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return None

    def __repr__(self) -> str:
        return f"<ModelServerClient({self._base_url})>"
