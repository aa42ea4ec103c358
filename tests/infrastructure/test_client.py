"""Tests for ModelServerClient.

Tests cover:
- Request paths, query parameters and bodies of the REST operations
- Untyped (format) and typed (type guard) result mapping
- Error envelopes, HTTP errors and transport failures
- Client lifecycle and settings
"""

from typing import Any
from unittest.mock import MagicMock, patch

import httpx
import pytest
from pydantic import ValidationError

from modelserver_client import (
    CompoundCommand,
    DiagnosticSeverity,
    MessageMappingError,
    Model,
    ModelServerClient,
    ModelServerCommand,
    ModelServerError,
    ServerConfiguration,
    Settings,
    SubscriptionOptions,
)
from modelserver_client.domain.models import COMMAND_ECLASS
from modelserver_client.utils import is_defined_object, is_string
from tests.fixtures.factories import FakeConnector, RecordingListener, ResponseFactory, wait_for


def is_task(value: Any) -> bool:
    return is_defined_object(value) and is_string(value, "name")


def sent_request(http_client: MagicMock) -> tuple[str, str, dict[str, str] | None, Any]:
    """Return (method, path, params, json body) of the last request."""
    call = http_client.request.await_args
    method, path = call.args
    return method, path, call.kwargs["params"], call.kwargs["json"]


# ============================================================================
# MODEL OPERATIONS
# ============================================================================


class TestModelOperations:
    """Test model CRUD and lookup operations."""

    @pytest.mark.asyncio
    async def test_get_returns_object(self, client: ModelServerClient, http_client: MagicMock) -> None:
        """Test get() without format sends only the model URI."""
        http_client.request.return_value = ResponseFactory.success({"eClass": "Machine", "name": "Coffee"})

        result = await client.get("Coffee.ecore")

        assert result == {"eClass": "Machine", "name": "Coffee"}
        assert sent_request(http_client) == ("GET", "models", {"modeluri": "Coffee.ecore"}, None)

    @pytest.mark.asyncio
    async def test_get_with_format(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success({"name": "Coffee"})

        await client.get("Coffee.ecore", "xmi")

        assert sent_request(http_client)[2] == {"modeluri": "Coffee.ecore", "format": "xmi"}

    @pytest.mark.asyncio
    async def test_get_with_type_guard(self, client: ModelServerClient, http_client: MagicMock) -> None:
        """Test get() with a type guard keeps the format keyword."""
        http_client.request.return_value = ResponseFactory.success({"name": "Brew"})

        task = await client.get("Tasks.json", is_task, format="json")

        assert task == {"name": "Brew"}
        assert sent_request(http_client)[2] == {"modeluri": "Tasks.json", "format": "json"}

    @pytest.mark.asyncio
    async def test_get_with_failing_type_guard(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success({"title": "Brew"})

        with pytest.raises(MessageMappingError):
            await client.get("Tasks.json", is_task)

    @pytest.mark.asyncio
    async def test_get_rejects_non_object_data(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success("<xmi/>")

        with pytest.raises(MessageMappingError):
            await client.get("Coffee.ecore")

    @pytest.mark.asyncio
    async def test_get_all_returns_models(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success({"a.model": {"name": "A"}, "b.model": {"name": "B"}})

        models = await client.get_all()

        assert models == [Model(modelUri="a.model", content={"name": "A"}), Model(modelUri="b.model", content={"name": "B"})]
        assert sent_request(http_client) == ("GET", "models", {}, None)

    @pytest.mark.asyncio
    async def test_get_all_applies_guard_to_each_content(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success({"a.model": {"name": "A"}, "b.model": {"title": "B"}})

        with pytest.raises(MessageMappingError, match="b.model"):
            await client.get_all(is_task)

    @pytest.mark.asyncio
    async def test_get_model_uris(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success(["file:///ws/a.model", "file:///ws/b.model"])

        uris = await client.get_model_uris()

        assert uris == ["file:///ws/a.model", "file:///ws/b.model"]
        assert sent_request(http_client) == ("GET", "modeluris", None, None)

    @pytest.mark.asyncio
    async def test_get_element_by_id_and_name(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success({"name": "Brew"})

        await client.get_element_by_id("Coffee.ecore", "//@workflows.0")
        assert sent_request(http_client) == ("GET", "modelelement", {"modeluri": "Coffee.ecore", "elementid": "//@workflows.0"}, None)

        element = await client.get_element_by_name("Coffee.ecore", "Brew", is_task)
        assert element == {"name": "Brew"}
        assert sent_request(http_client)[2] == {"modeluri": "Coffee.ecore", "elementname": "Brew"}

    @pytest.mark.asyncio
    async def test_create_sends_model_as_data(self, client: ModelServerClient, http_client: MagicMock) -> None:
        model = {"eClass": "Machine", "name": "Coffee"}
        http_client.request.return_value = ResponseFactory.success(model)

        result = await client.create("Coffee.ecore", model, "json")

        assert result == model
        assert sent_request(http_client) == ("POST", "models", {"modeluri": "Coffee.ecore", "format": "json"}, {"data": model})

    @pytest.mark.asyncio
    async def test_update_sends_preformatted_string(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success({"name": "Coffee"})

        await client.update("Coffee.xmi", "<xmi/>", "xmi")

        assert sent_request(http_client) == ("PATCH", "models", {"modeluri": "Coffee.xmi", "format": "xmi"}, {"data": "<xmi/>"})

    @pytest.mark.asyncio
    async def test_delete_reports_success_flag(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success("Model deleted")
        assert await client.delete("Coffee.ecore") is True
        assert sent_request(http_client) == ("DELETE", "models", {"modeluri": "Coffee.ecore"}, None)

        http_client.request.return_value = ResponseFactory.envelope("warning", "Model not loaded")
        assert await client.delete("Coffee.ecore") is False

    @pytest.mark.asyncio
    async def test_close_and_save(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success()

        assert await client.close("Coffee.ecore") is True
        assert sent_request(http_client)[:2] == ("POST", "close")

        assert await client.save("Coffee.ecore") is True
        assert sent_request(http_client)[:3] == ("GET", "save", {"modeluri": "Coffee.ecore"})

        assert await client.save_all() is True
        assert sent_request(http_client)[:2] == ("GET", "saveall")


# ============================================================================
# VALIDATION & SCHEMAS
# ============================================================================


class TestValidationOperations:
    """Test validation and schema operations."""

    @pytest.mark.asyncio
    async def test_validate_returns_diagnostic(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success(
            {
                "severity": 4,
                "message": "Diagnosis of Coffee.ecore",
                "children": [{"severity": 4, "message": "The name is missing", "id": "//@workflows.0"}],
            }
        )

        diagnostic = await client.validate("Coffee.ecore")

        assert diagnostic.severity == DiagnosticSeverity.ERROR
        assert diagnostic.children[0].message == "The name is missing"
        assert sent_request(http_client) == ("GET", "validation", {"modeluri": "Coffee.ecore"}, None)

    @pytest.mark.asyncio
    async def test_validate_rejects_non_diagnostic(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success({"severity": "bad"})

        with pytest.raises(MessageMappingError, match="Diagnostic"):
            await client.validate("Coffee.ecore")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [
            {"severity": 1.5, "message": "x"},
            {"severity": 0, "message": "ok", "source": None, "data": None},
            {"severity": 2, "message": "tree", "children": [{"severity": "high", "message": "child"}]},
        ],
    )
    async def test_validate_wraps_malformed_diagnostic_fields(self, client: ModelServerClient, http_client: MagicMock, payload: dict[str, Any]) -> None:
        """Payloads passing the severity/message check but not the Diagnostic model map to a MessageMappingError."""
        http_client.request.return_value = ResponseFactory.success(payload)

        with pytest.raises(MessageMappingError, match="Diagnostic") as exc_info:
            await client.validate("Coffee.ecore")

        assert isinstance(exc_info.value, ModelServerError)
        assert isinstance(exc_info.value.cause, ValidationError)
        assert exc_info.value.__cause__ is exc_info.value.cause

    @pytest.mark.asyncio
    async def test_schemas_are_strings(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success({"type": "object"})

        assert await client.get_type_schema("Coffee.ecore") == '{"type":"object"}'
        assert sent_request(http_client)[:3] == ("GET", "typeschema", {"modeluri": "Coffee.ecore"})

        http_client.request.return_value = ResponseFactory.success('{"type":"VerticalLayout"}')

        assert await client.get_ui_schema("controlunit") == '{"type":"VerticalLayout"}'
        assert sent_request(http_client)[:3] == ("GET", "uischema", {"schemaname": "controlunit"})

        await client.get_validation_constraints("Coffee.ecore")
        assert sent_request(http_client)[:2] == ("GET", "validation/constraints")


# ============================================================================
# SERVER & EDITING
# ============================================================================


class TestServerOperations:
    """Test server configuration and ping."""

    @pytest.mark.asyncio
    async def test_configure_server_strips_file_scheme(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success()

        result = await client.configure_server(ServerConfiguration(workspace_root="file:///tmp/ws"))

        assert result is True
        assert sent_request(http_client) == ("PUT", "server/configure", None, {"workspaceRoot": "/tmp/ws"})

    @pytest.mark.asyncio
    async def test_ping(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success()

        assert await client.ping() is True
        assert sent_request(http_client)[:2] == ("GET", "server/ping")


class TestEditOperations:
    """Test edit, undo and redo."""

    @pytest.mark.asyncio
    async def test_edit_uses_default_format(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success()
        command = ModelServerCommand(type="set", properties={"feature": "name", "value": "Brew"})

        assert await client.edit("Coffee.ecore", command) is True

        method, path, params, body = sent_request(http_client)
        assert (method, path) == ("PATCH", "edit")
        assert params == {"modeluri": "Coffee.ecore", "format": "json"}
        assert body == {"data": {"eClass": COMMAND_ECLASS, "type": "set", "properties": {"feature": "name", "value": "Brew"}}}

    @pytest.mark.asyncio
    async def test_edit_with_format_and_compound_command(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success()
        command = CompoundCommand().add(ModelServerCommand(type="add"))

        await client.edit("Coffee.xmi", command, format="xmi")

        _, _, params, body = sent_request(http_client)
        assert params["format"] == "xmi"
        assert body["data"]["type"] == "compound"
        assert body["data"]["commands"][0]["type"] == "add"

    @pytest.mark.asyncio
    async def test_edit_with_raw_command(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success()
        command = {"eClass": "custom#//Command", "type": "rename"}

        await client.edit("Coffee.ecore", command)

        assert sent_request(http_client)[3] == {"data": command}

    @pytest.mark.asyncio
    async def test_undo_and_redo(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success("Successful undo.")

        assert await client.undo("Coffee.ecore") == "Successful undo."
        assert sent_request(http_client)[:3] == ("GET", "undo", {"modeluri": "Coffee.ecore"})

        http_client.request.return_value = ResponseFactory.success({"redone": True})

        assert await client.redo("Coffee.ecore") == '{"redone":true}'
        assert sent_request(http_client)[:2] == ("GET", "redo")


# ============================================================================
# ERROR HANDLING
# ============================================================================


class TestErrorHandling:
    """Test mapping of failures to ModelServerError."""

    @pytest.mark.asyncio
    async def test_error_envelope(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.error("not found")

        with pytest.raises(ModelServerError) as exc_info:
            await client.get("Missing.ecore")

        assert "not found" in str(exc_info.value)
        assert exc_info.value.code is None
        assert not isinstance(exc_info.value, MessageMappingError)

    @pytest.mark.asyncio
    async def test_error_envelope_rejects_every_operation_kind(self, client: ModelServerClient, http_client: MagicMock) -> None:
        """Error envelopes are rejected before the success-flag mapping."""
        http_client.request.return_value = ResponseFactory.error({"reason": "locked"})

        with pytest.raises(ModelServerError, match="locked"):
            await client.delete("Coffee.ecore")

    @pytest.mark.asyncio
    async def test_http_error_with_envelope_body(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.error("Model Missing.ecore not found", status_code=404)

        with pytest.raises(ModelServerError) as exc_info:
            await client.get("Missing.ecore")

        assert exc_info.value.code == "404"
        assert exc_info.value.message == "Model Missing.ecore not found"

    @pytest.mark.asyncio
    async def test_http_error_with_text_body(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.raw(500, "Internal failure")

        with pytest.raises(ModelServerError) as exc_info:
            await client.ping()

        assert exc_info.value.code == "500"
        assert exc_info.value.message == "Internal failure"

    @pytest.mark.asyncio
    async def test_http_error_without_body(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.raw(503)

        with pytest.raises(ModelServerError) as exc_info:
            await client.ping()

        assert exc_info.value.message == "HTTP 503 Service Unavailable"

    @pytest.mark.asyncio
    async def test_connection_error(self, client: ModelServerClient, http_client: MagicMock) -> None:
        error = httpx.ConnectError("Connection refused")
        http_client.request.side_effect = error

        with pytest.raises(ModelServerError) as exc_info:
            await client.ping()

        assert exc_info.value.code == "ConnectError"
        assert exc_info.value.cause is error
        assert exc_info.value.__cause__ is error
        assert "Connection refused" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_timeout(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.side_effect = httpx.ReadTimeout("timed out")

        with pytest.raises(ModelServerError) as exc_info:
            await client.get("Coffee.ecore")

        assert exc_info.value.code == "ReadTimeout"

    @pytest.mark.asyncio
    async def test_response_without_envelope(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = httpx.Response(200, json=["not", "an", "envelope"])

        with pytest.raises(MessageMappingError):
            await client.get("Coffee.ecore")


# ============================================================================
# LIFECYCLE & SETTINGS
# ============================================================================


class TestClientLifecycle:
    """Test client construction, settings and cleanup."""

    def test_base_url_is_normalized(self) -> None:
        client = ModelServerClient("http://localhost:8081/api/v1")

        assert client.base_url == "http://localhost:8081/api/v1/"
        assert client.default_format == "json"

    def test_from_settings(self) -> None:
        settings = Settings(modelserver_hostname="modelserver", modelserver_port=9000, modelserver_default_format="xmi")

        client = ModelServerClient.from_settings(settings)

        assert client.base_url == "http://modelserver:9000/api/v1/"
        assert client.default_format == "xmi"

    @pytest.mark.asyncio
    async def test_http_client_created_once(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success()

        with patch("modelserver_client.infrastructure.client.httpx.AsyncClient", return_value=http_client) as factory:
            await client.ping()
            await client.ping()

        factory.assert_called_once()
        assert factory.call_args.kwargs["base_url"] == "http://localhost:8081/api/v1/"

    @pytest.mark.asyncio
    async def test_aclose_closes_http_client_and_subscriptions(self, client: ModelServerClient, http_client: MagicMock, connector: FakeConnector) -> None:
        http_client.request.return_value = ResponseFactory.success()
        listener = RecordingListener()
        await client.ping()
        await client.subscribe("Coffee.ecore", listener, SubscriptionOptions())
        await wait_for(lambda: "open" in listener.names)

        await client.aclose()

        http_client.aclose.assert_awaited_once()
        assert client.subscriptions.subscribed_uris == []
        assert connector.sockets[0].close_calls == 1
        assert listener.names[-1] == "close"

    @pytest.mark.asyncio
    async def test_async_context_manager(self, client: ModelServerClient, http_client: MagicMock) -> None:
        http_client.request.return_value = ResponseFactory.success()

        async with client as entered:
            assert entered is client
            await client.ping()

        http_client.aclose.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_subscription_delegates(self, client: ModelServerClient, connector: FakeConnector) -> None:
        listener = RecordingListener()

        result = await client.subscribe("Coffee.ecore", listener)
        await wait_for(lambda: "open" in listener.names)

        assert result.listener is listener
        assert connector.targets == ["ws://localhost:8081/api/v1/subscribe?modeluri=Coffee.ecore&format=json"]
        assert await client.send("Coffee.ecore", '{"type":"ping"}') is True
        assert connector.sockets[0].sent == ['{"type":"ping"}']
        assert await client.unsubscribe("Coffee.ecore") is True
