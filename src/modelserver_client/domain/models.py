"""Model server wire types.

Pydantic models for the JSON payloads exchanged with the model server.
Field names are snake_case; the camelCase names used on the wire are
declared as aliases, and every model accepts both spellings.
"""

import json
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field, SerializeAsAny

from modelserver_client.utils.type_guards import is_defined_object, is_number, is_string

from .enums import DiagnosticSeverity, MessageType

C = TypeVar("C")

COMMAND_ECLASS = "http://www.eclipse.org/emfcloud/modelserver/command#//Command"
COMPOUND_COMMAND_ECLASS = "http://www.eclipse.org/emfcloud/modelserver/command#//CompoundCommand"


# =============================================================================
# MESSAGE ENVELOPE
# =============================================================================


class ModelServerMessage(BaseModel):
    """Envelope of every message exchanged with the model server.

    Responses to REST requests and subscription notifications use it, and so do
    client-to-server control messages such as keep-alive (where ``data`` is empty).
    ``type`` is a :class:`MessageType` value unless the server has been extended
    with custom types.
    """

    type: str
    data: Any = None

    model_config = {"extra": "ignore"}

    @property
    def message_type(self) -> MessageType:
        return MessageType.from_value(self.type)

    def to_json(self) -> str:
        return self.model_dump_json()

    def data_as_text(self) -> str:
        """Return ``data`` as text, JSON-encoding anything that is not a string."""
        if isinstance(self.data, str):
            return self.data
        return json.dumps(self.data, separators=(",", ":"))

    @classmethod
    def keep_alive(cls) -> "ModelServerMessage":
        return cls(type=MessageType.KEEP_ALIVE.value, data=None)

    @staticmethod
    def is_message(value: Any) -> bool:
        """Guard: the value has the envelope shape (a string ``type``)."""
        return is_defined_object(value) and is_string(value, "type")


class Model(BaseModel, Generic[C]):
    """A model hosted by the server, identified by its URI."""

    model_uri: str = Field(..., alias="modelUri")
    content: C

    model_config = {"populate_by_name": True, "protected_namespaces": ()}

    @staticmethod
    def is_model(value: Any) -> bool:
        return is_defined_object(value) and is_string(value, "modelUri") and "content" in value


# =============================================================================
# VALIDATION
# =============================================================================


class Diagnostic(BaseModel):
    """Validation result for a model or one of its elements.

    Diagnostics form a tree: the root summarises the whole model and
    ``children`` holds one diagnostic per reported problem.
    """

    severity: int = DiagnosticSeverity.OK
    message: str = ""
    source: str = ""
    code: int = 0
    id: str = ""
    data: list[Any] = Field(default_factory=list)
    children: list["Diagnostic"] = Field(default_factory=list)

    @property
    def is_ok(self) -> bool:
        return self.severity == DiagnosticSeverity.OK

    def worst_severity(self) -> int:
        """Highest severity found in this diagnostic and all of its children."""
        return max([self.severity, *(child.worst_severity() for child in self.children)])

    @staticmethod
    def is_diagnostic(value: Any) -> bool:
        return is_defined_object(value) and is_number(value, "severity") and is_string(value, "message")


# =============================================================================
# SUBSCRIPTIONS & SERVER CONFIGURATION
# =============================================================================


class SubscriptionOptions(BaseModel):
    """Options of a single subscribe call.

    ``error_when_unsuccessful`` only affects the client: it turns an
    "already subscribed" conflict into an exception and is never sent.
    """

    format: str | None = None
    timeout: int | None = None  # Milliseconds; enables keep-alive
    livevalidation: bool | None = None
    error_when_unsuccessful: bool = Field(default=False, alias="errorWhenUnsuccessful")

    model_config = {"populate_by_name": True, "frozen": True}

    def to_query_params(self, model_uri: str, default_format: str) -> dict[str, str]:
        """Build the subscription query parameters.

        Unset options are omitted, ``format`` falls back to the client default.
        """
        params: dict[str, str] = {
            "modeluri": model_uri,
            "format": self.format or default_format,
        }
        if self.timeout is not None:
            params["timeout"] = str(self.timeout)
        if self.livevalidation is not None:
            params["livevalidation"] = "true" if self.livevalidation else "false"
        return params


class ServerConfiguration(BaseModel):
    """Workspace configuration pushed to the server."""

    workspace_root: str = Field(..., alias="workspaceRoot")
    ui_schema_folder: str | None = Field(default=None, alias="uiSchemaFolder")

    model_config = {"populate_by_name": True}

    def to_request_body(self) -> dict[str, str]:
        """Serialise with ``file://`` URI prefixes stripped from both paths."""
        body = {"workspaceRoot": self.workspace_root.removeprefix("file://")}
        if self.ui_schema_folder is not None:
            body["uiSchemaFolder"] = self.ui_schema_folder.removeprefix("file://")
        return body


# =============================================================================
# COMMANDS
# =============================================================================


class ModelServerCommand(BaseModel):
    """Edit command executed by the server against a model."""

    e_class: str = Field(default=COMMAND_ECLASS, alias="eClass")
    type: str
    properties: dict[str, str] | None = None

    model_config = {"populate_by_name": True}

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class CompoundCommand(ModelServerCommand):
    """Several commands executed (and undone) as one unit."""

    e_class: str = Field(default=COMPOUND_COMMAND_ECLASS, alias="eClass")
    type: str = "compound"
    commands: list[SerializeAsAny[ModelServerCommand]] = Field(default_factory=list)

    def add(self, command: ModelServerCommand) -> "CompoundCommand":
        self.commands.append(command)
        return self
