"""Model server endpoint paths, relative to the API base URL."""


class ModelServerPaths:
    """Endpoint paths of the model server API v1."""

    API_ENDPOINT = "/api/v1"

    MODEL_CRUD = "models"
    MODEL_URIS = "modeluris"
    MODEL_ELEMENT = "modelelement"

    CLOSE = "close"
    SAVE = "save"
    SAVE_ALL = "saveall"

    VALIDATION = "validation"
    VALIDATION_CONSTRAINTS = "validation/constraints"

    TYPE_SCHEMA = "typeschema"
    UI_SCHEMA = "uischema"

    SERVER_CONFIGURE = "server/configure"
    SERVER_PING = "server/ping"

    EDIT = "edit"
    UNDO = "undo"
    REDO = "redo"

    SUBSCRIPTION = "subscribe"
