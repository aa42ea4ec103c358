"""Client settings configuration."""

import logging
import sys

from neuroglia.hosting.abstractions import ApplicationSettings


class Settings(ApplicationSettings):
    """Model server connection settings and logging configuration."""

    # Debugging Configuration
    debug: bool = False
    log_level: str = "INFO"

    # Observability Configuration
    service_name: str = "modelserver-client"
    service_version: str = "0.1.0"

    # Model Server Connection
    modelserver_scheme: str = "http"  # http or https; subscriptions use ws / wss accordingly
    modelserver_hostname: str = "localhost"
    modelserver_port: int = 8081
    modelserver_api_path: str = "api/v1/"  # Prefix of every endpoint path
    modelserver_default_format: str = "json"  # Format requested when a call does not specify one
    modelserver_timeout: float = 30.0  # HTTP timeout in seconds

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"  # Ignore extra environment variables

    @property
    def modelserver_base_url(self) -> str:
        """Base URL of the model server API, always ending with a slash."""
        api_path = self.modelserver_api_path.strip("/")
        base_url = f"{self.modelserver_scheme}://{self.modelserver_hostname}:{self.modelserver_port}/"
        return f"{base_url}{api_path}/" if api_path else base_url


app_settings = Settings()


def configure_logging(log_level: str = "INFO") -> None:
    """
    Configure application-wide logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Set third-party loggers to WARNING to reduce noise
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)
