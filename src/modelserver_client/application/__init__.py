"""Application layer: settings and message mapping."""

from . import message_mapper
from .settings import Settings, app_settings, configure_logging

__all__ = [
    "Settings",
    "app_settings",
    "configure_logging",
    "message_mapper",
]
