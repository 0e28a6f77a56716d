"""Core application: config, logging, exceptions."""

from approvalhub.core.config import Settings, get_settings
from approvalhub.core.logging import DevFormatter, JsonFormatter, configure_logging

__all__ = [
    "DevFormatter",
    "JsonFormatter",
    "Settings",
    "configure_logging",
    "get_settings",
]
