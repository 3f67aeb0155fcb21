"""Configuration module for contentmigrate."""

from .settings import (
    GenerationSettings,
    HttpSettings,
    ImageSettings,
    LogSettings,
    Settings,
    StorageSettings,
    get_settings,
)

__all__ = [
    "GenerationSettings",
    "HttpSettings",
    "ImageSettings",
    "LogSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
]
