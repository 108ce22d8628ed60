"""Configuration module for the apuração engine."""

from .settings import (
    DatabaseSettings,
    ResilienceSettings,
    ScoringSettings,
    Settings,
    get_settings,
)

__all__ = [
    "DatabaseSettings",
    "ResilienceSettings",
    "ScoringSettings",
    "Settings",
    "get_settings",
]
