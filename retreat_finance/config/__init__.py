"""Configuration package."""

from retreat_finance.config.settings import (
    AppSettings,
    DatabaseSettings,
    Settings,
    get_settings,
)

__all__ = [
    "AppSettings",
    "DatabaseSettings",
    "Settings",
    "get_settings",
]
