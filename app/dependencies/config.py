"""
FastAPI dependency utilities for injecting configuration.
"""

from fastapi import Depends

from app.core.config import AppSettings, LoyverseSettings, get_settings


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return get_settings()


def get_loyverse_settings(
    settings: AppSettings = Depends(get_app_settings),
) -> LoyverseSettings:
    """Narrow the application settings to the Loyverse group."""
    return settings.loyverse


SettingsDependency = Depends(get_app_settings)

__all__ = ["SettingsDependency", "get_app_settings", "get_loyverse_settings"]
