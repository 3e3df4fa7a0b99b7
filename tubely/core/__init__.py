"""Core module for configuration and shared infrastructure."""

from tubely.core.config import settings

__all__ = [
    "settings",
]
