"""Configuration package exports."""

from .loader import ConfigLocator, ConfigRepository
from .models import GlobalConfig, RemoteConfig

__all__ = [
    "ConfigLocator",
    "ConfigRepository",
    "GlobalConfig",
    "RemoteConfig",
]
