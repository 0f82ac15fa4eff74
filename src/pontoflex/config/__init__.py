"""Configuration: feature flags and env-overridable sync settings."""
from .sync import SyncConfig

__all__ = ["SyncConfig"]
