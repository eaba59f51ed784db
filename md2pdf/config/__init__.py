"""
Configuration - environment-driven settings with a process-wide accessor.
"""

from .settings import Settings, get_settings, init_settings, reset_settings

__all__ = ["Settings", "get_settings", "init_settings", "reset_settings"]
