"""
Application Configuration Management
Re-exports the centralized settings from config_manager
"""

from .config_manager import settings, get_settings, AppSettings as Settings

__all__ = ["settings", "get_settings", "Settings"]
