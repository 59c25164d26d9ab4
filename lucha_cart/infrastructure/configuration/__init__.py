"""
Configuration Infrastructure

Contains cart configuration management.
"""

from .config import Settings, get_config, reset_config

__all__ = ["get_config", "reset_config", "Settings"]
