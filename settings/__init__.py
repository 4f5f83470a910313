"""
Operator settings for the supply schedule service.
Handles adjustable configuration and signed remote updates.
"""

from .config_manager import ConfigManager, ConfigChange

__all__ = [
    "ConfigManager",
    "ConfigChange",
]
