"""
Configuration module.

Provides:
- YAML settings loading
- Environment variable substitution
- Typed adapter, feed, cache and server settings
"""

from .loader import AppConfig, ConfigLoader, load_config

__all__ = ["AppConfig", "ConfigLoader", "load_config"]
