"""
Configuration module for extraction settings.

Provides:
- YAML settings loading with validation
- Environment variable substitution
"""

from .loader import ConfigLoader, ExtractionSettings, load_settings, substitute_env_vars

__all__ = ["ConfigLoader", "ExtractionSettings", "load_settings", "substitute_env_vars"]
