# pagelingo/config/__init__.py
"""
Configuration for PageLingo.
"""

from pagelingo.config.settings import (
    AppSettings,
    get_api_key,
    get_default_settings_path,
    invalidate_settings_cache,
)

__all__ = ['AppSettings', 'get_api_key', 'get_default_settings_path', 'invalidate_settings_cache']
