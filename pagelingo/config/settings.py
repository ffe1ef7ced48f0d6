# pagelingo/config/settings.py
"""
Application settings management for PageLingo.

Settings file layout:
- settings.template.json: developer defaults, overwritten on update
- user_settings.json: only the keys the user changed (USER_SETTINGS_KEYS)
- On load the template is read first and user_settings overrides it

Caching:
- _settings_cache maps the settings path to an AppSettings instance
- load() returns the cached instance until either file's mtime changes
- save() refreshes the cache
- invalidate_settings_cache() clears it explicitly

API keys are never stored in either file; they come from the environment.
"""

import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
import json

# Module logger
logger = logging.getLogger(__name__)

# Settings cache: path -> (mtime_template, mtime_user, AppSettings)
_settings_cache: dict[str, tuple[float, float, "AppSettings"]] = {}
_settings_cache_lock = threading.Lock()

# Settings the user may change (persisted to user_settings.json)
USER_SETTINGS_KEYS = {
    "provider",
    "target_language",
    "batch_size",
    "font_file",
    "output_directory",
}

SUPPORTED_PROVIDERS = ("gemini", "openai", "deepseek")

# Environment variables holding provider credentials
API_KEY_ENV_VARS = {
    "gemini": "GEMINI_API_KEY",
    "openai": "OPENAI_API_KEY",
    "deepseek": "DEEPSEEK_API_KEY",
}

# Value shipped in sample .env files; treated as "not configured"
PLACEHOLDER_API_KEY = "PLACEHOLDER_API_KEY"


@dataclass
class AppSettings:
    """Application settings"""

    # Translation
    provider: str = "gemini"
    target_language: str = "Portuguese (Brazil)"
    batch_size: int = 1                 # Pages translated concurrently per checkpoint commit
    max_retries: int = 3                # Retries after the first attempt
    retry_base_delay: float = 2.0       # Seconds, doubled per retry (2, 4, 8)
    request_timeout: int = 120          # Seconds per backend request
    max_chunk_chars: int = 1500         # Chunk limit for size-limited backends

    # Models
    gemini_model: str = "gemini-2.0-flash"
    openai_model: str = "gpt-4o-mini"
    deepseek_model: str = "deepseek-chat"

    # Endpoints
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    openai_base_url: str = "https://api.openai.com/v1"
    relay_url: str = "http://127.0.0.1:8787/api/deepseek"

    # Checkpoints
    checkpoint_ttl_hours: float = 24.0
    checkpoint_db_path: Optional[str] = None    # None = ~/.pagelingo/checkpoints.db

    # Input
    max_upload_mb: int = 50
    line_break_threshold: float = 10.0  # Baseline shift (PDF units) that starts a new line

    # Rasterizing
    render_scale: float = 1.5
    jpeg_quality: int = 80

    # Overlay
    overlay_margin_mm: float = 15.0
    overlay_opacity: float = 0.95
    font_size: float = 11.0             # pt
    line_height_mm: float = 6.0
    font_file: Optional[str] = None     # TTF for scripts Helvetica cannot render

    # Output
    output_directory: Optional[str] = None  # None = same as input

    @classmethod
    def load(cls, path: Path, use_cache: bool = True) -> "AppSettings":
        """Load settings from the template and user settings files.

        Args:
            path: Settings base path (config/settings.json). Only its directory
                  is used to locate settings.template.json and user_settings.json.
            use_cache: Return the cached instance while the files are unchanged.
        """
        config_dir = path.parent
        template_path = config_dir / "settings.template.json"
        user_settings_path = config_dir / "user_settings.json"

        cache_key = str(path.resolve())

        template_mtime = template_path.stat().st_mtime if template_path.exists() else 0.0
        user_mtime = user_settings_path.stat().st_mtime if user_settings_path.exists() else 0.0

        if use_cache:
            with _settings_cache_lock:
                if cache_key in _settings_cache:
                    cached_template_mtime, cached_user_mtime, cached_settings = _settings_cache[cache_key]
                    if cached_template_mtime == template_mtime and cached_user_mtime == user_mtime:
                        logger.debug("Using cached settings for: %s", path)
                        return cached_settings

        data = {}

        # 1. Developer defaults
        if template_path.exists():
            try:
                with open(template_path, 'r', encoding='utf-8-sig') as f:
                    data = json.load(f)
                    logger.debug("Loaded template settings from: %s", template_path)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning("Failed to load template settings: %s", e)

        # 2. User overrides
        if user_settings_path.exists():
            try:
                with open(user_settings_path, 'r', encoding='utf-8-sig') as f:
                    user_data = json.load(f)
                    for key in USER_SETTINGS_KEYS:
                        if key in user_data:
                            data[key] = user_data[key]
                    logger.debug("Loaded user settings from: %s", user_settings_path)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                logger.warning("Failed to load user settings: %s", e)

        known_fields = {f.name for f in cls.__dataclass_fields__.values()}
        filtered_data = {k: v for k, v in data.items() if k in known_fields}

        settings = cls(**filtered_data)
        settings._validate()

        with _settings_cache_lock:
            _settings_cache[cache_key] = (template_mtime, user_mtime, settings)

        return settings

    def _validate(self) -> None:
        """Reset out-of-range values to defaults with a warning."""
        if self.provider not in SUPPORTED_PROVIDERS:
            logger.warning("Unknown provider %r, resetting to gemini", self.provider)
            self.provider = "gemini"

        if self.batch_size < 1:
            logger.warning("batch_size too small (%d), resetting to 1", self.batch_size)
            self.batch_size = 1

        if self.max_retries < 0:
            logger.warning("max_retries negative (%d), resetting to 3", self.max_retries)
            self.max_retries = 3

        if self.retry_base_delay < 0:
            self.retry_base_delay = 2.0

        if self.request_timeout < 5:
            logger.warning("request_timeout too small (%d), resetting to 120", self.request_timeout)
            self.request_timeout = 120
        elif self.request_timeout > 1800:
            logger.warning("request_timeout too large (%d), resetting to 120", self.request_timeout)
            self.request_timeout = 120

        if self.max_chunk_chars < 100:
            logger.warning("max_chunk_chars too small (%d), resetting to 1500", self.max_chunk_chars)
            self.max_chunk_chars = 1500

        if self.checkpoint_ttl_hours <= 0:
            self.checkpoint_ttl_hours = 24.0

        if self.render_scale <= 0 or self.render_scale > 6:
            logger.warning("render_scale out of range (%.2f), resetting to 1.5", self.render_scale)
            self.render_scale = 1.5

        if not 1 <= self.jpeg_quality <= 100:
            logger.warning("jpeg_quality out of range (%d), resetting to 80", self.jpeg_quality)
            self.jpeg_quality = 80

        if not 0.0 <= self.overlay_opacity <= 1.0:
            self.overlay_opacity = 0.95

        if self.font_size < 4.0 or self.font_size > 72.0:
            logger.warning("font_size out of range (%.1f), resetting to 11", self.font_size)
            self.font_size = 11.0

        if self.line_height_mm <= 0:
            self.line_height_mm = 6.0

    def save(self, path: Path) -> None:
        """Save user-changeable settings to user_settings.json.

        settings.template.json is never modified.

        Args:
            path: Settings base path (config/settings.json)
        """
        config_dir = path.parent
        user_settings_path = config_dir / "user_settings.json"
        template_path = config_dir / "settings.template.json"

        config_dir.mkdir(parents=True, exist_ok=True)

        data = {}
        for key in USER_SETTINGS_KEYS:
            if hasattr(self, key):
                data[key] = getattr(self, key)

        with open(user_settings_path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2, ensure_ascii=False)

        logger.debug("Saved user settings to: %s", user_settings_path)

        cache_key = str(path.resolve())
        template_mtime = template_path.stat().st_mtime if template_path.exists() else 0.0
        user_mtime = user_settings_path.stat().st_mtime if user_settings_path.exists() else 0.0
        with _settings_cache_lock:
            _settings_cache[cache_key] = (template_mtime, user_mtime, self)

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    @property
    def checkpoint_ttl_seconds(self) -> float:
        return self.checkpoint_ttl_hours * 3600.0

    def get_checkpoint_db_path(self) -> Optional[Path]:
        return Path(self.checkpoint_db_path).expanduser() if self.checkpoint_db_path else None

    def get_output_directory(self, input_path: Path) -> Path:
        """
        Get output directory for the translated file.
        Returns the input file's directory if output_directory is None.
        """
        if self.output_directory:
            return Path(self.output_directory)
        return input_path.parent


def get_api_key(provider: str) -> Optional[str]:
    """Read a provider's API key from the environment.

    Returns None when the variable is unset, blank, or still the placeholder.
    """
    env_var = API_KEY_ENV_VARS.get(provider)
    if env_var is None:
        return None
    value = os.environ.get(env_var, "").strip()
    if not value or value == PLACEHOLDER_API_KEY:
        return None
    return value


def get_default_settings_path() -> Path:
    """Get default settings file path"""
    return Path(__file__).parent.parent.parent / "config" / "settings.json"


def invalidate_settings_cache(path: Optional[Path] = None) -> None:
    """Invalidate settings cache.

    Args:
        path: Clear only this path's entry. None clears everything.
    """
    with _settings_cache_lock:
        if path is None:
            _settings_cache.clear()
            logger.debug("Cleared all settings cache")
        else:
            cache_key = str(path.resolve())
            if cache_key in _settings_cache:
                del _settings_cache[cache_key]
                logger.debug("Cleared settings cache for: %s", path)
