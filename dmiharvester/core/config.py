# ==============================================================================
# DMI HARVESTER - CONFIGURATION MODULE
# ==============================================================================
# Centralized configuration management for the application.
#
# This module handles:
#   - Loading/saving configuration from a JSON file
#   - Default values for all settings
#   - Clamping numeric settings to sane ranges
#
# Configuration is stored in: <user data dir>/config.json (see Paths)
#
# Usage:
#   from dmiharvester.core.config import Config
#   config = Config()
#   config.load()
#   print(config.cache_dir)
#   config.asset_roots = ["/srv/ss13/icons"]
#   config.save()
# ==============================================================================

import os
import json
from typing import Optional, Dict, Any, List

from .paths import Paths


# ==============================================================================
# DEFAULT CONFIGURATION VALUES
# ==============================================================================
# These are used when no config file exists or when values are missing.
# Empty cache_dir / log_dir mean "use the Paths default".

DEFAULT_CONFIG = {
    # -------------------------------------------------------------------------
    # PATHS
    # -------------------------------------------------------------------------
    # Directories scanned for .dmi files
    "asset_roots": [],

    # Rendered artifacts (GIFs, thumbnails) and their manifest
    "cache_dir": "",

    # Session logs written by the command line
    "log_dir": "",

    # -------------------------------------------------------------------------
    # CACHE
    # -------------------------------------------------------------------------
    # Size budget for the artifact cache (bytes)
    "cache_max_bytes": 256 * 1024 * 1024,

    # Fingerprint algorithm (md5, sha256)
    "hash_algorithm": "sha256",

    # -------------------------------------------------------------------------
    # SCANNING / INDEXING
    # -------------------------------------------------------------------------
    # Number of parallel decode threads
    "scan_threads": 4,

    # How deep to descend below each asset root
    "max_scan_depth": 20,

    # -------------------------------------------------------------------------
    # RENDERING
    # -------------------------------------------------------------------------
    # GIF frames shorter than this are stretched (ms)
    "min_frame_delay_ms": 20,

    # Thumbnail edge length (pixels)
    "thumbnail_size": 64,

    # Resampling filter for thumbnails (nearest, bilinear, bicubic, lanczos)
    "resize_filter": "nearest",

    # -------------------------------------------------------------------------
    # BROWSING
    # -------------------------------------------------------------------------
    # Search results per page
    "page_size": 20,

    # Separator used when listing all states of a file
    "state_delimiter": ", ",

    # -------------------------------------------------------------------------
    # LOGGING
    # -------------------------------------------------------------------------
    # Session logs kept in log_dir
    "max_log_files": 10,
}

HASH_ALGORITHMS = ('md5', 'sha256')
RESIZE_FILTERS = ('nearest', 'bilinear', 'bicubic', 'lanczos')


# ==============================================================================
# CONFIGURATION CLASS
# ==============================================================================
class Config:
    """
    Configuration manager for DMI Harvester.

    Handles loading, saving, and accessing application settings.
    Settings are stored in a JSON file and can be accessed as
    properties on this object.

    Attributes:
        config_path: Path to the configuration file
        data: Dictionary containing all settings

    Example:
        >>> config = Config()
        >>> config.load()
        >>> config.cache_max_bytes = 64 * 1024 * 1024
        >>> config.save()
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to config file. If None, uses default location.
        """
        self.config_path = config_path or Paths.get_config_path()

        self.data: Dict[str, Any] = json.loads(json.dumps(DEFAULT_CONFIG))

        # Track if config has been modified
        self._modified = False

        # Problems found while loading; shown by the command line
        self.load_errors: List[str] = []

    # -------------------------------------------------------------------------
    # LOADING AND SAVING
    # -------------------------------------------------------------------------

    def load(self) -> bool:
        """
        Load configuration from file.

        If the file doesn't exist, defaults are used.
        Missing keys are filled with defaults, unknown keys are dropped and
        every known key is passed through its property setter.

        Returns:
            True if file was loaded, False if using defaults
        """
        self.load_errors = []
        if not os.path.isfile(self.config_path):
            return False

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded = json.load(f)
        except json.JSONDecodeError as e:
            self.load_errors.append(f"Invalid config file {self.config_path}: {e}")
            return False
        except OSError as e:
            self.load_errors.append(f"Failed to load config {self.config_path}: {e}")
            return False

        if not isinstance(loaded, dict):
            self.load_errors.append(f"Invalid config file {self.config_path}: not an object")
            return False

        for key, value in loaded.items():
            if key not in self.data:
                continue
            try:
                self.set(key, value)
            except (TypeError, ValueError) as e:
                self.load_errors.append(f"Ignoring {key}: {e}")

        self._modified = False
        return True

    def save(self) -> bool:
        """
        Save configuration to file.

        Creates the directory if it doesn't exist.

        Returns:
            True if saved successfully
        """
        try:
            os.makedirs(os.path.dirname(os.path.abspath(self.config_path)), exist_ok=True)

            with open(self.config_path, 'w', encoding='utf-8') as f:
                json.dump(self.data, f, indent=4, sort_keys=True)

            self._modified = False
            return True

        except OSError as e:
            self.load_errors.append(f"Failed to save config: {e}")
            return False

    def reset_to_defaults(self):
        """Reset all settings to their default values."""
        self.data = json.loads(json.dumps(DEFAULT_CONFIG))
        self._modified = True

    @property
    def modified(self) -> bool:
        return self._modified

    # -------------------------------------------------------------------------
    # PROPERTY ACCESS
    # -------------------------------------------------------------------------
    # These properties provide type-safe access to every setting

    @property
    def asset_roots(self) -> List[str]:
        """Get the asset root directories."""
        return list(self.data.get('asset_roots', []))

    @asset_roots.setter
    def asset_roots(self, value):
        """Set the asset roots (a list, or one path)."""
        if isinstance(value, str):
            value = [value]
        self.data['asset_roots'] = [str(v) for v in value if str(v).strip()]
        self._modified = True

    @property
    def cache_dir(self) -> str:
        """Get the artifact cache directory."""
        return self.data.get('cache_dir') or Paths.get_cache_dir()

    @cache_dir.setter
    def cache_dir(self, value: str):
        self.data['cache_dir'] = str(value or '')
        self._modified = True

    @property
    def log_dir(self) -> str:
        """Get the session log directory."""
        return self.data.get('log_dir') or Paths.get_logs_dir()

    @log_dir.setter
    def log_dir(self, value: str):
        self.data['log_dir'] = str(value or '')
        self._modified = True

    @property
    def cache_max_bytes(self) -> int:
        """Get the cache size budget in bytes."""
        return self.data.get('cache_max_bytes', DEFAULT_CONFIG['cache_max_bytes'])

    @cache_max_bytes.setter
    def cache_max_bytes(self, value: int):
        """Set the cache budget (never negative)."""
        self.data['cache_max_bytes'] = max(0, int(value))
        self._modified = True

    @property
    def hash_algorithm(self) -> str:
        """Get the hash algorithm (md5, sha256)."""
        return self.data.get('hash_algorithm', 'sha256')

    @hash_algorithm.setter
    def hash_algorithm(self, value: str):
        """Set the hash algorithm."""
        if value not in HASH_ALGORITHMS:
            raise ValueError("hash_algorithm must be 'md5' or 'sha256'")
        self.data['hash_algorithm'] = value
        self._modified = True

    @property
    def scan_threads(self) -> int:
        """Get the number of decode threads."""
        return self.data.get('scan_threads', 4)

    @scan_threads.setter
    def scan_threads(self, value: int):
        """Set the number of decode threads (1-16)."""
        self.data['scan_threads'] = max(1, min(16, int(value)))
        self._modified = True

    @property
    def max_scan_depth(self) -> int:
        return self.data.get('max_scan_depth', 20)

    @max_scan_depth.setter
    def max_scan_depth(self, value: int):
        """Set the recursion depth (1-100)."""
        self.data['max_scan_depth'] = max(1, min(100, int(value)))
        self._modified = True

    @property
    def min_frame_delay_ms(self) -> int:
        return self.data.get('min_frame_delay_ms', 20)

    @min_frame_delay_ms.setter
    def min_frame_delay_ms(self, value: int):
        self.data['min_frame_delay_ms'] = max(0, min(1000, int(value)))
        self._modified = True

    @property
    def thumbnail_size(self) -> int:
        """Get thumbnail size in pixels."""
        return self.data.get('thumbnail_size', 64)

    @thumbnail_size.setter
    def thumbnail_size(self, value: int):
        """Set thumbnail size (32-512)."""
        self.data['thumbnail_size'] = max(32, min(512, int(value)))
        self._modified = True

    @property
    def resize_filter(self) -> str:
        return self.data.get('resize_filter', 'nearest')

    @resize_filter.setter
    def resize_filter(self, value: str):
        value = str(value).lower()
        if value not in RESIZE_FILTERS:
            raise ValueError(f"resize_filter must be one of {', '.join(RESIZE_FILTERS)}")
        self.data['resize_filter'] = value
        self._modified = True

    @property
    def page_size(self) -> int:
        """Get the number of search results per page."""
        return self.data.get('page_size', 20)

    @page_size.setter
    def page_size(self, value: int):
        """Set the page size (10-200)."""
        self.data['page_size'] = max(10, min(200, int(value)))
        self._modified = True

    @property
    def state_delimiter(self) -> str:
        return self.data.get('state_delimiter', ', ')

    @state_delimiter.setter
    def state_delimiter(self, value: str):
        self.data['state_delimiter'] = str(value)
        self._modified = True

    @property
    def max_log_files(self) -> int:
        return self.data.get('max_log_files', 10)

    @max_log_files.setter
    def max_log_files(self, value: int):
        """Set how many session logs to keep (at least 1)."""
        self.data['max_log_files'] = max(1, int(value))
        self._modified = True

    # -------------------------------------------------------------------------
    # GENERIC ACCESS
    # -------------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get a configuration value.

        Args:
            key: Configuration key
            default: Default value if key not found

        Returns:
            The configuration value
        """
        return self.data.get(key, default)

    def set(self, key: str, value: Any):
        """
        Set a configuration value.

        Known keys go through their property setter, so values are
        validated and clamped the same way as attribute assignment.

        Raises:
            KeyError: Unknown key
            ValueError: Invalid value
        """
        if key not in DEFAULT_CONFIG:
            raise KeyError(f"Unknown config key: {key}")
        setattr(self, key, value)

    def set_from_string(self, key: str, text: str):
        """
        Set a value typed on the command line.

        Lists are comma separated; numbers are parsed as int.
        """
        default = DEFAULT_CONFIG.get(key)
        if key not in DEFAULT_CONFIG:
            raise KeyError(f"Unknown config key: {key}")
        if isinstance(default, list):
            value = [part.strip() for part in text.split(',') if part.strip()]
        elif isinstance(default, int):
            value = int(text)
        else:
            value = text
        self.set(key, value)

    def __getitem__(self, key: str) -> Any:
        """Allow dictionary-style access: config['key']"""
        return self.data[key]

    def __setitem__(self, key: str, value: Any):
        """Allow dictionary-style setting: config['key'] = value"""
        self.set(key, value)


# ==============================================================================
# GLOBAL CONFIG INSTANCE
# ==============================================================================
# This provides a singleton-like access to configuration

_global_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance.

    Creates and loads config on first call.

    Returns:
        The global Config instance
    """
    global _global_config

    if _global_config is None:
        _global_config = Config()
        _global_config.load()

    return _global_config


def reset_config():
    """Drop the global instance so the next get_config() reloads it."""
    global _global_config
    _global_config = None
