# ==============================================================================
# DMI HARVESTER - PATH UTILITIES
# ==============================================================================
# Per-platform locations for user data, plus the safety gate every
# destructive directory operation goes through.
#
# User data (config, cache, logs) is stored in:
#   - Windows: %APPDATA%/DMIHarvester/
#   - Linux:   $XDG_CONFIG_HOME/DMIHarvester/ (~/.config/DMIHarvester/)
#   - macOS:   ~/Library/Application Support/DMIHarvester/
#
# Usage:
#   from dmiharvester.core.paths import Paths, validate_destructive_path
#   config_path = Paths.get_config_path()
#   safe_dir = validate_destructive_path(cache_dir, protected=asset_roots)
# ==============================================================================

import os
import sys
from typing import Iterable, Optional

from .errors import ConfigError


class Paths:
    """
    Centralized path management for DMI Harvester.

    Directory getters only compute paths; callers create directories when
    they first write to them.
    """

    # Application name for folder creation
    APP_NAME = "DMIHarvester"

    # Cache for computed paths
    _user_data_dir: Optional[str] = None

    @classmethod
    def get_user_data_dir(cls) -> str:
        """
        Get the user data directory.

        Returns:
            Absolute path to user data directory
        """
        if cls._user_data_dir is None:
            if sys.platform == 'win32':
                base = os.environ.get('APPDATA', os.path.expanduser('~'))
                cls._user_data_dir = os.path.join(base, cls.APP_NAME)
            elif sys.platform == 'darwin':
                cls._user_data_dir = os.path.join(
                    os.path.expanduser('~'),
                    'Library', 'Application Support', cls.APP_NAME
                )
            else:
                base = os.environ.get('XDG_CONFIG_HOME',
                                      os.path.join(os.path.expanduser('~'), '.config'))
                cls._user_data_dir = os.path.join(base, cls.APP_NAME)

        return cls._user_data_dir

    @classmethod
    def reset(cls):
        """Forget cached paths (environment changed)."""
        cls._user_data_dir = None

    @classmethod
    def get_config_path(cls) -> str:
        return os.path.join(cls.get_user_data_dir(), 'config.json')

    @classmethod
    def get_cache_dir(cls) -> str:
        """Default artifact cache directory."""
        return os.path.join(cls.get_user_data_dir(), 'cache')

    @classmethod
    def get_logs_dir(cls) -> str:
        """Default session log directory."""
        return os.path.join(cls.get_user_data_dir(), 'logs')

    @classmethod
    def ensure_directories(cls):
        """
        Ensure the default directories exist.

        Call this at application startup.
        """
        for path in (cls.get_user_data_dir(), cls.get_cache_dir(), cls.get_logs_dir()):
            os.makedirs(path, exist_ok=True)


# ==============================================================================
# DESTRUCTIVE PATH VALIDATION
# ==============================================================================

def _canonical(path: str) -> str:
    return os.path.normcase(os.path.realpath(os.path.expanduser(path)))


def _is_same_or_ancestor(candidate: str, target: str) -> bool:
    """True if `candidate` equals `target` or contains it."""
    if candidate == target:
        return True
    prefix = candidate if candidate.endswith(os.sep) else candidate + os.sep
    return target.startswith(prefix)


def validate_destructive_path(path: str, protected: Iterable[str] = ()) -> str:
    """
    Check that a directory is safe to empty.

    The path must exist and be a directory. After resolving symlinks it must
    not be the filesystem root, the home directory, any protected directory
    (asset roots), or an ancestor of any of those.

    Args:
        path: Directory about to be cleared (cache_dir, log_dir)
        protected: Directories that must never be deleted

    Returns:
        The canonical (symlink-free) path

    Raises:
        ConfigError: If the path fails any check
    """
    if not path or not str(path).strip():
        raise ConfigError("Refusing to delete: directory is not configured")

    real = _canonical(path)

    if not os.path.exists(real):
        raise ConfigError("Refusing to delete: directory does not exist", path=path)
    if not os.path.isdir(real):
        raise ConfigError("Refusing to delete: not a directory", path=path)

    if os.path.dirname(real) == real:
        raise ConfigError(f"Refusing to delete: {real} is a filesystem root", path=path)

    home = _canonical('~')
    if _is_same_or_ancestor(real, home):
        raise ConfigError(
            f"Refusing to delete: {real} is the home directory or contains it", path=path
        )

    for root in protected:
        if not root:
            continue
        if _is_same_or_ancestor(real, _canonical(root)):
            raise ConfigError(
                f"Refusing to delete: {real} is asset root {root} or contains it", path=path
            )

    return real
