# ==============================================================================
# CORE MODULE INIT
# ==============================================================================
# Core engine modules for DMI Harvester.
#
# This package contains the fundamental building blocks:
#   - Errors: Exception taxonomy and the structured report channel
#   - Hasher: Content fingerprints (MD5/SHA256)
#   - Scanner: Recursive .dmi discovery
#   - Index: Searchable in-memory index
#   - Cache: Size-bounded artifact cache with a SQLAlchemy manifest
#   - Library: Facade wiring all of the above together
#   - Config / Paths: Application settings and user directories
#
# Usage:
#   from dmiharvester.core import IconLibrary
#   from dmiharvester.core.config import get_config
# ==============================================================================

from .errors import (
    HarvesterError, DecodeError, FormatError, MetadataError, GeometryError,
    IoError, ConfigError, CacheMiss, StateNotFound,
)
from .reports import Report, ReportLog
from .hasher import FileHasher
from .paths import Paths, validate_destructive_path
from .config import Config, get_config
from .database import Database, CachedArtifact
from .cache import ArtifactCache, CacheKey, CacheArtifact
from .scanner import AssetScanner
from .index import IconIndex, IndexEntry, SearchMatch, BuildSummary
from .library import IconLibrary, SearchResult

__all__ = [
    # Errors
    'HarvesterError', 'DecodeError', 'FormatError', 'MetadataError',
    'GeometryError', 'IoError', 'ConfigError', 'CacheMiss', 'StateNotFound',

    # Reports
    'Report', 'ReportLog',

    # Hashing
    'FileHasher',

    # Configuration / paths
    'Config', 'get_config', 'Paths', 'validate_destructive_path',

    # Cache
    'Database', 'CachedArtifact', 'ArtifactCache', 'CacheKey', 'CacheArtifact',

    # Scanning / indexing
    'AssetScanner', 'IconIndex', 'IndexEntry', 'SearchMatch', 'BuildSummary',

    # Facade
    'IconLibrary', 'SearchResult',
]
