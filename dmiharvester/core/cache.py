# ==============================================================================
# ARTIFACT CACHE MODULE
# ==============================================================================
# Size-bounded on-disk cache for rendered artifacts (GIFs, thumbnails, PNGs).
#
# Layout under the cache root:
#   manifest.db                  - SQLite manifest (see database.py)
#   ab/abcdef0123....gif         - payloads, named by key digest
#
# Keys are (source fingerprint, render kind, render params). Editing a DMI
# changes its fingerprint, so old artifacts are simply never asked for again
# and can be dropped with invalidate().
#
# Concurrency:
#   - get_or_render() is single-flight: concurrent callers for one key wait
#     for the first caller's render instead of rendering again
#   - renders run outside the lock, so different keys render in parallel
#   - if a render fails, every waiter gets the same exception and nothing
#     is stored
#
# Usage:
#   cache = ArtifactCache(cache_dir, max_bytes=256 * 1024 * 1024)
#   key = CacheKey.make(dmi.fingerprint, "gif", state="walk", direction=0)
#   artifact = cache.get_or_render(key, lambda: render_gif(...))
#   cache.purge_all()      # refuses unsafe directories
# ==============================================================================

import os
import json
import shutil
import hashlib
import itertools
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from .database import Database, MANIFEST_NAME
from .errors import CacheMiss, ConfigError, IoError
from .paths import validate_destructive_path
from .reports import ReportLog


# File extensions per render kind; anything else is stored as .bin
KIND_EXTENSIONS = {
    "gif": ".gif",
    "png": ".png",
    "thumbnail": ".png",
}


# ==============================================================================
# DATA CLASSES
# ==============================================================================

@dataclass(frozen=True)
class CacheKey:
    """
    Identity of a rendered artifact.

    Attributes:
        fingerprint: Content fingerprint of the source DMI
        kind: Render kind ("gif", "thumbnail", "png")
        params: Render parameters as sorted (name, value) pairs
    """
    fingerprint: str
    kind: str
    params: Tuple[Tuple[str, Any], ...] = ()

    @classmethod
    def make(cls, fingerprint: str, kind: str, **params) -> "CacheKey":
        return cls(fingerprint, kind, tuple(sorted(params.items())))

    @property
    def params_dict(self) -> Dict[str, Any]:
        return dict(self.params)

    @property
    def digest(self) -> str:
        """Stable sha256 of the key, used as the payload file name."""
        blob = json.dumps([self.fingerprint, self.kind, self.params_dict],
                          sort_keys=True, default=str)
        return hashlib.sha256(blob.encode("utf-8")).hexdigest()

    @property
    def extension(self) -> str:
        return KIND_EXTENSIONS.get(self.kind, ".bin")


@dataclass(frozen=True)
class CacheArtifact:
    """
    A rendered artifact as returned to callers.

    Attributes:
        key: The CacheKey
        data: Payload bytes
        path: Payload file, or None when the artifact was not persisted
        from_cache: True if served from disk without rendering
    """
    key: CacheKey
    data: bytes = field(repr=False)
    path: Optional[str] = None
    from_cache: bool = False

    @property
    def size(self) -> int:
        return len(self.data)

    @property
    def persisted(self) -> bool:
        return self.path is not None


class _InFlight:
    """A render in progress; waiters block on `done`."""

    def __init__(self):
        self.done = threading.Event()
        self.result: Optional[CacheArtifact] = None
        self.error: Optional[BaseException] = None


# ==============================================================================
# ARTIFACT CACHE
# ==============================================================================

class ArtifactCache:
    """
    Persistent LRU cache of rendered artifacts.

    The cache directory and its manifest are created on first write, so a
    misconfigured path is never touched until something is stored in it.

    Attributes:
        root (str): Cache directory as configured
        max_bytes (int): Size budget for all payloads
        protected_roots (list): Asset roots purge_all() must never delete
        reporter (ReportLog): Receives refusals and I/O problems
    """

    def __init__(self, cache_dir: str, max_bytes: int = 256 * 1024 * 1024,
                 protected_roots: Iterable[str] = (), reporter: Optional[ReportLog] = None):
        self.root = os.path.abspath(os.path.expanduser(cache_dir)) if cache_dir else ""
        self.max_bytes = max(0, int(max_bytes))
        self.protected_roots = [r for r in protected_roots if r]
        self.reporter = reporter if reporter is not None else ReportLog()

        self._lock = threading.Lock()
        self._pending: Dict[str, _InFlight] = {}
        self._db: Optional[Database] = None
        self._seq = None

    # ==========================================================================
    # MANIFEST
    # ==========================================================================

    @property
    def db(self) -> Database:
        """The manifest, opened (and the cache root created) on first use."""
        if self._db is None:
            if not self.root:
                raise ConfigError("Cache directory is not configured")
            os.makedirs(self.root, exist_ok=True)
            self._db = Database(os.path.join(self.root, MANIFEST_NAME))
            self._seq = itertools.count(self._db.max_access_seq() + 1)
        return self._db

    def _has_manifest(self) -> bool:
        return self._db is not None or os.path.isfile(os.path.join(self.root, MANIFEST_NAME))

    def _next_seq(self) -> int:
        return next(self._seq)

    def close(self):
        with self._lock:
            if self._db is not None:
                self._db.close()
                self._db = None

    def _payload_path(self, rel_path: str) -> str:
        return os.path.join(self.root, rel_path)

    # ==========================================================================
    # LOOKUP / RENDER
    # ==========================================================================

    def get_or_render(self, key: CacheKey, render_fn: Callable[[], bytes]) -> CacheArtifact:
        """
        Return the artifact for `key`, rendering it at most once.

        Args:
            key: Artifact identity
            render_fn: Zero-argument callable producing the payload bytes

        Returns:
            CacheArtifact (from_cache=True on a hit)

        Raises:
            Whatever render_fn raises, in the rendering thread and in every
            thread that was waiting for it
        """
        digest = key.digest

        with self._lock:
            try:
                return self._lookup(key)
            except CacheMiss:
                pass

            flight = self._pending.get(digest)
            owner = flight is None
            if owner:
                flight = _InFlight()
                self._pending[digest] = flight

        if not owner:
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            return flight.result

        try:
            data = render_fn()
            if not isinstance(data, (bytes, bytearray)):
                raise TypeError(f"render_fn returned {type(data).__name__}, expected bytes")
            with self._lock:
                flight.result = self._store(key, bytes(data))
            return flight.result
        except BaseException as e:
            flight.error = e
            raise
        finally:
            with self._lock:
                self._pending.pop(digest, None)
            flight.done.set()

    def _lookup(self, key: CacheKey) -> CacheArtifact:
        """Serve a stored artifact. Caller holds the lock."""
        digest = key.digest
        record = self.db.get(digest)
        if record is None or record.fingerprint != key.fingerprint:
            raise CacheMiss("Not cached", path=digest)

        path = self._payload_path(record.rel_path)
        try:
            with open(path, 'rb') as f:
                data = f.read()
        except OSError:
            data = None

        if data is None or len(data) != record.size:
            # Payload vanished or was truncated behind our back
            self.db.delete([digest])
            self._remove_file(path)
            raise CacheMiss("Stale manifest entry", path=digest)

        self.db.touch(digest, self._next_seq())
        return CacheArtifact(key=key, data=data, path=path, from_cache=True)

    def _store(self, key: CacheKey, data: bytes) -> CacheArtifact:
        """Persist a fresh artifact and evict to budget. Caller holds the lock."""
        size = len(data)
        if size > self.max_bytes:
            return CacheArtifact(key=key, data=data)

        digest = key.digest
        rel_path = os.path.join(digest[:2], digest + key.extension)
        path = self._payload_path(rel_path)

        try:
            os.makedirs(os.path.dirname(path), exist_ok=True)
            tmp_path = path + ".tmp"
            with open(tmp_path, 'wb') as f:
                f.write(data)
            os.replace(tmp_path, path)
        except OSError as e:
            self.reporter.add_error(digest, IoError(f"Could not store artifact: {e}", path=path))
            return CacheArtifact(key=key, data=data)

        self.db.put(digest, key.fingerprint, key.kind, key.params_dict,
                    rel_path, size, self._next_seq())
        self._evict(keep=digest)
        return CacheArtifact(key=key, data=data, path=path)

    def _evict(self, keep: Optional[str] = None):
        """Drop least recently used artifacts until under budget."""
        total = self.db.total_size()
        if total <= self.max_bytes:
            return

        victims = []
        for record in self.db.oldest_first():
            if total <= self.max_bytes:
                break
            if record.key_digest == keep:
                continue
            self._remove_file(self._payload_path(record.rel_path))
            victims.append(record.key_digest)
            total -= record.size

        self.db.delete(victims)

    def _remove_file(self, path: str):
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            self.reporter.add_error(path, IoError(f"Could not remove artifact: {e}", path=path))

    # ==========================================================================
    # MAINTENANCE
    # ==========================================================================

    def invalidate(self, fingerprint: str) -> int:
        """
        Drop every artifact rendered from a source fingerprint.

        Returns:
            Number of artifacts removed
        """
        with self._lock:
            if not self._has_manifest():
                return 0
            records = self.db.by_fingerprint(fingerprint)
            for record in records:
                self._remove_file(self._payload_path(record.rel_path))
            return self.db.delete([r.key_digest for r in records])

    def purge_all(self) -> int:
        """
        Delete every artifact under the cache root.

        The directory is validated first: it must exist, be a directory and
        must not resolve to the filesystem root, the home directory, an asset
        root, or an ancestor of any of those. The manifest file itself is
        kept and emptied.

        Returns:
            Number of directory entries removed

        Raises:
            ConfigError: Validation failed; nothing was deleted
        """
        with self._lock:
            try:
                real = validate_destructive_path(self.root, self.protected_roots)
            except ConfigError as e:
                self.reporter.add_error(self.root or "<cache_dir>", e)
                raise

            removed = 0
            for entry in os.scandir(real):
                if entry.name.startswith(MANIFEST_NAME):
                    continue
                try:
                    if entry.is_dir(follow_symlinks=False):
                        shutil.rmtree(entry.path)
                    else:
                        os.remove(entry.path)
                    removed += 1
                except OSError as e:
                    self.reporter.add_error(entry.path, IoError(str(e), path=entry.path))

            self.db.clear()
            return removed

    # ==========================================================================
    # STATISTICS
    # ==========================================================================

    def contains(self, key: CacheKey) -> bool:
        """True if a payload for `key` is stored (does not count as an access)."""
        with self._lock:
            if not self._has_manifest():
                return False
            record = self.db.get(key.digest)
            return record is not None and os.path.isfile(self._payload_path(record.rel_path))

    def total_size(self) -> int:
        with self._lock:
            if not self._has_manifest():
                return 0
            return self.db.total_size()

    def stats(self) -> dict:
        """Manifest statistics plus the configured budget."""
        with self._lock:
            if not self._has_manifest():
                stats = {'artifacts': 0, 'total_bytes': 0, 'kinds': {}}
            else:
                stats = self.db.get_stats()
            stats['root'] = self.root
            stats['max_bytes'] = self.max_bytes
            stats['pending'] = len(self._pending)
            return stats
