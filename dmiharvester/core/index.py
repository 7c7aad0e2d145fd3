# ==============================================================================
# ICON INDEX MODULE
# ==============================================================================
# In-memory, searchable index of decoded DMI files.
#
# Every successfully decoded file contributes one group of IndexEntry
# objects, one per icon state. Files are decoded metadata-only, so building
# an index over thousands of icons never decompresses a sprite sheet.
#
# Threading:
#   - build() decodes on a ThreadPoolExecutor, pulling paths lazily with a
#     bounded number of decodes queued
#   - each file's entries are swapped in under a lock, so readers see either
#     the old or the new group for a path, never a mix
#   - a cancel Event is checked before each file; files already indexed stay
#
# Usage:
#   index = IconIndex(threads=4)
#   index.build(AssetScanner(roots).scan())
#   for match in index.search("walk"):
#       print(match.path, match.state_name)
#   print(f"{len(index.failures)} file(s) failed to decode")
# ==============================================================================

import os
import threading
from datetime import datetime
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, as_completed, wait
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sized, Tuple

from ..parsers.dmi_parser import DmiDecoder
from ..parsers.dmi_types import DmiFile
from .errors import HarvesterError, IoError
from .reports import ReportLog


# Decodes queued per worker thread while build() pulls more paths
PENDING_PER_THREAD = 4


# ==============================================================================
# DATA CLASSES
# ==============================================================================

@dataclass(frozen=True)
class IndexEntry:
    """
    One searchable (file, state) pair.

    Attributes:
        path (str):        Absolute path of the DMI
        basename (str):    File name including extension
        state_name (str):  Icon state name
        state_index (int): Position of the state in the file
    """
    path: str
    basename: str
    state_name: str
    state_index: int

    @property
    def stem(self) -> str:
        return os.path.splitext(self.basename)[0]


@dataclass(frozen=True)
class SearchMatch:
    """
    A ranked search hit.

    Attributes:
        entry: The matching IndexEntry
        exact: True if the query equals the state name or file name
        field: "state" or "file", whichever matched (state wins ties)
    """
    entry: IndexEntry
    exact: bool = False
    field: str = "state"

    @property
    def path(self) -> str:
        return self.entry.path

    @property
    def state_name(self) -> str:
        return self.entry.state_name

    @property
    def state_index(self) -> int:
        return self.entry.state_index

    def sort_key(self) -> Tuple[int, str, int]:
        return (0 if self.exact else 1, self.entry.path, self.entry.state_index)


@dataclass
class BuildSummary:
    """
    Outcome of the most recent build().

    Attributes:
        total (int):     Paths submitted
        indexed (int):   Files decoded and inserted
        failed (int):    Files that raised a decode or I/O error
        cancelled (bool): Whether the build was cancelled
        finished_at:     When the build returned
    """
    total: int = 0
    indexed: int = 0
    failed: int = 0
    cancelled: bool = False
    finished_at: Optional[datetime] = None

    @property
    def skipped(self) -> int:
        return self.total - self.indexed - self.failed


# ==============================================================================
# ICON INDEX
# ==============================================================================

class IconIndex:
    """
    Searchable collection of decoded DMI metadata.

    Attributes:
        decoder (DmiDecoder): Used for every decode
        threads (int): Worker count for build()
        cache: Optional ArtifactCache; refresh() invalidates stale artifacts
        reporter (ReportLog): Receives per-file failures
        failures (dict): path -> error for files that did not decode
        last_build (BuildSummary): Summary of the latest build()
    """

    def __init__(self, decoder: Optional[DmiDecoder] = None, threads: int = 4,
                 cache=None, reporter: Optional[ReportLog] = None):
        self.decoder = decoder or DmiDecoder()
        self.threads = max(1, int(threads))
        self.cache = cache
        self.reporter = reporter if reporter is not None else ReportLog()

        self._lock = threading.Lock()
        self._files: Dict[str, DmiFile] = {}
        self._entries: Dict[str, Tuple[IndexEntry, ...]] = {}
        self.failures: Dict[str, HarvesterError] = {}
        self.last_build = BuildSummary()

    # ==========================================================================
    # BUILDING
    # ==========================================================================

    def build(self, paths: Iterable[str], cancel_event: Optional[threading.Event] = None,
              progress_callback: Optional[Callable[[int, int, str], None]] = None) -> "IconIndex":
        """
        Decode and index a batch of files.

        Paths are pulled lazily and at most `threads * PENDING_PER_THREAD`
        decodes are queued at a time, so a scanner over a huge tree is never
        read into memory up front. Per-file errors are recorded in `failures`
        and reported; they never abort the build.

        Args:
            paths: DMI paths, e.g. AssetScanner.scan()
            cancel_event: Set it to stop before the next file
            progress_callback: Optional callback(current, total, path). When
                paths has no len(), total counts the files seen so far.

        Returns:
            self, for chaining
        """
        known_total = len(paths) if isinstance(paths, Sized) else None
        summary = BuildSummary()
        pending: Dict[Future, str] = {}
        done = 0

        def decode(path: str) -> Optional[DmiFile]:
            if cancel_event is not None and cancel_event.is_set():
                return None
            return self.decoder.decode_file(path, include_pixels=False)

        def collect(future: Future):
            nonlocal done
            path = pending.pop(future)
            try:
                dmi = future.result()
            except HarvesterError as e:
                self._record_failure(path, e)
                summary.failed += 1
            except OSError as e:
                self._record_failure(path, IoError(e.strerror or str(e), path=path))
                summary.failed += 1
            else:
                if dmi is not None:
                    self._insert(dmi)
                    summary.indexed += 1

            done += 1
            if progress_callback:
                total = known_total if known_total is not None else summary.total
                progress_callback(done, total, path)

        max_pending = self.threads * PENDING_PER_THREAD
        with ThreadPoolExecutor(max_workers=self.threads) as executor:
            for path in paths:
                path = os.path.abspath(path)
                summary.total += 1
                pending[executor.submit(decode, path)] = path
                if len(pending) >= max_pending:
                    finished, _ = wait(list(pending), return_when=FIRST_COMPLETED)
                    for future in finished:
                        collect(future)

            for future in as_completed(list(pending)):
                collect(future)

        summary.cancelled = cancel_event is not None and cancel_event.is_set()
        summary.finished_at = datetime.now()
        self.last_build = summary
        return self

    def _insert(self, dmi: DmiFile):
        basename = os.path.basename(dmi.path)
        entries = tuple(
            IndexEntry(path=dmi.path, basename=basename, state_name=state.name, state_index=i)
            for i, state in enumerate(dmi.states)
        )
        with self._lock:
            self._files[dmi.path] = dmi
            self._entries[dmi.path] = entries
            self.failures.pop(dmi.path, None)

    def _record_failure(self, path: str, error: HarvesterError):
        with self._lock:
            self._files.pop(path, None)
            self._entries.pop(path, None)
            self.failures[path] = error
        self.reporter.add_error(path, error)

    # ==========================================================================
    # QUERIES
    # ==========================================================================

    def search(self, query: str) -> List[SearchMatch]:
        """
        Case-insensitive substring search over state names and file names.

        Exact matches come first, then results are ordered by path and state
        position. A file-name match returns one hit per state of that file.
        An empty query returns every entry.
        """
        needle = (query or "").strip().lower()

        with self._lock:
            groups = list(self._entries.values())

        matches = []
        for entries in groups:
            for entry in entries:
                state = entry.state_name.lower()
                names = (entry.basename.lower(), entry.stem.lower())

                if not needle:
                    matches.append(SearchMatch(entry))
                elif needle in state:
                    exact = state == needle or needle in names
                    matches.append(SearchMatch(entry, exact=exact, field="state"))
                elif any(needle in name for name in names):
                    matches.append(SearchMatch(entry, exact=needle in names, field="file"))

        matches.sort(key=SearchMatch.sort_key)
        return matches

    def get(self, path: str) -> Optional[DmiFile]:
        """The indexed (metadata-only) DmiFile for a path, or None."""
        with self._lock:
            return self._files.get(os.path.abspath(path))

    def entries(self, path: str) -> Tuple[IndexEntry, ...]:
        with self._lock:
            return self._entries.get(os.path.abspath(path), ())

    def paths(self) -> List[str]:
        """Sorted list of indexed paths."""
        with self._lock:
            return sorted(self._files)

    def state_names(self, path: str) -> List[str]:
        """State names of one file in declaration order (empty if not indexed)."""
        return [e.state_name for e in self.entries(path)]

    def stats(self) -> dict:
        with self._lock:
            return {
                'files': len(self._files),
                'states': sum(len(e) for e in self._entries.values()),
                'failures': len(self.failures),
            }

    def __len__(self):
        with self._lock:
            return len(self._files)

    def __contains__(self, path):
        with self._lock:
            return os.path.abspath(path) in self._files

    # ==========================================================================
    # MAINTENANCE
    # ==========================================================================

    def refresh(self, path: str) -> Optional[DmiFile]:
        """
        Re-decode one file and replace its entries.

        If the fingerprint changed, cached artifacts of the old version are
        invalidated. A file that vanished or no longer decodes is removed
        from the index and recorded as a failure.

        Returns:
            The new DmiFile, or None if the file could not be decoded
        """
        path = os.path.abspath(path)
        old = self.get(path)

        try:
            dmi = self.decoder.decode_file(path, include_pixels=False)
        except HarvesterError as e:
            self._record_failure(path, e)
            self._invalidate(old)
            return None

        self._insert(dmi)
        if old is not None and old.fingerprint != dmi.fingerprint:
            self._invalidate(old)
        return dmi

    def _invalidate(self, old: Optional[DmiFile]):
        if self.cache is not None and old is not None:
            self.cache.invalidate(old.fingerprint)

    def remove(self, path: str) -> bool:
        """Drop a file from the index. Returns False if it was not indexed."""
        path = os.path.abspath(path)
        with self._lock:
            self.failures.pop(path, None)
            self._entries.pop(path, None)
            return self._files.pop(path, None) is not None

    def clear(self):
        with self._lock:
            self._files.clear()
            self._entries.clear()
            self.failures.clear()
