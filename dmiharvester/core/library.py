# ==============================================================================
# ICON LIBRARY MODULE
# ==============================================================================
# Facade tying scanner, decoder, index, cache and renderer together.
#
# Build time:   AssetScanner -> DmiDecoder (metadata only) -> IconIndex
# Query time:   IconIndex -> ArtifactCache hit
#                         -> or DmiDecoder (pixels) -> SheetSlicer
#                            -> ExportRenderer -> ArtifactCache store
#
# Every export and thumbnail first hashes the live file. If it no longer
# matches the indexed fingerprint the file is re-indexed (which invalidates
# its old artifacts) before anything is served.
#
# Usage:
#   library = IconLibrary(get_config())
#   library.scan_and_index()
#   results = library.search("walk")
#   gif = library.export(results[0].path, results[0].state, "south")
# ==============================================================================

import os
import threading
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from ..parsers.dmi_parser import DmiDecoder
from ..parsers.dmi_types import DmiFile, Direction, IconState
from ..parsers.gif_exporter import ExportRenderer
from ..parsers.slicer import SheetSlicer
from .cache import ArtifactCache, CacheKey
from .config import Config, get_config
from .errors import IoError, StateNotFound
from .hasher import FileHasher
from .index import BuildSummary, IconIndex
from .reports import ReportLog
from .scanner import AssetScanner


@dataclass(frozen=True)
class SearchResult:
    """
    A search hit as exposed to front ends.

    Attributes:
        path (str):          Absolute path of the DMI
        state (str):         State name
        state_index (int):   Position of the state in the file
        thumbnail_key:       CacheKey of the state's thumbnail
        exact (bool):        Whether the query matched a name exactly
    """
    path: str
    state: str
    state_index: int
    thumbnail_key: CacheKey
    exact: bool = False

    @property
    def basename(self) -> str:
        return os.path.basename(self.path)


class IconLibrary:
    """
    Query and export interface over a set of asset roots.

    Attributes:
        config (Config): Settings in use
        reporter (ReportLog): Shared report channel for all components
        cache (ArtifactCache): Rendered artifact store
        index (IconIndex): Searchable metadata index
        renderer (ExportRenderer): GIF / PNG encoder
    """

    def __init__(self, config: Optional[Config] = None, reporter: Optional[ReportLog] = None,
                 cache: Optional[ArtifactCache] = None):
        self.config = config or get_config()
        self.reporter = reporter if reporter is not None else ReportLog()

        self.hasher = FileHasher(self.config.hash_algorithm)
        self.decoder = DmiDecoder(self.hasher)
        self.cache = cache or ArtifactCache(
            self.config.cache_dir,
            max_bytes=self.config.cache_max_bytes,
            protected_roots=self.config.asset_roots,
            reporter=self.reporter,
        )
        self.index = IconIndex(self.decoder, threads=self.config.scan_threads,
                               cache=self.cache, reporter=self.reporter)
        self.renderer = ExportRenderer(self.config.min_frame_delay_ms)

    # ==========================================================================
    # INDEXING
    # ==========================================================================

    def scan_and_index(self, roots: Optional[Iterable[str]] = None,
                       cancel_event: Optional[threading.Event] = None,
                       progress_callback: Optional[Callable[[int, int, str], None]] = None
                       ) -> BuildSummary:
        """
        Scan the asset roots and (re)build the index.

        Files that disappeared since the previous scan are dropped.

        Args:
            roots: Directories to scan; defaults to config.asset_roots
            cancel_event: Set it to stop between files
            progress_callback: Optional callback(current, total, path)

        Returns:
            BuildSummary of the build
        """
        roots = list(roots) if roots is not None else self.config.asset_roots
        scanner = AssetScanner(roots, max_depth=self.config.max_scan_depth,
                               reporter=self.reporter)
        found = list(scanner.scan())

        found_set = set(found)
        for path in self.index.paths():
            if path not in found_set and not os.path.exists(path):
                self.index.remove(path)

        self.index.build(found, cancel_event=cancel_event, progress_callback=progress_callback)
        return self.index.last_build

    def refresh(self, path: str) -> Optional[DmiFile]:
        """Re-index one file; stale artifacts of its old version are dropped."""
        return self.index.refresh(path)

    # ==========================================================================
    # QUERIES
    # ==========================================================================

    def search(self, text: str) -> List[SearchResult]:
        """Ranked search over file and state names."""
        results = []
        for match in self.index.search(text):
            dmi = self.index.get(match.path)
            if dmi is None:
                continue
            results.append(SearchResult(
                path=match.path,
                state=match.state_name,
                state_index=match.state_index,
                thumbnail_key=self._thumbnail_key(dmi.fingerprint, match.state_index),
                exact=match.exact,
            ))
        return results

    def page(self, results: List[SearchResult], number: int) -> List[SearchResult]:
        """Slice one page (0-based) of results using config.page_size."""
        size = self.config.page_size
        start = max(0, number) * size
        return results[start:start + size]

    def page_count(self, results: List[SearchResult]) -> int:
        size = self.config.page_size
        return max(1, (len(results) + size - 1) // size)

    def states_text(self, path: str) -> str:
        """All state names of a file joined by config.state_delimiter."""
        dmi = self._current(path)
        return self.config.state_delimiter.join(dmi.state_names())

    def info(self, path: str) -> DmiFile:
        """Metadata of a file, re-indexed if it changed on disk."""
        return self._current(path)

    # ==========================================================================
    # RENDERING
    # ==========================================================================

    def thumbnail(self, result: SearchResult) -> bytes:
        """
        PNG thumbnail (first south-facing frame) for a search result.

        Raises:
            IoError: The file can no longer be read
            StateNotFound: The state vanished after the file changed
        """
        dmi = self._current(result.path)
        if not 0 <= result.state_index < len(dmi.states):
            raise StateNotFound(f"State #{result.state_index} no longer exists", path=result.path)

        key = self._thumbnail_key(dmi.fingerprint, result.state_index)
        index = result.state_index

        def render() -> bytes:
            full = self._load_pixels(dmi)
            frames = SheetSlicer.for_file(full).slice_direction(
                full, full.states[index], Direction.SOUTH)
            return self.renderer.encode_png(frames[0].bitmap, size=self.config.thumbnail_size,
                                            resample=self.config.resize_filter)

        return self.cache.get_or_render(key, render).data

    def export(self, path: str, state: str, direction="south", occurrence: int = 0) -> bytes:
        """
        Animated GIF for one direction of a state.

        Args:
            path: DMI path
            state: Exact state name
            direction: Direction, index or name ("south", "ne", 2, ...)
            occurrence: Which state to use when the name repeats

        Raises:
            StateNotFound: Unknown state or direction
            IoError / DecodeError: File unreadable or no longer valid
        """
        dmi = self._current(path)
        icon_state = self._find_state(dmi, state, occurrence)
        facing = self._check_direction(dmi, icon_state, direction)

        key = CacheKey.make(dmi.fingerprint, "gif", state=state, occurrence=occurrence,
                            direction=int(facing), min_delay_ms=self.renderer.min_delay_ms)

        def render() -> bytes:
            full = self._load_pixels(dmi)
            animation = self.renderer.render(full, state, facing, occurrence)
            return self.renderer.encode_gif(animation)

        return self.cache.get_or_render(key, render).data

    def extract_png(self, path: str, state: str, direction="south", frame: int = 0,
                    occurrence: int = 0, size: Optional[int] = None) -> bytes:
        """
        A single frame of a state as PNG.

        Raises:
            StateNotFound: Unknown state, direction or frame number
        """
        dmi = self._current(path)
        icon_state = self._find_state(dmi, state, occurrence)
        facing = self._check_direction(dmi, icon_state, direction)
        if not 0 <= frame < icon_state.frames:
            raise StateNotFound(
                f"State {state!r} has {icon_state.frames} frame(s), no frame {frame}", path=dmi.path
            )

        key = CacheKey.make(dmi.fingerprint, "png", state=state, occurrence=occurrence,
                            direction=int(facing), frame=frame, size=size or 0,
                            resample=self.config.resize_filter)

        def render() -> bytes:
            full = self._load_pixels(dmi)
            frames = SheetSlicer.for_file(full).slice_direction(full, icon_state, facing)
            return self.renderer.encode_png(frames[frame].bitmap, size=size,
                                            resample=self.config.resize_filter)

        return self.cache.get_or_render(key, render).data

    # ==========================================================================
    # CACHE
    # ==========================================================================

    def purge_cache(self) -> int:
        """Empty the artifact cache (validated; raises ConfigError when unsafe)."""
        return self.cache.purge_all()

    def cache_stats(self) -> dict:
        return self.cache.stats()

    # ==========================================================================
    # INTERNALS
    # ==========================================================================

    def _thumbnail_key(self, fingerprint: str, state_index: int) -> CacheKey:
        return CacheKey.make(fingerprint, "thumbnail", state_index=state_index,
                             size=self.config.thumbnail_size,
                             resample=self.config.resize_filter)

    def _current(self, path: str) -> DmiFile:
        """
        Indexed metadata for `path`, re-indexed if the live file changed.

        Raises:
            IoError: File missing or unreadable
            DecodeError: The current file does not decode
        """
        path = os.path.abspath(path)
        try:
            live = self.hasher.hash_file(path)
        except IoError:
            # Drops the file from the index and records the failure
            self.index.refresh(path)
            raise

        dmi = self.index.get(path)
        if dmi is not None and dmi.fingerprint == live:
            return dmi

        dmi = self.index.refresh(path)
        if dmi is None:
            raise self.index.failures[path]
        return dmi

    def _load_pixels(self, dmi: DmiFile) -> DmiFile:
        full = self.decoder.decode_file(dmi.path, include_pixels=True)
        if full.fingerprint != dmi.fingerprint:
            raise IoError("File changed while rendering", path=dmi.path)
        return full

    @staticmethod
    def _find_state(dmi: DmiFile, state: str, occurrence: int) -> IconState:
        icon_state = dmi.find_state(state, occurrence)
        if icon_state is None:
            raise StateNotFound(f"No state named {state!r}", path=dmi.path)
        return icon_state

    @staticmethod
    def _check_direction(dmi: DmiFile, state: IconState, direction) -> Direction:
        try:
            facing = Direction.parse(direction)
        except ValueError as e:
            raise StateNotFound(str(e), path=dmi.path) from None
        if facing >= state.dirs:
            raise StateNotFound(
                f"State {state.name!r} has {state.dirs} direction(s), no {facing.label}",
                path=dmi.path,
            )
        return facing
