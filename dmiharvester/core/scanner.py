# ==============================================================================
# ASSET SCANNER MODULE
# ==============================================================================
# Finds DMI files below a set of root directories.
#
# - Matching is by extension, case-insensitive (".dmi", ".DMI")
# - Symlinked directories are followed, each real directory at most once,
#   so a link pointing back up the tree cannot loop forever
# - Unreadable directories are reported as IoError and skipped
# - File contents are never opened
#
# Usage:
#   scanner = AssetScanner(["/srv/ss13/icons"], reporter=reports)
#   for path in scanner.scan():
#       print(path)
# ==============================================================================

import os
from typing import Iterable, Iterator, List, Optional, Set, Tuple

from .errors import IoError
from .reports import ReportLog


DEFAULT_EXTENSIONS = (".dmi",)
DEFAULT_MAX_DEPTH = 20


class AssetScanner:
    """
    Recursive file discovery over one or more roots.

    Each call to scan() starts a fresh, independent walk.

    Attributes:
        roots (list): Directories (or single files) to scan
        extensions (tuple): Lower-case extensions to match
        max_depth (int): Directory levels below a root to descend into
        reporter (ReportLog): Receives IoError reports
    """

    def __init__(self, roots: Iterable[str], extensions: Iterable[str] = DEFAULT_EXTENSIONS,
                 max_depth: int = DEFAULT_MAX_DEPTH, reporter: Optional[ReportLog] = None):
        if isinstance(roots, str):
            roots = [roots]
        self.roots: List[str] = [os.path.abspath(os.path.expanduser(r)) for r in roots]
        self.extensions: Tuple[str, ...] = tuple(
            (e if e.startswith(".") else "." + e).lower() for e in extensions
        )
        self.max_depth = max(0, int(max_depth))
        self.reporter = reporter if reporter is not None else ReportLog()

    def matches(self, name: str) -> bool:
        return name.lower().endswith(self.extensions)

    def scan(self) -> Iterator[str]:
        """
        Lazily yield absolute paths of matching files.

        Yields:
            File paths, roots in the given order, each directory's entries
            sorted by name
        """
        visited: Set[str] = set()
        seen_files: Set[str] = set()

        for root in self.roots:
            if os.path.isfile(root):
                if self.matches(root) and root not in seen_files:
                    seen_files.add(root)
                    yield root
                continue

            if not os.path.isdir(root):
                self._report(root, "Asset root does not exist or is not a directory")
                continue

            yield from self._walk(root, visited, seen_files)

    def _walk(self, root: str, visited: Set[str], seen_files: Set[str]) -> Iterator[str]:
        stack = [(root, 0)]
        while stack:
            directory, depth = stack.pop()

            real = os.path.realpath(directory)
            if real in visited:
                continue
            visited.add(real)

            try:
                with os.scandir(directory) as it:
                    entries = sorted(it, key=lambda e: e.name)
            except OSError as e:
                self._report(directory, e.strerror or str(e))
                continue

            subdirs = []
            for entry in entries:
                try:
                    if entry.is_dir(follow_symlinks=True):
                        if depth < self.max_depth:
                            subdirs.append(entry.path)
                    elif entry.is_file(follow_symlinks=True) and self.matches(entry.name):
                        path = os.path.abspath(entry.path)
                        if path not in seen_files:
                            seen_files.add(path)
                            yield path
                except OSError as e:
                    self._report(entry.path, e.strerror or str(e))

            # Reverse so the stack pops subdirectories in name order
            for sub in reversed(subdirs):
                stack.append((sub, depth + 1))

    def _report(self, path: str, message: str):
        self.reporter.add_error(path, IoError(message, path=path))


def find_dmi_files(roots: Iterable[str], max_depth: int = DEFAULT_MAX_DEPTH) -> List[str]:
    """Collect every .dmi path below the roots."""
    return list(AssetScanner(roots, max_depth=max_depth).scan())
