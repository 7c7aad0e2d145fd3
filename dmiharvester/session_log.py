# ==============================================================================
# SESSION LOG MODULE
# ==============================================================================
# Mirrors Report records to a timestamped log file in log_dir.
#
# One file per command line session, named like 2026-01-31-18-04-59.log.
# When a session starts, older session logs beyond `max_files` are deleted,
# but only after log_dir passes the same destructive-path validation as
# the cache purge. Only files matching the session log name are touched.
#
# Usage:
#   log = SessionLog(config.log_dir, max_files=10, protected=config.asset_roots)
#   log.open()
#   reports.listener = log.write
#   ...
#   log.close()
# ==============================================================================

import os
import re
from datetime import datetime
from typing import Iterable, List, Optional

from .core.paths import validate_destructive_path
from .core.reports import Report

LOG_NAME_FORMAT = "%Y-%m-%d-%H-%M-%S"
LOG_NAME_RE = re.compile(r"^(\d{4}-\d{2}-\d{2}-\d{2}-\d{2}-\d{2})(?:-(\d+))?\.log$")


class SessionLog:
    """
    Append-only text log for one session.

    Attributes:
        log_dir (str): Directory holding session logs
        max_files (int): Session logs to keep, including the current one
        protected (list): Directories log pruning must never touch
        path (str): Current log file, once opened
    """

    def __init__(self, log_dir: str, max_files: int = 10, protected: Iterable[str] = ()):
        self.log_dir = os.path.abspath(os.path.expanduser(log_dir))
        self.max_files = max(1, int(max_files))
        self.protected = list(protected)
        self.path: Optional[str] = None
        self._file = None

    def open(self) -> str:
        """
        Create the log file for this session.

        Returns:
            Path of the new log file
        """
        os.makedirs(self.log_dir, exist_ok=True)

        stamp = datetime.now().strftime(LOG_NAME_FORMAT)
        path = os.path.join(self.log_dir, f"{stamp}.log")
        suffix = 1
        while os.path.exists(path):
            path = os.path.join(self.log_dir, f"{stamp}-{suffix}.log")
            suffix += 1

        self._file = open(path, 'a', encoding='utf-8')
        self.path = path
        return path

    def write(self, report: Report):
        """Append one report line. Does nothing before open()."""
        if self._file is None:
            return
        time = report.created_at.strftime("%H:%M:%S")
        self._file.write(f"{time} [{report.kind}] {report.subject}: {report.message}\n")
        self._file.flush()

    def line(self, level: str, message: str):
        """Append a free-form line (e.g. the command being run)."""
        if self._file is None:
            return
        self._file.write(f"{datetime.now().strftime('%H:%M:%S')} [{level}] {message}\n")
        self._file.flush()

    def close(self):
        if self._file is not None:
            self._file.close()
            self._file = None

    def session_logs(self) -> List[str]:
        """Existing session log files, oldest first."""
        if not os.path.isdir(self.log_dir):
            return []
        stamped = []
        for name in os.listdir(self.log_dir):
            match = LOG_NAME_RE.match(name)
            if match:
                # Same-second logs get -1, -2 ... after the bare name
                stamped.append((match.group(1), int(match.group(2) or 0), name))
        stamped.sort()
        return [os.path.join(self.log_dir, name) for _, _, name in stamped]

    def prune(self) -> List[str]:
        """
        Delete the oldest session logs beyond max_files.

        Returns:
            Paths that were deleted

        Raises:
            ConfigError: log_dir failed validation; nothing was deleted
        """
        validate_destructive_path(self.log_dir, self.protected)

        logs = self.session_logs()
        excess = len(logs) - self.max_files
        removed = []
        for path in logs[:max(0, excess)]:
            if path == self.path:
                continue
            os.remove(path)
            removed.append(path)
        return removed

