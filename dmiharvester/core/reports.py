# ==============================================================================
# REPORT CHANNEL MODULE
# ==============================================================================
# Structured side-channel for per-file failures and refused operations.
#
# The core never prints or writes log files. Components append Report
# records to a ReportLog; whoever owns the log (the CLI, a GUI) decides how
# to present them.
#
# Usage:
#   reports = ReportLog()
#   reports.add("icons/broken.dmi", "FormatError", "bad PNG signature")
#   for report in reports.by_kind("FormatError"):
#       print(report.subject, report.message)
# ==============================================================================

import threading
from datetime import datetime
from dataclasses import dataclass, field
from typing import Callable, List, Optional


@dataclass(frozen=True)
class Report:
    """
    A single structured report record.

    Attributes:
        subject (str):   Path or cache key the report is about
        kind (str):      Error kind (e.g. "MetadataError", "ConfigError")
        message (str):   Human-readable description
        created_at:      When the report was recorded
    """
    subject: str
    kind: str
    message: str
    created_at: datetime = field(default_factory=datetime.now, compare=False)


class ReportLog:
    """
    Thread-safe collection of Report records.

    An optional listener is called with every new record; the CLI uses it to
    echo reports as they arrive.
    """

    def __init__(self, listener: Optional[Callable[[Report], None]] = None):
        self._records: List[Report] = []
        self._lock = threading.Lock()
        self.listener = listener

    def add(self, subject: str, kind: str, message: str) -> Report:
        """Record a report and notify the listener."""
        report = Report(subject=str(subject), kind=kind, message=message)
        with self._lock:
            self._records.append(report)
        if self.listener:
            self.listener(report)
        return report

    def add_error(self, subject: str, error: Exception) -> Report:
        """Record an exception, using its `kind` when it has one."""
        kind = getattr(error, "kind", type(error).__name__)
        message = getattr(error, "message", None) or str(error)
        return self.add(subject, kind, message)

    def records(self) -> List[Report]:
        with self._lock:
            return list(self._records)

    def by_kind(self, kind: str) -> List[Report]:
        return [r for r in self.records() if r.kind == kind]

    def clear(self):
        with self._lock:
            self._records.clear()

    def __len__(self):
        with self._lock:
            return len(self._records)
