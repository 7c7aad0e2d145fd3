"""Tests for IconIndex."""

from __future__ import annotations

import os
import threading

import pytest

from conftest import HUMAN_STATES
from dmiharvester.core.errors import FormatError, IoError
from dmiharvester.core.index import PENDING_PER_THREAD, IconIndex
from dmiharvester.core.reports import ReportLog
from dmiharvester.core.scanner import AssetScanner


class RecordingCache:
    """Stands in for ArtifactCache; remembers invalidated fingerprints."""

    def __init__(self):
        self.invalidated = []

    def invalidate(self, fingerprint):
        self.invalidated.append(fingerprint)
        return 0


@pytest.fixture
def index(asset_tree):
    return IconIndex(threads=2).build(AssetScanner([str(asset_tree)]).scan())


class TestBuild:
    """Tests for building the index."""

    def test_two_groups(self, index, asset_tree):
        """Test the human/door tree yields exactly two entry groups."""
        assert len(index) == 2
        assert index.paths() == sorted([
            str(asset_tree / "human.dmi"),
            str(asset_tree / "sub" / "door.dmi"),
        ])
        assert index.state_names(str(asset_tree / "human.dmi")) == ["idle", "walk"]
        assert index.stats() == {'files': 2, 'states': 3, 'failures': 0}

    def test_entries(self, index, asset_tree):
        entries = index.entries(str(asset_tree / "sub" / "door.dmi"))
        assert len(entries) == 1
        assert entries[0].basename == "door.dmi"
        assert entries[0].stem == "door"
        assert entries[0].state_index == 0

    def test_metadata_only(self, index, asset_tree):
        assert not index.get(str(asset_tree / "human.dmi")).has_pixels

    def test_summary(self, index):
        summary = index.last_build
        assert (summary.total, summary.indexed, summary.failed) == (2, 2, 0)
        assert summary.skipped == 0
        assert not summary.cancelled
        assert summary.finished_at is not None

    def test_failures_do_not_abort(self, asset_tree):
        """Test a broken file is recorded and the rest still indexed."""
        broken = asset_tree / "broken.dmi"
        broken.write_bytes(b"not a png at all")
        reports = ReportLog()

        index = IconIndex(reporter=reports).build(AssetScanner([str(asset_tree)]).scan())
        assert len(index) == 2
        assert isinstance(index.failures[str(broken)], FormatError)
        assert index.last_build.failed == 1
        assert [r.subject for r in reports.by_kind("FormatError")] == [str(broken)]

    def test_cancel(self, asset_tree):
        cancel = threading.Event()
        cancel.set()
        index = IconIndex().build(AssetScanner([str(asset_tree)]).scan(), cancel_event=cancel)
        assert len(index) == 0
        assert index.last_build.cancelled
        assert index.last_build.skipped == 2

    def test_progress(self, asset_tree):
        calls = []
        IconIndex().build(AssetScanner([str(asset_tree)]).scan(),
                          progress_callback=lambda cur, total, path: calls.append((cur, total)))
        assert calls == [(1, 2), (2, 2)]

    def test_paths_pulled_lazily(self, tmp_path, write_dmi):
        """Test build keeps a bounded number of decodes queued."""
        paths = [write_dmi(tmp_path / f"icon{i:02}.dmi", [{"name": "s"}]) for i in range(12)]
        done = []
        queued = []

        def lazy_paths():
            for i, path in enumerate(paths):
                queued.append(i - len(done))
                yield path

        index = IconIndex(threads=1).build(
            lazy_paths(), progress_callback=lambda cur, total, path: done.append((cur, total)))
        assert len(index) == 12
        assert max(queued) < PENDING_PER_THREAD
        assert done[-1] == (12, 12)

    def test_stateless_file_not_searchable(self, tmp_path, write_dmi):
        path = write_dmi(tmp_path / "empty.dmi", [])
        index = IconIndex().build([path])
        assert path in index
        assert index.search("empty") == []


class TestSearch:
    """Tests for ranked search."""

    def test_partial_state_match(self, index, asset_tree):
        """Test 'wal' finds human.dmi / walk first."""
        matches = index.search("wal")
        assert matches[0].path == str(asset_tree / "human.dmi")
        assert matches[0].state_name == "walk"
        assert not matches[0].exact

    def test_file_name_match(self, index, asset_tree):
        """Test 'door' returns exactly the one state of door.dmi."""
        matches = index.search("door")
        assert len(matches) == 1
        assert matches[0].state_name == "closed"
        assert matches[0].field == "file"
        assert matches[0].exact

    def test_case_insensitive(self, index):
        assert [m.state_name for m in index.search("WALK")] == ["walk"]

    def test_file_match_returns_every_state(self, index):
        assert [m.state_name for m in index.search("human")] == ["idle", "walk"]

    def test_exact_ranked_first(self, tmp_path, write_dmi):
        """Test an exact state name beats a partial one from an earlier path."""
        a = write_dmi(tmp_path / "a.dmi", [{"name": "walking"}])
        z = write_dmi(tmp_path / "z.dmi", [{"name": "walk"}])
        matches = IconIndex().build([a, z]).search("walk")
        assert [(m.path, m.exact) for m in matches] == [(z, True), (a, False)]

    def test_empty_query_returns_all(self, index):
        assert len(index.search("")) == 3

    def test_no_match(self, index):
        assert index.search("zzz") == []


class TestMaintenance:
    """Tests for refresh / remove."""

    def test_refresh_changed_file(self, asset_tree, write_dmi):
        """Test a rewritten file replaces its entries and invalidates its old artifacts."""
        cache = RecordingCache()
        index = IconIndex(cache=cache).build(AssetScanner([str(asset_tree)]).scan())
        path = str(asset_tree / "human.dmi")
        old = index.get(path).fingerprint

        write_dmi(asset_tree / "human.dmi", HUMAN_STATES + [{"name": "run", "dirs": 4}])
        dmi = index.refresh(path)

        assert dmi.fingerprint != old
        assert index.state_names(path) == ["idle", "walk", "run"]
        assert cache.invalidated == [old]

    def test_refresh_unchanged_file(self, asset_tree):
        cache = RecordingCache()
        index = IconIndex(cache=cache).build(AssetScanner([str(asset_tree)]).scan())
        index.refresh(str(asset_tree / "human.dmi"))
        assert cache.invalidated == []

    def test_refresh_deleted_file(self, asset_tree):
        """Test a vanished file leaves the index and is recorded as a failure."""
        cache = RecordingCache()
        index = IconIndex(cache=cache).build(AssetScanner([str(asset_tree)]).scan())
        path = str(asset_tree / "human.dmi")
        old = index.get(path).fingerprint

        os.remove(path)
        assert index.refresh(path) is None
        assert path not in index
        assert isinstance(index.failures[path], IoError)
        assert cache.invalidated == [old]

    def test_remove_and_clear(self, index, asset_tree):
        assert index.remove(str(asset_tree / "human.dmi"))
        assert not index.remove(str(asset_tree / "human.dmi"))
        assert len(index) == 1
        index.clear()
        assert len(index) == 0
        assert index.search("") == []
