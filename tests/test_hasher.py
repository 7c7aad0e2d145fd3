"""Tests for content fingerprints."""

from __future__ import annotations

import hashlib

import pytest

from dmiharvester.core import hasher as hasher_module
from dmiharvester.core.errors import IoError
from dmiharvester.core.hasher import FileHasher


class TestFileHasher:
    """Tests for FileHasher."""

    def test_hash_bytes(self):
        assert FileHasher("md5").hash_bytes(b"Hello World") == "b10a8db164e0754105b7a99be72e3fe5"

    def test_unsupported_algorithm(self):
        with pytest.raises(ValueError):
            FileHasher("crc32")

    def test_file_matches_bytes(self, tmp_path):
        data = bytes(range(256)) * 5000
        path = tmp_path / "big.dmi"
        path.write_bytes(data)
        hasher = FileHasher(chunk_size=4096)
        assert hasher.hash_file(str(path)) == hashlib.sha256(data).hexdigest()

    def test_mmap_path(self, tmp_path, monkeypatch):
        """Test files above the mmap threshold hash the same."""
        monkeypatch.setattr(hasher_module.FileHasher, "MMAP_THRESHOLD", 1024)
        data = b"\x89PNG" * 3000
        path = tmp_path / "huge.dmi"
        path.write_bytes(data)
        assert FileHasher(chunk_size=512).hash_file(str(path)) == hashlib.sha256(data).hexdigest()

    def test_missing_file(self, tmp_path):
        with pytest.raises(IoError):
            FileHasher().hash_file(str(tmp_path / "gone.dmi"))
