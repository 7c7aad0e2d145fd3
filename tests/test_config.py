"""Tests for configuration, paths and the path safety gate."""

from __future__ import annotations

import json
import os
import sys

import pytest

from dmiharvester.core.config import Config, DEFAULT_CONFIG, get_config, reset_config
from dmiharvester.core.errors import ConfigError
from dmiharvester.core.paths import Paths, validate_destructive_path


class TestPaths:
    """Tests for user directories."""

    @pytest.mark.skipif(sys.platform in ("win32", "darwin"), reason="XDG layout is Linux only")
    def test_xdg_config_home(self, isolated_user_dirs):
        expected = os.path.join(str(isolated_user_dirs), ".config", "DMIHarvester")
        assert Paths.get_user_data_dir() == expected
        assert Paths.get_config_path() == os.path.join(expected, "config.json")
        assert Paths.get_cache_dir() == os.path.join(expected, "cache")
        assert Paths.get_logs_dir() == os.path.join(expected, "logs")

    def test_ensure_directories(self):
        Paths.ensure_directories()
        assert os.path.isdir(Paths.get_cache_dir())
        assert os.path.isdir(Paths.get_logs_dir())


class TestValidateDestructivePath:
    """Tests for validate_destructive_path()."""

    def test_safe_directory(self, tmp_path):
        target = tmp_path / "cache"
        target.mkdir()
        assert validate_destructive_path(str(target)) == os.path.normcase(os.path.realpath(target))

    def test_empty(self):
        with pytest.raises(ConfigError, match="not configured"):
            validate_destructive_path("   ")

    def test_file(self, tmp_path):
        target = tmp_path / "file.txt"
        target.write_text("x")
        with pytest.raises(ConfigError, match="not a directory"):
            validate_destructive_path(str(target))

    def test_ancestor_of_home(self, isolated_user_dirs):
        with pytest.raises(ConfigError, match="home"):
            validate_destructive_path(str(isolated_user_dirs.parent))

    def test_protected_with_trailing_separator(self, tmp_path):
        root = tmp_path / "icons"
        root.mkdir()
        with pytest.raises(ConfigError):
            validate_destructive_path(str(root) + os.sep, protected=[str(root)])

    def test_sibling_with_common_prefix(self, tmp_path):
        """Test icons-cache is not mistaken for a parent of icons."""
        root = tmp_path / "icons"
        sibling = tmp_path / "icons-cache"
        root.mkdir()
        sibling.mkdir()
        assert validate_destructive_path(str(sibling), protected=[str(root)])


class TestConfig:
    """Tests for Config."""

    def test_defaults(self, tmp_path):
        config = Config(str(tmp_path / "config.json"))
        assert config.asset_roots == []
        assert config.cache_max_bytes == 256 * 1024 * 1024
        assert config.min_frame_delay_ms == 20
        assert config.state_delimiter == ", "
        assert config.cache_dir == Paths.get_cache_dir()
        assert config.log_dir == Paths.get_logs_dir()

    def test_missing_file(self, tmp_path):
        config = Config(str(tmp_path / "nope.json"))
        assert config.load() is False
        assert config.load_errors == []

    def test_clamping(self, tmp_path):
        config = Config(str(tmp_path / "config.json"))
        config.scan_threads = 100
        config.page_size = 1
        config.thumbnail_size = 4096
        config.max_scan_depth = 0
        config.cache_max_bytes = -5
        assert config.scan_threads == 16
        assert config.page_size == 10
        assert config.thumbnail_size == 512
        assert config.max_scan_depth == 1
        assert config.cache_max_bytes == 0
        assert config.modified

    def test_invalid_choice(self, tmp_path):
        config = Config(str(tmp_path / "config.json"))
        with pytest.raises(ValueError):
            config.hash_algorithm = "crc32"
        with pytest.raises(ValueError):
            config.resize_filter = "sharp"

    def test_save_and_load(self, tmp_path):
        path = str(tmp_path / "sub" / "config.json")
        config = Config(path)
        config.asset_roots = ["/srv/icons"]
        config.page_size = 50
        assert config.save()
        assert not config.modified

        loaded = Config(path)
        assert loaded.load()
        assert loaded.asset_roots == ["/srv/icons"]
        assert loaded.page_size == 50

    def test_load_clamps_and_reports(self, tmp_path):
        """Test loaded values go through the setters."""
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "scan_threads": 64,
            "hash_algorithm": "crc32",
            "unknown_key": 1,
        }))
        config = Config(str(path))
        assert config.load()
        assert config.scan_threads == 16
        assert config.hash_algorithm == "sha256"
        assert len(config.load_errors) == 1
        assert "unknown_key" not in config.data

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("{not json")
        config = Config(str(path))
        assert config.load() is False
        assert len(config.load_errors) == 1

    def test_set_unknown_key(self, tmp_path):
        config = Config(str(tmp_path / "config.json"))
        with pytest.raises(KeyError):
            config.set("colour", "red")
        with pytest.raises(KeyError):
            config["colour"] = "red"

    def test_set_from_string(self, tmp_path):
        config = Config(str(tmp_path / "config.json"))
        config.set_from_string("asset_roots", "a, b ,")
        config.set_from_string("page_size", "30")
        config.set_from_string("state_delimiter", "|")
        assert config.asset_roots == ["a", "b"]
        assert config["page_size"] == 30
        assert config.state_delimiter == "|"
        with pytest.raises(ValueError):
            config.set_from_string("page_size", "many")

    def test_reset_to_defaults(self, tmp_path):
        config = Config(str(tmp_path / "config.json"))
        config.page_size = 100
        config.reset_to_defaults()
        assert config.data == DEFAULT_CONFIG

    def test_global_instance(self, isolated_user_dirs):
        assert get_config() is get_config()
        first = get_config()
        reset_config()
        assert get_config() is not first
        assert get_config().config_path.startswith(str(isolated_user_dirs))
