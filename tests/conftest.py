"""Pytest configuration and fixtures."""

from __future__ import annotations

import io
import math

import pytest
from PIL import Image
from PIL.PngImagePlugin import PngInfo

from dmiharvester.core.config import Config, reset_config
from dmiharvester.core.paths import Paths


CELL = 4


def cell_color(index: int):
    """Distinct opaque RGBA color for sheet cell `index`."""
    return (10 + 8 * index, 250 - 8 * index, (37 * index + 50) % 256, 255)


def build_metadata(states, width: int = CELL, height: int = CELL, version: str = "4.0") -> str:
    """
    Write a metadata block by hand.

    `states` is a list of dicts: name, dirs, frames and optional raw
    delay / loop / rewind / movement / hotspot values.
    """
    lines = ["# BEGIN DMI", f"version = {version}", f"\twidth = {width}", f"\theight = {height}"]
    for state in states:
        lines.append(f'state = "{state["name"]}"')
        lines.append(f"\tdirs = {state.get('dirs', 1)}")
        lines.append(f"\tframes = {state.get('frames', 1)}")
        for key in ("delay", "loop", "rewind", "movement", "hotspot"):
            if key in state:
                lines.append(f"\t{key} = {state[key]}")
    lines.append("# END DMI")
    return "\n".join(lines) + "\n"


def build_dmi(states=(), columns=None, rows=None, metadata=None, keyword="Description",
              compress=True, cell=CELL) -> bytes:
    """
    Build DMI bytes: a sheet with one distinct color per declared cell.

    Cells beyond the sheet's capacity are simply not drawn, which is how
    overflowing files are produced.
    """
    total = sum(s.get("dirs", 1) * s.get("frames", 1) for s in states)
    columns = columns or max(1, total)
    rows = rows or max(1, math.ceil(total / columns))

    image = Image.new("RGBA", (columns * cell, rows * cell), (0, 0, 0, 0))
    for index in range(min(total, columns * rows)):
        row, column = divmod(index, columns)
        box = (column * cell, row * cell, column * cell + cell, row * cell + cell)
        image.paste(cell_color(index), box)

    info = None
    if keyword is not None:
        text = metadata if metadata is not None else build_metadata(states, cell, cell)
        info = PngInfo()
        info.add_text(keyword, text, zip=compress)

    buffer = io.BytesIO()
    image.save(buffer, format="PNG", pnginfo=info)
    return buffer.getvalue()


HUMAN_STATES = [
    {"name": "idle", "dirs": 1, "frames": 2},
    {"name": "walk", "dirs": 4, "frames": 4},
]
DOOR_STATES = [
    {"name": "closed", "dirs": 1, "frames": 1},
]


# ==============================================================================
# FIXTURES
# ==============================================================================

@pytest.fixture(autouse=True)
def isolated_user_dirs(tmp_path, monkeypatch):
    """Point HOME and the user data directory into tmp_path."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(home / ".config"))
    monkeypatch.setenv("APPDATA", str(home / "AppData"))
    Paths.reset()
    reset_config()
    yield home
    Paths.reset()
    reset_config()


@pytest.fixture
def dmi_bytes():
    """Factory: build_dmi(states, ...) -> bytes."""
    return build_dmi


@pytest.fixture
def write_dmi():
    """Factory: write a synthetic DMI to a path and return the path as str."""
    def write(path, states=(), **kwargs):
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(build_dmi(states, **kwargs))
        return str(path)
    return write


@pytest.fixture
def asset_tree(tmp_path, write_dmi):
    """icons/human.dmi (idle, walk) and icons/sub/door.dmi (closed)."""
    root = tmp_path / "icons"
    write_dmi(root / "human.dmi", HUMAN_STATES)
    write_dmi(root / "sub" / "door.dmi", DOOR_STATES)
    return root


@pytest.fixture
def config(tmp_path, asset_tree) -> Config:
    """Config with the asset tree as its only root and private cache/log dirs."""
    cfg = Config(str(tmp_path / "config.json"))
    cfg.asset_roots = [str(asset_tree)]
    cfg.cache_dir = str(tmp_path / "cache")
    cfg.log_dir = str(tmp_path / "logs")
    cfg.scan_threads = 2
    return cfg
