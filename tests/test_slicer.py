"""Tests for SheetSlicer."""

from __future__ import annotations

import numpy as np
import pytest

from conftest import build_dmi, cell_color
from dmiharvester.core.errors import GeometryError, StateNotFound
from dmiharvester.parsers.dmi_parser import DmiDecoder
from dmiharvester.parsers.dmi_types import Direction
from dmiharvester.parsers.slicer import SheetSlicer


@pytest.fixture
def walker():
    """One 4-dir, 3-frame state on a 5-column sheet, so frames wrap rows."""
    states = [
        {"name": "still"},
        {"name": "walk", "dirs": 4, "frames": 3, "delay": "1,2,3", "hotspot": "1,2,6"},
    ]
    return DmiDecoder().decode(build_dmi(states, columns=5))


def _color(bitmap):
    return tuple(int(v) for v in bitmap[0, 0])


class TestCells:
    """Tests for cell addressing."""

    def test_cell_box(self):
        slicer = SheetSlicer(4, 4, columns=4)
        assert slicer.cell_box(0) == (0, 0, 4, 4)
        assert slicer.cell_box(5) == (4, 4, 8, 8)

    def test_non_square_cells(self):
        slicer = SheetSlicer(8, 2, columns=3)
        assert slicer.cell_box(4) == (8, 2, 16, 4)

    def test_negative_index(self):
        with pytest.raises(GeometryError):
            SheetSlicer(4, 4, 4).cell_box(-1)

    def test_invalid_grid(self):
        with pytest.raises(GeometryError):
            SheetSlicer(0, 4, 4)

    def test_slice_cell_is_copy(self, walker):
        """Test modifying a slice leaves the sheet alone."""
        slicer = SheetSlicer.for_file(walker)
        cell = slicer.slice_cell(walker.pixels, 3)
        cell[:] = 0
        assert _color(walker.pixels[:, 12:16]) == cell_color(3)

    def test_slice_cell_out_of_bounds(self, walker):
        slicer = SheetSlicer.for_file(walker)
        with pytest.raises(GeometryError, match="outside"):
            slicer.slice_cell(walker.pixels, walker.capacity)


class TestStates:
    """Tests for per-direction slicing."""

    def test_direction_frames(self, walker):
        """Test frames of EAST come from cells first + f*4 + 2."""
        state = walker.states[1]
        frames = SheetSlicer.for_file(walker).slice_direction(walker, state, Direction.EAST)
        assert len(frames) == 3
        assert [_color(f.bitmap) for f in frames] == [cell_color(1 + f * 4 + 2) for f in range(3)]

    def test_frame_shape(self, walker):
        frames = SheetSlicer.for_file(walker).slice_direction(walker, walker.states[0], "south")
        assert frames[0].bitmap.shape == (4, 4, 4)
        assert frames[0].bitmap.dtype == np.uint8
        assert (frames[0].width, frames[0].height) == (4, 4)

    def test_delays_and_hotspot(self, walker):
        """Test per-frame delay and the hotspot declared for north, frame 1."""
        frames = SheetSlicer.for_file(walker).slice_direction(walker, walker.states[1], "n")
        assert [f.delay for f in frames] == [1.0, 2.0, 3.0]
        assert frames[1].hotspot == (1, 2)
        assert frames[0].hotspot is None

    def test_slice_state(self, walker):
        by_dir = SheetSlicer.for_file(walker).slice_state(walker, walker.states[1])
        assert list(by_dir) == [Direction.SOUTH, Direction.NORTH, Direction.EAST, Direction.WEST]
        colors = {_color(f.bitmap) for frames in by_dir.values() for f in frames}
        assert len(colors) == 12

    def test_missing_direction(self, walker):
        """Test asking a 1-dir state for north."""
        slicer = SheetSlicer.for_file(walker)
        with pytest.raises(StateNotFound):
            slicer.slice_direction(walker, walker.states[0], Direction.NORTH)

    def test_unknown_direction_name(self, walker):
        slicer = SheetSlicer.for_file(walker)
        with pytest.raises(StateNotFound):
            slicer.slice_direction(walker, walker.states[1], "upwards")

    def test_requires_pixels(self):
        dmi = DmiDecoder().decode(build_dmi([{"name": "a"}]), include_pixels=False)
        with pytest.raises(ValueError):
            SheetSlicer.for_file(dmi).slice_direction(dmi, dmi.states[0], "south")
