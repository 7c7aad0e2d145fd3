# ==============================================================================
# SHEET SLICER MODULE
# ==============================================================================
# Cuts a decoded DMI sprite sheet into per-state, per-direction, per-frame
# bitmaps.
#
# Cell numbering (row-major, top-left origin), for a 4-column sheet:
#
#     +----+----+----+----+
#     |  0 |  1 |  2 |  3 |
#     +----+----+----+----+
#     |  4 |  5 |  6 |  7 |
#     +----+----+----+----+
#
# Every returned bitmap is an owned copy, so callers may modify frames
# without touching the sheet.
#
# Usage:
#   slicer = SheetSlicer.for_file(dmi)
#   frames = slicer.slice_direction(dmi, state, Direction.NORTH)
#   by_dir = slicer.slice_state(dmi, state)
# ==============================================================================

from typing import Dict, List, Tuple

import numpy as np

from ..core.errors import GeometryError, StateNotFound
from .dmi_types import DmiFile, Direction, Frame, IconState


class SheetSlicer:
    """
    Grid slicer for one sheet geometry.

    Attributes:
        cell_width (int): Icon width in pixels
        cell_height (int): Icon height in pixels
        columns (int): Cells per sheet row
    """

    def __init__(self, cell_width: int, cell_height: int, columns: int):
        if cell_width <= 0 or cell_height <= 0 or columns <= 0:
            raise GeometryError(f"Invalid grid {cell_width}x{cell_height} x{columns}")
        self.cell_width = cell_width
        self.cell_height = cell_height
        self.columns = columns

    @classmethod
    def for_file(cls, dmi: DmiFile) -> "SheetSlicer":
        return cls(dmi.cell_width, dmi.cell_height, dmi.columns)

    # ==========================================================================
    # CELLS
    # ==========================================================================

    def cell_box(self, index: int) -> Tuple[int, int, int, int]:
        """
        Pixel rectangle of a cell.

        Returns:
            (left, top, right, bottom), right/bottom exclusive
        """
        if index < 0:
            raise GeometryError(f"Negative cell index {index}")
        row, column = divmod(index, self.columns)
        left = column * self.cell_width
        top = row * self.cell_height
        return (left, top, left + self.cell_width, top + self.cell_height)

    def slice_cell(self, pixels: np.ndarray, index: int) -> np.ndarray:
        """
        Copy one cell out of the sheet.

        Raises:
            GeometryError: If the cell lies outside the pixel buffer
        """
        left, top, right, bottom = self.cell_box(index)
        height, width = pixels.shape[:2]
        if right > width or bottom > height:
            raise GeometryError(
                f"Cell {index} at ({left}, {top}) lies outside the {width}x{height} sheet"
            )
        return pixels[top:bottom, left:right].copy()

    # ==========================================================================
    # STATES
    # ==========================================================================

    def slice_direction(self, dmi: DmiFile, state: IconState, direction) -> List[Frame]:
        """
        All frames of one direction of a state, in playback order.

        Args:
            dmi: Decoded file with pixels
            state: One of dmi.states
            direction: Direction, index or name ("north", "ne", ...)

        Raises:
            StateNotFound: If the state has no such direction
            ValueError: If the file was decoded without pixels
        """
        if not dmi.has_pixels:
            raise ValueError(f"{dmi.path or 'DMI'} was decoded without pixels")

        try:
            direction = Direction.parse(direction)
        except ValueError as e:
            raise StateNotFound(str(e), path=dmi.path) from None
        if direction >= state.dirs:
            raise StateNotFound(
                f"State {state.name!r} has {state.dirs} direction(s), no {direction.label}",
                path=dmi.path,
            )

        frames = []
        for f in range(state.frames):
            frames.append(Frame(
                bitmap=self.slice_cell(dmi.pixels, state.cell_index(direction, f)),
                delay=state.delay_for(f),
                hotspot=state.hotspot_for(direction, f),
            ))
        return frames

    def slice_state(self, dmi: DmiFile, state: IconState) -> Dict[Direction, List[Frame]]:
        """Frames for every direction of a state, keyed by Direction."""
        return {d: self.slice_direction(dmi, state, d) for d in state.directions}
