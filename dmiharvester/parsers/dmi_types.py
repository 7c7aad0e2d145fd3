# ==============================================================================
# DMI DATA TYPES
# ==============================================================================
# In-memory representation of a decoded DMI (DreamMaker Icon) file.
#
#   DmiFile
#     └── IconState (name, dirs, frames, delays, loop, ...)
#           └── Direction (south, north, east, ...)
#                 └── Frame (bitmap, delay, hotspot)
#
# DmiFile and IconState are immutable. Frame bitmaps are produced lazily by
# the SheetSlicer, so a metadata-only decode (used by the index) never
# touches pixel data.
# ==============================================================================

from enum import IntEnum
from typing import List, Optional, Tuple
from dataclasses import dataclass, field

import numpy as np


# ==============================================================================
# DIRECTIONS
# ==============================================================================

class Direction(IntEnum):
    """
    Facing directions in on-disk order.

    A 1-dir state only has SOUTH, a 4-dir state has the first four,
    an 8-dir state has all of them.
    """
    SOUTH = 0
    NORTH = 1
    EAST = 2
    WEST = 3
    SOUTHEAST = 4
    SOUTHWEST = 5
    NORTHEAST = 6
    NORTHWEST = 7

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def parse(cls, value) -> "Direction":
        """
        Convert a name ("south", "NE", "northeast") or number to a Direction.

        Raises:
            ValueError: If the value names no direction
        """
        if isinstance(value, Direction):
            return value
        if isinstance(value, int):
            return cls(value)

        text = str(value).strip().lower()
        if text.isdigit():
            return cls(int(text))
        if text in DIRECTION_ABBREVIATIONS:
            return DIRECTION_ABBREVIATIONS[text]
        try:
            return cls[text.upper()]
        except KeyError:
            raise ValueError(f"Unknown direction: {value!r}") from None


DIRECTION_ABBREVIATIONS = {
    "s": Direction.SOUTH,
    "n": Direction.NORTH,
    "e": Direction.EAST,
    "w": Direction.WEST,
    "se": Direction.SOUTHEAST,
    "sw": Direction.SOUTHWEST,
    "ne": Direction.NORTHEAST,
    "nw": Direction.NORTHWEST,
}

VALID_DIR_COUNTS = (1, 4, 8)

# Delay used when a state omits `delay` or declares an inconsistent list
DEFAULT_DELAY = 1.0

# BYOND's default icon size when the header omits width/height
DEFAULT_ICON_SIZE = 32


# ==============================================================================
# FRAMES AND STATES
# ==============================================================================

@dataclass
class Frame:
    """
    One bitmap of an animation.

    Attributes:
        bitmap: RGBA pixels, shape (cell_height, cell_width, 4), dtype uint8
        delay: Display time in ticks (1 tick = 0.1 s)
        hotspot: Optional (x, y) offset inside the cell
    """
    bitmap: np.ndarray
    delay: float = DEFAULT_DELAY
    hotspot: Optional[Tuple[int, int]] = None

    @property
    def width(self) -> int:
        return int(self.bitmap.shape[1])

    @property
    def height(self) -> int:
        return int(self.bitmap.shape[0])


@dataclass(frozen=True)
class Hotspot:
    """A `hotspot = x,y,frame` declaration; `frame` is 1-based over the state's cells."""
    x: int
    y: int
    frame: int


@dataclass(frozen=True)
class IconState:
    """
    A named animation unit inside a DMI file.

    Attributes:
        name: State name (may be empty, may repeat within a file)
        dirs: Number of directions (1, 4 or 8)
        frames: Number of frames per direction
        delays: Per-frame delay in ticks, always `frames` long
        loop: Number of times to play; 0 means forever
        rewind: Play forward then backward
        movement: State is a movement variant
        hotspots: Hotspot declarations
        first_cell: Linear index of the state's first grid cell
    """
    name: str
    dirs: int = 1
    frames: int = 1
    delays: Tuple[float, ...] = ()
    loop: int = 0
    rewind: bool = False
    movement: bool = False
    hotspots: Tuple[Hotspot, ...] = ()
    first_cell: int = 0

    @property
    def cell_count(self) -> int:
        """Number of grid cells this state occupies."""
        return self.dirs * self.frames

    @property
    def directions(self) -> List[Direction]:
        """Directions this state provides, in on-disk order."""
        return [Direction(i) for i in range(self.dirs)]

    def delay_for(self, frame: int) -> float:
        if 0 <= frame < len(self.delays):
            return self.delays[frame]
        return DEFAULT_DELAY

    def cell_offset(self, direction: int, frame: int) -> int:
        """Offset inside this state: frames outer, directions inner."""
        return frame * self.dirs + int(direction)

    def cell_index(self, direction: int, frame: int) -> int:
        """Absolute linear cell index in the sprite sheet."""
        return self.first_cell + self.cell_offset(direction, frame)

    def hotspot_for(self, direction: int, frame: int) -> Optional[Tuple[int, int]]:
        number = self.cell_offset(direction, frame) + 1
        for hotspot in self.hotspots:
            if hotspot.frame == number:
                return (hotspot.x, hotspot.y)
        return None


@dataclass(frozen=True)
class DmiMetadata:
    """Parsed `# BEGIN DMI` text block."""
    version: str = "4.0"
    width: int = DEFAULT_ICON_SIZE
    height: int = DEFAULT_ICON_SIZE
    states: Tuple[IconState, ...] = ()
    warnings: Tuple[str, ...] = field(default=(), compare=False)


# ==============================================================================
# DMI FILE
# ==============================================================================

@dataclass(frozen=True)
class DmiFile:
    """
    A decoded DMI file.

    Attributes:
        path: Absolute path (empty for in-memory decodes)
        width: Sprite sheet width in pixels
        height: Sprite sheet height in pixels
        cell_width: Icon width in pixels
        cell_height: Icon height in pixels
        fingerprint: Hash of the raw file bytes
        version: Format version string from the header
        states: Icon states in declaration order
        pixels: RGBA sheet (height, width, 4), or None for metadata-only decodes
        warnings: Non-fatal problems found while parsing
    """
    path: str
    width: int
    height: int
    cell_width: int
    cell_height: int
    fingerprint: str
    version: str = "4.0"
    states: Tuple[IconState, ...] = ()
    pixels: Optional[np.ndarray] = field(default=None, compare=False, repr=False)
    warnings: Tuple[str, ...] = field(default=(), compare=False)

    @property
    def columns(self) -> int:
        return self.width // self.cell_width

    @property
    def rows(self) -> int:
        return self.height // self.cell_height

    @property
    def capacity(self) -> int:
        return self.columns * self.rows

    @property
    def has_pixels(self) -> bool:
        return self.pixels is not None

    def state_names(self) -> List[str]:
        return [state.name for state in self.states]

    def find_state(self, name: str, occurrence: int = 0) -> Optional[IconState]:
        """
        Look up a state by name.

        Args:
            name: State name (exact, case-sensitive)
            occurrence: Which one to return when the name repeats

        Returns:
            The IconState, or None
        """
        matches = [s for s in self.states if s.name == name]
        if 0 <= occurrence < len(matches):
            return matches[occurrence]
        return None
