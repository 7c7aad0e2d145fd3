# ==============================================================================
# GIF EXPORT MODULE
# ==============================================================================
# Turns icon states into animated GIFs and still PNGs.
#
# Timing:
#   - DMI delays are in ticks, 1 tick = 100 ms
#   - Durations below `min_delay_ms` are raised to it
#   - Durations are capped at the GIF limit of 65535 centiseconds
#
# Looping:
#   - loop = 0 in the DMI plays forever         -> GIF loop=0
#   - loop = 1 plays once                       -> no loop extension
#   - loop = N plays N times                    -> GIF loop=N-1 (repeats)
#
# Rewind states play forward then backward without repeating the end
# frames: 0 1 2 3 2 1.
#
# The renderer is pure. It never touches the artifact cache; the icon
# library decides what gets cached.
#
# Usage:
#   renderer = ExportRenderer()
#   animation = renderer.render(dmi, "walk", Direction.SOUTH)
#   gif_bytes = renderer.encode_gif(animation)
#   png_bytes = renderer.encode_png(animation.frames[0].bitmap, size=64)
# ==============================================================================

import io
import math
from typing import List, Optional
from dataclasses import dataclass, field

import numpy as np
from PIL import Image

from ..core.errors import StateNotFound
from .dmi_types import DmiFile, Direction, Frame
from .slicer import SheetSlicer


# ==============================================================================
# CONSTANTS
# ==============================================================================

TICK_MS = 100
DEFAULT_MIN_DELAY_MS = 20
# GIF frame delays are an unsigned 16-bit count of centiseconds
MAX_DELAY_MS = 65535 * 10

RESAMPLE_FILTERS = {
    "nearest": Image.Resampling.NEAREST,
    "bilinear": Image.Resampling.BILINEAR,
    "bicubic": Image.Resampling.BICUBIC,
    "lanczos": Image.Resampling.LANCZOS,
}


# ==============================================================================
# DATA CLASSES
# ==============================================================================

@dataclass
class AnimatedArtifact:
    """
    A ready-to-encode frame sequence.

    Attributes:
        name (str):         State name
        direction:          Direction the frames face
        frames (list):      Frames in playback order (rewind already applied)
        durations_ms (list): Display time per frame, same length as frames
        loop (int):         Play count from the DMI, 0 = forever
    """
    name: str
    direction: Direction
    frames: List[Frame] = field(default_factory=list)
    durations_ms: List[int] = field(default_factory=list)
    loop: int = 0

    @property
    def frame_count(self) -> int:
        return len(self.frames)

    @property
    def total_duration_ms(self) -> int:
        return sum(self.durations_ms)

    @property
    def size(self):
        if not self.frames:
            return (0, 0)
        return (self.frames[0].width, self.frames[0].height)


def resolve_resample(name: str):
    """Map a filter name to a Pillow resampling constant."""
    try:
        return RESAMPLE_FILTERS[name.lower()]
    except KeyError:
        raise ValueError(
            f"Unknown resize filter {name!r}; expected one of {', '.join(RESAMPLE_FILTERS)}"
        ) from None


# ==============================================================================
# RENDERER
# ==============================================================================

class ExportRenderer:
    """
    Assembles and encodes state animations.

    Attributes:
        min_delay_ms (int): Lower bound for a frame's duration
    """

    def __init__(self, min_delay_ms: int = DEFAULT_MIN_DELAY_MS):
        self.min_delay_ms = max(0, int(min_delay_ms))

    def ticks_to_ms(self, ticks: float) -> int:
        if not math.isfinite(ticks):
            return MAX_DELAY_MS
        return min(MAX_DELAY_MS, max(self.min_delay_ms, int(round(ticks * TICK_MS))))

    def render(self, dmi: DmiFile, state_name: str, direction=Direction.SOUTH,
               occurrence: int = 0) -> AnimatedArtifact:
        """
        Build the animation for one direction of a state.

        Args:
            dmi: Decoded file with pixels
            state_name: Exact state name
            direction: Direction, index or name
            occurrence: Which state to use when the name repeats

        Returns:
            AnimatedArtifact

        Raises:
            StateNotFound: Unknown state or direction
        """
        state = dmi.find_state(state_name, occurrence)
        if state is None:
            raise StateNotFound(f"No state named {state_name!r}", path=dmi.path)

        slicer = SheetSlicer.for_file(dmi)
        frames = slicer.slice_direction(dmi, state, direction)
        durations = [self.ticks_to_ms(frame.delay) for frame in frames]

        if state.rewind and len(frames) > 2:
            frames = frames + frames[-2:0:-1]
            durations = durations + durations[-2:0:-1]

        return AnimatedArtifact(
            name=state.name,
            direction=Direction.parse(direction),
            frames=frames,
            durations_ms=durations,
            loop=state.loop,
        )

    # ==========================================================================
    # ENCODING
    # ==========================================================================

    def encode_gif(self, animation: AnimatedArtifact, scale: int = 1) -> bytes:
        """
        Encode an animation as GIF bytes.

        Args:
            animation: Output of render()
            scale: Integer upscale factor (nearest neighbour)

        Raises:
            ValueError: If the animation has no frames
        """
        if not animation.frames:
            raise ValueError(f"Animation {animation.name!r} has no frames")

        images = [_to_image(frame.bitmap) for frame in animation.frames]
        if scale > 1:
            images = [img.resize((img.width * scale, img.height * scale),
                                 Image.Resampling.NEAREST) for img in images]

        options = {
            "save_all": True,
            "append_images": images[1:],
            "duration": list(animation.durations_ms),
            "disposal": 2,
        }
        if animation.loop == 0:
            options["loop"] = 0
        elif animation.loop > 1:
            options["loop"] = animation.loop - 1

        buffer = io.BytesIO()
        images[0].save(buffer, format="GIF", **options)
        return buffer.getvalue()

    def encode_png(self, bitmap: np.ndarray, size: Optional[int] = None,
                   resample: str = "nearest") -> bytes:
        """
        Encode a single bitmap as PNG bytes.

        Args:
            bitmap: RGBA array
            size: If given, fit the image into a size x size box, keeping
                  aspect ratio (small icons are scaled up)
            resample: Filter name, see RESAMPLE_FILTERS
        """
        image = _to_image(bitmap)
        if size:
            image = fit_image(image, size, resolve_resample(resample))

        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()


def fit_image(image: Image.Image, size: int, resample=Image.Resampling.NEAREST) -> Image.Image:
    """Scale an image to fit a size x size box, preserving aspect ratio."""
    ratio = min(size / image.width, size / image.height)
    new_size = (max(1, int(image.width * ratio)), max(1, int(image.height * ratio)))
    if new_size == image.size:
        return image
    return image.resize(new_size, resample)


def _to_image(bitmap: np.ndarray) -> Image.Image:
    return Image.fromarray(np.ascontiguousarray(bitmap, dtype=np.uint8))
