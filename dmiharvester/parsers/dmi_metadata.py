# ==============================================================================
# DMI METADATA MODULE
# ==============================================================================
# Parser and writer for the text block BYOND stores in a DMI's PNG chunk.
#
# Grammar (line oriented, UTF-8, indentation is cosmetic):
#
#   # BEGIN DMI
#   version = 4.0
#       width = 32
#       height = 32
#   state = "walk"
#       dirs = 4
#       frames = 2
#       delay = 1,2
#       loop = 0
#       rewind = 0
#       movement = 0
#       hotspot = 12,20,1
#   # END DMI
#
# Parsing is permissive about layout and unknown keys, strict about numbers:
#   - dirs must be 1, 4 or 8
#   - frames must be >= 1
#   - a delay list that does not match `frames` is discarded and every frame
#     gets the default delay of 1 tick (a warning is recorded)
#
# Usage:
#   meta = dmi_metadata.parse(text)
#   text = dmi_metadata.serialize(meta)
# ==============================================================================

import math
import re
from typing import Dict, List, Optional

from ..core.errors import MetadataError
from .dmi_types import (
    DEFAULT_DELAY, DEFAULT_ICON_SIZE, VALID_DIR_COUNTS,
    DmiMetadata, Hotspot, IconState,
)


# ==============================================================================
# CONSTANTS
# ==============================================================================

METADATA_KEYWORD = "Description"
BEGIN_MARKER = "# BEGIN DMI"
END_MARKER = "# END DMI"

TRUE_WORDS = ("1", "true", "yes")
FALSE_WORDS = ("0", "false", "no")

_LINE_RE = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*=\s*(.*?)\s*$")


# ==============================================================================
# VALUE HELPERS
# ==============================================================================

def _parse_int(key: str, value: str, line_no: int) -> int:
    try:
        return int(value)
    except ValueError:
        raise MetadataError(f"line {line_no}: {key} = {value!r} is not an integer") from None


def _parse_float(key: str, value: str, line_no: int) -> float:
    try:
        number = float(value)
    except ValueError:
        raise MetadataError(f"line {line_no}: {key} = {value!r} is not a number") from None
    if not math.isfinite(number) or number < 0:
        raise MetadataError(f"line {line_no}: {key} = {value!r} must be a finite non-negative number")
    return number


def _parse_bool(key: str, value: str, line_no: int) -> bool:
    text = value.lower()
    if text in TRUE_WORDS:
        return True
    if text in FALSE_WORDS:
        return False
    raise MetadataError(f"line {line_no}: {key} = {value!r} is not a boolean")


def _parse_string(value: str, line_no: int) -> str:
    """Unquote a `"..."` value, honouring \\" and \\\\ escapes."""
    if len(value) < 2 or value[0] != '"' or value[-1] != '"':
        raise MetadataError(f"line {line_no}: state name {value!r} is not quoted")

    out = []
    chars = iter(value[1:-1])
    for ch in chars:
        if ch == "\\":
            nxt = next(chars, "")
            out.append(nxt if nxt in ('"', "\\") else ch + nxt)
        else:
            out.append(ch)
    return "".join(out)


def _quote_string(name: str) -> str:
    return '"' + name.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


# ==============================================================================
# STATE BUILDER
# ==============================================================================

class _StateDraft:
    """Mutable accumulator for one `state = ...` block."""

    def __init__(self, name: str, line_no: int):
        self.name = name
        self.line_no = line_no
        self.dirs = 1
        self.frames = 1
        self.delays: Optional[List[float]] = None
        self.loop = 0
        self.rewind = False
        self.movement = False
        self.hotspots: List[Hotspot] = []

    def apply(self, key: str, value: str, line_no: int):
        if key == "dirs":
            self.dirs = _parse_int(key, value, line_no)
            if self.dirs not in VALID_DIR_COUNTS:
                raise MetadataError(
                    f"line {line_no}: state {self.name!r} has dirs = {self.dirs}, "
                    f"expected one of {VALID_DIR_COUNTS}"
                )
        elif key == "frames":
            self.frames = _parse_int(key, value, line_no)
            if self.frames < 1:
                raise MetadataError(
                    f"line {line_no}: state {self.name!r} has frames = {self.frames}"
                )
        elif key == "delay":
            self.delays = [_parse_float(key, part.strip(), line_no)
                           for part in value.split(",") if part.strip()]
        elif key == "loop":
            self.loop = _parse_int(key, value, line_no)
            if self.loop < 0:
                raise MetadataError(f"line {line_no}: loop = {self.loop} is negative")
        elif key == "rewind":
            self.rewind = _parse_bool(key, value, line_no)
        elif key == "movement":
            self.movement = _parse_bool(key, value, line_no)
        elif key == "hotspot":
            parts = [p.strip() for p in value.split(",")]
            if len(parts) != 3:
                raise MetadataError(f"line {line_no}: hotspot = {value!r} needs x,y,frame")
            x, y, frame = (_parse_int(key, p, line_no) for p in parts)
            self.hotspots.append(Hotspot(x=x, y=y, frame=frame))
        # Unknown keys are ignored so newer BYOND versions still load

    def build(self, warnings: List[str]) -> IconState:
        delays = self.delays
        if delays is not None and len(delays) != self.frames:
            warnings.append(
                f"state {self.name!r}: {len(delays)} delays for {self.frames} frames, "
                f"using default delay"
            )
            delays = None
        if delays is None:
            delays = [DEFAULT_DELAY] * self.frames

        return IconState(
            name=self.name,
            dirs=self.dirs,
            frames=self.frames,
            delays=tuple(delays),
            loop=self.loop,
            rewind=self.rewind,
            movement=self.movement,
            hotspots=tuple(self.hotspots),
        )


# ==============================================================================
# PARSING
# ==============================================================================

def parse(text: str) -> DmiMetadata:
    """
    Parse a DMI metadata block.

    Cell indices are not assigned here; the decoder does that once it knows
    the image geometry.

    Args:
        text: Contents of the Description text chunk

    Returns:
        DmiMetadata with states in declaration order

    Raises:
        MetadataError: On missing header or invalid numeric values
    """
    if text is None:
        raise MetadataError("No DMI metadata")

    header: Dict[str, str] = {}
    header_lines: Dict[str, int] = {}
    drafts: List[_StateDraft] = []
    current: Optional[_StateDraft] = None
    warnings: List[str] = []

    for line_no, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue

        match = _LINE_RE.match(line)
        if not match:
            warnings.append(f"line {line_no}: ignored {line!r}")
            continue

        key, value = match.group(1).lower(), match.group(2)

        if key == "state":
            current = _StateDraft(_parse_string(value, line_no), line_no)
            drafts.append(current)
        elif current is None:
            header[key] = value
            header_lines[key] = line_no
        else:
            current.apply(key, value, line_no)

    if "version" not in header:
        raise MetadataError("DMI metadata has no version")

    width = DEFAULT_ICON_SIZE
    height = DEFAULT_ICON_SIZE
    if "width" in header:
        width = _parse_int("width", header["width"], header_lines["width"])
    if "height" in header:
        height = _parse_int("height", header["height"], header_lines["height"])
    if width <= 0 or height <= 0:
        raise MetadataError(f"Invalid icon size {width}x{height}")

    states = tuple(draft.build(warnings) for draft in drafts)

    return DmiMetadata(
        version=header["version"],
        width=width,
        height=height,
        states=states,
        warnings=tuple(warnings),
    )


# ==============================================================================
# WRITING
# ==============================================================================

def serialize(meta: DmiMetadata) -> str:
    """
    Render metadata back into the DMI text grammar.

    Default-valued keys are omitted, so parse(serialize(m)) == m for any
    parsed m.
    """
    lines = [
        BEGIN_MARKER,
        f"version = {meta.version}",
        f"\twidth = {meta.width}",
        f"\theight = {meta.height}",
    ]

    for state in meta.states:
        lines.append(f"state = {_quote_string(state.name)}")
        lines.append(f"\tdirs = {state.dirs}")
        lines.append(f"\tframes = {state.frames}")
        if any(d != DEFAULT_DELAY for d in state.delays):
            lines.append("\tdelay = " + ",".join(_format_number(d) for d in state.delays))
        if state.loop:
            lines.append(f"\tloop = {state.loop}")
        if state.rewind:
            lines.append("\trewind = 1")
        if state.movement:
            lines.append("\tmovement = 1")
        for hotspot in state.hotspots:
            lines.append(f"\thotspot = {hotspot.x},{hotspot.y},{hotspot.frame}")

    lines.append(END_MARKER)
    return "\n".join(lines) + "\n"
