# ==============================================================================
# DMI PARSER MODULE
# ==============================================================================
# Decoder for BYOND DMI (DreamMaker Icon) files.
#
# A DMI file is an ordinary PNG whose image is a sprite sheet: a grid of
# equally sized cells. A text chunk with the keyword "Description" carries
# the "# BEGIN DMI" block that says how to cut the sheet into states.
#
# Decoding runs in two stages:
#   1. Container: signature, chunk CRCs, IHDR, text chunks (png_container)
#   2. Grammar:   metadata block -> states (dmi_metadata)
#
# Then geometry is checked: every cell declared by the states must fit in
# the sheet. Cells are assigned in declaration order and numbered row-major
# from the top-left corner. Inside a state, frames are outer and directions
# inner, so (direction d, frame f) lives at offset f * dirs + d.
#
# Pixel data is only decompressed when asked for. Index builds decode
# metadata only.
#
# Usage:
#   decoder = DmiDecoder()
#   dmi = decoder.decode_file("icons/mob/human.dmi")
#   for state in dmi.states:
#       print(state.name, state.dirs, state.frames)
# ==============================================================================

import io
import os
import warnings
from dataclasses import replace
from typing import List, Optional

import numpy as np
from PIL import Image

from ..core.errors import FormatError, GeometryError, IoError, MetadataError
from ..core.hasher import FileHasher
from . import dmi_metadata
from .dmi_types import DmiFile, DmiMetadata, IconState
from .png_container import PngContainer, read_container


# Refuse sheets that would need more than ~1 GiB of RGBA
MAX_PIXELS = 16384 * 16384


class DmiDecoder:
    """
    Turns DMI byte streams into DmiFile objects.

    The decoder is stateless apart from its hasher and is safe to share
    between threads.

    Attributes:
        hasher (FileHasher): Computes the content fingerprint
    """

    def __init__(self, hasher: Optional[FileHasher] = None):
        self.hasher = hasher or FileHasher()

    # ==========================================================================
    # PUBLIC API
    # ==========================================================================

    def decode(self, data: bytes, path: str = "", include_pixels: bool = True) -> DmiFile:
        """
        Decode a DMI byte stream.

        Args:
            data: Complete file contents
            path: Source path recorded on the result (may be empty)
            include_pixels: Also decompress the sprite sheet into an RGBA array

        Returns:
            DmiFile

        Raises:
            FormatError: Bad signature, CRC mismatch, truncation, undecodable pixels
            MetadataError: No DMI metadata, or it does not parse
            GeometryError: States need more cells than the sheet has
        """
        try:
            container = read_container(data)
            meta = dmi_metadata.parse(self._metadata_text(container))
            states = self._assign_cells(meta, container.width, container.height)

            pixels = None
            if include_pixels:
                pixels = self._decode_pixels(data, container)
        except (FormatError, MetadataError, GeometryError) as e:
            if path and not e.path:
                e.path = path
            raise

        return DmiFile(
            path=path,
            width=container.width,
            height=container.height,
            cell_width=meta.width,
            cell_height=meta.height,
            fingerprint=self.hasher.hash_bytes(data),
            version=meta.version,
            states=states,
            pixels=pixels,
            warnings=meta.warnings,
        )

    def decode_file(self, path: str, include_pixels: bool = True) -> DmiFile:
        """
        Read and decode a DMI file from disk.

        Raises:
            IoError: If the file cannot be read
            DecodeError: See decode()
        """
        path = os.path.abspath(path)
        try:
            with open(path, 'rb') as f:
                data = f.read()
        except OSError as e:
            raise IoError(e.strerror or str(e), path=path) from e

        return self.decode(data, path=path, include_pixels=include_pixels)

    def with_pixels(self, dmi: DmiFile) -> DmiFile:
        """
        Return `dmi` with its pixel buffer loaded.

        Re-reads the file from dmi.path. The result carries the fingerprint
        of the bytes actually read, which may differ from dmi.fingerprint if
        the file changed on disk.
        """
        if dmi.has_pixels:
            return dmi
        return self.decode_file(dmi.path, include_pixels=True)

    # ==========================================================================
    # STAGES
    # ==========================================================================

    @staticmethod
    def _metadata_text(container: PngContainer) -> str:
        text = container.find_text(dmi_metadata.METADATA_KEYWORD, dmi_metadata.BEGIN_MARKER)
        if text is None:
            # Some exporters use a different keyword; accept any text chunk
            # that carries the header
            for values in container.text.values():
                for value in values:
                    if dmi_metadata.BEGIN_MARKER in value:
                        return value
            raise MetadataError("No DMI metadata (missing '# BEGIN DMI' text chunk)")
        return text

    @staticmethod
    def _assign_cells(meta: DmiMetadata, width: int, height: int) -> tuple:
        """
        Give every state its first cell index and check the grid has room.

        Raises:
            GeometryError: Cell larger than the sheet, or grid overflow
        """
        if meta.width > width or meta.height > height:
            raise GeometryError(
                f"Icon size {meta.width}x{meta.height} exceeds image size {width}x{height}"
            )

        columns = width // meta.width
        rows = height // meta.height
        capacity = columns * rows

        states: List[IconState] = []
        next_cell = 0
        for state in meta.states:
            states.append(replace(state, first_cell=next_cell))
            next_cell += state.cell_count

        if next_cell > capacity:
            raise GeometryError(
                f"States need {next_cell} cells but a {width}x{height} sheet of "
                f"{meta.width}x{meta.height} icons holds only {capacity}"
            )

        return tuple(states)

    @staticmethod
    def _decode_pixels(data: bytes, container: PngContainer) -> np.ndarray:
        if container.width * container.height > MAX_PIXELS:
            raise FormatError(
                f"Image too large to decode ({container.width}x{container.height})"
            )

        try:
            with warnings.catch_warnings():
                # Pillow warns about large text chunks; DMI metadata can be big
                warnings.simplefilter("ignore")
                with Image.open(io.BytesIO(data)) as image:
                    image.load()
                    rgba = image.convert("RGBA")
        except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
            raise FormatError(f"Cannot decode image data: {e}") from e

        if rgba.size != (container.width, container.height):
            raise FormatError(
                f"Decoded size {rgba.size[0]}x{rgba.size[1]} does not match "
                f"IHDR {container.width}x{container.height}"
            )

        return np.array(rgba, dtype=np.uint8)


# ==============================================================================
# CONVENIENCE FUNCTIONS
# ==============================================================================

def load_dmi(path: str, include_pixels: bool = True) -> DmiFile:
    """
    Decode a DMI file with a default decoder.

    Example:
        >>> dmi = load_dmi("icons/obj/door.dmi")
        >>> dmi.state_names()
        ['closed', 'open', 'opening']
    """
    return DmiDecoder().decode_file(path, include_pixels=include_pixels)
