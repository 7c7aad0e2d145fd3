# ==============================================================================
# PNG CONTAINER MODULE
# ==============================================================================
# Chunk-level reader for the PNG container that carries DMI sprite sheets.
#
# PNG Format Overview:
#   - Signature: 8 bytes  89 50 4E 47 0D 0A 1A 0A
#   - Chunks:    [length:u32 BE][type:4 bytes][data:length][crc:u32 BE]
#   - The CRC covers type + data (CRC-32, same polynomial as zlib)
#   - First chunk is always IHDR, last chunk is IEND
#
# DMI files keep their slicing metadata in a text chunk with the keyword
# "Description" (BYOND writes zTXt, some tools write tEXt or iTXt).
#
# References:
#   - https://www.w3.org/TR/png/#5Chunk-layout
#   - https://www.w3.org/TR/png/#11textinfo
#
# Usage:
#   container = read_container(data)
#   print(container.width, container.height)
#   text = container.find_text("Description")
# ==============================================================================

import struct
import zlib
from typing import Dict, List, Optional
from dataclasses import dataclass, field

from ..core.errors import FormatError, MetadataError


# ==============================================================================
# CONSTANTS
# ==============================================================================

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# IHDR body: width, height, bit depth, color type, compression, filter, interlace
IHDR_FORMAT = ">IIBBBBB"
IHDR_SIZE = 13

TEXT_CHUNK_TYPES = (b"tEXt", b"zTXt", b"iTXt")


# ==============================================================================
# DATA CLASSES
# ==============================================================================

@dataclass
class PngChunk:
    """
    A single verified chunk.

    Attributes:
        type: 4-byte chunk type (e.g. b"IHDR")
        data: Chunk body
        offset: Byte offset of the chunk's length field in the stream
    """
    type: bytes
    data: bytes
    offset: int = 0

    @property
    def name(self) -> str:
        return self.type.decode("latin-1")


@dataclass
class PngContainer:
    """
    Structural view of a PNG stream.

    Attributes:
        width: Image width in pixels (from IHDR)
        height: Image height in pixels (from IHDR)
        bit_depth: Bits per sample
        color_type: PNG color type (0, 2, 3, 4 or 6)
        chunks: All chunks in stream order
        text: Text chunks decoded as {keyword: [text, ...]}
    """
    width: int = 0
    height: int = 0
    bit_depth: int = 8
    color_type: int = 6
    chunks: List[PngChunk] = field(default_factory=list)
    text: Dict[str, List[str]] = field(default_factory=dict)

    def find_text(self, keyword: str, marker: Optional[str] = None) -> Optional[str]:
        """
        Get the first text value stored under `keyword`.

        Args:
            keyword: Text chunk keyword (case-sensitive, as in PNG)
            marker: If given, only values containing this substring match

        Returns:
            The text, or None if no chunk matches
        """
        for value in self.text.get(keyword, []):
            if marker is None or marker in value:
                return value
        return None


# ==============================================================================
# CHUNK READING
# ==============================================================================

def iter_chunks(data: bytes):
    """
    Walk the chunks of a PNG stream, verifying each CRC.

    Stops after IEND. Trailing bytes after IEND are ignored.

    Args:
        data: Complete PNG byte stream

    Yields:
        PngChunk objects in stream order

    Raises:
        FormatError: Bad signature, truncated chunk, or CRC mismatch
    """
    if not data.startswith(PNG_SIGNATURE):
        raise FormatError("Not a PNG file (bad signature)")

    offset = len(PNG_SIGNATURE)
    total = len(data)

    while True:
        if offset + 8 > total:
            raise FormatError(f"Truncated chunk header at offset {offset}")

        length, chunk_type = struct.unpack_from(">I4s", data, offset)
        body_start = offset + 8
        body_end = body_start + length

        if body_end + 4 > total:
            raise FormatError(
                f"Truncated {chunk_type.decode('latin-1', 'replace')} chunk at offset {offset}"
            )

        body = data[body_start:body_end]
        (stored_crc,) = struct.unpack_from(">I", data, body_end)
        actual_crc = zlib.crc32(chunk_type + body) & 0xFFFFFFFF

        if stored_crc != actual_crc:
            raise FormatError(
                f"CRC mismatch in {chunk_type.decode('latin-1', 'replace')} chunk "
                f"(stored {stored_crc:08x}, computed {actual_crc:08x})"
            )

        yield PngChunk(type=chunk_type, data=body, offset=offset)

        offset = body_end + 4
        if chunk_type == b"IEND":
            return


def _decode_text(raw: bytes) -> str:
    # The grammar is UTF-8; older tools wrote plain latin-1 text chunks
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        return raw.decode("latin-1")


def decode_text_chunk(chunk: PngChunk):
    """
    Decode a tEXt, zTXt or iTXt chunk body.

    Args:
        chunk: A text chunk

    Returns:
        Tuple of (keyword, text)

    Raises:
        MetadataError: Malformed text chunk or undecompressable payload
    """
    body = chunk.data
    sep = body.find(b"\x00")
    if sep <= 0:
        raise MetadataError(f"{chunk.name} chunk has no keyword")

    keyword = body[:sep].decode("latin-1")
    rest = body[sep + 1:]

    try:
        if chunk.type == b"tEXt":
            return keyword, _decode_text(rest)

        if chunk.type == b"zTXt":
            # One compression-method byte (always 0 = deflate), then zlib data
            if not rest:
                raise MetadataError("zTXt chunk has no compression method")
            return keyword, _decode_text(zlib.decompress(rest[1:]))

        # iTXt: compression flag, method, language\0, translated keyword\0, text
        if len(rest) < 2:
            raise MetadataError("iTXt chunk is truncated")
        compressed = rest[0] == 1
        rest = rest[2:]
        lang_end = rest.find(b"\x00")
        trans_end = rest.find(b"\x00", lang_end + 1)
        if lang_end < 0 or trans_end < 0:
            raise MetadataError("iTXt chunk is truncated")
        payload = rest[trans_end + 1:]
        if compressed:
            payload = zlib.decompress(payload)
        return keyword, payload.decode("utf-8")

    except zlib.error as e:
        raise MetadataError(f"Cannot decompress {chunk.name} chunk: {e}") from e
    except UnicodeDecodeError as e:
        raise MetadataError(f"iTXt chunk is not valid UTF-8: {e}") from e


def read_container(data: bytes) -> PngContainer:
    """
    Parse and verify the chunk structure of a PNG stream.

    Does not decompress pixel data; use Pillow for that once the structure
    is known to be sound.

    Args:
        data: Complete PNG byte stream

    Returns:
        PngContainer with IHDR fields and decoded text chunks

    Raises:
        FormatError: If the container is malformed
        MetadataError: If a text chunk cannot be decoded
    """
    container = PngContainer()

    for index, chunk in enumerate(iter_chunks(data)):
        if index == 0:
            if chunk.type != b"IHDR":
                raise FormatError(f"First chunk is {chunk.name}, expected IHDR")
            if len(chunk.data) != IHDR_SIZE:
                raise FormatError(f"IHDR has length {len(chunk.data)}, expected {IHDR_SIZE}")
            (container.width, container.height, container.bit_depth,
             container.color_type, _, _, _) = struct.unpack(IHDR_FORMAT, chunk.data)
            if container.width == 0 or container.height == 0:
                raise FormatError("Image has zero width or height")

        elif chunk.type in TEXT_CHUNK_TYPES:
            keyword, text = decode_text_chunk(chunk)
            container.text.setdefault(keyword, []).append(text)

        container.chunks.append(chunk)

    if not any(c.type == b"IDAT" for c in container.chunks):
        raise FormatError("PNG has no image data (IDAT)")

    return container
