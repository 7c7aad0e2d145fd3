# ==============================================================================
# PARSERS MODULE
# ==============================================================================
# File format support for BYOND DMI (DreamMaker Icon) files.
#
# Pipeline:
#   - png_container: PNG chunk walker (signature, CRCs, IHDR, text chunks)
#   - dmi_metadata:  "# BEGIN DMI" grammar parser and writer
#   - dmi_parser:    DmiDecoder, container + grammar + geometry checks
#   - slicer:        Cuts the sprite sheet into per-direction frames
#   - gif_exporter:  Animated GIF / still PNG encoding
# ==============================================================================

from .dmi_types import Direction, Frame, Hotspot, IconState, DmiMetadata, DmiFile
from .png_container import PngChunk, PngContainer, read_container
from .dmi_parser import DmiDecoder, load_dmi
from .slicer import SheetSlicer
from .gif_exporter import ExportRenderer, AnimatedArtifact

__all__ = [
    # Data types
    'Direction', 'Frame', 'Hotspot', 'IconState', 'DmiMetadata', 'DmiFile',

    # Container
    'PngChunk', 'PngContainer', 'read_container',

    # Decoder
    'DmiDecoder', 'load_dmi',

    # Slicing / export
    'SheetSlicer', 'ExportRenderer', 'AnimatedArtifact',
]
