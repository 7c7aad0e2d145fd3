# ==============================================================================
# DMI HARVESTER - SOURCE PACKAGE
# ==============================================================================
# Main package for DMI Harvester.
#
# Subpackages:
#   - parsers: PNG container reader, DMI metadata grammar, decoder, slicer,
#              GIF/PNG export
#   - core:    Scanner, index, artifact cache, configuration, errors
#
# Entry points:
#   - main.py: Launcher (--version, --check, --paths)
#   - dmiharvester/cli.py: Command-line interface
# ==============================================================================

__version__ = "1.0.0"
__author__ = "Crow"
__description__ = "DMI sprite file decoding, indexing and export toolkit"

# Convenience imports
from .core import (
    IconLibrary, IconIndex, ArtifactCache, AssetScanner, Config, get_config,
)
from .parsers import DmiDecoder, DmiFile, Direction, ExportRenderer, SheetSlicer

__all__ = [
    '__version__',
    '__author__',
    '__description__',

    # Core
    'IconLibrary',
    'IconIndex',
    'ArtifactCache',
    'AssetScanner',
    'Config',
    'get_config',

    # Parsers
    'DmiDecoder',
    'DmiFile',
    'Direction',
    'ExportRenderer',
    'SheetSlicer',
]
