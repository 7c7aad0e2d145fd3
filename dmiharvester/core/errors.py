# ==============================================================================
# ERRORS MODULE
# ==============================================================================
# Exception taxonomy shared by the decoder, index, scanner and cache.
#
#   HarvesterError
#     ├── DecodeError          - per-file failures, never abort a batch
#     │     ├── FormatError    - not a valid PNG container
#     │     ├── MetadataError  - container valid, DMI text chunk missing/bad
#     │     └── GeometryError  - declared cells exceed the sprite sheet
#     ├── IoError              - filesystem access failure
#     ├── ConfigError          - unsafe or invalid path configuration
#     ├── CacheMiss            - internal to the artifact cache
#     └── StateNotFound        - unknown state/direction requested for export
#
# Every error exposes a short `kind` string used in structured reports.
# ==============================================================================

from typing import Optional


class HarvesterError(Exception):
    """Base class for all DMI Harvester errors."""

    kind = "HarvesterError"

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.path = path

    def __str__(self):
        if self.path:
            return f"{self.path}: {self.message}"
        return self.message


class DecodeError(HarvesterError):
    """A single file could not be decoded."""

    kind = "DecodeError"


class FormatError(DecodeError):
    """The byte stream is not a valid PNG container."""

    kind = "FormatError"


class MetadataError(DecodeError):
    """The container is valid but its DMI metadata is missing or unparseable."""

    kind = "MetadataError"


class GeometryError(DecodeError):
    """The declared slicing geometry does not fit the image."""

    kind = "GeometryError"


class IoError(HarvesterError):
    """Filesystem access failed (permission denied, vanished file, ...)."""

    kind = "IoError"


class ConfigError(HarvesterError):
    """
    Invalid or unsafe configuration.

    Raised by destructive operations (cache purge, log pruning) when the
    configured directory fails validation. These are always fail-closed.
    """

    kind = "ConfigError"


class CacheMiss(HarvesterError):
    """Internal signal: no valid artifact stored for a key."""

    kind = "CacheMiss"


class StateNotFound(HarvesterError, KeyError):
    """The requested icon state or direction does not exist in the file."""

    kind = "StateNotFound"

    def __str__(self):
        return HarvesterError.__str__(self)
