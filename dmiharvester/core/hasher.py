# ==============================================================================
# FILE HASHER MODULE
# ==============================================================================
# Content fingerprints for DMI files.
#
# A fingerprint is the hex digest of the raw file bytes. The index stores it
# per decoded file and the artifact cache keys every rendered artifact by it,
# so an edited icon never serves a stale GIF or thumbnail.
#
# Usage:
#   hasher = FileHasher()                   # sha256
#   fp = hasher.hash_bytes(data)
#   fp = hasher.hash_file("icons/mob/human.dmi")
#
# Performance notes:
#   - Uses 256KB chunks for optimal SSD throughput
#   - Memory-mapped reads for very large files
# ==============================================================================

import os
import hashlib
import mmap

from .errors import IoError


SUPPORTED_ALGORITHMS = ("md5", "sha256")


class FileHasher:
    """
    Fingerprint utility for source files.

    Attributes:
        algorithm (str): "md5" (fast) or "sha256" (default)
        chunk_size (int): Size of chunks to read when hashing files
    """

    # 256KB is optimal for NVMe and SATA SSDs
    DEFAULT_CHUNK_SIZE = 262144

    # Threshold for using memory-mapped files (10MB)
    MMAP_THRESHOLD = 10 * 1024 * 1024

    def __init__(self, algorithm: str = "sha256", chunk_size: int = DEFAULT_CHUNK_SIZE):
        """
        Initialize the file hasher.

        Args:
            algorithm: Hash algorithm name, "md5" or "sha256"
            chunk_size: Size of chunks to read when hashing files

        Raises:
            ValueError: If the algorithm is not supported
        """
        algorithm = algorithm.lower()
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported hash algorithm: {algorithm}")
        self.algorithm = algorithm
        self.chunk_size = chunk_size

    def _new(self):
        return hashlib.new(self.algorithm)

    # ==========================================================================
    # HASHING
    # ==========================================================================

    def hash_bytes(self, data: bytes) -> str:
        """
        Fingerprint raw bytes.

        Example:
            >>> FileHasher("md5").hash_bytes(b"Hello World")
            'b10a8db164e0754105b7a99be72e3fe5'
        """
        hash_obj = self._new()
        hash_obj.update(data)
        return hash_obj.hexdigest()

    def hash_file(self, file_path: str) -> str:
        """
        Fingerprint a file on disk.

        Uses memory-mapped files for large files (>10MB).

        Args:
            file_path: Path to the file to hash

        Returns:
            Hexadecimal digest string

        Raises:
            IoError: If the file cannot be read
        """
        try:
            file_size = os.path.getsize(file_path)
            if file_size > self.MMAP_THRESHOLD:
                return self._hash_file_mmap(file_path)

            hash_obj = self._new()
            with open(file_path, 'rb') as f:
                buffer = bytearray(self.chunk_size)
                mv = memoryview(buffer)
                while True:
                    n = f.readinto(mv)
                    if not n:
                        break
                    hash_obj.update(mv[:n])
            return hash_obj.hexdigest()

        except OSError as e:
            raise IoError(f"Could not hash file: {e.strerror or e}", path=file_path) from e

    def _hash_file_mmap(self, file_path: str) -> str:
        hash_obj = self._new()
        with open(file_path, 'rb') as f:
            with mmap.mmap(f.fileno(), 0, access=mmap.ACCESS_READ) as mm:
                file_size = mm.size()
                offset = 0
                while offset < file_size:
                    chunk_end = min(offset + self.chunk_size * 4, file_size)
                    hash_obj.update(mm[offset:chunk_end])
                    offset = chunk_end
        return hash_obj.hexdigest()
