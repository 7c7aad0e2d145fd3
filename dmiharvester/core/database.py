# ==============================================================================
# DATABASE MODULE
# ==============================================================================
# SQLite manifest for the artifact cache. Uses SQLAlchemy ORM for clean data
# access.
#
# Tables:
#   - artifacts: one row per rendered artifact stored under the cache root
#
# The manifest is the source of truth for sizes and access order; the files
# on disk are only payloads. Rows are plain records here, all policy (LRU,
# budget, single-flight) lives in ArtifactCache.
# ==============================================================================

import os
import json
from datetime import datetime
from dataclasses import dataclass
from typing import Dict, List, Optional
from sqlalchemy import create_engine, func, Column, Integer, String, DateTime, Text
from sqlalchemy.orm import declarative_base, sessionmaker

# ==============================================================================
# SQLAlchemy Base Class
# ==============================================================================
Base = declarative_base()

MANIFEST_NAME = "manifest.db"


# ==============================================================================
# CACHED ARTIFACT MODEL
# ==============================================================================
# One rendered artifact. key_digest is the sha256 of (fingerprint, kind,
# params) and doubles as the payload file name.
#
# Example:
#   row = CachedArtifact(key_digest="9f86d0...", fingerprint="e3b0c4...",
#                        kind="gif", params='{"direction": 0, "state": "walk"}',
#                        rel_path="9f/9f86d0....gif", size=4312)
# ==============================================================================
class CachedArtifact(Base):
    """
    A rendered artifact stored in the cache.

    Attributes:
        id (int):           Unique identifier
        key_digest (str):   Hash of the cache key, unique
        fingerprint (str):  Fingerprint of the source DMI
        kind (str):         Render kind ("gif", "thumbnail", "png", ...)
        params (str):       Render parameters as canonical JSON
        rel_path (str):     Payload path relative to the cache root
        size (int):         Payload size in bytes
        created_at:         When the artifact was stored
        last_access:        Last time it was served
        access_seq (int):   Monotonic access counter, higher = more recent
    """
    __tablename__ = 'artifacts'

    id = Column(Integer, primary_key=True, autoincrement=True)
    key_digest = Column(String(64), unique=True, nullable=False, index=True)
    fingerprint = Column(String(64), nullable=False, index=True)
    kind = Column(String(32), nullable=False)
    params = Column(Text, nullable=False, default='{}')
    rel_path = Column(String(500), nullable=False)
    size = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.now)
    last_access = Column(DateTime, default=datetime.now)
    access_seq = Column(Integer, nullable=False, default=0, index=True)

    def __repr__(self):
        return f"<CachedArtifact(kind='{self.kind}', size={self.size}, key='{self.key_digest[:12]}')>"


@dataclass(frozen=True)
class ManifestRecord:
    """Detached copy of a CachedArtifact row."""
    key_digest: str
    fingerprint: str
    kind: str
    params: Dict
    rel_path: str
    size: int
    created_at: datetime
    last_access: datetime
    access_seq: int

    @classmethod
    def from_row(cls, row: CachedArtifact) -> "ManifestRecord":
        return cls(
            key_digest=row.key_digest,
            fingerprint=row.fingerprint,
            kind=row.kind,
            params=json.loads(row.params or '{}'),
            rel_path=row.rel_path,
            size=row.size,
            created_at=row.created_at,
            last_access=row.last_access,
            access_seq=row.access_seq,
        )


# ==============================================================================
# DATABASE CLASS
# ==============================================================================
# Manifest manager. Handles connection, session management and the handful
# of queries the cache needs.
#
# Usage:
#   db = Database("/home/me/.config/DMIHarvester/cache/manifest.db")
#   db.put(record)
#   victims = db.oldest_first()
# ==============================================================================
class Database:
    """
    Database manager for the artifact cache manifest.

    Callers serialize writes; the engine allows use from several threads.

    Attributes:
        db_path (str): Path to the SQLite database file
        engine: SQLAlchemy engine instance
        Session: SQLAlchemy session factory
    """

    def __init__(self, db_path: str):
        """
        Initialize the database connection.

        Args:
            db_path: Path to the SQLite database file.
                    The file will be created if it doesn't exist.
        """
        self.db_path = db_path

        os.makedirs(os.path.dirname(os.path.abspath(db_path)), exist_ok=True)

        self.engine = create_engine(
            f'sqlite:///{db_path}',
            echo=False,
            connect_args={'check_same_thread': False},
        )
        self.Session = sessionmaker(bind=self.engine)

        Base.metadata.create_all(self.engine)

    def close(self):
        """Release all pooled connections."""
        self.engine.dispose()

    # ==========================================================================
    # ARTIFACT OPERATIONS
    # ==========================================================================

    def get(self, key_digest: str) -> Optional[ManifestRecord]:
        """Get the record for a key, or None."""
        session = self.Session()
        try:
            row = session.query(CachedArtifact).filter(
                CachedArtifact.key_digest == key_digest
            ).first()
            return ManifestRecord.from_row(row) if row else None
        finally:
            session.close()

    def put(self, key_digest: str, fingerprint: str, kind: str, params: Dict,
            rel_path: str, size: int, access_seq: int) -> ManifestRecord:
        """
        Insert or replace the record for a key.

        Returns:
            The stored record
        """
        now = datetime.now()
        session = self.Session()
        try:
            row = session.query(CachedArtifact).filter(
                CachedArtifact.key_digest == key_digest
            ).first()
            if row is None:
                row = CachedArtifact(key_digest=key_digest, created_at=now)
                session.add(row)
            row.fingerprint = fingerprint
            row.kind = kind
            row.params = json.dumps(params, sort_keys=True)
            row.rel_path = rel_path
            row.size = size
            row.last_access = now
            row.access_seq = access_seq
            session.commit()
            return ManifestRecord.from_row(row)
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def touch(self, key_digest: str, access_seq: int):
        """Mark an artifact as just used."""
        session = self.Session()
        try:
            session.query(CachedArtifact).filter(
                CachedArtifact.key_digest == key_digest
            ).update({
                CachedArtifact.last_access: datetime.now(),
                CachedArtifact.access_seq: access_seq,
            })
            session.commit()
        finally:
            session.close()

    def delete(self, key_digests: List[str]) -> int:
        """Delete records by key. Returns the number removed."""
        if not key_digests:
            return 0
        session = self.Session()
        try:
            count = session.query(CachedArtifact).filter(
                CachedArtifact.key_digest.in_(key_digests)
            ).delete(synchronize_session=False)
            session.commit()
            return count
        finally:
            session.close()

    def by_fingerprint(self, fingerprint: str) -> List[ManifestRecord]:
        """All records rendered from one source fingerprint."""
        session = self.Session()
        try:
            rows = session.query(CachedArtifact).filter(
                CachedArtifact.fingerprint == fingerprint
            ).all()
            return [ManifestRecord.from_row(r) for r in rows]
        finally:
            session.close()

    def oldest_first(self) -> List[ManifestRecord]:
        """All records, least recently accessed first."""
        session = self.Session()
        try:
            rows = session.query(CachedArtifact).order_by(
                CachedArtifact.access_seq.asc(), CachedArtifact.id.asc()
            ).all()
            return [ManifestRecord.from_row(r) for r in rows]
        finally:
            session.close()

    def clear(self) -> int:
        """Delete every record. Returns the number removed."""
        session = self.Session()
        try:
            count = session.query(CachedArtifact).delete()
            session.commit()
            return count
        finally:
            session.close()

    # ==========================================================================
    # STATISTICS
    # ==========================================================================

    def total_size(self) -> int:
        session = self.Session()
        try:
            return int(session.query(func.coalesce(func.sum(CachedArtifact.size), 0)).scalar())
        finally:
            session.close()

    def max_access_seq(self) -> int:
        session = self.Session()
        try:
            return int(session.query(func.coalesce(func.max(CachedArtifact.access_seq), 0)).scalar())
        finally:
            session.close()

    def get_stats(self) -> dict:
        """Get counts and sizes, overall and per render kind."""
        session = self.Session()
        try:
            per_kind = session.query(
                CachedArtifact.kind, func.count(CachedArtifact.id), func.sum(CachedArtifact.size)
            ).group_by(CachedArtifact.kind).all()
            return {
                'artifacts': sum(count for _, count, _ in per_kind),
                'total_bytes': sum(int(size or 0) for _, _, size in per_kind),
                'kinds': {kind: {'count': count, 'bytes': int(size or 0)}
                          for kind, count, size in per_kind},
            }
        finally:
            session.close()
