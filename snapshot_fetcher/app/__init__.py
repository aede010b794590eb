"""스냅샷 수집 서비스 패키지(Snapshot ingestion service package)."""
from .service import ProgressCallback, SnapshotFetcher, decode_snapshot

__all__ = ["ProgressCallback", "SnapshotFetcher", "decode_snapshot"]
