"""단일 슬롯 스냅샷 캐시(Single-slot snapshot cache).

The cache holds at most one entry: the last successfully fetched raw
vulnerability document together with its capture time and schema version.
Stores never raise storage failures to their caller. Internally a
``CacheError`` is raised, logged, and turned into a miss (``read``/``info``)
or a ``False`` result (``write``/``clear``).
"""
from __future__ import annotations

import copy
import json
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine

from .config import get_settings
from .db import CACHE_TABLE, ensure_schema, get_engine
from .errors import CacheError
from .logger import get_logger

logger = get_logger(__name__)

CACHE_KEY = "main_data"
CACHE_SCHEMA_VERSION = "1.0"

Clock = Callable[[], int]

_MS_PER_HOUR = 60 * 60 * 1000


def now_millis() -> int:
    """Current wall-clock time as integer epoch milliseconds."""
    return int(time.time() * 1000)


class CacheEntry(BaseModel):
    """캐시 행 모델(Persisted cache row)."""

    id: str
    data: Any
    timestamp: int
    version: str


class CacheInfo(BaseModel):
    """캐시 진단 정보(Cache diagnostics)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    present: bool
    age_hours: Optional[float] = None
    size_bytes: Optional[int] = None


class SnapshotStore(ABC):
    """스냅샷 캐시 인터페이스(Injectable single-slot cache interface)."""

    def __init__(
        self,
        expiry_hours: Optional[float] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        resolved = expiry_hours if expiry_hours is not None else get_settings().cache_expiry_hours
        if resolved <= 0:
            logger.warning("Invalid cache_expiry_hours value: %s; using 24", resolved)
            resolved = 24
        self._expiry_ms = int(resolved * _MS_PER_HOUR)
        self._clock: Clock = clock or now_millis

    @abstractmethod
    async def _load_entry(self) -> Optional[CacheEntry]:
        """Return the stored entry regardless of freshness; raise ``CacheError`` on failure."""

    @abstractmethod
    async def _store_entry(self, entry: CacheEntry) -> None:
        """Upsert the single entry; raise ``CacheError`` on failure."""

    @abstractmethod
    async def _delete_entry(self) -> None:
        """Remove the single entry; raise ``CacheError`` on failure."""

    def is_fresh(self, entry: CacheEntry) -> bool:
        return self._clock() - entry.timestamp < self._expiry_ms

    async def read(self) -> Any:
        """캐시 조회(Return the cached payload, or None on miss/expiry/error)."""

        try:
            entry = await self._load_entry()
        except CacheError as exc:
            logger.warning("Error reading from cache; treating as miss: %s", exc.message)
            return None

        if entry is None:
            logger.info("No cached data found")
            return None

        if not self.is_fresh(entry):
            logger.info("Cache expired, will fetch fresh data")
            return None

        age_minutes = round((self._clock() - entry.timestamp) / (1000 * 60))
        logger.info("Loaded from cache (age: %d minutes)", age_minutes)
        return entry.data

    async def write(self, payload: Any) -> bool:
        """캐시 저장(Overwrite the entry with ``payload`` stamped now)."""

        entry = CacheEntry(
            id=CACHE_KEY,
            data=payload,
            timestamp=self._clock(),
            version=CACHE_SCHEMA_VERSION,
        )
        try:
            await self._store_entry(entry)
        except CacheError as exc:
            logger.warning("Error saving to cache: %s", exc.message)
            return False
        logger.info("Data cached successfully")
        return True

    async def clear(self) -> bool:
        """캐시 삭제(Remove the entry)."""

        try:
            await self._delete_entry()
        except CacheError as exc:
            logger.warning("Error clearing cache: %s", exc.message)
            return False
        logger.info("Cache cleared")
        return True

    async def info(self) -> CacheInfo:
        """캐시 상태 조회(Report presence, age and approximate size)."""

        try:
            entry = await self._load_entry()
        except CacheError as exc:
            logger.debug("Cache info unavailable: %s", exc.message)
            return CacheInfo(present=False)

        if entry is None:
            return CacheInfo(present=False)

        age_hours = (self._clock() - entry.timestamp) / _MS_PER_HOUR
        try:
            size_bytes = len(json.dumps(entry.data).encode("utf-8"))
        except (TypeError, ValueError):
            size_bytes = None
        return CacheInfo(present=True, age_hours=round(age_hours, 1), size_bytes=size_bytes)


class MemorySnapshotStore(SnapshotStore):
    """메모리 기반 캐시(In-process store; test double and disabled-cache fallback)."""

    def __init__(
        self,
        expiry_hours: Optional[float] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(expiry_hours=expiry_hours, clock=clock)
        self._entry: Optional[CacheEntry] = None

    async def _load_entry(self) -> Optional[CacheEntry]:
        if self._entry is None:
            return None
        return self._entry.model_copy(update={"data": copy.deepcopy(self._entry.data)})

    async def _store_entry(self, entry: CacheEntry) -> None:
        try:
            # JSON round trip keeps the same constraints as the persistent store
            data = json.loads(json.dumps(entry.data))
        except (TypeError, ValueError) as exc:
            raise CacheError("write", f"payload is not JSON serializable: {exc}") from exc
        self._entry = entry.model_copy(update={"data": data})

    async def _delete_entry(self) -> None:
        self._entry = None


class SqliteSnapshotStore(SnapshotStore):
    """SQLite 기반 영구 캐시(Durable sqlite-backed store via SQLAlchemy async)."""

    def __init__(
        self,
        db_url: Optional[str] = None,
        engine: Optional[AsyncEngine] = None,
        expiry_hours: Optional[float] = None,
        clock: Optional[Clock] = None,
    ) -> None:
        super().__init__(expiry_hours=expiry_hours, clock=clock)
        self._db_url = db_url
        self._engine = engine
        self._schema_ready = False

    async def _get_engine(self, operation: str) -> AsyncEngine:
        try:
            if self._engine is None:
                self._engine = get_engine(self._db_url)
            if not self._schema_ready:
                await ensure_schema(self._engine)
                self._schema_ready = True
        except (SQLAlchemyError, OSError, ImportError) as exc:
            raise CacheError(operation, f"cache database unavailable: {exc}") from exc
        return self._engine

    async def _load_entry(self) -> Optional[CacheEntry]:
        engine = await self._get_engine("read")
        query = text(f"SELECT id, data, timestamp, version FROM {CACHE_TABLE} WHERE id = :id")
        try:
            async with engine.connect() as conn:
                result = await conn.execute(query, {"id": CACHE_KEY})
                row = result.mappings().first()
        except (SQLAlchemyError, OSError) as exc:
            raise CacheError("read", str(exc)) from exc

        if row is None:
            return None

        try:
            data = json.loads(row["data"])
        except (TypeError, ValueError) as exc:
            raise CacheError("read", f"corrupt cache payload: {exc}") from exc
        return CacheEntry(id=row["id"], data=data, timestamp=row["timestamp"], version=row["version"])

    async def _store_entry(self, entry: CacheEntry) -> None:
        try:
            payload = json.dumps(entry.data, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise CacheError("write", f"payload is not JSON serializable: {exc}") from exc

        engine = await self._get_engine("write")
        query = text(
            f"""
            INSERT INTO {CACHE_TABLE} (id, data, timestamp, version)
            VALUES (:id, :data, :timestamp, :version)
            ON CONFLICT (id)
            DO UPDATE SET data = excluded.data, timestamp = excluded.timestamp, version = excluded.version
            """
        )
        try:
            async with engine.begin() as conn:
                await conn.execute(
                    query,
                    {
                        "id": entry.id,
                        "data": payload,
                        "timestamp": entry.timestamp,
                        "version": entry.version,
                    },
                )
        except (SQLAlchemyError, OSError) as exc:
            raise CacheError("write", str(exc)) from exc

    async def _delete_entry(self) -> None:
        engine = await self._get_engine("clear")
        query = text(f"DELETE FROM {CACHE_TABLE} WHERE id = :id")
        try:
            async with engine.begin() as conn:
                await conn.execute(query, {"id": CACHE_KEY})
        except (SQLAlchemyError, OSError) as exc:
            raise CacheError("clear", str(exc)) from exc


def build_snapshot_store(
    expiry_hours: Optional[float] = None,
    clock: Optional[Clock] = None,
) -> SnapshotStore:
    """설정 기반 저장소 생성(Build the store selected by configuration)."""

    settings = get_settings()
    if not settings.enable_cache:
        logger.info("Persistent cache disabled via configuration; using in-memory store")
        return MemorySnapshotStore(expiry_hours=expiry_hours, clock=clock)
    return SqliteSnapshotStore(settings.cache_db_url, expiry_hours=expiry_hours, clock=clock)
