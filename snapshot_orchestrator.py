"""취약점 스냅샷 로드 오케스트레이터 모듈(Snapshot load orchestrator module)."""
from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from common_lib.cache import CacheInfo, SnapshotStore, build_snapshot_store
from common_lib.config import get_settings
from common_lib.errors import IngestionInProgressError
from common_lib.logger import get_logger
from common_lib.observability import run_id_ctx
from dashboard_core.context import DashboardContext
from dashboard_core.models import ProcessedVulnerability
from dashboard_core.normalizer import process_vulnerability_data
from snapshot_fetcher.app.service import ProgressCallback, SnapshotFetcher

logger = get_logger(__name__)


class SnapshotOrchestrator:
    """캐시와 수집 서비스를 조율하는 오케스트레이터(Coordinates cache and ingestion)."""

    def __init__(
        self,
        cache: Optional[SnapshotStore] = None,
        fetcher: Optional[SnapshotFetcher] = None,
        url: Optional[str] = None,
    ) -> None:
        self._cache = cache or build_snapshot_store()
        self._fetcher = fetcher or SnapshotFetcher()
        self._url = url or get_settings().data_source_url
        self._in_flight = False
        self._last_from_cache = False

    @property
    def url(self) -> str:
        return self._url

    @property
    def is_loading(self) -> bool:
        return self._in_flight

    async def load_snapshot(
        self,
        force: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> Dict[str, Any]:
        """원본 문서 로드(Return the raw document from cache or network).

        A fresh cache entry is returned without touching the network unless
        ``force`` is set. A fetched document is written to the cache only after
        it decoded successfully; failures propagate and leave the cache as is.

        Raises:
            IngestionInProgressError: another load is still running
            NetworkError: the snapshot could not be retrieved
            DecodeError: the retrieved bytes are not a JSON object
        """

        if self._in_flight:
            logger.warning("Snapshot load already in progress for %s; rejecting", self._url)
            raise IngestionInProgressError(self._url)

        self._in_flight = True
        token = run_id_ctx.set(uuid.uuid4().hex[:12])
        try:
            if force:
                logger.info("캐시 무시 모드 활성화(Cache bypass enabled)")
            else:
                cached = await self._cache.read()
                if cached is not None:
                    self._last_from_cache = True
                    if on_progress is not None:
                        on_progress(100.0)
                    return cached

            document = await self._fetcher.fetch(self._url, on_progress=on_progress)
            self._last_from_cache = False
            await self._cache.write(document)
            return document
        finally:
            run_id_ctx.reset(token)
            self._in_flight = False

    async def load_vulnerabilities(
        self,
        force: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[ProcessedVulnerability]:
        document = await self.load_snapshot(force=force, on_progress=on_progress)
        return process_vulnerability_data(document)

    async def build_context(
        self,
        force: bool = False,
        on_progress: Optional[ProgressCallback] = None,
    ) -> DashboardContext:
        """대시보드 컨텍스트 생성(Load, normalize and aggregate into a context)."""

        records = await self.load_vulnerabilities(force=force, on_progress=on_progress)
        context = DashboardContext.from_records(records, from_cache=self._last_from_cache)
        logger.info(
            "Dashboard context ready: %d records (from_cache=%s)",
            context.stats.total_vulnerabilities,
            context.from_cache,
        )
        return context

    async def refresh(self, on_progress: Optional[ProgressCallback] = None) -> DashboardContext:
        """강제 재조회(Explicit re-fetch that bypasses the cache)."""

        return await self.build_context(force=True, on_progress=on_progress)

    async def clear_cache(self) -> bool:
        return await self._cache.clear()

    async def cache_info(self) -> CacheInfo:
        return await self._cache.info()
