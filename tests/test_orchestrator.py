"""Integration tests for the snapshot orchestrator."""

import asyncio

import pytest

from common_lib.cache import MemorySnapshotStore
from common_lib.errors import DecodeError, IngestionInProgressError, NetworkError
from snapshot_fetcher.app.service import SnapshotFetcher
from snapshot_orchestrator import SnapshotOrchestrator

URL = "https://snapshots.example.test/ui_demo.json"


class BlockingFetcher:
    """Fetcher that waits until released, for overlapping-load tests."""

    def __init__(self, document):
        self.document = document
        self.release = asyncio.Event()
        self.started = asyncio.Event()
        self.calls = 0

    async def fetch(self, url, on_progress=None):
        self.calls += 1
        self.started.set()
        await self.release.wait()
        if on_progress is not None:
            on_progress(100.0)
        return self.document


@pytest.fixture
def memory_store(clock):
    return MemorySnapshotStore(expiry_hours=24, clock=clock)


def _orchestrator(store, transport):
    return SnapshotOrchestrator(cache=store, fetcher=SnapshotFetcher(transport=transport), url=URL)


class TestLoadSnapshot:
    """Test SnapshotOrchestrator.load_snapshot."""

    @pytest.mark.asyncio
    async def test_miss_fetches_and_caches(self, memory_store, transport_factory, snapshot_bytes, sample_document):
        """A cache miss goes to the network and stores the document."""
        calls = []
        orchestrator = _orchestrator(memory_store, transport_factory(snapshot_bytes, calls=calls))

        assert await orchestrator.load_snapshot() == sample_document
        assert len(calls) == 1
        assert await memory_store.read() == sample_document

    @pytest.mark.asyncio
    async def test_hit_skips_network(self, memory_store, transport_factory, snapshot_bytes, sample_document):
        """A fresh cache entry is served without any request."""
        await memory_store.write(sample_document)
        calls = []
        orchestrator = _orchestrator(memory_store, transport_factory(snapshot_bytes, calls=calls))

        progress = []
        assert await orchestrator.load_snapshot(on_progress=progress.append) == sample_document
        assert calls == []
        assert progress == [100.0]

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self, memory_store, clock, transport_factory, snapshot_bytes):
        """An expired entry triggers a new fetch."""
        await memory_store.write({"groups": {}})
        clock.advance_hours(30)
        calls = []
        orchestrator = _orchestrator(memory_store, transport_factory(snapshot_bytes, calls=calls))

        await orchestrator.load_snapshot()
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_force_bypasses_cache(self, memory_store, transport_factory, snapshot_bytes, sample_document):
        """Forced loads fetch even with a fresh entry and refresh the cache."""
        await memory_store.write({"groups": {}})
        calls = []
        orchestrator = _orchestrator(memory_store, transport_factory(snapshot_bytes, calls=calls))

        assert await orchestrator.load_snapshot(force=True) == sample_document
        assert len(calls) == 1
        assert await memory_store.read() == sample_document

    @pytest.mark.asyncio
    async def test_network_failure_leaves_cache(self, memory_store, transport_factory):
        """A failed fetch propagates and does not touch the cache."""
        await memory_store.write({"groups": {"old": {}}})
        orchestrator = _orchestrator(memory_store, transport_factory(b"oops", status_code=500))

        with pytest.raises(NetworkError):
            await orchestrator.load_snapshot(force=True)
        assert await memory_store.read() == {"groups": {"old": {}}}

    @pytest.mark.asyncio
    async def test_decode_failure_not_cached(self, memory_store, transport_factory):
        """A malformed body is never written to the cache."""
        orchestrator = _orchestrator(memory_store, transport_factory(b"<html>"))

        with pytest.raises(DecodeError):
            await orchestrator.load_snapshot()
        assert (await memory_store.info()).present is False
        assert orchestrator.is_loading is False

    @pytest.mark.asyncio
    async def test_overlapping_load_rejected(self, memory_store, sample_document):
        """A second load while one is in flight raises IngestionInProgressError."""
        fetcher = BlockingFetcher(sample_document)
        orchestrator = SnapshotOrchestrator(cache=memory_store, fetcher=fetcher, url=URL)

        first = asyncio.create_task(orchestrator.load_snapshot())
        await fetcher.started.wait()
        assert orchestrator.is_loading is True

        with pytest.raises(IngestionInProgressError) as exc_info:
            await orchestrator.load_snapshot()
        assert exc_info.value.status_code == 409

        fetcher.release.set()
        assert await first == sample_document
        assert fetcher.calls == 1
        assert orchestrator.is_loading is False

        # A later load is accepted again.
        assert await orchestrator.load_snapshot() == sample_document

    @pytest.mark.asyncio
    async def test_sqlite_store_round_trip(self, sqlite_store, transport_factory, snapshot_bytes, sample_document):
        """The persistent store serves the second load."""
        calls = []
        orchestrator = _orchestrator(sqlite_store, transport_factory(snapshot_bytes, calls=calls))

        await orchestrator.load_snapshot()
        assert await orchestrator.load_snapshot() == sample_document
        assert len(calls) == 1


class TestContextBuilding:
    """Test the record and context helpers."""

    @pytest.mark.asyncio
    async def test_build_context(self, memory_store, transport_factory, snapshot_bytes):
        """Context carries records, stats and cache provenance."""
        orchestrator = _orchestrator(memory_store, transport_factory(snapshot_bytes))

        context = await orchestrator.build_context()
        assert context.stats.total_vulnerabilities == 7
        assert context.from_cache is False
        assert context.loaded_at is not None

        cached = await orchestrator.build_context()
        assert cached.from_cache is True
        assert [r.id for r in cached.all_vulnerabilities] == [r.id for r in context.all_vulnerabilities]

    @pytest.mark.asyncio
    async def test_refresh_forces_fetch(self, memory_store, transport_factory, snapshot_bytes, sample_document):
        """Refresh always goes to the network."""
        await memory_store.write(sample_document)
        calls = []
        orchestrator = _orchestrator(memory_store, transport_factory(snapshot_bytes, calls=calls))

        context = await orchestrator.refresh()
        assert len(calls) == 1
        assert context.from_cache is False

    @pytest.mark.asyncio
    async def test_load_vulnerabilities(self, memory_store, sample_document):
        """Records come back normalized."""
        await memory_store.write(sample_document)
        orchestrator = SnapshotOrchestrator(cache=memory_store, fetcher=BlockingFetcher({}), url=URL)

        records = await orchestrator.load_vulnerabilities()
        assert len(records) == 7
        assert records[0].id == "platform-api-v1-CVE-2024-0001-0"

    @pytest.mark.asyncio
    async def test_cache_management(self, memory_store, sample_document):
        """Cache info and clear pass through to the store."""
        await memory_store.write(sample_document)
        orchestrator = SnapshotOrchestrator(cache=memory_store, fetcher=BlockingFetcher({}), url=URL)

        assert (await orchestrator.cache_info()).present is True
        assert await orchestrator.clear_cache() is True
        assert (await orchestrator.cache_info()).present is False

    def test_default_url_from_settings(self, memory_store):
        """The configured source URL is used when none is given."""
        orchestrator = SnapshotOrchestrator(cache=memory_store, fetcher=BlockingFetcher({}))
        assert orchestrator.url == URL
