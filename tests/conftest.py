"""Pytest configuration and shared fixtures."""
import json
from typing import Any, AsyncIterator, Callable, Dict, List, Optional

import httpx
import pytest
import pytest_asyncio

from common_lib.cache import SqliteSnapshotStore
from common_lib.config import get_settings
from common_lib.db import dispose_engine
from dashboard_core.models import ProcessedVulnerability
from dashboard_core.normalizer import process_vulnerability_data

SNAPSHOT_URL = "https://snapshots.example.test/ui_demo.json"


class FakeClock:
    """Manually advanced epoch-millisecond clock."""

    def __init__(self, start: int = 1_700_000_000_000) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance_hours(self, hours: float) -> None:
        self.now += int(hours * 60 * 60 * 1000)


@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point every setting at the test's temporary directory."""
    monkeypatch.setenv("VD_CACHE_DB_URL", f"sqlite+aiosqlite:///{tmp_path / 'cache.sqlite'}")
    monkeypatch.setenv("VD_DATA_SOURCE_URL", SNAPSHOT_URL)
    monkeypatch.setenv("VD_ALLOW_EXTERNAL_CALLS", "true")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def sqlite_store(tmp_path, clock):
    """Sqlite-backed store on a per-test database file."""
    db_url = f"sqlite+aiosqlite:///{tmp_path / 'store.sqlite'}"
    store = SqliteSnapshotStore(db_url=db_url, expiry_hours=24, clock=clock)
    yield store
    await dispose_engine(db_url)


def _vuln(**overrides: Any) -> Dict[str, Any]:
    entry = {
        "cve": "CVE-0000-0000",
        "severity": "low",
        "cvss": 0,
        "status": "",
        "packageName": "pkg",
        "packageVersion": "1.0",
        "packageType": "deb",
        "published": "2024-01-01T00:00:00Z",
        "fixDate": None,
        "description": "",
        "riskFactors": {},
    }
    entry.update(overrides)
    return entry


@pytest.fixture
def sample_document() -> Dict[str, Any]:
    """Two groups, three repos, four images, seven vulnerabilities."""
    return {
        "groups": {
            "platform": {
                "name": "platform",
                "repos": {
                    "api": {
                        "name": "api",
                        "images": {
                            "v1": {
                                "name": "api",
                                "version": "v1",
                                "vulnerabilities": [
                                    _vuln(
                                        cve="CVE-2024-0001",
                                        severity="critical",
                                        cvss=9.8,
                                        status="fixed in 1.2.3",
                                        kaiStatus="ai-invalid-norisk",
                                        packageName="openssl",
                                        packageVersion="3.0.1",
                                        published="2024-01-15T10:00:00Z",
                                        fixDate="2024-02-01T00:00:00Z",
                                        description="Buffer overflow in openssl",
                                        riskFactors={"Has fix": {}, "Remote execution": {}},
                                    ),
                                    _vuln(
                                        cve="CVE-2024-0002",
                                        severity="high",
                                        cvss=7.5,
                                        status="affected",
                                        kaiStatus="invalid - norisk",
                                        packageName="lodash",
                                        packageVersion="4.17.20",
                                        packageType="npm",
                                        published="2024-03-02T00:00:00Z",
                                        description='Prototype pollution in "merge"',
                                        riskFactors={"Remote execution": {}},
                                    ),
                                ],
                            },
                            "v2": {
                                "name": "api",
                                "version": "v2",
                                "vulnerabilities": [
                                    _vuln(
                                        cve="CVE-2024-0001",
                                        severity="critical",
                                        cvss=9.8,
                                        status="fixed in 1.2.4",
                                        packageName="openssl",
                                        packageVersion="3.0.2",
                                        published="2024-01-15T10:00:00Z",
                                        description="Buffer overflow in openssl",
                                    ),
                                ],
                            },
                        },
                    },
                    "worker": {
                        "name": "worker",
                        "images": {
                            "v1": {
                                "name": "worker",
                                "version": "v1",
                                "vulnerabilities": [
                                    _vuln(
                                        cve="CVE-2023-1111",
                                        severity="medium",
                                        cvss=5.3,
                                        status="will not fix",
                                        kaiStatus="",
                                        packageName="zlib",
                                        packageVersion="1.2.11",
                                        published="2023-11-20",
                                    ),
                                    _vuln(
                                        cve="CVE-2023-2222",
                                        severity="low",
                                        cvss=3.1,
                                        status="open",
                                        packageName="requests",
                                        packageVersion="2.25.0",
                                        packageType="python",
                                        published="2023-06-01T12:00:00Z",
                                        riskFactors={"Attack complexity: low": {}},
                                    ),
                                ],
                            },
                        },
                    },
                },
            },
            "data": {
                "name": "data",
                "repos": {
                    "etl": {
                        "name": "etl",
                        "images": {
                            "1.0": {
                                "name": "etl",
                                "version": "1.0",
                                "vulnerabilities": [
                                    _vuln(
                                        cve="CVE-2022-3333",
                                        severity="negligible",
                                        cvss=0,
                                        status="",
                                        packageName="bash",
                                        packageVersion="5.0",
                                        published="not-a-date",
                                    ),
                                    _vuln(
                                        cve="CVE-2024-0003",
                                        severity="Unknown",
                                        cvss="n/a",
                                        status="deferred",
                                        packageName="glibc",
                                        packageVersion="2.31",
                                        published="2024-02-10T08:30:00Z",
                                    ),
                                ],
                            },
                        },
                    },
                },
            },
        }
    }


@pytest.fixture
def round_trip_document() -> Dict[str, Any]:
    """One group "g", one repo "r", one image "v1", two vulnerabilities."""
    return {
        "groups": {
            "g": {
                "repos": {
                    "r": {
                        "images": {
                            "v1": {
                                "name": "img",
                                "vulnerabilities": [
                                    _vuln(cve="CVE-2021-1111", severity="critical", cvss=9.8, status="Fixed"),
                                    _vuln(cve="CVE-2022-2222", severity="low", cvss=3.1, status="Affected"),
                                ],
                            }
                        }
                    }
                }
            }
        }
    }


@pytest.fixture
def records(sample_document) -> List[ProcessedVulnerability]:
    return process_vulnerability_data(sample_document)


def encode_document(document: Dict[str, Any]) -> bytes:
    return json.dumps(document).encode("utf-8")


def make_transport(
    body: bytes,
    status_code: int = 200,
    chunk_size: Optional[int] = None,
    with_length: bool = True,
    calls: Optional[List[httpx.Request]] = None,
    headers: Optional[Dict[str, str]] = None,
) -> httpx.MockTransport:
    """
    MockTransport serving ``body``.

    With ``chunk_size`` the body is streamed in pieces of that size;
    ``with_length`` controls whether a Content-Length header is sent and
    ``headers`` adds extra response headers (e.g. Content-Encoding).
    """

    async def handler(request: httpx.Request) -> httpx.Response:
        if calls is not None:
            calls.append(request)
        if chunk_size is None and with_length:
            return httpx.Response(status_code, headers=headers, content=body)

        size = chunk_size or len(body) or 1

        async def stream() -> AsyncIterator[bytes]:
            for offset in range(0, len(body), size):
                yield body[offset : offset + size]

        response_headers = dict(headers or {})
        if with_length:
            response_headers["Content-Length"] = str(len(body))
        return httpx.Response(status_code, headers=response_headers, content=stream())

    return httpx.MockTransport(handler)


def failing_transport(exc_factory: Callable[[httpx.Request], Exception]) -> httpx.MockTransport:
    """MockTransport whose every request raises the given transport error."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise exc_factory(request)

    return httpx.MockTransport(handler)


@pytest.fixture
def transport_factory() -> Callable[..., httpx.MockTransport]:
    return make_transport


@pytest.fixture
def snapshot_bytes(sample_document) -> bytes:
    return encode_document(sample_document)
