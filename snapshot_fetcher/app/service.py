"""취약점 스냅샷 수집 서비스 모듈(Vulnerability snapshot ingestion service module)."""
from __future__ import annotations

import json
from typing import Any, Callable, Dict, List, Optional

import httpx

from common_lib.config import get_settings
from common_lib.errors import DecodeError, NetworkError
from common_lib.logger import get_logger

logger = get_logger(__name__)

ProgressCallback = Callable[[float], None]

_UNSET: Any = object()


def decode_snapshot(raw: bytes) -> Dict[str, Any]:
    """수신 바이트를 문서로 변환(Decode received bytes into the source document).

    Raises:
        DecodeError: bytes are not UTF-8, not JSON, or not a JSON object
    """

    try:
        # utf-8-sig drops a leading byte order mark
        text = raw.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise DecodeError(f"invalid UTF-8 at byte {exc.start}") from exc

    try:
        document = json.loads(text)
    except json.JSONDecodeError as exc:
        raise DecodeError(
            f"invalid JSON: {exc.msg}",
            details={"line": exc.lineno, "column": exc.colno},
        ) from exc

    if not isinstance(document, dict):
        raise DecodeError(f"expected a JSON object, got {type(document).__name__}")
    return document


def _content_length(response: httpx.Response) -> int:
    value = response.headers.get("content-length")
    if not value:
        return 0
    try:
        return max(int(value), 0)
    except ValueError:
        return 0


class SnapshotFetcher:
    """스냅샷 스트리밍 조회 서비스(Streams the snapshot document over HTTP)."""

    def __init__(
        self,
        timeout: Optional[float] = _UNSET,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings = get_settings()
        self._timeout = settings.http_timeout if timeout is _UNSET else timeout
        self._transport = transport
        self._allow_external = settings.allow_external_calls

    async def fetch(self, url: str, on_progress: Optional[ProgressCallback] = None) -> Dict[str, Any]:
        """URL에서 스냅샷 조회(Fetch and parse the snapshot at ``url``).

        While bytes arrive and the length is known, ``on_progress`` receives
        strictly increasing percentages below 100. After a successful decode it
        receives exactly one final 100.

        Raises:
            NetworkError: non-2xx status, transport failure, or external calls disabled
            DecodeError: the body is not a UTF-8 JSON object
        """

        if not self._allow_external:
            logger.info("외부 조회 비활성화됨(External calls disabled); refusing to fetch %s", url)
            raise NetworkError(url, reason="external calls are disabled by configuration")

        chunks: List[bytes] = []
        received = 0
        logger.info("Fetching vulnerability snapshot from %s", url)

        try:
            async with httpx.AsyncClient(
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
            ) as client:
                async with client.stream("GET", url) as response:
                    if not response.is_success:
                        logger.error(
                            "스냅샷 조회 실패 (Snapshot fetch failed): %s -> HTTP %d",
                            url,
                            response.status_code,
                        )
                        raise NetworkError(
                            url,
                            reason=response.reason_phrase or "request failed",
                            upstream_status=response.status_code,
                        )

                    total = _content_length(response)
                    last_reported = 0.0
                    async for chunk in response.aiter_bytes():
                        chunks.append(chunk)
                        received += len(chunk)
                        if on_progress is not None and total > 0:
                            # Content-Length counts wire bytes, before any content decoding
                            percent = response.num_bytes_downloaded / total * 100
                            if last_reported < percent < 100:
                                on_progress(percent)
                                last_reported = percent
        except httpx.HTTPError as exc:
            logger.error("스냅샷 전송 오류 (Transport error for %s): %s", url, exc)
            raise NetworkError(url, reason=str(exc) or type(exc).__name__) from exc

        document = decode_snapshot(b"".join(chunks))
        logger.info("Received %d bytes from %s", received, url)

        if on_progress is not None:
            on_progress(100.0)
        return document
