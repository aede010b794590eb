"""공통 에러 클래스 정의(Common error classes)."""
from __future__ import annotations

from typing import Any, Dict, Optional


class AppException(Exception):
    """애플리케이션 기본 예외 클래스(Base application exception)."""

    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize exception with structured error information.

        Args:
            status_code: HTTP-style status code describing the failure class
            error_code: Machine-readable error code (e.g., "NETWORK_ERROR")
            message: Human-readable error message
            details: Additional error context (optional)
        """
        self.status_code = status_code
        self.error_code = error_code
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for JSON output."""
        response: Dict[str, Any] = {
            "error": {
                "code": self.error_code,
                "message": self.message,
            }
        }
        if self.details:
            response["error"]["details"] = self.details
        return response


class NetworkError(AppException):
    """스냅샷 전송 실패(Snapshot transport failure - 502)."""

    def __init__(
        self,
        url: str,
        reason: str,
        upstream_status: Optional[int] = None,
    ) -> None:
        """Initialize with transport context.

        Args:
            url: URL that was being retrieved
            reason: Status text or transport error description
            upstream_status: HTTP status returned by the server, if any
        """
        message = f"Failed to fetch data from {url}"
        if upstream_status is not None:
            message += f" (HTTP {upstream_status})"
        message += f": {reason}"
        self.url = url
        self.upstream_status = upstream_status
        super().__init__(
            status_code=502,
            error_code="NETWORK_ERROR",
            message=message,
            details={"url": url, "upstream_status": upstream_status, "reason": reason},
        )


class DecodeError(AppException):
    """스냅샷 디코딩 실패(Snapshot body is not valid UTF-8/JSON - 422)."""

    def __init__(self, reason: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            status_code=422,
            error_code="DECODE_ERROR",
            message=f"Failed to decode vulnerability data: {reason}",
            details=details or {"reason": reason},
        )


class CacheError(AppException):
    """로컬 캐시 저장소 오류(Local cache storage failure - 503).

    Raised inside the cache store only; the store recovers from it and the
    caller observes a cache miss instead.
    """

    def __init__(self, operation: str, reason: str) -> None:
        self.operation = operation
        super().__init__(
            status_code=503,
            error_code="CACHE_ERROR",
            message=f"Cache {operation} failed: {reason}",
            details={"operation": operation, "reason": reason},
        )


class IngestionInProgressError(AppException):
    """이미 수집 진행 중(Snapshot load already in flight - 409)."""

    def __init__(self, url: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            status_code=409,
            error_code="INGESTION_IN_PROGRESS",
            message=f"A snapshot load from {url} is already in progress.",
            details=details or {"url": url},
        )


class InvalidInputError(AppException):
    """유효하지 않은 입력(Invalid input - 400)."""

    def __init__(
        self,
        field: str,
        reason: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Initialize with validation context.

        Args:
            field: Field name that failed validation
            reason: Why the field is invalid
            details: Additional context
        """
        message = f"Invalid input for '{field}': {reason}"
        super().__init__(
            status_code=400,
            error_code="INVALID_INPUT",
            message=message,
            details=details or {"field": field, "reason": reason},
        )
