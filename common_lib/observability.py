"""구조화 로깅 및 실행 추적(Structured logging and run tracing)."""
from __future__ import annotations

import logging
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

# Context variable carrying the current snapshot load identifier
run_id_ctx: ContextVar[str] = ContextVar("run_id", default="system")


def get_run_id() -> str:
    """실행 ID 조회(Retrieve the current load/run ID).

    Returns:
        Current run ID from context, or "system" if not set.
    """
    return run_id_ctx.get()


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """사용자 정의 JSON 포매터(Custom JSON formatter with run ID injection)."""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any],
    ) -> None:
        super().add_fields(log_record, record, message_dict)

        if "timestamp" not in log_record:
            log_record["timestamp"] = datetime.now(timezone.utc).isoformat()

        log_record.pop("asctime", None)
        log_record["run_id"] = get_run_id()

        if "level" not in log_record:
            log_record["level"] = record.levelname
        if "message" not in log_record:
            log_record["message"] = record.getMessage()
        if "name" not in log_record:
            log_record["name"] = record.name
