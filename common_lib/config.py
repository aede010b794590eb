"""공통 설정 모듈(Common configuration module)."""
from __future__ import annotations

import os
from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_SOURCE_URL = (
    "https://media.githubusercontent.com/media/chanduusc/Ui-Demo-Data/main/ui_demo.json"
)


class Settings(BaseSettings):
    """시스템 환경설정(System environment settings)."""

    model_config = SettingsConfigDict(
        env_prefix="VD_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="vuln-dashboard-pipeline", description="서비스 이름(Service name)")
    environment: str = Field(default="development", description="실행 환경(Runtime environment)")

    data_source_url: str = Field(
        default=DEFAULT_DATA_SOURCE_URL,
        description="취약점 스냅샷 URL(Vulnerability snapshot URL)",
    )
    allow_external_calls: bool = Field(
        default=True,
        description="외부 네트워크 호출 허용 여부(Allow outbound network calls)",
    )
    http_timeout: float | None = Field(
        default=None,
        description="HTTP 전송 타임아웃, 없으면 무제한(Transport timeout in seconds; None disables it)",
    )

    cache_db_url: str = Field(
        default="sqlite+aiosqlite:///./data/vulnerability_cache.sqlite",
        description="로컬 캐시 DB URL(Local cache database URL)",
    )
    enable_cache: bool = Field(
        default=True,
        description="로컬 캐시 사용 여부(Enable the persistent local cache)",
    )
    cache_expiry_hours: float = Field(
        default=24,
        description="캐시 만료 시간(Cache expiry window in hours)",
    )

    log_level: str = Field(default="INFO", description="로그 레벨(Log level)")
    log_format: str = Field(default="text", description="로그 형식 text|json(Log output format)")

    @field_validator("http_timeout", mode="before")
    @classmethod
    def parse_http_timeout(cls, v: Any) -> Any:
        """Treat empty or non-positive timeouts as disabled."""
        if v is None:
            return None
        if isinstance(v, str):
            v = v.strip()
            if not v or v.lower() in {"none", "null"}:
                return None
        if float(v) <= 0:
            return None
        return v

    @field_validator("log_format", mode="before")
    @classmethod
    def parse_log_format(cls, v: Any) -> str:
        value = str(v or "text").strip().lower()
        return value if value in {"text", "json"} else "text"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """설정 인스턴스 반환(Return a cached settings instance).

    Tests that change ``VD_*`` variables must call ``get_settings.cache_clear()``.
    """

    return Settings()


def load_environment() -> None:
    """기본 환경변수를 로드(Load base environment variables)."""

    os.environ.setdefault("TZ", "UTC")
