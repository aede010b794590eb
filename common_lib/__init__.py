"""공통 라이브러리 패키지 초기화(Common library package init)."""
from . import cache, config, db, errors, logger

__all__ = [
    "cache",
    "config",
    "db",
    "errors",
    "logger",
]
