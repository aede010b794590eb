"""로컬 캐시 데이터베이스 엔진(Local cache database engine)."""
from __future__ import annotations

from pathlib import Path
from typing import Dict

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

from .config import get_settings
from .logger import get_logger

logger = get_logger(__name__)
_engines: Dict[str, AsyncEngine] = {}

CACHE_TABLE = "vulnerabilities"

_CREATE_CACHE_TABLE = f"""
CREATE TABLE IF NOT EXISTS {CACHE_TABLE} (
    id TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    timestamp INTEGER NOT NULL,
    version TEXT NOT NULL
)
"""


def _ensure_parent_dir(db_url: str) -> None:
    """Create the directory holding a file-backed sqlite database."""

    url = make_url(db_url)
    if not url.drivername.startswith("sqlite"):
        return
    database = url.database
    if not database or database == ":memory:":
        return
    Path(database).expanduser().parent.mkdir(parents=True, exist_ok=True)


def get_engine(db_url: str | None = None) -> AsyncEngine:
    """비동기 엔진 제공(Provide a cached async engine for the given URL)."""

    resolved = db_url or get_settings().cache_db_url
    engine = _engines.get(resolved)
    if engine is None:
        logger.info("Initializing cache engine for %s", make_url(resolved).render_as_string(hide_password=True))
        _ensure_parent_dir(resolved)
        engine = create_async_engine(resolved, future=True, echo=False)
        _engines[resolved] = engine
    return engine


async def ensure_schema(engine: AsyncEngine) -> None:
    """캐시 테이블 생성(Create the cache table if missing)."""

    async with engine.begin() as conn:
        await conn.execute(text(_CREATE_CACHE_TABLE))


async def dispose_engine(db_url: str | None = None) -> None:
    """엔진 종료(Dispose an engine, or all engines when no URL is given)."""

    if db_url is None:
        urls = list(_engines)
    else:
        urls = [db_url]
    for url in urls:
        engine = _engines.pop(url, None)
        if engine is not None:
            await engine.dispose()
