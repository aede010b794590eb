"""취약점 대시보드 파이프라인 실행기(Vulnerability dashboard pipeline runner)."""
from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from dotenv import load_dotenv

from common_lib.config import load_environment
from common_lib.db import dispose_engine
from common_lib.errors import AppException
from common_lib.logger import get_logger
from dashboard_core.analysis_modes import ANALYSIS_MODES
from dashboard_core.export import export_to_csv, export_to_json
from dashboard_core.filters import (
    fuzzy_search,
    get_critical_vulnerabilities,
    get_trending_vulnerabilities,
    sort_vulnerabilities,
)
from dashboard_core.models import DateRange, FilterState, ProcessedVulnerability
from dashboard_core.status import StatusBucket
from snapshot_orchestrator import SnapshotOrchestrator

# Load .env file at startup
load_dotenv()
load_environment()

logger = get_logger(__name__)

_PROGRESS_STEP = 10.0


class _ProgressLogger:
    """진행률 로깅 콜백(Logs download progress every 10 percent)."""

    def __init__(self) -> None:
        self._next_mark = _PROGRESS_STEP

    def __call__(self, percent: float) -> None:
        if percent >= 100:
            logger.info("[LOAD] %.0f%% 완료(complete)", percent)
            return
        if percent >= self._next_mark:
            logger.info("[LOAD] %.0f%%", percent)
            while self._next_mark <= percent:
                self._next_mark += _PROGRESS_STEP


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid int value: {value!r}") from exc
    if number < 0:
        raise argparse.ArgumentTypeError("must not be negative")
    return number


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    """커맨드라인 인자 파싱(Parse CLI arguments)."""

    parser = argparse.ArgumentParser(description="컨테이너 이미지 취약점 스냅샷 대시보드 실행기")
    parser.add_argument("--url", default=None, help="스냅샷 URL(Snapshot URL; defaults to VD_DATA_SOURCE_URL)")
    parser.add_argument(
        "--force",
        action="store_true",
        help="캐시 무시 후 강제 조회(Force refresh by bypassing cache)",
    )
    parser.add_argument("--clear-cache", action="store_true", help="로컬 캐시 삭제 후 종료(Clear the cache and exit)")
    parser.add_argument("--cache-info", action="store_true", help="캐시 상태 출력 후 종료(Print cache info and exit)")

    filters = parser.add_argument_group("filters")
    filters.add_argument("--search", default="", help="부분 문자열 검색(Substring search)")
    filters.add_argument("--fuzzy", default=None, help="관련도 순 검색(Relevance-ranked search)")
    filters.add_argument("--severity", action="append", default=[], help="심각도(Severity); repeatable")
    filters.add_argument(
        "--status",
        action="append",
        default=[],
        choices=[bucket.value for bucket in StatusBucket],
        help="수정 상태 버킷(Fix-status bucket); repeatable",
    )
    filters.add_argument("--kai-status", action="append", default=[], help="분석 상태(Analysis status); repeatable")
    filters.add_argument("--package-type", action="append", default=[], help="패키지 유형(Package type); repeatable")
    filters.add_argument("--risk-factor", action="append", default=[], help="위험 요소(Risk factor); repeatable")
    filters.add_argument("--published-from", default=None, help="게시일 하한(Published on or after, ISO date)")
    filters.add_argument("--published-to", default=None, help="게시일 상한(Published on or before, ISO date)")
    filters.add_argument(
        "--mode",
        default="all",
        choices=list(ANALYSIS_MODES),
        help="분석 모드(Analysis mode)",
    )

    view = parser.add_argument_group("view")
    view.add_argument(
        "--view",
        default="list",
        choices=["list", "trending", "critical"],
        help="결과 뷰(Result view)",
    )
    view.add_argument("--sort-by", default=None, help="정렬 필드(Sort field, e.g. cvss or packageName)")
    view.add_argument("--sort-order", default="desc", choices=["asc", "desc"], help="정렬 방향(Sort order)")
    view.add_argument("--limit", type=_non_negative_int, default=20, help="출력 건수(Number of records to print)")

    export = parser.add_argument_group("export")
    export.add_argument("--export-json", type=Path, default=None, help="JSON 내보내기 경로(JSON export path)")
    export.add_argument("--export-csv", type=Path, default=None, help="CSV 내보내기 경로(CSV export path)")
    return parser.parse_args(argv)


def build_filter_state(args: argparse.Namespace) -> FilterState:
    """인자로부터 필터 상태 생성(Build the filter state from CLI arguments)."""

    return FilterState(
        search_query=args.search,
        severity=args.severity,
        kai_status=args.kai_status,
        package_type=args.package_type,
        risk_factors=args.risk_factor,
        status=args.status,
        date_range=DateRange(start=args.published_from, end=args.published_to),
    )


def select_view(records: List[ProcessedVulnerability], args: argparse.Namespace) -> List[ProcessedVulnerability]:
    if args.fuzzy:
        records = fuzzy_search(records, args.fuzzy)
    if args.view == "trending":
        return get_trending_vulnerabilities(records, limit=args.limit)
    if args.view == "critical":
        return get_critical_vulnerabilities(records, limit=args.limit)
    if args.sort_by:
        records = sort_vulnerabilities(records, args.sort_by, args.sort_order)
    return records[: args.limit]


async def main_async(args: argparse.Namespace) -> Dict[str, Any]:
    """비동기 메인 루틴(Async main routine)."""

    try:
        return await run_dashboard(args)
    finally:
        await dispose_engine()


async def run_dashboard(args: argparse.Namespace) -> Dict[str, Any]:
    """스냅샷 로드 후 뷰 생성(Load the snapshot and build the requested view)."""

    orchestrator = SnapshotOrchestrator(url=args.url)

    if args.clear_cache:
        cleared = await orchestrator.clear_cache()
        return {"cacheCleared": cleared}

    if args.cache_info:
        info = await orchestrator.cache_info()
        return {"cache": info.model_dump(by_alias=True)}

    context = await orchestrator.build_context(force=args.force, on_progress=_ProgressLogger())
    context.set_analysis_mode(args.mode)
    context.set_filters(build_filter_state(args))

    filtered = context.filtered_vulnerabilities
    results = select_view(filtered, args)

    if args.export_json is not None:
        export_to_json(filtered, args.export_json)
    if args.export_csv is not None:
        export_to_csv(filtered, args.export_csv)

    return {
        "summary": context.summary(),
        "stats": context.stats.model_dump(by_alias=True),
        "results": [vuln.model_dump(mode="json", by_alias=True) for vuln in results],
    }


def main(argv: Optional[Iterable[str]] = None) -> int:
    """동기 진입점(Synchronous entrypoint)."""

    args = parse_args(argv)
    try:
        result = asyncio.run(main_async(args))
    except AppException as exc:
        logger.error("Pipeline run failed: %s", exc.message)
        print(json.dumps(exc.to_dict(), indent=2, ensure_ascii=False), file=sys.stderr)
        return 1

    logger.info("Pipeline run completed; emitting JSON result.")
    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
