"""Filtering, relevance search, sorting and grouping over record sequences.

Every function here is synchronous and returns a new list; input records are
never reordered in place or modified.
"""

import locale
from datetime import datetime
from functools import cmp_to_key
from typing import Any, Dict, List, Optional, Sequence

from common_lib.errors import InvalidInputError

from dashboard_core.models import FilterState, ProcessedVulnerability
from dashboard_core.status import classify_status
from dashboard_core.utils.timestamps import date_bounds, parse_timestamp

_SEVERITY_ORDER = {
    "critical": 5,
    "high": 4,
    "medium": 3,
    "low": 2,
    "negligible": 1,
}

_CRITICAL_SEVERITIES = {"critical", "high"}


def _search_fields(vuln: ProcessedVulnerability) -> List[str]:
    return [
        vuln.cve,
        vuln.package_name,
        vuln.description,
        vuln.severity,
        vuln.package_type,
        vuln.group_name,
        vuln.repo_name,
    ]


def _matches(
    vuln: ProcessedVulnerability,
    filters: FilterState,
    query: str,
    bounds: tuple,
) -> bool:
    if query:
        if not any(query in field.lower() for field in _search_fields(vuln)):
            return False

    if filters.severity and vuln.severity not in filters.severity:
        return False

    if filters.kai_status and (vuln.kai_status or "") not in filters.kai_status:
        return False

    if filters.package_type and vuln.package_type not in filters.package_type:
        return False

    if filters.risk_factors:
        if not any(factor in vuln.risk_factors for factor in filters.risk_factors):
            return False

    if filters.status and classify_status(vuln.status).value not in filters.status:
        return False

    start, end = bounds
    if start is not None or end is not None:
        published = parse_timestamp(vuln.published)
        if published is None:
            return False
        if start is not None and published < start:
            return False
        if end is not None and published > end:
            return False

    return True


def apply_filters(
    vulnerabilities: Sequence[ProcessedVulnerability],
    filters: FilterState,
) -> List[ProcessedVulnerability]:
    """
    Keep the records that satisfy every active filter dimension.

    Surviving records keep their relative order. Status labels use the same
    bucket classifier as the statistics, so a filter on "Fixed" selects
    exactly the records counted in ``status_fixed``.
    """
    if filters.is_empty():
        return list(vulnerabilities)

    query = filters.search_query.lower()
    bounds = date_bounds(filters.date_range.start, filters.date_range.end)
    return [vuln for vuln in vulnerabilities if _matches(vuln, filters, query, bounds)]


def resolve_field_name(field: str) -> str:
    """Map a camelCase export name or snake_case attribute to the attribute name."""
    fields = ProcessedVulnerability.model_fields
    if field in fields:
        return field
    for name, info in fields.items():
        if info.alias == field:
            return name
    return field


def _field_value(vuln: ProcessedVulnerability, field: str) -> Any:
    if field in ProcessedVulnerability.model_fields:
        return getattr(vuln, field)
    return (vuln.model_extra or {}).get(field)


def _as_text(value: Any) -> str:
    return "" if value is None else str(value)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _compare_values(a: Any, b: Any) -> float:
    if isinstance(a, str) and isinstance(b, str):
        return locale.strcoll(a, b)
    if _is_number(a) and _is_number(b):
        return a - b
    return locale.strcoll(_as_text(a), _as_text(b))


def sort_vulnerabilities(
    vulnerabilities: Sequence[ProcessedVulnerability],
    sort_by: str,
    sort_order: str = "desc",
) -> List[ProcessedVulnerability]:
    """Sort by one field; strings compare locale-aware, numbers by subtraction."""
    if sort_order not in ("asc", "desc"):
        raise InvalidInputError(field="sort_order", reason="must be 'asc' or 'desc'")

    field = resolve_field_name(sort_by)
    direction = 1 if sort_order == "asc" else -1

    def compare(a: ProcessedVulnerability, b: ProcessedVulnerability) -> int:
        comparison = _compare_values(_field_value(a, field), _field_value(b, field))
        if comparison == 0:
            return 0
        return direction if comparison > 0 else -direction

    return sorted(vulnerabilities, key=cmp_to_key(compare))


def group_vulnerabilities_by(
    vulnerabilities: Sequence[ProcessedVulnerability],
    group_by: str,
) -> Dict[str, List[ProcessedVulnerability]]:
    """Partition records by the stringified field value, keys in first-seen order."""
    field = resolve_field_name(group_by)
    groups: Dict[str, List[ProcessedVulnerability]] = {}
    for vuln in vulnerabilities:
        groups.setdefault(_as_text(_field_value(vuln, field)), []).append(vuln)
    return groups


def get_severity_order(severity: str) -> int:
    return _SEVERITY_ORDER.get((severity or "").lower(), 0)


def _fuzzy_text(vuln: ProcessedVulnerability) -> str:
    return " ".join(
        [
            vuln.cve,
            vuln.package_name,
            vuln.description,
            vuln.severity,
            vuln.group_name,
            vuln.repo_name,
        ]
    ).lower()


def fuzzy_search(
    vulnerabilities: Sequence[ProcessedVulnerability],
    query: str,
) -> List[ProcessedVulnerability]:
    """
    Relevance-ranked search.

    Scoring per record: +1 for each query token found in the searchable text,
    +5 when the whole query is found, +10 when the CVE id equals the query.
    Records scoring zero are dropped; the rest are ordered by score, highest
    first.
    """
    if not query:
        return list(vulnerabilities)

    lower_query = query.lower()
    query_words = lower_query.split()

    scored = []
    for vuln in vulnerabilities:
        search_text = _fuzzy_text(vuln)
        score = sum(1 for word in query_words if word in search_text)
        if lower_query in search_text:
            score += 5
        if vuln.cve.lower() == lower_query:
            score += 10
        if score > 0:
            scored.append((score, vuln))

    scored.sort(key=lambda item: item[0], reverse=True)
    return [vuln for _, vuln in scored]


def _check_limit(limit: int) -> None:
    if limit < 0:
        raise InvalidInputError(field="limit", reason="must not be negative")


def _published_key(vuln: ProcessedVulnerability) -> float:
    published: Optional[datetime] = parse_timestamp(vuln.published)
    return published.timestamp() if published is not None else float("-inf")


def get_trending_vulnerabilities(
    vulnerabilities: Sequence[ProcessedVulnerability],
    limit: int = 10,
) -> List[ProcessedVulnerability]:
    """Most recently published records first; unparseable dates sort last."""
    _check_limit(limit)
    return sorted(vulnerabilities, key=_published_key, reverse=True)[:limit]


def get_critical_vulnerabilities(
    vulnerabilities: Sequence[ProcessedVulnerability],
    limit: int = 10,
) -> List[ProcessedVulnerability]:
    """Critical and high severity records, highest CVSS first."""
    _check_limit(limit)
    candidates = [v for v in vulnerabilities if v.severity.lower() in _CRITICAL_SEVERITIES]
    return sorted(candidates, key=lambda v: v.cvss, reverse=True)[:limit]
