"""Dashboard statistics and option lists computed from record sequences."""

from collections import Counter
from typing import Dict, List, Sequence, Tuple

from dashboard_core.models import (
    AI_INVALID_NORISK,
    INVALID_NORISK,
    DashboardStats,
    ProcessedVulnerability,
)
from dashboard_core.status import StatusBucket, classify_status, has_fix
from dashboard_core.utils.timestamps import parse_timestamp

_SEVERITY_FIELDS = {
    "critical": "critical_count",
    "high": "high_count",
    "medium": "medium_count",
    "low": "low_count",
    "negligible": "negligible_count",
}

_BUCKET_FIELDS = {
    StatusBucket.FIXED: "status_fixed",
    StatusBucket.AFFECTED: "status_affected",
    StatusBucket.OPEN: "status_open",
    StatusBucket.UNDER_INVESTIGATION: "status_under_investigation",
    StatusBucket.NO_STATUS: "status_no_status",
    StatusBucket.WILL_NOT_FIX: "status_will_not_fix",
    StatusBucket.NEEDED: "status_needed",
    StatusBucket.DEFERRED: "status_deferred",
}


def calculate_stats(vulnerabilities: Sequence[ProcessedVulnerability]) -> DashboardStats:
    """
    Compute dashboard counters in a single pass.

    Unrecognized severities only count toward the total. Unique package and
    CVE sets are rebuilt on every call.
    """
    counts: Dict[str, int] = dict.fromkeys(
        list(_SEVERITY_FIELDS.values()) + list(_BUCKET_FIELDS.values()), 0
    )
    with_fix = 0
    ai_invalid = 0
    invalid = 0
    unique_packages = set()
    unique_cves = set()

    for vuln in vulnerabilities:
        severity_field = _SEVERITY_FIELDS.get(vuln.severity.lower())
        if severity_field:
            counts[severity_field] += 1

        if has_fix(vuln.status):
            with_fix += 1

        counts[_BUCKET_FIELDS[classify_status(vuln.status)]] += 1

        if vuln.kai_status == AI_INVALID_NORISK:
            ai_invalid += 1
        elif vuln.kai_status == INVALID_NORISK:
            invalid += 1

        unique_packages.add(f"{vuln.package_name}@{vuln.package_version}")
        unique_cves.add(vuln.cve)

    total = len(vulnerabilities)
    return DashboardStats(
        total_vulnerabilities=total,
        with_fix=with_fix,
        without_fix=total - with_fix,
        ai_invalid_norisk=ai_invalid,
        invalid_norisk=invalid,
        unique_packages=len(unique_packages),
        unique_cves=len(unique_cves),
        **counts,
    )


aggregate = calculate_stats


def get_unique_filter_values(vulnerabilities: Sequence[ProcessedVulnerability]) -> Dict[str, List[str]]:
    """Sorted distinct package types, risk-factor names and severities."""
    package_types = set()
    risk_factors = set()
    severities = set()

    for vuln in vulnerabilities:
        if vuln.package_type:
            package_types.add(vuln.package_type)
        if vuln.severity:
            severities.add(vuln.severity)
        risk_factors.update(vuln.risk_factors.keys())

    return {
        "packageTypes": sorted(package_types),
        "riskFactors": sorted(risk_factors),
        "severities": sorted(severities),
    }


def monthly_trend(
    vulnerabilities: Sequence[ProcessedVulnerability],
    months: int = 12,
) -> List[Tuple[str, int]]:
    """Per-month published counts (``YYYY-MM``), the latest ``months`` in ascending order."""
    month_counts: Counter = Counter()
    for vuln in vulnerabilities:
        published = parse_timestamp(vuln.published)
        if published is None:
            continue
        month_counts[f"{published.year}-{published.month:02d}"] += 1

    ordered = sorted(month_counts.items())
    if months <= 0:
        return []
    return ordered[-months:]
