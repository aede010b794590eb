"""Core data pipeline for the vulnerability snapshot dashboard."""

# Models
from dashboard_core.models import (
    DashboardStats,
    DateRange,
    FilterState,
    ProcessedVulnerability,
    RawVulnerability,
)

# Normalization and statistics
from dashboard_core.normalizer import normalize, process_vulnerability_data
from dashboard_core.stats import aggregate, calculate_stats, get_unique_filter_values, monthly_trend
from dashboard_core.status import StatusBucket, classify_status

# Filter / search / sort
from dashboard_core.filters import (
    apply_filters,
    fuzzy_search,
    get_critical_vulnerabilities,
    get_severity_order,
    get_trending_vulnerabilities,
    group_vulnerabilities_by,
    sort_vulnerabilities,
)
from dashboard_core.analysis_modes import ANALYSIS_MODES, AnalysisMode, filter_by_kai_status

# Session state and export
from dashboard_core.context import DashboardContext
from dashboard_core.export import export_to_csv, export_to_json, to_csv, to_json

__all__ = [
    # Models
    "RawVulnerability",
    "ProcessedVulnerability",
    "FilterState",
    "DateRange",
    "DashboardStats",
    # Normalization and statistics
    "normalize",
    "process_vulnerability_data",
    "aggregate",
    "calculate_stats",
    "get_unique_filter_values",
    "monthly_trend",
    "StatusBucket",
    "classify_status",
    # Filter / search / sort
    "apply_filters",
    "fuzzy_search",
    "get_critical_vulnerabilities",
    "get_severity_order",
    "get_trending_vulnerabilities",
    "group_vulnerabilities_by",
    "sort_vulnerabilities",
    "ANALYSIS_MODES",
    "AnalysisMode",
    "filter_by_kai_status",
    # Session state and export
    "DashboardContext",
    "export_to_csv",
    "export_to_json",
    "to_csv",
    "to_json",
]
