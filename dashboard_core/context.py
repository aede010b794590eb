"""Dashboard session state shared with the UI collaborators.

This module provides a context object holding the normalized records, their
statistics, and the view state (filters, analysis mode, comparison selection)
that the UI is allowed to change.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Set

from dashboard_core.analysis_modes import AnalysisMode, filter_by_kai_status, get_analysis_mode
from dashboard_core.filters import apply_filters
from dashboard_core.models import DashboardStats, FilterState, ProcessedVulnerability
from dashboard_core.stats import calculate_stats, get_unique_filter_values


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class DashboardContext:
    """
    Shared state for one loaded snapshot.

    Statistics always describe the full record set. The filtered view applies
    the analysis mode first, then the filter state. Records are never
    modified; only the view state changes.
    """

    all_vulnerabilities: List[ProcessedVulnerability] = field(default_factory=list)
    stats: DashboardStats = field(default_factory=DashboardStats)
    filters: FilterState = field(default_factory=FilterState)
    analysis_mode: AnalysisMode = field(default_factory=lambda: get_analysis_mode("all"))
    selected_for_comparison: Set[str] = field(default_factory=set)
    loaded_at: Optional[datetime] = None
    from_cache: bool = False

    @classmethod
    def from_records(
        cls,
        records: Sequence[ProcessedVulnerability],
        from_cache: bool = False,
    ) -> "DashboardContext":
        records = list(records)
        return cls(
            all_vulnerabilities=records,
            stats=calculate_stats(records),
            loaded_at=_utcnow(),
            from_cache=from_cache,
        )

    @property
    def filtered_vulnerabilities(self) -> List[ProcessedVulnerability]:
        scoped = filter_by_kai_status(self.all_vulnerabilities, self.analysis_mode.filter_to_kai_status)
        return apply_filters(scoped, self.filters)

    def set_filters(self, filters: FilterState) -> None:
        self.filters = filters

    def reset_filters(self) -> None:
        self.filters = FilterState()

    def set_analysis_mode(self, mode: str) -> None:
        self.analysis_mode = get_analysis_mode(mode)

    def toggle_comparison(self, vulnerability_id: str) -> bool:
        """Add or remove a record from the comparison set; returns True when now selected."""
        if vulnerability_id in self.selected_for_comparison:
            self.selected_for_comparison.discard(vulnerability_id)
            return False
        self.selected_for_comparison.add(vulnerability_id)
        return True

    def clear_comparison(self) -> None:
        self.selected_for_comparison.clear()

    @property
    def selected_vulnerabilities(self) -> List[ProcessedVulnerability]:
        return [v for v in self.all_vulnerabilities if v.id in self.selected_for_comparison]

    def filter_options(self) -> Dict[str, List[str]]:
        return get_unique_filter_values(self.all_vulnerabilities)

    def summary(self) -> Dict[str, Any]:
        """Get a summary of the loaded snapshot and current view."""
        return {
            "total": len(self.all_vulnerabilities),
            "filtered": len(self.filtered_vulnerabilities),
            "analysis_mode": self.analysis_mode.mode,
            "active_filters": not self.filters.is_empty(),
            "selected_for_comparison": len(self.selected_for_comparison),
            "from_cache": self.from_cache,
            "loaded_at": self.loaded_at.isoformat() if self.loaded_at else None,
        }
