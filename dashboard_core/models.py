"""Record, filter and statistics models for the vulnerability dashboard.

JSON payloads use the export's camelCase names (``packageName``,
``kaiStatus`` ...); Python code uses the snake_case attributes. Both spellings
are accepted on input.
"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

KNOWN_SEVERITIES = ("critical", "high", "medium", "low", "negligible")

AI_INVALID_NORISK = "ai-invalid-norisk"
INVALID_NORISK = "invalid - norisk"


class RawVulnerability(BaseModel):
    """A single vulnerability entry as it appears inside an image."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    cve: str = ""
    severity: str = ""
    cvss: float = 0.0
    status: str = ""
    kai_status: Optional[str] = None
    package_name: str = ""
    package_version: str = ""
    package_type: str = ""
    published: str = ""
    fix_date: Optional[str] = None
    description: str = ""
    risk_factors: Dict[str, Any] = Field(default_factory=dict)

    @field_validator(
        "cve",
        "severity",
        "status",
        "package_name",
        "package_version",
        "package_type",
        "published",
        "description",
        mode="before",
    )
    @classmethod
    def _none_as_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("cvss", mode="before")
    @classmethod
    def _lenient_score(cls, v: Any) -> Any:
        if v is None or v == "":
            return 0.0
        if isinstance(v, str):
            try:
                return float(v)
            except ValueError:
                return 0.0
        return v

    @field_validator("risk_factors", mode="before")
    @classmethod
    def _none_as_no_factors(cls, v: Any) -> Any:
        return {} if v is None else v


class ProcessedVulnerability(RawVulnerability):
    """A flattened record carrying its group/repo/image context."""

    id: str
    group_name: str
    repo_name: str
    image_name: str = ""
    image_version: str


class DateRange(BaseModel):
    """Inclusive published-date bounds; a missing bound is open."""

    start: Optional[Union[datetime, date, str]] = None
    end: Optional[Union[datetime, date, str]] = None


class FilterState(BaseModel):
    """Independent filter dimensions; an empty dimension imposes no constraint."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    search_query: str = ""
    severity: List[str] = Field(default_factory=list)
    kai_status: List[str] = Field(default_factory=list)
    package_type: List[str] = Field(default_factory=list)
    risk_factors: List[str] = Field(default_factory=list)
    status: List[str] = Field(default_factory=list)
    date_range: DateRange = Field(default_factory=DateRange)

    def is_empty(self) -> bool:
        return not (
            self.search_query
            or self.severity
            or self.kai_status
            or self.package_type
            or self.risk_factors
            or self.status
            or self.date_range.start
            or self.date_range.end
        )


class DashboardStats(BaseModel):
    """Aggregate counters over a record sequence."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_vulnerabilities: int = 0
    critical_count: int = 0
    high_count: int = 0
    medium_count: int = 0
    low_count: int = 0
    negligible_count: int = 0
    with_fix: int = 0
    without_fix: int = 0
    ai_invalid_norisk: int = 0
    invalid_norisk: int = 0
    unique_packages: int = 0
    unique_cves: int = Field(default=0, alias="uniqueCVEs")
    status_fixed: int = 0
    status_affected: int = 0
    status_open: int = 0
    status_under_investigation: int = 0
    status_no_status: int = 0
    status_will_not_fix: int = 0
    status_needed: int = 0
    status_deferred: int = 0
