"""Analysis modes: preset views over the analysis status (``kaiStatus``)."""

from typing import Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel

from common_lib.errors import InvalidInputError

from dashboard_core.models import AI_INVALID_NORISK, INVALID_NORISK, ProcessedVulnerability


class AnalysisMode(BaseModel):
    mode: Literal["all", "analysis", "ai-analysis"]
    label: str
    description: str
    filter_to_kai_status: Optional[List[str]] = None


ANALYSIS_MODES: Dict[str, AnalysisMode] = {
    "all": AnalysisMode(
        mode="all",
        label="All Vulnerabilities",
        description="View all vulnerabilities without filters",
    ),
    "analysis": AnalysisMode(
        mode="analysis",
        label="Analysis",
        description="Show only manually marked as invalid/no-risk",
        filter_to_kai_status=[INVALID_NORISK],
    ),
    "ai-analysis": AnalysisMode(
        mode="ai-analysis",
        label="AI Analysis",
        description="Show only AI-marked as invalid/no-risk",
        filter_to_kai_status=[AI_INVALID_NORISK],
    ),
}


def get_analysis_mode(mode: str) -> AnalysisMode:
    try:
        return ANALYSIS_MODES[mode]
    except KeyError:
        raise InvalidInputError(
            field="analysis_mode",
            reason=f"unknown mode {mode!r}; expected one of {', '.join(ANALYSIS_MODES)}",
        ) from None


def filter_by_kai_status(
    vulnerabilities: Sequence[ProcessedVulnerability],
    include_statuses: Optional[Sequence[str]],
) -> List[ProcessedVulnerability]:
    """
    Keep only records whose analysis status is one of ``include_statuses``.

    None or an empty sequence keeps everything. A missing status matches "".
    """
    if not include_statuses:
        return list(vulnerabilities)
    allowed = set(include_statuses)
    return [vuln for vuln in vulnerabilities if (vuln.kai_status or "") in allowed]
