"""JSON and CSV export of record sequences."""

import json
from pathlib import Path
from typing import Any, List, Optional, Sequence

from common_lib.logger import get_logger

from dashboard_core.models import ProcessedVulnerability

logger = get_logger(__name__)

CSV_HEADERS = [
    "CVE",
    "Severity",
    "CVSS",
    "Status",
    "KaiStatus",
    "Package Name",
    "Package Version",
    "Package Type",
    "Group",
    "Repository",
    "Image Version",
    "Published",
    "Fix Date",
    "Description",
]


def to_json(vulnerabilities: Sequence[ProcessedVulnerability]) -> str:
    """Pretty-printed JSON array using the export's camelCase field names."""
    payload = [vuln.model_dump(mode="json", by_alias=True) for vuln in vulnerabilities]
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        # 9.0 -> "9", matching the dashboard's number rendering
        return str(int(value))
    return str(value)


def _csv_row(vuln: ProcessedVulnerability) -> List[str]:
    escaped_description = vuln.description.replace('"', '""')
    return [
        _cell(vuln.cve),
        _cell(vuln.severity),
        _cell(vuln.cvss),
        _cell(vuln.status),
        _cell(vuln.kai_status),
        _cell(vuln.package_name),
        _cell(vuln.package_version),
        _cell(vuln.package_type),
        _cell(vuln.group_name),
        _cell(vuln.repo_name),
        _cell(vuln.image_version),
        _cell(vuln.published),
        _cell(vuln.fix_date),
        f'"{escaped_description}"',
    ]


def to_csv(vulnerabilities: Sequence[ProcessedVulnerability]) -> str:
    """
    CSV text with the fixed 14-column header.

    Only the description column is quoted (with doubled inner quotes); an
    empty input yields an empty string.
    """
    if not vulnerabilities:
        return ""
    lines = [",".join(CSV_HEADERS)]
    lines.extend(",".join(_csv_row(vuln)) for vuln in vulnerabilities)
    return "\n".join(lines)


def export_to_json(
    vulnerabilities: Sequence[ProcessedVulnerability],
    out_path: Path = Path("vulnerabilities-export.json"),
) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(to_json(vulnerabilities), encoding="utf-8")
    logger.info("Exported %d records to %s", len(vulnerabilities), out_path)
    return out_path


def export_to_csv(
    vulnerabilities: Sequence[ProcessedVulnerability],
    out_path: Path = Path("vulnerabilities-export.csv"),
) -> Optional[Path]:
    """Write the CSV export; nothing is written for an empty sequence."""
    if not vulnerabilities:
        logger.info("No records to export; skipping %s", out_path)
        return None
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(to_csv(vulnerabilities), encoding="utf-8")
    logger.info("Exported %d records to %s", len(vulnerabilities), out_path)
    return out_path
