"""Flattening of the nested group → repo → image → vulnerability document."""

from typing import Any, Iterator, List, Mapping, Tuple

from common_lib.logger import get_logger

from dashboard_core.models import ProcessedVulnerability

logger = get_logger(__name__)


def _children(node: Any, container_key: str) -> Iterator[Tuple[str, Any]]:
    """
    Iterate ``(name, child)`` pairs of one nesting level in insertion order.

    The export wraps each level in a container key (``groups``/``repos``/
    ``images``); a bare mapping is accepted when that key is absent. A
    present container key whose value is not a mapping is an empty level.
    """
    if not isinstance(node, Mapping):
        return
    if container_key in node:
        level = node[container_key]
        if not isinstance(level, Mapping):
            return
    else:
        level = node
    for name, child in level.items():
        if isinstance(child, Mapping):
            yield str(name), child


def build_record_id(group_name: str, repo_name: str, version: str, cve: str, counter: int) -> str:
    """Synthetic id unique within one normalization run."""
    return f"{group_name}-{repo_name}-{version}-{cve}-{counter}"


def process_vulnerability_data(document: Any) -> List[ProcessedVulnerability]:
    """
    Flatten a raw snapshot into an ordered list of records.

    Traversal follows the document's own key order: groups, repos within a
    group, image versions within a repo, then vulnerabilities by index. The
    input is never modified. Missing or malformed collections count as empty.

    Args:
        document: Parsed source document

    Returns:
        One ProcessedVulnerability per raw vulnerability entry
    """
    processed: List[ProcessedVulnerability] = []
    id_counter = 0

    for group_name, group in _children(document, "groups"):
        for repo_name, repo in _children(group, "repos"):
            for version, image in _children(repo, "images"):
                vulnerabilities = image.get("vulnerabilities")
                if not isinstance(vulnerabilities, list):
                    continue
                image_name = image.get("name") or ""
                for vuln in vulnerabilities:
                    fields = dict(vuln) if isinstance(vuln, Mapping) else {}
                    cve = fields.get("cve") or ""
                    fields.update(
                        id=build_record_id(group_name, repo_name, version, cve, id_counter),
                        groupName=group_name,
                        repoName=repo_name,
                        imageName=image_name,
                        imageVersion=version,
                    )
                    processed.append(ProcessedVulnerability.model_validate(fields))
                    id_counter += 1

    logger.info("Normalized %d vulnerability records", len(processed))
    return processed


normalize = process_vulnerability_data
