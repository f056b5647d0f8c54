"""
Artifact path generation.
All paths are relative to ARTIFACT_ROOT and grouped per document.
"""

from pathlib import Path


def canonical_xml_path(document_id: int) -> str:
    """Path for the extractor's canonical XML record."""
    return f"{document_id}/canonical/statement.xml"


def statement_csv_path(document_id: int) -> str:
    """Path for the CSV projection of the canonical record."""
    return f"{document_id}/csv/statement.csv"


def flagged_csv_path(document_id: int) -> str:
    """Path for the export of transactions flagged for query."""
    return f"{document_id}/csv/flagged.csv"


def flow_graph_path(document_id: int, period: str) -> str:
    return f"{document_id}/flows/{period}.json"


def ensure_parent_dirs(artifact_root: str, relative_path: str) -> Path:
    """Create parent directories and return the full absolute path."""
    full_path = Path(artifact_root) / relative_path
    full_path.parent.mkdir(parents=True, exist_ok=True)
    return full_path
