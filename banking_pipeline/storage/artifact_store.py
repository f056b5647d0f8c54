"""
Artifact store for derived statement files.
Local filesystem under ARTIFACT_ROOT. Every file here can be regenerated
from the canonical record.
"""

import csv
import io
import json
import shutil
from pathlib import Path
from typing import Optional

import structlog

from banking_pipeline.config import settings
from banking_pipeline.pipeline.csv_projector import project_csv
from banking_pipeline.schemas.canonical import CanonicalStatement
from banking_pipeline.schemas.flows import FlowGraph
from banking_pipeline.storage.paths import (
    canonical_xml_path,
    ensure_parent_dirs,
    flagged_csv_path,
    flow_graph_path,
    statement_csv_path,
)

logger = structlog.get_logger(__name__)


class ArtifactStore:
    """
    Save and load per-document artifacts.
    All paths are relative to ARTIFACT_ROOT.
    """

    def __init__(self, root: Optional[str] = None):
        self.root = Path(root or settings.ARTIFACT_ROOT)
        self.root.mkdir(parents=True, exist_ok=True)

    # ── Generic ──────────────────────────────────────────────

    def save_text(self, relative_path: str, text: str) -> str:
        """Save a text artifact. Returns the relative path."""
        full_path = ensure_parent_dirs(str(self.root), relative_path)
        # newline="" keeps CSV line endings exactly as rendered
        with open(full_path, "w", encoding="utf-8", newline="") as f:
            f.write(text)
        logger.info("artifact_saved_text", path=relative_path, size_chars=len(text))
        return relative_path

    def save_json(self, relative_path: str, data: dict) -> str:
        full_path = ensure_parent_dirs(str(self.root), relative_path)
        full_path.write_text(json.dumps(data, default=str, indent=2), encoding="utf-8")
        logger.info("artifact_saved_json", path=relative_path)
        return relative_path

    def load_text(self, relative_path: str) -> str:
        full_path = self.root / relative_path
        if not full_path.exists():
            raise FileNotFoundError(f"Artifact not found: {relative_path}")
        with open(full_path, encoding="utf-8", newline="") as f:
            return f.read()

    def exists(self, relative_path: str) -> bool:
        return (self.root / relative_path).exists()

    def delete_document_artifacts(self, document_id: int) -> int:
        """Delete all artifacts for a document. Returns count deleted."""
        doc_dir = self.root / str(document_id)
        if not doc_dir.exists():
            return 0
        count = sum(1 for p in doc_dir.rglob("*") if p.is_file())
        shutil.rmtree(doc_dir)
        logger.info("document_artifacts_deleted", document_id=document_id, count=count)
        return count

    def list_artifacts(self, document_id: int) -> list[str]:
        doc_dir = self.root / str(document_id)
        if not doc_dir.exists():
            return []
        return sorted(
            str(p.relative_to(self.root).as_posix())
            for p in doc_dir.rglob("*")
            if p.is_file()
        )

    # ── Statement artifacts ──────────────────────────────────

    def save_canonical_xml(self, document_id: int, xml_text: str) -> str:
        return self.save_text(canonical_xml_path(document_id), xml_text)

    def save_statement_csv(self, document_id: int, statement: CanonicalStatement) -> str:
        """Write the CSV projection of the statement. Returns the relative path."""
        projection = project_csv(statement)
        path = self.save_text(statement_csv_path(document_id), projection.to_text())
        logger.info("statement_csv_saved", document_id=document_id, row_count=projection.row_count)
        return path

    def save_flagged_csv(self, document_id: int, csv_text: str) -> str:
        return self.save_text(flagged_csv_path(document_id), csv_text)

    def save_flow_graph(self, document_id: int, graph: FlowGraph) -> str:
        return self.save_json(flow_graph_path(document_id, graph.period), graph.model_dump(mode="json"))

    def is_statement_csv_stale(self, document_id: int, statement: CanonicalStatement) -> bool:
        """
        True when the stored CSV is missing or its data row count differs
        from the statement's transaction count.
        """
        path = statement_csv_path(document_id)
        if not self.exists(path):
            return True
        rows = list(csv.reader(io.StringIO(self.load_text(path))))
        stored_count = max(len(rows) - 1, 0)
        stale = stored_count != len(statement.transactions)
        if stale:
            logger.warning(
                "statement_csv_stale",
                document_id=document_id,
                stored_rows=stored_count,
                transactions=len(statement.transactions),
            )
        return stale
