"""
Tests for the artifact store.
"""

from decimal import Decimal

import pytest

from banking_pipeline.pipeline.csv_projector import project_csv
from banking_pipeline.pipeline.flow_aggregator import compute_flows
from banking_pipeline.schemas.canonical import Transaction
from banking_pipeline.storage.artifact_store import ArtifactStore
from banking_pipeline.storage.paths import statement_csv_path


@pytest.fixture
def store(tmp_path):
    return ArtifactStore(root=str(tmp_path / "artifacts"))


class TestArtifactStore:

    def test_save_statement_csv(self, store, sample_statement):
        path = store.save_statement_csv(12, sample_statement)
        assert path == "12/csv/statement.csv"
        assert store.load_text(path) == project_csv(sample_statement).to_text()

    def test_quoted_newline_preserved(self, store, sample_statement):
        statement = sample_statement.model_copy(update={"transactions": [
            Transaction(description="line one\nline two", amount=Decimal("1")),
        ]})
        path = store.save_statement_csv(3, statement)
        assert '"line one\nline two"' in store.load_text(path)

    def test_stale_when_missing(self, store, sample_statement):
        assert store.is_statement_csv_stale(1, sample_statement)

    def test_fresh_after_save(self, store, sample_statement):
        store.save_statement_csv(1, sample_statement)
        assert not store.is_statement_csv_stale(1, sample_statement)

    def test_stale_after_reextraction_changes_rows(self, store, sample_statement):
        store.save_statement_csv(1, sample_statement)
        fewer = sample_statement.model_copy(update={"transactions": sample_statement.transactions[:2]})
        assert store.is_statement_csv_stale(1, fewer)

    def test_flow_graph_json(self, store, sample_statement):
        graph = compute_flows(sample_statement, "2024-01")
        path = store.save_flow_graph(5, graph)
        assert path == "5/flows/2024-01.json"
        assert '"source": "transactions"' in store.load_text(path)

    def test_list_and_delete(self, store, sample_statement, sample_statement_xml):
        store.save_canonical_xml(7, sample_statement_xml)
        store.save_statement_csv(7, sample_statement)
        store.save_flagged_csv(7, "Row\n")

        assert store.list_artifacts(7) == [
            "7/canonical/statement.xml",
            "7/csv/flagged.csv",
            "7/csv/statement.csv",
        ]
        assert store.delete_document_artifacts(7) == 3
        assert store.list_artifacts(7) == []
        assert not store.exists(statement_csv_path(7))

    def test_load_missing(self, store):
        with pytest.raises(FileNotFoundError):
            store.load_text("nope.csv")
