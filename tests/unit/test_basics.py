import batchaudit
from batchaudit.domain.models import Record
from scripts import seed_documents


def test_public_api_exports() -> None:
    for name in ("BatchCoordinator", "BatchContext", "Record", "attach_audit_log", "StaleWrite"):
        assert name in batchaudit.__all__
        assert hasattr(batchaudit, name)


def test_seed_documents_are_deterministic() -> None:
    first = seed_documents._generate_documents(rows=5, seed=123)
    second = seed_documents._generate_documents(rows=5, seed=123)

    assert first == second
    assert len(first) == 5
    assert [doc["name"] for doc in first] == [f"doc-{i:06d}" for i in range(5)]
    assert all(doc["category"] in seed_documents.CATEGORIES for doc in first)


def test_seed_documents_fit_the_demo_table(fake_schema) -> None:
    columns = {column.name for column in fake_schema.columns(seed_documents.TABLE)}

    for doc in seed_documents._generate_documents(rows=3, seed=1):
        record = Record.new(seed_documents.TABLE, doc, version_field="version")
        assert set(record.attributes) <= columns
