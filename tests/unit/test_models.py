from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from batchaudit.domain.models import AuditLogEntry, ColumnInfo, Record, timestamp

FIXED_VERSION = 12345


def _not_blank(value):
    return None if value else "cannot be blank"


def _persisted(**overrides) -> Record:
    row = {"id": 1, "name": "a", "version": 100}
    row.update(overrides)
    return Record.from_row("documents", row, version_field="version")


class TestRecord:
    def test_new_record_gets_version_token(self) -> None:
        record = Record.new(
            "documents", {"name": "a"}, version_field="version", version_source=lambda: FIXED_VERSION
        )

        assert record.is_new
        assert record.version == FIXED_VERSION

    def test_new_record_keeps_supplied_version(self) -> None:
        record = Record.new("documents", {"name": "a", "version": 7}, version_field="version")

        assert record.version == 7

    def test_unversioned_record_has_no_version(self) -> None:
        record = Record.new("documents", {"name": "a"})

        assert record.version is None
        assert "version" not in record.attributes

    def test_from_row_is_clean(self) -> None:
        record = _persisted()

        assert not record.is_new
        assert record.dirty_attributes() == {}

    def test_dirty_attributes_track_changes_since_load(self) -> None:
        record = _persisted()
        record.set("name", "b")
        record.set("category", "x")

        assert record.dirty_attributes() == {"name": "b", "category": "x"}
        assert record.dirty_attributes(["name"]) == {"name": "b"}

    def test_mark_saved_returns_prior_values(self) -> None:
        record = _persisted()
        record.set("name", "b")

        changes = record.mark_saved()

        assert changes == {"name": "a"}
        assert record.last_changes == {"name": "a"}
        assert record.get_old("name") == "b"
        assert record.dirty_attributes() == {}

    def test_mark_saved_on_new_record_reports_none_priors(self) -> None:
        record = Record.new("documents", {"name": "a"})

        changes = record.mark_saved()

        assert changes == {"name": None}
        assert not record.is_new

    def test_snapshot_and_restore(self) -> None:
        record = Record.new("documents", {"name": "a"})
        snapshot = record.snapshot()
        record.set("id", 5)
        record.mark_saved()

        record.restore(snapshot)

        assert record.is_new
        assert record.attributes == {"name": "a"}
        assert record.old_attributes == {}

    def test_records_hash_by_identity(self) -> None:
        first = Record.new("documents", {"name": "a"})
        second = Record.new("documents", {"name": "a"})

        assert first != second
        assert len({first, second}) == 2

    def test_primary_key_values_follow_key_order(self) -> None:
        record = Record.new("links", {"b": 2, "a": 1}, primary_key=("a", "b"))

        assert record.primary_key_values() == (1, 2)


class TestValidation:
    def test_custom_validators_collect_errors(self) -> None:
        record = Record.new("documents", {"name": ""}, validators={"name": [_not_blank]})

        assert not record.validate()
        assert record.errors == {"name": ["cannot be blank"]}

    def test_validation_can_be_restricted_to_names(self) -> None:
        record = Record.new("documents", {"name": ""}, validators={"name": [_not_blank]})

        assert record.validate(["category"])

    def test_persisted_record_requires_version(self) -> None:
        record = _persisted(version=None)

        assert not record.validate()
        assert record.errors["version"] == ["version is required"]

    @pytest.mark.parametrize(
        ("value", "message"),
        [
            ("12a", "version must contain digits only"),
            ("-1", "version must contain digits only"),
            ("1" * 51, "version should contain at most 50 characters"),
        ],
    )
    def test_persisted_record_version_format(self, value: str, message: str) -> None:
        record = _persisted(version=value)

        assert not record.validate()
        assert record.errors["version"] == [message]

    def test_new_record_skips_version_rules(self) -> None:
        record = Record.new("documents", {"name": "a", "version": "abc"}, version_field="version")

        assert record.validate()


class TestAuditLogEntry:
    def test_to_row_renders_set_literal(self) -> None:
        entry = AuditLogEntry(
            doc_id=1,
            changed_attributes=("name", "atime", "version"),
            changed_by="alice",
            atime="2024-01-01 10:00:00.000000+00:00",
            version="42",
            attributes={"name": "a"},
        )

        row = entry.to_row()

        assert row == {
            "name": "a",
            "doc_id": 1,
            "changed_attributes": "{name,atime,version}",
            "changed_by": "alice",
            "atime": "2024-01-01 10:00:00.000000+00:00",
            "version": "42",
        }

    def test_to_row_uses_configured_field_names(self) -> None:
        entry = AuditLogEntry(doc_id=3, changed_attributes=("name",), atime="t", version="1")

        row = entry.to_row(
            doc_id_field="document_id",
            changed_attributes_field="changes",
            changed_by_field=None,
            time_field="changed_at",
            version_field="rev",
        )

        assert row == {"document_id": 3, "changes": "{name}", "changed_at": "t", "rev": "1"}

    def test_entry_is_frozen(self) -> None:
        entry = AuditLogEntry(doc_id=1, changed_attributes=("name",))

        with pytest.raises(ValidationError):
            entry.doc_id = 2


def test_column_info_defaults_to_nullable() -> None:
    assert ColumnInfo(name="name", storage_type="text").nullable


def test_timestamp_has_microseconds_and_offset() -> None:
    moment = datetime(2024, 3, 1, 12, 30, 5, 123, tzinfo=timezone(timedelta(hours=2)))

    rendered = timestamp(moment)

    assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}\.\d{6}[+-]\d{2}:\d{2}", rendered)
    assert datetime.fromisoformat(rendered) == moment
