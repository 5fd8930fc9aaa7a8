"""
Domain models for batch-audit.

`Record` is the mutable row container the batch engine persists; it tracks the
last persisted values so dirty attributes can be computed. `ColumnInfo` and
`AuditLogEntry` are immutable, validated value objects.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, Field, field_serializer

from batchaudit.domain.versioning import next_version

AttributeValidator = Callable[[Any], Optional[str]]

_VERSION_PATTERN = re.compile(r"^[0-9]+$")
_VERSION_MAX_LENGTH = 50


@dataclass(frozen=True)
class RecordSnapshot:
    attributes: Dict[str, Any]
    old_attributes: Dict[str, Any]
    is_new: bool
    last_changes: Dict[str, Any]


@dataclass(eq=False)
class Record:
    """
    A single row of `table`, new or previously persisted.

    Attributes
    ----------
    table : str
        Target table, optionally schema-qualified ("public.documents").
    attributes : dict
        Current in-memory values.
    primary_key : tuple[str, ...]
        Primary key column names, in key order.
    is_new : bool
        Whether the row still has to be inserted.
    version_field : str | None
        Attribute holding the optimistic version token, if the table has one.
    old_attributes : dict
        Values as last loaded from or written to storage.
    validators : dict[str, list[callable]]
        Per-attribute checks returning an error message or None.
    """

    table: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    primary_key: Tuple[str, ...] = ("id",)
    is_new: bool = True
    version_field: Optional[str] = None
    old_attributes: Dict[str, Any] = field(default_factory=dict)
    validators: Dict[str, List[AttributeValidator]] = field(default_factory=dict)
    errors: Dict[str, List[str]] = field(default_factory=dict, init=False)
    last_changes: Dict[str, Any] = field(default_factory=dict, init=False)

    @classmethod
    def new(
        cls,
        table: str,
        attributes: Optional[Mapping[str, Any]] = None,
        *,
        primary_key: Sequence[str] = ("id",),
        version_field: Optional[str] = None,
        validators: Optional[Dict[str, List[AttributeValidator]]] = None,
        version_source: Callable[[], int] = next_version,
    ) -> "Record":
        """Create an unsaved record; a version token is assigned right away."""
        record = cls(
            table=table,
            attributes=dict(attributes or {}),
            primary_key=tuple(primary_key),
            is_new=True,
            version_field=version_field,
            validators=dict(validators or {}),
        )
        if version_field and record.attributes.get(version_field) is None:
            record.attributes[version_field] = version_source()
        return record

    @classmethod
    def from_row(
        cls,
        table: str,
        row: Mapping[str, Any],
        *,
        primary_key: Sequence[str] = ("id",),
        version_field: Optional[str] = None,
        validators: Optional[Dict[str, List[AttributeValidator]]] = None,
    ) -> "Record":
        """Wrap a row fetched from storage."""
        return cls(
            table=table,
            attributes=dict(row),
            primary_key=tuple(primary_key),
            is_new=False,
            version_field=version_field,
            old_attributes=dict(row),
            validators=dict(validators or {}),
        )

    def get(self, name: str, default: Any = None) -> Any:
        return self.attributes.get(name, default)

    def set(self, name: str, value: Any) -> None:
        self.attributes[name] = value

    def has_attribute(self, name: str) -> bool:
        return name in self.attributes

    def get_old(self, name: str, default: Any = None) -> Any:
        return self.old_attributes.get(name, default)

    @property
    def version(self) -> Any:
        return self.attributes.get(self.version_field) if self.version_field else None

    def primary_key_values(self) -> Tuple[Any, ...]:
        return tuple(self.attributes.get(name) for name in self.primary_key)

    def dirty_attributes(self, names: Optional[Iterable[str]] = None) -> Dict[str, Any]:
        """Attributes whose current value differs from the persisted one."""
        candidates = self.attributes.keys() if names is None else names
        dirty: Dict[str, Any] = {}
        for name in candidates:
            if name not in self.attributes:
                continue
            value = self.attributes[name]
            if name not in self.old_attributes or self.old_attributes[name] != value:
                dirty[name] = value
        return dirty

    def validate(self, names: Optional[Iterable[str]] = None) -> bool:
        """
        Run attribute validators (restricted to `names` when given).

        Persisted versioned records also require a well-formed version token.
        Errors are collected into `errors`; returns True when there are none.
        """
        self.errors = {}
        selected = None if names is None else set(names)
        for name, checks in self.validators.items():
            if selected is not None and name not in selected:
                continue
            for check in checks:
                message = check(self.attributes.get(name))
                if message:
                    self.errors.setdefault(name, []).append(message)
        if self.version_field and not self.is_new:
            message = _check_version_token(self.attributes.get(self.version_field))
            if message:
                self.errors.setdefault(self.version_field, []).append(message)
        return not self.errors

    def mark_saved(self) -> Dict[str, Any]:
        """
        Accept current values as persisted.

        Returns the changed attributes mapped to their prior values, and keeps
        the same mapping on `last_changes`.
        """
        changes = {name: self.old_attributes.get(name) for name in self.dirty_attributes()}
        self.old_attributes = dict(self.attributes)
        self.is_new = False
        self.last_changes = changes
        return changes

    def snapshot(self) -> RecordSnapshot:
        return RecordSnapshot(
            attributes=dict(self.attributes),
            old_attributes=dict(self.old_attributes),
            is_new=self.is_new,
            last_changes=dict(self.last_changes),
        )

    def restore(self, snapshot: RecordSnapshot) -> None:
        self.attributes = dict(snapshot.attributes)
        self.old_attributes = dict(snapshot.old_attributes)
        self.is_new = snapshot.is_new
        self.last_changes = dict(snapshot.last_changes)


def _check_version_token(value: Any) -> Optional[str]:
    if value is None or value == "":
        return "version is required"
    rendered = str(value)
    if len(rendered) > _VERSION_MAX_LENGTH:
        return f"version should contain at most {_VERSION_MAX_LENGTH} characters"
    if not _VERSION_PATTERN.match(rendered):
        return "version must contain digits only"
    return None


class ColumnInfo(BaseModel):
    """
    A column as reported by the schema introspector.
    """

    name: str = Field(..., description="Column name.")
    storage_type: str = Field(..., description="Declared type, e.g. 'character varying(50)'.")
    nullable: bool = Field(True, description="Whether the column accepts NULL.")

    model_config = {"frozen": True}


class AuditLogEntry(BaseModel):
    """
    One audited change of a source record, as written to the log table.
    """

    doc_id: Any = Field(..., description="Primary key of the source record.")
    changed_attributes: Tuple[str, ...] = Field(..., description="Changed attribute names.")
    changed_by: Optional[Any] = Field(None, description="Acting user, None when non-interactive.")
    atime: Optional[str] = Field(None, description="ISO-8601 timestamp with microseconds and offset.")
    version: Optional[str] = Field(None, description="New version token as a decimal string.")
    attributes: Dict[str, Any] = Field(default_factory=dict, description="Mirrored attributes.")

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    @field_serializer("changed_attributes")
    def _render_set_literal(self, names: Tuple[str, ...]) -> str:
        return "{" + ",".join(names) + "}"

    def to_row(
        self,
        doc_id_field: str = "doc_id",
        changed_attributes_field: str = "changed_attributes",
        changed_by_field: Optional[str] = "changed_by",
        time_field: Optional[str] = "atime",
        version_field: Optional[str] = "version",
    ) -> Dict[str, Any]:
        """Flatten into log-table columns under the configured field names."""
        row = dict(self.attributes)
        row[doc_id_field] = self.doc_id
        row[changed_attributes_field] = self.model_dump(include={"changed_attributes"})[
            "changed_attributes"
        ]
        if changed_by_field:
            row[changed_by_field] = self.changed_by
        if time_field and self.atime is not None:
            row[time_field] = self.atime
        if version_field and self.version is not None:
            row[version_field] = self.version
        return row


def timestamp(now: Optional[datetime] = None) -> str:
    """Render a timezone-aware timestamp as 'YYYY-MM-DD HH:MM:SS.ffffff+HH:MM'."""
    moment = (now or datetime.now()).astimezone()
    return moment.isoformat(sep=" ", timespec="microseconds")


__all__ = ["AuditLogEntry", "ColumnInfo", "Record", "RecordSnapshot", "timestamp"]
