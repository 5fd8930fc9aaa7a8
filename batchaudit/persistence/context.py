"""
Batch contexts: the pending records of one table within one unit of work.

A context is created and owned by the caller and handed to
`BatchCoordinator.save_all`; nothing is shared between contexts, so records
left over from one unit of work cannot leak into the next.
"""

from __future__ import annotations

from typing import Iterable, Iterator, List, Tuple, Union

from batchaudit.domain.errors import HeterogeneousBatch
from batchaudit.domain.models import Record


class BatchContext:
    """Ordered queue of records awaiting persistence into `table`."""

    def __init__(self, table: str) -> None:
        self.table = table
        self._records: List[Record] = []

    def enqueue(self, records: Union[Record, Iterable[Record]]) -> None:
        """Append one record or several, preserving order."""
        batch = [records] if isinstance(records, Record) else list(records)
        for record in batch:
            if record.table != self.table:
                raise HeterogeneousBatch(self.table, record.table)
        self._records.extend(batch)

    @property
    def records(self) -> Tuple[Record, ...]:
        return tuple(self._records)

    def clear(self) -> None:
        self._records.clear()

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[Record]:
        return iter(tuple(self._records))

    def __bool__(self) -> bool:
        return bool(self._records)

    def __repr__(self) -> str:
        return f"BatchContext(table={self.table!r}, records={len(self._records)})"


__all__ = ["BatchContext"]
