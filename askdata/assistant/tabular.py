"""Normalized row-set produced by query execution."""
from __future__ import annotations

from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple


class TabularResult:
    """Ordered, read-only sequence of rows sharing the first row's columns.

    Column order is taken from the first row and is significant: column 0 is
    the default category / x-axis candidate. Rows are kept exactly as they
    were received so that chart specifications can embed them unmodified.
    """

    __slots__ = ("_rows", "_columns")

    def __init__(self, rows: Sequence[Mapping[str, Any]] = ()) -> None:
        self._rows: Tuple[Mapping[str, Any], ...] = tuple(
            row for row in rows if isinstance(row, Mapping)
        )
        self._columns: Tuple[str, ...] = (
            tuple(str(key) for key in self._rows[0].keys()) if self._rows else ()
        )

    @classmethod
    def from_rows(cls, rows: Any) -> "TabularResult":
        """Build a result from loosely typed input (e.g. a JSON request body)."""
        if isinstance(rows, TabularResult):
            return rows
        if not isinstance(rows, (list, tuple)):
            return cls()
        return cls(rows)

    @property
    def columns(self) -> Tuple[str, ...]:
        return self._columns

    @property
    def row_count(self) -> int:
        return len(self._rows)

    @property
    def is_empty(self) -> bool:
        """True when there is nothing to chart: no rows or no columns."""
        return not self._rows or not self._columns

    @property
    def first_row(self) -> Optional[Mapping[str, Any]]:
        return self._rows[0] if self._rows else None

    def has_column(self, name: Any) -> bool:
        return isinstance(name, str) and name in self._columns

    def sample(self, limit: int) -> List[Dict[str, Any]]:
        return [dict(row) for row in self._rows[:limit]]

    def to_records(self) -> List[Dict[str, Any]]:
        return [dict(row) for row in self._rows]

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self) -> Iterator[Mapping[str, Any]]:
        return iter(self._rows)

    def __getitem__(self, index: int) -> Mapping[str, Any]:
        return self._rows[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TabularResult):
            return NotImplemented
        return self._rows == other._rows

    def __repr__(self) -> str:
        return f"TabularResult(rows={self.row_count}, columns={list(self._columns)!r})"
