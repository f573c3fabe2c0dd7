"""Iteration over query results with scanning into record classes."""

from __future__ import annotations

import abc
import dataclasses
from typing import Any, Iterable, List, Optional, Sequence

from cqlx.mapper import DEFAULT_MAPPER, Mapper, Path, _type_hints, _unwrap_optional

DEFAULT_STRICT = False
"""Whether new iterators report result columns that map to no attribute."""

APPLIED_COLUMN = "[applied]"

_END = object()


class NotFoundError(LookupError):
    """Raised when a single row was requested but none was selected."""

    def __init__(self, message: str = "not found") -> None:
        super().__init__(message)


class Unmarshaler(abc.ABC):
    """A type that builds itself from a single column value."""

    @abc.abstractmethod
    def unmarshal_cql(self, data: Any) -> None:
        """Fill this instance from a column value."""


def _kind(cls: Any) -> str:
    return getattr(cls, "__name__", str(cls))


def _is_struct(cls: Any) -> bool:
    if not isinstance(cls, type):
        return False
    if dataclasses.is_dataclass(cls):
        return True
    return any(vars(k).get("__annotations__") for k in cls.__mro__ if k is not object)


def _is_unmarshaler(cls: Any) -> bool:
    return isinstance(cls, type) and issubclass(cls, Unmarshaler)


def _struct_only_error(cls: Any) -> TypeError:
    if not _is_struct(cls):
        return TypeError(f"expected a struct but got {_kind(cls)}")
    if _is_unmarshaler(cls):
        return TypeError(
            f"expected a struct but the provided struct type {_kind(cls)} implements Unmarshaler"
        )
    return TypeError(f"expected a struct, but struct {_kind(cls)} has no exported fields")


def _new_instance(cls: Any) -> Any:
    """Create an instance with default values, even if the constructor needs arguments."""
    if not isinstance(cls, type):
        raise TypeError(f"cannot create a value of {cls!r}")
    try:
        return cls()
    except TypeError:
        if not dataclasses.is_dataclass(cls):
            raise
    obj = cls.__new__(cls)
    for f in dataclasses.fields(cls):
        if f.default is not dataclasses.MISSING:
            value = f.default
        elif f.default_factory is not dataclasses.MISSING:
            value = f.default_factory()
        else:
            value = None
        object.__setattr__(obj, f.name, value)
    return obj


def _convert(hint: Any, value: Any) -> Any:
    hint = _unwrap_optional(hint)
    if value is not None and _is_unmarshaler(hint) and not isinstance(value, hint):
        obj = _new_instance(hint)
        obj.unmarshal_cql(value)
        return obj
    return value


def _path_type(cls: Any, path: Path) -> Any:
    hint = cls
    for attr in path:
        hint = _type_hints(_unwrap_optional(hint)).get(attr)
    return hint


def _assign(obj: Any, path: Path, value: Any) -> None:
    target = obj
    for attr in path[:-1]:
        child = getattr(target, attr, None)
        if child is None:
            hint = _unwrap_optional(_type_hints(type(target)).get(attr))
            child = _new_instance(hint)
            setattr(target, attr, child)
        target = child
    setattr(target, path[-1], value)


class Iterx:
    """Iterator over result rows that scans them into values or records."""

    def __init__(
        self,
        columns: Sequence[str],
        rows: Iterable[Sequence[Any]],
        mapper: Optional[Mapper] = None,
    ) -> None:
        self.columns = tuple(columns)
        self.mapper = mapper if mapper is not None else DEFAULT_MAPPER
        self.applied = False
        self._rows = iter(rows)
        self._read = 0
        self._closed = False
        self._strict = DEFAULT_STRICT
        self._struct_only = False
        self._fields: Optional[List[Path]] = None
        self._leaf_types: List[Any] = []
        self._cas = False

    def __enter__(self) -> "Iterx":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def strict(self) -> "Iterx":
        """Report result columns that cannot be mapped to an attribute."""
        self._strict = True
        return self

    def struct_only(self) -> "Iterx":
        """Treat a record class as a record even if it is an Unmarshaler."""
        self._struct_only = True
        return self

    def num_rows(self) -> int:
        """Number of rows read so far."""
        return self._read

    def close(self) -> None:
        """Stop iterating and release the underlying rows."""
        if self._closed:
            return
        self._closed = True
        closer = getattr(self._rows, "close", None)
        if callable(closer):
            closer()

    def scan(self) -> Optional[tuple]:
        """Return the next row as a tuple, or None when there are no more."""
        row = self._next_row()
        return None if row is None else tuple(row)

    def get(self, cls: Any) -> Any:
        """Return the first row as ``cls`` and close the iterator.

        Record classes are filled column by column; other types take the
        single column of the row. Raises NotFoundError if there is no row.
        """
        try:
            if self._scannable(cls):
                result = self._scan_value(cls)
                found = result is not _END
            else:
                result = _new_instance(cls)
                found = self._struct_scan(result)
        finally:
            self.close()
        if not found:
            raise NotFoundError()
        return result

    def select(self, cls: Any) -> List[Any]:
        """Return all rows as a list of ``cls`` and close the iterator."""
        results: List[Any] = []
        try:
            scannable = self._scannable(cls)
            while True:
                if scannable:
                    value = self._scan_value(cls)
                    if value is _END:
                        break
                else:
                    value = _new_instance(cls)
                    if not self._struct_scan(value):
                        break
                results.append(value)
        finally:
            self.close()
        return results

    def struct_scan(self, dest: Any) -> bool:
        """Fill ``dest`` from the next row; False when there are no more rows.

        The column-to-attribute matching is cached, so one iterator must be
        used with a single record class.
        """
        if dest is None:
            raise TypeError("expected a struct instance but got None")
        return self._struct_scan(dest)

    def _next_row(self) -> Optional[Sequence[Any]]:
        if self._closed:
            return None
        try:
            row = next(self._rows)
        except StopIteration:
            return None
        if len(row) != len(self.columns):
            raise ValueError(
                f"expected {len(self.columns)} values in row but got {len(row)}"
            )
        self._read += 1
        return row

    def _is_scannable(self, cls: Any) -> bool:
        if _is_unmarshaler(cls) or not _is_struct(cls):
            return True
        return not self.mapper.field_map(cls)

    def _scannable(self, cls: Any) -> bool:
        if cls is None:
            raise TypeError("expected a type but got None")
        scannable = self._is_scannable(cls)
        if self._struct_only and scannable:
            if _is_struct(cls):
                scannable = False
            else:
                raise _struct_only_error(cls)
        if scannable and len(self.columns) > 1:
            raise ValueError(
                "expected 1 column in result while scanning scannable type "
                f"{_kind(cls)} but got {len(self.columns)}"
            )
        return scannable

    def _scan_value(self, cls: Any) -> Any:
        row = self._next_row()
        if row is None:
            return _END
        return _convert(cls, row[0])

    def _prepare(self, cls: type) -> None:
        columns = self.columns
        cas = bool(columns) and columns[0] == APPLIED_COLUMN
        fields = self.mapper.traversals_by_name(cls, columns)
        if self._strict and not cas:
            for name, path in zip(columns, fields):
                if not path:
                    raise ValueError(
                        f'missing destination name "{name}" in {cls.__module__}.{cls.__name__}'
                    )
        self._cas = cas
        self._fields = fields
        self._leaf_types = [_path_type(cls, path) if path else None for path in fields]

    def _struct_scan(self, dest: Any) -> bool:
        cls = type(dest)
        if not _is_struct(cls):
            raise TypeError(f"expected a struct but got {_kind(cls)}")
        if self._fields is None:
            self._prepare(cls)
        row = self._next_row()
        if row is None:
            return False
        for i, (path, hint, value) in enumerate(zip(self._fields, self._leaf_types, row)):
            if i == 0 and self._cas:
                self.applied = bool(value)
                continue
            if path:
                _assign(dest, path, _convert(hint, value))
        return True