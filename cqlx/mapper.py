"""Mapping of column names to attributes of record classes.

A record class is a dataclass or a class with annotated attributes. Each
public attribute is known under a column name: the value stored under the
mapper's tag in the dataclass field metadata, or else the attribute name
passed through the mapper's name function. Attributes whose type is itself
a dataclass are also mapped under dotted names (``parent.child``).
"""

from __future__ import annotations

import dataclasses
import functools
import string
import threading
import types
import typing
from typing import Any, Callable, Dict, FrozenSet, List, Sequence, Tuple

Path = Tuple[str, ...]

_ALLOWED = frozenset(string.ascii_letters + string.digits)


def camel_to_snake(name: str) -> str:
    """Convert an ASCII camel case name to snake case.

    Raises ValueError if the name holds anything other than ASCII letters,
    digits and underscores.
    """
    out: List[str] = []
    length = len(name)
    for i, ch in enumerate(name):
        if ch not in _ALLOWED and ch != "_":
            raise ValueError(f"not allowed name {name}")
        if ch.isupper():
            prev = name[i - 1] if i > 0 else ""
            nxt = name[i + 1] if i + 1 < length else ""
            if i > 0 and prev != "_" and (prev.islower() or nxt.islower()):
                out.append("_")
            ch = ch.lower()
        out.append(ch)
    return "".join(out)


def _unwrap_optional(hint: Any) -> Any:
    """Return T for Optional[T] (or T | None); other hints unchanged."""
    origin = typing.get_origin(hint)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(hint) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return hint


def _is_class_var(hint: Any) -> bool:
    if isinstance(hint, str):
        text = hint.strip()
        return text.startswith("ClassVar") or text.startswith("typing.ClassVar")
    return hint is typing.ClassVar or typing.get_origin(hint) is typing.ClassVar


def _own_annotations(klass: type) -> Dict[str, Any]:
    """Annotations declared on ``klass`` itself, as written."""
    own = klass.__dict__.get("__annotations__")
    if isinstance(own, dict):
        return own
    try:
        found = getattr(klass, "__annotations__", None)
    except Exception:
        return {}
    return found if isinstance(found, dict) else {}


@functools.lru_cache(maxsize=None)
def _type_hints(cls: Any) -> Dict[str, Any]:
    """Attribute annotations of a class as declared; empty for non-classes.

    Annotations written as strings are kept as strings.
    """
    if not isinstance(cls, type):
        return {}
    hints: Dict[str, Any] = {}
    for klass in reversed(cls.__mro__):
        hints.update(_own_annotations(klass))
    return {name: hint for name, hint in hints.items() if not _is_class_var(hint)}


class Mapper:
    """Maps column names to attribute paths of record classes, with caching."""

    def __init__(self, tag_name: str, name_func: Callable[[str], str]) -> None:
        self.tag_name = tag_name
        self.name_func = name_func
        self._cache: Dict[type, Dict[str, Path]] = {}
        self._lock = threading.Lock()

    def field_map(self, cls: Any) -> Dict[str, Path]:
        """Return a mapping of column name to attribute path for ``cls``."""
        if not isinstance(cls, type):
            cls = type(cls)
        with self._lock:
            cached = self._cache.get(cls)
            if cached is None:
                cached = {}
                self._collect(cls, (), "", cached, frozenset())
                self._cache[cls] = cached
        return dict(cached)

    def traversals_by_name(self, cls: Any, names: Sequence[str]) -> List[Path]:
        """Return the attribute path of each name; an empty path if unmapped."""
        mapping = self.field_map(cls)
        return [mapping.get(name, ()) for name in names]

    def _declared(self, cls: type) -> List[Tuple[str, Any]]:
        if dataclasses.is_dataclass(cls):
            return [(f.name, f.metadata.get(self.tag_name)) for f in dataclasses.fields(cls)]
        return [(name, None) for name in _type_hints(cls)]

    def _collect(
        self,
        cls: type,
        prefix_path: Path,
        prefix_name: str,
        out: Dict[str, Path],
        seen: FrozenSet[type],
    ) -> None:
        hints = _type_hints(cls)
        seen = seen | {cls}
        for attr, tag in self._declared(cls):
            if attr.startswith("_"):
                continue
            if tag:
                name = str(tag).split(",", 1)[0]
                if name == "-":
                    continue
                if not name:
                    name = self.name_func(attr)
            else:
                name = self.name_func(attr)
            full_name = f"{prefix_name}.{name}" if prefix_name else name
            path = prefix_path + (attr,)
            out.setdefault(full_name, path)
            hint = _unwrap_optional(hints.get(attr))
            if (
                isinstance(hint, type)
                and dataclasses.is_dataclass(hint)
                and hint not in seen
            ):
                self._collect(hint, path, full_name, out, seen)


DEFAULT_MAPPER = Mapper("db", camel_to_snake)
"""Mapper using the ``db`` metadata key and snake case attribute names."""