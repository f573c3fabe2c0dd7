"""Mapping of CQL column types to Go type names for generated models."""

from __future__ import annotations

import re
from typing import Dict, Tuple

from cqlx.camelize import camelize

_GROUPED: Dict[str, Tuple[str, ...]] = {
    "string": ("ascii", "inet", "text", "varchar"),
    "int64": ("bigint", "varint"),
    "int32": ("int",),
    "int16": ("smallint",),
    "int8": ("tinyint",),
    "int": ("counter",),
    "float64": ("double",),
    "float32": ("float",),
    "bool": ("boolean",),
    "[]byte": ("blob",),
    "[16]byte": ("timeuuid", "uuid"),
    "time.Time": ("date", "timestamp"),
    "time.Duration": ("time",),
    "inf.Dec": ("decimal",),
    "gocql.Duration": ("duration",),
}

TYPES: Dict[str, str] = {
    cql_name: go_name for go_name, cql_names in _GROUPED.items() for cql_name in cql_names
}
"""Native CQL types and the Go types they map to."""

_NAME = "([a-z]*)"
_FROZEN = re.compile(f"frozen<{_NAME}>")
_MAP = re.compile(f"map<{_NAME}, {_NAME}>")
_SEQUENCES = (re.compile(f"set<{_NAME}>"), re.compile(f"list<{_NAME}>"))
_TUPLE = re.compile(f"tuple<(?:{_NAME},? ?)*>")
_TUPLE_PREFIX = len("tuple<")


def _native(name: str) -> str:
    return TYPES.get(name, "")


def map_scylla_to_go_type(s: str) -> str:
    """Return the Go type name for the CQL type ``s``.

    Collections map to Go maps and slices, tuples to anonymous structs and
    unknown names to ``<Name>UserType`` structs of user-defined types.
    """
    frozen = _FROZEN.search(s)
    if frozen:
        s = frozen.group(1)

    mapping = _MAP.search(s)
    if mapping:
        return f"map[{_native(mapping.group(1))}]{_native(mapping.group(2))}"

    for pattern in _SEQUENCES:
        sequence = pattern.search(s)
        if sequence:
            return f"[]{_native(sequence.group(1))}"

    tuple_match = _TUPLE.search(s)
    if tuple_match:
        members = tuple_match.group(0)[_TUPLE_PREFIX:-1].split(", ")
        lines = [
            f"\t\tField{position} {map_scylla_to_go_type(member)}\n"
            for position, member in enumerate(members, start=1)
        ]
        return "struct {\n" + "".join(lines) + "\t}"

    if s in TYPES:
        return TYPES[s]

    return f"{camelize(s)}UserType"