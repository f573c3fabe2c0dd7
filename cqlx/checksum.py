"""MD5 checksums of migration files."""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Any, Union

_CHUNK = 64 * 1024

Root = Union[str, "os.PathLike[str]", Any]


def _as_root(root: Root) -> Any:
    """Turn a path-like root into a Path; other traversables are used as-is."""
    if isinstance(root, (str, os.PathLike)):
        return Path(root)
    return root


def checksum(data: bytes) -> str:
    """Return the hex MD5 digest of ``data``."""
    return hashlib.md5(data).hexdigest()


def file_checksum(root: Root, path: str) -> str:
    """Return the hex MD5 digest of file ``path`` under ``root``.

    A file that cannot be opened yields an empty string.
    """
    target = _as_root(root).joinpath(path)
    try:
        handle = target.open("rb")
    except OSError:
        return ""
    digest = hashlib.md5()
    with handle:
        for chunk in iter(lambda: handle.read(_CHUNK), b""):
            digest.update(chunk)
    return digest.hexdigest()