"""Schema migrations read from a flat directory of CQL files.

There is no imposed naming scheme: the migration name is the file name, and
migrations are applied in the lexicographical order of file names. Code can
run before and after each migration file and between statements of a file,
see :mod:`cqlx.callback`.
"""

from __future__ import annotations

import abc
import dataclasses
import enum
import fnmatch
import re
from datetime import datetime, timezone
from typing import Any, Iterator, List, Optional, Sequence

from cqlx.callback import CallbackEvent, CallbackFunc
from cqlx.checksum import Root, _as_root, checksum, file_checksum
from cqlx.iterx import Iterx, NotFoundError


class AwaitSchemaAgreement(enum.IntEnum):
    """When to wait for the cluster to agree on the schema."""

    DISABLED = 0
    BEFORE_EACH_FILE = 1
    BEFORE_EACH_STATEMENT = 2

    def should_await(self, stage: "AwaitSchemaAgreement") -> bool:
        """Whether this setting asks for awaiting agreement at ``stage``."""
        return self is stage


DEFAULT_AWAIT_SCHEMA_AGREEMENT = AwaitSchemaAgreement.DISABLED
"""When agreement is awaited besides the single check after all migrations."""

INFO_SCHEMA = """CREATE TABLE IF NOT EXISTS gocqlx_migrate (
\tname text,
\tchecksum text,
\tdone int,
\tstart_time timestamp,
\tend_time timestamp,
\tPRIMARY KEY(name)
)"""
SELECT_INFO = "SELECT * FROM gocqlx_migrate"
INSERT_INFO = (
    "INSERT INTO gocqlx_migrate (name,checksum,done,start_time,end_time) "
    "VALUES (?,?,?,?,?)"
)

_CALLBACK_RE = re.compile(r"-- *CALL +(.+);")


class MigrationError(Exception):
    """Raised when migrations cannot be listed, verified or applied."""


class Session(abc.ABC):
    """Database session that migrations are run against."""

    @abc.abstractmethod
    def execute(self, stmt: str, values: Sequence[Any] = ()) -> None:
        """Execute a statement with positional bind values."""

    @abc.abstractmethod
    def query(self, stmt: str, values: Sequence[Any] = ()) -> Iterx:
        """Run a query and return an iterator over its result rows."""

    @abc.abstractmethod
    def await_schema_agreement(self) -> None:
        """Block until all nodes agree on the schema version."""


@dataclasses.dataclass
class Info:
    """A migration applied, or about to be applied, to a database."""

    name: str = ""
    checksum: str = ""
    done: int = 0
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _ensure_info_table(session: Session) -> None:
    session.execute(INFO_SCHEMA)


def _migration_files(root: Any) -> List[str]:
    try:
        entries = list(root.iterdir())
    except OSError:
        return []
    return sorted(
        entry.name
        for entry in entries
        if fnmatch.fnmatchcase(entry.name, "*.cql") and entry.is_file()
    )


def list_migrations(session: Session) -> List[Info]:
    """Return the migrations applied to the database, ordered by name."""
    _ensure_info_table(session)
    try:
        applied = session.query(SELECT_INFO).select(Info)
    except NotFoundError:
        return []
    return sorted(applied, key=lambda info: info.name)


def pending(session: Session, root: Root) -> List[Info]:
    """Return the migration files under ``root`` not yet applied."""
    applied = {info.name for info in list_migrations(session)}
    base = _as_root(root)
    result = []
    for name in _migration_files(base):
        if name in applied:
            continue
        result.append(Info(name=name, start_time=_now(), checksum=file_checksum(base, name)))
    return result


def migrate(session: Session, directory: str) -> None:
    """Apply the migration files found in a directory on disk."""
    from_fs(session, directory, None)


def from_fs(session: Session, root: Root, callback: Optional[CallbackFunc] = None) -> None:
    """Apply the ``*.cql`` files under ``root`` that are not applied yet.

    Already applied files are verified by name and checksum, a partially
    applied last migration is resumed, and each comment of the form
    ``-- CALL <name>;`` triggers a CALL_COMMENT callback.
    """
    try:
        applied = list_migrations(session)
    except Exception as err:
        raise MigrationError(f"list migrations: {err}") from err

    base = _as_root(root)
    files = _migration_files(base)
    if not files:
        raise MigrationError("no migration files found")

    if len(applied) > len(files):
        raise MigrationError("database is ahead")

    for i, (info, name) in enumerate(zip(applied, files)):
        if info.name != name:
            raise MigrationError(
                f'inconsistent migrations found, expected "{info.name}" got "{name}" at {i}'
            )
        if info.checksum != file_checksum(base, name):
            raise MigrationError(
                f'file "{name}" was tampered with, expected md5 {info.checksum}'
            )

    work = []
    if applied:
        work.append((files[len(applied) - 1], applied[-1].done or 0))
    work.extend((name, 0) for name in files[len(applied):])

    for name, done in work:
        try:
            _apply_migration(session, base, name, done, callback)
        except Exception as err:
            raise MigrationError(f'apply migration "{name}": {err}') from err

    try:
        session.await_schema_agreement()
    except Exception as err:
        raise MigrationError(f"awaiting schema agreement: {err}") from err


def _statements(text: str) -> Iterator[str]:
    """Yield statements each ending with ';'; a non-blank tail is yielded too."""
    *complete, tail = text.split(";")
    for part in complete:
        yield part + ";"
    if tail.strip():
        yield tail


def _await(session: Session, stage: AwaitSchemaAgreement) -> None:
    if DEFAULT_AWAIT_SCHEMA_AGREEMENT.should_await(stage):
        try:
            session.await_schema_agreement()
        except Exception as err:
            raise MigrationError(f"awaiting schema agreement: {err}") from err


def _apply_migration(
    session: Session,
    root: Any,
    path: str,
    done: int,
    callback: Optional[CallbackFunc],
) -> None:
    data = root.joinpath(path).read_bytes()
    info = Info(name=path.rsplit("/", 1)[-1], start_time=_now(), checksum=checksum(data))

    _await(session, AwaitSchemaAgreement.BEFORE_EACH_FILE)

    i = 0
    for raw in _statements(data.decode("utf-8")):
        i += 1
        if i <= done:
            continue

        if callback is not None and i == 1:
            try:
                callback(session, CallbackEvent.BEFORE_MIGRATION, info.name)
            except Exception as err:
                raise MigrationError(f"before migration callback: {err}") from err

        _await(session, AwaitSchemaAgreement.BEFORE_EACH_STATEMENT)

        stmt = raw.strip()
        name = is_callback(stmt)
        if name:
            if callback is None:
                raise MigrationError(
                    f"statement {i}: missing callback handler while trying to call {name}"
                )
            try:
                callback(session, CallbackEvent.CALL_COMMENT, name)
            except Exception as err:
                raise MigrationError(f"callback {name}: {err}") from err
        elif stmt and not is_comment(stmt):
            try:
                session.execute(stmt)
            except Exception as err:
                raise MigrationError(f"statement {i}: {err}") from err

        info.done = i
        info.end_time = _now()
        try:
            session.execute(
                INSERT_INFO,
                [info.name, info.checksum, info.done, info.start_time, info.end_time],
            )
        except Exception as err:
            raise MigrationError(f"migration statement {i}: {err}") from err

    if i == 0:
        raise MigrationError(f'no migration statements found in "{info.name}"')

    if callback is not None and i > done:
        try:
            callback(session, CallbackEvent.AFTER_MIGRATION, info.name)
        except Exception as err:
            raise MigrationError(f"after migration callback: {err}") from err


def is_callback(stmt: str) -> str:
    """Return the name called by a ``-- CALL <name>;`` comment, or ''."""
    match = _CALLBACK_RE.fullmatch(stmt)
    return match.group(1) if match else ""


def is_comment(stmt: str) -> bool:
    """Whether ``stmt`` is a plain comment, not a callback call."""
    return stmt.startswith("--") and not is_callback(stmt)