# cqlx

Helpers for working with Scylla and Cassandra from Python:

- mapping result rows onto classes
- running CQL schema migrations from a directory of `.cql` files
- turning CQL column types into type names for generated model code

The package has no runtime dependencies. It does not connect to a database.
You give it the column names and rows you fetched, or a session object that
runs statements for it.

## Installation

```
pip install cqlx
```

To run the test suite:

```
pip install "cqlx[test]"
pytest
```

## Mapping rows onto classes

### `cqlx.mapper`

A `Mapper` finds the public attributes of a record class and matches each one
to a column name. A record class is a dataclass or a class with annotated
attributes.

A column name comes from one of two places:

- For a dataclass field, it can come from the field's metadata under the
  mapper's tag name, for example `field(metadata={"db": "col"})`. A tag of
  `"-"` leaves the field out.
- Otherwise the mapper passes the attribute name through its name function.

Attributes whose type is itself a dataclass are also mapped under dotted
names such as `address.city`.

- `Mapper(tag_name, name_func)`
- `Mapper.field_map(cls)` returns a dict from column name to attribute path,
  a tuple of attribute names. Results are cached per class.
- `Mapper.traversals_by_name(cls, names)` returns the attribute path for each
  name. A name that maps to no attribute gets an empty tuple.
- `camel_to_snake(name)` turns `FirstName` into `first_name`. It raises
  `ValueError` for anything other than ASCII letters, digits and underscores.
- `DEFAULT_MAPPER` is `Mapper("db", camel_to_snake)`.

### `cqlx.iterx`

`Iterx(columns, rows, mapper=None)` walks over result rows and builds values
from them. When no mapper is given, it uses `DEFAULT_MAPPER`.

```python
from dataclasses import dataclass
from cqlx.iterx import Iterx

@dataclass
class Person:
    first_name: str = ""
    last_name: str = ""

people = Iterx(["first_name", "last_name"], [("John", "Doe")]).select(Person)
# [Person(first_name='John', last_name='Doe')]
```

Methods:

- `get(cls)` returns the first row as `cls` and closes the iterator. It
  raises `NotFoundError`, a `LookupError`, when there is no row.
- `select(cls)` returns every row as a list of `cls` and closes the
  iterator. No rows gives an empty list.
- `struct_scan(dest)` fills an existing object from the next row and returns
  `False` when there are no more rows. The match between columns and
  attributes is worked out once, so use a single class per iterator.
- `scan()` returns the next row as a tuple, or `None` at the end.
- `strict()` makes a column that no attribute takes raise `ValueError`,
  instead of that column being skipped. The module default is
  `DEFAULT_STRICT`.
- `struct_only()` fills an `Unmarshaler` record class attribute by attribute
  instead of from a single column.
- `close()` stops the iteration. `num_rows()` returns the number of rows read
  so far.

An `Iterx` can also be used as a context manager; it closes on exit.

How a class is read:

- A class that implements `Unmarshaler` (the method `unmarshal_cql(data)`), a
  non-record type, or a record class with no mapped attributes is read from
  a single column. If the result has more than one column, `get` and
  `select` raise `ValueError`.
- Record attributes whose type is an `Unmarshaler` are built from their
  column's value.
- A result whose first column is `[applied]`, as returned by conditional
  statements, stores that value in the iterator's `applied` attribute. Such
  a result is accepted in strict mode.

## Schema migrations

### `cqlx.migrate`

Migrations are a flat directory of `*.cql` files. There is no naming scheme:
the name of a migration is its file name, and migrations run in the
lexicographical order of file names.

Each file is split into statements at `;`, and a missing semicolon after the
last statement is allowed. Progress is recorded after every statement in the
`gocqlx_migrate` table. A migration that stopped partway through resumes
after its last completed statement.

The session you pass in must implement `Session`:

- `execute(stmt, values=())`
- `query(stmt, values=())`, returning an `Iterx`
- `await_schema_agreement()`

Functions:

- `from_fs(session, root, callback=None)` applies every file under `root`
  that has not been applied yet. `root` is a path or any object with
  `iterdir` and `joinpath`. Before applying anything, it checks the
  migrations already recorded against the files. It raises `MigrationError`
  in these cases:
  - there are no migration files
  - the database records more migrations than there are files
  - the recorded names do not match the files in order
  - an applied file no longer matches its recorded MD5 checksum
  - a statement, a callback or the recording of progress fails

  After all migrations have run, it waits once for schema agreement.
- `migrate(session, directory)` does the same for a directory on disk.
- `list_migrations(session)` returns the applied migrations as `Info`
  records, sorted by name. `Info` has the fields `name`, `checksum`, `done`,
  `start_time` and `end_time`.
- `pending(session, root)` returns `Info` records for the files not yet
  applied.

Schema agreement can also be awaited during a run. Set
`DEFAULT_AWAIT_SCHEMA_AGREEMENT` to one of the `AwaitSchemaAgreement` values:
`DISABLED` (the default), `BEFORE_EACH_FILE` or `BEFORE_EACH_STATEMENT`.

Statements starting with `--` are comments and are skipped. A statement of
the form `-- CALL name;` calls the callback with `CALL_COMMENT` and `name`.
`is_callback(stmt)` returns that name, or `""`. `is_comment(stmt)` tells
plain comments apart from such calls.

### `cqlx.callback`

A callback is called as `callback(session, event, name)`. If it raises, the
migration is aborted. The events in `CallbackEvent` are:

- `BEFORE_MIGRATION`: fired before the first statement of a file
- `AFTER_MIGRATION`: fired after the last statement of a file
- `CALL_COMMENT`: fired for each `-- CALL` comment

`CallbackRegister` sends events to the handlers you register by event and
name:

```python
from cqlx.callback import CallbackEvent, CallbackRegister
from cqlx.migrate import from_fs

register = CallbackRegister()
register.add(CallbackEvent.CALL_COMMENT, "backfill", my_handler)
from_fs(session, "migrations", register.callback)
```

`find(ev, name)` returns the registered handler, or `None`. An event with no
handler is ignored, except `CALL_COMMENT`, for which `callback` raises
`LookupError`. A register can also be called directly in place of
`register.callback`.

### `cqlx.checksum`

- `checksum(data)` returns the hex MD5 digest of some bytes.
- `file_checksum(root, path)` returns the hex MD5 digest of a file under
  `root`. If the file cannot be opened, it returns `""`.

## Type names for generated models

- `cqlx.camelize.camelize("hello_world")` returns `"HelloWorld"`. Underscores
  are dropped. Names may contain only ASCII letters, digits and underscores;
  anything else raises `ValueError`.
- `cqlx.map_types.map_scylla_to_go_type(s)` maps a CQL type to the type name
  used in generated model code. The native types are listed in `TYPES`.
  - `"int"` becomes `"int32"`
  - `"map<int, text>"` becomes `"map[int32]string"`
  - `"list<int>"` and `"set<int>"` become `"[]int32"`
  - `frozen<...>` is unwrapped
  - tuples become anonymous structs with fields `Field1`, `Field2` and so on
  - any other name becomes `<Name>UserType`

## What the package does not do

- It has no database driver and opens no connections.
- It has no query builder and no table models.
- It has no command-line tool. In particular, it does not read a keyspace
  and write model code; `map_scylla_to_go_type` and `camelize` only provide
  the type names that such code would use.