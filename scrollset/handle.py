# Copyright 2017 Bloomberg Finance L.P.
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#     http://www.apache.org/licenses/LICENSE-2.0
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""This module provides a thin, pythonic wrapper over the embedded SQL engine.

Overview
========

Basic Usage
-----------

The main class used for running queries is `Handle`.  A basic usage example
looks like this::

    from scrollset import handle
    hndl = handle.Handle()
    for row in hndl.execute("select 1, 'a' union all select 2, 'b'"):
        print(row)

Which would result in the following output::

    [1, 'a']
    [2, 'b']

Every statement is run to completion by `Handle.execute`: all of the rows of
its result set are fetched before the call returns.  This is what allows
`scrollset.resultset.ResultSet` to scroll backwards as well as forwards.

Graceful Teardown and Error Handling
------------------------------------

Non-trivial applications should guarantee that the handle is closed when it is
no longer needed, preferably by using `contextlib.closing`.  Failures that are
encountered when opening the database or running a statement are raised as
instances of the `Error` class::

    from scrollset import handle
    import contextlib
    try:
        with contextlib.closing(handle.Handle("inventory.db")) as hndl:
            for row in hndl.execute("select id, label from test"):
                print(row)
    except handle.Error as exc:
        print("Engine exception encountered: %s" % exc)

Parameter Binding
-----------------

Placeholders are specified using ``@name``, and a mapping of names to values is
passed to `Handle.execute` along with the query:

    >>> query = "select 25 between @a and @b"
    >>> print(list(hndl.execute(query, {'a': 20, 'b': 42})))
    [[1]]

Types
-----

============   ================================================================
SQL type       Python type
============   ================================================================
NULL           ``None``
integer        `int`
real           `float`
blob           `bytes`
text           `str`
datetime       `datetime.datetime` (only when requested with *column_types*)
============   ================================================================

The engine stores datetimes as ISO-8601 text.  A `datetime.datetime` parameter
is bound as text in the handle's timezone, and a column can be read back as
a timezone-aware `datetime.datetime` by passing `ColumnType.DATETIME` for it in
the *column_types* argument of `Handle.execute`.
"""

from __future__ import annotations

import datetime
import logging
import re
import sqlite3
from collections.abc import Callable, Iterator, Mapping, Sequence
from typing import Any, Union

import pytz

from ._types import Column, ColumnType, Effects, Error

__all__ = [
    "Error",
    "Handle",
    "Effects",
    "Column",
    "ColumnType",
    "ERROR_CODE",
    "TYPE",
    "Value",
    "ParameterValue",
]

logger = logging.getLogger(__name__)

Value = Union[
    None,
    int,
    float,
    bytes,
    str,
    datetime.datetime,
]
ParameterValue = Value
Row = Any

ERROR_CODE = {
    "CONNECT_ERROR": -1,
    "NOTCONNECTED": -2,
    "PREPARE_ERROR": -3,
    "IO_ERROR": -4,
    "INTERNAL": -5,
    "BADCOLUMN": -7,
    "BADSTATE": -8,
    "BADREQ": -17,
    "READONLY": -21,
    "CONSTRAINTS": -103,
    "DEADLOCK": 203,
    "FKEY_VIOLATION": 3,
    "NULL_CONSTRAINT": 4,
    "CONV_FAIL": 113,
    "NOTSUPPORTED": 116,
    "DUPLICATE": 299,
    "UNKNOWN": 300,
    "TZNAME_FAIL": 401,
}
"""This dict maps all error names to their respective values.

The value returned in `Error.error_code` will always be one of the values in
this dict.
"""

TYPE = {e.name: e.value for e in ColumnType}
"""This dict maps all column type names to their enumeration value."""

_FIRST_WORD_OF_STMT = re.compile(
    r"""
    (?:           # match (without capturing)
      \s*         #   optional whitespace
      /\*.*?\*/   #   then a C-style /* ... */ comment, possibly across lines
    |             # or
      \s*         #   optional whitespace
      --[^\n]*\n  #   then a SQL-style comment terminated by a newline
    )*            # repeat until all comments have been matched
    \s*           # then skip over any whitespace
    (\w+)         # and capture the first word
    """,
    re.VERBOSE | re.DOTALL | re.ASCII,
)
_SET_TIMEZONE = re.compile(r"^\s*set\s+timezone\s+(\S+)\s*;?\s*$", re.I)

# Checked in order; the first entry whose class and message fragment both
# match the engine's exception decides the error code.
_CODE_BY_ENGINE_ERROR = [
    (sqlite3.IntegrityError, "UNIQUE constraint", "DUPLICATE"),
    (sqlite3.IntegrityError, "PRIMARY KEY", "DUPLICATE"),
    (sqlite3.IntegrityError, "NOT NULL constraint", "NULL_CONSTRAINT"),
    (sqlite3.IntegrityError, "FOREIGN KEY constraint", "FKEY_VIOLATION"),
    (sqlite3.IntegrityError, "", "CONSTRAINTS"),
    (sqlite3.DataError, "", "CONV_FAIL"),
    (sqlite3.NotSupportedError, "", "NOTSUPPORTED"),
    (sqlite3.ProgrammingError, "", "BADREQ"),
    (sqlite3.InterfaceError, "", "BADREQ"),
    (sqlite3.InternalError, "", "INTERNAL"),
    (sqlite3.OperationalError, "Could not decode", "CONV_FAIL"),
    (sqlite3.OperationalError, "is locked", "DEADLOCK"),
    (sqlite3.OperationalError, "readonly", "READONLY"),
    (sqlite3.OperationalError, "unable to open", "CONNECT_ERROR"),
    (sqlite3.OperationalError, "disk I/O", "IO_ERROR"),
    (sqlite3.OperationalError, "", "PREPARE_ERROR"),
]

_TYPE_BY_PYTHON_TYPE = {
    int: ColumnType.INTEGER,
    float: ColumnType.REAL,
    str: ColumnType.CSTRING,
    bytes: ColumnType.BLOB,
}


def _engine_error(exc: sqlite3.Error) -> Error:
    msg = str(exc)
    for exc_type, fragment, name in _CODE_BY_ENGINE_ERROR:
        if isinstance(exc, exc_type) and fragment in msg:
            return Error(ERROR_CODE[name], msg)
    return Error(ERROR_CODE["UNKNOWN"], msg)


def _sql_operation(sql):
    match = _FIRST_WORD_OF_STMT.match(sql)
    if match:
        return match.group(1).lower()
    return None


def _timezone(tz):
    if tz is None:
        return None
    try:
        return pytz.timezone(tz)
    except pytz.UnknownTimeZoneError:
        raise Error(ERROR_CODE["TZNAME_FAIL"], "Unknown timezone %r" % tz)


def _infer_type(values):
    for value in values:
        if value is not None:
            return _TYPE_BY_PYTHON_TYPE.get(type(value), ColumnType.CSTRING)
    return ColumnType.NULL


def _to_integer(value, tz):
    if isinstance(value, (int, float)):
        return int(value)
    if isinstance(value, str):
        return int(value.strip())
    raise TypeError("Cannot convert %s to integer" % type(value).__name__)


def _to_real(value, tz):
    if isinstance(value, (int, float, str)):
        return float(value)
    raise TypeError("Cannot convert %s to real" % type(value).__name__)


def _to_cstring(value, tz):
    if isinstance(value, bytes):
        return value.decode("utf-8")
    return str(value)


def _to_blob(value, tz):
    if isinstance(value, bytes):
        return value
    if isinstance(value, str):
        return value.encode("utf-8")
    raise TypeError("Cannot convert %s to blob" % type(value).__name__)


def _to_datetime(value, tz):
    if isinstance(value, datetime.datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = datetime.datetime.fromtimestamp(value, pytz.UTC)
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        dt = datetime.datetime.fromisoformat(text)
    else:
        raise TypeError("Cannot convert %s to datetime" % type(value).__name__)

    if tz is None:
        return dt
    if dt.tzinfo is None:
        if hasattr(tz, "localize"):
            return tz.localize(dt)
        return dt.replace(tzinfo=tz)
    return dt.astimezone(tz)


_CONVERTER_BY_TYPE = {
    ColumnType.INTEGER: _to_integer,
    ColumnType.REAL: _to_real,
    ColumnType.CSTRING: _to_cstring,
    ColumnType.BLOB: _to_blob,
    ColumnType.DATETIME: _to_datetime,
}


class Handle:
    """Represents a connection to an embedded database.

    By default the database lives in memory and disappears when the handle is
    closed.  Pass a file name as ``database`` to use a database stored on disk.

    The handle runs in autocommit mode: the effects of each statement are
    committed immediately unless a transaction was explicitly started with
    a ``BEGIN`` statement.

    By default, datetimes are bound and read back in UTC.  Any other timezone
    name known to `pytz` may be passed as ``tz``, or ``None`` to work with
    naive datetimes.  The timezone can also be changed later by executing
    ``SET TIMEZONE <name>``.

    Note that Python does not guarantee that object finalizers will be called
    when the interpreter exits, so to ensure that the handle is cleanly
    released you should call the `close` method when you're done with it.  You
    can use `contextlib.closing` to guarantee the handle is released when
    a block completes.

    Args:
        database (str): The database file to open, or ``":memory:"``.
        tz (str): The timezone used for datetime values, or ``None``.
        timeout (float): Seconds to wait for a lock held by another
            connection to the same database file.
    """

    def __init__(
        self,
        database: str = ":memory:",
        tz: str | None = "UTC",
        timeout: float = 5.0,
    ) -> None:
        self._conn = None
        self._tz = _timezone(tz)
        try:
            self._conn = sqlite3.connect(
                database, timeout=timeout, isolation_level=None
            )
        except sqlite3.Error as e:
            raise _engine_error(e) from e
        logger.debug("Opened database %r", database)

        self._row_factory = None
        self._make_row = list
        self._columns = []
        self._rows = []
        self._effects = Effects(0, 0, 0, 0, 0)
        self._cursor = iter([])

    def _check_open(self):
        if self._conn is None:
            raise Error(ERROR_CODE["NOTCONNECTED"], "Handle has been closed")

    def close(self) -> None:
        """Close the database connection.

        Once a `Handle` has been closed, no further operations may be performed
        on it, including closing it again.

        You can ensure that this gets called at the end of a block using
        something like:

            >>> with contextlib.closing(Handle()) as hndl:
            >>>     for row in hndl.execute("select 1"):
            >>>         print(row)
            [1]
        """
        self._check_open()
        self._conn.close()
        self._conn = None
        self._cursor = iter([])
        logger.debug("Closed handle")

    @property
    def timezone(self) -> datetime.tzinfo | None:
        """The timezone datetime values are bound and read in."""
        return self._tz

    @property
    def row_factory(self) -> Callable[[list[str]], Callable[[list[Value]], Row]]:
        """Factory used when constructing result rows.

        By default, or when set to ``None``, each row is returned as a `list`
        of column values.  If you'd prefer to receive rows as a `dict` or as
        a `collections.namedtuple`, you can set this property to one of the
        factories provided by the `scrollset.factories` module.

        Example:
            >>> from scrollset.factories import dict_row_factory
            >>> hndl.row_factory = dict_row_factory
            >>> for row in hndl.execute("SELECT 1 as 'foo', 2 as 'bar'"):
            ...     print(row)
            {'foo': 1, 'bar': 2}
        """
        return self._row_factory

    @row_factory.setter
    def row_factory(
        self, value: Callable[[list[str]], Callable[[list[Value]], Row]]
    ) -> None:
        self._row_factory = value

    def execute(
        self,
        sql: str | bytes,
        parameters: Mapping[str, ParameterValue] | None = None,
        *,
        column_types: Sequence[ColumnType] | None = None,
    ) -> Handle:
        """Execute a database operation (query or command).

        The ``sql`` string may have placeholders for parameters to be passed.
        Placeholders for named parameters must be in the format
        ``@param_name``.

        The whole result set is fetched before this method returns.

        If ``column_types`` is provided and non-empty, it must be a sequence of
        members of the `ColumnType` enumeration.  The data in the Nth column of
        the result set is coerced to the Nth given column type.  An error will
        be raised if the number of elements in ``column_types`` doesn't match
        the number of columns in the result set, or if coercion fails.

        Args:
            sql (str): The SQL string to execute.
            parameters (Mapping[str, Any]): An optional mapping from parameter
                names to the values to be bound for them.
            column_types (Sequence[ColumnType]): An optional sequence of types
                which the columns of the result set will be coerced to.

        Returns:
            Handle: This method returns the `Handle` that it was called on,
            which can be used as an iterator over the result set returned by
            the query.

        Example:
            >>> for row in hndl.execute("select 1, 2 UNION ALL select @x, @y",
            ...                         {'x': 2, 'y': 4}):
            ...     print(row)
            [1, 2]
            [2, 4]
        """
        self._check_open()
        if isinstance(sql, bytes):
            sql = sql.decode("utf-8")
        if parameters is None:
            parameters = {}

        self._columns = []
        self._rows = []
        self._effects = Effects(0, 0, 0, 0, 0)
        self._cursor = iter([])

        operation = _sql_operation(sql)
        if operation == "set":
            self._execute_set(sql)
            return self

        bound = {name: self._bind_value(name, v) for name, v in parameters.items()}

        logger.debug("Executing %r", sql)
        try:
            cursor = self._conn.execute(sql, bound)
            rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise _engine_error(e) from e

        if cursor.description is not None:
            names = [d[0] for d in cursor.description]
            types = self._resolve_column_types(names, rows, column_types)
            columns = [
                Column(name, type, i) for i, (name, type) in enumerate(zip(names, types))
            ]
            rows = self._coerce_rows(rows, column_types)
            self._make_row = self._build_row_maker(names)
            self._columns = columns
            self._rows = rows
            self._effects = Effects(0, len(self._rows), 0, 0, 0)
            logger.debug("Fetched %d rows", len(self._rows))
        else:
            self._effects = self._effects_of(operation, cursor.rowcount)

        self._cursor = (self._make_row(list(row)) for row in self._rows)
        return self

    def _execute_set(self, sql):
        match = _SET_TIMEZONE.match(sql)
        if not match:
            raise Error(ERROR_CODE["NOTSUPPORTED"], "Unsupported SET: %s" % sql)
        tz = match.group(1)
        self._tz = None if tz.lower() == "none" else _timezone(tz)
        logger.debug("Timezone set to %s", tz)

    def _bind_value(self, name, value):
        if value is None or isinstance(value, (int, float, str, bytes)):
            return value
        if isinstance(value, datetime.datetime):
            if value.tzinfo is not None and self._tz is not None:
                value = value.astimezone(self._tz)
            return value.isoformat(sep=" ")
        raise Error(
            ERROR_CODE["NOTSUPPORTED"],
            "Can't bind value of type %s for parameter '%s'"
            % (type(value).__name__, name),
        )

    def _resolve_column_types(self, names, rows, column_types):
        if not column_types:
            return [_infer_type(row[i] for row in rows) for i in range(len(names))]
        if len(column_types) != len(names):
            raise Error(
                ERROR_CODE["BADREQ"],
                "Got %d column types for a result set with %d columns"
                % (len(column_types), len(names)),
            )
        try:
            return [ColumnType(t) for t in column_types]
        except ValueError as e:
            raise Error(ERROR_CODE["BADREQ"], str(e)) from e

    def _coerce_rows(self, rows, column_types):
        if not column_types:
            return [tuple(row) for row in rows]

        converters = []
        for i, type in enumerate(column_types):
            type = ColumnType(type)
            if type not in _CONVERTER_BY_TYPE:
                raise Error(
                    ERROR_CODE["NOTSUPPORTED"],
                    "Cannot coerce column %d to %s" % (i, type.name),
                )
            converters.append((type, _CONVERTER_BY_TYPE[type]))

        coerced = []
        for row in rows:
            values = []
            for i, (value, (type, convert)) in enumerate(zip(row, converters)):
                if value is None:
                    values.append(None)
                    continue
                try:
                    values.append(convert(value, self._tz))
                except (TypeError, ValueError, OverflowError) as e:
                    raise Error(
                        ERROR_CODE["CONV_FAIL"],
                        "Failed to decode %s column %d: %s" % (type.name, i, e),
                    ) from e
            coerced.append(tuple(values))
        return coerced

    def _build_row_maker(self, names):
        if self._row_factory is None:
            return list
        try:
            return self._row_factory(names)
        except Exception as e:
            raise Error(
                ERROR_CODE["UNKNOWN"], "Row factory rejected the columns: %s" % (e,)
            ) from e

    @staticmethod
    def _effects_of(operation, rowcount):
        rowcount = max(rowcount, 0)
        if operation in ("insert", "replace"):
            return Effects(rowcount, 0, 0, 0, rowcount)
        if operation == "update":
            return Effects(rowcount, 0, rowcount, 0, 0)
        if operation == "delete":
            return Effects(rowcount, 0, 0, rowcount, 0)
        return Effects(0, 0, 0, 0, 0)

    def __iter__(self) -> Iterator[Row]:
        """Iterate over all remaining rows in the current result set.

        By default each row is returned as a `list`, where the elements in the
        list correspond to the result row's columns in positional order, but
        this can be changed with the `row_factory` property.
        """
        return self._cursor

    def __next__(self):
        return next(self._cursor)

    def get_effects(self) -> Effects:
        """Return counts of rows affected by the last executed statement.

        Returns:
            Effects: A count of rows that have been affected, selected,
            updated, deleted, or inserted.
        """
        self._check_open()
        return self._effects

    def columns(self) -> list[Column]:
        """Returns the metadata of the columns of the current result set."""
        return list(self._columns)

    def column_names(self) -> list[str]:
        """Returns the names of the columns of the current result set.

        Returns:
            A list of unicode strings, one per column in the result set.
        """
        return [c.name for c in self._columns]

    def column_types(self) -> list[int]:
        """Returns the type codes of the columns of the current result set.

        Returns:
            List[int]: A list of `ColumnType` members, one per column in the
            result set.
        """
        return [c.type for c in self._columns]

    def has_result_set(self) -> bool:
        """Return whether the last executed statement produced a result set."""
        return bool(self._columns)

    def rows(self) -> list[tuple]:
        """Return every row of the current result set as a tuple of values.

        Unlike iterating over the handle, this ignores `row_factory` and does
        not consume the rows.
        """
        return list(self._rows)
