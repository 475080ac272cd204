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

"""This module provides connections, statements and scrollable result sets.

Overview
========

Basic Usage
-----------

The main class used for running queries is `Connection`, which you create by
calling the `connect` factory function.  Statements are created from the
connection, and each query run through a statement produces
a `~scrollset.resultset.ResultSet`::

    from scrollset import connector
    conn = connector.connect()
    stmt = conn.create_statement()
    rs = stmt.execute_query("select 1 as id, 'a' as label"
                            " union all select 2, 'b'")
    while rs.next():
        print(rs.get_int("id"), rs.get_string("label"))

The above would result in the following output::

    1 a
    2 b

All of the rows of a result set are fetched when the query runs, so the cursor
can be moved backwards as well as forwards::

    rs.after_last()
    while rs.previous():
        print(rs.get_row(), rs.get_int("id"))

Graceful Teardown and Error Handling
------------------------------------

Non-trivial applications should guarantee that the `Connection` is closed when
it is no longer needed, by using it as a context manager or with
`contextlib.closing`.  Closing a connection closes every statement created
from it and every result set those statements produced, and closing
a statement closes its current result set.  All exceptions raised
by this module are subclasses of `Error`::

    from scrollset import connector
    try:
        with connector.connect("inventory.db") as conn:
            rs = conn.create_statement().execute_query("select id from test")
            rs.absolute(-1)
            print(rs.get_int("id"))
    except connector.Error as exc:
        print("Exception encountered: %s" % exc)

Misusing a result set's cursor raises `InvalidArgumentError` (for instance,
``rs.absolute(0)``) or `InvalidCursorStateError` (reading a column while the
cursor is before the first row or after the last row).  Both are subclasses of
`InterfaceError`.

Parameter Binding
-----------------

Placeholders are specified using ``%(name)s``, and a mapping of ``name`` to
parameter value is passed along with the query:

    >>> query = "select 25 between %(a)s and %(b)s as ok"
    >>> rs = conn.create_statement().execute_query(query, {'a': 20, 'b': 42})
    >>> rs.next() and rs.get_int("ok")
    1

A `PreparedStatement` holds on to its SQL, and lets parameters be bound ahead
of time::

    ps = conn.prepare_statement("select label from test where id = %(id)s")
    ps.set_parameter("id", 3)
    rs = ps.execute_query()

Note:
    Because parameters are bound using ``%(name)s``, other ``%`` signs in
    a query must be escaped.  For example, ``WHERE name like 'M%'`` becomes
    ``WHERE name LIKE 'M%%'``.
"""

from __future__ import annotations

import logging
import weakref
from collections.abc import Callable, Mapping, Sequence

from . import handle
from .exceptions import (
    DatabaseError,
    DataError,
    Error,
    ForeignKeyConstraintError,
    IntegrityError,
    InterfaceError,
    InternalError,
    InvalidArgumentError,
    InvalidCursorStateError,
    NonNullConstraintError,
    NotSupportedError,
    OperationalError,
    ProgrammingError,
    UniqueKeyConstraintError,
    Warning,
    _raise_wrapped_exception,
)
from .handle import ColumnType, ParameterValue, Row, Value
from .resultset import ResultSet

__all__ = [
    "apilevel",
    "threadsafety",
    "paramstyle",
    "connect",
    "ColumnType",
    "Connection",
    "Statement",
    "PreparedStatement",
    "ResultSet",
    "Error",
    "Warning",
    "InterfaceError",
    "InvalidArgumentError",
    "InvalidCursorStateError",
    "DatabaseError",
    "InternalError",
    "OperationalError",
    "ProgrammingError",
    "IntegrityError",
    "DataError",
    "NotSupportedError",
    "UniqueKeyConstraintError",
    "ForeignKeyConstraintError",
    "NonNullConstraintError",
    "Value",
    "ParameterValue",
]

logger = logging.getLogger(__name__)

apilevel = "2.0"

threadsafety = 1
"""Two threads can use this module, but can't share one `Connection`."""

paramstyle = "pyformat"
"""The SQL placeholder format for this module is ``%(name)s``.

The engine's native placeholder format is ``@name``; queries are translated
from one to the other before they are run.

Note:
    An int value is bound as ``%(my_int)s``, not as ``%(my_int)d`` - the last
    character is always ``s``.
"""


def _translate_placeholders(sql, parameters):
    try:
        # If variable interpolation fails, then translate the exception to
        # an InterfaceError to signal that it's a client-side problem.
        return sql % {name: "@" + name for name in parameters}
    except KeyError as keyerr:
        msg = "No value provided for parameter %s" % keyerr
        raise InterfaceError(msg) from keyerr
    except Exception as exc:
        msg = "Invalid Python format string for query"
        raise InterfaceError(msg) from exc


def connect(
    database: str = ":memory:",
    tz: str | None = "UTC",
    timeout: float = 5.0,
) -> Connection:
    """Open a connection to a database.

    All arguments are passed directly through to the `Connection` constructor.

    Returns:
        Connection: A handle for the newly established connection.
    """
    return Connection(database=database, tz=tz, timeout=timeout)


class Connection:
    """Represents a connection to a database.

    By default the database lives in memory, and disappears when the
    connection is closed.  Pass a file name as ``database`` to use a database
    stored on disk.

    Statements run in autocommit mode: their effects are committed
    immediately unless a transaction was explicitly started by executing
    a ``BEGIN`` statement.

    The connection will use UTC as the timezone for datetime values by
    default.  Pass any other timezone name known to `pytz` as ``tz``, or
    ``None`` to work with naive datetimes.

    Note:
        Python does not guarantee that object finalizers will be called when
        the interpreter exits, so to ensure that the connection is cleanly
        released you should call the `close` method when you're done with it,
        or use the connection as a context manager.

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
        self._hndl = None
        self._statements = weakref.WeakSet()
        self._result_sets = weakref.WeakSet()
        self._row_factory = None
        try:
            self._hndl = handle.Handle(database, tz=tz, timeout=timeout)
        except handle.Error as e:
            _raise_wrapped_exception(e)

    def _check_closed(self):
        if self._hndl is None:
            raise InterfaceError("Attempted to use a closed Connection")

    def __enter__(self) -> Connection:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self._hndl is not None:
            self.close()

    @property
    def row_factory(self) -> Callable[[list[str]], Callable[[list[Value]], Row]]:
        """Factory used when constructing result rows.

        The factory is handed to every `ResultSet` created through this
        connection afterwards.  By default, or when set to ``None``, each row
        is returned as a `list` of column values.  If you'd prefer to receive
        rows as a `dict` or as a `collections.namedtuple`, you can set this
        property to one of the factories provided by the `scrollset.factories`
        module.

        Example:
            >>> from scrollset.factories import dict_row_factory
            >>> conn.row_factory = dict_row_factory
            >>> rs = conn.create_statement().execute_query(
            ...     "SELECT 1 as 'foo', 2 as 'bar'")
            >>> rs.next()
            True
            >>> rs.current()
            {'foo': 1, 'bar': 2}
        """
        self._check_closed()
        return self._row_factory

    @row_factory.setter
    def row_factory(
        self, value: Callable[[list[str]], Callable[[list[Value]], Row]]
    ) -> None:
        self._check_closed()
        self._row_factory = value

    def close(self) -> None:
        """Close the connection.

        Every `Statement` created from this connection, and every result set
        produced through them, is closed as well.  Once a `Connection` has been
        closed, no further operations may be performed on it.
        """
        if self._hndl is None:
            raise InterfaceError("close() called on already closed connection")
        statements = [s for s in self._statements if not s._closed]
        logger.debug("Closing connection with %d open statements", len(statements))
        for stmt in statements:
            stmt.close()
        # A result set can outlive the statement that produced it
        for rs in list(self._result_sets):
            rs.close()
        self._hndl.close()
        self._hndl = None

    def is_closed(self) -> bool:
        """Return whether `close` has been called."""
        return self._hndl is None

    def create_statement(self) -> Statement:
        """Return a new `Statement` for running SQL on this connection."""
        self._check_closed()
        stmt = Statement(self)
        self._statements.add(stmt)
        return stmt

    def prepare_statement(self, sql: str) -> PreparedStatement:
        """Return a new `PreparedStatement` that runs ``sql``.

        Args:
            sql (str): The SQL string, as a Python format string of the format
                expected by `Statement.execute`.
        """
        self._check_closed()
        stmt = PreparedStatement(self, sql)
        self._statements.add(stmt)
        return stmt

    # Optional DB API Extension
    Error = Error
    Warning = Warning
    InterfaceError = InterfaceError
    InvalidArgumentError = InvalidArgumentError
    InvalidCursorStateError = InvalidCursorStateError
    DatabaseError = DatabaseError
    InternalError = InternalError
    OperationalError = OperationalError
    ProgrammingError = ProgrammingError
    IntegrityError = IntegrityError
    DataError = DataError
    NotSupportedError = NotSupportedError


class _BaseStatement:
    def __init__(self, conn: Connection) -> None:
        self._conn = conn
        self._hndl = conn._hndl
        self._closed = False
        self._result_set = None
        self._update_count = -1

    def _check_closed(self):
        if self._closed:
            raise InterfaceError("Attempted to use a closed statement")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if not self._closed:
            self.close()

    # Optional DB API Extension
    @property
    def connection(self) -> Connection:
        """Return a reference to the `Connection` that this statement uses."""
        self._check_closed()
        return self._conn

    def close(self) -> None:
        """Close the statement now, along with its current result set.

        From this point forward an exception will be raised if any
        operation is attempted with this statement.
        """
        self._check_closed()
        self._close_result_set()
        self._closed = True

    def is_closed(self) -> bool:
        return self._closed

    def _close_result_set(self):
        if self._result_set is not None:
            self._result_set.close()
            self._result_set = None

    def _execute(self, sql, parameters, column_types=None):
        self._check_closed()
        self._close_result_set()
        self._update_count = -1

        if parameters is None:
            parameters = {}
        sql = _translate_placeholders(sql, parameters)

        try:
            self._hndl.execute(sql, parameters, column_types=column_types)
        except handle.Error as e:
            _raise_wrapped_exception(e)

        if self._hndl.has_result_set():
            self._result_set = ResultSet(
                self._hndl.columns(),
                self._hndl.rows(),
                row_factory=self._conn._row_factory,
                tz=self._hndl.timezone,
            )
            self._conn._result_sets.add(self._result_set)
            return True

        self._update_count = self._hndl.get_effects().num_affected
        return False

    def _execute_query(self, sql, parameters, column_types):
        if not self._execute(sql, parameters, column_types):
            raise ProgrammingError("Statement did not produce a result set")
        return self._result_set

    def _execute_update(self, sql, parameters):
        if self._execute(sql, parameters):
            self._close_result_set()
            raise ProgrammingError("Statement produced a result set")
        return self._update_count

    def get_result_set(self) -> ResultSet | None:
        """Return the result set produced by the last execution, if any."""
        self._check_closed()
        return self._result_set

    def get_update_count(self) -> int:
        """Return the count of rows changed by the last execution.

        ``-1`` is returned if the last execution produced a result set, or if
        nothing has been executed yet.
        """
        self._check_closed()
        return self._update_count


class Statement(_BaseStatement):
    """Class used to run SQL through a database connection.

    This class is not meant to be instantiated directly; it should always be
    created using `Connection.create_statement`.

    Each execution replaces (and closes) the result set of the previous one.
    """

    def execute(
        self,
        sql: str,
        parameters: Mapping[str, ParameterValue] | None = None,
        *,
        column_types: Sequence[ColumnType] | None = None,
    ) -> bool:
        """Execute a database operation (query or command).

        The ``sql`` string must be provided as a Python format string, with
        parameter placeholders represented as ``%(name)s`` and all other ``%``
        signs escaped as ``%%``.

        If ``column_types`` is provided and non-empty, the Nth column of the
        result set is coerced to the Nth given `ColumnType`; see
        `scrollset.handle.Handle.execute`.

        Args:
            sql (str): The SQL string to execute, as a Python format string.
            parameters (Mapping[str, Any]): An optional mapping from parameter
                names to the values to be bound for them.
            column_types (Sequence[ColumnType]): An optional sequence of types
                which the columns of the result set will be coerced to.

        Returns:
            bool: ``True`` if the statement produced a result set, available
            from `get_result_set`; ``False`` if it didn't, in which case
            `get_update_count` returns the count of changed rows.
        """
        return self._execute(sql, parameters, column_types)

    def execute_query(
        self,
        sql: str,
        parameters: Mapping[str, ParameterValue] | None = None,
        *,
        column_types: Sequence[ColumnType] | None = None,
    ) -> ResultSet:
        """Execute a query and return its result set.

        Raises:
            ProgrammingError: If the statement doesn't produce a result set.

        Example:
            >>> rs = stmt.execute_query("select 1, 2 UNION ALL select 3, 4")
            >>> rs.rows_count()
            2
            >>> rs.absolute(-1)
            True
            >>> rs.get_int(1)
            3
        """
        return self._execute_query(sql, parameters, column_types)

    def execute_update(
        self, sql: str, parameters: Mapping[str, ParameterValue] | None = None
    ) -> int:
        """Execute a statement that changes rows and return the row count.

        Raises:
            ProgrammingError: If the statement produces a result set.
        """
        return self._execute_update(sql, parameters)

    def executemany(
        self, sql: str, seq_of_parameters: Sequence[Mapping[str, ParameterValue]]
    ) -> int:
        """Execute the same SQL statement repeatedly with different parameters.

        This is currently equivalent to calling `execute_update` once for each
        element provided in ``seq_of_parameters``.

        Returns:
            int: The total count of changed rows.
        """
        self._check_closed()
        return sum(self.execute_update(sql, params) for params in seq_of_parameters)


class PreparedStatement(_BaseStatement):
    """A statement bound to one SQL string, run repeatedly.

    This class is not meant to be instantiated directly; it should always be
    created using `Connection.prepare_statement`.

    Parameters may be bound ahead of time with `set_parameter`, and may also
    be passed to each execution, in which case they take precedence over the
    ones bound ahead of time.
    """

    def __init__(self, conn: Connection, sql: str) -> None:
        super().__init__(conn)
        self._sql = sql
        self._parameters = {}

    @property
    def sql(self) -> str:
        return self._sql

    def set_parameter(self, name: str, value: ParameterValue) -> None:
        """Bind ``value`` to the ``%(name)s`` placeholder."""
        self._check_closed()
        self._parameters[name] = value

    def clear_parameters(self) -> None:
        """Forget every parameter bound with `set_parameter`."""
        self._check_closed()
        self._parameters.clear()

    def _merged(self, parameters):
        merged = dict(self._parameters)
        if parameters:
            merged.update(parameters)
        return merged

    def execute(
        self,
        parameters: Mapping[str, ParameterValue] | None = None,
        *,
        column_types: Sequence[ColumnType] | None = None,
    ) -> bool:
        """Execute the prepared SQL; see `Statement.execute`."""
        return self._execute(self._sql, self._merged(parameters), column_types)

    def execute_query(
        self,
        parameters: Mapping[str, ParameterValue] | None = None,
        *,
        column_types: Sequence[ColumnType] | None = None,
    ) -> ResultSet:
        """Execute the prepared query; see `Statement.execute_query`."""
        return self._execute_query(self._sql, self._merged(parameters), column_types)

    def execute_update(
        self, parameters: Mapping[str, ParameterValue] | None = None
    ) -> int:
        """Execute the prepared statement; see `Statement.execute_update`."""
        return self._execute_update(self._sql, self._merged(parameters))
