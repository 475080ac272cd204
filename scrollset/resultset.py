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

"""This module provides buffered, scrollable result sets.

Overview
========

A `ResultSet` holds every row of a query's result, fetched when the query was
run, together with a cursor that points at one of those rows.  Rows are
numbered from ``1`` to ``N``.  Two more positions exist outside of that range:
``0``, before the first row, and ``N + 1``, after the last row.  A new result
set always starts out before the first row.

Scrolling
---------

The cursor is moved with `ResultSet.next`, `ResultSet.previous`,
`ResultSet.absolute`, `ResultSet.relative`, `ResultSet.first`,
`ResultSet.last`, `ResultSet.before_first` and `ResultSet.after_last`.  The
movement methods that return a value return ``True`` when the cursor ends up
on a row, so fetching in reverse order looks like this::

    rs.after_last()
    while rs.previous():
        print(rs.get_int("id"), rs.get_string("label"))

`ResultSet.absolute` accepts a negative row number to count from the end:
``-1`` is the last row, ``-2`` the one before it, and so on.  Row ``0`` can't be
targeted with `ResultSet.absolute`; use `ResultSet.before_first` instead.

Reading Columns
---------------

While the cursor is on a row, its columns can be read with the typed
accessors (`ResultSet.get_int`, `ResultSet.get_string`, and so on), passing
either a column name or a 1-based column index.  Column names are matched
case-insensitively.  Reading a column while the cursor is before the first row
or after the last row raises `InvalidCursorStateError`.
"""

from __future__ import annotations

import datetime
import numbers
from collections.abc import Callable, Iterator, Sequence
from typing import Any, Union

from ._types import Column
from .exceptions import (
    DataError,
    InterfaceError,
    InvalidArgumentError,
    InvalidCursorStateError,
    OperationalError,
    _raise_wrapped_exception,
)
from .handle import Error as HandleError
from .handle import (
    Value,
    _infer_type,
    _timezone,
    _to_blob,
    _to_cstring,
    _to_datetime,
    _to_integer,
    _to_real,
)

__all__ = ["ResultSet", "RowBuffer", "ColumnRef"]

Row = Any
ColumnRef = Union[int, str]


def _is_integer(value):
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _to_boolean(value, tz):
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("true", "false"):
            return text == "true"
    return _to_real(value, tz) != 0


class RowBuffer:
    """Fully materialized rows of a result set, with their column metadata.

    Rows are addressed by their 1-based row number.  Columns are addressed by
    name (case-insensitively, the first of several columns with the same name
    wins) or by 1-based column index.

    Args:
        columns: A `Column` per column, or just the column names, in which
            case the column types are inferred from the values.  The ordinal
            of each `Column` must be its 0-based position.
        rows: The rows, each a sequence with one value per column.
    """

    def __init__(
        self, columns: Sequence[Column | str], rows: Sequence[Sequence[Value]]
    ) -> None:
        self._rows = tuple(tuple(row) for row in rows)
        ncols = len(columns)
        for number, row in enumerate(self._rows, 1):
            if len(row) != ncols:
                raise InvalidArgumentError(
                    "Row %d has %d values, expected %d" % (number, len(row), ncols)
                )

        self._columns = tuple(
            c
            if isinstance(c, Column)
            else Column(c, _infer_type(row[i] for row in self._rows), i)
            for i, c in enumerate(columns)
        )
        for i, column in enumerate(self._columns):
            if column.ordinal != i:
                raise InvalidArgumentError(
                    "Column %r at position %d has ordinal %r"
                    % (column.name, i, column.ordinal)
                )
        self._ordinal_by_name = {}
        for column in self._columns:
            self._ordinal_by_name.setdefault(column.name.casefold(), column.ordinal)

    def __len__(self) -> int:
        return len(self._rows)

    @property
    def columns(self) -> tuple[Column, ...]:
        return self._columns

    def row(self, number: int) -> tuple:
        """Return the row with the given 1-based row number."""
        return self._rows[number - 1]

    def ordinal(self, column: ColumnRef) -> int:
        """Return the 0-based ordinal of a column given its name or index."""
        if isinstance(column, str):
            try:
                return self._ordinal_by_name[column.casefold()]
            except KeyError:
                raise InvalidArgumentError("No such column: %r" % column) from None
        if _is_integer(column):
            if 1 <= column <= len(self._columns):
                return int(column) - 1
            raise InvalidArgumentError(
                "Column index %d out of range 1..%d" % (column, len(self._columns))
            )
        raise InvalidArgumentError(
            "Columns are referenced by name or index, not %s"
            % type(column).__name__
        )


class ResultSet:
    """A buffered result set with a scrollable cursor.

    Result sets are normally obtained from `.connector.Statement.execute_query`
    or `.connector.PreparedStatement.execute_query`, but can be built directly
    from column metadata and a sequence of rows.

    The cursor position is always in ``0 .. N + 1``, where ``N`` is the number
    of rows.  Failed calls never move the cursor.

    Note:
        All rows are held in memory for the lifetime of the result set.  Call
        `close` (or use the result set as a context manager) to release them.

    Args:
        columns: A `Column` per column, or just the column names.
        rows: The rows of the result set.
        row_factory: Factory used by `current` and by iteration to build
            whole rows.  Defaults to returning a `list`.
        tz: Timezone naive datetimes are localized to by `get_datetime`,
            either a `pytz` timezone or the name of one.

    Raises:
        DataError: If ``tz`` names an unknown timezone.
    """

    def __init__(
        self,
        columns: Sequence[Column | str],
        rows: Sequence[Sequence[Value]],
        row_factory: Callable[[list[str]], Callable[[list[Value]], Row]] | None = None,
        tz: datetime.tzinfo | str | None = None,
    ) -> None:
        if isinstance(tz, str):
            try:
                tz = _timezone(tz)
            except HandleError as e:
                _raise_wrapped_exception(e)
        self._buffer = RowBuffer(columns, rows)
        self._position = 0
        self._was_null = False
        self._closed = False
        self._tz = tz
        self._row_factory = None
        self._make_row = list
        self.row_factory = row_factory

    def _check_closed(self):
        if self._closed:
            raise InterfaceError("Attempted to use a closed result set")

    def _in_range(self):
        return 1 <= self._position <= len(self._buffer)

    def __repr__(self):
        state = "closed" if self._closed else "row %d" % self._position
        return "<ResultSet of %d rows, %s>" % (len(self._buffer), state)

    # Lifecycle

    def close(self) -> None:
        """Close the result set, releasing its rows.

        From this point forward an exception will be raised if any operation
        is attempted with this `ResultSet`.  Closing a closed result set is
        a no-op.
        """
        if self._closed:
            return
        self._buffer = RowBuffer((), ())
        self._position = 0
        self._closed = True

    def is_closed(self) -> bool:
        """Return whether `close` has been called."""
        return self._closed

    def __enter__(self) -> ResultSet:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def row_factory(self) -> Callable[[list[str]], Callable[[list[Value]], Row]]:
        """Factory used by `current` and iteration to build whole rows.

        By default, or when set to ``None``, each row is returned as a `list`
        of column values.  See `scrollset.factories` for alternatives.
        """
        return self._row_factory

    @row_factory.setter
    def row_factory(
        self, value: Callable[[list[str]], Callable[[list[Value]], Row]] | None
    ) -> None:
        col_names = self.column_names()
        if value is None:
            make_row = list
        else:
            try:
                make_row = value(col_names)
            except Exception as e:
                raise OperationalError(
                    "Row factory rejected the columns: %s" % (e,)
                ) from e
        self._row_factory = value
        self._make_row = make_row

    # Metadata

    @property
    def columns(self) -> list[Column]:
        """The `Column` metadata of each column, in positional order."""
        self._check_closed()
        return list(self._buffer.columns)

    def column_names(self) -> list[str]:
        self._check_closed()
        return [c.name for c in self._buffer.columns]

    def column_count(self) -> int:
        self._check_closed()
        return len(self._buffer.columns)

    def find_column(self, name: str) -> int:
        """Return the 1-based index of the column with the given name.

        Raises:
            InvalidArgumentError: If the result set has no such column.
        """
        self._check_closed()
        return self._buffer.ordinal(name) + 1

    def rows_count(self) -> int:
        """Return the number of rows, without moving the cursor."""
        self._check_closed()
        return len(self._buffer)

    def __len__(self) -> int:
        return self.rows_count()

    def __bool__(self) -> bool:
        # An empty result set is still a result set
        return True

    # Position

    def get_row(self) -> int:
        """Return the cursor position.

        This is the 1-based number of the current row, or ``0`` when the
        cursor is before the first row, or ``rows_count() + 1`` when it is
        after the last row.
        """
        self._check_closed()
        return self._position

    def is_before_first(self) -> bool:
        self._check_closed()
        return self._position == 0

    def is_after_last(self) -> bool:
        self._check_closed()
        return self._position == len(self._buffer) + 1

    def is_first(self) -> bool:
        self._check_closed()
        return len(self._buffer) > 0 and self._position == 1

    def is_last(self) -> bool:
        self._check_closed()
        return len(self._buffer) > 0 and self._position == len(self._buffer)

    # Movement

    def next(self) -> bool:
        """Move the cursor forward one row.

        Returns:
            bool: ``True`` if the cursor is now on a row, ``False`` if it moved
            past the last row, or was already after the last row.
        """
        self._check_closed()
        if self._position <= len(self._buffer):
            self._position += 1
        return self._in_range()

    def previous(self) -> bool:
        """Move the cursor back one row.

        Returns:
            bool: ``True`` if the cursor is now on a row, ``False`` if it moved
            before the first row, or was already before the first row.
        """
        self._check_closed()
        if self._position > 0:
            self._position -= 1
        return self._in_range()

    def before_first(self) -> None:
        """Move the cursor before the first row."""
        self._check_closed()
        self._position = 0

    def after_last(self) -> None:
        """Move the cursor after the last row."""
        self._check_closed()
        self._position = len(self._buffer) + 1

    def first(self) -> bool:
        """Move the cursor to the first row.

        Returns:
            bool: ``True`` on success, ``False`` if the result set is empty, in
            which case the cursor doesn't move.
        """
        self._check_closed()
        if not len(self._buffer):
            return False
        self._position = 1
        return True

    def last(self) -> bool:
        """Move the cursor to the last row.

        Returns:
            bool: ``True`` on success, ``False`` if the result set is empty, in
            which case the cursor doesn't move.
        """
        self._check_closed()
        if not len(self._buffer):
            return False
        self._position = len(self._buffer)
        return True

    def absolute(self, row: int) -> bool:
        """Move the cursor to the given row number.

        A positive ``row`` counts from the start, ``1`` being the first row.
        Row numbers beyond the last row leave the cursor after the last row.

        A negative ``row`` counts from the end, ``-1`` being the last row.

        Args:
            row (int): The row number to move to.

        Returns:
            bool: ``True`` if the cursor is now on a row, ``False`` if it was
            moved after the last row.

        Raises:
            InvalidArgumentError: If ``row`` is ``0``, or is a negative offset
                reaching before the first row.  The cursor doesn't move.

        Example:
            >>> rs.absolute(-1)
            True
            >>> rs.is_last()
            True
            >>> rs.absolute(rs.rows_count() + 10)
            False
            >>> rs.is_after_last()
            True
        """
        self._check_closed()
        if not _is_integer(row):
            raise InvalidArgumentError(
                "Row number must be an integer, not %s" % type(row).__name__
            )
        nrows = len(self._buffer)
        if row == 0:
            raise InvalidArgumentError(
                "absolute(0) is not allowed, use before_first() instead"
            )
        if row > 0:
            self._position = min(row, nrows + 1)
        else:
            position = nrows + 1 + row
            if position < 1:
                raise InvalidArgumentError(
                    "absolute(%d) would move before the first of %d rows"
                    % (row, nrows)
                )
            self._position = position
        return self._in_range()

    def relative(self, rows: int) -> bool:
        """Move the cursor forward (or, if negative, backward) ``rows`` rows.

        Moving past either end leaves the cursor before the first row or
        after the last row.

        Returns:
            bool: ``True`` if the cursor is now on a row.
        """
        self._check_closed()
        if not _is_integer(rows):
            raise InvalidArgumentError(
                "Row offset must be an integer, not %s" % type(rows).__name__
            )
        self._position = max(0, min(self._position + rows, len(self._buffer) + 1))
        return self._in_range()

    # Column access

    def _value(self, column):
        self._check_closed()
        if not self._in_range():
            raise InvalidCursorStateError(
                "Cursor is not on a row (position %d of %d rows)"
                % (self._position, len(self._buffer))
            )
        ordinal = self._buffer.ordinal(column)
        value = self._buffer.row(self._position)[ordinal]
        self._was_null = value is None
        return ordinal, value

    def _get(self, column, convert, type_name, default):
        ordinal, value = self._value(column)
        if value is None:
            return default
        try:
            return convert(value, self._tz)
        except (TypeError, ValueError, OverflowError) as e:
            name = self._buffer.columns[ordinal].name
            raise DataError(
                "Cannot read column %d ('%s') as %s: %s"
                % (ordinal + 1, name, type_name, e)
            ) from e

    def get_value(self, column: ColumnRef) -> Value:
        """Return the value of a column of the current row, unconverted."""
        return self._value(column)[1]

    def get_int(self, column: ColumnRef) -> int:
        """Return the value of a column of the current row as an `int`.

        Args:
            column: The column's name, or its 1-based index.

        Returns:
            int: The value, or ``0`` if it is NULL.

        Raises:
            InvalidCursorStateError: If the cursor is not on a row.
            InvalidArgumentError: If there is no such column.
            DataError: If the value can't be converted to an integer.
        """
        return self._get(column, _to_integer, "integer", 0)

    def get_double(self, column: ColumnRef) -> float:
        """Return the value of a column of the current row as a `float`.

        NULL is returned as ``0.0``.
        """
        return self._get(column, _to_real, "real", 0.0)

    def get_string(self, column: ColumnRef) -> str:
        """Return the value of a column of the current row as a `str`.

        Args:
            column: The column's name, or its 1-based index.

        Returns:
            str: The value, or an empty string if it is NULL.

        Raises:
            InvalidCursorStateError: If the cursor is not on a row.
            InvalidArgumentError: If there is no such column.
            DataError: If a BLOB value isn't valid UTF-8.
        """
        return self._get(column, _to_cstring, "text", "")

    def get_boolean(self, column: ColumnRef) -> bool:
        """Return whether a column of the current row holds a true value.

        Numbers are true when non-zero; the strings ``'true'`` and ``'false'``
        are accepted in any case.  NULL is returned as ``False``.
        """
        return self._get(column, _to_boolean, "boolean", False)

    def get_blob(self, column: ColumnRef) -> bytes | None:
        """Return the value of a column of the current row as `bytes`.

        Text is encoded as UTF-8; NULL is returned as ``None``.
        """
        return self._get(column, _to_blob, "blob", None)

    def get_datetime(self, column: ColumnRef):
        """Return the value of a column of the current row as a datetime.

        ISO-8601 text and POSIX timestamps are accepted.  Naive values are
        localized to the result set's timezone, if it has one.  NULL is
        returned as ``None``.
        """
        return self._get(column, _to_datetime, "datetime", None)

    def is_null(self, column: ColumnRef) -> bool:
        """Return whether a column of the current row is NULL."""
        return self._value(column)[1] is None

    def was_null(self) -> bool:
        """Return whether the last column read was NULL."""
        self._check_closed()
        return self._was_null

    # Whole rows

    def current(self) -> Row:
        """Return the current row, built by the `row_factory`.

        Raises:
            InvalidCursorStateError: If the cursor is not on a row.
        """
        self._check_closed()
        if not self._in_range():
            raise InvalidCursorStateError(
                "Cursor is not on a row (position %d of %d rows)"
                % (self._position, len(self._buffer))
            )
        return self._make_row(list(self._buffer.row(self._position)))

    def __iter__(self) -> Iterator[Row]:
        """Iterate over the rows after the current position.

        Each iteration advances the cursor with `next`, so after the loop
        completes the cursor is after the last row.

        Example:
            >>> for row in rs:
            ...     print(row)
            [1, 'a']
            [2, 'b']
        """
        self._check_closed()
        return self._iterate()

    def _iterate(self):
        while self.next():
            yield self.current()
