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

"""Exception classes raised by `scrollset.connector` and its result sets.

All exceptions raised by this package's public interfaces are subclasses of
`Error`.  Misuse of the client side API (closed objects, invalid cursor
arguments, reading a column while the cursor is not on a row) is reported as
a subclass of `InterfaceError`; failures reported by the database engine are
reported as a subclass of `DatabaseError`.
"""

from __future__ import annotations

from . import handle

__all__ = [
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
]

UserException = Exception


class Error(UserException):
    """This is the base class of all exceptions raised by this package.

    In addition to being available at the module scope, this class and the
    other exception classes derived from it are exposed as attributes on
    `~scrollset.connector.Connection` objects, to simplify error handling in
    environments where multiple connections from different modules are used.
    """

    pass


class Warning(UserException):
    """Exception raised for important warnings.

    This exists for compatibility with DB-API style error handling, but we
    never raise it.
    """

    pass


class InterfaceError(Error):
    """Exception raised for errors caused by misuse of this package."""

    pass


class InvalidArgumentError(InterfaceError):
    """Exception raised when a method is called with an invalid argument.

    For example, this is raised by `ResultSet.absolute` when asked to move to
    row ``0``, or to a negative offset that would put the cursor before the
    first row, and by the column accessors when given a column name or index
    that the result set doesn't have.
    """

    pass


class InvalidCursorStateError(InterfaceError):
    """Exception raised when a column is read while not positioned on a row.

    The column accessors of a `ResultSet` may only be used while the cursor
    is positioned on a row, that is, when it is neither before the first row
    nor after the last row.
    """

    pass


class DatabaseError(Error):
    """Base class for all errors reported by the database."""

    pass


class InternalError(DatabaseError):
    """Exception raised for internal errors reported by the database."""

    pass


class OperationalError(DatabaseError):
    """Exception raised for errors related to the database's operation.

    These errors are not necessarily the result of a bug either in the
    application or in the database - for example, a locked database file.
    """

    pass


class ProgrammingError(DatabaseError):
    """Exception raised for programming errors reported by the database.

    For example, this will be raised for syntactically incorrect SQL, for
    a query against a table that doesn't exist, or for running a query through
    `Statement.execute_update`.
    """

    pass


class IntegrityError(DatabaseError):
    """Exception raised for integrity errors reported by the database.

    For example, a subclass of this will be raised if a foreign key constraint
    would be violated, or a constraint that a column may not be null, or that
    an index may not have duplicates.  Other types of constraint violations may
    raise this type directly.
    """

    pass


class UniqueKeyConstraintError(IntegrityError):
    """Exception raised when a unique key constraint would be broken."""

    pass


class ForeignKeyConstraintError(IntegrityError):
    """Exception raised when a foreign key constraint would be broken."""

    pass


class NonNullConstraintError(IntegrityError):
    """Exception raised when a non-null constraint would be broken."""

    pass


class DataError(DatabaseError):
    """Exception raised for errors related to the processed data.

    For example, this will be raised if a column value can't be converted to
    the type requested by a `ResultSet` accessor, or if you specify an invalid
    timezone name for the connection.
    """

    pass


class NotSupportedError(DatabaseError):
    """Exception raised when unsupported operations are attempted."""

    pass


_EXCEPTION_BY_RC = {
    handle.ERROR_CODE["CONNECT_ERROR"]: OperationalError,
    handle.ERROR_CODE["NOTCONNECTED"]: InterfaceError,
    handle.ERROR_CODE["PREPARE_ERROR"]: ProgrammingError,
    handle.ERROR_CODE["IO_ERROR"]: OperationalError,
    handle.ERROR_CODE["INTERNAL"]: InternalError,
    handle.ERROR_CODE["BADCOLUMN"]: ProgrammingError,
    handle.ERROR_CODE["BADSTATE"]: ProgrammingError,
    handle.ERROR_CODE["BADREQ"]: ProgrammingError,
    handle.ERROR_CODE["READONLY"]: NotSupportedError,
    handle.ERROR_CODE["CONSTRAINTS"]: IntegrityError,
    handle.ERROR_CODE["DEADLOCK"]: OperationalError,
    handle.ERROR_CODE["FKEY_VIOLATION"]: ForeignKeyConstraintError,
    handle.ERROR_CODE["NULL_CONSTRAINT"]: NonNullConstraintError,
    handle.ERROR_CODE["CONV_FAIL"]: DataError,
    handle.ERROR_CODE["NOTSUPPORTED"]: NotSupportedError,
    handle.ERROR_CODE["DUPLICATE"]: UniqueKeyConstraintError,
    handle.ERROR_CODE["UNKNOWN"]: OperationalError,
    handle.ERROR_CODE["TZNAME_FAIL"]: DataError,
}


def _raise_wrapped_exception(exc):
    code = exc.error_code
    msg = "%s (rc %d)" % (exc.error_message, code)
    raise _EXCEPTION_BY_RC.get(code, OperationalError)(msg) from exc
