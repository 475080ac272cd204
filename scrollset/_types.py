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

from __future__ import annotations

import enum
from typing import NamedTuple

__name__ = "scrollset.handle"


def _errstr(msg):
    try:
        return msg.decode("utf-8")
    except UnicodeDecodeError:
        # The engine's error strings aren't necessarily UTF-8.
        # If one isn't, it's preferable to mangle the error string than to
        # raise a UnicodeDecodeError (which would obscure the root cause).
        # Return a unicode string with \x escapes in place of non-ascii bytes.
        return msg.decode("latin1").encode("unicode_escape").decode("ascii")


class Error(RuntimeError):
    """Exception type raised for all failed handle operations.

    Attributes:
        error_code (int): One of the values of `ERROR_CODE`, identifying the
            kind of failure.
        error_message (str): A description of the failure, usually the message
            reported by the SQL engine.
    """

    def __init__(self, error_code: int, error_message: str | bytes) -> None:
        if not (isinstance(error_message, str)):
            error_message = _errstr(error_message)
        self.error_code = error_code
        self.error_message = error_message
        super().__init__(error_code, error_message)


class Effects(NamedTuple):
    """Type used to represent the count of rows affected by a SQL statement.

    An object of this type is returned by `Handle.get_effects`.
    """

    num_affected: int
    num_selected: int
    num_updated: int
    num_deleted: int
    num_inserted: int


# Override the auto-generated docstrings with more informative ones.
Effects.num_affected.__doc__ = "The total number of rows that were affected."
Effects.num_selected.__doc__ = "The number of rows that were selected."
Effects.num_updated.__doc__ = "The number of rows that were updated."
Effects.num_deleted.__doc__ = "The number of rows that were deleted."
Effects.num_inserted.__doc__ = "The number of rows that were inserted."


class ColumnType(enum.IntEnum):
    """This enum represents the column types a result set can report.

    Each value in the list returned by `Handle.column_types` will be one of the
    members of this enumeration.

    A sequence consisting of members of this enum (``NULL`` excepted) can be
    passed as the *column_types* parameter of `Handle.execute`.  The values of
    the Nth column of the result set are then coerced to the Nth given column
    type, or an error is raised if they cannot be.
    """

    INTEGER = 1
    REAL = 2
    CSTRING = 3
    BLOB = 4
    NULL = 5
    DATETIME = 6
    INT = INTEGER
    FLOAT = REAL
    STRING = CSTRING
    TEXT = CSTRING
    BYTES = BLOB


class Column(NamedTuple):
    """Metadata describing one column of a result set.

    An object of this type is returned for each column by `Handle.columns` and
    by `ResultSet.columns`.
    """

    name: str
    type: ColumnType
    ordinal: int


Column.name.__doc__ = "The name of the column, as reported by the engine."
Column.type.__doc__ = "The `ColumnType` of the column's values."
Column.ordinal.__doc__ = "The 0-based position of the column in each row."
