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

"""Factories that control the type of whole rows.

`.resultset.ResultSet.current`, iteration over a result set, and iteration over
a `.handle.Handle` return each row as a `list` by default.  Setting the
``row_factory`` property of a `.connector.Connection`, a `.handle.Handle` or
a `.resultset.ResultSet` to one of the factories below changes that.

A factory is called once per result set with the column names, and returns
a callable that is then called with the list of values of each row.  A factory
rejects column names it can't work with by raising `ValueError`; the result
set reports that as an `.exceptions.OperationalError`.

Column names are compared case-insensitively, the same way
`.resultset.ResultSet.get_int` and friends look columns up by name, so
``id`` and ``ID`` count as duplicates.

The typed column accessors of `.resultset.ResultSet` are not affected by the
row factory.
"""

from __future__ import annotations

import keyword
from collections import namedtuple
from typing import Callable, NamedTuple

from .handle import Value

__all__ = ["dict_row_factory", "namedtuple_row_factory"]


def _check_unique(col_names):
    first_by_key = {}
    duplicated = []
    for name in col_names:
        key = name.casefold()
        if key not in first_by_key:
            first_by_key[key] = name
        elif first_by_key[key] not in duplicated:
            duplicated.append(first_by_key[key])
    if duplicated:
        raise ValueError("Duplicated column names", *duplicated)


def _is_field_name(name):
    return (
        name.isidentifier()
        and not keyword.iskeyword(name)
        and not name.startswith("_")
    )


def namedtuple_row_factory(col_names: list[str]) -> Callable[[list[Value]], NamedTuple]:
    """Return each row as a `collections.namedtuple` named ``Row``.

    Every column name must be usable as a Python attribute name: an identifier
    that isn't a keyword and doesn't start with an underscore.  Use ``AS`` to
    rename columns that aren't, as in ``SELECT count(*) AS rowcount``.

    Example:
        >>> rs = ResultSet(["id", "label"], [(1, "a")],
        ...                row_factory=namedtuple_row_factory)
        >>> rs.next()
        True
        >>> rs.current()
        Row(id=1, label='a')
    """
    _check_unique(col_names)
    invalid = [name for name in col_names if not _is_field_name(name)]
    if invalid:
        raise ValueError("Column names are not valid attribute names", *invalid)
    return namedtuple("Row", col_names)._make


def dict_row_factory(col_names: list[str]) -> Callable[[list[Value]], dict[str, Value]]:
    """Return each row as a `dict` keyed by column name.

    Joins selecting ``*`` often produce the same column name twice; select
    the columns explicitly instead.
    """
    _check_unique(col_names)
    keys = tuple(col_names)

    def dict_row(col_vals):
        return dict(zip(keys, col_vals))

    return dict_row
