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

"""Example program scrolling through a result set.

A test table is created and populated, then the same query is run through
a `~scrollset.connector.Statement` and a
`~scrollset.connector.PreparedStatement`, and the resulting result sets are
scrolled forwards, backwards and to absolute positions, checking the cursor
bookkeeping at every step.  Progress is reported in TAP format::

    $ python -m scrollset.demo
    1..1
    # Scrollable result set example
    ...
    ok 1 - scrollset.demo
"""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import closing

from . import connector

logger = logging.getLogger(__name__)

TEST_NAME = "scrollset.demo"

TEST_DATA = [
    (1, ""),
    (2, "a"),
    (3, "b"),
    (4, "c"),
]


class ValidationError(RuntimeError):
    pass


def _diag(msg, *args):
    print("# " + (msg % args if args else msg))


def validate_row(rs, expected):
    got = (rs.get_int("id"), rs.get_string("label"))
    _diag("\t\t Fetched row %d, id = %d, label = '%s'", rs.get_row(), *got)
    if got != tuple(expected):
        raise ValidationError(
            "Wrong results. Expected (%d, %s) got (%d, %s)" % (expected + got)
        )


def _scan_backward(rs):
    rs.after_last()
    if not rs.is_after_last():
        raise ValidationError("Position should be after last row")

    row = rs.rows_count()
    # Visits n, n - 1, ... 1 and stops on 0
    while rs.previous():
        if rs.get_row() != row:
            raise ValidationError(
                "get_row() returned %d, expected %d" % (rs.get_row(), row)
            )
        _diag(
            "\t\t Row %d id = %d, label = '%s'",
            row,
            rs.get_int("id"),
            rs.get_string("label"),
        )
        row -= 1

    _diag("\t\t is_before_first() = %s", rs.is_before_first())
    if row != 0 or not rs.is_before_first():
        raise ValidationError("Cursor should be positioned before the first row")


def validate_result_set(rs, min_row, max_row):
    _diag("\t Selecting in ascending order but fetching in reverse order")
    _scan_backward(rs)
    _diag("\t\t is_first() = %s", rs.is_first())

    rs.next()
    _diag("\t Positioning cursor to 1 using next(), is_first() = %s", rs.is_first())
    validate_row(rs, min_row)

    try:
        rs.absolute(0)
    except connector.InvalidArgumentError:
        _diag("\t\t OK, absolute(0) is not allowed")
    else:
        raise ValidationError("absolute(0) did not fail")
    if not rs.is_first():
        raise ValidationError("A failed absolute(0) must not move the cursor")

    rs.before_first()
    _diag("\t Positioning cursor using before_first(), is_first() = %s", rs.is_first())
    rs.next()
    _diag("\t\t Moving cursor forward using next(), is_first() = %s", rs.is_first())
    validate_row(rs, min_row)

    _diag("\t Finally, reading in reverse order again")
    _scan_backward(rs)

    _diag("\t And in regular order...")
    rs.before_first()
    if not rs.is_before_first():
        raise ValidationError("Cursor should be positioned before the first row")
    row = 0
    while rs.next():
        row += 1
        _diag(
            "\t\t Row %d, get_row() %d id = %d, label = '%s'",
            row,
            rs.get_row(),
            rs.get_int("id"),
            rs.get_string("label"),
        )
    _diag("\t\t is_after_last() = %s", rs.is_after_last())
    if row != rs.rows_count() or not rs.is_after_last():
        raise ValidationError(
            "next() has returned false and the cursor should be after the last row"
        )

    _diag("\t Trying absolute(-1) to fetch last entry...")
    if not rs.absolute(-1):
        raise ValidationError("absolute(-1) failed although -1 is valid")
    _diag("\t\t is_after_last() = %s", rs.is_after_last())
    _diag("\t\t is_last() = %s", rs.is_last())
    if rs.is_after_last() or not rs.is_last():
        raise ValidationError("Cursor should be positioned on the last row")
    validate_row(rs, max_row)

    _diag("\t Trying absolute(NUMROWS + 10) to move after the last row...")
    if rs.absolute(rs.rows_count() + 10):
        raise ValidationError("absolute(NUMROWS + 10) should return False")
    _diag("\t\t is_last() = %s", rs.is_last())
    if not rs.is_after_last() or rs.is_last():
        raise ValidationError("Cursor should be positioned after the last row")

    try:
        rs.get_string(1)
    except connector.InvalidCursorStateError:
        _diag("\t\t OK, fetching not allowed when cursor is out of range...")
    else:
        raise ValidationError("Fetching is possible although cursor is out of range")

    # absolute(NUMROWS + 10) left the cursor at NUMROWS + 1
    rs.previous()
    validate_row(rs, max_row)


def run(database=":memory:", tz="UTC"):
    min_row = min(TEST_DATA)
    max_row = max(TEST_DATA)
    query = "SELECT id, label FROM test ORDER BY id ASC"

    with closing(connector.connect(database, tz=tz)) as conn:
        stmt = conn.create_statement()
        stmt.execute("DROP TABLE IF EXISTS test")
        stmt.execute("CREATE TABLE test(id INT, label CHAR(1))")
        _diag("\t Test table created")

        stmt.executemany(
            "INSERT INTO test(id, label) VALUES (%(id)s, %(label)s)",
            [dict(id=id, label=label) for id, label in TEST_DATA],
        )
        _diag("\t Test table populated")

        _diag("\t Testing Statement based result set")
        with stmt.execute_query(query) as rs:
            validate_result_set(rs, min_row, max_row)

        _diag("")
        _diag("\t Testing PreparedStatement based result set")
        with conn.prepare_statement(query) as prep_stmt:
            with prep_stmt.execute_query() as rs:
                validate_result_set(rs, min_row, max_row)

        stmt.execute("DROP TABLE IF EXISTS test")
        _diag(" done!")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="scrollset-demo",
        description="Scroll through a result set, reporting progress as TAP.",
    )
    parser.add_argument(
        "database",
        nargs="?",
        default=":memory:",
        help="database file to use (default: an in-memory database)",
    )
    parser.add_argument(
        "--tz", default="UTC", help="timezone for datetime values (default: UTC)"
    )
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="# %(levelname)s %(name)s: %(message)s",
        stream=sys.stdout,
    )

    print("1..1")
    _diag("Scrollable result set example")
    try:
        run(args.database, tz=args.tz)
    except connector.Error as e:
        logger.debug("Database error", exc_info=True)
        _diag("ERR: %s: %s", type(e).__name__, e)
        print("not ok 1 - %s" % TEST_NAME)
        return 1
    except ValidationError as e:
        _diag("ERR: %s", e)
        print("not ok 1 - %s" % TEST_NAME)
        return 1

    print("ok 1 - %s" % TEST_NAME)
    return 0


if __name__ == "__main__":
    sys.exit(main())
