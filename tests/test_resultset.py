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

from scrollset.resultset import ResultSet, RowBuffer
from scrollset.handle import Column, ColumnType
from scrollset.exceptions import DataError
from scrollset.exceptions import InterfaceError
from scrollset.exceptions import InvalidArgumentError
from scrollset.exceptions import InvalidCursorStateError
from scrollset.exceptions import OperationalError
from scrollset.factories import dict_row_factory
from scrollset.factories import namedtuple_row_factory
import datetime
import pytest
import pytz

ROWS = [(1, 'a'), (2, 'b'), (3, 'c')]


def make_result_set(rows=ROWS, **kwargs):
    return ResultSet(["id", "label"], rows, **kwargs)


@pytest.mark.parametrize("nrows", [0, 1, 2, 5])
def test_new_result_set_is_before_first(nrows):
    rs = make_result_set([(i, str(i)) for i in range(nrows)])
    assert rs.is_before_first()
    assert rs.get_row() == 0
    assert rs.rows_count() == nrows
    assert len(rs) == nrows
    assert not rs.is_first()
    assert not rs.is_last()
    assert not rs.is_after_last()


def test_empty_result_set():
    rs = make_result_set([])
    assert rs.is_before_first()
    assert not rs.is_after_last()
    assert rs.next() is False
    assert rs.is_after_last()
    assert rs.get_row() == 1
    assert rs.next() is False
    assert rs.get_row() == 1
    assert rs.previous() is False
    assert rs.is_before_first()
    assert rs.first() is False
    assert rs.last() is False
    assert rs.is_before_first()
    assert rs.absolute(1) is False
    assert rs.is_after_last()
    with pytest.raises(InvalidArgumentError):
        rs.absolute(-1)
    assert rs.is_after_last()


def test_absolute_to_every_row():
    rs = make_result_set()
    for k in range(1, len(ROWS) + 1):
        assert rs.absolute(k) is True
        assert rs.get_row() == k
        assert rs.get_int("id") == ROWS[k - 1][0]
    assert rs.absolute(len(ROWS) + 1) is False
    assert rs.is_after_last()
    assert rs.get_row() == len(ROWS) + 1


def test_absolute_past_the_end_clamps_to_after_last():
    rs = make_result_set()
    assert rs.absolute(rs.rows_count() + 10) is False
    assert rs.is_after_last()
    assert not rs.is_last()
    assert rs.get_row() == rs.rows_count() + 1
    assert rs.previous() is True
    assert rs.get_int("id") == 3


@pytest.mark.parametrize("start", [0, 1, 2, 3, 4])
def test_absolute_zero_is_rejected_without_moving(start):
    rs = make_result_set()
    rs.relative(start)
    with pytest.raises(InvalidArgumentError):
        rs.absolute(0)
    assert rs.get_row() == start


def test_absolute_negative_counts_from_the_end():
    rs = make_result_set()
    assert rs.absolute(-1) is True
    assert rs.is_last()
    assert not rs.is_after_last()
    assert rs.get_row() == 3

    assert rs.absolute(-3) is True
    assert rs.is_first()
    assert rs.get_string("label") == 'a'


def test_absolute_negative_before_first_is_rejected():
    rs = make_result_set()
    rs.absolute(2)
    with pytest.raises(InvalidArgumentError):
        rs.absolute(-(len(ROWS) + 1))
    assert rs.get_row() == 2
    with pytest.raises(InvalidArgumentError):
        rs.absolute(-100)
    assert rs.get_row() == 2


def test_absolute_rejects_non_integers():
    rs = make_result_set()
    with pytest.raises(InvalidArgumentError):
        rs.absolute(1.0)
    with pytest.raises(InvalidArgumentError):
        rs.absolute("1")
    with pytest.raises(InvalidArgumentError):
        rs.absolute(True)
    assert rs.is_before_first()


def test_forward_scan():
    rs = make_result_set()
    seen = []
    while rs.next():
        seen.append((rs.get_row(), rs.get_int("id"), rs.get_string("label")))
    assert seen == [(1, 1, 'a'), (2, 2, 'b'), (3, 3, 'c')]
    assert rs.is_after_last()
    assert rs.next() is False
    assert rs.get_row() == 4


def test_reverse_scan():
    rs = make_result_set()
    rs.after_last()
    assert rs.is_after_last()
    seen = []
    while rs.previous():
        seen.append((rs.get_row(), rs.get_int("id")))
    assert seen == [(3, 3), (2, 2), (1, 1)]
    assert rs.is_before_first()
    assert rs.previous() is False
    assert rs.get_row() == 0


def test_scrolling_example():
    rs = make_result_set()
    rs.after_last()
    assert rs.previous() and rs.get_int("id") == 3
    assert rs.previous() and rs.get_int("id") == 2
    assert rs.previous() and rs.get_int("id") == 1
    assert rs.previous() is False
    assert rs.is_before_first()
    assert rs.absolute(-1)
    assert (rs.get_int("id"), rs.get_string("label")) == (3, 'c')


def test_first_and_last():
    rs = make_result_set()
    assert rs.last() is True
    assert rs.is_last()
    assert rs.get_row() == 3
    assert rs.first() is True
    assert rs.is_first()
    assert rs.get_row() == 1


def test_before_first_and_after_last():
    rs = make_result_set()
    rs.absolute(2)
    rs.before_first()
    assert rs.is_before_first()
    assert rs.next() and rs.is_first()
    rs.after_last()
    assert rs.is_after_last()
    assert rs.previous() and rs.is_last()


def test_relative():
    rs = make_result_set()
    assert rs.relative(2) is True
    assert rs.get_row() == 2
    assert rs.relative(-1) is True
    assert rs.get_row() == 1
    assert rs.relative(0) is True
    assert rs.get_row() == 1
    assert rs.relative(-5) is False
    assert rs.is_before_first()
    assert rs.relative(10) is False
    assert rs.is_after_last()
    with pytest.raises(InvalidArgumentError):
        rs.relative(None)


def test_single_row_is_first_and_last():
    rs = make_result_set([(7, 'x')])
    assert rs.next()
    assert rs.is_first()
    assert rs.is_last()


@pytest.mark.parametrize("move", ["before_first", "after_last"])
def test_column_access_off_row(move):
    rs = make_result_set()
    getattr(rs, move)()
    accessors = [rs.get_int, rs.get_string, rs.get_double, rs.get_boolean,
                 rs.get_blob, rs.get_datetime, rs.get_value, rs.is_null]
    for accessor in accessors:
        with pytest.raises(InvalidCursorStateError):
            accessor(1)
        with pytest.raises(InvalidCursorStateError):
            accessor("id")
    with pytest.raises(InvalidCursorStateError):
        rs.current()


def test_cursor_errors_are_distinguishable():
    assert issubclass(InvalidArgumentError, InterfaceError)
    assert issubclass(InvalidCursorStateError, InterfaceError)
    assert not issubclass(InvalidArgumentError, InvalidCursorStateError)
    assert not issubclass(InvalidCursorStateError, InvalidArgumentError)


def test_column_access_by_index_and_name():
    rs = make_result_set()
    rs.next()
    assert rs.get_int(1) == 1
    assert rs.get_string(2) == 'a'
    assert rs.get_int("ID") == 1
    assert rs.get_string("Label") == 'a'
    assert rs.find_column("label") == 2
    assert rs.column_count() == 2
    assert rs.column_names() == ["id", "label"]


def test_unknown_columns():
    rs = make_result_set()
    rs.next()
    with pytest.raises(InvalidArgumentError):
        rs.get_int("nope")
    with pytest.raises(InvalidArgumentError):
        rs.get_int(0)
    with pytest.raises(InvalidArgumentError):
        rs.get_int(3)
    with pytest.raises(InvalidArgumentError):
        rs.get_int(1.5)
    with pytest.raises(InvalidArgumentError):
        rs.find_column("nope")
    assert rs.get_row() == 1


def test_duplicate_column_names_resolve_to_first():
    rs = ResultSet(["a", "A", "b"], [(1, 2, 3)])
    rs.next()
    assert rs.get_int("a") == 1
    assert rs.get_int(2) == 2
    assert rs.find_column("A") == 1


def test_type_conversions():
    rs = ResultSet(["i", "r", "s", "b", "n"], [(42, 2.5, '17', b'xyz', ' 3 ')])
    rs.next()
    assert rs.get_int("i") == 42
    assert rs.get_string("i") == '42'
    assert rs.get_double("i") == 42.0
    assert rs.get_int("r") == 2
    assert rs.get_double("r") == 2.5
    assert rs.get_int("s") == 17
    assert rs.get_string("b") == 'xyz'
    assert rs.get_blob("b") == b'xyz'
    assert rs.get_blob("s") == b'17'
    assert rs.get_int("n") == 3
    assert rs.get_boolean("i") is True
    assert rs.get_value("b") == b'xyz'


def test_boolean_conversions():
    rs = ResultSet(["a", "b", "c", "d"], [(0, 'TRUE', 'false', '2')])
    rs.next()
    assert rs.get_boolean("a") is False
    assert rs.get_boolean("b") is True
    assert rs.get_boolean("c") is False
    assert rs.get_boolean("d") is True


def test_conversion_failures():
    rs = ResultSet(["s", "b"], [('abc', b'\xc3')])
    rs.next()
    with pytest.raises(DataError) as exc_info:
        rs.get_int("s")
    assert "column 1 ('s')" in str(exc_info.value)
    with pytest.raises(DataError):
        rs.get_double("s")
    with pytest.raises(DataError):
        rs.get_string("b")
    with pytest.raises(DataError):
        rs.get_datetime("s")


def test_null_values():
    rs = ResultSet(["n", "v"], [(None, 1)])
    rs.next()
    assert rs.get_int("n") == 0
    assert rs.was_null()
    assert rs.get_int("v") == 1
    assert not rs.was_null()
    assert rs.get_string("n") == ''
    assert rs.was_null()
    assert rs.get_double("n") == 0.0
    assert rs.get_boolean("n") is False
    assert rs.get_blob("n") is None
    assert rs.get_datetime("n") is None
    assert rs.get_value("n") is None
    assert rs.is_null("n")
    assert not rs.is_null("v")


def test_get_datetime():
    ny = pytz.timezone("America/New_York")
    rows = [('2015-01-02 03:04:05.123000', '2015-01-02T03:04:05Z', 0)]
    rs = ResultSet(["naive", "utc", "epoch"], rows, tz=ny)
    rs.next()

    assert rs.get_datetime("naive") == ny.localize(
        datetime.datetime(2015, 1, 2, 3, 4, 5, 123000))
    utc = rs.get_datetime("utc")
    assert utc == datetime.datetime(2015, 1, 2, 3, 4, 5, tzinfo=pytz.UTC)
    assert utc.tzinfo.zone == "America/New_York"
    assert rs.get_datetime("epoch") == datetime.datetime(
        1970, 1, 1, tzinfo=pytz.UTC)


def test_get_datetime_without_timezone():
    rs = ResultSet(["d"], [('2015-01-02 03:04:05',)])
    rs.next()
    assert rs.get_datetime("d") == datetime.datetime(2015, 1, 2, 3, 4, 5)


def test_current_and_iteration():
    rs = make_result_set()
    assert list(rs) == [[1, 'a'], [2, 'b'], [3, 'c']]
    assert rs.is_after_last()
    assert list(rs) == []

    rs.absolute(1)
    assert rs.current() == [1, 'a']
    assert list(rs) == [[2, 'b'], [3, 'c']]


def test_row_factories():
    rs = make_result_set(row_factory=dict_row_factory)
    assert rs.row_factory == dict_row_factory
    rs.next()
    assert rs.current() == {'id': 1, 'label': 'a'}

    rs.row_factory = namedtuple_row_factory
    assert rs.current()._asdict() == {'id': 1, 'label': 'a'}
    assert rs.current().label == 'a'

    rs.row_factory = None
    assert rs.current() == [1, 'a']


def test_row_factories_with_dup_col_names():
    with pytest.raises(OperationalError):
        ResultSet(["a", "a"], [(1, 2)], row_factory=dict_row_factory)

    rs = ResultSet(["a", "a"], [(1, 2)])
    with pytest.raises(OperationalError):
        rs.row_factory = namedtuple_row_factory
    assert rs.row_factory is None


def test_closed_result_set():
    rs = make_result_set()
    rs.next()
    assert not rs.is_closed()
    rs.close()
    assert rs.is_closed()
    rs.close()

    operations = [rs.next, rs.previous, rs.first, rs.last, rs.before_first,
                  rs.after_last, rs.get_row, rs.rows_count, rs.is_first,
                  rs.is_last, rs.is_before_first, rs.is_after_last,
                  rs.current, rs.was_null, rs.column_count]
    for operation in operations:
        with pytest.raises(InterfaceError):
            operation()
    with pytest.raises(InterfaceError):
        rs.absolute(1)
    with pytest.raises(InterfaceError):
        rs.get_int(1)
    with pytest.raises(InterfaceError):
        iter(rs)


def test_context_manager_support():
    with make_result_set() as rs:
        assert rs.next()
    assert rs.is_closed()


def test_column_metadata():
    columns = [Column("id", ColumnType.INTEGER, 0),
               Column("label", ColumnType.CSTRING, 1)]
    rs = ResultSet(columns, ROWS)
    assert rs.columns == columns

    rs = ResultSet(["id", "label", "empty"], [(1, 'a', None)])
    assert [c.type for c in rs.columns] == [
        ColumnType.INTEGER, ColumnType.CSTRING, ColumnType.NULL]
    assert [c.ordinal for c in rs.columns] == [0, 1, 2]


def test_rows_are_immutable_copies():
    rows = [[1, 'a']]
    rs = ResultSet(["id", "label"], rows)
    rows[0][0] = 99
    rs.next()
    assert rs.get_int("id") == 1
    rs.current()[0] = 42
    assert rs.get_int("id") == 1


def test_row_buffer_rejects_ragged_rows():
    with pytest.raises(InvalidArgumentError):
        RowBuffer(["a", "b"], [(1, 2), (3,)])


def test_row_buffer_lookup():
    buf = RowBuffer(["id", "label"], ROWS)
    assert len(buf) == 3
    assert buf.row(1) == (1, 'a')
    assert buf.row(3) == (3, 'c')
    assert buf.ordinal("LABEL") == 1
    assert buf.ordinal(1) == 0


def test_row_buffer_rejects_misplaced_ordinals():
    columns = [Column("a", ColumnType.INTEGER, 1),
               Column("b", ColumnType.INTEGER, 0)]
    with pytest.raises(InvalidArgumentError):
        ResultSet(columns, [(1, 2)])
    with pytest.raises(InvalidArgumentError):
        RowBuffer([Column("a", ColumnType.INTEGER, 5)], [])


def test_name_and_index_access_agree():
    columns = [Column("a", ColumnType.INTEGER, 0),
               Column("b", ColumnType.INTEGER, 1)]
    rs = ResultSet(columns, [(1, 2)])
    rs.next()
    for column in rs.columns:
        index = rs.find_column(column.name)
        assert index == column.ordinal + 1
        assert rs.get_int(column.name) == rs.get_int(index)


def test_timezone_given_by_name():
    rs = ResultSet(["d"], [('2015-01-02 03:04:05',)], tz='America/New_York')
    rs.next()
    dt = rs.get_datetime("d")
    assert dt.tzname() == 'EST'
    assert dt == pytz.timezone('America/New_York').localize(
        datetime.datetime(2015, 1, 2, 3, 4, 5))

    with pytest.raises(DataError):
        ResultSet(["d"], [], tz='Not/AZone')


def test_timezone_from_the_standard_library():
    rs = ResultSet(["d"], [('2015-01-02 03:04:05',)], tz=datetime.timezone.utc)
    rs.next()
    assert rs.get_datetime("d") == datetime.datetime(
        2015, 1, 2, 3, 4, 5, tzinfo=datetime.timezone.utc)


def test_closed_result_set_metadata():
    rs = make_result_set()
    rs.close()
    with pytest.raises(InterfaceError):
        rs.column_names()
    with pytest.raises(InterfaceError):
        rs.columns
    with pytest.raises(InterfaceError):
        rs.find_column("id")
    with pytest.raises(InterfaceError):
        rs.row_factory = dict_row_factory


def test_result_sets_are_truthy():
    assert make_result_set([])
    rs = make_result_set()
    rs.close()
    assert rs
