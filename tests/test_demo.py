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

from scrollset import demo
from scrollset.resultset import ResultSet
import pytest


def test_demo_passes_in_memory(capsys):
    assert demo.main([]) == 0
    out = capsys.readouterr().out
    lines = out.splitlines()
    assert lines[0] == "1..1"
    assert lines[-1] == "ok 1 - scrollset.demo"
    assert "# \t\t OK, absolute(0) is not allowed" in lines
    assert "# \t Testing PreparedStatement based result set" in lines
    # Every other line is a TAP diagnostic
    assert all(line.startswith("#") for line in lines[1:-1])


def test_demo_passes_on_disk(tmp_path, capsys):
    path = str(tmp_path / "demo.db")
    assert demo.main([path]) == 0
    assert capsys.readouterr().out.splitlines()[-1] == "ok 1 - scrollset.demo"

    # The table is dropped again, so the demo can be rerun
    assert demo.main([path]) == 0


def test_demo_reports_database_errors(capsys):
    assert demo.main(["--tz", "Not/AZone"]) == 1
    out = capsys.readouterr().out
    assert "# ERR: DataError:" in out
    assert out.splitlines()[-1] == "not ok 1 - scrollset.demo"


def test_validate_result_set():
    rs = ResultSet(["id", "label"], demo.TEST_DATA)
    demo.validate_result_set(rs, min(demo.TEST_DATA), max(demo.TEST_DATA))
    assert rs.get_row() == len(demo.TEST_DATA)


def test_validate_result_set_detects_wrong_rows():
    rs = ResultSet(["id", "label"], demo.TEST_DATA)
    with pytest.raises(demo.ValidationError) as exc_info:
        demo.validate_result_set(rs, (1, "x"), max(demo.TEST_DATA))
    assert "Expected (1, x) got (1, )" in str(exc_info.value)


def test_validate_row_checks_both_columns():
    rs = ResultSet(["id", "label"], [(2, "a")])
    assert rs.next()
    demo.validate_row(rs, (2, "a"))
    with pytest.raises(demo.ValidationError):
        demo.validate_row(rs, (2, "b"))
    with pytest.raises(demo.ValidationError):
        demo.validate_row(rs, (3, "a"))
