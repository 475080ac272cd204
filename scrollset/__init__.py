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

"""This package provides buffered, scrollable result sets over SQL queries.

Two layers are provided for running queries and reading their results.

`scrollset.connector` provides the interface most applications want: a
`~scrollset.connector.Connection` creates statements, and every query run
through a statement produces a `~scrollset.resultset.ResultSet`.  A result set
fetches all of its rows up front, and can then be scrolled forward, backward,
to an absolute row number, or relative to the current row, reading typed column
values from whichever row the cursor is positioned on.

`scrollset.handle` provides a thin, pythonic wrapper over the embedded SQL
engine that the connector runs its queries on.  If you only need to run
statements and iterate over their rows once, this module may be simpler to get
started with.
"""

from ._about import *
