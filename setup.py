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

from setuptools import setup

about = {}
with open('scrollset/_about.py') as fp:
    exec(fp.read(), about)


setup(
    name='scrollset',
    version=about["__version__"],
    description='Buffered, scrollable result sets over SQL queries',
    packages=['scrollset'],
    install_requires=["pytz"],
    extras_require={"tests": ["python-dateutil>=2.6.0", "pytest"]},
    python_requires=">=3.8",
    package_data={"scrollset": ["py.typed"]},
    entry_points={
        "console_scripts": ["scrollset-demo = scrollset.demo:main"],
    },
)
