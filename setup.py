# Copyright 2022 Akamai Technologies, Inc
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

from pathlib import Path

from setuptools import find_packages, setup

setup(
    name="hotls",
    version="0.1",
    description="HTTP server with TLS configuration reloaded on every handshake",
    long_description=Path(__file__).parent.joinpath("README.rst").read_text("utf-8"),
    long_description_content_type="text/x-rst",
    license="Apache License 2.0",
    keywords=[
        "TLS",
        "mTLS",
        "HTTPS",
        "server",
        "certificate reload",
        "AnyIO",
        "asyncio",
        "Trio",
    ],
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Environment :: Console",
        "Environment :: Web Environment",
        "Framework :: AnyIO",
        "Framework :: AsyncIO",
        "Framework :: Trio",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: Apache Software License",
        "Operating System :: OS Independent",
        "Programming Language :: Python",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3 :: Only",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: Implementation :: CPython",
        "Topic :: Internet",
        "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
        "Topic :: Security :: Cryptography",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: System :: Networking",
        "Typing :: Typed",
    ],
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.9",
    install_requires=[
        "anyio>=4",
        "cryptography>=40",
        "h11",
        "pyOpenSSL>=23.2",
        "PyYAML",
    ],
    extras_require={
        "all": [
            "anyio[trio]",
            "uvloop",
        ],
        "trio": [
            "anyio[trio]",
        ],
        "uvloop": [
            "uvloop",
        ],
        "dev": [
            "black",
            "flake8",
            "isort",
            "pytest",
            "mypy>=0.981",
            "types-PyYAML",
        ],
    },
    entry_points={
        "console_scripts": [
            "hotls = hotls.cli:run",
        ]
    },
    include_package_data=True,
    zip_safe=False,
)
