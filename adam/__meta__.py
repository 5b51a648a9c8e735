# -*- coding: utf-8 -*-
"""Define project metadata
"""

__title__ = "adam"
__summary__ = "A self-hosted file store with checksum and identity indices."

__version__ = "0.1.0"

__install_requires__ = [
    "fs>=2.4.16",
    "setuptools<81",
    "pydantic>=2.0",
    "pydantic-settings>=2.2",
    "fastapi>=0.100",
    "python-multipart>=0.0.7",
    "uvicorn>=0.23",
    "typer>=0.9",
    "tomli>=1.1; python_version < '3.11'",
]
__extras_require__ = {
    "leveldb": ["plyvel>=1.5"],
    "test": ["pytest>=7.2", "httpx>=0.24"],
}

__author__ = "adam contributors"

__license__ = "MIT License"
