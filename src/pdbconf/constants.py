"""Stable constants shared by the resolution engine, loader and CLI."""

from __future__ import annotations

from typing import Final

# Product identity.
PRODUCT_NAMES: Final[tuple[str, ...]] = ("puppetdb", "pe-puppetdb")
DEFAULT_PRODUCT_NAME: Final[str] = "puppetdb"
DEFAULT_UPDATE_SERVER: Final[str] = "https://updates.puppetlabs.com/check-for-updates"

# Fixed web context route; replaces the retired [global] url-prefix.
CONTEXT_ROUTE: Final[str] = "/pdb"

# Section identifiers.
SECTION_GLOBAL: Final[str] = "global"
SECTION_DATABASE: Final[str] = "database"
SECTION_READ_DATABASE: Final[str] = "read-database"
SECTION_COMMAND_PROCESSING: Final[str] = "command-processing"
SECTION_PUPPETDB: Final[str] = "puppetdb"
SECTION_DEVELOPER: Final[str] = "developer"

# Keys of the top-level document that are parsed as database section headers.
DATABASE_SECTION_PATTERN: Final[str] = r"^database.*"

# Database retention defaults.
REPORT_TTL_DEFAULT: Final[str] = "14d"

# Command processing: the default max command size is the available memory
# divided by this factor.
MAX_COMMAND_SIZE_DIVISOR: Final[int] = 205
MAX_CONCURRENT_WRITES_DEFAULT: Final[int] = 4

STOCKPILE_DIRNAME: Final[str] = "stockpile"

__all__ = [
    "CONTEXT_ROUTE",
    "DATABASE_SECTION_PATTERN",
    "DEFAULT_PRODUCT_NAME",
    "DEFAULT_UPDATE_SERVER",
    "MAX_COMMAND_SIZE_DIVISOR",
    "MAX_CONCURRENT_WRITES_DEFAULT",
    "PRODUCT_NAMES",
    "REPORT_TTL_DEFAULT",
    "SECTION_COMMAND_PROCESSING",
    "SECTION_DATABASE",
    "SECTION_DEVELOPER",
    "SECTION_GLOBAL",
    "SECTION_PUPPETDB",
    "SECTION_READ_DATABASE",
    "STOCKPILE_DIRNAME",
]
