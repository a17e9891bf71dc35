"""
pdbconf — retired settings.

File: src/pdbconf/config/retirements.py
Last updated: 2026-10-17

Purpose
- Detect settings that have been retired and describe them as data.

What should be included in this file
- Retired (ignored) options, which only produce notices.
- The retired ``[global] url-prefix``, which is fatal: the service has a
  fixed context route and must not start with the old override.

Functional requirements
- Never exit the process; callers decide what to do with fatal issues.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Final

from pdbconf.constants import (
    CONTEXT_ROUTE,
    DATABASE_SECTION_PATTERN,
    SECTION_COMMAND_PROCESSING,
    SECTION_GLOBAL,
    SECTION_READ_DATABASE,
)

_LOGGER = logging.getLogger(__name__)

_DATABASE_KEY: Final[re.Pattern[str]] = re.compile(DATABASE_SECTION_PATTERN)

RETIRED_COMMAND_PROCESSING_KEYS: Final[tuple[str, ...]] = (
    "max-frame-size",
    "memory-usage",
    "store-usage",
    "temp-usage",
)
RETIRED_DATABASE_KEYS: Final[tuple[str, ...]] = (
    "classname",
    "conn-keep-alive",
    "log-slow-statements",
    "statements-cache-size",
    "subprotocol",
)
RETIRED_GLOBAL_KEYS: Final[tuple[str, ...]] = ("catalog-hash-conflict-debugging",)
RETIRED_BLOCKS: Final[dict[str, str]] = {"repl": "nrepl"}


@dataclass(frozen=True, slots=True)
class FatalConfigIssue:
    """A setting the service must not start with."""

    section: str
    key: str
    message: str


@dataclass(frozen=True, slots=True)
class RetirementReport:
    notices: tuple[str, ...] = ()
    fatal_issues: tuple[FatalConfigIssue, ...] = ()

    @property
    def exit_required(self) -> bool:
        return bool(self.fatal_issues)


def check_retirements(document: Mapping[str, Any]) -> RetirementReport:
    """Scan a raw document for retired settings.

    Notices are logged at ``WARNING`` and returned; fatal issues are only
    returned.
    """

    notices: list[str] = []

    for key in RETIRED_COMMAND_PROCESSING_KEYS:
        if _has_key(document.get(SECTION_COMMAND_PROCESSING), key):
            notices.append(_retired_option(SECTION_COMMAND_PROCESSING, key))

    for section, settings in document.items():
        is_database = isinstance(section, str) and _DATABASE_KEY.fullmatch(section) is not None
        if not is_database and section != SECTION_READ_DATABASE:
            continue
        for key in RETIRED_DATABASE_KEYS:
            if _has_key(settings, key):
                notices.append(_retired_option(section, key))

    for key in RETIRED_GLOBAL_KEYS:
        if _has_key(document.get(SECTION_GLOBAL), key):
            notices.append(_retired_option(SECTION_GLOBAL, key))

    for block, replacement in RETIRED_BLOCKS.items():
        if block in document:
            notices.append(
                f"The configuration block [{block}] is now retired and will be ignored. "
                f"Use [{replacement}] instead. Consult the documentation for more details."
            )

    for notice in notices:
        _LOGGER.warning(notice)

    fatal: list[FatalConfigIssue] = []
    global_section = document.get(SECTION_GLOBAL)
    if isinstance(global_section, Mapping) and "url-prefix" in global_section:
        fatal.append(
            FatalConfigIssue(
                section=SECTION_GLOBAL,
                key="url-prefix",
                message=(
                    "The configuration item `url-prefix` in the [global] section is retired, "
                    "please remove this item from your config. "
                    f"PuppetDB has a non-configurable context route of `{CONTEXT_ROUTE}`. "
                    "Consult the documentation for more details."
                ),
            )
        )

    return RetirementReport(notices=tuple(notices), fatal_issues=tuple(fatal))


def _has_key(settings: object, key: str) -> bool:
    return isinstance(settings, Mapping) and key in settings


def _retired_option(section: str, key: str) -> str:
    return f"The [{section}] {key} config option has been retired and will be ignored."


__all__ = [
    "FatalConfigIssue",
    "RETIRED_BLOCKS",
    "RETIRED_COMMAND_PROCESSING_KEYS",
    "RETIRED_DATABASE_KEYS",
    "RETIRED_GLOBAL_KEYS",
    "RetirementReport",
    "check_retirements",
]
