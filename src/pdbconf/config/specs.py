"""
pdbconf — section declarations.

File: src/pdbconf/config/specs.py
Last updated: 2026-10-17

Purpose
- Declare the incoming/outgoing specs for every resolved section.

What should be included in this file
- Plain (read) and write database specs.
- Command processing specs built from detected host facts.
- ``[puppetdb]`` and ``[developer]`` specs.

Functional requirements
- Host-derived defaults are computed once and injected as ``Computed``
  providers; conversion never reads host state itself.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Final

import psutil

from pdbconf.config.schema import (
    Computed,
    IncomingField,
    IncomingSpec,
    OutgoingField,
    OutgoingSpec,
    RawShape,
    SectionSpec,
    ValueKind,
)
from pdbconf.constants import (
    MAX_COMMAND_SIZE_DIVISOR,
    MAX_CONCURRENT_WRITES_DEFAULT,
    REPORT_TTL_DEFAULT,
)

FACTS_BLACKLIST_TYPES: Final[tuple[str, ...]] = ("literal", "regex")

# Write-only credentials never copied into a derived read profile.
MIGRATOR_KEYS: Final[frozenset[str]] = frozenset({"migrator-username", "migrator-password"})


@dataclass(frozen=True, slots=True)
class HostFacts:
    """Host properties that feed computed defaults."""

    cpu_count: int
    memory_bytes: int

    @classmethod
    def detect(cls) -> HostFacts:
        return cls(
            cpu_count=max(os.cpu_count() or 1, 1),
            memory_bytes=int(psutil.virtual_memory().total),
        )

    @property
    def half_the_cores(self) -> int:
        return max(self.cpu_count // 2, 1)

    @property
    def default_max_command_size(self) -> int:
        return self.memory_bytes // MAX_COMMAND_SIZE_DIVISOR


def _in(
    name: str,
    shape: RawShape,
    default: object | None = None,
    *,
    choices: tuple[str, ...] = (),
) -> IncomingField:
    return IncomingField(name=name, shape=shape, default=default, choices=choices)


def _out(
    name: str,
    kind: ValueKind,
    *,
    optional: bool = False,
    minimum: int | None = None,
    choices: tuple[str, ...] = (),
) -> OutgoingField:
    return OutgoingField(name=name, kind=kind, optional=optional, minimum=minimum, choices=choices)


_I, _T, _B, _L, _C = (
    RawShape.INTEGER,
    RawShape.TEXT,
    RawShape.BOOLEAN,
    RawShape.TEXT_OR_LIST,
    RawShape.CHOICE,
)

DATABASE_IN: Final[IncomingSpec] = IncomingSpec(
    (
        _in("conn-max-age", _I, 60),
        _in("conn-lifetime", _I),
        _in("maximum-pool-size", _I, 25),
        _in("subname", _T),
        _in("user", _T),
        _in("username", _T),
        _in("password", _T),
        _in("migrator-username", _T),
        _in("migrator-password", _T),
        _in("syntax_pgs", _T),
        _in("read-only?", _B, "false"),
        _in("partition-conn-min", _I, 1),
        _in("partition-conn-max", _I, 25),
        _in("partition-count", _I, 1),
        _in("stats", _B, "true"),
        _in("log-statements", _B, "true"),
        _in("connection-timeout", _I, 3000),
        _in("facts-blacklist", _L),
        _in("facts-blacklist-type", _C, "literal", choices=FACTS_BLACKLIST_TYPES),
        _in("schema-check-interval", _I, 30 * 1000),
        # Retired and ignored; still accepted so old configs keep loading.
        _in("classname", _T, "org.postgresql.Driver"),
        _in("conn-keep-alive", _I),
        _in("log-slow-statements", _I),
        _in("statements-cache-size", _I),
        _in("subprotocol", _T, "postgresql"),
    )
)

DATABASE_OUT: Final[OutgoingSpec] = OutgoingSpec(
    (
        _out("subname", ValueKind.STRING, optional=True),
        _out("conn-max-age", ValueKind.MINUTES, minimum=0),
        _out("read-only?", ValueKind.BOOLEAN),
        _out("partition-conn-min", ValueKind.INTEGER),
        _out("partition-conn-max", ValueKind.INTEGER),
        _out("partition-count", ValueKind.INTEGER),
        _out("stats", ValueKind.BOOLEAN),
        _out("log-statements", ValueKind.BOOLEAN),
        _out("connection-timeout", ValueKind.INTEGER),
        _out("maximum-pool-size", ValueKind.INTEGER),
        _out("conn-lifetime", ValueKind.MINUTES, optional=True, minimum=0),
        _out("user", ValueKind.STRING, optional=True),
        _out("username", ValueKind.STRING, optional=True),
        _out("password", ValueKind.STRING, optional=True),
        _out("migrator-username", ValueKind.STRING, optional=True),
        _out("migrator-password", ValueKind.STRING, optional=True),
        _out("syntax_pgs", ValueKind.STRING, optional=True),
        _out("facts-blacklist", ValueKind.STRING_LIST, optional=True),
        _out("facts-blacklist-type", ValueKind.CHOICE, choices=FACTS_BLACKLIST_TYPES),
        _out("schema-check-interval", ValueKind.INTEGER),
        _out("classname", ValueKind.STRING),
        _out("conn-keep-alive", ValueKind.MINUTES, optional=True, minimum=0),
        _out("log-slow-statements", ValueKind.DAYS, optional=True, minimum=0),
        _out("statements-cache-size", ValueKind.INTEGER, optional=True),
        _out("subprotocol", ValueKind.STRING),
    )
)

WRITE_DATABASE_IN: Final[IncomingSpec] = DATABASE_IN.extend(
    (
        _in("gc-interval", _I, 60),
        _in("report-ttl", _T, REPORT_TTL_DEFAULT),
        _in("node-purge-ttl", _T, "14d"),
        _in("node-purge-gc-batch-limit", _I, 25),
        _in("node-ttl", _T, "7d"),
        _in("resource-events-ttl", _T),
        _in("migrate", _B, "true"),
    )
)

WRITE_DATABASE_OUT: Final[OutgoingSpec] = DATABASE_OUT.extend(
    (
        _out("gc-interval", ValueKind.MINUTES, minimum=0),
        _out("report-ttl", ValueKind.PERIOD),
        _out("node-purge-ttl", ValueKind.PERIOD),
        _out("node-purge-gc-batch-limit", ValueKind.INTEGER, minimum=0),
        _out("node-ttl", ValueKind.PERIOD),
        _out("resource-events-ttl", ValueKind.PERIOD, optional=True),
        _out("migrate", ValueKind.BOOLEAN),
    )
)

DATABASE_SPEC: Final[SectionSpec] = SectionSpec(DATABASE_IN, DATABASE_OUT)
WRITE_DATABASE_SPEC: Final[SectionSpec] = SectionSpec(WRITE_DATABASE_IN, WRITE_DATABASE_OUT)

PUPPETDB_SPEC: Final[SectionSpec] = SectionSpec(
    IncomingSpec(
        (
            _in("certificate-whitelist", _T),
            _in("historical-catalogs-limit", _I, 0),
            _in("disable-update-checking", _B, "false"),
            _in("add-agent-report-filter", _B, "true"),
        )
    ),
    OutgoingSpec(
        (
            _out("certificate-whitelist", ValueKind.STRING, optional=True),
            _out("historical-catalogs-limit", ValueKind.INTEGER),
            _out("disable-update-checking", ValueKind.BOOLEAN),
            _out("add-agent-report-filter", ValueKind.BOOLEAN),
        )
    ),
)

DEVELOPER_SPEC: Final[SectionSpec] = SectionSpec(
    IncomingSpec(
        (
            _in("pretty-print", _B, "false"),
            _in("max-enqueued", _I, 1_000_000),
        )
    ),
    OutgoingSpec(
        (
            _out("pretty-print", ValueKind.BOOLEAN),
            _out("max-enqueued", ValueKind.INTEGER),
        )
    ),
)


COMMAND_PROCESSING_OUT: Final[OutgoingSpec] = OutgoingSpec(
    (
        _out("threads", ValueKind.INTEGER, minimum=1),
        _out("max-command-size", ValueKind.INTEGER, minimum=0),
        _out("reject-large-commands", ValueKind.BOOLEAN),
        _out("concurrent-writes", ValueKind.INTEGER, minimum=1),
        _out("max-frame-size", ValueKind.INTEGER),
        _out("memory-usage", ValueKind.INTEGER, optional=True),
        _out("store-usage", ValueKind.INTEGER, optional=True),
        _out("temp-usage", ValueKind.INTEGER, optional=True),
    )
)


def command_processing_spec(host: HostFacts) -> SectionSpec:
    """Command processing spec with defaults derived from ``host``."""

    half = host.half_the_cores
    incoming = IncomingSpec(
        (
            _in("threads", _I, Computed(lambda: half, "half the available cores")),
            _in(
                "max-command-size",
                _I,
                Computed(lambda: host.default_max_command_size, "memory / 205"),
            ),
            _in("reject-large-commands", _B, "false"),
            _in(
                "concurrent-writes",
                _I,
                Computed(lambda: min(half, MAX_CONCURRENT_WRITES_DEFAULT), "min(half the cores, 4)"),
            ),
            # Deprecated
            _in("max-frame-size", _I, 209_715_200),
            _in("store-usage", _I),
            _in("temp-usage", _I),
            _in("memory-usage", _I),
        )
    )
    return SectionSpec(incoming, COMMAND_PROCESSING_OUT)


__all__ = [
    "COMMAND_PROCESSING_OUT",
    "DATABASE_IN",
    "DATABASE_OUT",
    "DATABASE_SPEC",
    "DEVELOPER_SPEC",
    "FACTS_BLACKLIST_TYPES",
    "HostFacts",
    "MIGRATOR_KEYS",
    "PUPPETDB_SPEC",
    "WRITE_DATABASE_IN",
    "WRITE_DATABASE_OUT",
    "WRITE_DATABASE_SPEC",
    "command_processing_spec",
]
