"""
pdbconf — whole-document resolution.

File: src/pdbconf/config/resolver.py
Last updated: 2026-10-17

Purpose
- Turn a raw configuration document into one immutable ``ResolvedConfig``.

What should be included in this file
- Global, developer, database, command processing and puppetdb resolution.
- The frozen result object and its field accessors.
- ``resolve_document``: retirement scan plus resolution, returning fatal
  issues as data instead of exiting.

Functional requirements
- Runs once; every failure is a synchronous ``ConfigError``.
- The result cannot be mutated after resolution.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Final

from pdbconf.config.database import check_facts_blacklist, resolve_database_section
from pdbconf.config.errors import ConfigError, ConfigErrorKind, _quoted
from pdbconf.config.retirements import RetirementReport, check_retirements
from pdbconf.config.schema import SectionSpec, convert_section
from pdbconf.config.specs import (
    DEVELOPER_SPEC,
    PUPPETDB_SPEC,
    HostFacts,
    command_processing_spec,
)
from pdbconf.constants import (
    DATABASE_SECTION_PATTERN,
    DEFAULT_PRODUCT_NAME,
    DEFAULT_UPDATE_SERVER,
    PRODUCT_NAMES,
    SECTION_COMMAND_PROCESSING,
    SECTION_DEVELOPER,
    SECTION_GLOBAL,
    SECTION_PUPPETDB,
    SECTION_READ_DATABASE,
    STOCKPILE_DIRNAME,
)

_DATABASE_KEY: Final[re.Pattern[str]] = re.compile(DATABASE_SECTION_PATTERN)
_RESOLVED_SECTIONS: Final[frozenset[str]] = frozenset(
    {
        SECTION_GLOBAL,
        SECTION_READ_DATABASE,
        SECTION_COMMAND_PROCESSING,
        SECTION_PUPPETDB,
        SECTION_DEVELOPER,
    }
)

RawDocument = Mapping[str, Any] | Iterable[tuple[str, Any]]


@dataclass(frozen=True, slots=True)
class ResolvedConfig:
    """Fully resolved, deep-frozen configuration."""

    database: Mapping[str, Any]
    read_database: Mapping[str, Any]
    command_processing: Mapping[str, Any]
    puppetdb: Mapping[str, Any]
    developer: Mapping[str, Any]
    global_settings: Mapping[str, Any]
    extra: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    database_subsections: tuple[str, ...] = ()

    def database_profiles(self) -> tuple[tuple[str | None, Mapping[str, Any]], ...]:
        """``(subsection name or None, profile)`` pairs in document order."""

        if not self.database_subsections:
            return ((None, self.database),)
        return tuple((name, self.database[name]) for name in self.database_subsections)

    @property
    def primary_database(self) -> Mapping[str, Any]:
        return self.database_profiles()[0][1]

    def facts_blacklist_patterns(self, subsection: str | None = None) -> tuple[re.Pattern[str], ...]:
        profile = self.primary_database if subsection is None else self.database[subsection]
        return check_facts_blacklist(profile)

    @property
    def is_foss(self) -> bool:
        return self.global_settings.get("product-name") == "puppetdb"

    @property
    def is_pe(self) -> bool:
        return self.global_settings.get("product-name") == "pe-puppetdb"

    @property
    def update_server(self) -> str | None:
        return self.global_settings.get("update-server")

    @property
    def mq_thread_count(self) -> int:
        return int(self.command_processing["threads"])

    @property
    def reject_large_commands(self) -> bool:
        return bool(self.command_processing["reject-large-commands"])

    @property
    def max_command_size(self) -> int:
        return int(self.command_processing["max-command-size"])

    @property
    def stockpile_dir(self) -> str | None:
        vardir = self.global_settings.get("vardir")
        if not vardir:
            return None
        return str(Path(str(vardir)) / STOCKPILE_DIRNAME)

    def to_dict(self) -> dict[str, Any]:
        """Mutable deep copy keyed by section identifier."""

        out: dict[str, Any] = {key: _thaw(value) for key, value in self.extra.items()}
        out[SECTION_GLOBAL] = _thaw(self.global_settings)
        out[SECTION_DEVELOPER] = _thaw(self.developer)
        out["database"] = _thaw(self.database)
        out[SECTION_READ_DATABASE] = _thaw(self.read_database)
        out[SECTION_COMMAND_PROCESSING] = _thaw(self.command_processing)
        out[SECTION_PUPPETDB] = _thaw(self.puppetdb)
        return out


@dataclass(frozen=True, slots=True)
class ConfigResolution:
    """Outcome of :func:`resolve_document`."""

    config: ResolvedConfig | None
    report: RetirementReport

    @property
    def exit_required(self) -> bool:
        return self.report.exit_required

    def require_config(self) -> ResolvedConfig:
        if self.config is None:
            messages = "; ".join(issue.message for issue in self.report.fatal_issues)
            raise ConfigError(messages or "configuration was not resolved", kind=ConfigErrorKind.DOMAIN)
        return self.config


def normalize_product_name(product_name: object) -> str:
    """Lower-case ``product_name`` and check it is a known product."""

    if not isinstance(product_name, str):
        raise ConfigError(
            f"product-name {product_name!r} is illegal; either puppetdb or pe-puppetdb are allowed",
            kind=ConfigErrorKind.DOMAIN,
        )
    lowered = product_name.lower()
    if lowered not in PRODUCT_NAMES:
        raise ConfigError(
            f"product-name {product_name} is illegal; either puppetdb or pe-puppetdb are allowed",
            kind=ConfigErrorKind.DOMAIN,
        )
    return lowered


def configure_globals(global_section: Mapping[str, Any] | None) -> dict[str, Any]:
    """Default and normalize ``[global]``; other keys pass through."""

    out = dict(_as_section(SECTION_GLOBAL, global_section))
    if out.get("product-name") is None:
        out["product-name"] = DEFAULT_PRODUCT_NAME
    out["product-name"] = normalize_product_name(out["product-name"])
    if out.get("update-server") is None:
        out["update-server"] = DEFAULT_UPDATE_SERVER
    return out


def configure_section(
    spec: SectionSpec, section: str, raw: Mapping[str, Any] | None
) -> dict[str, Any]:
    return convert_section(spec, _as_section(section, raw), section=section)


def process_config(document: RawDocument, *, host: HostFacts | None = None) -> ResolvedConfig:
    """Resolve every section of ``document``; raises ``ConfigError``."""

    pairs = _as_pairs(document)
    sections = _index_sections(pairs)
    host_facts = host if host is not None else HostFacts.detect()

    global_settings = configure_globals(sections.get(SECTION_GLOBAL))
    developer = configure_section(DEVELOPER_SPEC, SECTION_DEVELOPER, sections.get(SECTION_DEVELOPER))
    databases = resolve_database_section(pairs)
    command_processing = configure_section(
        command_processing_spec(host_facts),
        SECTION_COMMAND_PROCESSING,
        sections.get(SECTION_COMMAND_PROCESSING),
    )
    puppetdb = configure_section(PUPPETDB_SPEC, SECTION_PUPPETDB, sections.get(SECTION_PUPPETDB))

    extra = {
        key: value
        for key, value in sections.items()
        if key not in _RESOLVED_SECTIONS and _DATABASE_KEY.fullmatch(key) is None
    }

    return ResolvedConfig(
        database=_freeze(databases.database),
        read_database=_freeze(databases.read_database),
        command_processing=_freeze(command_processing),
        puppetdb=_freeze(puppetdb),
        developer=_freeze(developer),
        global_settings=_freeze(global_settings),
        extra=_freeze(extra),
        database_subsections=databases.subsections,
    )


def resolve_document(document: RawDocument, *, host: HostFacts | None = None) -> ConfigResolution:
    """Scan for retirements, then resolve unless a fatal issue was found."""

    pairs = _as_pairs(document)
    report = check_retirements(_index_sections(pairs))
    if report.exit_required:
        return ConfigResolution(config=None, report=report)
    return ConfigResolution(config=process_config(pairs, host=host), report=report)


def _as_pairs(document: RawDocument) -> list[tuple[str, Any]]:
    if isinstance(document, Mapping):
        return list(document.items())
    return list(document)


def _index_sections(pairs: Iterable[tuple[str, Any]]) -> dict[str, Any]:
    """Map section identifiers to values; repeated database headers are left
    for the coalescer to report."""

    out: dict[str, Any] = {}
    for key, value in pairs:
        if not isinstance(key, str):
            raise ConfigError(
                f"error: section identifier must be a string, got {type(key).__name__}",
                kind=ConfigErrorKind.STRUCTURE,
            )
        if key in out and _DATABASE_KEY.fullmatch(key) is None:
            raise ConfigError(
                f"error: multiple [{_quoted(key)}] sections in config file",
                kind=ConfigErrorKind.STRUCTURE,
            )
        out[key] = value
    return out


def _as_section(section: str, raw: object) -> Mapping[str, Any]:
    if raw is None:
        return {}
    if not isinstance(raw, Mapping):
        raise ConfigError(
            f"error: config section [{_quoted(section)}] must contain key/value settings, "
            f"got {type(raw).__name__}",
            kind=ConfigErrorKind.STRUCTURE,
        )
    return raw


def _freeze(value: object) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({key: _freeze(item) for key, item in value.items()})
    if isinstance(value, (list, tuple)):
        return tuple(_freeze(item) for item in value)
    return value


def _thaw(value: object) -> Any:
    if isinstance(value, Mapping):
        return {key: _thaw(item) for key, item in value.items()}
    if isinstance(value, tuple):
        return [_thaw(item) for item in value]
    return value


__all__ = [
    "ConfigResolution",
    "RawDocument",
    "ResolvedConfig",
    "configure_globals",
    "configure_section",
    "normalize_product_name",
    "process_config",
    "resolve_document",
]
