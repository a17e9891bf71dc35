"""
pdbconf config package public API.

File: src/pdbconf/config/__init__.py
Last updated: 2026-10-17

Purpose
- Export loading/resolution entrypoints and public error types.

What should be included in this file
- Section-header helpers, schema types, resolver and loader APIs.
- No logging setup or other runtime side effects.

Functional requirements
- Fail fast with clear structured errors.

Non-functional requirements
- Keep import-time surface small and deterministic.
"""

from pdbconf.config.database import DatabaseResolution, resolve_database_section
from pdbconf.config.durations import Period, parse_period
from pdbconf.config.errors import ConfigError, ConfigErrorKind, ConfigValidationIssue
from pdbconf.config.loader import (
    SUPPORTED_SUFFIXES,
    ConfigLoadError,
    load_document,
    load_documents,
    validate_vardir,
)
from pdbconf.config.resolver import (
    ConfigResolution,
    ResolvedConfig,
    configure_globals,
    normalize_product_name,
    process_config,
    resolve_document,
)
from pdbconf.config.retirements import FatalConfigIssue, RetirementReport, check_retirements
from pdbconf.config.schema import (
    Computed,
    IncomingField,
    IncomingSpec,
    OutgoingField,
    OutgoingSpec,
    RawShape,
    SectionSpec,
    ValueKind,
    convert_section,
    redact_config,
)
from pdbconf.config.sections import (
    SectionNode,
    coalesce_sections,
    format_section_name,
    parse_section_name,
    update_section_settings,
)
from pdbconf.config.specs import HostFacts

__all__ = [
    "Computed",
    "ConfigError",
    "ConfigErrorKind",
    "ConfigLoadError",
    "ConfigResolution",
    "ConfigValidationIssue",
    "DatabaseResolution",
    "FatalConfigIssue",
    "HostFacts",
    "IncomingField",
    "IncomingSpec",
    "OutgoingField",
    "OutgoingSpec",
    "Period",
    "RawShape",
    "ResolvedConfig",
    "RetirementReport",
    "SUPPORTED_SUFFIXES",
    "SectionNode",
    "SectionSpec",
    "ValueKind",
    "check_retirements",
    "coalesce_sections",
    "configure_globals",
    "convert_section",
    "format_section_name",
    "load_document",
    "load_documents",
    "normalize_product_name",
    "parse_period",
    "parse_section_name",
    "process_config",
    "redact_config",
    "resolve_database_section",
    "resolve_document",
    "update_section_settings",
    "validate_vardir",
]
