"""
pdbconf — database section resolution.

File: src/pdbconf/config/database.py
Last updated: 2026-10-17

Purpose
- Resolve ``[database]`` / ``[database "<name>"]`` sections into typed
  connection profiles and make sure a read profile exists.

What should be included in this file
- The cascade and fix-up transforms fed to the subsection resolver.
- Per-profile fix-ups: events TTL, user/username, migrator credentials.
- Cross-field checks: subname, retention ordering, blacklist patterns.
- Read-database resolution or synthesis.

Functional requirements
- Every subsection goes Raw -> Cascaded -> Defaulted/Converted -> Fixed-up,
  in that order.
- The read profile never carries write-only settings.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pdbconf.config.errors import ConfigError, ConfigErrorKind, _quoted
from pdbconf.config.schema import (
    convert_section,
    strip_unknown_keys,
    validate_outgoing,
)
from pdbconf.config.sections import (
    SectionNode,
    coalesce_sections,
    sectionwide_settings,
    update_section_settings,
)
from pdbconf.config.specs import (
    DATABASE_OUT,
    DATABASE_SPEC,
    MIGRATOR_KEYS,
    WRITE_DATABASE_SPEC,
)
from pdbconf.constants import (
    DATABASE_SECTION_PATTERN,
    SECTION_DATABASE,
    SECTION_READ_DATABASE,
)

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class DatabaseResolution:
    """Resolved ``database`` and ``read-database`` blocks.

    ``database`` is a single profile when the document declares no
    subsections, otherwise a mapping of subsection name to profile.
    """

    database: dict[str, Any]
    read_database: dict[str, Any]
    subsections: tuple[str, ...] = ()

    def profiles(self) -> tuple[tuple[str | None, dict[str, Any]], ...]:
        if not self.subsections:
            return ((None, self.database),)
        return tuple((name, self.database[name]) for name in self.subsections)

    @property
    def primary(self) -> dict[str, Any]:
        return self.profiles()[0][1]


def populate_db_subsection(
    name: str | None, sectionwide: Mapping[str, Any], settings: Mapping[str, Any]
) -> dict[str, Any]:
    """Layer raw subsection settings over raw sectionwide settings."""

    if name is None:
        return dict(settings)
    return {**sectionwide, **settings}


def fix_up_db_subsection(
    name: str | None, sectionwide: Mapping[str, Any], settings: Mapping[str, Any]
) -> dict[str, Any]:
    """Default, convert and fix up one cascaded database subsection."""

    profile = convert_section(WRITE_DATABASE_SPEC, settings, section=_label(name))
    profile = default_events_ttl(profile)
    profile = prefer_db_user_on_username_mismatch(profile, name)
    if "user" in profile:
        profile = ensure_migrator_info(profile)
    return profile


def default_events_ttl(profile: Mapping[str, Any]) -> dict[str, Any]:
    """Resource events are kept as long as reports unless configured."""

    out = dict(profile)
    if out.get("resource-events-ttl") is None and "report-ttl" in out:
        out["resource-events-ttl"] = out["report-ttl"]
    return out


def prefer_db_user_on_username_mismatch(
    profile: Mapping[str, Any], db_name: str | None = None
) -> dict[str, Any]:
    """Reconcile ``user`` and ``username``; ``user`` wins on mismatch."""

    out = dict(profile)
    user = out.get("user")
    username = out.get("username")
    if user and username and user != username:
        if db_name:
            _LOGGER.warning(
                "Configured %r database user %r and username %r don't match",
                db_name,
                user,
                username,
                extra={"section": _label(db_name)},
            )
        else:
            _LOGGER.warning(
                "Configured database user %r and username %r don't match",
                user,
                username,
                extra={"section": SECTION_DATABASE},
            )
        _LOGGER.warning("Preferring configured user %r", user)

    resolved = user or username
    if resolved:
        out["user"] = resolved
        out["username"] = resolved
    return out


def ensure_migrator_info(profile: Mapping[str, Any]) -> dict[str, Any]:
    """Default migrator credentials to the (already reconciled) credentials."""

    user = profile.get("user")
    if not user:
        raise ConfigError(
            "database user must be reconciled before defaulting migrator credentials",
            kind=ConfigErrorKind.INVARIANT,
        )
    out = dict(profile)
    out.setdefault("migrator-username", user)
    if "password" in out:
        out.setdefault("migrator-password", out["password"])
    return out


def validate_db_settings(profile: Mapping[str, Any], db_name: str | None = None) -> None:
    """Cross-field checks for one fully fixed-up write profile."""

    subname = profile.get("subname")
    if not isinstance(subname, str) or not subname.strip():
        raise ConfigError(
            f"No subname set in the [{_label(db_name)}] config.",
            kind=ConfigErrorKind.DOMAIN,
        )

    events_ttl = profile.get("resource-events-ttl")
    report_ttl = profile.get("report-ttl")
    if events_ttl is not None and report_ttl is not None and events_ttl.longer_than(report_ttl):
        raise ConfigError(
            "The setting for resource-events-ttl must not be longer than report-ttl",
            kind=ConfigErrorKind.DOMAIN,
        )

    check_facts_blacklist(profile)


def check_facts_blacklist(profile: Mapping[str, Any]) -> tuple[re.Pattern[str], ...]:
    """Compile regex blacklist patterns, reporting every one that fails."""

    if profile.get("facts-blacklist-type") != "regex":
        return ()
    compiled: list[re.Pattern[str]] = []
    errors: list[str] = []
    for pattern in profile.get("facts-blacklist") or ():
        try:
            compiled.append(re.compile(pattern))
        except re.error as exc:
            errors.append(f"{pattern}: {exc}")
    if errors:
        raise ConfigError(
            "Unable to parse facts-blacklist patterns:\n" + "\n".join(errors),
            kind=ConfigErrorKind.DOMAIN,
        )
    return tuple(compiled)


def configure_read_db(
    read_section: Mapping[str, Any] | None, primary: Mapping[str, Any]
) -> dict[str, Any]:
    """Resolve a supplied ``[read-database]`` or derive one from ``primary``."""

    if read_section is not None:
        if not isinstance(read_section, Mapping):
            raise ConfigError(
                f"error: config section [{_quoted(SECTION_READ_DATABASE)}] must contain "
                "key/value settings",
                kind=ConfigErrorKind.STRUCTURE,
            )
        profile = convert_section(DATABASE_SPEC, read_section, section=SECTION_READ_DATABASE)
        subname = profile.get("subname")
        if not isinstance(subname, str) or not subname.strip():
            raise ConfigError(
                f"No subname set in the [{SECTION_READ_DATABASE}] config.",
                kind=ConfigErrorKind.DOMAIN,
            )
        check_facts_blacklist(profile)
        return profile

    derived = {
        key: value
        for key, value in sectionwide_settings(primary).items()
        if key not in MIGRATOR_KEYS
    }
    derived["read-only?"] = True
    derived = strip_unknown_keys(DATABASE_OUT, derived)
    return validate_outgoing(DATABASE_OUT, derived, section=SECTION_READ_DATABASE)


def resolve_database_section(
    document: Mapping[str, Any] | Iterable[tuple[str, Any]],
) -> DatabaseResolution:
    """Coalesce, cascade, fix up and validate all database sections."""

    tree = coalesce_sections(DATABASE_SECTION_PATTERN, document)
    for section, value in tree.items():
        if isinstance(value, SectionNode) and section != SECTION_DATABASE:
            _LOGGER.warning(
                "The configuration section [%s] does not exist and should be removed from the config.",
                section,
                extra={"section": section},
            )
    node = tree.get(SECTION_DATABASE)
    if not isinstance(node, SectionNode):
        node = SectionNode()

    # Subsections inherit raw sectionwide values, never defaulted ones.
    cascaded = update_section_settings(node, populate_db_subsection)
    if node.has_subsections:
        staged = SectionNode(settings=dict(node.settings), subsections=cascaded)
    else:
        staged = SectionNode(settings=cascaded)
    resolved = update_section_settings(staged, fix_up_db_subsection)

    resolution = DatabaseResolution(
        database=resolved,
        read_database={},
        subsections=tuple(node.subsections),
    )
    for name, profile in resolution.profiles():
        validate_db_settings(profile, name)

    read_database = configure_read_db(tree.get(SECTION_READ_DATABASE), resolution.primary)
    return DatabaseResolution(
        database=resolved,
        read_database=read_database,
        subsections=resolution.subsections,
    )


def _label(name: str | None) -> str:
    if name is None:
        return SECTION_DATABASE
    escaped = name.replace("\\", "\\\\").replace('"', '\\"')
    return f'{SECTION_DATABASE} "{escaped}"'


__all__ = [
    "DatabaseResolution",
    "check_facts_blacklist",
    "configure_read_db",
    "default_events_ttl",
    "ensure_migrator_info",
    "fix_up_db_subsection",
    "populate_db_subsection",
    "prefer_db_user_on_username_mismatch",
    "resolve_database_section",
    "validate_db_settings",
]
