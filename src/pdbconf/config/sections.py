"""
pdbconf — git-style section headers and section trees.

File: src/pdbconf/config/sections.py
Last updated: 2026-10-17

Purpose
- Parse ``[section "subsection"]`` headers, group flat document keys into a
  section tree, and fold per-subsection transforms over that tree.

What should be included in this file
- Header parser and its inverse formatter.
- The coalescer that turns ``database "primary"`` style keys into nodes.
- The generic subsection-settings resolver used by every multi-profile section.

Functional requirements
- Duplicate sections and subsections are fatal, never merged.
- Subsection transforms always see the processed sectionwide result.

Non-functional requirements
- Pure functions; no logging, no I/O.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any, Final, TypeVar

from pdbconf.config.errors import ConfigError, ConfigErrorKind, _quoted

_HEADER_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"\[([-0-9a-zA-Z]+)(?:[ \t]+([^\x00-\x08\x0e-\x1f\x7f]+))?\]",
    re.DOTALL,
)
_TRAILING_BACKSLASHES: Final[re.Pattern[str]] = re.compile(r"(\\+)\"$")
_ESCAPE: Final[re.Pattern[str]] = re.compile(r"\\(.)", re.DOTALL)

SectionMatcher = re.Pattern[str] | Callable[[str], bool]
SubsectionTransform = Callable[[str | None, Mapping[str, Any], Mapping[str, Any]], Any]
T = TypeVar("T")


@dataclass(slots=True)
class SectionNode:
    """One section of the tree: sectionwide settings plus named subsections."""

    settings: dict[str, Any] = field(default_factory=dict)
    subsections: dict[str, dict[str, Any]] = field(default_factory=dict)

    @property
    def has_subsections(self) -> bool:
        return bool(self.subsections)


def parse_section_name(header: str) -> tuple[str] | tuple[str, str]:
    """Parse ``[section]`` or ``[section "subsection"]``.

    Only a subset of the git-config(1) syntax is accepted: section names are
    letters, digits and hyphens (no deprecated ``.`` form), and the
    subsection must be double-quoted. Inside the quotes any ``\\X`` becomes
    ``X``.
    """

    match = _HEADER_PATTERN.fullmatch(header)
    if match is None:
        raise ConfigError(
            f"error: invalid section name {_quoted(header)}", kind=ConfigErrorKind.GRAMMAR
        )
    section, subtext = match.group(1), match.group(2)
    if subtext is None:
        return (section,)

    if not subtext.startswith('"'):
        raise ConfigError(
            f"error: config subsection {_quoted(header)} must start with a double-quote",
            kind=ConfigErrorKind.GRAMMAR,
        )
    if len(subtext) < 2 or not subtext.endswith('"'):
        raise ConfigError(
            f"error: config subsection {_quoted(header)} must end with an unescaped double-quote",
            kind=ConfigErrorKind.GRAMMAR,
        )
    backslashes = _TRAILING_BACKSLASHES.search(subtext)
    if backslashes is not None and len(backslashes.group(1)) % 2 == 1:
        raise ConfigError(
            f"error: config subsection {_quoted(header)} must end with an unescaped double-quote",
            kind=ConfigErrorKind.GRAMMAR,
        )

    return (section, _ESCAPE.sub(r"\1", subtext[1:-1]))


def format_section_name(section: str, subsection: str | None = None) -> str:
    """Render a header that :func:`parse_section_name` maps back to its inputs."""

    if subsection is None:
        return f"[{section}]"
    escaped = subsection.replace("\\", "\\\\").replace('"', '\\"')
    return f'[{section} "{escaped}"]'


def coalesce_sections(
    matcher: SectionMatcher | str,
    document: Mapping[str, Any] | Iterable[tuple[str, Any]],
) -> dict[str, Any]:
    """Group section-header keys of ``document`` into :class:`SectionNode` values.

    Keys that do not satisfy ``matcher`` (a full-match regex or a predicate)
    are copied through unchanged. ``document`` may be a sequence of pairs so
    that repeated headers survive until they can be reported.
    """

    matches = _as_predicate(matcher)
    items = document.items() if isinstance(document, Mapping) else document

    result: dict[str, Any] = {}
    sectionwide_seen: set[str] = set()
    for key, value in items:
        if not matches(key):
            result[key] = value
            continue

        parsed = parse_section_name(f"[{key}]")
        section = parsed[0]
        settings = _as_settings(key, value)
        node = result.get(section)
        if not isinstance(node, SectionNode):
            node = SectionNode()
            result[section] = node

        if len(parsed) == 2:
            subsection = parsed[1]
            if subsection in node.subsections:
                raise ConfigError(
                    f"error: multiple [{_quoted(key)}] subsections in config file",
                    kind=ConfigErrorKind.STRUCTURE,
                )
            node.subsections[subsection] = settings
            continue

        if section != key:
            raise ConfigError(
                f"error: parsed config section [{_quoted(key)}] incorrectly "
                f"({_quoted(section)} != {_quoted(key)}); please report",
                kind=ConfigErrorKind.INVARIANT,
            )
        if section in sectionwide_seen:
            raise ConfigError(
                f"error: multiple [{_quoted(key)}] sections in config file",
                kind=ConfigErrorKind.STRUCTURE,
            )
        sectionwide_seen.add(section)
        node.settings.update(settings)

    return result


def sectionwide_settings(node: SectionNode | Mapping[str, Any]) -> dict[str, Any]:
    """Return the sectionwide (non-subsection) settings of ``node``."""

    if isinstance(node, SectionNode):
        return dict(node.settings)
    return {key: value for key, value in node.items() if not isinstance(value, Mapping)}


def reduce_section(
    fn: Callable[[T, str | None, Mapping[str, Any]], T],
    init: T,
    node: SectionNode,
) -> T:
    """Fold ``fn(result, name, settings)`` over the subsections of ``node``.

    Without subsections, ``fn`` is called once with ``None`` and the
    sectionwide settings.
    """

    if not node.has_subsections:
        return fn(init, None, sectionwide_settings(node))
    result = init
    for name, settings in node.subsections.items():
        result = fn(result, name, settings)
    return result


def update_section_settings(node: SectionNode, transform: SubsectionTransform) -> Any:
    """Resolve sectionwide settings first, then each subsection against them.

    ``transform(None, {}, sectionwide)`` produces the sectionwide result. With
    no subsections that result is returned as is; otherwise the return value
    maps each subsection name to ``transform(name, sectionwide_result,
    subsection_settings)`` and the sectionwide result is not emitted.
    """

    sectionwide = transform(None, {}, dict(node.settings))
    if not node.has_subsections:
        return sectionwide
    return {
        name: transform(name, sectionwide, dict(settings))
        for name, settings in node.subsections.items()
    }


def _as_predicate(matcher: SectionMatcher | str) -> Callable[[str], bool]:
    if isinstance(matcher, str):
        matcher = re.compile(matcher)
    if isinstance(matcher, re.Pattern):
        pattern = matcher
        return lambda key: isinstance(key, str) and pattern.fullmatch(key) is not None
    return matcher


def _as_settings(key: str, value: object) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(
            f"error: config section [{_quoted(key)}] must contain key/value settings, "
            f"got {type(value).__name__}",
            kind=ConfigErrorKind.STRUCTURE,
        )
    return dict(value)


__all__ = [
    "SectionNode",
    "coalesce_sections",
    "format_section_name",
    "parse_section_name",
    "reduce_section",
    "sectionwide_settings",
    "update_section_settings",
]
