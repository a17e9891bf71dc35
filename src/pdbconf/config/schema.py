"""
pdbconf — declarative section schemas and the defaulting/conversion pipeline.

File: src/pdbconf/config/schema.py
Last updated: 2026-10-17

Purpose
- Describe each section twice: the raw shape users may write (incoming) and
  the typed shape the rest of the service reads (outgoing).
- Turn one raw section into its resolved form.

What should be included in this file
- Frozen field/spec declarations and ``Computed`` default providers.
- Unknown-key warnings, incoming validation, defaulting, conversion, and
  exact outgoing validation.
- The inverse rendering used to feed resolved values back as raw input.
- Redaction helpers for dumps.

Functional requirements
- Report every offending key in one structured error.
- Never mutate the caller's mapping.

Non-functional requirements
- Pure apart from warning logs; deterministic output ordering.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any, Final

from pdbconf.config import durations
from pdbconf.config.durations import Period
from pdbconf.config.errors import ConfigErrorKind, _IssueCollector, _join

_LOGGER = logging.getLogger(__name__)

_LIST_SEPARATOR: Final[re.Pattern[str]] = re.compile(r"[,;]")
_BOOLEAN_TEXT: Final[dict[str, bool]] = {"true": True, "false": False}

_CAMEL_CASE_BOUNDARY = re.compile(r"([a-z0-9])([A-Z])")
_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_SENSITIVE_KEY_TOKENS: Final[frozenset[str]] = frozenset(
    {"secret", "token", "password", "passwd", "credential", "credentials"}
)
_REDACTED: Final[str] = "<redacted>"


class RawShape(str, Enum):
    """Coarse shape accepted for a raw (user-written) value."""

    INTEGER = "integer"
    TEXT = "text"
    BOOLEAN = "boolean"
    TEXT_OR_LIST = "text-or-list"
    CHOICE = "choice"


class ValueKind(str, Enum):
    """Semantic type of a resolved value."""

    INTEGER = "integer"
    BOOLEAN = "boolean"
    STRING = "string"
    MINUTES = "minutes"
    DAYS = "days"
    PERIOD = "period"
    CHOICE = "choice"
    STRING_LIST = "string-list"


@dataclass(frozen=True, slots=True)
class Computed:
    """Default value produced on demand, e.g. from detected host facts."""

    provider: Callable[[], object]
    description: str = ""

    def __call__(self) -> object:
        return self.provider()


@dataclass(frozen=True, slots=True)
class IncomingField:
    name: str
    shape: RawShape
    required: bool = False
    default: object | None = None
    choices: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class OutgoingField:
    name: str
    kind: ValueKind
    optional: bool = False
    minimum: int | None = None
    choices: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class IncomingSpec:
    """Accepted raw keys of one section, with their defaults."""

    fields: tuple[IncomingField, ...]
    _index: dict[str, IncomingField] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_index", {item.name: item for item in self.fields})

    @property
    def keys(self) -> frozenset[str]:
        return frozenset(self._index)

    def get(self, name: str) -> IncomingField | None:
        return self._index.get(name)

    def extend(self, extra: Iterable[IncomingField]) -> IncomingSpec:
        merged = dict(self._index)
        for item in extra:
            merged[item.name] = item
        return IncomingSpec(tuple(merged.values()))


@dataclass(frozen=True, slots=True)
class OutgoingSpec:
    """Exact typed shape of one resolved section."""

    fields: tuple[OutgoingField, ...]
    _index: dict[str, OutgoingField] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_index", {item.name: item for item in self.fields})

    @property
    def keys(self) -> frozenset[str]:
        return frozenset(self._index)

    @property
    def required_keys(self) -> frozenset[str]:
        return frozenset(item.name for item in self.fields if not item.optional)

    def get(self, name: str) -> OutgoingField | None:
        return self._index.get(name)

    def extend(self, extra: Iterable[OutgoingField]) -> OutgoingSpec:
        merged = dict(self._index)
        for item in extra:
            merged[item.name] = item
        return OutgoingSpec(tuple(merged.values()))


@dataclass(frozen=True, slots=True)
class SectionSpec:
    """Incoming/outgoing pair for one section."""

    incoming: IncomingSpec
    outgoing: OutgoingSpec


def unknown_keys(spec: IncomingSpec | OutgoingSpec, data: Mapping[str, object]) -> list[str]:
    """Keys of ``data`` that ``spec`` does not declare, in document order."""

    return [key for key in data if key not in spec.keys]


def strip_unknown_keys(
    spec: IncomingSpec | OutgoingSpec, data: Mapping[str, object]
) -> dict[str, Any]:
    return {key: value for key, value in data.items() if key in spec.keys}


def warn_unknown_keys(
    spec: IncomingSpec, data: Mapping[str, object], *, section: str = ""
) -> list[str]:
    """Log one warning per unknown key and return those keys."""

    unknown = unknown_keys(spec, data)
    for key in unknown:
        _LOGGER.warning(
            "The configuration item `%s` does not exist and should be removed from the config.",
            key,
            extra={"section": section, "key": key},
        )
    return unknown


def warn_and_validate(
    spec: IncomingSpec, data: Mapping[str, object], *, section: str = ""
) -> dict[str, Any]:
    """Warn about unknown keys, strip them, and validate the rest."""

    warn_unknown_keys(spec, data, section=section)
    stripped = strip_unknown_keys(spec, data)

    issues = _IssueCollector()
    for item in spec.fields:
        value = stripped.get(item.name)
        if value is None:
            if item.required:
                issues.add(_join(section, item.name), "missing required field")
            continue
        problem = _check_shape(item, value)
        if problem is not None:
            issues.add(_join(section, item.name), problem)
    issues.raise_if_any(_describe("invalid config", section), kind=ConfigErrorKind.SCHEMA)
    return stripped


def defaulted_data(spec: IncomingSpec, data: Mapping[str, object]) -> dict[str, Any]:
    """Fill absent (or ``None``) optional keys from their declared defaults."""

    out = {key: value for key, value in data.items() if value is not None}
    for item in spec.fields:
        if item.name in out or item.default is None:
            continue
        default = item.default() if isinstance(item.default, Computed) else item.default
        if default is not None:
            out[item.name] = default
    return out


def convert_to_spec(
    spec: OutgoingSpec, data: Mapping[str, object], *, section: str = ""
) -> dict[str, Any]:
    """Convert each raw value to the kind ``spec`` declares for it."""

    issues = _IssueCollector()
    out: dict[str, Any] = {}
    for key, raw in data.items():
        item = spec.get(key)
        if item is None:
            out[key] = raw
            continue
        try:
            out[key] = convert_value(item, raw)
        except ValueError as exc:
            issues.add(_join(section, key), f"cannot convert {raw!r}: {exc}")
    issues.raise_if_any(
        _describe("invalid config value", section), kind=ConfigErrorKind.CONVERSION
    )
    return out


def validate_outgoing(
    spec: OutgoingSpec, data: Mapping[str, object], *, section: str = ""
) -> dict[str, Any]:
    """Check ``data`` matches ``spec`` exactly; returns a copy."""

    issues = _IssueCollector()
    for key in unknown_keys(spec, data):
        issues.add(_join(section, key), "unknown field")
    for key in sorted(spec.required_keys):
        if key not in data:
            issues.add(_join(section, key), "missing required field")
    for item in spec.fields:
        if item.name in data and not _is_kind(item, data[item.name]):
            issues.add(
                _join(section, item.name),
                f"expected {item.kind.value}, got {type(data[item.name]).__name__}",
            )
    issues.raise_if_any(_describe("invalid config", section), kind=ConfigErrorKind.SCHEMA)
    return dict(data)


def convert_section(
    spec: SectionSpec, raw: Mapping[str, object] | None, *, section: str = ""
) -> dict[str, Any]:
    """Validate, default and convert one raw section into its resolved form."""

    validated = warn_and_validate(spec.incoming, raw or {}, section=section)
    defaulted = defaulted_data(spec.incoming, validated)
    converted = convert_to_spec(spec.outgoing, defaulted, section=section)
    return validate_outgoing(spec.outgoing, converted, section=section)


def convert_value(item: OutgoingField, raw: object) -> object:
    """Convert one raw value; raises ``ValueError`` with a readable reason."""

    kind = item.kind
    if kind is ValueKind.INTEGER:
        value = durations.parse_whole_number(raw)
        _check_minimum(item, value)
        return value
    if kind is ValueKind.BOOLEAN:
        return _to_bool(raw)
    if kind is ValueKind.STRING:
        return _to_text(raw)
    if kind is ValueKind.MINUTES:
        _check_minimum(item, durations.parse_whole_number(raw))
        return durations.minutes(raw)
    if kind is ValueKind.DAYS:
        _check_minimum(item, durations.parse_whole_number(raw))
        return durations.days(raw)
    if kind is ValueKind.PERIOD:
        return durations.parse_period(_to_text(raw))
    if kind is ValueKind.CHOICE:
        text = _to_text(raw).strip()
        if text not in item.choices:
            raise ValueError(f"expected one of: {', '.join(item.choices)}")
        return text
    return _to_string_list(raw)


def as_raw_settings(spec: OutgoingSpec, resolved: Mapping[str, object]) -> dict[str, Any]:
    """Express resolved values in the raw text form users would write."""

    out: dict[str, Any] = {}
    for key, value in resolved.items():
        item = spec.get(key)
        if item is None:
            out[key] = value
        elif item.kind is ValueKind.BOOLEAN:
            out[key] = "true" if value else "false"
        elif item.kind is ValueKind.MINUTES and isinstance(value, timedelta):
            out[key] = str(durations.whole_minutes(value))
        elif item.kind is ValueKind.DAYS and isinstance(value, timedelta):
            out[key] = str(durations.whole_days(value))
        elif item.kind is ValueKind.STRING_LIST and isinstance(value, (list, tuple)):
            out[key] = ",".join(str(part) for part in value)
        else:
            out[key] = str(value)
    return out


def redact_config(config: Mapping[str, object] | object) -> dict[str, Any]:
    """Return a redacted copy suitable for logs and dumps."""

    if not isinstance(config, Mapping):
        return {}
    redacted = _redact_value(config, parent_key=None)
    return redacted if isinstance(redacted, dict) else {}


def _check_shape(item: IncomingField, value: object) -> str | None:
    shape = item.shape
    if shape is RawShape.INTEGER:
        try:
            durations.parse_whole_number(value)
        except ValueError:
            return f"expected integer, got {value!r}"
        return None
    if shape is RawShape.BOOLEAN:
        if isinstance(value, (bool, str)):
            return None
        return f"expected boolean text, got {type(value).__name__}"
    if shape is RawShape.TEXT:
        if isinstance(value, str) or (isinstance(value, (int, float)) and not isinstance(value, bool)):
            return None
        return f"expected string, got {type(value).__name__}"
    if shape is RawShape.TEXT_OR_LIST:
        if isinstance(value, str):
            return None
        if isinstance(value, (list, tuple)) and all(isinstance(part, str) for part in value):
            return None
        return f"expected string or list of strings, got {type(value).__name__}"
    if not isinstance(value, str):
        return f"expected string, got {type(value).__name__}"
    if item.choices and value.strip() not in item.choices:
        return f"invalid value {value!r}; expected one of: {', '.join(item.choices)}"
    return None


def _check_minimum(item: OutgoingField, value: int) -> None:
    if item.minimum is not None and value < item.minimum:
        raise ValueError(f"must be >= {item.minimum}")


def _to_bool(raw: object) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        parsed = _BOOLEAN_TEXT.get(raw.strip().lower())
        if parsed is not None:
            return parsed
    raise ValueError("expected true or false")


def _to_text(raw: object) -> str:
    if isinstance(raw, str):
        return raw
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return str(raw)
    raise ValueError(f"expected string, got {type(raw).__name__}")


def _to_string_list(raw: object) -> list[str]:
    if isinstance(raw, str):
        parts: Iterable[str] = _LIST_SEPARATOR.split(raw)
    elif isinstance(raw, (list, tuple)):
        parts = (_to_text(part) for part in raw)
    else:
        raise ValueError(f"expected string or list, got {type(raw).__name__}")
    return [part.strip() for part in parts if part.strip()]


def _is_kind(item: OutgoingField, value: object) -> bool:
    kind = item.kind
    if kind is ValueKind.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool)
    if kind is ValueKind.BOOLEAN:
        return isinstance(value, bool)
    if kind is ValueKind.STRING:
        return isinstance(value, str)
    if kind in (ValueKind.MINUTES, ValueKind.DAYS):
        return isinstance(value, timedelta)
    if kind is ValueKind.PERIOD:
        return isinstance(value, Period)
    if kind is ValueKind.CHOICE:
        return isinstance(value, str) and value in item.choices
    return isinstance(value, list) and all(isinstance(part, str) for part in value)


def _describe(prefix: str, section: str) -> str:
    if not section:
        return prefix
    return f"{prefix} in [{section}]"


def _redact_value(value: object, parent_key: str | None) -> object:
    if isinstance(value, Mapping):
        out: dict[str, object] = {}
        for key in value:
            item = value[key]
            if isinstance(key, str) and _looks_sensitive_key(key) and not isinstance(item, Mapping):
                out[key] = _REDACTED
            else:
                out[key] = _redact_value(item, key if isinstance(key, str) else parent_key)
        return out
    if isinstance(value, (list, tuple)):
        return [_redact_value(item, parent_key) for item in value]
    return value


def _looks_sensitive_key(key: str) -> bool:
    with_boundaries = _CAMEL_CASE_BOUNDARY.sub(r"\1_\2", key.strip())
    normalized = _NON_ALNUM.sub("_", with_boundaries.lower()).strip("_")
    tokens = tuple(token for token in normalized.split("_") if token)
    return any(token in _SENSITIVE_KEY_TOKENS for token in tokens)


__all__ = [
    "Computed",
    "IncomingField",
    "IncomingSpec",
    "OutgoingField",
    "OutgoingSpec",
    "RawShape",
    "SectionSpec",
    "ValueKind",
    "as_raw_settings",
    "convert_section",
    "convert_to_spec",
    "convert_value",
    "defaulted_data",
    "redact_config",
    "strip_unknown_keys",
    "unknown_keys",
    "validate_outgoing",
    "warn_and_validate",
    "warn_unknown_keys",
]
