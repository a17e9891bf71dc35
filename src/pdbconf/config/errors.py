"""
pdbconf — configuration error types.

File: src/pdbconf/config/errors.py
Last updated: 2026-10-17

Purpose
- Define the single error type raised by every resolution stage.

Functional requirements
- Carry a human-readable message, a machine-checkable kind tag, and
  structured issues (path + message) when several keys are at fault.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum


class ConfigErrorKind(str, Enum):
    """Category of a configuration failure."""

    GRAMMAR = "grammar"
    STRUCTURE = "structure"
    SCHEMA = "schema"
    CONVERSION = "conversion"
    DOMAIN = "domain"
    INVARIANT = "invariant"


@dataclass(frozen=True, slots=True)
class ConfigValidationIssue:
    """Single structured validation failure."""

    path: str
    message: str


class ConfigError(ValueError):
    """Raised when a configuration document cannot be resolved."""

    def __init__(
        self,
        message: str,
        *,
        kind: ConfigErrorKind,
        issues: Sequence[ConfigValidationIssue] = (),
    ) -> None:
        self.message = message
        self.kind = kind
        self.issues = tuple(issues)
        if self.issues:
            rendered = "\n".join(f"- {item.path}: {item.message}" for item in self.issues)
            super().__init__(f"{message}\n{rendered}")
        else:
            super().__init__(message)


class _IssueCollector:
    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[ConfigValidationIssue] = []

    def add(self, path: str, message: str) -> None:
        self._items.append(ConfigValidationIssue(path=path, message=message))

    def items(self) -> tuple[ConfigValidationIssue, ...]:
        return tuple(self._items)

    @property
    def has_issues(self) -> bool:
        return bool(self._items)

    def raise_if_any(self, message: str, *, kind: ConfigErrorKind) -> None:
        if self._items:
            raise ConfigError(message, kind=kind, issues=self._items)


def _quoted(text: str) -> str:
    """Render ``text`` double-quoted with backslash escapes, e.g. ``"database"``."""

    escaped = text.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _join(path: str, key: str) -> str:
    if not path:
        return key
    return f"{path}.{key}"


__all__ = [
    "ConfigError",
    "ConfigErrorKind",
    "ConfigValidationIssue",
]
