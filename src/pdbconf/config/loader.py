"""
pdbconf — configuration file loader.

File: src/pdbconf/config/loader.py
Last updated: 2026-10-17

Purpose
- Read configuration files into the raw document consumed by the resolver.

What should be included in this file
- INI loading via ``configparser``, TOML via ``tomllib``, YAML via PyYAML.
- Directory / multi-file loading with cross-file duplicate detection.
- Working-directory (``vardir``) validation.

Functional requirements
- Section identifiers are kept as written, e.g. ``database "primary"``.
- Documents are returned as ordered ``(section, settings)`` pairs so that a
  repeated section can still be reported by the resolver.
"""

from __future__ import annotations

import configparser
import os
import tomllib
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any, Final

import yaml

from pdbconf.config.sections import format_section_name

INI_SUFFIXES: Final[frozenset[str]] = frozenset({".ini", ".conf"})
TOML_SUFFIXES: Final[frozenset[str]] = frozenset({".toml"})
YAML_SUFFIXES: Final[frozenset[str]] = frozenset({".yaml", ".yml"})
SUPPORTED_SUFFIXES: Final[frozenset[str]] = INI_SUFFIXES | TOML_SUFFIXES | YAML_SUFFIXES

# configparser copies its default section into every other section; a name no
# header can produce keeps [DEFAULT] an ordinary section.
_NO_DEFAULT_SECTION: Final[str] = "\x00"

DocumentPairs = list[tuple[str, Any]]


class ConfigLoadError(ValueError):
    """Raised when a config file cannot be read or parsed."""


def load_document(path: str | Path) -> DocumentPairs:
    """Load one config file, dispatching on its suffix."""

    resolved = Path(path).expanduser()
    if not resolved.is_file():
        raise ConfigLoadError(f"config file not found: {resolved}")

    suffix = resolved.suffix.lower()
    if suffix in INI_SUFFIXES:
        return _load_ini_file(resolved)
    if suffix in TOML_SUFFIXES:
        return _flatten_nested_sections(_load_toml_file(resolved), resolved)
    if suffix in YAML_SUFFIXES:
        return _flatten_nested_sections(_load_yaml_file(resolved), resolved)
    raise ConfigLoadError(
        f"unsupported config file type {resolved.suffix!r}: {resolved} "
        f"(expected one of: {', '.join(sorted(SUPPORTED_SUFFIXES))})"
    )


def load_documents(paths: str | Path | Iterable[str | Path]) -> DocumentPairs:
    """Load a directory of config files, or several files, as one document.

    Directory entries are read in name order; files with unsupported suffixes
    are skipped. A section defined by two files is an error.
    """

    merged: DocumentPairs = []
    owners: dict[str, Path] = {}
    for file_path in _expand_paths(paths):
        for section, settings in load_document(file_path):
            previous = owners.get(section)
            if previous is not None and previous != file_path:
                raise ConfigLoadError(
                    f"section [{section}] is defined in both {previous} and {file_path}"
                )
            owners[section] = file_path
            merged.append((section, settings))
    return merged


def validate_vardir(path: str | Path | None) -> Path:
    """Check the service working directory is usable and return it."""

    if path is None or str(path).strip() == "":
        raise ConfigLoadError("Required setting 'vardir' is not specified. Please set it to a writable directory.")
    vardir = Path(path)
    if not vardir.is_absolute():
        raise ConfigLoadError(f"vardir {str(vardir)!r} must be an absolute path.")
    if not vardir.exists():
        raise ConfigLoadError(f"vardir {str(vardir)!r} does not exist. Please create it and ensure it is writable.")
    if not vardir.is_dir():
        raise ConfigLoadError(f"vardir {str(vardir)!r} is not a directory.")
    if not os.access(vardir, os.W_OK):
        raise ConfigLoadError(f"vardir {str(vardir)!r} is not writable.")
    return vardir


def _expand_paths(paths: str | Path | Iterable[str | Path]) -> list[Path]:
    candidates = [paths] if isinstance(paths, (str, Path)) else list(paths)
    expanded: list[Path] = []
    for candidate in candidates:
        resolved = Path(candidate).expanduser()
        if resolved.is_dir():
            expanded.extend(
                entry
                for entry in sorted(resolved.iterdir())
                if entry.is_file() and entry.suffix.lower() in SUPPORTED_SUFFIXES
            )
        else:
            expanded.append(resolved)
    if not expanded:
        raise ConfigLoadError(f"no config files found in: {', '.join(str(item) for item in candidates)}")
    return expanded


def _load_ini_file(path: Path) -> DocumentPairs:
    parser = configparser.ConfigParser(
        strict=True, interpolation=None, default_section=_NO_DEFAULT_SECTION
    )
    parser.optionxform = str  # type: ignore[assignment,method-assign]
    try:
        with path.open("r", encoding="utf-8") as handle:
            parser.read_file(handle, source=str(path))
    except configparser.Error as exc:
        raise ConfigLoadError(f"invalid INI in {path}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc

    return [(section, dict(parser.items(section))) for section in parser.sections()]


def _load_toml_file(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            parsed = tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigLoadError(f"invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc
    return parsed


def _load_yaml_file(path: Path) -> dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            parsed = yaml.safe_load(handle)
    except yaml.YAMLError as exc:
        raise ConfigLoadError(f"invalid YAML in {path}: {exc}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigLoadError(f"unable to read config file {path}: {exc}") from exc

    if parsed is None:
        return {}
    if not isinstance(parsed, dict):
        raise ConfigLoadError(f"config root must be a mapping: {path}")
    return parsed


def _flatten_nested_sections(document: Mapping[str, Any], path: Path) -> DocumentPairs:
    """Lift nested tables into ``section "name"`` entries.

    ``{"database": {"subname": ..., "primary": {...}}}`` becomes a
    ``database`` entry holding the scalar settings and a
    ``database "primary"`` entry holding the nested table.
    """

    pairs: DocumentPairs = []
    for section, value in document.items():
        if not isinstance(section, str):
            raise ConfigLoadError(f"section names must be strings in {path}: {section!r}")
        if not isinstance(value, Mapping):
            pairs.append((section, value))
            continue
        sectionwide = {key: item for key, item in value.items() if not isinstance(item, Mapping)}
        nested = [(key, item) for key, item in value.items() if isinstance(item, Mapping)]
        if sectionwide or not nested:
            pairs.append((section, sectionwide))
        for name, settings in nested:
            # format_section_name returns "[section ...]"; the document key has no brackets.
            pairs.append((format_section_name(section, str(name))[1:-1], dict(settings)))
    return pairs


__all__ = [
    "ConfigLoadError",
    "DocumentPairs",
    "SUPPORTED_SUFFIXES",
    "load_document",
    "load_documents",
    "validate_vardir",
]
