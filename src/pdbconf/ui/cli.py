"""Command-line interface router for pdbconf."""

from __future__ import annotations

import argparse
import json
import sys
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from pdbconf.config import (
    ConfigResolution,
    ResolvedConfig,
    format_section_name,
    load_documents,
    redact_config,
    resolve_document,
    validate_vardir,
)
from pdbconf.config.durations import Period
from pdbconf.config.retirements import (
    RETIRED_COMMAND_PROCESSING_KEYS,
    RETIRED_DATABASE_KEYS,
)
from pdbconf.config.schema import Computed, SectionSpec, as_raw_settings
from pdbconf.config.specs import (
    DATABASE_SPEC,
    DEVELOPER_SPEC,
    PUPPETDB_SPEC,
    WRITE_DATABASE_SPEC,
    HostFacts,
    command_processing_spec,
)
from pdbconf.constants import (
    SECTION_COMMAND_PROCESSING,
    SECTION_DATABASE,
    SECTION_DEVELOPER,
    SECTION_GLOBAL,
    SECTION_PUPPETDB,
    SECTION_READ_DATABASE,
)
from pdbconf.observability import LoggingConfig, setup_logging, shutdown_logging

EXIT_FATAL_RETIREMENT = 1


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router."""

    parser = argparse.ArgumentParser(
        prog="pdbconf",
        description=(
            "pdbconf: resolve and check PuppetDB-style service configuration.\n\n"
            "Common workflows:\n"
            "  pdbconf check conf.d/        Resolve every file and report problems\n"
            "  pdbconf dump puppetdb.ini    Print the resolved, redacted config\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "paths",
        nargs="+",
        help="Config files (.ini, .conf, .toml, .yaml) or directories containing them.",
    )
    common.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level for diagnostics on stderr (default: WARNING).",
    )
    common.add_argument(
        "--log-format",
        choices=("text", "json"),
        default="text",
        help="Diagnostic log format (default: text).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    check_parser = subparsers.add_parser(
        "check",
        parents=[common],
        help="Resolve configuration and report errors",
        description=(
            "Resolve configuration and report errors.\n\n"
            "Exit codes: 0 ok, 1 retired setting prevents startup, 2 invalid configuration."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    check_parser.add_argument(
        "--check-vardir",
        action="store_true",
        default=False,
        help="Also require [global] vardir to be an existing writable directory.",
    )
    check_parser.set_defaults(handler=_cmd_check)

    dump_parser = subparsers.add_parser(
        "dump",
        parents=[common],
        help="Print the resolved configuration with secrets redacted",
    )
    dump_parser.add_argument(
        "--json",
        action="store_true",
        default=False,
        help="Emit JSON instead of INI-style text.",
    )
    dump_parser.set_defaults(handler=_cmd_dump)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    handle = setup_logging(
        LoggingConfig(level=namespace.log_level, log_format=namespace.log_format)
    )
    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    finally:
        shutdown_logging(handle)
    return int(result)


def main(argv: Sequence[str] | None = None) -> int:
    """Compatibility wrapper for main-module wiring."""

    return run_cli(argv)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_check(args: argparse.Namespace) -> int:
    resolution = _resolve(args)
    config = _require_config(resolution)
    if args.check_vardir:
        validate_vardir(config.global_settings.get("vardir"))

    profiles = config.database_profiles()
    names = ", ".join(name if name is not None else "default" for name, _ in profiles)
    print(f"ok: product {config.global_settings['product-name']}; database profiles: {names}")
    for notice in resolution.report.notices:
        print(f"notice: {notice}")
    return 0


def _cmd_dump(args: argparse.Namespace) -> int:
    host = HostFacts.detect()
    config = _require_config(_resolve(args, host=host))
    if args.json:
        payload = redact_config(_jsonable(config.to_dict()))
        print(json.dumps(payload, sort_keys=True, indent=2, ensure_ascii=False))
    else:
        sections = redact_config(dict(_raw_sections(config, host)))
        sys.stdout.write(_render_ini(sections))
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _resolve(args: argparse.Namespace, *, host: HostFacts | None = None) -> ConfigResolution:
    return resolve_document(load_documents(args.paths), host=host)


def _require_config(resolution: ConfigResolution) -> ResolvedConfig:
    if resolution.exit_required:
        message = "\n".join(issue.message for issue in resolution.report.fatal_issues)
        raise CLIError(message, exit_code=EXIT_FATAL_RETIREMENT)
    return resolution.require_config()


def _jsonable(value: object) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    if isinstance(value, timedelta):
        return str(Period.from_timedelta(value))
    if isinstance(value, Period):
        return str(value)
    return value


def _raw_sections(config: ResolvedConfig, host: HostFacts) -> list[tuple[str, dict[str, Any]]]:
    """Resolved sections as ``(header, raw settings)`` that load back unchanged."""

    plain = config.to_dict()
    sections: list[tuple[str, dict[str, Any]]] = [
        (format_section_name(SECTION_GLOBAL), plain[SECTION_GLOBAL]),
    ]
    for name, profile in config.database_profiles():
        sections.append(
            (
                format_section_name(SECTION_DATABASE, name),
                _raw_settings(WRITE_DATABASE_SPEC, profile, RETIRED_DATABASE_KEYS),
            )
        )
    sections.append(
        (
            format_section_name(SECTION_READ_DATABASE),
            _raw_settings(DATABASE_SPEC, config.read_database, RETIRED_DATABASE_KEYS),
        )
    )
    sections.append(
        (
            format_section_name(SECTION_COMMAND_PROCESSING),
            _raw_settings(
                command_processing_spec(host),
                config.command_processing,
                RETIRED_COMMAND_PROCESSING_KEYS,
            ),
        )
    )
    sections.append(
        (format_section_name(SECTION_PUPPETDB), _raw_settings(PUPPETDB_SPEC, config.puppetdb, ()))
    )
    sections.append(
        (format_section_name(SECTION_DEVELOPER), _raw_settings(DEVELOPER_SPEC, config.developer, ()))
    )
    sections.extend(
        (format_section_name(section), plain[section])
        for section in config.extra
        if isinstance(plain[section], Mapping)
    )
    return sections


def _raw_settings(
    spec: SectionSpec, resolved: Mapping[str, Any], retired: Iterable[str]
) -> dict[str, Any]:
    raw = as_raw_settings(spec.outgoing, resolved)
    # Retired keys holding nothing but their declared default were never written.
    for key in retired:
        item = spec.incoming.get(key)
        if item is None or item.default is None or isinstance(item.default, Computed):
            continue
        if raw.get(key) == str(item.default):
            del raw[key]
    return raw


def _render_ini(sections: Mapping[str, Any]) -> str:
    lines: list[str] = []
    for header, settings in sections.items():
        if lines:
            lines.append("")
        lines.append(header)
        for key, value in settings.items():
            if isinstance(value, bool):
                rendered = "true" if value else "false"
            elif isinstance(value, list):
                rendered = ",".join(str(item) for item in value)
            else:
                rendered = str(value)
            lines.append(f"{key} = {rendered}")
    return "\n".join(lines) + "\n"


__all__ = ["CLIError", "build_parser", "main", "run_cli"]
