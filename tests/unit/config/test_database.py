"""
pdbconf — unit tests for database section resolution

File: tests/unit/config/test_database.py
Last updated: 2026-10-17

Purpose
- Validate the database cascade, per-profile fix-ups, cross-field checks,
  and read-database resolution.

What this test file should cover
- Subsections inherit raw sectionwide settings.
- ``user`` wins over ``username``; migrator credentials default from them.
- Events TTL defaulting and ordering against report TTL.
- Read profile synthesis never carries write-only settings.
"""

from __future__ import annotations

import logging

import pytest

from pdbconf.config.database import (
    configure_read_db,
    default_events_ttl,
    ensure_migrator_info,
    prefer_db_user_on_username_mismatch,
    resolve_database_section,
    validate_db_settings,
)
from pdbconf.config.durations import Period
from pdbconf.config.errors import ConfigError, ConfigErrorKind

SUBNAME = "//localhost:5432/puppetdb"
WRITE_ONLY_KEYS = (
    "migrator-username",
    "migrator-password",
    "gc-interval",
    "report-ttl",
    "node-purge-ttl",
    "node-purge-gc-batch-limit",
    "node-ttl",
    "resource-events-ttl",
    "migrate",
)


@pytest.mark.unit
def test_single_profile_gets_defaults_and_fix_ups() -> None:
    resolution = resolve_database_section(
        {"database": {"subname": SUBNAME, "user": "pdb", "password": "s3cret"}}
    )

    profile = resolution.database
    assert resolution.subsections == ()
    assert profile["subname"] == SUBNAME
    assert profile["username"] == "pdb"
    assert profile["migrator-username"] == "pdb"
    assert profile["migrator-password"] == "s3cret"
    assert profile["report-ttl"] == Period(days=14)
    assert profile["resource-events-ttl"] == Period(days=14)
    assert profile["maximum-pool-size"] == 25
    assert profile["read-only?"] is False


@pytest.mark.unit
def test_read_database_is_synthesized_from_the_write_profile() -> None:
    resolution = resolve_database_section(
        {"database": {"subname": SUBNAME, "user": "pdb", "password": "s3cret", "migrator-password": "m"}}
    )

    read = resolution.read_database
    assert read["read-only?"] is True
    assert read["subname"] == SUBNAME
    assert read["user"] == "pdb"
    assert read["password"] == "s3cret"
    for key in WRITE_ONLY_KEYS:
        assert key not in read


@pytest.mark.unit
def test_supplied_read_database_is_resolved_on_its_own() -> None:
    resolution = resolve_database_section(
        {
            "database": {"subname": SUBNAME},
            "read-database": {"subname": "//replica:5432/puppetdb", "maximum-pool-size": "5"},
        }
    )

    assert resolution.read_database["subname"] == "//replica:5432/puppetdb"
    assert resolution.read_database["maximum-pool-size"] == 5
    assert "report-ttl" not in resolution.read_database


@pytest.mark.unit
def test_supplied_read_database_requires_subname() -> None:
    with pytest.raises(ConfigError, match=r"No subname set in the \[read-database\] config\.") as excinfo:
        resolve_database_section({"database": {"subname": SUBNAME}, "read-database": {"user": "ro"}})
    assert excinfo.value.kind is ConfigErrorKind.DOMAIN


@pytest.mark.unit
def test_events_ttl_longer_than_report_ttl_is_rejected() -> None:
    with pytest.raises(ConfigError, match="resource-events-ttl must not be longer than report-ttl") as excinfo:
        resolve_database_section(
            {"database": {"subname": SUBNAME, "resource-events-ttl": "30d", "report-ttl": "14d"}}
        )
    assert excinfo.value.kind is ConfigErrorKind.DOMAIN


@pytest.mark.unit
def test_user_wins_over_username_with_warning(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)

    resolution = resolve_database_section(
        {"database": {"subname": SUBNAME, "user": "alice", "username": "bob"}}
    )

    profile = resolution.database
    assert profile["user"] == "alice"
    assert profile["username"] == "alice"
    assert profile["migrator-username"] == "alice"
    messages = [record.getMessage() for record in caplog.records]
    assert any("don't match" in message for message in messages)
    assert any("Preferring configured user 'alice'" in message for message in messages)


@pytest.mark.unit
def test_username_alone_fills_user() -> None:
    assert prefer_db_user_on_username_mismatch({"username": "bob"}) == {"user": "bob", "username": "bob"}
    assert prefer_db_user_on_username_mismatch({}) == {}


@pytest.mark.unit
def test_empty_database_reports_missing_subname() -> None:
    with pytest.raises(ConfigError, match=r"No subname set in the \[database\] config\.") as excinfo:
        resolve_database_section({})
    assert excinfo.value.kind is ConfigErrorKind.DOMAIN


@pytest.mark.unit
def test_subsections_inherit_raw_sectionwide_settings() -> None:
    resolution = resolve_database_section(
        {
            "database": {"user": "pdb", "password": "pw", "maximum-pool-size": "10"},
            'database "primary"': {"subname": "//a:5432/pdb"},
            'database "replica"': {"subname": "//b:5432/pdb", "maximum-pool-size": "5", "user": "other"},
        }
    )

    assert resolution.subsections == ("primary", "replica")
    primary = resolution.database["primary"]
    replica = resolution.database["replica"]
    assert primary["maximum-pool-size"] == 10
    assert primary["user"] == "pdb"
    assert primary["migrator-password"] == "pw"
    assert replica["maximum-pool-size"] == 5
    assert replica["user"] == "other"
    assert replica["migrator-username"] == "other"
    assert resolution.primary is primary
    assert resolution.read_database["subname"] == "//a:5432/pdb"
    assert resolution.read_database["read-only?"] is True


@pytest.mark.unit
def test_subsection_without_subname_is_named_in_the_error() -> None:
    with pytest.raises(ConfigError, match=r'No subname set in the \[database "replica"\] config\.'):
        resolve_database_section(
            {
                'database "primary"': {"subname": "//a/pdb"},
                'database "replica"': {"user": "pdb"},
            }
        )


@pytest.mark.unit
def test_duplicate_database_sections_are_rejected() -> None:
    with pytest.raises(ConfigError, match="multiple") as excinfo:
        resolve_database_section([("database", {"subname": "a"}), ("database", {"subname": "b"})])
    assert excinfo.value.kind is ConfigErrorKind.STRUCTURE


@pytest.mark.unit
def test_invalid_regex_blacklist_is_reported() -> None:
    with pytest.raises(ConfigError, match="Unable to parse facts-blacklist patterns") as excinfo:
        resolve_database_section(
            {
                "database": {
                    "subname": SUBNAME,
                    "facts-blacklist": "^good$, [bad",
                    "facts-blacklist-type": "regex",
                }
            }
        )
    assert "[bad" in str(excinfo.value)


@pytest.mark.unit
def test_literal_blacklist_is_not_compiled() -> None:
    resolution = resolve_database_section(
        {"database": {"subname": SUBNAME, "facts-blacklist": "[not-a-regex, uptime"}}
    )

    assert resolution.database["facts-blacklist"] == ["[not-a-regex", "uptime"]


@pytest.mark.unit
def test_ensure_migrator_info_requires_reconciled_user() -> None:
    with pytest.raises(ConfigError) as excinfo:
        ensure_migrator_info({"password": "pw"})
    assert excinfo.value.kind is ConfigErrorKind.INVARIANT


@pytest.mark.unit
def test_explicit_migrator_credentials_are_kept() -> None:
    profile = ensure_migrator_info({"user": "pdb", "password": "pw", "migrator-username": "admin"})

    assert profile["migrator-username"] == "admin"
    assert profile["migrator-password"] == "pw"


@pytest.mark.unit
def test_default_events_ttl_only_fills_missing_value() -> None:
    assert default_events_ttl({"report-ttl": Period(days=7)})["resource-events-ttl"] == Period(days=7)
    kept = default_events_ttl({"report-ttl": Period(days=7), "resource-events-ttl": Period(days=1)})
    assert kept["resource-events-ttl"] == Period(days=1)


@pytest.mark.unit
def test_validate_db_settings_accepts_equal_ttls() -> None:
    validate_db_settings(
        {"subname": SUBNAME, "report-ttl": Period(days=14), "resource-events-ttl": Period(hours=336)}
    )


@pytest.mark.unit
def test_configure_read_db_rejects_non_mapping_section() -> None:
    with pytest.raises(ConfigError) as excinfo:
        configure_read_db("subname=x", {"subname": SUBNAME})  # type: ignore[arg-type]
    assert excinfo.value.kind is ConfigErrorKind.STRUCTURE


@pytest.mark.unit
def test_lookalike_database_sections_are_warned_about(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)

    resolution = resolve_database_section(
        [
            ("database", {"subname": SUBNAME}),
            ("databases", {"subname": "//other/pdb"}),
            ('database-x "y"', {}),
        ]
    )

    assert resolution.database["subname"] == SUBNAME
    messages = [record.getMessage() for record in caplog.records]
    assert (
        "The configuration section [databases] does not exist and should be removed from the config."
        in messages
    )
    assert (
        "The configuration section [database-x] does not exist and should be removed from the config."
        in messages
    )
