"""
pdbconf — unit tests for section schemas and conversion

File: tests/unit/config/test_schema.py
Last updated: 2026-10-17

Purpose
- Validate unknown-key handling, incoming validation, defaulting, conversion,
  and exact outgoing validation.

What this test file should cover
- Every offending key is reported in one error, with its path.
- ``None`` counts as absent when defaulting.
- Converting the raw rendering of a resolved section yields the same result.
- Redaction of secret-looking keys.

Non-functional requirements
- Deterministic; no host inspection.
"""

from __future__ import annotations

import logging
from datetime import timedelta

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from pdbconf.config.durations import Period
from pdbconf.config.errors import ConfigError, ConfigErrorKind
from pdbconf.config.schema import (
    Computed,
    IncomingField,
    IncomingSpec,
    OutgoingField,
    OutgoingSpec,
    RawShape,
    SectionSpec,
    ValueKind,
    as_raw_settings,
    convert_section,
    convert_value,
    defaulted_data,
    redact_config,
    strip_unknown_keys,
    unknown_keys,
    validate_outgoing,
)
from pdbconf.config.specs import DEVELOPER_SPEC, WRITE_DATABASE_SPEC, HostFacts, command_processing_spec

_PERIODS = st.builds(
    Period,
    days=st.integers(0, 60),
    hours=st.integers(0, 23),
    minutes=st.integers(0, 59),
).map(str)


@pytest.mark.unit
def test_developer_defaults() -> None:
    assert convert_section(DEVELOPER_SPEC, {}) == {"pretty-print": False, "max-enqueued": 1_000_000}
    assert convert_section(DEVELOPER_SPEC, None) == {"pretty-print": False, "max-enqueued": 1_000_000}


@pytest.mark.unit
def test_unknown_keys_are_warned_and_dropped(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)

    resolved = convert_section(DEVELOPER_SPEC, {"bogus": "1", "pretty-print": "TRUE"}, section="developer")

    assert resolved == {"pretty-print": True, "max-enqueued": 1_000_000}
    messages = [record.getMessage() for record in caplog.records]
    assert (
        "The configuration item `bogus` does not exist and should be removed from the config."
        in messages
    )
    warning = next(record for record in caplog.records if "bogus" in record.getMessage())
    assert warning.section == "developer"
    assert warning.key == "bogus"


@pytest.mark.unit
def test_set_difference_helpers() -> None:
    data = {"pretty-print": "true", "zzz": 1}

    assert unknown_keys(DEVELOPER_SPEC.incoming, data) == ["zzz"]
    assert strip_unknown_keys(DEVELOPER_SPEC.incoming, data) == {"pretty-print": "true"}


@pytest.mark.unit
def test_all_incoming_shape_problems_are_reported_together() -> None:
    with pytest.raises(ConfigError) as excinfo:
        convert_section(DEVELOPER_SPEC, {"max-enqueued": "abc", "pretty-print": 5}, section="developer")

    error = excinfo.value
    assert error.kind is ConfigErrorKind.SCHEMA
    assert {issue.path for issue in error.issues} == {"developer.max-enqueued", "developer.pretty-print"}
    assert "invalid config in [developer]" in str(error)


@pytest.mark.unit
def test_boolean_text_must_be_true_or_false() -> None:
    with pytest.raises(ConfigError) as excinfo:
        convert_section(DEVELOPER_SPEC, {"pretty-print": "yes"}, section="developer")

    assert excinfo.value.kind is ConfigErrorKind.CONVERSION
    assert excinfo.value.issues[0].path == "developer.pretty-print"
    assert "expected true or false" in excinfo.value.issues[0].message


@pytest.mark.unit
def test_none_counts_as_absent_for_defaults() -> None:
    spec = IncomingSpec((IncomingField("a", RawShape.TEXT, default="x"), IncomingField("b", RawShape.TEXT)))

    assert defaulted_data(spec, {"a": None, "b": None}) == {"a": "x"}


@pytest.mark.unit
def test_computed_defaults_are_called() -> None:
    spec = IncomingSpec((IncomingField("n", RawShape.INTEGER, default=Computed(lambda: 3, "three")),))

    assert defaulted_data(spec, {}) == {"n": 3}
    assert defaulted_data(spec, {"n": "9"}) == {"n": "9"}


@pytest.mark.unit
def test_required_incoming_field() -> None:
    spec = SectionSpec(
        IncomingSpec((IncomingField("name", RawShape.TEXT, required=True),)),
        OutgoingSpec((OutgoingField("name", ValueKind.STRING),)),
    )

    with pytest.raises(ConfigError) as excinfo:
        convert_section(spec, {}, section="thing")

    assert excinfo.value.kind is ConfigErrorKind.SCHEMA
    assert excinfo.value.issues[0].path == "thing.name"


@pytest.mark.unit
def test_choice_values_are_checked_on_input() -> None:
    with pytest.raises(ConfigError, match="facts-blacklist-type"):
        convert_section(WRITE_DATABASE_SPEC, {"facts-blacklist-type": "glob"}, section="database")


@pytest.mark.unit
def test_list_values_split_on_commas_and_semicolons() -> None:
    item = OutgoingField("facts-blacklist", ValueKind.STRING_LIST)

    assert convert_value(item, "a, b;c,,") == ["a", "b", "c"]
    assert convert_value(item, ["x", " y "]) == ["x", "y"]


@pytest.mark.unit
def test_minutes_days_and_periods_convert_to_typed_values() -> None:
    assert convert_value(OutgoingField("m", ValueKind.MINUTES), "60") == timedelta(hours=1)
    assert convert_value(OutgoingField("d", ValueKind.DAYS), 2) == timedelta(days=2)
    assert convert_value(OutgoingField("p", ValueKind.PERIOD), "14d") == Period(days=14)
    assert convert_value(OutgoingField("s", ValueKind.STRING), 5432) == "5432"


@pytest.mark.unit
def test_minimum_is_enforced_during_conversion() -> None:
    spec = command_processing_spec(HostFacts(cpu_count=4, memory_bytes=205_000))

    with pytest.raises(ConfigError) as excinfo:
        convert_section(spec, {"threads": "0"}, section="command-processing")

    assert excinfo.value.kind is ConfigErrorKind.CONVERSION
    assert "must be >= 1" in excinfo.value.issues[0].message


@pytest.mark.unit
def test_validate_outgoing_is_exact() -> None:
    spec = OutgoingSpec(
        (
            OutgoingField("a", ValueKind.INTEGER),
            OutgoingField("b", ValueKind.BOOLEAN, optional=True),
        )
    )

    assert validate_outgoing(spec, {"a": 1}) == {"a": 1}
    with pytest.raises(ConfigError) as excinfo:
        validate_outgoing(spec, {"b": "true", "c": 1}, section="s")

    messages = {issue.path: issue.message for issue in excinfo.value.issues}
    assert messages["s.c"] == "unknown field"
    assert messages["s.a"] == "missing required field"
    assert messages["s.b"].startswith("expected boolean")


@pytest.mark.unit
@settings(max_examples=50, deadline=None)
@given(
    host=st.from_regex(r"[a-z]{1,10}", fullmatch=True),
    max_age=st.integers(0, 10_000),
    stats=st.sampled_from(["true", "false", "TRUE", "False"]),
    report_ttl=_PERIODS,
    blacklist=st.lists(st.from_regex(r"[a-z_]{1,8}", fullmatch=True), max_size=4),
)
def test_resolving_the_raw_rendering_is_idempotent(
    host: str, max_age: int, stats: str, report_ttl: str, blacklist: list[str]
) -> None:
    raw = {
        "subname": f"//{host}:5432/puppetdb",
        "conn-max-age": str(max_age),
        "stats": stats,
        "report-ttl": report_ttl,
        "facts-blacklist": ",".join(blacklist),
    }

    resolved = convert_section(WRITE_DATABASE_SPEC, raw, section="database")
    again = convert_section(
        WRITE_DATABASE_SPEC,
        as_raw_settings(WRITE_DATABASE_SPEC.outgoing, resolved),
        section="database",
    )

    assert again == resolved


@pytest.mark.unit
def test_redact_config_masks_secret_keys() -> None:
    redacted = redact_config(
        {"database": {"password": "s3cret", "migrator-password": "m", "user": "pdb"}, "nested": [{"token": "t"}]}
    )

    assert redacted["database"] == {"password": "<redacted>", "migrator-password": "<redacted>", "user": "pdb"}
    assert redacted["nested"] == [{"token": "<redacted>"}]
    assert redact_config("not a mapping") == {}
