"""
Tests for the exception hierarchy.
"""

from svcwatch.config.constants import ConfigErrorKind, Defaults, ProbeFailureKind
from svcwatch.exceptions import (
    AlreadyRunningError,
    DuplicateNameError,
    InvalidAddressError,
    ListenerFailure,
    ProbeTimeout,
    ProbeUnreachable,
)


def test_config_error_to_dict():
    error = InvalidAddressError("nowhere", protocol="TCP", reason="missing port")
    data = error.to_dict()

    assert data["type"] == "InvalidAddressError"
    assert data["error_code"] == 2002
    assert data["details"]["kind"] == ConfigErrorKind.INVALID_ADDRESS.value
    assert data["details"]["reason"] == "missing port"
    assert "missing port" in error.message


def test_kind_per_class():
    assert DuplicateNameError("db").kind is ConfigErrorKind.DUPLICATE_NAME
    assert AlreadyRunningError().kind is ConfigErrorKind.ALREADY_RUNNING


def test_long_values_are_truncated_in_details():
    error = DuplicateNameError("x" * 500)
    assert len(error.details["value"]) == 103


def test_probe_diagnostic():
    error = ProbeTimeout("no answer after 5000ms", address="db:5432")
    assert error.kind is ProbeFailureKind.TIMEOUT
    assert error.diagnostic == "Timeout: no answer after 5000ms"
    assert error.details["address"] == "db:5432"


def test_probe_diagnostic_is_bounded():
    error = ProbeUnreachable("y" * 1000)
    assert len(error.diagnostic) == Defaults.DIAGNOSTIC_MAX_LENGTH
    assert error.diagnostic.startswith("Unreachable: ")


def test_listener_failure_log_format():
    cause = RuntimeError("boom")
    failure = ListenerFailure("pager", "db", cause)
    text = failure.log_format()
    assert "ListenerFailure" in text
    assert "boom" in text
    assert failure.cause is cause
