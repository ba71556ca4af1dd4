# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for exception handling and secret redaction."""
from __future__ import annotations

import pytest

from ign2kvm.core.exceptions import (
    CommandError,
    CommandTimeout,
    ConfigDriveError,
    Ign2KvmError,
    InjectionError,
    StorageError,
    format_exception_for_cli,
)


@pytest.mark.unit
class TestExceptionHierarchy:
    """Test exception class hierarchy and basic functionality."""

    def test_base_exception_creation(self):
        err = Ign2KvmError(code=1, msg="Test error")

        assert err.code == 1
        assert err.msg == "Test error"
        assert err.cause is None
        assert err.context == {}
        assert str(err) == "Test error"

    def test_subclasses(self):
        for cls in (StorageError, InjectionError):
            err = cls(msg="boom")
            assert isinstance(err, Ign2KvmError)
            assert err.code == 1

    def test_exception_with_context(self):
        err = Ign2KvmError(msg="Error").with_context(volume="worker-0", pool="default")

        assert err.context == {"volume": "worker-0", "pool": "default"}

    def test_message_is_one_line(self):
        err = Ign2KvmError(msg="first\nsecond\r\n  third")

        assert err.msg == "first second third"

    def test_exit_code_clamped(self):
        assert Ign2KvmError(code=256, msg="x").code == 255
        assert Ign2KvmError(code=-1, msg="x").code == 1
        assert Ign2KvmError(code="nope", msg="x").code == 1

    def test_long_message_truncated_except_config_drive(self):
        assert len(StorageError(msg="x" * 2000).msg) == 600
        assert ConfigDriveError(msg="x" * 2000).msg == "x" * 2000


@pytest.mark.unit
class TestCommandError:
    def test_fields(self):
        err = CommandError("failed", cmd=["sudo", "--preserve-env", "guestfish", "--remote", "--", "run"],
                           returncode=2, output="libguestfs: error\n")

        assert err.cmd == ["sudo", "--preserve-env", "guestfish", "--remote", "--", "run"]
        assert err.returncode == 2
        assert err.output == "libguestfs: error\n"
        assert err.context["cmd"] == "sudo --preserve-env guestfish --remote -- run"

    def test_timeout_is_command_error(self):
        err = CommandTimeout("too slow", cmd=["sleep", "5"], code=124)

        assert isinstance(err, CommandError)
        assert err.code == 124
        assert err.returncode is None
        assert err.output == ""


@pytest.mark.security
class TestSecretRedaction:
    """Test that secrets are redacted from error contexts."""

    def test_user_data_redacted(self):
        err = Ign2KvmError(msg="Upload failed").with_context(
            user_data=b"{\"ignition\": {}}",
            volume="worker-0",
        )

        d = err.to_dict()

        assert d["context"]["user_data"] == "***REDACTED***"
        assert d["context"]["volume"] == "worker-0"
        assert d["type"] == "Ign2KvmError"

    def test_multiple_secrets_redacted(self):
        err = Ign2KvmError(msg="Error").with_context(
            userData="payload",
            token="bearer-token-456",
            password="hunter2",
            normal_field="visible",
        )

        ctx = err.to_dict()["context"]

        assert ctx["userData"] == "***REDACTED***"
        assert ctx["token"] == "***REDACTED***"
        assert ctx["password"] == "***REDACTED***"
        assert ctx["normal_field"] == "visible"

    def test_cli_format_hides_secret_values(self):
        err = Ign2KvmError(msg="Error").with_context(secret_name="s3cr3t-value", pool="default")

        line = format_exception_for_cli(err, verbose=1)

        assert "s3cr3t-value" not in line
        assert "secret_name=<redacted>" in line
        assert "pool='default'" in line

    def test_cli_format_with_cause(self):
        err = Ign2KvmError(msg="wrapped", cause=OSError("disk full"))

        assert format_exception_for_cli(err) == "wrapped"
        assert "(cause: OSError: disk full)" in format_exception_for_cli(err, verbose=2)
        assert format_exception_for_cli(ValueError("plain"), verbose=2) == "ValueError: plain"
