# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

import logging
import sys

import pytest

from ign2kvm.core.logger import EmojiFormatter, Log
from ign2kvm.core.logging_utils import log_step


@pytest.fixture
def isolated_logger():
    name = "ign2kvm-logger-test"
    yield name
    lg = logging.getLogger(name)
    for h in list(lg.handlers):
        lg.removeHandler(h)
        h.close()


def _record(msg, *args, **ctx):
    record = logging.LogRecord("ign2kvm", logging.INFO, __file__, 1, msg, args, None)
    if ctx:
        record.ctx = ctx
    return record


@pytest.mark.unit
class TestLevels:
    @pytest.mark.parametrize("verbose,quiet,level", [
        (0, 0, logging.INFO),
        (1, 0, logging.DEBUG),
        (2, 0, logging.DEBUG),
        (2, 1, logging.WARNING),
        (0, 2, logging.ERROR),
    ])
    def test_level_from_flags(self, verbose, quiet, level):
        assert Log._level_from_flags(verbose, quiet) == level


@pytest.mark.unit
class TestSetup:
    def test_single_stderr_handler(self, capsys, isolated_logger):
        Log.setup(logger_name=isolated_logger)
        lg = Log.setup(1, color=False, logger_name=isolated_logger)

        assert len(lg.handlers) == 1
        assert lg.level == logging.DEBUG
        assert lg.propagate is False

        Log.ok(lg, "Config drive attached", target="vdb")
        err = capsys.readouterr().err
        assert "Config drive attached [target=vdb]" in err

    def test_bound_context_merges_with_call_context(self, capsys, isolated_logger):
        lg = Log.setup(color=False, logger_name=isolated_logger)

        Log.bind(lg, pool="default", volume="v").info("Declaring volume", extra={"ctx": {"step": "declare"}})

        line = capsys.readouterr().err.strip()
        assert line.endswith("Declaring volume [volume=v pool=default step=declare]")


@pytest.mark.unit
class TestEmojiFormatter:
    def test_pipeline_keys_lead_in_fixed_order(self):
        record = _record("Uploading %s", "v.iso", target="vdb", step="upload", image="/d.qcow2", pool="default", volume="v")

        line = EmojiFormatter(color=False).format(record)

        assert line.endswith("Uploading v.iso [volume=v pool=default image=/d.qcow2 step=upload target=vdb]")

    def test_no_context_no_brackets(self):
        line = EmojiFormatter(color=False).format(_record("plain"))
        assert line.endswith("plain")

    def test_multiline_values_stay_on_one_line(self):
        line = EmojiFormatter(color=False).format(_record("failed", step="mount", output="a\nb"))
        assert "\n" not in line
        assert "output=a\\nb" in line

    def test_exception_is_indented_below(self):
        try:
            raise RuntimeError("stream aborted")
        except RuntimeError:
            record = logging.LogRecord("ign2kvm", logging.ERROR, __file__, 1, "upload failed", (), sys.exc_info())

        head, *tail = EmojiFormatter(color=False).format(record).splitlines()
        assert "upload failed" in head
        assert tail and all(t.startswith("  ") for t in tail)
        assert "RuntimeError: stream aborted" in tail[-1]


@pytest.mark.unit
class TestLogStep:
    def test_reraises_and_logs(self, caplog):
        lg = logging.getLogger("ign2kvm.tests")

        with caplog.at_level(logging.INFO, logger="ign2kvm.tests"):
            with pytest.raises(ValueError):
                with log_step(lg, "Building config-drive"):
                    raise ValueError("no tool")

        assert "Building config-drive ..." in caplog.text
        assert "Building config-drive failed" in caplog.text
        assert "no tool" in caplog.text
