# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

import logging
import os
import stat

import pytest

from ign2kvm.core.file_ops import remove_tree, safe_unlink, scratch_dir, scratch_file


@pytest.mark.unit
class TestScratchDir:
    def test_removed_after_block(self, tmp_path):
        with scratch_dir(prefix="ign2kvm-test-", dir=tmp_path) as d:
            (d / "openstack").mkdir()
            (d / "openstack" / "user_data").write_bytes(b"x")
            assert d.parent == tmp_path
            assert d.name.startswith("ign2kvm-test-")

        assert not d.exists()
        assert list(tmp_path.iterdir()) == []

    def test_removed_on_error(self, tmp_path):
        with pytest.raises(RuntimeError):
            with scratch_dir(prefix="ign2kvm-test-", dir=tmp_path) as d:
                raise RuntimeError("boom")

        assert not d.exists()

    def test_unique_per_call(self, tmp_path):
        with scratch_dir(prefix="p-", dir=tmp_path) as a, scratch_dir(prefix="p-", dir=tmp_path) as b:
            assert a != b

    def test_creates_parent(self, tmp_path):
        parent = tmp_path / "work" / "nested"
        with scratch_dir(prefix="p-", dir=parent) as d:
            assert d.parent == parent


@pytest.mark.unit
class TestScratchFile:
    def test_reserves_empty_file(self, tmp_path):
        p = scratch_file(prefix="worker-0-", suffix=".iso", dir=tmp_path)

        assert p.exists()
        assert p.stat().st_size == 0
        assert p.name.startswith("worker-0-")
        assert p.suffix == ".iso"
        assert stat.S_IMODE(os.stat(p).st_mode) == 0o600


@pytest.mark.unit
class TestRemoval:
    def test_safe_unlink_missing_is_ok(self, tmp_path):
        assert safe_unlink(tmp_path / "nope") is True

    def test_safe_unlink_removes(self, tmp_path):
        p = tmp_path / "x.ign"
        p.write_text("{}")

        assert safe_unlink(p) is True
        assert not p.exists()

    def test_safe_unlink_failure_is_logged(self, tmp_path, caplog):
        d = tmp_path / "a-directory"
        d.mkdir()

        with caplog.at_level(logging.WARNING):
            assert safe_unlink(d, logger=logging.getLogger("ign2kvm.tests")) is False
        assert "Failed to remove temporary file" in caplog.text

    def test_remove_tree_missing_is_ok(self, tmp_path):
        assert remove_tree(tmp_path / "gone") is True
