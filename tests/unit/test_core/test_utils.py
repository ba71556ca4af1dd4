# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the U helper class."""
from __future__ import annotations

import unittest

from ign2kvm.core.utils import U
from ign2kvm.core.xml_utils import xml_escape


class TestHumanBytes(unittest.TestCase):
    def test_units(self):
        self.assertEqual(U.human_bytes(None), "unknown")
        self.assertEqual(U.human_bytes(512), "512 B")
        self.assertEqual(U.human_bytes(2048), "2.00 KiB")
        self.assertEqual(U.human_bytes(3 * 1024 ** 3), "3.00 GiB")


class TestText(unittest.TestCase):
    def test_pretty_cmd_quotes_spaces(self):
        self.assertEqual(U.pretty_cmd(["guestfish", "--remote", "--", "upload", "/tmp/a b.ign"]),
                         "guestfish --remote -- upload '/tmp/a b.ign'")

    def test_to_text(self):
        self.assertEqual(U.to_text(None), "")
        self.assertEqual(U.to_text(b"ok\xff"), "ok�")
        self.assertEqual(U.to_text(5), "5")

    def test_one_line(self):
        self.assertEqual(U.one_line("a\n  b\tc"), "a b c")
        self.assertEqual(len(U.one_line("x" * 1000, limit=50)), 50)

    def test_xml_escape(self):
        self.assertEqual(xml_escape("/pool/it's & <x>"), "/pool/it&apos;s &amp; &lt;x&gt;")


if __name__ == "__main__":
    unittest.main()
