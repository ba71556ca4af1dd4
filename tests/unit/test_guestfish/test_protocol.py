# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

import pytest

from ign2kvm.core.exceptions import ProtocolError
from ign2kvm.guestfish.protocol import (
    BootFilesystem,
    ListenBanner,
    MalformedReply,
    expect,
    parse_findfs_reply,
    parse_listen_banner,
)


@pytest.mark.unit
class TestListenBanner:
    def test_standard_banner(self):
        reply = parse_listen_banner("GUESTFISH_PID=4513; export GUESTFISH_PID\n")

        assert reply == ListenBanner(key="GUESTFISH_PID", value="4513")
        assert reply.env() == {"GUESTFISH_PID": "4513"}

    def test_no_separator(self):
        reply = parse_listen_banner("GUESTFISH_PID=4513")

        assert isinstance(reply, MalformedReply)
        assert reply.reason == "invalid output when starting guestfish"

    def test_too_many_segments(self):
        assert isinstance(parse_listen_banner("A=1; B=2; export A"), MalformedReply)

    @pytest.mark.parametrize("text", [
        "GUESTFISH_PID; export GUESTFISH_PID",
        "GUESTFISH_PID=1=2; export GUESTFISH_PID",
        "GUESTFISH_PID=; export GUESTFISH_PID",
        "=4513; export GUESTFISH_PID",
    ])
    def test_bad_pair(self, text):
        reply = parse_listen_banner(text)

        assert isinstance(reply, MalformedReply)
        assert reply.reason == "failed to get the guestfish PID"

    def test_empty(self):
        assert isinstance(parse_listen_banner(""), MalformedReply)


@pytest.mark.unit
class TestFindfsReply:
    def test_device(self):
        assert parse_findfs_reply("/dev/sda2\n") == BootFilesystem(device="/dev/sda2")

    def test_empty(self):
        reply = parse_findfs_reply("  \n")

        assert isinstance(reply, MalformedReply)
        assert reply.reason == "failed to get the boot filesystem"


@pytest.mark.unit
class TestExpect:
    def test_passes_success_through(self):
        banner = ListenBanner("GUESTFISH_PID", "1")

        assert expect(banner) is banner

    def test_raises_protocol_error(self):
        with pytest.raises(ProtocolError) as ei:
            expect(parse_findfs_reply(""))
        assert str(ei.value).startswith("failed to get the boot filesystem")
