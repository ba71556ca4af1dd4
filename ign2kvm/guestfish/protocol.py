# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# ign2kvm/guestfish/protocol.py
"""
Parsers for the plain-text replies of `guestfish --listen` / `--remote`.

Each parser returns either a success variant or MalformedReply; nothing here
raises. `expect()` turns a MalformedReply into a ProtocolError at the call
site that decides the reply is mandatory.

`guestfish --listen -a disk.img` prints, and then detaches:

    GUESTFISH_PID=4513; export GUESTFISH_PID

Every later `guestfish --remote` call must carry GUESTFISH_PID=4513 in its
environment to address that same daemon.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, TypeVar, Union

from ..core.exceptions import ProtocolError


@dataclass(frozen=True)
class MalformedReply:
    reason: str
    raw: str


@dataclass(frozen=True)
class ListenBanner:
    key: str
    value: str

    def env(self) -> Dict[str, str]:
        return {self.key: self.value}


@dataclass(frozen=True)
class BootFilesystem:
    device: str


ListenReply = Union[ListenBanner, MalformedReply]
FindfsReply = Union[BootFilesystem, MalformedReply]

T = TypeVar("T")


def parse_listen_banner(text: str) -> ListenReply:
    """
    >>> parse_listen_banner("GUESTFISH_PID=4513; export GUESTFISH_PID\\n")
    ListenBanner(key='GUESTFISH_PID', value='4513')
    >>> parse_listen_banner("GUESTFISH_PID=4513").reason
    'invalid output when starting guestfish'
    """
    segments = text.split(";")
    if len(segments) != 2:
        return MalformedReply("invalid output when starting guestfish", text)

    pair = segments[0].split("=")
    if len(pair) != 2:
        return MalformedReply("failed to get the guestfish PID", text)

    key, value = pair[0].strip(), pair[1].strip()
    if not key or not value:
        return MalformedReply("failed to get the guestfish PID", text)
    return ListenBanner(key=key, value=value)


def parse_findfs_reply(text: str) -> FindfsReply:
    device = text.strip()
    if not device:
        return MalformedReply("failed to get the boot filesystem", text)
    return BootFilesystem(device=device)


def expect(reply: Union[T, MalformedReply]) -> T:
    if isinstance(reply, MalformedReply):
        raise ProtocolError(msg=f"{reply.reason}: {reply.raw.strip()!r}", context={"reply": reply.raw})
    return reply
