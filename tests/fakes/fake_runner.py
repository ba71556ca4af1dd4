# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

import logging

from ign2kvm.core.exceptions import CommandError


class FakeRunner:
    '''
    CommandRunner stand-in that records every CommandSpec and answers from a
    script instead of spawning processes.

    replies maps the first word after `--remote --` (or the executable, for
    anything else) to a str, an exception instance, or a callable(spec).
    '''

    def __init__(self, logger=None, *, banner="GUESTFISH_PID=4513; export GUESTFISH_PID\n", replies=None):
        self.logger = logger or logging.getLogger("ign2kvm.tests")
        self.banner = banner
        self.replies = dict(replies or {})
        self.calls = []
        self.reaped = 0

    @staticmethod
    def word(spec):
        args = list(spec.args)
        if args[:2] == ["--remote", "--"] and len(args) > 2:
            return args[2]
        return spec.executable

    def _answer(self, reply, spec):
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            return reply(spec)
        return reply

    def run(self, spec, *, timeout=None, cancel=None):
        self.calls.append(("run", spec))
        if cancel is not None and cancel.is_set():
            raise CommandError("command cancelled", cmd=spec.argv(), code=130)
        return self._answer(self.replies.get(self.word(spec), ""), spec)

    def start(self, spec, *, timeout=None, cancel=None):
        self.calls.append(("start", spec))
        return self._answer(self.banner, spec)

    def reap(self):
        self.reaped += 1

    def remote_words(self):
        return [self.word(spec) for mode, spec in self.calls if mode == "run" and "--remote" in spec.args]

    def remote_specs(self):
        return [spec for mode, spec in self.calls if mode == "run" and "--remote" in spec.args]


def fail(word, output="boom", returncode=1):
    return CommandError(
        f"error running command 'guestfish --remote -- {word}': exit status {returncode}: {output}",
        cmd=["guestfish", "--remote", "--", word],
        returncode=returncode,
        output=output,
    )
