# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Tests for readiness detection on server output streams."""

import subprocess
import sys
import threading

import pytest
from conftest import HOST_CONTROLLER_LINE, READY_LINE, make_popen

from benchctl.core.errors import ReadinessNeverObserved, ReadinessTimedOut
from benchctl.core.readiness import ReadinessWatcher, matches_readiness
from benchctl.core.remote import RemoteStream
from benchctl.core.schema import ReadinessConfig

DEFAULTS = ReadinessConfig()


def watcher(**kwargs):
    kwargs.setdefault("poll_interval", 0.05)
    return ReadinessWatcher(DEFAULTS.pattern, DEFAULTS.exclude, **kwargs)


class BlockingStream:
    """Stream that emits some lines, then blocks until released."""

    def __init__(self, host, lines=()):
        self.host = host
        self._lines = list(lines)
        self.release = threading.Event()
        self.closed = False

    def lines(self):
        yield from self._lines
        self.release.wait(10)

    def close(self, timeout=None):
        self.closed = True
        return 0


class TestMatchesReadiness:
    """Readiness signature matching."""

    def test_ready_line(self):
        assert matches_readiness(READY_LINE, DEFAULTS.pattern, DEFAULTS.exclude)

    def test_host_controller_line_is_excluded(self):
        assert not matches_readiness(HOST_CONTROLLER_LINE, DEFAULTS.pattern, DEFAULTS.exclude)

    def test_host_controller_line_without_exclusion(self):
        assert matches_readiness(HOST_CONTROLLER_LINE, DEFAULTS.pattern)

    def test_unrelated_lines(self):
        assert not matches_readiness("INFO  [org.jboss.modules] JBoss Modules version 1.5.1", DEFAULTS.pattern)
        assert not matches_readiness("Keycloak starting", DEFAULTS.pattern)


class TestReadinessWatcher:
    """Concurrent watching of server streams."""

    def test_all_servers_ready(self):
        streams = [
            RemoteStream("srv1", make_popen(f"booting\n{READY_LINE}\n")),
            RemoteStream("srv2", make_popen(f"{HOST_CONTROLLER_LINE}\nbooting\n{READY_LINE}\nafter\n")),
        ]
        reported = []

        events = watcher(on_ready=reported.append).watch(streams)

        assert sorted(e.host for e in events) == ["srv1", "srv2"]
        assert all(e.ready and e.line == READY_LINE for e in events)
        assert reported == events

    def test_excluded_line_alone_does_not_count(self):
        stream = RemoteStream("srv1", make_popen(f"{HOST_CONTROLLER_LINE}\n", exit_code=1))

        with pytest.raises(ReadinessNeverObserved) as exc_info:
            watcher().watch([stream])
        assert exc_info.value.host == "srv1"

    def test_stream_closed_before_ready(self):
        streams = [
            RemoteStream("srv1", make_popen(f"{READY_LINE}\n")),
            RemoteStream("srv2", make_popen("Connection closed by remote host\n", exit_code=255)),
        ]

        with pytest.raises(ReadinessNeverObserved, match="srv2"):
            watcher().watch(streams)

    def test_timeout(self):
        ready = BlockingStream("srv1", [READY_LINE])
        stuck = BlockingStream("srv2", ["booting"])

        try:
            with pytest.raises(ReadinessTimedOut) as exc_info:
                watcher(timeout=0.3).watch([ready, stuck])
            assert exc_info.value.hosts == ["srv2"]
        finally:
            ready.release.set()
            stuck.release.set()

    def test_stream_drained_after_ready(self):
        """Output after the readiness line is consumed until the stream ends."""
        popen = make_popen(f"{READY_LINE}\n" + "log line\n" * 5000)
        w = watcher()

        w.watch([RemoteStream("srv1", popen)])

        assert w.join(timeout=10)
        assert popen.stdout.closed
        popen.wait.assert_called()

    def test_real_process_does_not_block_on_full_pipe(self):
        """A server that keeps logging after readiness runs to completion."""
        script = f"print({READY_LINE!r}, flush=True)\nfor i in range(200000):\n    print('x' * 40)\n"
        popen = subprocess.Popen(
            [sys.executable, "-c", script],
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            bufsize=1,
        )
        w = watcher()

        events = w.watch([RemoteStream("srv1", popen)])

        assert events[0].ready
        assert w.join(timeout=60)
        assert popen.returncode == 0

    def test_from_config(self):
        config = ReadinessConfig(pattern="UP", exclude=None, timeout_seconds=5)

        w = ReadinessWatcher.from_config(config)

        assert w.timeout == 5
        assert w.matches("service UP")
        assert w.exclude is None
