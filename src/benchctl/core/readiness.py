# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Server readiness detection from live start-script output.

This module provides:
- matches_readiness(): Check one line against the readiness signature
- ReadinessWatcher: Follow N server streams concurrently until all are ready

Each stream gets its own reader thread. A reader looks for the first line
matching the readiness signature (and not the exclusion pattern), reports it,
then keeps reading and discarding output until the stream ends so the remote
process never blocks on a full pipe.
"""

import logging
import queue
import re
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING

from .errors import ReadinessNeverObserved, ReadinessTimedOut
from .remote import RemoteStream

if TYPE_CHECKING:
    from .schema import ReadinessConfig

logger = logging.getLogger(__name__)


@dataclass
class ReadinessEvent:
    """Result of following one server stream."""

    host: str
    ready: bool
    line: str | None = None
    message: str = ""


def matches_readiness(line: str, pattern: str | re.Pattern, exclude: str | re.Pattern | None = None) -> bool:
    """Check whether a log line announces that the server finished starting.

    Args:
        line: One line of server output
        pattern: Readiness signature (searched anywhere in the line)
        exclude: Disqualifying sub-pattern; lines matching it never count

    Returns:
        True if the line matches pattern and does not match exclude
    """
    if not re.search(pattern, line):
        return False
    return not (exclude and re.search(exclude, line))


class ReadinessWatcher:
    """Waits until every server stream has reported readiness.

    Usage:
        watcher = ReadinessWatcher.from_config(config.readiness)
        events = watcher.watch(streams)  # blocks until all ready

    There is no timeout unless one is given; a server that never logs the
    signature (and never exits) stalls watch() indefinitely.
    """

    def __init__(
        self,
        pattern: str,
        exclude: str | None = None,
        timeout: float | None = None,
        poll_interval: float = 1.0,
        on_ready: Callable[[ReadinessEvent], None] | None = None,
    ):
        self.pattern = re.compile(pattern)
        self.exclude = re.compile(exclude) if exclude else None
        self.timeout = timeout
        self.poll_interval = poll_interval
        self.on_ready = on_ready
        self._events: queue.Queue[tuple[int, ReadinessEvent]] = queue.Queue()
        self._threads: list[threading.Thread] = []

    @classmethod
    def from_config(
        cls,
        readiness: "ReadinessConfig",
        on_ready: Callable[[ReadinessEvent], None] | None = None,
    ) -> "ReadinessWatcher":
        return cls(
            pattern=readiness.pattern,
            exclude=readiness.exclude,
            timeout=readiness.timeout_seconds,
            on_ready=on_ready,
        )

    def matches(self, line: str) -> bool:
        return matches_readiness(line, self.pattern, self.exclude)

    @property
    def drain_threads(self) -> list[threading.Thread]:
        """Reader threads that are still consuming output."""
        return [t for t in self._threads if t.is_alive()]

    def join(self, timeout: float | None = None) -> bool:
        """Wait for all reader threads to finish. Returns True if they did."""
        deadline = None if timeout is None else time.monotonic() + timeout
        for thread in self._threads:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            thread.join(remaining)
        return not self.drain_threads

    def watch(self, streams: Sequence[RemoteStream]) -> list[ReadinessEvent]:
        """Follow all streams until each has reported readiness.

        Returns:
            One ready event per stream, in the order they arrived

        Raises:
            ReadinessNeverObserved: a stream ended before its server was ready
            ReadinessTimedOut: the optional timeout elapsed first
        """
        pending: dict[int, str] = {}
        for index, stream in enumerate(streams):
            pending[index] = stream.host
            thread = threading.Thread(
                target=self._follow,
                args=(index, stream),
                name=f"readiness-{stream.host}",
                daemon=True,
            )
            self._threads.append(thread)
            thread.start()

        logger.info("Waiting for %d servers to report readiness", len(pending))
        deadline = None if self.timeout is None else time.monotonic() + self.timeout
        ready: list[ReadinessEvent] = []

        while pending:
            wait = self.poll_interval
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise ReadinessTimedOut(list(pending.values()), self.timeout or 0.0)
                wait = min(wait, remaining)

            try:
                index, event = self._events.get(timeout=wait)
            except queue.Empty:
                continue

            if not event.ready:
                logger.error("%s", event.message)
                raise ReadinessNeverObserved(event.host)

            del pending[index]
            ready.append(event)
            logger.debug("%s ready, %d servers pending", event.host, len(pending))
            if self.on_ready is not None:
                self.on_ready(event)

        return ready

    def _follow(self, index: int, stream: RemoteStream) -> None:
        """Reader thread: detect readiness, then drain the stream to EOF."""
        host = stream.host
        reported = False
        lines = stream.lines()
        try:
            for line in lines:
                if self.matches(line):
                    self._events.put((index, ReadinessEvent(host=host, ready=True, line=line, message=f"{host} is ready")))
                    reported = True
                    break

            if not reported:
                self._events.put(
                    (index, ReadinessEvent(host=host, ready=False, message=f"Output of {host} ended before readiness"))
                )
                reported = True
                return

            drained = 0
            for _ in lines:
                drained += 1
            logger.debug("Output of %s ended after %d drained lines", host, drained)
        except (OSError, ValueError) as e:
            # Pipe closed underneath us
            logger.debug("Stopped reading %s: %s", host, e)
            if not reported:
                self._events.put((index, ReadinessEvent(host=host, ready=False, message=f"Lost output of {host}: {e}")))
        finally:
            exit_code = stream.close()
            logger.debug("Start command on %s exited with %s", host, exit_code)
