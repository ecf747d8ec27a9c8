# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Server stage mixin for RunOrchestrator.

Handles the domain controller and server lifecycle:
- start_controller(): local background controller (owned, killed at teardown)
- start_servers(): one streaming start command per server
- await_readiness(): block until every server logged its readiness line
- stop_fleet(): stop every server, then kill the controller tree
"""

import logging
import shlex
import signal
from typing import TYPE_CHECKING

from benchctl.core.errors import RemoteError
from benchctl.core.processes import ManagedProcess, ProcessGroup
from benchctl.core.readiness import ReadinessEvent, ReadinessWatcher
from benchctl.core.remote import RemoteStream, run_local

if TYPE_CHECKING:
    from benchctl.cli.summary import RunSummary
    from benchctl.core.remote import RemoteExecutor
    from benchctl.core.runtime import RuntimeContext
    from benchctl.core.schema import RunConfig

logger = logging.getLogger(__name__)

STREAM_JOIN_TIMEOUT = 30.0


class ServerStageMixin:
    """Mixin for controller and server startup, readiness and shutdown.

    Requires:
        self.config: RunConfig
        self.runtime: RuntimeContext
        self.executor: RemoteExecutor
        self.summary: RunSummary
        self.controller_group: ProcessGroup
    """

    # Type hints for mixin dependencies
    config: "RunConfig"
    runtime: "RuntimeContext"
    executor: "RemoteExecutor"
    summary: "RunSummary"
    controller_group: ProcessGroup
    controller: ManagedProcess | None
    readiness_watcher: ReadinessWatcher | None
    fleet_stopped: bool

    def start_controller(self) -> ManagedProcess:
        """Launch the domain controller as a local background process."""
        cmd = [
            str(self.runtime.controller_script),
            f"--host-config={self.config.controller.host_config}",
            "-bmanagement",
            self.runtime.topology.controller.address,
        ]
        logger.info("Starting domain controller...")
        logger.info("Command: %s", shlex.join(cmd))

        proc = run_local(cmd, background=True)
        assert not isinstance(proc, int)

        managed = ManagedProcess(
            name="domain_controller",
            popen=proc,
            node=self.runtime.hostname,
            critical=True,
        )
        self.controller_group.add_process(managed)
        self.controller = managed
        return managed

    def start_server_command(self, address: str) -> str:
        args = [self.runtime.remote_path("start_server.sh"), address, self.runtime.topology.controller.address]
        if self.config.log_dir:
            args.append(self.config.log_dir)
        return shlex.join(args)

    def start_servers(self) -> list[RemoteStream]:
        """Issue a non-blocking start command per server.

        Some remote shells only return once the whole remote process tree
        ends, so output is followed locally instead of waiting on the command.
        """
        streams: list[RemoteStream] = []
        for server in self.runtime.topology.servers:
            logger.info("Starting server %s", server)
            stream = self.executor.run(server.address, self.start_server_command(server.address), blocking=False)
            assert isinstance(stream, RemoteStream)
            streams.append(stream)
        return streams

    def await_readiness(self, streams: list[RemoteStream]) -> list[ReadinessEvent]:
        """Block until every server stream reported readiness."""
        watcher = ReadinessWatcher.from_config(self.config.readiness, on_ready=self._report_ready)
        self.readiness_watcher = watcher
        events = watcher.watch(streams)
        self.summary.ready = events
        logger.info("All %d servers are ready", len(events))
        return events

    def _report_ready(self, event: ReadinessEvent) -> None:
        logger.info("%s: %s", event.host, event.line)

    def stop_fleet(self) -> list[str]:
        """Stop every server (best effort) and kill the controller tree.

        Returns:
            Addresses of servers whose stop command failed
        """
        logger.info("Killing servers...")
        failures: list[str] = []

        for server in self.runtime.topology.servers:
            command = shlex.join([self.runtime.remote_path("stop_server.sh"), server.address])
            try:
                self.executor.run(server.address, command)
            except RemoteError as e:
                logger.error("Failed to stop %s: %s", server, e)
                failures.append(server.address)

        if self.controller is not None:
            self.controller_group.kill_tree(self.controller, signal.SIGKILL)

        # Start commands end once their servers are down
        if self.readiness_watcher is not None and not self.readiness_watcher.join(timeout=STREAM_JOIN_TIMEOUT):
            logger.warning("Output of %d servers still open after stop", len(self.readiness_watcher.drain_threads))

        self.fleet_stopped = True
        self.summary.stop_failures = failures
        logger.info("Servers killed.")
        return failures
