# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Tracking of locally spawned processes that launch remote work.

This module provides:
- ManagedProcess: a named Popen handle with its host and log file
- ProcessGroup: fan-out/fan-in over ManagedProcesses
- kill_process_tree(): force-terminate a process and its descendants
"""

import logging
import signal
import subprocess
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

import psutil

logger = logging.getLogger(__name__)


@dataclass
class ManagedProcess:
    """A locally spawned process, typically `ssh host <command>`."""

    name: str
    popen: subprocess.Popen
    log_file: Path | None = None
    node: str | None = None
    critical: bool = True

    @property
    def pid(self) -> int:
        return self.popen.pid

    @property
    def is_running(self) -> bool:
        return self.popen.poll() is None

    @property
    def exit_code(self) -> int | None:
        return self.popen.poll()


NamedProcesses = dict[str, ManagedProcess]


@dataclass
class GroupResult:
    """Aggregated outcome of ProcessGroup.wait_all()."""

    succeeded: list[str] = field(default_factory=list)
    failed: dict[str, int | None] = field(default_factory=dict)  # None = killed at timeout

    @property
    def ok(self) -> bool:
        return not self.failed


def kill_process_tree(pid: int, sig: int = signal.SIGKILL, timeout: float = 5.0) -> None:
    """Send sig to a process and all of its descendants, children first.

    Processes that already exited are ignored. Descendants are waited for
    up to timeout; reaping pid itself is left to its owner.
    """
    try:
        parent = psutil.Process(pid)
    except psutil.NoSuchProcess:
        logger.debug("Process %d already gone", pid)
        return

    try:
        children = parent.children(recursive=True)
    except psutil.NoSuchProcess:
        children = []

    procs = [*reversed(children), parent]
    for proc in procs:
        try:
            proc.send_signal(sig)
        except psutil.NoSuchProcess:
            pass
        except psutil.AccessDenied:
            logger.warning("Not allowed to signal process %d", proc.pid)

    _, alive = psutil.wait_procs(children, timeout=timeout)
    for proc in alive:
        logger.warning("Process %d still alive after signal %d", proc.pid, sig)


class ProcessGroup:
    """A set of concurrently running processes joined as one unit.

    Registration is thread-safe so spawning tasks may add handles while a
    single consumer later calls wait_all().

    Usage:
        group = ProcessGroup("drivers")
        for driver in drivers:
            group.spawn(f"driver_{driver}", lambda: executor.spawn(driver, cmd), node=driver)
        result = group.wait_all()
    """

    def __init__(self, name: str):
        self.name = name
        self._lock = threading.Lock()
        self._processes: NamedProcesses = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._processes)

    @property
    def processes(self) -> NamedProcesses:
        """Snapshot of tracked processes."""
        with self._lock:
            return dict(self._processes)

    def add_process(self, process: ManagedProcess) -> None:
        with self._lock:
            if process.name in self._processes:
                raise ValueError(f"Process {process.name} already tracked in group {self.name}")
            self._processes[process.name] = process
        logger.debug("[%s] tracking %s (pid %d)", self.name, process.name, process.pid)

    def add_processes(self, processes: NamedProcesses) -> None:
        for process in processes.values():
            self.add_process(process)

    def spawn(
        self,
        name: str,
        start: Callable[[], subprocess.Popen],
        node: str | None = None,
        log_file: Path | None = None,
    ) -> ManagedProcess:
        """Start a task and track its handle.

        Args:
            name: Unique name within the group
            start: Zero-argument callable that launches the process
            node: Host the task works on (for reporting)
            log_file: Where the task writes its output, if anywhere

        Returns:
            The tracked ManagedProcess
        """
        managed = ManagedProcess(name=name, popen=start(), log_file=log_file, node=node)
        self.add_process(managed)
        return managed

    def check_failures(self) -> list[ManagedProcess]:
        """Return critical processes that already exited non-zero."""
        return [
            p for p in self.processes.values() if p.critical and p.exit_code is not None and p.exit_code != 0
        ]

    def wait_all(self, timeout: float | None = None) -> GroupResult:
        """Block until every tracked process has finished.

        A failing process never cancels its peers; all of them are waited for
        and reported. With a timeout, processes still running at the deadline
        are killed and reported as failed with exit code None.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        result = GroupResult()

        for name, process in self.processes.items():
            exit_code: int | None
            try:
                remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
                exit_code = process.popen.wait(timeout=remaining)
            except subprocess.TimeoutExpired:
                logger.error("[%s] %s still running after %.0fs, killing it", self.name, name, timeout)
                self.kill_tree(process)
                exit_code = None

            if exit_code == 0:
                result.succeeded.append(name)
            else:
                result.failed[name] = exit_code
                logger.error("[%s] %s on %s failed (exit code %s)", self.name, name, process.node, exit_code)

        logger.info(
            "[%s] %d/%d processes succeeded",
            self.name,
            len(result.succeeded),
            len(result.succeeded) + len(result.failed),
        )
        return result

    def kill_tree(self, process: ManagedProcess, sig: int = signal.SIGKILL) -> None:
        """Force-terminate a tracked process and everything it spawned."""
        logger.info("[%s] killing %s (pid %d) with signal %d", self.name, process.name, process.pid, sig)
        kill_process_tree(process.pid, sig)
        try:
            process.popen.wait(timeout=5)
        except subprocess.TimeoutExpired:
            logger.warning("[%s] %s did not exit after signal %d", self.name, process.name, sig)

    def print_failure_details(self) -> None:
        """Log the name, host and log file of every failed process."""
        for process in self.check_failures():
            logger.error(
                "  %s on %s exited with %s (log: %s)",
                process.name,
                process.node or "localhost",
                process.exit_code,
                process.log_file or "-",
            )
