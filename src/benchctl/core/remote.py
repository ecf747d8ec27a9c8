# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Remote execution over a configurable remote shell and remote copy command.

This module consolidates all process launching:
- RemoteExecutor.run(): blocking or streaming remote commands
- RemoteExecutor.spawn(): fire-and-forget remote commands
- RemoteExecutor.copy_to() / copy_from(): file transfer
- run_local(): local commands (controller, loader, report)

Every invocation spawns exactly one local process. The remote shell's
connection failures (ssh exits 255) are reported as UnreachableHost, which is
distinct from the remote command's own non-zero exit (RemoteCommandFailed).
"""

import logging
import shlex
import subprocess
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import IO, TYPE_CHECKING

from .errors import RemoteCommandFailed, TransferFailed, UnreachableHost

if TYPE_CHECKING:
    from .schema import TransportConfig

logger = logging.getLogger(__name__)

# Exit status ssh uses for its own errors (connection refused, auth, DNS)
TRANSPORT_ERROR_EXIT = 255


# ============================================================================
# Results and Streams
# ============================================================================


@dataclass
class RemoteResult:
    """Outcome of a blocking remote command."""

    host: str
    command: str
    exit_code: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.exit_code == 0


class RemoteStream:
    """Live output of one in-flight remote command.

    Owned by whoever opened it; close() closes the pipe and reaps the process.
    """

    def __init__(self, host: str, popen: subprocess.Popen, command: str = ""):
        self.host = host
        self.popen = popen
        self.command = command

    def lines(self) -> Iterator[str]:
        """Yield output lines (without trailing newline) until the command exits."""
        stdout = self.popen.stdout
        if stdout is None:
            return
        for line in iter(stdout.readline, ""):
            yield line.rstrip("\r\n")

    @property
    def exit_code(self) -> int | None:
        return self.popen.poll()

    def close(self, timeout: float | None = None) -> int | None:
        """Close the output pipe and wait for the process to exit."""
        if self.popen.stdout is not None:
            self.popen.stdout.close()
        try:
            return self.popen.wait(timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning("Stream from %s did not exit within %ss", self.host, timeout)
            return None

    def __enter__(self) -> "RemoteStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"RemoteStream(host={self.host!r}, pid={self.popen.pid})"


# ============================================================================
# Remote Executor
# ============================================================================


class RemoteExecutor:
    """Runs commands on and copies files to/from named hosts.

    Example:
        executor = RemoteExecutor(rsh="ssh -o BatchMode=yes", rcp="scp")
        executor.run("srv1", "/tmp/prepare.sh srv1")
        with executor.run("srv1", "/tmp/start_server.sh srv1", blocking=False) as stream:
            for line in stream.lines():
                ...
    """

    def __init__(self, rsh: str = "ssh", rcp: str = "scp"):
        self.rsh = shlex.split(rsh)
        self.rcp = shlex.split(rcp)

    @classmethod
    def from_config(cls, transport: "TransportConfig") -> "RemoteExecutor":
        return cls(rsh=transport.rsh, rcp=transport.rcp)

    def command(self, host: str, command: str) -> list[str]:
        """Build the local argv that runs command on host."""
        return [*self.rsh, host, command]

    def run(
        self,
        host: str,
        command: str,
        blocking: bool = True,
        check: bool = True,
    ) -> RemoteResult | RemoteStream:
        """Execute command on host.

        Args:
            host: Target host
            command: Command string, interpreted by the remote shell
            blocking: Wait for completion (RemoteResult) or stream output (RemoteStream)
            check: Raise RemoteCommandFailed on non-zero exit (blocking only)

        Raises:
            UnreachableHost: the remote shell could not reach the host
            RemoteCommandFailed: the command exited non-zero and check is set
        """
        if not blocking:
            return self.start(host, command)

        argv = self.command(host, command)
        logger.debug("Running on %s: %s", host, shlex.join(argv))

        try:
            proc = subprocess.run(
                argv,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
            )
        except FileNotFoundError as e:
            raise UnreachableHost(host, f"{self.rsh[0]} not found") from e

        result = RemoteResult(host=host, command=command, exit_code=proc.returncode, output=proc.stdout or "")
        if result.output:
            logger.debug("[%s] %s", host, result.output.rstrip())

        if result.exit_code == TRANSPORT_ERROR_EXIT:
            raise UnreachableHost(host, result.output.strip())
        if check and not result.ok:
            raise RemoteCommandFailed(host, command, result.exit_code)
        return result

    def start(self, host: str, command: str) -> RemoteStream:
        """Start command on host and return its live output immediately."""
        argv = self.command(host, command)
        logger.debug("Streaming from %s: %s", host, shlex.join(argv))

        try:
            proc = subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                errors="replace",
                bufsize=1,
            )
        except FileNotFoundError as e:
            raise UnreachableHost(host, f"{self.rsh[0]} not found") from e

        return RemoteStream(host, proc, command)

    def spawn(self, host: str, command: str, log_file: Path | None = None) -> subprocess.Popen:
        """Fire-and-forget: start command on host without reading its output.

        Output goes to log_file when given, otherwise it is discarded.

        Raises:
            UnreachableHost: the remote shell command is missing
        """
        argv = self.command(host, command)
        logger.debug("Spawning on %s: %s", host, shlex.join(argv))
        try:
            return _popen_to(argv, log_file)
        except FileNotFoundError as e:
            raise UnreachableHost(host, f"{self.rsh[0]} not found") from e

    # =========================================================================
    # File Transfer
    # =========================================================================

    def copy_command(self, sources: Sequence[str], destination: str) -> list[str]:
        return [*self.rcp, *sources, destination]

    def copy_from_command(self, host: str, remote_glob: str, local_path: Path) -> list[str]:
        # Passed unquoted; the remote side expands the glob
        return self.copy_command([f"{host}:{remote_glob}"], str(local_path))

    def copy_to(self, local_paths: Sequence[Path | str], host: str, remote_path: str) -> None:
        """Copy local files to host:remote_path.

        Raises:
            TransferFailed: the copy command failed or is missing
        """
        sources = [str(p) for p in local_paths]
        self._transfer(self.copy_command(sources, f"{host}:{remote_path}"), ", ".join(sources), f"{host}:{remote_path}")

    def copy_from(self, host: str, remote_glob: str, local_path: Path | str) -> None:
        """Copy files matching remote_glob on host to local_path.

        Raises:
            TransferFailed: the copy command failed or is missing
        """
        argv = self.copy_from_command(host, remote_glob, Path(local_path))
        self._transfer(argv, f"{host}:{remote_glob}", str(local_path))

    def spawn_copy_from(self, host: str, remote_glob: str, local_path: Path) -> subprocess.Popen:
        """Start copy_from in the background, for fan-out through a ProcessGroup.

        Raises:
            TransferFailed: the copy command is missing
        """
        argv = self.copy_from_command(host, remote_glob, local_path)
        logger.debug("Copying in background: %s", shlex.join(argv))
        try:
            return _popen_to(argv, None)
        except FileNotFoundError as e:
            raise TransferFailed(f"{host}:{remote_glob}", str(local_path)) from e

    def _transfer(self, argv: list[str], source: str, destination: str) -> None:
        logger.debug("Copying: %s", shlex.join(argv))
        try:
            proc = subprocess.run(argv, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True, errors="replace")
        except FileNotFoundError as e:
            raise TransferFailed(source, destination) from e

        if proc.returncode != 0:
            logger.debug("Copy output: %s", (proc.stdout or "").rstrip())
            raise TransferFailed(source, destination, proc.returncode)


# ============================================================================
# Local Commands
# ============================================================================


def _popen_to(argv: list[str], log_file: Path | None, cwd: Path | None = None) -> subprocess.Popen:
    stdout: int | IO = subprocess.DEVNULL
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        stdout = open(log_file, "ab")
    try:
        return subprocess.Popen(argv, cwd=cwd, stdin=subprocess.DEVNULL, stdout=stdout, stderr=subprocess.STDOUT)
    finally:
        # The child holds its own descriptor
        if log_file is not None:
            stdout.close()  # type: ignore[union-attr]


def run_local(
    command: Sequence[str],
    background: bool = False,
    log_file: Path | None = None,
    cwd: Path | None = None,
) -> subprocess.Popen | int:
    """Run a local command.

    Args:
        command: Command as list of strings
        background: If True, return Popen object; if False, wait and return exit code
        log_file: Where background output goes (discarded when None)
        cwd: Working directory

    Returns:
        Popen object if background=True, exit code if background=False
    """
    argv = [str(part) for part in command]
    logger.debug("Running local command: %s", shlex.join(argv))

    if background:
        return _popen_to(argv, log_file, cwd)

    result = subprocess.run(argv, cwd=cwd)
    return result.returncode
