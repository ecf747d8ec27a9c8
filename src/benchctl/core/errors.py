# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Exception hierarchy for benchmark runs.

Pre-flight:  ConfigurationError, ConfigurationMissing
Transport:   UnreachableHost, RemoteCommandFailed, TransferFailed
Readiness:   ReadinessNeverObserved, ReadinessTimedOut
Workloads:   LoaderFailed, ReportFailed, StagingFailed
Drivers:     DriverFailed (recorded, never propagated past the orchestrator)
"""


class BenchctlError(Exception):
    """Base class for all benchctl errors."""


class ConfigurationError(BenchctlError):
    """Config file is missing, unreadable or has invalid values."""


class ConfigurationMissing(ConfigurationError):
    """A required setting (servers, drivers, distribution) is not defined."""


class RemoteError(BenchctlError):
    """Base class for failures while talking to a remote host."""


class UnreachableHost(RemoteError):
    """The remote shell could not reach the host at all."""

    def __init__(self, host: str, detail: str = ""):
        self.host = host
        self.detail = detail
        msg = f"Host {host} is unreachable"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)


class RemoteCommandFailed(RemoteError):
    """The remote command ran but exited with a non-zero status."""

    def __init__(self, host: str, command: str, exit_code: int):
        self.host = host
        self.command = command
        self.exit_code = exit_code
        super().__init__(f"Command on {host} failed with exit code {exit_code}: {command}")


class TransferFailed(RemoteError):
    """A remote copy in either direction did not complete."""

    def __init__(self, source: str, destination: str, exit_code: int | None = None):
        self.source = source
        self.destination = destination
        self.exit_code = exit_code
        super().__init__(f"Transfer {source} -> {destination} failed (exit code {exit_code})")


class ReadinessNeverObserved(BenchctlError):
    """A server output stream closed before the readiness signature appeared."""

    def __init__(self, host: str):
        self.host = host
        super().__init__(f"Server {host} exited before reporting readiness")


class ReadinessTimedOut(BenchctlError):
    """Some servers did not report readiness within the configured timeout."""

    def __init__(self, hosts: list[str], timeout: float):
        self.hosts = hosts
        self.timeout = timeout
        super().__init__(f"Servers not ready after {timeout:.0f}s: {', '.join(hosts)}")


class CollaboratorFailed(BenchctlError):
    """Base class for failures of the loader, report and staging steps."""


class LoaderFailed(CollaboratorFailed):
    def __init__(self, exit_code: int):
        self.exit_code = exit_code
        super().__init__(f"Failed to load data! (exit code {exit_code})")


class ReportFailed(CollaboratorFailed):
    def __init__(self, exit_code: int):
        self.exit_code = exit_code
        super().__init__(f"Report generation failed with exit code {exit_code}")


class StagingFailed(CollaboratorFailed):
    """Local staging of the domain controller failed."""


class DriverFailed(BenchctlError):
    """A driver process finished unsuccessfully."""

    def __init__(self, host: str, index: int, exit_code: int | None):
        self.host = host
        self.index = index
        self.exit_code = exit_code
        super().__init__(f"Driver {index} on {host} failed (exit code {exit_code})")


class InvalidPhaseTransition(BenchctlError):
    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(f"Cannot move from phase {current.value} to {target.value}")
