# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Base classes and registry for workload collaborators."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from benchctl.core.runtime import RuntimeContext
    from benchctl.core.schema import RunConfig
    from benchctl.core.topology import Host


class Workload(ABC):
    """Builds the commands for the loader, app stand-in, drivers and report.

    Loader and report commands run locally and are returned as argv lists.
    App and driver commands run on remote hosts and are returned as strings
    for the remote shell.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable name for logging."""
        ...

    @abstractmethod
    def loader_command(self, config: RunConfig, runtime: RuntimeContext) -> list[str]:
        """Command that loads test data through the servers in runtime.server_list."""
        ...

    @abstractmethod
    def app_command(self, config: RunConfig, runtime: RuntimeContext) -> str:
        """Remote command starting the app stand-in."""
        ...

    @abstractmethod
    def driver_command(self, driver: Host, config: RunConfig, runtime: RuntimeContext) -> str:
        """Remote command running one driver.

        The driver receives its own index, the full driver list, the server
        list, the app endpoint and its private result directory.
        """
        ...

    @abstractmethod
    def report_command(self, config: RunConfig, runtime: RuntimeContext) -> list[str]:
        """Command rendering the report over runtime.report_dir."""
        ...


# Registry of workloads
_WORKLOADS: dict[str, type[Workload]] = {}


def register_workload(name: str):
    """Decorator to register a workload class.

    Usage:
        @register_workload("java")
        class JavaWorkload(Workload):
            ...
    """

    def decorator(cls: type[Workload]) -> type[Workload]:
        _WORKLOADS[name] = cls
        return cls

    return decorator


def get_workload(workload_type: str) -> Workload:
    """Get a workload instance for the given type.

    Raises:
        ValueError: If the workload type is not registered
    """
    if workload_type not in _WORKLOADS:
        available = ", ".join(sorted(_WORKLOADS.keys()))
        raise ValueError(f"Unknown workload type: {workload_type}. Available: {available}")
    return _WORKLOADS[workload_type]()


def list_workloads() -> list[str]:
    """List all registered workload types."""
    return sorted(_WORKLOADS.keys())
