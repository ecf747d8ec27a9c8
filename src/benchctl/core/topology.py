# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Fleet topology: which host plays which role.

Server and driver order is significant. Driver position is the driver index
passed to the workload, and server order is the order of the server list
handed to the loader and drivers.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .schema import RunConfig


class Role(str, Enum):
    CONTROLLER = "controller"
    SERVER = "server"
    DRIVER = "driver"
    APP = "app"


@dataclass(frozen=True)
class Host:
    """A fleet member."""

    address: str
    role: Role
    index: int = 0  # Position within its role

    def __str__(self) -> str:
        return self.address


def server_list(servers: Sequence[str], port: int) -> str:
    """Format the server list parameter.

    Every address appears once, in input order, suffixed with the port and
    followed by a comma (including the last one):

        server_list(["s1", "s2"], 8080) == "s1:8080,s2:8080,"
    """
    return "".join(f"{server}:{port}," for server in servers)


def driver_list(drivers: Sequence[str]) -> str:
    """Format the driver list parameter, e.g. "d1,d2,"."""
    return "".join(f"{driver}," for driver in drivers)


@dataclass(frozen=True)
class FleetTopology:
    """All hosts taking part in a run."""

    controller: Host
    servers: tuple[Host, ...]
    drivers: tuple[Host, ...]
    app: Host

    @classmethod
    def from_config(cls, config: "RunConfig", local_hostname: str) -> "FleetTopology":
        """Build the topology, defaulting unset addresses to the local host."""
        return cls(
            controller=Host(config.controller.address or local_hostname, Role.CONTROLLER),
            servers=tuple(Host(addr, Role.SERVER, i) for i, addr in enumerate(config.servers)),
            drivers=tuple(Host(addr, Role.DRIVER, i) for i, addr in enumerate(config.drivers)),
            app=Host(config.app.address or local_hostname, Role.APP),
        )

    @property
    def client_hosts(self) -> list[Host]:
        """Hosts that receive the benchmark artifacts (drivers, then app)."""
        return [*self.drivers, self.app]
