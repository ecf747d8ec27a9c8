# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Runtime context: values derived once from the config.

Usage:
    config = load_config(config_path)
    runtime = RuntimeContext.from_config(config)
"""

import socket
from dataclasses import dataclass
from pathlib import Path

from .schema import RunConfig
from .topology import FleetTopology, Host, driver_list, server_list


@dataclass(frozen=True)
class RuntimeContext:
    """Resolved paths, addresses and list parameters for one run."""

    hostname: str
    topology: FleetTopology
    server_list: str
    driver_list: str
    app_endpoint: str
    db_address: str

    resources_dir: Path
    controller_dir: Path
    report_dir: Path
    client_log_dir: Path
    remote_tmp: str

    local_jars: tuple[Path, ...]
    remote_jars: tuple[str, ...]

    @classmethod
    def from_config(cls, config: RunConfig, hostname: str | None = None) -> "RuntimeContext":
        hostname = hostname or socket.gethostname()
        resources_dir = Path(config.resources_dir or ".")
        remote_tmp = config.remote_tmp.rstrip("/") or "/"

        return cls(
            hostname=hostname,
            topology=FleetTopology.from_config(config, hostname),
            server_list=server_list(config.servers, config.server_port),
            driver_list=driver_list(config.drivers),
            app_endpoint=f"{config.app.address or hostname}:{config.app.port}",
            db_address=config.database.address or hostname,
            resources_dir=resources_dir,
            controller_dir=Path(config.controller.directory),
            report_dir=Path(config.report_dir),
            client_log_dir=Path(config.client_log_dir),
            remote_tmp=remote_tmp,
            local_jars=tuple(resources_dir / jar for jar in config.benchmark_jars),
            remote_jars=tuple(f"{remote_tmp}/{Path(jar).name}" for jar in config.benchmark_jars),
        )

    # =========================================================================
    # Local paths
    # =========================================================================

    @property
    def server_resources_dir(self) -> Path:
        """Directory holding domain.xml and host.xml."""
        return self.resources_dir / "server"

    @property
    def scripts_dir(self) -> Path:
        """Directory holding prepare/start/stop/add-user scripts."""
        return self.resources_dir / "bin"

    @property
    def local_classpath(self) -> str:
        return ":".join(str(jar) for jar in self.local_jars)

    @property
    def remote_classpath(self) -> str:
        return ":".join(self.remote_jars)

    @property
    def controller_config_dir(self) -> Path:
        return self.controller_dir / "domain" / "configuration"

    @property
    def controller_script(self) -> Path:
        return self.controller_dir / "bin" / "domain.sh"

    @property
    def app_log(self) -> Path:
        """Local capture of the app stand-in's remote output."""
        return self.client_log_dir / "app_server.log"

    def driver_log(self, driver: Host) -> Path:
        return self.client_log_dir / f"driver_{driver.index}-{driver.address}.log"

    # =========================================================================
    # Remote paths
    # =========================================================================

    def remote_path(self, name: str) -> str:
        return f"{self.remote_tmp}/{name}"

    @property
    def remote_distribution(self) -> str:
        return self.remote_path("keycloak-server.tar.gz")

    def driver_dir(self, driver: Host) -> str:
        """Private working directory of a driver on its own host."""
        return self.remote_path(driver.address)

    def driver_result_glob(self, driver: Host) -> str:
        return f"{self.driver_dir(driver)}/results/*/simulation.log"

    def collected_log(self, driver: Host) -> Path:
        """Local destination of a driver's result log."""
        return self.report_dir / f"{driver.address}-simulation.log"
