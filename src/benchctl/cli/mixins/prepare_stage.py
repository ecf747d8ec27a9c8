# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Prepare stage mixin for RunOrchestrator.

Stages the domain controller locally, provisions every server host and
copies the benchmark artifacts to every driver and the app host. Hosts are
provisioned one after another; the first failure aborts the run.
"""

import logging
import shlex
from pathlib import Path
from typing import TYPE_CHECKING

from benchctl.core.errors import StagingFailed
from benchctl.core.remote import run_local
from benchctl.core.staging import stage_controller

if TYPE_CHECKING:
    from benchctl.core.remote import RemoteExecutor
    from benchctl.core.runtime import RuntimeContext
    from benchctl.core.schema import RunConfig
    from benchctl.core.topology import Host

logger = logging.getLogger(__name__)


class PrepareStageMixin:
    """Mixin for the preparation stage.

    Requires:
        self.config: RunConfig
        self.runtime: RuntimeContext
        self.executor: RemoteExecutor
    """

    # Type hints for mixin dependencies
    config: "RunConfig"
    runtime: "RuntimeContext"
    executor: "RemoteExecutor"

    def prepare_fleet(self) -> None:
        """Prepare controller, servers, drivers and the app host."""
        self.prepare_controller()

        for server in self.runtime.topology.servers:
            self.prepare_server(server)

        for host in self.runtime.topology.client_hosts:
            self.prepare_client(host)

    def prepare_controller(self) -> None:
        logger.info("Preparing domain controller...")
        assert self.config.distribution is not None
        stage_controller(
            distribution=Path(self.config.distribution),
            directory=self.runtime.controller_dir,
            template=self.runtime.server_resources_dir / "domain.xml",
            database=self.config.database,
            db_address=self.runtime.db_address,
        )
        logger.info("Domain controller ready.")

    def prepare_server(self, server: "Host") -> None:
        """Copy distribution and scripts to a server, run its preparation and register its admin user."""
        assert self.config.distribution is not None

        logger.info("Copying server distribution to %s...", server)
        self.executor.copy_to([self.config.distribution], server.address, self.runtime.remote_distribution)

        host_config = self.runtime.server_resources_dir / "host.xml"
        scripts = sorted(self.runtime.scripts_dir.glob("*.sh"))
        self.executor.copy_to([host_config, *scripts], server.address, self.runtime.remote_tmp)

        logger.info("Preparing server %s...", server)
        prepare = self.runtime.remote_path("prepare.sh")
        self.executor.run(
            server.address,
            f"chmod a+x {shlex.quote(prepare)} && {shlex.join([prepare, server.address])}",
        )

        self.register_admin_user(server)
        logger.info("Server %s ready.", server)

    def register_admin_user(self, server: "Host") -> None:
        """Register the server's management user with the local controller."""
        cmd = [
            str(self.runtime.scripts_dir / "add-user.sh"),
            "-u",
            server.address,
            "-p",
            self.config.controller.admin_password,
            "-dc",
            str(self.runtime.controller_config_dir),
        ]
        try:
            exit_code = run_local(cmd)
        except OSError as e:
            raise StagingFailed(f"Could not run {cmd[0]}: {e}") from e

        if exit_code != 0:
            raise StagingFailed(f"Registering admin user for {server} failed with exit code {exit_code}")

    def prepare_client(self, host: "Host") -> None:
        """Copy the benchmark jars to a driver or the app host."""
        logger.info("Copying benchmark to %s", host)
        self.executor.copy_to(self.runtime.local_jars, host.address, self.runtime.remote_tmp)
        logger.info("Driver/app server %s ready.", host)
