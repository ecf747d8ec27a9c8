# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Driver stage mixin for RunOrchestrator.

Handles data loading, the app stand-in and the fan-out of driver processes.
"""

import functools
import logging
import shlex
from typing import TYPE_CHECKING

from benchctl.core.errors import BenchctlError, DriverFailed, LoaderFailed, RemoteError
from benchctl.core.health import wait_for_http
from benchctl.core.processes import GroupResult, ManagedProcess, ProcessGroup
from benchctl.core.remote import run_local

if TYPE_CHECKING:
    from benchctl.cli.summary import RunSummary
    from benchctl.core.remote import RemoteExecutor
    from benchctl.core.runtime import RuntimeContext
    from benchctl.core.schema import RunConfig
    from benchctl.workloads import Workload

logger = logging.getLogger(__name__)


class DriverStageMixin:
    """Mixin for the loading and driver stages.

    Requires:
        self.config: RunConfig
        self.runtime: RuntimeContext
        self.executor: RemoteExecutor
        self.workload: Workload
        self.summary: RunSummary
    """

    # Type hints for mixin dependencies
    config: "RunConfig"
    runtime: "RuntimeContext"
    executor: "RemoteExecutor"
    workload: "Workload"
    summary: "RunSummary"
    app_process: ManagedProcess | None

    def run_loader(self) -> None:
        """Load test data through the servers.

        Raises:
            LoaderFailed: the loader exited non-zero
        """
        cmd = self.workload.loader_command(self.config, self.runtime)
        logger.info("Loading data to server...")
        logger.info("Command: %s", shlex.join(cmd))

        exit_code = run_local(cmd)
        if exit_code != 0:
            assert isinstance(exit_code, int)
            raise LoaderFailed(exit_code)
        logger.info("Data loaded")

    def start_app(self) -> ManagedProcess:
        """Start the app stand-in on its host without waiting for it."""
        app = self.runtime.topology.app
        cmd = self.workload.app_command(self.config, self.runtime)
        logger.info("Starting dummy app server on %s...", app)
        logger.info("Command: %s", cmd)

        managed = ManagedProcess(
            name="app_server",
            popen=self.executor.spawn(app.address, cmd, log_file=self.runtime.app_log),
            log_file=self.runtime.app_log,
            node=app.address,
            critical=False,
        )
        self.app_process = managed

        timeout = self.config.app.ready_timeout_seconds
        if timeout:
            url = f"http://{self.runtime.app_endpoint}/"
            if not wait_for_http(url, timeout=timeout):
                logger.warning("App server at %s did not answer, starting drivers anyway", url)

        return managed

    def run_drivers(self) -> GroupResult:
        """Start every driver concurrently and wait for all of them.

        A failing driver, including one that could not be launched, is
        recorded but never stops its peers.
        """
        self.start_app()

        logger.info("Starting test...")
        group = ProcessGroup("drivers")
        drivers = {}
        not_launched = []

        for driver in self.runtime.topology.drivers:
            driver_dir = self.runtime.driver_dir(driver)
            try:
                self.executor.run(driver.address, shlex.join(["rm", "-rf", driver_dir]), check=False)
            except RemoteError as e:
                logger.warning("Could not clean %s on %s: %s", driver_dir, driver, e)

            name = f"driver_{driver.index}"
            log_file = self.runtime.driver_log(driver)
            try:
                cmd = self.workload.driver_command(driver, self.config, self.runtime)
                logger.info("Driver %d on %s: %s", driver.index, driver, cmd)
                group.spawn(
                    name,
                    functools.partial(self.executor.spawn, driver.address, cmd, log_file=log_file),
                    node=driver.address,
                    log_file=log_file,
                )
            except (OSError, BenchctlError, ValueError) as e:
                logger.error("Could not launch driver %d on %s: %s", driver.index, driver, e)
                not_launched.append(name)
            drivers[name] = driver

        result = group.wait_all(timeout=self.config.driver_timeout_seconds)
        for name in not_launched:
            result.failed[name] = None
        self.summary.drivers = result

        if not result.ok:
            group.print_failure_details()
        for name, exit_code in result.failed.items():
            driver = drivers[name]
            self.summary.errors.append(DriverFailed(driver.address, driver.index, exit_code))
        return result
