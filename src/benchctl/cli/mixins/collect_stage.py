# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Collect stage mixin for RunOrchestrator.

Pulls every driver's result log concurrently and renders the report. All
failures here are recorded in the run summary instead of raised, so the
fleet is always stopped afterwards.
"""

import functools
import logging
import shlex
import shutil
from typing import TYPE_CHECKING

from benchctl.core.errors import ReportFailed, TransferFailed
from benchctl.core.processes import GroupResult, ProcessGroup
from benchctl.core.remote import run_local

if TYPE_CHECKING:
    from benchctl.cli.summary import RunSummary
    from benchctl.core.remote import RemoteExecutor
    from benchctl.core.runtime import RuntimeContext
    from benchctl.core.schema import RunConfig
    from benchctl.workloads import Workload

logger = logging.getLogger(__name__)


class CollectStageMixin:
    """Mixin for result collection and reporting.

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

    def collect_results(self) -> GroupResult:
        """Copy each driver's simulation log into the local report directory."""
        logger.info("Collecting simulation data...")
        report_dir = self.runtime.report_dir
        shutil.rmtree(report_dir, ignore_errors=True)
        report_dir.mkdir(parents=True)

        group = ProcessGroup("collect")
        transfers = {}
        not_started = []
        for driver in self.runtime.topology.drivers:
            source = self.runtime.driver_result_glob(driver)
            destination = self.runtime.collected_log(driver)
            name = f"collect_{driver.index}"
            transfers[name] = (f"{driver.address}:{source}", str(destination))
            try:
                group.spawn(
                    name,
                    functools.partial(self.executor.spawn_copy_from, driver.address, source, destination),
                    node=driver.address,
                )
            except (OSError, TransferFailed) as e:
                logger.error("Could not start copy from %s: %s", driver, e)
                not_started.append(name)

        result = group.wait_all()
        for name in not_started:
            result.failed[name] = None
        self.summary.transfers = result

        for name, exit_code in result.failed.items():
            source, destination = transfers[name]
            error = TransferFailed(source, destination, exit_code)
            logger.error("%s", error)
            self.summary.errors.append(error)

        return result

    def generate_report(self) -> None:
        """Render the report over the collected logs.

        Raises:
            ReportFailed: the report command exited non-zero
        """
        cmd = self.workload.report_command(self.config, self.runtime)
        logger.info("Generating report in %s", self.runtime.report_dir)
        logger.info("Command: %s", shlex.join(cmd))

        exit_code = run_local(cmd)
        assert isinstance(exit_code, int)
        self.summary.report_exit_code = exit_code
        if exit_code != 0:
            raise ReportFailed(exit_code)

    def collect_and_report(self) -> None:
        """Collect results and render the report, recording failures instead of raising."""
        try:
            self.collect_results()
        except OSError as e:
            logger.error("Could not collect results: %s", e)
            self.summary.errors.append(TransferFailed("drivers", str(self.runtime.report_dir)))
            return

        try:
            self.generate_report()
        except ReportFailed as e:
            logger.error("%s", e)
            self.summary.errors.append(e)
        except OSError as e:
            logger.error("Could not run report: %s", e)
            self.summary.errors.append(ReportFailed(-1))
