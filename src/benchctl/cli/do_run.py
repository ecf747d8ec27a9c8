# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Main orchestration script for a distributed benchmark run.

Coordinates, in order:
1. Preparing the controller, servers, drivers and app host (skippable)
2. Starting the domain controller and all servers
3. Waiting until every server reports readiness
4. Loading test data (skippable)
5. Running the app stand-in and all drivers
6. Collecting driver results and rendering the report
7. Stopping the servers and killing the controller
"""

import argparse
import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from benchctl.cli.mixins import CollectStageMixin, DriverStageMixin, PrepareStageMixin, ServerStageMixin
from benchctl.cli.summary import RunSummary, print_run_summary
from benchctl.core.config import load_config
from benchctl.core.errors import BenchctlError, ConfigurationError
from benchctl.core.phases import PhaseTracker, RunPhase
from benchctl.core.processes import ManagedProcess, ProcessGroup
from benchctl.core.readiness import ReadinessWatcher
from benchctl.core.remote import RemoteExecutor
from benchctl.core.runtime import RuntimeContext
from benchctl.core.schema import RunConfig
from benchctl.logging_utils import setup_logging
from benchctl.workloads import Workload, get_workload

logger = logging.getLogger(__name__)


@dataclass
class RunOrchestrator(PrepareStageMixin, ServerStageMixin, DriverStageMixin, CollectStageMixin):
    """Phase state machine for one benchmark run.

    Usage:
        config = load_config(config_path)  # Returns typed RunConfig
        orchestrator = RunOrchestrator.from_config(config)
        exit_code = orchestrator.run()
    """

    config: RunConfig
    runtime: RuntimeContext
    executor: RemoteExecutor
    workload: Workload
    phases: PhaseTracker = field(default_factory=PhaseTracker)
    summary: RunSummary = field(default_factory=RunSummary)

    # Owned for the whole run; the controller is the only handle force-killed
    controller_group: ProcessGroup = field(default_factory=lambda: ProcessGroup("controller"), init=False)
    controller: ManagedProcess | None = field(default=None, init=False)
    app_process: ManagedProcess | None = field(default=None, init=False)
    readiness_watcher: ReadinessWatcher | None = field(default=None, init=False)
    fleet_stopped: bool = field(default=False, init=False)

    @classmethod
    def from_config(cls, config: RunConfig, hostname: str | None = None) -> "RunOrchestrator":
        return cls(
            config=config,
            runtime=RuntimeContext.from_config(config, hostname),
            executor=RemoteExecutor.from_config(config.transport),
            workload=get_workload(config.workload),
        )

    def _log_header(self) -> None:
        topology = self.runtime.topology
        logger.info("Run Orchestrator")
        logger.info("Controller: %s (%s)", topology.controller, self.runtime.controller_dir)
        logger.info("Servers: %s", ", ".join(h.address for h in topology.servers))
        logger.info("Drivers: %s", ", ".join(h.address for h in topology.drivers))
        logger.info("App: %s", self.runtime.app_endpoint)
        logger.info("Workload: %s", self.workload.name)
        if self.config.readiness.timeout_seconds is not None:
            logger.info("Readiness timeout: %.0fs", self.config.readiness.timeout_seconds)
        if self.config.driver_timeout_seconds is not None:
            logger.info("Driver timeout: %.0fs", self.config.driver_timeout_seconds)

    def _fail(self, error: BaseException) -> None:
        if not self.phases.current.is_terminal:
            self.phases.fail(error)

    def _needs_teardown(self) -> bool:
        """Whether a failed run still has to stop the fleet.

        Once drivers were launched teardown always runs; earlier fatal errors
        only trigger it when teardown_on_failure is set.
        """
        if self.fleet_stopped or not self.phases.reached(RunPhase.STARTING):
            return False
        if self.phases.reached(RunPhase.RUNNING_DRIVERS):
            return True
        return self.config.teardown_on_failure

    def run_phases(self) -> int:
        """Run every phase in order. Fatal errors propagate to run()."""
        if self.config.skip_prepare:
            logger.info("Skipping preparation, using existing controller and server state")
        else:
            self.phases.advance(RunPhase.PREPARING)
            self.prepare_fleet()

        self.phases.advance(RunPhase.STARTING)
        self.start_controller()
        streams = self.start_servers()

        self.phases.advance(RunPhase.AWAITING_READINESS)
        self.await_readiness(streams)

        if self.config.skip_loader:
            logger.info("Skipping data loading")
        else:
            self.phases.advance(RunPhase.LOADING_DATA)
            self.run_loader()

        self.phases.advance(RunPhase.RUNNING_DRIVERS)
        self.run_drivers()

        # From here on failures are aggregated so the fleet always gets stopped
        self.phases.advance(RunPhase.COLLECTING_RESULTS)
        self.collect_and_report()

        self.phases.advance(RunPhase.STOPPING_FLEET)
        if self.stop_fleet():
            self.summary.errors.append(BenchctlError(f"Failed to stop servers: {', '.join(self.summary.stop_failures)}"))

        if self.summary.errors:
            logger.error("Run finished with %d failures", len(self.summary.errors))
            self.phases.fail(self.summary.errors[0])
            return 1

        self.phases.advance(RunPhase.DONE)
        logger.info("Run completed successfully")
        return 0

    def run(self) -> int:
        """Run the benchmark and return the process exit code."""
        self._log_header()
        exit_code = 1

        try:
            exit_code = self.run_phases()

        except BenchctlError as e:
            logger.error("%s", e)
            self._fail(e)
            exit_code = 1

        except Exception as e:
            logger.exception("Error during run: %s", e)
            self._fail(e)
            exit_code = 1

        finally:
            if self.phases.current is RunPhase.FAILED and self._needs_teardown():
                failed_in = self.phases.failed_in.value if self.phases.failed_in else "unknown"
                logger.info("Tearing down after failure in phase %s", failed_in)
                self.stop_fleet()
            self.summary.phase = self.phases.current
            print_run_summary(self.summary)

        return exit_code


def build_overrides(args: argparse.Namespace) -> dict[str, Any]:
    """Translate CLI flags into config overrides (unset flags are omitted)."""
    overrides: dict[str, Any] = {}
    if args.skip_prepare:
        overrides["skip_prepare"] = True
    if args.skip_loader:
        overrides["skip_loader"] = True
    if args.teardown_on_failure:
        overrides["teardown_on_failure"] = True
    if args.readiness_timeout is not None:
        overrides["readiness"] = {"timeout_seconds": args.readiness_timeout}
    if args.driver_timeout is not None:
        overrides["driver_timeout_seconds"] = args.driver_timeout
    return overrides


def main(argv: list[str] | None = None):
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run a distributed benchmark")
    parser.add_argument("config", type=str, help="Path to YAML configuration file")
    parser.add_argument("--skip-prepare", action="store_true", help="Reuse already provisioned hosts")
    parser.add_argument("--skip-loader", action="store_true", help="Do not load test data")
    parser.add_argument(
        "--teardown-on-failure", action="store_true", help="Stop the fleet when startup or loading fails"
    )
    parser.add_argument("--readiness-timeout", type=float, default=None, help="Seconds to wait for servers")
    parser.add_argument("--driver-timeout", type=float, default=None, help="Seconds to wait for drivers")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args(argv)

    setup_logging(logging.DEBUG if args.verbose else logging.INFO)

    try:
        config = load_config(Path(args.config), build_overrides(args))
        orchestrator = RunOrchestrator.from_config(config)
    except (ConfigurationError, ValueError) as e:
        logger.error("%s", e)
        sys.exit(1)

    try:
        exit_code = orchestrator.run()
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        sys.exit(1)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
