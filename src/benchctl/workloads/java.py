# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""JVM workload: loader, app stand-in, Engine drivers and Report from the benchmark jars."""

from __future__ import annotations

import shlex
from typing import TYPE_CHECKING

from .base import Workload, register_workload

if TYPE_CHECKING:
    from benchctl.core.runtime import RuntimeContext
    from benchctl.core.schema import RunConfig
    from benchctl.core.topology import Host

LOADER_CLASS = "org.jboss.perf.Loader"
APP_SERVER_CLASS = "org.jboss.perf.AppServer"
ENGINE_CLASS = "Engine"
REPORT_CLASS = "Report"


@register_workload("java")
class JavaWorkload(Workload):
    @property
    def name(self) -> str:
        return "Java"

    def loader_command(self, config: RunConfig, runtime: RuntimeContext) -> list[str]:
        return [
            config.java,
            "-cp",
            runtime.local_classpath,
            *shlex.split(config.loader_args),
            f"-Dtest.servers={runtime.server_list}",
            LOADER_CLASS,
        ]

    def app_command(self, config: RunConfig, runtime: RuntimeContext) -> str:
        return shlex.join(
            [
                config.java,
                "-cp",
                runtime.remote_classpath,
                "-Djava.net.preferIPv4Stack=true",
                APP_SERVER_CLASS,
            ]
        )

    def driver_command(self, driver: Host, config: RunConfig, runtime: RuntimeContext) -> str:
        # driver_args is inserted as written; the remote shell expands it
        launcher = shlex.join([config.java, "-cp", runtime.remote_classpath])
        properties = shlex.join(
            [
                f"-Dtest.servers={runtime.server_list}",
                f"-Dtest.app={runtime.app_endpoint}",
                f"-Dtest.driver={driver.index}",
                f"-Dtest.drivers={runtime.driver_list}",
                f"-Dtest.dir={runtime.driver_dir(driver)}",
                ENGINE_CLASS,
            ]
        )
        return " ".join(part for part in (launcher, config.driver_args.strip(), properties) if part)

    def report_command(self, config: RunConfig, runtime: RuntimeContext) -> list[str]:
        return [
            config.java,
            "-cp",
            runtime.local_classpath,
            f"-Dtest.report={runtime.report_dir}",
            REPORT_CLASS,
        ]
