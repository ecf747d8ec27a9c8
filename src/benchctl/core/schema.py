# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Typed run configuration.

All sections are frozen marshmallow dataclasses. A RunConfig is built once by
core.config.load_config() and never mutated afterwards.

Example YAML:
    servers: [srv1, srv2]
    drivers: [drv1, drv2]
    distribution: /builds/keycloak-server-dist.tar.gz
    server_port: 8080
    database:
      address: db.example.com
    transport:
      rsh: ssh -o BatchMode=yes
    readiness:
      timeout_seconds: 900
"""

import re
import shlex
from dataclasses import field
from typing import ClassVar, List, Optional, Type

from marshmallow import Schema
from marshmallow_dataclass import dataclass

from .errors import ConfigurationError, ConfigurationMissing

DEFAULT_BENCHMARK_JARS = ["keycloak-benchmark.jar", "keycloak-benchmark-tests.jar"]


@dataclass(frozen=True)
class TransportConfig:
    """Commands used to reach remote hosts."""

    rsh: str = "ssh"
    rcp: str = "scp"

    Schema: ClassVar[Type[Schema]] = Schema


@dataclass(frozen=True)
class DatabaseConfig:
    """Database coordinates injected into the controller configuration.

    The database itself must already be running; benchctl does not set it up.
    """

    address: Optional[str] = None  # None -> local hostname
    name: str = "test"
    user: str = "test"
    password: str = "test"

    Schema: ClassVar[Type[Schema]] = Schema


@dataclass(frozen=True)
class ControllerConfig:
    """Local domain controller settings."""

    address: Optional[str] = None  # None -> local hostname
    directory: str = "/tmp/master"
    host_config: str = "host-master.xml"
    admin_password: str = "admin"

    Schema: ClassVar[Type[Schema]] = Schema


@dataclass(frozen=True)
class AppConfig:
    """Location of the app stand-in the drivers talk to."""

    address: Optional[str] = None  # None -> local hostname
    port: int = 8080
    ready_timeout_seconds: Optional[float] = None

    Schema: ClassVar[Type[Schema]] = Schema


@dataclass(frozen=True)
class ReadinessConfig:
    """How server readiness is detected in the start script output."""

    pattern: str = r"Keycloak.*started.* in"
    # The controller's embedded management layer logs a similar "started" line
    exclude: Optional[str] = "Host Controller"
    timeout_seconds: Optional[float] = None

    Schema: ClassVar[Type[Schema]] = Schema


@dataclass(frozen=True)
class RunConfig:
    """Complete configuration of one benchmark run."""

    servers: List[str] = field(default_factory=list)
    drivers: List[str] = field(default_factory=list)
    distribution: Optional[str] = None

    server_port: int = 8080
    loader_args: str = ""
    driver_args: str = ""

    skip_prepare: bool = False
    skip_loader: bool = False
    teardown_on_failure: bool = False
    driver_timeout_seconds: Optional[float] = None

    resources_dir: Optional[str] = None
    benchmark_jars: List[str] = field(default_factory=lambda: list(DEFAULT_BENCHMARK_JARS))
    remote_tmp: str = "/tmp"
    log_dir: str = ""
    report_dir: str = "/tmp/report"
    client_log_dir: str = "/tmp/benchctl-logs"

    workload: str = "java"
    java: str = "java"

    transport: TransportConfig = field(default_factory=TransportConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    controller: ControllerConfig = field(default_factory=ControllerConfig)
    app: AppConfig = field(default_factory=AppConfig)
    readiness: ReadinessConfig = field(default_factory=ReadinessConfig)

    Schema: ClassVar[Type[Schema]] = Schema

    def validate(self) -> None:
        """Check the settings every run needs.

        Raises:
            ConfigurationMissing: servers, drivers or distribution not set
            ConfigurationError: a readiness pattern is not a valid regex, or
                loader_args/driver_args do not split into shell words
        """
        if not self.servers:
            raise ConfigurationMissing("No servers defined.")
        if not self.drivers:
            raise ConfigurationMissing("No drivers defined.")
        if not self.distribution:
            raise ConfigurationMissing("Server distribution not defined.")

        for name, pattern in (("readiness.pattern", self.readiness.pattern), ("readiness.exclude", self.readiness.exclude)):
            if pattern is None:
                continue
            try:
                re.compile(pattern)
            except re.error as e:
                raise ConfigurationError(f"Invalid {name} {pattern!r}: {e}") from e

        for name, args in (("loader_args", self.loader_args), ("driver_args", self.driver_args)):
            try:
                shlex.split(args)
            except ValueError as e:
                raise ConfigurationError(f"Invalid {name} {args!r}: {e}") from e
