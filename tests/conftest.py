# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Shared fixtures: run configs, fake popens and a local stand-in for ssh."""

import io
from subprocess import Popen
from unittest.mock import MagicMock

import pytest

from benchctl.core.config import load_config_dict

READY_LINE = (
    "12:00:08,123 INFO  [org.jboss.as] (Controller Boot Thread) WFLYSRV0025: "
    "Keycloak 1.9.0.Final (WildFly Core 2.0.10.Final) started in 8123ms - Started 512 of 890 services"
)
HOST_CONTROLLER_LINE = (
    "12:00:02,001 INFO  [org.jboss.as] (Controller Boot Thread) WFLYSRV0025: "
    "Keycloak 1.9.0.Final (WildFly Core 2.0.10.Final) (Host Controller) started in 2001ms"
)


def make_popen(output: str = "", exit_code: int = 0, pid: int = 4242) -> MagicMock:
    """A Popen double whose stdout yields output and which exits with exit_code."""
    popen = MagicMock(spec=Popen)
    popen.pid = pid
    popen.stdout = io.StringIO(output)
    popen.wait.return_value = exit_code
    popen.poll.return_value = exit_code
    popen.returncode = exit_code
    return popen


@pytest.fixture
def base_config_dict(tmp_path):
    return {
        "servers": ["srv1", "srv2"],
        "drivers": ["drv1", "drv2"],
        "distribution": str(tmp_path / "keycloak-server.tar.gz"),
        "resources_dir": str(tmp_path / "resources"),
        "report_dir": str(tmp_path / "report"),
        "client_log_dir": str(tmp_path / "logs"),
        "controller": {"address": "ctl", "directory": str(tmp_path / "master")},
        "app": {"address": "apphost", "port": 8081},
        "database": {"address": "db.example.com"},
    }


@pytest.fixture
def make_config(base_config_dict):
    """Build a validated RunConfig from the base dict plus top-level overrides."""

    def _make(**overrides):
        return load_config_dict({**base_config_dict, **overrides})

    return _make


@pytest.fixture
def fake_ssh(tmp_path):
    """A remote shell that ignores the host argument and runs the command locally."""
    script = tmp_path / "fake-ssh"
    script.write_text('#!/bin/sh\nshift\nexec sh -c "$1"\n')
    return f"sh {script}"
