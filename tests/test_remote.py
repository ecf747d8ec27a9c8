# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Tests for RemoteExecutor and local command helpers."""

import subprocess
from pathlib import Path

import pytest

from benchctl.core.errors import RemoteCommandFailed, TransferFailed, UnreachableHost
from benchctl.core.remote import RemoteExecutor, RemoteResult, RemoteStream, run_local


def completed(returncode, stdout=""):
    return subprocess.CompletedProcess(args=[], returncode=returncode, stdout=stdout)


# ============================================================================
# Command Construction
# ============================================================================


class TestCommandConstruction:
    """argv built for the remote shell and copy commands."""

    def test_remote_shell_with_options(self):
        executor = RemoteExecutor(rsh="ssh -o BatchMode=yes", rcp="scp -q")

        assert executor.command("srv1", "/tmp/prepare.sh srv1") == [
            "ssh",
            "-o",
            "BatchMode=yes",
            "srv1",
            "/tmp/prepare.sh srv1",
        ]

    def test_copy_from_leaves_glob_for_remote_side(self):
        executor = RemoteExecutor(rcp="scp")

        argv = executor.copy_from_command("drv1", "/tmp/drv1/results/*/simulation.log", Path("/tmp/report/drv1.log"))

        assert argv == ["scp", "drv1:/tmp/drv1/results/*/simulation.log", "/tmp/report/drv1.log"]


# ============================================================================
# Blocking Execution
# ============================================================================


class TestRun:
    """Exit status mapping of blocking remote commands."""

    def test_success(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", lambda argv, **kw: completed(0, "done\n"))

        result = RemoteExecutor().run("srv1", "true")

        assert isinstance(result, RemoteResult)
        assert result.ok
        assert result.output == "done\n"

    def test_transport_failure_is_unreachable(self, monkeypatch):
        monkeypatch.setattr(
            subprocess, "run", lambda argv, **kw: completed(255, "ssh: connect to host srv9 port 22: No route to host")
        )

        with pytest.raises(UnreachableHost, match="srv9") as exc_info:
            RemoteExecutor().run("srv9", "true")
        assert exc_info.value.host == "srv9"

    def test_command_failure(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", lambda argv, **kw: completed(2))

        with pytest.raises(RemoteCommandFailed) as exc_info:
            RemoteExecutor().run("srv1", "/tmp/prepare.sh srv1")
        assert exc_info.value.exit_code == 2
        assert exc_info.value.command == "/tmp/prepare.sh srv1"

    def test_unchecked_failure_returns_result(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", lambda argv, **kw: completed(1))

        result = RemoteExecutor().run("srv1", "rm -rf /tmp/x", check=False)

        assert result.exit_code == 1
        assert not result.ok

    def test_unchecked_transport_failure_still_raises(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", lambda argv, **kw: completed(255))

        with pytest.raises(UnreachableHost):
            RemoteExecutor().run("srv1", "true", check=False)

    def test_missing_remote_shell(self):
        with pytest.raises(UnreachableHost, match="not found"):
            RemoteExecutor(rsh="/nonexistent/ssh-binary").run("srv1", "true")

    def test_through_local_shell(self, fake_ssh):
        result = RemoteExecutor(rsh=fake_ssh).run("srv1", "echo hello && exit 0")

        assert result.output.strip() == "hello"


# ============================================================================
# Streaming Execution
# ============================================================================


class TestStreaming:
    """Non-blocking execution returns live output."""

    def test_lines_are_streamed(self, fake_ssh):
        stream = RemoteExecutor(rsh=fake_ssh).run("srv1", "printf 'one\\ntwo\\r\\nthree\\n'", blocking=False)

        assert isinstance(stream, RemoteStream)
        with stream:
            assert list(stream.lines()) == ["one", "two", "three"]
        assert stream.exit_code == 0

    def test_close_reaps_process(self, fake_ssh):
        stream = RemoteExecutor(rsh=fake_ssh).run("srv1", "exit 3", blocking=False)

        assert stream.close(timeout=10) == 3


# ============================================================================
# Fire-and-forget Execution
# ============================================================================


class TestSpawn:
    def test_output_goes_to_log_file(self, fake_ssh, tmp_path):
        log_file = tmp_path / "logs" / "driver_0-drv1.log"

        proc = RemoteExecutor(rsh=fake_ssh).spawn("drv1", "echo engine running", log_file=log_file)

        assert proc.wait(timeout=10) == 0
        assert log_file.read_text().strip() == "engine running"

    def test_missing_remote_shell(self):
        with pytest.raises(UnreachableHost, match="not found") as exc_info:
            RemoteExecutor(rsh="/nonexistent/ssh-binary").spawn("drv1", "true")
        assert exc_info.value.host == "drv1"


# ============================================================================
# File Transfer
# ============================================================================


class TestTransfer:
    def test_copy_to_builds_destination(self, monkeypatch):
        calls = []

        def fake_run(argv, **kwargs):
            calls.append(argv)
            return completed(0)

        monkeypatch.setattr(subprocess, "run", fake_run)

        RemoteExecutor(rcp="scp").copy_to([Path("/res/host.xml"), "/res/prepare.sh"], "srv1", "/tmp")

        assert calls == [["scp", "/res/host.xml", "/res/prepare.sh", "srv1:/tmp"]]

    def test_copy_failure(self, monkeypatch):
        monkeypatch.setattr(subprocess, "run", lambda argv, **kw: completed(1, "No such file"))

        with pytest.raises(TransferFailed) as exc_info:
            RemoteExecutor().copy_to(["/builds/dist.tar.gz"], "srv1", "/tmp/keycloak-server.tar.gz")
        assert exc_info.value.exit_code == 1
        assert exc_info.value.destination == "srv1:/tmp/keycloak-server.tar.gz"

    def test_missing_copy_command(self, tmp_path):
        with pytest.raises(TransferFailed):
            RemoteExecutor(rcp="/nonexistent/scp-binary").copy_from("drv1", "/tmp/x", tmp_path / "x")

    def test_missing_copy_command_in_background(self, tmp_path):
        with pytest.raises(TransferFailed) as exc_info:
            RemoteExecutor(rcp="/nonexistent/scp-binary").spawn_copy_from("drv1", "/tmp/x/*.log", tmp_path / "x")
        assert exc_info.value.source == "drv1:/tmp/x/*.log"


class TestRunLocal:
    def test_exit_code(self):
        assert run_local(["sh", "-c", "exit 4"]) == 4

    def test_background_writes_log(self, tmp_path):
        log_file = tmp_path / "logs" / "controller.out"

        proc = run_local(["sh", "-c", "echo started"], background=True, log_file=log_file)

        assert proc.wait(timeout=10) == 0
        assert log_file.read_text().strip() == "started"
