# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Tests for waiting on the app stand-in."""

from unittest.mock import MagicMock

import requests

from benchctl.core import health
from benchctl.core.health import wait_for_http


class TestWaitForHttp:
    def test_any_status_counts(self, monkeypatch):
        """A 404 still means the server is accepting requests."""
        monkeypatch.setattr(requests, "get", lambda url, timeout: MagicMock(status_code=404))

        assert wait_for_http("http://apphost:8080/", timeout=1, interval=0.01)

    def test_answers_after_retries(self, monkeypatch):
        attempts = []

        def flaky_get(url, timeout):
            attempts.append(url)
            if len(attempts) < 3:
                raise requests.exceptions.ConnectionError("refused")
            return MagicMock(status_code=200)

        monkeypatch.setattr(requests, "get", flaky_get)
        monkeypatch.setattr(health.time, "sleep", lambda seconds: None)

        assert wait_for_http("http://apphost:8080/", timeout=5, interval=0.01)
        assert len(attempts) == 3

    def test_timeout(self, monkeypatch):
        def refused(url, timeout):
            raise requests.exceptions.ConnectionError("refused")

        monkeypatch.setattr(requests, "get", refused)

        assert not wait_for_http("http://apphost:8080/", timeout=0.05, interval=0.01, report_every=0.01)
