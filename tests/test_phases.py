# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Tests for run phase sequencing."""

import pytest

from benchctl.core.errors import InvalidPhaseTransition, LoaderFailed
from benchctl.core.phases import PhaseTracker, RunPhase


class TestPhaseTracker:
    def test_starts_idle(self):
        tracker = PhaseTracker()

        assert tracker.current is RunPhase.IDLE
        assert tracker.reached(RunPhase.IDLE)

    def test_forward_with_skipped_phase(self):
        """Preparing and LoadingData may be skipped."""
        tracker = PhaseTracker()

        tracker.advance(RunPhase.STARTING)
        tracker.advance(RunPhase.AWAITING_READINESS)
        tracker.advance(RunPhase.RUNNING_DRIVERS)

        assert tracker.current is RunPhase.RUNNING_DRIVERS
        assert not tracker.reached(RunPhase.PREPARING)
        assert not tracker.reached(RunPhase.LOADING_DATA)
        assert [p for p, _ in tracker.history] == [
            RunPhase.IDLE,
            RunPhase.STARTING,
            RunPhase.AWAITING_READINESS,
            RunPhase.RUNNING_DRIVERS,
        ]

    def test_backwards_rejected(self):
        tracker = PhaseTracker()
        tracker.advance(RunPhase.AWAITING_READINESS)

        with pytest.raises(InvalidPhaseTransition, match="awaiting_readiness to starting_controller_and_servers"):
            tracker.advance(RunPhase.STARTING)

    def test_same_phase_rejected(self):
        tracker = PhaseTracker()
        tracker.advance(RunPhase.PREPARING)

        with pytest.raises(InvalidPhaseTransition):
            tracker.advance(RunPhase.PREPARING)

    def test_fail_remembers_phase_and_error(self):
        tracker = PhaseTracker()
        tracker.advance(RunPhase.LOADING_DATA)
        error = LoaderFailed(1)

        tracker.fail(error)

        assert tracker.current is RunPhase.FAILED
        assert tracker.failed_in is RunPhase.LOADING_DATA
        assert tracker.error is error

    def test_advance_to_failed(self):
        tracker = PhaseTracker()

        tracker.advance(RunPhase.FAILED)

        assert tracker.current is RunPhase.FAILED
        assert tracker.failed_in is RunPhase.IDLE

    def test_terminal_phases_are_final(self):
        tracker = PhaseTracker()
        tracker.advance(RunPhase.DONE)

        with pytest.raises(InvalidPhaseTransition):
            tracker.fail()
        with pytest.raises(InvalidPhaseTransition):
            tracker.advance(RunPhase.STOPPING_FLEET)

    def test_is_terminal(self):
        assert RunPhase.DONE.is_terminal
        assert RunPhase.FAILED.is_terminal
        assert not RunPhase.STOPPING_FLEET.is_terminal
