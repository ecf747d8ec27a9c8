# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Run phases and the forward-only tracker that sequences them."""

import logging
import time
from dataclasses import dataclass, field
from enum import Enum

from .errors import InvalidPhaseTransition

logger = logging.getLogger(__name__)


class RunPhase(str, Enum):
    IDLE = "idle"
    PREPARING = "preparing"
    STARTING = "starting_controller_and_servers"
    AWAITING_READINESS = "awaiting_readiness"
    LOADING_DATA = "loading_data"
    RUNNING_DRIVERS = "running_drivers"
    COLLECTING_RESULTS = "collecting_results"
    STOPPING_FLEET = "stopping_fleet"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunPhase.DONE, RunPhase.FAILED)


# Forward order; FAILED is reachable from any non-terminal phase
PHASE_ORDER = [
    RunPhase.IDLE,
    RunPhase.PREPARING,
    RunPhase.STARTING,
    RunPhase.AWAITING_READINESS,
    RunPhase.LOADING_DATA,
    RunPhase.RUNNING_DRIVERS,
    RunPhase.COLLECTING_RESULTS,
    RunPhase.STOPPING_FLEET,
    RunPhase.DONE,
]


@dataclass
class PhaseTracker:
    """Holds the single active phase of a run.

    Phases only move forward (skipping is allowed, e.g. Preparing when
    skip_prepare is set). Any non-terminal phase may move to FAILED.
    """

    current: RunPhase = RunPhase.IDLE
    history: list[tuple[RunPhase, float]] = field(default_factory=list)
    error: BaseException | None = None
    # Phase that was active when the run failed
    failed_in: RunPhase | None = None

    def __post_init__(self) -> None:
        if not self.history:
            self.history.append((self.current, time.time()))

    def advance(self, target: RunPhase) -> None:
        """Move forward to target.

        Raises:
            InvalidPhaseTransition: target is not after the current phase
        """
        if target is RunPhase.FAILED:
            self.fail()
            return
        if self.current.is_terminal or PHASE_ORDER.index(target) <= PHASE_ORDER.index(self.current):
            raise InvalidPhaseTransition(self.current, target)
        self._enter(target)

    def fail(self, error: BaseException | None = None) -> None:
        """Move to FAILED, remembering the phase and error that caused it."""
        if self.current.is_terminal:
            raise InvalidPhaseTransition(self.current, RunPhase.FAILED)
        self.failed_in = self.current
        self.error = error
        self._enter(RunPhase.FAILED)

    def reached(self, phase: RunPhase) -> bool:
        """Whether the run has been in phase at any point."""
        return any(p is phase for p, _ in self.history)

    def _enter(self, target: RunPhase) -> None:
        now = time.time()
        elapsed = now - self.history[-1][1]
        logger.debug("Phase %s -> %s after %.1fs", self.current.value, target.value, elapsed)
        self.current = target
        self.history.append((target, now))
