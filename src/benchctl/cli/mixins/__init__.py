# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""Stage mixins composing RunOrchestrator."""

from .collect_stage import CollectStageMixin
from .driver_stage import DriverStageMixin
from .prepare_stage import PrepareStageMixin
from .server_stage import ServerStageMixin

__all__ = [
    "CollectStageMixin",
    "DriverStageMixin",
    "PrepareStageMixin",
    "ServerStageMixin",
]
