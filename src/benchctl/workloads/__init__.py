# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
Workload collaborators.

Available workloads:
- java: loader, app stand-in, Engine drivers and Report from the benchmark jars
"""

# Importing the implementations registers them
from .base import Workload, get_workload, list_workloads, register_workload
from .java import JavaWorkload

__all__ = [
    "JavaWorkload",
    "Workload",
    "get_workload",
    "list_workloads",
    "register_workload",
]
