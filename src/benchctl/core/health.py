# SPDX-FileCopyrightText: Copyright (c) 2025 NVIDIA CORPORATION & AFFILIATES. All rights reserved.
# SPDX-License-Identifier: Apache-2.0

"""
HTTP waiting utilities for the app stand-in.

wait_for_http() polls a URL until the endpoint answers at all.
"""

import logging
import time

import requests

logger = logging.getLogger(__name__)


def wait_for_http(
    url: str,
    timeout: float = 60.0,
    interval: float = 1.0,
    report_every: float = 30.0,
) -> bool:
    """Wait until an HTTP endpoint answers.

    Any HTTP response counts, including error statuses: the app stand-in
    only needs to be accepting requests.

    Args:
        url: URL to poll
        timeout: Maximum wait time in seconds
        interval: Seconds between attempts
        report_every: Log progress every N seconds

    Returns:
        True if the endpoint answered, False on timeout
    """
    logger.info("Polling %s every %.1fs (timeout %.0fs)", url, interval, timeout)
    start_time = time.time()
    last_report_time = start_time

    while time.time() - start_time < timeout:
        try:
            response = requests.get(url, timeout=5.0)
            logger.info("%s answered with status %d", url, response.status_code)
            return True
        except requests.exceptions.RequestException as e:
            if time.time() - last_report_time >= report_every:
                logger.info("Still waiting for %s: %s", url, e)
                last_report_time = time.time()
        time.sleep(interval)

    logger.error("%s did not answer within %.0f seconds", url, timeout)
    return False
