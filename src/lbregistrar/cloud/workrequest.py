# Copyright 2026 dparv
# See LICENSE file for licensing details.

"""Wait for OCI work requests to reach a terminal state."""

from __future__ import annotations

import logging
import threading

import oci

from lbregistrar.errors import Cancelled, CloudError, WorkRequestFailed, WorkRequestTimeout

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = 5.0
DEFAULT_MAX_ATTEMPTS = 60

SUCCEEDED = "SUCCEEDED"
FAILED = "FAILED"
CANCELED = "CANCELED"
IN_PROGRESS = "IN_PROGRESS"
ACCEPTED = "ACCEPTED"


def await_work_request(
    client,
    work_request_id: str | None,
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    cancel: threading.Event | None = None,
) -> None:
    """Poll `client.get_work_request` until the work request finishes.

    Returns when the request SUCCEEDED. FAILED and CANCELED raise
    `WorkRequestFailed`; running out of attempts raises `WorkRequestTimeout`.
    Any other status, known or not, is polled again after `poll_interval`.

    `cancel` is checked while sleeping; once set, `Cancelled` is raised
    instead of polling again.
    A missing work request id means there is nothing to wait for.
    """
    if work_request_id is None:
        logger.debug("no work request id provided, skipping wait")
        return
    if cancel is None:
        cancel = threading.Event()

    logger.info("waiting for work request %s", work_request_id)
    for attempt in range(1, max_attempts + 1):
        if cancel.is_set():
            raise Cancelled(f"cancelled waiting for work request {work_request_id}")
        try:
            status = client.get_work_request(work_request_id).data.status
        except oci.exceptions.ServiceError as e:
            raise CloudError(
                f"error getting work request status {work_request_id}: {e.message}"
            ) from e

        logger.debug(
            "work request %s status %s (attempt %d/%d)",
            work_request_id, status, attempt, max_attempts,
        )
        if status == SUCCEEDED:
            logger.info("work request %s completed successfully", work_request_id)
            return
        if status == FAILED:
            raise WorkRequestFailed(f"work request failed: {work_request_id}", work_request_id)
        if status == CANCELED:
            raise WorkRequestFailed(f"work request canceled: {work_request_id}", work_request_id)
        if status not in (IN_PROGRESS, ACCEPTED):
            logger.debug("work request %s in unknown state %s", work_request_id, status)

        if attempt < max_attempts and cancel.wait(poll_interval):
            raise Cancelled(f"cancelled waiting for work request {work_request_id}")

    raise WorkRequestTimeout(
        f"timeout waiting for work request completion: {work_request_id}", work_request_id
    )
