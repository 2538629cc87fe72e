"""Use case for blocking until a pushed job is finished on the server."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable

from baza.domain.ports import JobId, JobPort, UseCaseError
from baza.usecases.error_mapping import map_api_error

_log = logging.getLogger(__name__)


@dataclass
class WaitForJob:
    """Poll ``finished`` until it reports True or the deadline passes."""

    job_port: JobPort
    interval_s: float = 5.0
    timeout_s: float = 600.0
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.monotonic

    def __call__(self, job_id: JobId) -> bool:
        """Return True once the job is finished.

        Raises:
            UseCaseError: ``JOB_WAIT_TIMEOUT`` past the deadline, or the
                mapped adapter failure.
        """
        if self.interval_s <= 0:
            raise UseCaseError("INVALID_ARGUMENT", "Poll interval must be positive.")
        deadline = self.clock() + self.timeout_s
        polls = 0
        while True:
            polls += 1
            try:
                done = self.job_port.finished(job_id)
            except Exception as exc:
                raise map_api_error(
                    exc,
                    default_code="JOB_POLL_FAILED",
                    default_message="Polling job status failed.",
                ) from exc
            if done:
                _log.debug("Job #%s finished after %d polls", job_id, polls)
                return True
            remaining = deadline - self.clock()
            if remaining <= 0:
                raise UseCaseError(
                    "JOB_WAIT_TIMEOUT",
                    f"Job #{job_id} is not finished after {self.timeout_s:.0f}s.",
                    meta={"job_id": job_id, "polls": polls},
                )
            self.sleep(min(self.interval_s, remaining))


__all__ = ["WaitForJob"]
