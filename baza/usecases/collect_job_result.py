"""Use case for fetching everything a finished job produced."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from baza.domain.models import JobOutcome
from baza.domain.ports import JobId, JobPort, PathLike, UseCaseError
from baza.usecases.error_mapping import map_api_error


@dataclass
class CollectJobResult:
    """Pull the factbase into ``<target_dir>/<id>.fb`` and read the job output."""

    job_port: JobPort

    def __call__(self, job_id: JobId, target_dir: PathLike) -> JobOutcome:
        if not str(target_dir or "").strip():
            raise UseCaseError("RESULT_NO_TARGET", "Target directory is required.")
        path = Path(target_dir) / f"{job_id}.fb"
        try:
            size = self.job_port.pull_to(job_id, path)
            code = self.job_port.exit_code(job_id)
            stdout = self.job_port.stdout(job_id)
            verdict = self.job_port.verified(job_id)
        except Exception as exc:
            raise map_api_error(
                exc,
                default_code="RESULT_FETCH_FAILED",
                default_message="Fetching job result failed.",
            ) from exc
        return JobOutcome(
            job_id=job_id,
            exit_code=code,
            stdout=stdout,
            verdict=verdict,
            factbase_path=path,
            factbase_size=size,
        )


__all__ = ["CollectJobResult"]
