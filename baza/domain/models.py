from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .ports import JobId


@dataclass(frozen=True)
class JobOutcome:
    """Everything a finished job left on the server, fetched in one go."""

    job_id: JobId
    exit_code: int
    stdout: str
    verdict: str
    factbase_path: Path
    factbase_size: int

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0
