from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Union

JobId = int
DurableId = int
PathLike = Union[str, Path]


# ---- Error model ----
class UseCaseError(Exception):
    """Base class for use case level errors (user-presentable)."""

    def __init__(self, code: str, message: str, meta: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.meta = meta


# ---- Ports (Hexagonal boundaries) ----
class JobPort(Protocol):
    """Push/poll/read operations on jobs of the remote service."""

    def push(self, name: str, data: bytes, meta: List[str]) -> JobId: ...
    def pull(self, job_id: JobId) -> bytes: ...
    def pull_to(self, job_id: JobId, path: PathLike) -> int: ...  # bytes written
    def finished(self, job_id: JobId) -> bool: ...
    def stdout(self, job_id: JobId) -> str: ...
    def exit_code(self, job_id: JobId) -> int: ...
    def verified(self, job_id: JobId) -> str: ...
    def recent(self, name: str) -> JobId: ...
    def name_exists(self, name: str) -> bool: ...


class LockPort(Protocol):
    """Mutually exclusive locks on job names and on durables."""

    def lock(self, name: str, owner: str) -> None: ...
    def unlock(self, name: str, owner: str) -> None: ...
    def durable_lock(self, durable_id: DurableId, owner: str) -> None: ...
    def durable_unlock(self, durable_id: DurableId, owner: str) -> None: ...


class DurablePort(Protocol):
    """Binary artifacts staged alongside jobs."""

    def durable_place(self, jname: str, file: PathLike) -> DurableId: ...
    def durable_save(self, durable_id: DurableId, file: PathLike) -> None: ...
    def durable_load(self, durable_id: DurableId, file: PathLike) -> None: ...


class WorkerPort(Protocol):
    """Worker side: claim an unclaimed job, later submit its results."""

    def pop(self, owner: str, zip_path: PathLike) -> bool: ...  # False when nothing to pop
    def finish(self, job_id: JobId, zip_path: PathLike) -> None: ...


class BazaPort(JobPort, LockPort, DurablePort, WorkerPort, Protocol):
    """Everything the REST adapter offers."""
