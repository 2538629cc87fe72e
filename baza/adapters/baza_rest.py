"""REST adapter implementing every ``BazaPort`` operation.

Each public method validates its arguments locally, performs a single
``RetryingSession.execute`` call and interprets the body or headers of the
accepted response. Nothing is cached between calls.

Dependencies:
    - ``RetryingSession``/``HttpConfig`` for shared HTTP policy.
    - ``api_errors`` for the typed failures raised by the transport.
    - ``baza.utils.timing.elapsed`` for completion logging.

Call context:
    - Used directly by library callers and by ``baza/usecases``.
"""

from __future__ import annotations

import base64
import logging
import tempfile
from pathlib import Path
from typing import IO, Any, Iterable, List, Optional, Union

from baza.adapters.api_errors import BadResponse, header_value
from baza.adapters.http_client import HttpConfig, HttpOutcome, RetryingSession
from baza.domain.ports import BazaPort, DurableId, JobId, PathLike
from baza.utils.timing import elapsed

META_HEADER = "X-Zerocracy-Meta"
DURABLE_ID_HEADER = "X-Zerocracy-DurableId"

_OCTETS = "application/octet-stream"


def encode_meta(values: Iterable[str]) -> str:
    """Base64 each UTF-8 value and join them with single spaces."""
    return " ".join(
        base64.b64encode(str(value).encode("utf-8")).decode("ascii") for value in values
    )


class BazaRestAdapter(BazaPort):
    """HTTP client for the job orchestration API.

    Endpoints:
      - PUT  /push/{name}              body: factbase -> job id
      - GET  /pull/{id}.fb             -> factbase (streamed)
      - GET  /finished/{id}, /stdout/{id}.txt, /exit/{id}.txt,
             /jobs/{id}/verified.txt, /recent/{name}.txt, /exists/{name}
      - GET  /lock/{name}, /unlock/{name}               ?owner= -> 302
      - POST /durables/place           multipart -> 302, id in header
      - PUT/GET /durables/{id}         raw upload / streamed download
      - GET  /durables/{id}/lock, /durables/{id}/unlock  ?owner= -> 302
      - GET  /pop?owner=               -> 200 ZIP (streamed) or 204
      - PUT  /finish?id=               body: ZIP
    """

    def __init__(
        self,
        host: str,
        port: int,
        token: str,
        *,
        ssl: bool = True,
        timeout_s: float = 30.0,
        retries: int = 3,
        backoff_s: float = 1.0,
        compress: bool = True,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        """Create the adapter and its transport.

        Args:
            host: Host name of the service.
            port: TCP port of the service.
            token: Secret token of the account.
            ssl: Use ``https``.
            timeout_s: Connect timeout and total request lifetime.
            retries: Retry attempts after a timed out request.
            backoff_s: Linear backoff step between retries.
            compress: Gzip job payloads sent by :meth:`push`.
            logger: Logging sink; defaults to this module's logger.

        Raises:
            ValueError: If the configuration is invalid.
        """
        self._log = logger or logging.getLogger(__name__)
        self.cfg = HttpConfig(
            host=host,
            port=port,
            token=token,
            ssl=ssl,
            timeout_s=timeout_s,
            retries=retries,
            backoff_s=backoff_s,
            compress=compress,
        )
        self.session = RetryingSession(self.cfg, logger=self._log)

    @classmethod
    def from_config(
        cls, cfg: HttpConfig, *, logger: Optional[logging.Logger] = None
    ) -> "BazaRestAdapter":
        return cls(
            cfg.host,
            cfg.port,
            cfg.token,
            ssl=cfg.ssl,
            timeout_s=cfg.timeout_s,
            retries=cfg.retries,
            backoff_s=cfg.backoff_s,
            compress=cfg.compress,
            logger=logger,
        )

    # ---------- Jobs ----------

    def push(self, name: str, data: Union[bytes, str], meta: List[str]) -> JobId:
        """Push a factbase under ``name`` and return the new job id.

        Raises:
            ValueError: If ``name`` is empty or ``data``/``meta`` is nil.
        """
        _require_text(name, 'The "name" of the job')
        if data is None:
            raise ValueError('The "data" of the job is nil')
        if meta is None:
            raise ValueError('The "meta" of the job is nil')
        body = data.encode("utf-8") if isinstance(data, str) else bytes(data)
        headers = {"Content-Type": _OCTETS}
        if meta:
            headers[META_HEADER] = encode_meta(meta)
        with elapsed(self._log) as timer:
            outcome = self.session.execute("PUT", ["push", name], headers=headers, body=body)
            job_id = _integer(self._log, outcome)
            timer.message = (
                f"Pushed {len(body)} bytes to {self.cfg.host}, job ID is #{job_id}"
            )
        return job_id

    def pull(self, job_id: JobId) -> bytes:
        """Pull the factbase of a job, spooling it through a temp file."""
        _require_id(job_id, "The ID of the job")
        with elapsed(self._log) as timer:
            with tempfile.TemporaryFile() as spool:
                self._pull_into(job_id, spool)
                spool.seek(0)
                data = spool.read()
            timer.message = (
                f"Pulled {len(data)} bytes of job #{job_id} factbase at {self.cfg.host}"
            )
        return data

    def pull_to(self, job_id: JobId, path: PathLike) -> int:
        """Stream the factbase of a job into ``path``; return its size."""
        _require_id(job_id, "The ID of the job")
        if path is None:
            raise ValueError('The "path" of the factbase is nil')
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with elapsed(self._log) as timer:
            with target.open("wb") as handle:
                self._pull_into(job_id, handle)
            size = target.stat().st_size
            timer.message = (
                f"Pulled {size} bytes of job #{job_id} factbase into {target} "
                f"at {self.cfg.host}"
            )
        return size

    def finished(self, job_id: JobId) -> bool:
        _require_id(job_id, "The ID of the job")
        with elapsed(self._log) as timer:
            done = self._get(["finished", job_id]).text == "yes"
            timer.message = (
                f"The job #{job_id} is {'' if done else 'not yet '}finished at {self.cfg.host}"
            )
        return done

    def stdout(self, job_id: JobId) -> str:
        _require_id(job_id, "The ID of the job")
        with elapsed(self._log) as timer:
            text = self._get(["stdout", f"{job_id}.txt"]).text
            timer.message = f"The stdout of the job #{job_id} has {len(text.splitlines())} lines"
        return text

    def exit_code(self, job_id: JobId) -> int:
        _require_id(job_id, "The ID of the job")
        with elapsed(self._log) as timer:
            code = _integer(self._log, self._get(["exit", f"{job_id}.txt"]))
            timer.message = f"The exit code of the job #{job_id} is {code}"
        return code

    def verified(self, job_id: JobId) -> str:
        _require_id(job_id, "The ID of the job")
        with elapsed(self._log) as timer:
            verdict = self._get(["jobs", job_id, "verified.txt"]).text
            timer.message = f"The verdict of the job #{job_id} is {verdict!r}"
        return verdict

    def recent(self, name: str) -> JobId:
        _require_text(name, 'The "name" of the job')
        with elapsed(self._log) as timer:
            job_id = _integer(self._log, self._get(["recent", f"{name}.txt"]))
            timer.message = f'The recent "{name}" job\'s ID is #{job_id} at {self.cfg.host}'
        return job_id

    def name_exists(self, name: str) -> bool:
        _require_text(name, 'The "name" of the job')
        with elapsed(self._log) as timer:
            exists = self._get(["exists", name]).text == "yes"
            verb = "exists" if exists else "doesn't exist"
            timer.message = f'The name "{name}" {verb} at {self.cfg.host}'
        return exists

    # ---------- Locks ----------

    def lock(self, name: str, owner: str) -> None:
        _require_text(name, 'The "name" of the job')
        if owner is None:
            raise ValueError('The "owner" of the lock is nil')
        with elapsed(self._log) as timer:
            self._get(["lock", name], query={"owner": owner}, allowed=(302,))
            timer.message = f"Job name '{name}' locked at {self.cfg.host}"

    def unlock(self, name: str, owner: str) -> None:
        _require_text(name, 'The "name" of the job')
        if owner is None:
            raise ValueError('The "owner" of the lock is nil')
        with elapsed(self._log) as timer:
            self._get(["unlock", name], query={"owner": owner}, allowed=(302,))
            timer.message = f"Job name '{name}' unlocked at {self.cfg.host}"

    def durable_lock(self, durable_id: DurableId, owner: str) -> None:
        _require_id(durable_id, "The ID of the durable")
        _require_text(owner, 'The "owner" of the lock')
        with elapsed(self._log) as timer:
            self._get(["durables", durable_id, "lock"], query={"owner": owner}, allowed=(302,))
            timer.message = f"Durable #{durable_id} locked at {self.cfg.host}"

    def durable_unlock(self, durable_id: DurableId, owner: str) -> None:
        _require_id(durable_id, "The ID of the durable")
        _require_text(owner, 'The "owner" of the lock')
        with elapsed(self._log) as timer:
            self._get(["durables", durable_id, "unlock"], query={"owner": owner}, allowed=(302,))
            timer.message = f"Durable #{durable_id} unlocked at {self.cfg.host}"

    # ---------- Durables ----------

    def durable_place(self, jname: str, file: PathLike) -> DurableId:
        """Upload a new durable for job ``jname``; return its id.

        Raises:
            ValueError: If ``jname`` is empty or ``file`` is nil.
            FileNotFoundError: If ``file`` does not exist.
            BadResponse: If the response lacks the durable id header.
        """
        _require_text(jname, 'The "jname" of the durable')
        path = _require_file(file, 'The "file" of the durable')
        with elapsed(self._log) as timer:
            with path.open("rb") as handle:
                # Use multipart upload so the server receives the basename too.
                outcome = self.session.execute(
                    "POST",
                    ["durables", "place"],
                    data={"jname": jname, "file": path.name},
                    files={"zip": (path.name, handle, _OCTETS)},
                    allowed=(302,),
                )
            raw = header_value(outcome.headers, DURABLE_ID_HEADER)
            durable_id = _integer(
                self._log, outcome, raw or "", what=f"{DURABLE_ID_HEADER} header"
            )
            timer.message = (
                f'Durable #{durable_id} ({path}) placed for job "{jname}" at {self.cfg.host}'
            )
        return durable_id

    def durable_save(self, durable_id: DurableId, file: PathLike) -> None:
        _require_id(durable_id, "The ID of the durable")
        path = _require_file(file, 'The "file" of the durable')
        body = path.read_bytes()
        with elapsed(self._log) as timer:
            self.session.execute(
                "PUT",
                ["durables", durable_id],
                body=body,
                headers={"Content-Type": _OCTETS},
                compress=False,
            )
            timer.message = f"Durable #{durable_id} saved {len(body)} bytes to {self.cfg.host}"

    def durable_load(self, durable_id: DurableId, file: PathLike) -> None:
        _require_id(durable_id, "The ID of the durable")
        if file is None:
            raise ValueError('The "file" of the durable is nil')
        path = Path(file)
        path.parent.mkdir(parents=True, exist_ok=True)
        with elapsed(self._log) as timer:
            with path.open("wb") as handle:
                self.session.execute(
                    "GET", ["durables", durable_id], accept=_OCTETS, sink=handle
                )
            timer.message = (
                f"Durable #{durable_id} loaded {path.stat().st_size} bytes "
                f"from {self.cfg.host}"
            )

    # ---------- Worker protocol ----------

    def pop(self, owner: str, zip_path: PathLike) -> bool:
        """Claim an unclaimed job into ``zip_path``.

        Returns:
            True if a job was taken, False when the server had nothing (204);
            in that case ``zip_path`` does not exist afterwards.
        """
        _require_text(owner, 'The "owner" of the job')
        if zip_path is None:
            raise ValueError('The "zip" of the job is nil')
        path = Path(zip_path)
        path.unlink(missing_ok=True)
        path.parent.mkdir(parents=True, exist_ok=True)
        with elapsed(self._log) as timer:
            try:
                with path.open("wb") as handle:
                    outcome = self.session.execute(
                        "GET",
                        ["pop"],
                        query={"owner": owner},
                        accept=_OCTETS,
                        allowed=(200, 204),
                        sink=handle,
                    )
            except Exception:
                path.unlink(missing_ok=True)
                raise
            if outcome.status != 200:
                path.unlink(missing_ok=True)
                timer.message = f"Nothing to pop at {self.cfg.host}"
                return False
            timer.message = (
                f"Popped {path.stat().st_size} bytes in ZIP archive at {self.cfg.host}"
            )
        return True

    def finish(self, job_id: JobId, zip_path: PathLike) -> None:
        """Upload the results archive of a popped job."""
        if job_id is None:
            raise ValueError('The "id" of the job is nil')
        if not isinstance(job_id, int) or isinstance(job_id, bool):
            raise ValueError('The "id" of the job must be an integer')
        path = _require_file(zip_path, 'The "zip" of the job')
        body = path.read_bytes()
        with elapsed(self._log) as timer:
            self.session.execute(
                "PUT",
                ["finish"],
                query={"id": job_id},
                body=body,
                headers={"Content-Type": _OCTETS},
                compress=False,
            )
            timer.message = (
                f"Pushed {len(body)} bytes to {self.cfg.host}, finished job #{job_id}"
            )

    # ---------- helpers ----------

    def _get(self, segments: List[Any], **kwargs: Any) -> HttpOutcome:
        return self.session.execute("GET", segments, **kwargs)

    def _pull_into(self, job_id: JobId, sink: IO[bytes]) -> None:
        self.session.execute(
            "GET",
            ["pull", f"{job_id}.fb"],
            accept="application/zip, application/factbase",
            sink=sink,
        )


def _require_text(value: Optional[str], what: str) -> None:
    if value is None:
        raise ValueError(f"{what} is nil")
    if not str(value):
        raise ValueError(f"{what} may not be empty")


def _require_id(value: Optional[int], what: str) -> None:
    if value is None:
        raise ValueError(f"{what} is nil")
    if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
        raise ValueError(f"{what} must be a positive integer")


def _require_file(file: Optional[PathLike], what: str) -> Path:
    if file is None:
        raise ValueError(f"{what} is nil")
    path = Path(file)
    if not path.is_file():
        raise FileNotFoundError(f"The file '{path}' is absent")
    return path


def _integer(
    log: logging.Logger,
    outcome: HttpOutcome,
    raw: Optional[str] = None,
    *,
    what: str = "body",
) -> int:
    text = (outcome.text if raw is None else raw).strip()
    try:
        return int(text)
    except ValueError:
        err = BadResponse(
            f"Expected an integer in the {what} of {outcome.method} {outcome.url}, "
            f"got {text[:100]!r}",
            status=outcome.status,
            method=outcome.method,
            url=outcome.url,
            elapsed_s=outcome.elapsed_s,
        )
        log.error("%s", err)
        raise err from None


__all__ = ["BazaRestAdapter", "DURABLE_ID_HEADER", "META_HEADER", "encode_meta"]
