"""
Job registry - process-wide map from render job id to its live resources.

Shared by the generate path and the cancel path. Both run on one event
loop, so every mutation below is a single synchronous step; no await ever
happens between reading and writing an entry.
"""

from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from md2pdf.shared.logging import get_logger

logger = get_logger(__name__)


class RenderState(str, Enum):
    CREATED = "created"
    ENGINE_LAUNCHING = "engine_launching"
    DOCUMENT_LOADING = "document_loading"
    AWAITING_ASYNC_RENDER = "awaiting_async_render"
    MEASURING = "measuring"
    PAGINATING = "paginating"
    COMPLETED = "completed"
    ABORTED = "aborted"
    FAILED = "failed"


TERMINAL_STATES = frozenset({RenderState.COMPLETED, RenderState.ABORTED, RenderState.FAILED})


@dataclass(eq=False)
class RenderJob:
    """One in-flight conversion."""
    id: str
    temp_document_path: Path | None = None
    engine: Any = None
    aborted: bool = False
    debug_artifact_path: Path | None = None
    state: RenderState = RenderState.CREATED


class CancelOutcome(str, Enum):
    CANCELLED = "cancelled"
    NOT_FOUND = "not_found"
    ALREADY_FINISHED = "already_finished"


class JobRegistry:
    """
    Registry of in-flight render jobs.

    A bounded history of released ids lets a late cancel be told apart from
    a cancel for an id that never existed.
    """

    def __init__(self, finished_history: int = 256) -> None:
        self._jobs: dict[str, RenderJob] = {}
        self._finished: OrderedDict[str, None] = OrderedDict()
        self._finished_history = finished_history

    def __contains__(self, job_id: object) -> bool:
        return job_id in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)

    def register(self, job: RenderJob) -> RenderJob:
        """Insert a fully built job. Reusing a live id replaces the old entry."""
        if job.id in self._jobs:
            logger.warning(f"Render id {job.id} reused while in flight; replacing entry")
        self._finished.pop(job.id, None)
        self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> RenderJob | None:
        return self._jobs.get(job_id)

    def jobs(self) -> list[RenderJob]:
        return list(self._jobs.values())

    def mark_aborted(self, job_id: str) -> bool:
        """Flag a job as aborted. Returns False when the id is not registered."""
        job = self._jobs.get(job_id)
        if job is None:
            return False
        job.aborted = True
        return True

    def was_finished(self, job_id: str) -> bool:
        return job_id in self._finished

    def release(self, job_id: str, job: RenderJob | None = None) -> RenderJob | None:
        """
        Remove a job entry. Idempotent: releasing a missing id is a no-op.

        When ``job`` is given, the entry is only removed if it still belongs
        to that job, so a stale job never evicts a newer one with the same id.
        """
        current = self._jobs.get(job_id)
        if current is None or (job is not None and current is not job):
            return None
        del self._jobs[job_id]
        self._remember_finished(job_id)
        return current

    def _remember_finished(self, job_id: str) -> None:
        if self._finished_history <= 0:
            return
        self._finished[job_id] = None
        self._finished.move_to_end(job_id)
        while len(self._finished) > self._finished_history:
            self._finished.popitem(last=False)
