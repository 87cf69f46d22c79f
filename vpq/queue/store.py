# vpq/queue/store.py
"""Ordered job list, the single place queue state lives.

Everything that changes the list goes through a method here, and every such
method emits `changed` exactly once. Once `load()` has run, each `changed`
also rewrites the queue document on disk.
"""
import logging
from pathlib import Path
from typing import Callable, Iterable

from PySide6.QtCore import QObject, Signal

from ..models.job import Job, JobStatus, QueueStats, Workflow
from ..utils.queue_file import read_queue, write_queue

log = logging.getLogger(__name__)


class QueueStore(QObject):
    changed = Signal()
    recovered = Signal(int)  # number of interrupted jobs put back to pending

    def __init__(self, path: Path, parent=None):
        super().__init__(parent)
        self.path = Path(path)
        self._jobs: list[Job] = []
        self._has_loaded = False

    # -- persistence --
    @property
    def has_loaded(self) -> bool:
        return self._has_loaded

    def load(self) -> tuple[list[Job], int]:
        """Read the queue document, resetting interrupted runs.

        A `processing` job on disk can only mean the previous session ended
        mid-run, so it goes back to `pending` with no progress.
        """
        reset = 0
        try:
            jobs = read_queue(self.path)
        except (OSError, ValueError, KeyError, TypeError, AttributeError):
            log.exception("Error loading queue from %s; starting empty", self.path)
            jobs = []

        for job in jobs:
            if job.status == JobStatus.PROCESSING:
                job.status, job.progress = JobStatus.PENDING, 0
                reset += 1

        # Anything enqueued before the document was read goes after it
        loaded_ids = {j.id for j in jobs}
        early = [j for j in self._jobs if j.id not in loaded_ids]
        self._jobs = jobs + early
        self._has_loaded = True
        if reset:
            log.warning("Reset %d interrupted item(s) back to pending", reset)
        if reset or early:
            self.persist()
        log.info("Loaded %d queue item(s)", len(jobs))
        self.changed.emit()
        if reset:
            self.recovered.emit(reset)
        return self.jobs(), reset

    def persist(self, jobs: list[Job] | None = None) -> bool:
        try:
            write_queue(self.path, self._jobs if jobs is None else jobs)
        except (OSError, TypeError, ValueError):
            log.exception("Error saving queue to %s", self.path)
            return False
        return True

    def _commit(self):
        if self._has_loaded:
            self.persist()
        self.changed.emit()

    # -- queries --
    def jobs(self) -> list[Job]:
        return list(self._jobs)

    def __len__(self) -> int:
        return len(self._jobs)

    def get(self, job_id: str) -> Job | None:
        return next((j for j in self._jobs if j.id == job_id), None)

    def index_of(self, job_id: str) -> int:
        return next((i for i, j in enumerate(self._jobs) if j.id == job_id), -1)

    def next_pending(self) -> Job | None:
        return next((j for j in self._jobs if j.status == JobStatus.PENDING), None)

    def processing_job(self) -> Job | None:
        return next((j for j in self._jobs if j.status == JobStatus.PROCESSING), None)

    def stats(self) -> QueueStats:
        count = lambda s: sum(1 for j in self._jobs if j.status == s)
        return QueueStats(
            total=len(self._jobs),
            pending=count(JobStatus.PENDING),
            processing=count(JobStatus.PROCESSING),
            completed=count(JobStatus.COMPLETED),
            error=count(JobStatus.ERROR),
        )

    # -- mutations --
    def append(self, jobs: Iterable[Job]) -> None:
        self._jobs.extend(jobs)
        self._commit()

    def remove(self, job_id: str) -> bool:
        if (i := self.index_of(job_id)) < 0:
            return False
        del self._jobs[i]
        self._commit()
        return True

    def remove_where(self, pred: Callable[[Job], bool]) -> int:
        keep = [j for j in self._jobs if not pred(j)]
        removed = len(self._jobs) - len(keep)
        if removed:
            self._jobs = keep
            self._commit()
        return removed

    def clear(self) -> None:
        self._jobs = []
        self._commit()

    def move(self, from_index: int, to_index: int) -> None:
        n = len(self._jobs)
        if not (0 <= from_index < n and 0 <= to_index < n):
            raise IndexError(f"move({from_index}, {to_index}) outside queue of {n}")
        self._jobs.insert(to_index, self._jobs.pop(from_index))
        self._commit()

    def update(self, job_id: str, **fields) -> Job | None:
        if not (job := self.get(job_id)):
            return None
        for k, v in fields.items():
            if not hasattr(job, k) or k in ("id", "workflow"):
                raise AttributeError(f"Job field {k!r} cannot be updated")
            setattr(job, k, v)
        self._commit()
        return job

    def replace_workflow(self, job_id: str, workflow: Workflow) -> Job | None:
        if not (job := self.get(job_id)):
            return None
        job.workflow = workflow.copy()
        self._commit()
        return job
