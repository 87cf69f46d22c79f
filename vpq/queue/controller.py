# vpq/queue/controller.py
import logging
import uuid
from datetime import datetime, timezone
from typing import Callable, Iterable

from ..models.job import Job, JobStatus, QueueStats, Workflow
from ..models.result import OK, OpResult, refused
from ..utils.paths import derive_output_path, display_name_for
from .store import QueueStore

log = logging.getLogger(__name__)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


class QueueController:
    """User-facing queue edits, validated before they reach the store."""

    def __init__(self, store: QueueStore, is_started: Callable[[], bool] = lambda: False):
        self.store = store
        self.is_started = is_started

    def enqueue(self, paths: Iterable[str], workflow: Workflow, output_path: str | None = None) -> list[Job]:
        new_jobs = [
            Job(
                id=uuid.uuid4().hex,
                source_path=str(p),
                display_name=display_name_for(str(p)),
                output_path=output_path or derive_output_path(str(p), workflow.output_format),
                workflow=workflow.copy(),  # never shared between jobs
                added_at=utc_now_iso(),
            )
            for p in paths
        ]
        if new_jobs:
            self.store.append(new_jobs)
            log.info("Added %d video(s) to queue", len(new_jobs))
        return new_jobs

    def remove(self, job_id: str) -> OpResult:
        if not (job := self.store.get(job_id)):
            return refused(f"No queue item {job_id}")
        if job.status == JobStatus.PROCESSING:
            return refused("Cancel the item before removing it")
        self.store.remove(job_id)
        log.info("Removed %s from queue", job.display_name)
        return OK

    def reorder(self, from_index: int, to_index: int) -> OpResult:
        if self.is_started():
            return refused("Queue order is locked while the queue is running")
        n = len(self.store)
        if not (0 <= from_index < n and 0 <= to_index < n):
            return refused(f"Index out of range for queue of {n}: {from_index} -> {to_index}")
        if not self.store.jobs()[from_index].is_pending:
            return refused("Only pending items can be reordered")
        if from_index != to_index:
            self.store.move(from_index, to_index)
        return OK

    def requeue(self, job_id: str) -> OpResult:
        if not (job := self.store.get(job_id)):
            return refused(f"No queue item {job_id}")
        if job.status not in (JobStatus.COMPLETED, JobStatus.ERROR):
            return refused(f"Cannot requeue a {job.status.value} item")
        self.store.update(job_id, status=JobStatus.PENDING, progress=0, error_message=None, completed_at=None)
        log.info("Item reset to pending for reprocessing: %s", job.display_name)
        return OK

    def clear_completed(self) -> int:
        removed = self.store.remove_where(lambda j: j.status in (JobStatus.COMPLETED, JobStatus.ERROR))
        log.info("Cleared %d completed item(s)", removed)
        return removed

    def clear_all(self) -> OpResult:
        if self.is_started():
            return refused("Stop the queue before clearing it")
        self.store.clear()
        log.info("Queue cleared")
        return OK

    def update_workflow(self, job_id: str, partial: dict | Workflow) -> OpResult:
        """Merge workflow fields into a pending job (edit sessions only)."""
        if not (job := self.store.get(job_id)):
            return refused(f"No queue item {job_id}")
        if not job.is_pending:
            return refused(f"Cannot edit a {job.status.value} item")
        if isinstance(partial, Workflow):
            merged = partial.copy()
        else:
            try:
                merged = job.workflow.merged(partial)
            except ValueError as e:
                return refused(str(e))
        self.store.replace_workflow(job_id, merged)
        log.debug("Updated workflow for %s", job.display_name)
        return OK

    def set_output_path(self, job_id: str, output_path: str) -> OpResult:
        if not (job := self.store.get(job_id)):
            return refused(f"No queue item {job_id}")
        if not job.is_pending:
            return refused(f"Cannot edit a {job.status.value} item")
        if not output_path.strip():
            return refused("Output path is empty")
        self.store.update(job_id, output_path=output_path)
        return OK

    def stats(self) -> QueueStats:
        return self.store.stats()
