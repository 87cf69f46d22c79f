# vpq/queue/scheduler.py
"""Runs pending jobs one after another while the queue is started.

There is no loop thread: `_maybe_dispatch` is re-evaluated whenever the store
changes and whenever a run finishes. `_dispatching` is what keeps those
re-entrant calls from handing a second job to the executor while one is in
flight.
"""
import logging

from PySide6.QtCore import QObject, Signal

from ..models.job import CANCELED_BY_USER, JobStatus
from ..models.result import OK, OpResult, refused
from ..workers.processor import Executor
from .controller import utc_now_iso
from .store import QueueStore

log = logging.getLogger(__name__)


class QueueScheduler(QObject):
    started_changed = Signal(bool)
    queue_finished = Signal()
    job_started = Signal(str)          # job_id
    job_finished = Signal(str, bool)   # job_id, ok
    info_requested = Signal(str, str)  # job_id, source_path
    info_ready = Signal(str, object)   # job_id, VideoInfo

    def __init__(self, store: QueueStore, executor: Executor,
                 read_info_first: bool = False, parent=None):
        super().__init__(parent)
        self.store = store
        self.executor = executor
        self.read_info_first = read_info_first
        self._started = False
        self._dispatching = False
        self._active_id: str | None = None
        self._cancel_requested = False
        self._awaiting_info = False

        store.changed.connect(self._maybe_dispatch)
        executor.progress.connect(self._on_progress)
        executor.job_done.connect(self._on_job_done)

    def is_started(self) -> bool:
        return self._started

    def is_busy(self) -> bool:
        return self._dispatching

    def active_job_id(self) -> str | None:
        return self._active_id

    def _set_started(self, value: bool):
        if value != self._started:
            self._started = value
            self.started_changed.emit(value)

    # -- controls --
    def start_queue(self) -> OpResult:
        if self._started:
            return refused("Queue is already running")
        if not self.store.next_pending():
            return refused("No pending items in queue")
        log.info("=== Starting queue processing ===")
        self._set_started(True)
        self._maybe_dispatch()
        return OK

    def stop_queue(self) -> OpResult:
        log.info("Stopping queue processing...")
        if self._awaiting_info:
            # Nothing was handed to the executor yet; the late info is ignored
            self._release()
        elif self._dispatching:
            self.executor.cancel()
        self._set_started(False)
        # Stopping defers the running job, it does not fail it
        if job := self.store.processing_job():
            self.store.update(job.id, status=JobStatus.PENDING, progress=0)
            log.info("Returned %s to pending", job.display_name)
        log.info("Queue stopped")
        return OK

    def cancel(self, job_id: str) -> OpResult:
        job = self.store.get(job_id)
        if not job or job.status != JobStatus.PROCESSING or job_id != self._active_id:
            return refused("Only the item currently processing can be canceled")
        log.info("Canceling queue item: %s", job.display_name)
        self._cancel_requested = True
        if self._awaiting_info:
            self._finish(job_id, False, CANCELED_BY_USER)
        else:
            self.executor.cancel()
        return OK

    # -- dispatch --
    def _maybe_dispatch(self):
        if not self._started or self._dispatching:
            return
        if stuck := self.store.processing_job():
            log.warning("%s is marked processing with no run in flight; not dispatching", stuck.display_name)
            return
        if not (job := self.store.next_pending()):
            self._set_started(False)
            log.info("=== Queue processing completed ===")
            self.queue_finished.emit()
            return

        self._dispatching = True
        self._active_id = job.id
        self._cancel_requested = False
        # Written before anything runs so a crash here is recovered on next load
        self.store.update(job.id, status=JobStatus.PROCESSING, progress=0)
        self.job_started.emit(job.id)
        if self.read_info_first:
            # The file is read off this thread; dispatch resumes in on_info
            self._awaiting_info = True
            self.info_requested.emit(job.id, job.source_path)
        else:
            self._launch(job.id)

    def on_info(self, job_id: str, info, err: str):
        """Resume a dispatch that was waiting for the source file's video info."""
        if not self._awaiting_info or job_id != self._active_id:
            return
        self._awaiting_info = False
        job = self.store.get(job_id)
        if err or info is None or not job:
            self._finish(job_id, False, err or "Could not read video info")
            return
        log.info("Loaded queue item: %s (%s)", job.display_name, info.resolution)
        self.info_ready.emit(job_id, info)
        self._launch(job_id)

    def _launch(self, job_id: str):
        job = self.store.get(job_id)
        try:
            log.info("Output will be: %s", job.output_path)
            log.info("Processing queue item: %s", job.display_name)
            self.executor.start(job.source_path, job.workflow.copy(), job.output_path)
        except Exception as e:
            log.exception("Could not start %s", job.display_name)
            if self._active_id == job_id:
                self._finish(job_id, False, str(e) or e.__class__.__name__)

    def _on_progress(self, pct: int):
        if not self._dispatching or self._awaiting_info:
            return
        # Whatever holds `processing` now; a late event after completion finds nothing
        job = self.store.processing_job()
        if not job or job.id != self._active_id:
            return
        pct = max(0, min(100, int(pct)))
        if pct != job.progress:
            self.store.update(job.id, progress=pct)

    def _on_job_done(self, ok: bool, message: str):
        if not self._dispatching or self._awaiting_info:
            log.debug("Ignoring executor result with no run in flight")
            return
        self._finish(self._active_id, ok, message)

    def _finish(self, job_id: str, ok: bool, message: str):
        try:
            job = self.store.get(job_id)
            if job and job.status == JobStatus.PROCESSING:
                if self._cancel_requested:
                    ok = False
                    self.store.update(job_id, status=JobStatus.ERROR, error_message=CANCELED_BY_USER)
                    log.info("Canceled: %s", job.display_name)
                elif ok:
                    self.store.update(job_id, status=JobStatus.COMPLETED, progress=100,
                                      completed_at=utc_now_iso(), error_message=None)
                    log.info("Completed: %s", job.display_name)
                else:
                    self.store.update(job_id, status=JobStatus.ERROR, error_message=message or "Processing failed")
                    log.error("Error processing %s: %s", job.display_name, message or "Processing failed")
            self.job_finished.emit(job_id, ok)
        finally:
            self._release()
        self._maybe_dispatch()

    def _release(self):
        self._dispatching = False
        self._awaiting_info = False
        self._active_id = None
        self._cancel_requested = False
