# vpq/queue/editing.py
import logging

from PySide6.QtCore import QObject, QTimer, Signal

from ..models.job import JobStatus
from ..models.live import LiveWorkflow
from ..models.result import OK, OpResult, refused
from .controller import QueueController

log = logging.getLogger(__name__)


class EditSessionCoordinator(QObject):
    """Binds one pending job to the live configuration and auto-saves edits into it.

    Edits are debounced: each change re-arms a single-shot timer, and only the
    state at the end of a quiet period is written. The write always targets the
    job that was being edited when the timer was armed, so switching or ending
    the session can never redirect an in-flight save onto another job.
    """
    editing_changed = Signal(str)  # job_id, "" when no session

    def __init__(self, controller: QueueController, live: LiveWorkflow, delay_ms: int = 500, parent=None):
        super().__init__(parent)
        self.controller = controller
        self.store = controller.store
        self.live = live
        self._editing_id: str | None = None
        self._save_target: str | None = None
        self._pending = None  # snapshot waiting for the timer
        self._loading = False

        self._timer = QTimer(self)
        self._timer.setSingleShot(True)
        self._timer.setInterval(delay_ms)
        self._timer.timeout.connect(self._save_pending)

        live.changed.connect(self._on_live_changed)
        live.output_path_changed.connect(self._on_output_path_changed)
        self.store.changed.connect(self._on_store_changed)

    @property
    def editing_id(self) -> str | None:
        return self._editing_id

    def set_delay(self, delay_ms: int):
        self._timer.setInterval(int(delay_ms))

    def has_pending_save(self) -> bool:
        return self._timer.isActive()

    # -- session --
    def begin_editing(self, job_id: str) -> OpResult:
        if not (job := self.store.get(job_id)):
            return refused(f"No queue item {job_id}")
        if job.status != JobStatus.PENDING:
            return refused(f"Only pending items can be edited ({job.display_name} is {job.status.value})")
        if job_id == self._editing_id:
            return OK

        # Switching jobs: save what is on screen into the old job right now
        if not self.flush() and self._editing_id:
            self.controller.update_workflow(self._editing_id, self.live.snapshot())

        self._loading = True
        try:
            self.live.load(job.workflow, job.output_path)
        finally:
            self._loading = False
        self._set_editing(job_id)
        log.info("Loaded queue item for editing: %s", job.display_name)
        return OK

    def end_editing(self) -> None:
        # A pending save keeps its target and still lands when the timer fires
        if self._editing_id:
            # The path on screen belongs to the job just left, never to the next new item
            self.live.unpin_output_path()
            self._set_editing(None)
            log.info("Exited queue item editing mode")

    def show_job(self, job_id: str) -> OpResult:
        """Load a completed job's settings for viewing; nothing is written back."""
        if not (job := self.store.get(job_id)):
            return refused(f"No queue item {job_id}")
        if job.status != JobStatus.COMPLETED:
            return refused("Only completed items can be inspected")
        self.flush()
        self.end_editing()
        self._loading = True
        try:
            self.live.load(job.workflow, job.output_path)
        finally:
            self._loading = False
        log.info("Loaded completed queue item: %s", job.display_name)
        return OK

    def new_item_output_path(self, count: int) -> str | None:
        """Explicit output path for items about to be added, or None to derive one per item.

        Only a path the user chose outside any session counts, and only for a
        single file; anything else would point two jobs at one output.
        """
        if count != 1 or self._editing_id:
            return None
        return self.live.pinned_output_path

    def set_queue_visible(self, visible: bool) -> None:
        if not visible:
            self.end_editing()

    def flush(self) -> bool:
        if not self._timer.isActive():
            return False
        self._timer.stop()
        self._save_pending()
        return True

    # -- internals --
    def _set_editing(self, job_id: str | None):
        self._editing_id = job_id
        self.editing_changed.emit(job_id or "")

    def _on_live_changed(self):
        if self._loading or not self._editing_id:
            return
        self._save_target = self._editing_id
        self._pending = self.live.snapshot()
        self._timer.start()

    def _on_output_path_changed(self, path: str):
        if self._loading or not self._editing_id or not path:
            return
        if (job := self.store.get(self._editing_id)) and job.output_path != path:
            self.controller.set_output_path(job.id, path)

    def _save_pending(self):
        target, snapshot = self._save_target, self._pending
        self._save_target = self._pending = None
        if not target or snapshot is None:
            return
        if res := self.controller.update_workflow(target, snapshot):
            log.info("Auto-saved changes to queue item")
        else:
            log.debug("Auto-save skipped: %s", res.message)

    def _on_store_changed(self):
        if not self._editing_id:
            return
        job = self.store.get(self._editing_id)
        if not job or job.status != JobStatus.PENDING:
            self.end_editing()
