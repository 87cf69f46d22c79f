# vpq/models/live.py
import copy

from PySide6.QtCore import QObject, Signal

from .job import Filter, Segment, Workflow


class LiveWorkflow(QObject):
    """The editable configuration the main window is bound to.

    Every setter emits `changed` when the value actually differs, which is what
    the edit session listens to for auto-save.
    """
    changed = Signal()
    output_path_changed = Signal(str)

    def __init__(self, workflow: Workflow | None = None, parent=None):
        super().__init__(parent)
        self._wf = (workflow or Workflow()).copy()
        self._output_path = ""
        self._output_pinned = False  # true only when the user chose the path

    # -- reads --
    @property
    def selected_model(self) -> str | None: return self._wf.selected_model
    @property
    def filters(self) -> list[Filter]: return copy.deepcopy(self._wf.filters)
    @property
    def output_format(self) -> str: return self._wf.output_format
    @property
    def use_alternate_backend(self) -> bool: return self._wf.use_alternate_backend
    @property
    def stream_count(self) -> int: return self._wf.stream_count
    @property
    def segment(self) -> Segment | None: return copy.deepcopy(self._wf.segment)
    @property
    def output_path(self) -> str: return self._output_path
    @property
    def pinned_output_path(self) -> str | None:
        """The output path the user typed or browsed to, None when it only mirrors a loaded job."""
        return self._output_path if self._output_pinned else None

    def snapshot(self) -> Workflow:
        return self._wf.copy()

    # -- writes --
    def _set(self, name: str, value) -> None:
        if getattr(self._wf, name) == value:
            return
        setattr(self._wf, name, copy.deepcopy(value))
        self.changed.emit()

    def set_selected_model(self, model: str | None): self._set("selected_model", model)
    def set_filters(self, filters: list[Filter]): self._set("filters", list(filters))
    def set_output_format(self, fmt: str): self._set("output_format", fmt)
    def set_use_alternate_backend(self, value: bool): self._set("use_alternate_backend", bool(value))
    def set_stream_count(self, count: int): self._set("stream_count", int(count))

    def set_segment(self, segment: Segment | None):
        # A disabled segment is stored as "no segment"
        self._set("segment", segment if segment and segment.enabled else None)

    def set_output_path(self, path: str):
        self._output_pinned = bool(path)
        if path == self._output_path:
            return
        self._output_path = path
        self.output_path_changed.emit(path)

    def unpin_output_path(self):
        self._output_pinned = False

    def load(self, workflow: Workflow, output_path: str | None = None, notify: bool = True) -> None:
        """Replace the whole configuration at once (one `changed` at most)."""
        self._wf = workflow.copy()
        if output_path is not None:
            self.set_output_path(output_path)
        self._output_pinned = False
        if notify:
            self.changed.emit()
