# vpq/widgets/workflow_panel.py
import uuid
from pathlib import Path

from PySide6.QtCore import Qt
from PySide6.QtWidgets import (
    QCheckBox, QComboBox, QFileDialog, QFormLayout, QGroupBox, QHBoxLayout, QInputDialog,
    QLineEdit, QListWidget, QListWidgetItem, QPushButton, QSpinBox, QVBoxLayout, QWidget
)

from ..models.job import Filter, Segment
from ..models.live import LiveWorkflow

OUTPUT_FORMATS = ["mkv", "mp4", "mov", "webm"]


class WorkflowPanel(QWidget):
    """Editor for the live configuration.

    Widgets write through the LiveWorkflow setters; `changed` from the model
    repaints the widgets. `_syncing` keeps a repaint from writing back.
    """

    def __init__(self, live: LiveWorkflow, parent=None):
        super().__init__(parent)
        self.live = live
        self._syncing = False

        self.model_edit = QLineEdit(); self.model_edit.setPlaceholderText("(no model)")
        self.model_edit.editingFinished.connect(lambda: self.live.set_selected_model(self.model_edit.text().strip() or None))
        btn_model = QPushButton("Browse…"); btn_model.clicked.connect(self._browse_model)

        self.fmt_combo = QComboBox(); self.fmt_combo.addItems(OUTPUT_FORMATS)
        self.fmt_combo.currentTextChanged.connect(self._on_format)

        self.chk_alt = QCheckBox("Use DirectML backend instead of TensorRT")
        self.chk_alt.toggled.connect(self._on_alt)

        self.streams_spin = QSpinBox(); self.streams_spin.setRange(1, 8)
        self.streams_spin.valueChanged.connect(self._on_streams)

        self.chk_segment = QCheckBox("Process a segment only")
        self.seg_start = QSpinBox(); self.seg_start.setRange(0, 10_000_000); self.seg_start.setPrefix("from ")
        self.seg_end = QSpinBox(); self.seg_end.setRange(-1, 10_000_000); self.seg_end.setPrefix("to ")
        self.seg_end.setSpecialValueText("to end")
        for w in (self.seg_start, self.seg_end): w.valueChanged.connect(self._on_segment)
        self.chk_segment.toggled.connect(self._on_segment)

        self.filter_list = QListWidget()
        self.filter_list.itemChanged.connect(self._on_filter_checked)
        btn_add_custom = QPushButton("Add Script…"); btn_add_custom.clicked.connect(self._add_custom_filter)
        btn_add_model = QPushButton("Add Model…"); btn_add_model.clicked.connect(self._add_model_filter)
        btn_rm = QPushButton("Remove"); btn_rm.clicked.connect(self._remove_filter)
        btn_up = QPushButton("▲"); btn_up.clicked.connect(lambda: self._move_filter(-1))
        btn_down = QPushButton("▼"); btn_down.clicked.connect(lambda: self._move_filter(1))

        self.out_edit = QLineEdit()
        self.out_edit.editingFinished.connect(self._on_output_edited)
        btn_out = QPushButton("Browse…"); btn_out.clicked.connect(self._browse_output)

        form = QFormLayout()
        row_model = QHBoxLayout(); row_model.addWidget(self.model_edit); row_model.addWidget(btn_model)
        form.addRow("Model:", row_model)
        form.addRow("Output format:", self.fmt_combo)
        form.addRow("", self.chk_alt)
        form.addRow("Streams:", self.streams_spin)
        row_seg = QHBoxLayout(); row_seg.addWidget(self.chk_segment); row_seg.addWidget(self.seg_start); row_seg.addWidget(self.seg_end)
        form.addRow("Segment:", row_seg)
        row_out = QHBoxLayout(); row_out.addWidget(self.out_edit); row_out.addWidget(btn_out)
        form.addRow("Output file:", row_out)

        filters_box = QGroupBox("Filters")
        fb = QVBoxLayout(filters_box); fb.addWidget(self.filter_list)
        row_f = QHBoxLayout()
        for b in (btn_add_custom, btn_add_model, btn_rm, btn_up, btn_down): row_f.addWidget(b)
        fb.addLayout(row_f)

        v = QVBoxLayout(self); v.addLayout(form); v.addWidget(filters_box)

        live.changed.connect(self.refresh)
        live.output_path_changed.connect(self._on_live_output)
        self.refresh()

    def refresh(self):
        self._syncing = True
        try:
            self.model_edit.setText(self.live.selected_model or "")
            self.fmt_combo.setCurrentText(self.live.output_format)
            self.chk_alt.setChecked(self.live.use_alternate_backend)
            self.streams_spin.setValue(self.live.stream_count)
            seg = self.live.segment
            self.chk_segment.setChecked(bool(seg))
            self.seg_start.setValue(seg.start_frame if seg else 0)
            self.seg_end.setValue(seg.end_frame if seg else -1)
            self.seg_start.setEnabled(bool(seg)); self.seg_end.setEnabled(bool(seg))

            self.filter_list.clear()
            for f in sorted(self.live.filters, key=lambda f: f.order):
                label = f.preset or (Path(f.model_path).name if f.model_path else f.filter_type)
                item = QListWidgetItem(label)
                item.setFlags(item.flags() | Qt.ItemIsUserCheckable)
                item.setCheckState(Qt.CheckState.Checked if f.enabled else Qt.CheckState.Unchecked)
                item.setData(Qt.UserRole, f.id)
                item.setToolTip(f.code or f.model_path or "")
                self.filter_list.addItem(item)
            self.out_edit.setText(self.live.output_path)
        finally:
            self._syncing = False

    def _on_live_output(self, path: str):
        self._syncing = True
        try:
            self.out_edit.setText(path)
        finally:
            self._syncing = False

    # -- widget → model --
    def _on_output_edited(self):
        # editingFinished also fires on plain focus-out; only a real change counts as a choice
        if (text := self.out_edit.text().strip()) != self.live.output_path:
            self.live.set_output_path(text)

    def _on_format(self, fmt: str):
        if not self._syncing: self.live.set_output_format(fmt)

    def _on_alt(self, checked: bool):
        if not self._syncing: self.live.set_use_alternate_backend(checked)

    def _on_streams(self, n: int):
        if not self._syncing: self.live.set_stream_count(n)

    def _on_segment(self, *_):
        if self._syncing: return
        on = self.chk_segment.isChecked()
        self.seg_start.setEnabled(on); self.seg_end.setEnabled(on)
        self.live.set_segment(Segment(True, self.seg_start.value(), self.seg_end.value()) if on else None)

    def _on_filter_checked(self, item: QListWidgetItem):
        if self._syncing: return
        fid = item.data(Qt.UserRole)
        filters = self.live.filters
        for f in filters:
            if f.id == fid: f.enabled = item.checkState() == Qt.CheckState.Checked
        self.live.set_filters(filters)

    def _append_filter(self, f: Filter):
        filters = self.live.filters
        f.order = max((x.order for x in filters), default=-1) + 1
        self.live.set_filters(filters + [f])

    def _add_custom_filter(self):
        code, ok = QInputDialog.getMultiLineText(self, "Add Script Filter", "VapourSynth code (operates on `clip`):")
        if ok and code.strip():
            self._append_filter(Filter(id=uuid.uuid4().hex, filter_type="custom", preset="Custom", code=code))

    def _add_model_filter(self):
        f, _ = QFileDialog.getOpenFileName(self, "Choose ONNX model", "", "Models (*.onnx);;All files (*)")
        if not f: return
        model_type = "tspan" if "tspan" in Path(f).name.lower() else "image"
        self._append_filter(Filter(id=uuid.uuid4().hex, filter_type="aiModel", preset=Path(f).stem,
                                   model_path=f, model_type=model_type))

    def _remove_filter(self):
        if not (item := self.filter_list.currentItem()): return
        fid = item.data(Qt.UserRole)
        self.live.set_filters([f for f in self.live.filters if f.id != fid])

    def _move_filter(self, step: int):
        if not (item := self.filter_list.currentItem()): return
        ordered = sorted(self.live.filters, key=lambda f: f.order)
        i = next((k for k, f in enumerate(ordered) if f.id == item.data(Qt.UserRole)), -1)
        j = i + step
        if i < 0 or not (0 <= j < len(ordered)): return
        ordered[i], ordered[j] = ordered[j], ordered[i]
        for k, f in enumerate(ordered): f.order = k
        self.live.set_filters(ordered)
        self.filter_list.setCurrentRow(j)

    def _browse_model(self):
        f, _ = QFileDialog.getOpenFileName(self, "Choose ONNX model", self.model_edit.text(), "Models (*.onnx);;All files (*)")
        if f:
            self.model_edit.setText(f)
            self.live.set_selected_model(f)

    def _browse_output(self):
        start = self.out_edit.text() or str(Path.home())
        f, _ = QFileDialog.getSaveFileName(self, "Output file", start, "Video (*.mkv *.mp4 *.mov *.webm);;All files (*)")
        if f:
            self.out_edit.setText(f)
            self.live.set_output_path(f)
