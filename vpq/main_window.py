# vpq/main_window.py
import logging
from pathlib import Path
from typing import Optional

from PySide6.QtCore import Qt, QThread, QUrl, Signal
from PySide6.QtGui import QAction, QDesktopServices
from PySide6.QtWidgets import (
    QMainWindow, QWidget, QVBoxLayout, QLabel, QHBoxLayout, QPushButton, QSplitter,
    QTextEdit, QTreeWidgetItem, QMenu, QFileDialog, QDialog, QTabWidget
)

from .utils.settings import load_settings, save_settings, queue_file_path
from .utils.paths import find_videos, VIDEO_EXTS
from .utils.logging_setup import QtLogHandler
from .models.job import JobStatus, Workflow
from .models.live import LiveWorkflow
from .queue.store import QueueStore
from .queue.controller import QueueController
from .queue.scheduler import QueueScheduler
from .queue.editing import EditSessionCoordinator
from .workers.compare import launch_compare
from .workers.info_probe import InfoProbeWorker
from .workers.processor import ThreadedExecutor
from .widgets.queue_tree import QueueTree
from .widgets.details_panel import DetailsPanel
from .widgets.workflow_panel import WorkflowPanel
from .dialogs.prefs import PrefsDialog

log = logging.getLogger(__name__)


class MainWindow(QMainWindow):
    probe_requested = Signal(str, str)  # job_id, path → InfoProbeWorker on its thread

    def __init__(self, settings: dict | None = None):
        super().__init__()
        self.setWindowTitle("Video Processing Queue")
        self.resize(1280, 820)
        self.settings = settings or load_settings()
        save_settings(self.settings)
        self._probed = {}  # job_id -> VideoInfo

        # -- engine --
        self.store = QueueStore(queue_file_path(self.settings), self)
        self.live = LiveWorkflow(Workflow(
            output_format=self.settings.get("default_output_format", "mkv"),
            stream_count=int(self.settings.get("default_stream_count", 2)),
        ), self)
        self.executor = ThreadedExecutor(self.settings, self)
        self.scheduler = QueueScheduler(self.store, self.executor, read_info_first=True, parent=self)
        self.controller = QueueController(self.store, self.scheduler.is_started)
        self.editor = EditSessionCoordinator(self.controller, self.live,
                                             int(self.settings.get("autosave_delay_ms", 500)), self)

        # -- widgets --
        self.queue_label = QLabel("Queue: 0 items")
        self.queue_label.setStyleSheet("font-weight:600;")

        self.tree = QueueTree()
        self.tree.setContextMenuPolicy(Qt.CustomContextMenu)
        self.tree.customContextMenuRequested.connect(self._row_menu)
        self.tree.currentItemChanged.connect(self._on_current_item_changed)
        self.tree.pathsDropped.connect(self._add_paths)
        self.tree.itemMoved.connect(self._on_item_moved)

        self.details = DetailsPanel()
        self.workflow_panel = WorkflowPanel(self.live)
        self.side_tabs = QTabWidget()
        self.side_tabs.addTab(self.workflow_panel, "Workflow")
        self.side_tabs.addTab(self.details, "Details")

        self.queue_box = QWidget(); qb = QVBoxLayout(self.queue_box); qb.setContentsMargins(0, 0, 0, 0)
        qb.addWidget(self.queue_label); qb.addWidget(self.tree)

        self.center_split = QSplitter(Qt.Horizontal)
        self.center_split.addWidget(self.queue_box)
        self.center_split.addWidget(self.side_tabs)
        self.center_split.setSizes([820, 460])

        self.console = QTextEdit(); self.console.setReadOnly(True)
        self.console.setPlaceholderText("vspipe / ffmpeg output will appear here…")

        self.v_split = QSplitter(Qt.Vertical)
        self.v_split.addWidget(self.center_split)
        self.v_split.addWidget(self.console)
        self.v_split.setSizes([620, 220])

        self.btn_add_files = QPushButton("Add Video(s)…"); self.btn_add_files.clicked.connect(self.add_files)
        self.btn_add_folder = QPushButton("Add Folder…"); self.btn_add_folder.clicked.connect(self.add_folder)
        self.btn_remove = QPushButton("Remove Selected"); self.btn_remove.clicked.connect(self.remove_selected)
        self.btn_clear_done = QPushButton("Clear Completed"); self.btn_clear_done.clicked.connect(self.clear_completed)
        self.btn_clear = QPushButton("Clear All"); self.btn_clear.clicked.connect(self.clear_all)
        self.btn_start = QPushButton("Start Queue"); self.btn_start.clicked.connect(self.start_queue)
        self.btn_stop = QPushButton("Stop"); self.btn_stop.setEnabled(False); self.btn_stop.clicked.connect(self.stop_queue)
        self.btn_show_queue = QPushButton("Show Queue"); self.btn_show_queue.setCheckable(True)
        self.btn_show_queue.toggled.connect(self.set_queue_visible)

        top = QHBoxLayout()
        for b in (self.btn_add_files, self.btn_add_folder, self.btn_remove, self.btn_clear_done, self.btn_clear,
                  self.btn_start, self.btn_stop):
            top.addWidget(b)
        top.addStretch(); top.addWidget(self.btn_show_queue)

        central = QWidget(); v = QVBoxLayout(central)
        v.addLayout(top); v.addWidget(self.v_split)
        self.setCentralWidget(central)

        m = self.menuBar().addMenu("&Options")
        act_prefs = QAction("Preferences…", self); act_prefs.triggered.connect(self.open_prefs); m.addAction(act_prefs)

        # -- console: engine log records plus raw tool output --
        self.log_handler = QtLogHandler(logging.INFO)
        self.log_handler.relay.line.connect(self.console.append)
        logging.getLogger("vpq").addHandler(self.log_handler)
        self.executor.line_out.connect(self.console.append)

        # -- probe thread: details pane and the read before each run --
        self.probe_worker = InfoProbeWorker(self.settings)
        self.probe_thread = QThread(self); self.probe_worker.moveToThread(self.probe_thread)
        self.probe_requested.connect(self.probe_worker.probe)
        self.probe_worker.probed.connect(self._on_probed)
        self.scheduler.info_requested.connect(self.probe_worker.probe)
        self.probe_worker.probed.connect(self.scheduler.on_info)
        self.probe_thread.start()

        # -- engine → UI --
        self.store.changed.connect(self._refresh)
        self.store.recovered.connect(lambda n: self.console.append(f">>> {n} interrupted item(s) returned to pending"))
        self.scheduler.started_changed.connect(self._on_started_changed)
        self.scheduler.queue_finished.connect(lambda: self.console.append("=== Queue finished ==="))
        self.editor.editing_changed.connect(lambda _id: self._refresh())

        self._restore_layout()
        self.btn_show_queue.setChecked(bool(self.settings.get("show_queue", True)))
        self.queue_box.setVisible(self.btn_show_queue.isChecked())
        self._refresh()

    def load_queue(self):
        self.store.load()

    # -- layout --
    def _restore_layout(self):
        if cw := self.settings.get("col_widths"):
            if len(cw) == self.tree.columnCount():
                for i, w in enumerate(cw): self.tree.setColumnWidth(i, int(w))
        if cs := self.settings.get("center_split_sizes"): self.center_split.setSizes([int(x) for x in cs])
        if vs := self.settings.get("v_split_sizes"): self.v_split.setSizes([int(x) for x in vs])

    def _save_layout(self):
        self.settings["col_widths"] = [self.tree.columnWidth(i) for i in range(self.tree.columnCount())]
        self.settings["center_split_sizes"] = self.center_split.sizes()
        self.settings["v_split_sizes"] = self.v_split.sizes()
        save_settings(self.settings)

    def closeEvent(self, e):
        log.info("Shutting down")
        self.editor.flush()
        self.executor.shutdown(3000)
        if self.probe_thread.isRunning(): self.probe_thread.quit(); self.probe_thread.wait(3000)
        logging.getLogger("vpq").removeHandler(self.log_handler)
        self._save_layout()
        super().closeEvent(e)

    # -- refresh --
    def _refresh(self):
        self.tree.sync(self.store.jobs(), self.editor.editing_id)
        s = self.controller.stats()
        text = f"Queue: {s.completed}/{s.total} done • {s.pending} pending"
        if s.error: text += f" • {s.error} failed"
        if job := self.store.processing_job():
            text += f" • Working on: {job.display_name} ({job.progress}%)"
        self.queue_label.setText(text)

        started = self.scheduler.is_started()
        self.tree.setDragEnabled(not started)
        self.btn_start.setEnabled(not started and s.pending > 0)
        self.btn_clear.setEnabled(not started)

    def _on_started_changed(self, started: bool):
        self.btn_stop.setEnabled(started)
        self._refresh()

    # -- adding --
    def add_files(self):
        patterns = " ".join(f"*{ext}" for ext in sorted(VIDEO_EXTS))
        files, _ = QFileDialog.getOpenFileNames(self, "Select videos", str(Path.home()), f"Videos ({patterns});;All files (*)")
        if files: self._add_paths(files)

    def add_folder(self):
        d = QFileDialog.getExistingDirectory(self, "Choose folder of videos", str(Path.home()))
        if d: self._add_paths([d])

    def _add_paths(self, paths):
        videos = []
        for p_str in paths:
            if (pth := Path(p_str)).exists():
                videos.extend(str(v) for v in find_videos(pth))
        if not videos:
            self.console.append("No video files found in the dropped paths.")
            return
        out = self.editor.new_item_output_path(len(videos))
        jobs = self.controller.enqueue(videos, self.live.snapshot(), out)
        if out:
            self.live.unpin_output_path()
        for job in jobs:
            self.probe_requested.emit(job.id, job.source_path)

    # -- selection --
    def _on_current_item_changed(self, cur: Optional[QTreeWidgetItem], prev: Optional[QTreeWidgetItem]):
        if not (job_id := self.tree.job_id_at(cur)) or not (job := self.store.get(job_id)):
            self.details.clear()
            return
        self.details.show_job(job, self._probed.get(job_id))
        if job.status == JobStatus.PENDING:
            self.editor.begin_editing(job_id)
        elif job.status == JobStatus.COMPLETED:
            self.editor.show_job(job_id)
        else:
            self.editor.end_editing()

    def _on_probed(self, job_id: str, info, err: str):
        if info is not None:
            self._probed[job_id] = info
        if self.tree.current_job_id() == job_id and (job := self.store.get(job_id)):
            self.details.show_job(job, info)

    def _on_item_moved(self, from_index: int, to_index: int):
        if not (res := self.controller.reorder(from_index, to_index)):
            self.console.append(f">>> {res.message}")
            # Put the rows back in store order
            self.tree.sync(self.store.jobs(), self.editor.editing_id)

    # -- context menu --
    def _row_menu(self, pos):
        if not (item := self.tree.itemAt(pos)): return
        if not (job := self.store.get(self.tree.job_id_at(item))): return

        menu = QMenu(self)

        def _open(p: Path):
            if p.exists(): QDesktopServices.openUrl(QUrl.fromLocalFile(str(p)))

        act_open_out = QAction("Open Output Folder", self)
        act_open_out.triggered.connect(lambda: _open(Path(job.output_path).parent)); menu.addAction(act_open_out)
        menu.addSeparator()
        if job.status == JobStatus.PENDING:
            act_edit = QAction("Edit", self); act_edit.triggered.connect(lambda: self._report(self.editor.begin_editing(job.id)))
            menu.addAction(act_edit)
        if job.status == JobStatus.PROCESSING:
            act_cancel = QAction("Cancel", self); act_cancel.triggered.connect(lambda: self._report(self.scheduler.cancel(job.id)))
            menu.addAction(act_cancel)
        if job.status == JobStatus.COMPLETED:
            act_cmp = QAction("Compare Source/Output", self)
            act_cmp.triggered.connect(lambda: self._report(launch_compare(job.source_path, job.output_path, self.settings)))
            menu.addAction(act_cmp)
        if job.status in (JobStatus.COMPLETED, JobStatus.ERROR):
            act_requeue = QAction("Requeue", self); act_requeue.triggered.connect(lambda: self._report(self.controller.requeue(job.id)))
            menu.addAction(act_requeue)
        act_rm = QAction("Remove", self); act_rm.triggered.connect(lambda: self._report(self.controller.remove(job.id)))
        act_rm.setEnabled(job.status != JobStatus.PROCESSING); menu.addAction(act_rm)

        menu.exec(self.tree.viewport().mapToGlobal(pos))

    def _report(self, res):
        if not res: self.console.append(f">>> {res.message}")

    # -- buttons --
    def remove_selected(self):
        if job_id := self.tree.current_job_id():
            self._report(self.controller.remove(job_id))
            self._probed.pop(job_id, None)

    def clear_completed(self):
        self.controller.clear_completed()

    def clear_all(self):
        if res := self.controller.clear_all():
            self._probed.clear(); self.details.clear()
        self._report(res)

    def start_queue(self):
        self.editor.flush()
        self.executor.settings = self.settings
        if self.store.next_pending():
            self.console.clear()
        self._report(self.scheduler.start_queue())

    def stop_queue(self):
        self.console.append(">>> Stop requested, terminating current item…")
        self.scheduler.stop_queue()

    def set_queue_visible(self, visible: bool):
        self.queue_box.setVisible(visible)
        self.editor.set_queue_visible(visible)
        if self.settings.get("show_queue") != visible:
            self.settings["show_queue"] = visible
            save_settings(self.settings)

    def open_prefs(self):
        dlg = PrefsDialog(self.settings, self)
        if dlg.exec() == QDialog.Accepted:
            self.settings.update(dlg.get_values())
            save_settings(self.settings)
            self.editor.set_delay(int(self.settings["autosave_delay_ms"]))
            logging.getLogger("vpq").setLevel(getattr(logging, self.settings["log_level"], logging.INFO))
            self.console.append("Saved preferences.")
