# vpq/widgets/queue_tree.py
from pathlib import Path
from PySide6.QtCore import Qt, Signal
from PySide6.QtWidgets import QAbstractItemView, QProgressBar, QTreeWidget, QTreeWidgetItem, QHeaderView

from ..models.job import Job, JobStatus

COL_NAME, COL_OUTPUT, COL_STATUS, COL_PROGRESS = range(4)

_STATUS_TEXT = {
    JobStatus.PENDING: "Pending",
    JobStatus.PROCESSING: "Processing",
    JobStatus.COMPLETED: "Done",
    JobStatus.ERROR: "Failed",
}


class QueueTree(QTreeWidget):
    pathsDropped = Signal(list)      # list[str]
    itemMoved = Signal(int, int)     # from_index, to_index after an internal drag-drop

    def __init__(self, *a, **kw):
        super().__init__(*a, **kw)
        self.setColumnCount(4)
        self.setHeaderLabels(["Video", "Output", "Status", "Progress"])
        self.setRootIsDecorated(False)
        self.setAcceptDrops(True)
        self.setDragEnabled(True)
        self.setDragDropMode(QAbstractItemView.InternalMove)

        self.setSelectionBehavior(QAbstractItemView.SelectRows)
        self.setEditTriggers(QAbstractItemView.NoEditTriggers)
        self.setUniformRowHeights(True)

        hdr = self.header()
        hdr.setStretchLastSection(False)
        hdr.setSectionResizeMode(COL_NAME, QHeaderView.Stretch)
        hdr.setSectionResizeMode(COL_OUTPUT, QHeaderView.Interactive)
        hdr.setSectionResizeMode(COL_STATUS, QHeaderView.ResizeToContents)
        hdr.setSectionResizeMode(COL_PROGRESS, QHeaderView.ResizeToContents)

    def job_id_at(self, item: QTreeWidgetItem | None) -> str | None:
        return item.data(0, Qt.UserRole) if item else None

    def current_job_id(self) -> str | None:
        return self.job_id_at(self.currentItem())

    def _ids(self) -> list[str]:
        return [self.topLevelItem(i).data(0, Qt.UserRole) for i in range(self.topLevelItemCount())]

    def sync(self, jobs: list[Job], editing_id: str | None = None):
        """Mirror the store: update rows in place when the order is unchanged, else rebuild."""
        if self._ids() != [j.id for j in jobs]:
            current = self.current_job_id()
            self.blockSignals(True)
            try:
                self.clear()
                for job in jobs:
                    item = QTreeWidgetItem(["", "", "", ""])
                    item.setData(0, Qt.UserRole, job.id)
                    self.addTopLevelItem(item)
                for i, job in enumerate(jobs):
                    if job.id == current: self.setCurrentItem(self.topLevelItem(i))
            finally:
                self.blockSignals(False)

        for i, job in enumerate(jobs):
            item = self.topLevelItem(i)
            name = f"✎ {job.display_name}" if job.id == editing_id else job.display_name
            item.setText(COL_NAME, name)
            item.setToolTip(COL_NAME, job.source_path)
            item.setText(COL_OUTPUT, Path(job.output_path).name)
            item.setToolTip(COL_OUTPUT, job.output_path)
            status = _STATUS_TEXT[job.status]
            if job.status == JobStatus.ERROR and job.error_message:
                status = f"Failed: {job.error_message}"
            item.setText(COL_STATUS, status)
            # Only pending rows can be dragged
            flags = item.flags() | Qt.ItemIsDragEnabled if job.is_pending else item.flags() & ~Qt.ItemIsDragEnabled
            item.setFlags(flags & ~Qt.ItemIsDropEnabled)
            if not (bar := self.itemWidget(item, COL_PROGRESS)):
                # Internal drag-drop drops item widgets, so (re)create on demand
                bar = QProgressBar(); bar.setRange(0, 100); bar.setFixedHeight(12); bar.setTextVisible(True)
                self.setItemWidget(item, COL_PROGRESS, bar)
            bar.setValue(max(0, min(100, job.progress)))

    def dragEnterEvent(self, event):
        """Accept the drag action if it contains file URLs."""
        if event.mimeData().hasUrls():
            event.acceptProposedAction()
        else:
            super().dragEnterEvent(event)

    def dragMoveEvent(self, event):
        """Accept the move action if it contains file URLs."""
        if event.mimeData().hasUrls():
            event.acceptProposedAction()
        else:
            super().dragMoveEvent(event)

    def dropEvent(self, event):
        """Handle both external file drops and internal reordering."""
        # Check for external file drops first.
        if event.mimeData().hasUrls():
            paths = []
            for url in event.mimeData().urls():
                if url.isLocalFile():
                    p = Path(url.toLocalFile())
                    if p.exists(): paths.append(str(p))
            if paths:
                self.pathsDropped.emit(paths)
                event.acceptProposedAction()
                return

        # Internal move: report it and let the store decide; sync() redraws the real order
        before = self._ids()
        moved = self.current_job_id()
        super().dropEvent(event)
        after = self._ids()
        if moved in before and moved in after and before.index(moved) != after.index(moved):
            self.itemMoved.emit(before.index(moved), after.index(moved))
