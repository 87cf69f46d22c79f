# vpq/widgets/details_panel.py
from PySide6.QtWidgets import QTreeWidget, QTreeWidgetItem, QHeaderView
from PySide6.QtCore import Qt

from ..models.job import Job
from ..parsers.media_info import VideoInfo


def _human_size(n: int) -> str:
    size = float(n)
    for unit in ("B", "KB", "MB", "GB", "TB"):
        if size < 1024 or unit == "TB":
            return f"{size:.1f} {unit}" if unit != "B" else f"{int(size)} B"
        size /= 1024
    return f"{n} B"


def _hms(seconds: float) -> str:
    s = int(round(seconds))
    return f"{s // 3600}:{s % 3600 // 60:02d}:{s % 60:02d}"


class DetailsPanel(QTreeWidget):
    def __init__(self, parent=None):
        super().__init__(parent)
        self.setHeaderLabels(["Property", "Value"])
        self.setUniformRowHeights(False)
        self.setRootIsDecorated(True)
        hdr = self.header()
        hdr.setSectionResizeMode(0, QHeaderView.ResizeToContents)
        hdr.setSectionResizeMode(1, QHeaderView.Stretch)

    def show_job(self, job: Job, info: VideoInfo | None = None):
        self.clear()

        job_node = QTreeWidgetItem(["Queue Item", job.display_name])
        self.addTopLevelItem(job_node)
        QTreeWidgetItem(job_node, ["Source", job.source_path])
        QTreeWidgetItem(job_node, ["Output", job.output_path])
        QTreeWidgetItem(job_node, ["Status", job.status.value])
        QTreeWidgetItem(job_node, ["Progress", f"{job.progress}%"])
        QTreeWidgetItem(job_node, ["Added", job.added_at])
        if job.completed_at:
            QTreeWidgetItem(job_node, ["Completed", job.completed_at])
        if job.error_message:
            err = QTreeWidgetItem(job_node, ["Error", job.error_message])
            err.setForeground(1, Qt.GlobalColor.red)

        wf = job.workflow
        wf_node = QTreeWidgetItem(["Workflow", wf.output_format])
        self.addTopLevelItem(wf_node)
        QTreeWidgetItem(wf_node, ["Model", wf.selected_model or "(none)"])
        QTreeWidgetItem(wf_node, ["Backend", "DirectML" if wf.use_alternate_backend else "TensorRT"])
        QTreeWidgetItem(wf_node, ["Streams", str(wf.stream_count)])
        if wf.segment and wf.segment.enabled:
            end = "end" if wf.segment.end_frame < 0 else str(wf.segment.end_frame)
            QTreeWidgetItem(wf_node, ["Segment", f"{wf.segment.start_frame} → {end}"])

        filters = wf.enabled_filters()
        if filters:
            f_node = QTreeWidgetItem(wf_node, ["Filters", str(len(filters))])
            for f in filters:
                label = f.preset or f.filter_type
                if f.filter_type == "aiModel":
                    value = f.model_path or ""
                else:
                    lines = f.code.strip().splitlines()
                    value = lines[0] if lines else ""
                QTreeWidgetItem(f_node, [label, value])

        if info:
            self._add_video_info(info)

        self.expandAll()

    def _add_video_info(self, info: VideoInfo):
        v_node = QTreeWidgetItem(["Video", info.resolution])
        self.addTopLevelItem(v_node)
        if info.codec:
            QTreeWidgetItem(v_node, ["Codec", info.codec])
        if info.pixel_format:
            QTreeWidgetItem(v_node, ["Pixel Format", info.pixel_format])
        if info.fps:
            QTreeWidgetItem(v_node, ["Frame Rate", f"{info.fps:.3f} fps"])
        if info.frame_count:
            QTreeWidgetItem(v_node, ["Frames", f"{info.frame_count:,}"])
        if info.duration:
            QTreeWidgetItem(v_node, ["Duration", _hms(info.duration)])
        if info.container:
            QTreeWidgetItem(v_node, ["Container", info.container])
        if info.size:
            QTreeWidgetItem(v_node, ["File Size", _human_size(info.size)])
