# vpq/dialogs/prefs.py
from PySide6.QtWidgets import (
    QDialog, QDialogButtonBox, QFormLayout, QHBoxLayout, QLabel, QVBoxLayout,
    QLineEdit, QPushButton, QSpinBox, QComboBox, QFileDialog
)

from ..widgets.workflow_panel import OUTPUT_FORMATS

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


class PrefsDialog(QDialog):
    def __init__(self, settings: dict, parent=None):
        super().__init__(parent)
        self.setWindowTitle("Preferences")
        self.settings = settings
        self.setMinimumWidth(640)

        self.data_edit = QLineEdit(self.settings["data_dir"])
        btn_browse_data = QPushButton("Browse…"); btn_browse_data.clicked.connect(lambda: self._browse_dir(self.data_edit, "Choose data folder"))
        data_hint = QLabel("(Queue file and logs; takes effect on next start)")

        self.vspipe_edit = QLineEdit(self.settings["vspipe_path"])
        btn_browse_vs = QPushButton("Browse…"); btn_browse_vs.clicked.connect(lambda: self._browse_exe(self.vspipe_edit, "Locate vspipe"))
        self.ffmpeg_edit = QLineEdit(self.settings["ffmpeg_path"])
        btn_browse_ff = QPushButton("Browse…"); btn_browse_ff.clicked.connect(lambda: self._browse_exe(self.ffmpeg_edit, "Locate ffmpeg"))
        self.ffprobe_edit = QLineEdit(self.settings["ffprobe_path"])
        btn_browse_fp = QPushButton("Browse…"); btn_browse_fp.clicked.connect(lambda: self._browse_exe(self.ffprobe_edit, "Locate ffprobe"))

        self.plugins_edit = QLineEdit(self.settings.get("plugins_path", ""))
        self.plugins_edit.setPlaceholderText("blank: VapourSynth default plugin folder")
        btn_browse_pl = QPushButton("Browse…"); btn_browse_pl.clicked.connect(lambda: self._browse_dir(self.plugins_edit, "Choose plugin folder"))
        self.engine_edit = QLineEdit(self.settings.get("engine_dir", ""))
        self.engine_edit.setPlaceholderText("blank: next to the model file")
        btn_browse_en = QPushButton("Browse…"); btn_browse_en.clicked.connect(lambda: self._browse_dir(self.engine_edit, "Choose engine cache folder"))

        self.ffmpeg_args = QLineEdit(self.settings.get("ffmpeg_args", ""))
        self.ffmpeg_args.setPlaceholderText("encoder options, e.g. -c:v libx265 -crf 20")

        self.compare_edit = QLineEdit(self.settings.get("video_compare_path", "video-compare"))
        btn_browse_vc = QPushButton("Browse…"); btn_browse_vc.clicked.connect(lambda: self._browse_exe(self.compare_edit, "Locate video-compare"))
        self.compare_args = QLineEdit(self.settings.get("video_compare_args", "-W"))
        self.compare_args.setPlaceholderText("options before the two files, e.g. -W")

        self.delay_spin = QSpinBox(); self.delay_spin.setRange(0, 10_000); self.delay_spin.setSingleStep(100)
        self.delay_spin.setValue(int(self.settings.get("autosave_delay_ms", 500))); self.delay_spin.setSuffix(" ms")

        self.fmt_combo = QComboBox(); self.fmt_combo.addItems(OUTPUT_FORMATS)
        self.fmt_combo.setCurrentText(self.settings.get("default_output_format", "mkv"))
        self.streams_spin = QSpinBox(); self.streams_spin.setRange(1, 8)
        self.streams_spin.setValue(int(self.settings.get("default_stream_count", 2)))

        self.level_combo = QComboBox(); self.level_combo.addItems(LOG_LEVELS)
        self.level_combo.setCurrentText(str(self.settings.get("log_level", "INFO")).upper())

        form = QFormLayout()
        row = QHBoxLayout(); row.addWidget(self.data_edit); row.addWidget(btn_browse_data)
        form.addRow("Data folder:", row); form.addRow("", data_hint)
        row = QHBoxLayout(); row.addWidget(self.vspipe_edit); row.addWidget(btn_browse_vs)
        form.addRow("vspipe path:", row)
        row = QHBoxLayout(); row.addWidget(self.ffmpeg_edit); row.addWidget(btn_browse_ff)
        form.addRow("ffmpeg path:", row)
        row = QHBoxLayout(); row.addWidget(self.ffprobe_edit); row.addWidget(btn_browse_fp)
        form.addRow("ffprobe path:", row)
        row = QHBoxLayout(); row.addWidget(self.plugins_edit); row.addWidget(btn_browse_pl)
        form.addRow("Plugin folder:", row)
        row = QHBoxLayout(); row.addWidget(self.engine_edit); row.addWidget(btn_browse_en)
        form.addRow("Engine cache:", row)
        form.addRow("ffmpeg encoder args:", self.ffmpeg_args)
        row = QHBoxLayout(); row.addWidget(self.compare_edit); row.addWidget(btn_browse_vc)
        form.addRow("video-compare path:", row)
        form.addRow("video-compare args:", self.compare_args)
        form.addRow("Auto-save delay:", self.delay_spin)
        form.addRow("Default format:", self.fmt_combo)
        form.addRow("Default streams:", self.streams_spin)
        form.addRow("Log level:", self.level_combo)

        buttons = QDialogButtonBox(QDialogButtonBox.Ok | QDialogButtonBox.Cancel)
        buttons.accepted.connect(self.accept); buttons.rejected.connect(self.reject)

        layout = QVBoxLayout(self); layout.addLayout(form); layout.addWidget(buttons)

    def _browse_dir(self, edit: QLineEdit, title: str):
        d = QFileDialog.getExistingDirectory(self, title, edit.text())
        if d: edit.setText(d)

    def _browse_exe(self, edit: QLineEdit, title: str):
        f, _ = QFileDialog.getOpenFileName(self, title, edit.text() or "/usr/bin", "All (*)")
        if f: edit.setText(f)

    def get_values(self) -> dict:
        return {
            "data_dir": self.data_edit.text().strip() or self.settings["data_dir"],
            "vspipe_path": self.vspipe_edit.text().strip() or "vspipe",
            "ffmpeg_path": self.ffmpeg_edit.text().strip() or "ffmpeg",
            "ffprobe_path": self.ffprobe_edit.text().strip() or "ffprobe",
            "plugins_path": self.plugins_edit.text().strip(),
            "engine_dir": self.engine_edit.text().strip(),
            "ffmpeg_args": self.ffmpeg_args.text().strip(),
            "video_compare_path": self.compare_edit.text().strip() or "video-compare",
            "video_compare_args": self.compare_args.text().strip(),
            "autosave_delay_ms": int(self.delay_spin.value()),
            "default_output_format": self.fmt_combo.currentText(),
            "default_stream_count": int(self.streams_spin.value()),
            "log_level": self.level_combo.currentText(),
        }
