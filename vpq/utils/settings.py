# vpq/utils/settings.py
import json
from pathlib import Path

# Top directory = folder that contains the `vpq/` package
def _top_dir() -> Path:
    # This file is vpq/utils/settings.py → parents[2] is the folder above vpq/
    return Path(__file__).resolve().parents[2]

APP_SETTINGS_FILE = _top_dir() / "vpq_settings.json"

DEFAULT_SETTINGS = {
    "data_dir": str(_top_dir() / "data"),   # queue.json and logs/ live here
    "vspipe_path": "vspipe",
    "ffmpeg_path": "ffmpeg",
    "ffprobe_path": "ffprobe",
    "plugins_path": "",                    # VapourSynth plugin folder, blank => system default
    "engine_dir": "",                      # where TensorRT engines are cached
    "ffmpeg_args": "-c:v libx264 -preset medium -crf 18 -pix_fmt yuv420p",
    "video_compare_path": "video-compare",
    "video_compare_args": "-W",           # passed before the two files

    # Queue behaviour
    "autosave_delay_ms": 500,              # debounce for edits to a queued job
    "default_output_format": "mkv",
    "default_stream_count": 2,
    "show_queue": True,

    # Logging
    "log_level": "INFO",
    # layout persistence:
    # "col_widths": [...],
    # "center_split_sizes": [...],
    # "v_split_sizes": [...],
}

def load_settings() -> dict:
    p = APP_SETTINGS_FILE
    if p.exists():
        try:
            data = json.loads(p.read_text())
            return {**DEFAULT_SETTINGS, **data}
        except (OSError, ValueError):
            pass
    # First run or broken file → write defaults so the file exists in the top dir
    try:
        p.write_text(json.dumps(DEFAULT_SETTINGS, indent=2))
    except OSError:
        # As a last resort, write into CWD so you still get a file
        Path("vpq_settings.json").write_text(json.dumps(DEFAULT_SETTINGS, indent=2))
    return DEFAULT_SETTINGS.copy()

def save_settings(data: dict) -> None:
    p = APP_SETTINGS_FILE
    try:
        p.write_text(json.dumps(data, indent=2))
    except OSError:
        # Last resort fallback to CWD
        Path("vpq_settings.json").write_text(json.dumps(data, indent=2))

def queue_file_path(settings: dict) -> Path:
    return Path(settings["data_dir"]) / "queue.json"
