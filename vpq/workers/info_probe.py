import logging
import subprocess

from PySide6.QtCore import QObject, Signal

from ..parsers.media_info import VideoInfo, parse_ffprobe_json

log = logging.getLogger(__name__)


def probe_video(path: str, settings: dict, timeout: int = 60) -> VideoInfo:
    """Run ffprobe on `path`. Raises RuntimeError with a readable message on failure."""
    cmd = [settings["ffprobe_path"], "-v", "error", "-print_format", "json", "-show_streams", "-show_format", path]
    try:
        out = subprocess.check_output(cmd, stderr=subprocess.STDOUT, text=True, timeout=timeout)
    except FileNotFoundError:
        raise RuntimeError("ffprobe not found (check Preferences).") from None
    except subprocess.CalledProcessError as e:
        raise RuntimeError(f"ffprobe failed (rc={e.returncode}): {(e.output or '').strip()[:200]}") from None
    except subprocess.TimeoutExpired:
        raise RuntimeError(f"ffprobe timed out after {timeout}s") from None
    return parse_ffprobe_json(path, out)


class InfoProbeWorker(QObject):
    probed = Signal(str, object, str)  # job_id, VideoInfo | None, err

    def __init__(self, settings: dict):
        super().__init__()
        self.settings = settings

    def probe(self, job_id: str, path: str):
        info, err = None, ""
        try:
            info = probe_video(path, self.settings)
        except RuntimeError as e:
            err = str(e)
            log.warning("Probe failed for %s: %s", path, err)
        self.probed.emit(job_id, info, err)
