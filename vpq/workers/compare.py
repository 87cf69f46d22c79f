# vpq/workers/compare.py
import logging
import shlex
import shutil
import subprocess
from pathlib import Path

from ..models.result import OK, OpResult, refused

log = logging.getLogger(__name__)


def compare_command(source_path: str, output_path: str, settings: dict) -> list[str] | None:
    """video-compare command line, or None when the tool cannot be found."""
    exe = settings.get("video_compare_path") or "video-compare"
    if not (resolved := shutil.which(exe)):
        return None
    return [resolved, *shlex.split(settings.get("video_compare_args", "-W")), source_path, output_path]


def launch_compare(source_path: str, output_path: str, settings: dict) -> OpResult:
    """Open source and output side by side in video-compare; the viewer outlives the call."""
    if not (cmd := compare_command(source_path, output_path, settings)):
        return refused("video-compare not found (check Preferences).")
    if not Path(source_path).exists():
        return refused(f"Input video not found: {source_path}")
    if not Path(output_path).exists():
        return refused(f"Output video not found: {output_path}")
    log.info("Launching: %s", shlex.join(cmd))
    try:
        subprocess.Popen(cmd, stdin=subprocess.DEVNULL, stdout=subprocess.DEVNULL,
                         stderr=subprocess.DEVNULL, start_new_session=True)
    except OSError as e:
        log.error("Could not launch video-compare: %s", e)
        return refused(f"Could not launch video-compare: {e}")
    return OK
