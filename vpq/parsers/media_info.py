# vpq/parsers/media_info.py
import json
import re
from dataclasses import dataclass

_FRAME_RE = re.compile(r"frame=\s*(\d+)\s+fps=\s*([\d.]+)", re.IGNORECASE)


@dataclass
class VideoInfo:
    path: str
    size: int = 0
    width: int | None = None
    height: int | None = None
    fps: float | None = None
    frame_count: int | None = None
    duration: float | None = None
    codec: str | None = None
    pixel_format: str | None = None
    container: str | None = None

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}" if self.width and self.height else "?"


def _rate(s: str | None) -> float | None:
    if not s:
        return None
    try:
        if "/" in s:
            num, den = s.split("/", 1)
            return float(num) / float(den) if float(den) else None
        return float(s)
    except ValueError:
        return None


def _int(v) -> int | None:
    try:
        return int(v)
    except (TypeError, ValueError):
        return None


def _float(v) -> float | None:
    try:
        return float(v)
    except (TypeError, ValueError):
        return None


def parse_ffprobe_json(path: str, output: str) -> VideoInfo:
    """Build a VideoInfo from `ffprobe -print_format json -show_streams -show_format` output."""
    data = json.loads(output or "{}")
    fmt = data.get("format", {})
    info = VideoInfo(
        path=path,
        size=_int(fmt.get("size")) or 0,
        duration=_float(fmt.get("duration")),
        container=fmt.get("format_name"),
    )
    video = next((s for s in data.get("streams", []) if s.get("codec_type") == "video"), None)
    if not video:
        return info

    info.width, info.height = _int(video.get("width")), _int(video.get("height"))
    info.codec = video.get("codec_name")
    info.pixel_format = video.get("pix_fmt")
    info.fps = _rate(video.get("avg_frame_rate")) or _rate(video.get("r_frame_rate"))
    if info.duration is None:
        info.duration = _float(video.get("duration"))

    # nb_frames is missing for many containers (mkv); estimate from duration
    info.frame_count = _int(video.get("nb_frames"))
    if not info.frame_count and info.fps and info.duration:
        info.frame_count = int(round(info.fps * info.duration))
    return info


def parse_progress_line(line: str) -> tuple[int, float] | None:
    """`frame=  662 fps=187 q=24.0 ...` → (662, 187.0)."""
    if m := _FRAME_RE.search(line):
        return int(m.group(1)), float(m.group(2))
    return None


def percent(frame: int, total: int) -> int:
    if total <= 0:
        return 0
    return max(0, min(100, round(100 * frame / total)))


def parse_vspipe_frames(output: str) -> int | None:
    """Frame count from `vspipe --info` output (`Frames: 1234`)."""
    if m := re.search(r"^Frames:\s*(\d+)", output or "", re.MULTILINE):
        return int(m.group(1))
    return None
