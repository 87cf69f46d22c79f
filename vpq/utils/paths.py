import re
from pathlib import Path

VIDEO_EXTS = {".mp4", ".mkv", ".mov", ".avi", ".webm", ".m2ts", ".ts", ".mpg", ".mpeg", ".wmv", ".flv", ".m4v"}

def is_video(path: Path) -> bool:
    return path.is_file() and path.suffix.lower() in VIDEO_EXTS

def display_name_for(path: str) -> str:
    # Handles both separators so queue files moved between platforms still read well
    return re.split(r"[\\/]", path)[-1] or "unknown"

def derive_output_path(source_path: str, output_format: str) -> str:
    """`clip.mp4` + `mkv` → `clip_processed.mkv`, in the source's folder."""
    stem = re.sub(r"\.[^/.\\]+$", "", source_path)
    return f"{stem}_processed.{output_format.lstrip('.')}"

def find_videos(path: Path, max_depth: int = 5) -> list[Path]:
    """
    Expand a dropped path into the video files it contains.

    Args:
        path: A video file or a folder to search
        max_depth: Maximum recursion depth to prevent infinite loops

    Returns:
        Sorted list of video file paths
    """
    if path.is_file():
        return [path] if is_video(path) else []

    found: list[Path] = []

    def _walk(current: Path, depth: int = 0) -> None:
        if depth > max_depth or not current.is_dir():
            return
        try:
            for item in sorted(current.iterdir()):
                if item.is_dir():
                    _walk(item, depth + 1)
                elif is_video(item):
                    found.append(item)
        except (PermissionError, OSError):
            # Skip directories we can't access
            pass

    _walk(path)
    return found
