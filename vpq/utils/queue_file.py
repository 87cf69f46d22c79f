# vpq/utils/queue_file.py
import json
from pathlib import Path

from ..models.job import Job


def read_queue(path: Path) -> list[Job]:
    """Read the whole queue document. A missing file is an empty queue."""
    if not path.exists():
        return []
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, list):
        raise ValueError(f"{path} does not contain a job list")
    return [Job.from_dict(item) for item in data]


def write_queue(path: Path, jobs: list[Job]) -> None:
    """Replace the queue document with `jobs`, in order."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps([j.to_dict() for j in jobs], indent=2), encoding="utf-8")
    tmp.replace(path)
