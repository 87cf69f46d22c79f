# vpq/models/job.py
import copy
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import NamedTuple


def _mapping(data, what: str) -> dict:
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be an object, got {type(data).__name__}")
    return data


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


@dataclass
class Segment:
    enabled: bool = False
    start_frame: int = 0
    end_frame: int = -1  # -1 => end of video

    def to_dict(self) -> dict:
        return {"enabled": self.enabled, "startFrame": self.start_frame, "endFrame": self.end_frame}

    @classmethod
    def from_dict(cls, data: dict) -> "Segment":
        data = _mapping(data, "segment")
        return cls(
            enabled=bool(data.get("enabled", False)),
            start_frame=int(data.get("startFrame", 0)),
            end_frame=int(data.get("endFrame", -1)),
        )


@dataclass
class Filter:
    id: str
    enabled: bool = True
    filter_type: str = "custom"  # "aiModel" or "custom"
    preset: str = ""
    code: str = ""
    order: int = 0
    model_path: str | None = None
    model_type: str | None = None  # "tspan" or "image"

    def to_dict(self) -> dict:
        d = {
            "id": self.id,
            "enabled": self.enabled,
            "filterType": self.filter_type,
            "preset": self.preset,
            "code": self.code,
            "order": self.order,
        }
        if self.model_path is not None: d["modelPath"] = self.model_path
        if self.model_type is not None: d["modelType"] = self.model_type
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Filter":
        data = _mapping(data, "filter")
        return cls(
            id=str(data["id"]),
            enabled=bool(data.get("enabled", True)),
            filter_type=data.get("filterType", "custom"),
            preset=data.get("preset", ""),
            code=data.get("code", ""),
            order=int(data.get("order", 0)),
            model_path=data.get("modelPath"),
            model_type=data.get("modelType"),
        )


@dataclass
class Workflow:
    """Processing configuration captured for a single job.

    Jobs never share a Workflow instance; use copy() whenever one crosses
    from the live configuration into a job or back.
    """
    selected_model: str | None = None
    filters: list[Filter] = field(default_factory=list)
    output_format: str = "mkv"
    use_alternate_backend: bool = False
    stream_count: int = 2
    segment: Segment | None = None

    def copy(self) -> "Workflow":
        return copy.deepcopy(self)

    def merged(self, partial: dict) -> "Workflow":
        known = {f.name for f in fields(self)}
        if unknown := set(partial) - known:
            raise ValueError(f"Unknown workflow field(s): {', '.join(sorted(unknown))}")
        return replace(self.copy(), **copy.deepcopy(partial))

    def enabled_filters(self) -> list[Filter]:
        return sorted((f for f in self.filters if f.enabled), key=lambda f: f.order)

    def to_dict(self) -> dict:
        d = {
            "selectedModel": self.selected_model,
            "filters": [f.to_dict() for f in self.filters],
            "outputFormat": self.output_format,
            "useAlternateBackend": self.use_alternate_backend,
            "streamCount": self.stream_count,
        }
        if self.segment is not None: d["segment"] = self.segment.to_dict()
        return d

    @classmethod
    def from_dict(cls, data: dict) -> "Workflow":
        data = _mapping(data, "workflow")
        seg = data.get("segment")
        filters = data.get("filters") or []
        if not isinstance(filters, list):
            raise ValueError("workflow filters must be a list")
        return cls(
            selected_model=data.get("selectedModel"),
            filters=[Filter.from_dict(f) for f in filters],
            output_format=data.get("outputFormat", "mkv"),
            use_alternate_backend=bool(data.get("useAlternateBackend", False)),
            stream_count=int(data.get("streamCount", 2)),
            segment=Segment.from_dict(seg) if seg else None,
        )


@dataclass
class Job:
    id: str
    source_path: str
    display_name: str
    output_path: str
    workflow: Workflow
    added_at: str
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    error_message: str | None = None
    completed_at: str | None = None

    @property
    def is_pending(self) -> bool:
        return self.status == JobStatus.PENDING

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sourcePath": self.source_path,
            "displayName": self.display_name,
            "outputPath": self.output_path,
            "status": self.status.value,
            "progress": self.progress,
            "errorMessage": self.error_message,
            "addedAt": self.added_at,
            "completedAt": self.completed_at,
            "workflow": self.workflow.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Job":
        data = _mapping(data, "queue item")
        return cls(
            id=str(data["id"]),
            source_path=data["sourcePath"],
            display_name=data.get("displayName") or data["sourcePath"],
            output_path=data["outputPath"],
            workflow=Workflow.from_dict(data.get("workflow") or {}),
            added_at=data.get("addedAt", ""),
            status=JobStatus(data.get("status", JobStatus.PENDING.value)),
            progress=int(data.get("progress") or 0),
            error_message=data.get("errorMessage"),
            completed_at=data.get("completedAt"),
        )


class QueueStats(NamedTuple):
    total: int
    pending: int
    processing: int
    completed: int
    error: int


CANCELED_BY_USER = "Canceled by user"
