# vpq/utils/script.py
import tempfile
import uuid
from pathlib import Path

from ..models.job import Filter, Segment, Workflow

_TEMPLATE = """\
import vapoursynth as vs
core = vs.core
{plugin_load}
clip = core.bs.VideoSource(source=r"{source}")
{body}
clip.set_output()
"""


def _segment_code(seg: Segment) -> str:
    if seg.end_frame == -1:
        return f"# Segment selection\nclip = core.std.Trim(clip, first={seg.start_frame})\n"
    return f"# Segment selection\nclip = core.std.Trim(clip, first={seg.start_frame}, last={seg.end_frame - 1})\n"


def _model_code(f: Filter, use_alternate_backend: bool, stream_count: int, engine_dir: str) -> str:
    backend = (
        f"Backend.ORT_DML(num_streams={stream_count})" if use_alternate_backend
        else f"Backend.TRT(num_streams={stream_count}, fp16=True, output_format=1"
             + (f', engine_folder=r"{engine_dir}"' if engine_dir else "") + ")"
    )
    lines = [
        f"# AI model: {f.preset or Path(f.model_path).stem}",
        "from vsmlrt import inference, Backend",
        'clip = core.resize.Bicubic(clip, format=vs.RGBH, matrix_in_s="709")',
    ]
    if (f.model_type or "tspan") == "tspan":
        # Temporal models see five neighbouring frames
        lines += [
            "m2 = clip[0] + clip[0] + clip[:-2]",
            "m1 = clip[0] + clip[:-1]",
            "p1 = clip[1:] + clip[-1]",
            "p2 = clip[2:] + clip[-1] + clip[-1]",
            f'clip = inference([m2, m1, clip, p1, p2], network_path=r"{f.model_path}", backend={backend})',
        ]
    else:
        lines.append(f'clip = inference(clip, network_path=r"{f.model_path}", backend={backend})')
    lines.append('clip = core.resize.Bicubic(clip, format=vs.YUV420P8, matrix_s="709")')
    return "\n".join(lines) + "\n"


def build_script(source_path: str, workflow: Workflow, plugins_path: str = "", engine_dir: str = "") -> str:
    """Render the VapourSynth script text for one job."""
    parts: list[str] = []
    if workflow.segment and workflow.segment.enabled:
        parts.append(_segment_code(workflow.segment))

    filters = workflow.enabled_filters()
    if not filters and workflow.selected_model:
        # Plain model selection without an explicit filter chain
        filters = [Filter(id="model", filter_type="aiModel", model_path=workflow.selected_model)]

    for f in filters:
        if f.filter_type == "aiModel" and f.model_path:
            parts.append(_model_code(f, workflow.use_alternate_backend, workflow.stream_count, engine_dir))
        elif f.filter_type == "custom" and f.code.strip():
            parts.append(f"# Custom filter: {f.preset or 'Unnamed'}\n{f.code.strip()}\n")

    plugin_load = f'core.std.LoadAllPlugins(r"{plugins_path}")' if plugins_path else ""
    return _TEMPLATE.format(plugin_load=plugin_load, source=source_path.replace("\\", "/"), body="\n".join(parts))


def write_script(source_path: str, workflow: Workflow, plugins_path: str = "", engine_dir: str = "") -> Path:
    # Unique name per job so back-to-back queue items never collide
    out = Path(tempfile.gettempdir()) / f"vpq_{uuid.uuid4().hex[:12]}.vpy"
    out.write_text(build_script(source_path, workflow, plugins_path, engine_dir), encoding="utf-8")
    return out
