"""
Processing worker command assembly and failure reporting (no real tools run).
"""

import subprocess

import pytest

from vpq.models.job import CANCELED_BY_USER, Workflow
from vpq.workers import processor
from vpq.workers.processor import ProcessingWorker

SETTINGS = {
    "vspipe_path": "/nonexistent/vspipe",
    "ffmpeg_path": "ffmpeg",
    "plugins_path": "",
    "engine_dir": "",
    "ffmpeg_args": "-c:v libx265 -crf 20",
}


def _run(worker):
    results = []
    worker.job_done.connect(lambda ok, msg: results.append((ok, msg)))
    worker.run()
    return results


def test_ffmpeg_command_maps_audio_from_source(qapp):
    cmd = ProcessingWorker(SETTINGS)._ffmpeg_cmd("/v/a.mp4", "/out/a.mkv")
    assert cmd[0] == "ffmpeg"
    assert cmd[cmd.index("-map") + 1] == "0:v"
    assert "1:a?" in cmd
    assert cmd[-5:] == ["-c:v", "libx265", "-crf", "20", "/out/a.mkv"]


def test_missing_tool_is_reported(qapp, tmp_path):
    worker = ProcessingWorker(SETTINGS)
    worker.set_job("/v/a.mp4", Workflow(), str(tmp_path / "a.mkv"))
    assert _run(worker) == [(False, "Executable not found: /nonexistent/vspipe. Check Preferences.")]


def test_stop_reports_cancel(qapp, tmp_path):
    worker = ProcessingWorker(SETTINGS)
    worker.set_job("/v/a.mp4", Workflow(), str(tmp_path / "a.mkv"))
    worker.stop()
    # set_job clears a stale stop; a stop after it sticks for this run
    assert _run(worker) == [(False, CANCELED_BY_USER)]


def test_no_job(qapp):
    assert _run(ProcessingWorker(SETTINGS)) == [(False, "No job set")]


class _SlowInfo:
    """Stands in for a `vspipe --info` that never answers on its own."""

    def __init__(self, cmd, **kwargs):
        self.cmd = cmd
        self.returncode = None
        self.terminated = False

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def communicate(self, timeout=None):
        if self.terminated:
            self.returncode = -15
            return "", None
        raise subprocess.TimeoutExpired(self.cmd, timeout)

    def terminate(self):
        self.terminated = True

    def kill(self):
        self.terminated = True


def test_frame_count_stops_when_asked(qapp, tmp_path, monkeypatch):
    worker = ProcessingWorker(SETTINGS)
    spawned = []

    def fake_popen(cmd, **kwargs):
        spawned.append(p := _SlowInfo(cmd, **kwargs))
        worker.stop()  # arrives while the count is running
        return p

    monkeypatch.setattr(processor.subprocess, "Popen", fake_popen)
    assert worker._count_frames(tmp_path / "a.vpy") == 0
    assert spawned[0].cmd[1] == "--info"
    assert spawned[0].terminated


def test_frame_count_gives_up_after_timeout(qapp, tmp_path, monkeypatch):
    worker = ProcessingWorker(SETTINGS)
    monkeypatch.setattr(processor.subprocess, "Popen", _SlowInfo)
    with pytest.raises(subprocess.TimeoutExpired):
        worker._count_frames(tmp_path / "a.vpy", timeout=-1)


def test_stop_during_frame_count_skips_pipeline(qapp, tmp_path, monkeypatch):
    worker = ProcessingWorker(SETTINGS)
    worker.set_job("/v/a.mp4", Workflow(), str(tmp_path / "out" / "a.mkv"))
    started = []

    def count_then_stop(script):
        worker.stop()
        return 10

    monkeypatch.setattr(worker, "_count_frames", count_then_stop)
    monkeypatch.setattr(processor.subprocess, "Popen", lambda cmd, **kw: started.append(cmd))
    assert _run(worker) == [(False, CANCELED_BY_USER)]
    assert started == []
    assert not (tmp_path / "out").exists()
