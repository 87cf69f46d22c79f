# vpq/workers/processor.py
import logging
import os
import re
import select
import shlex
import subprocess
import time
from pathlib import Path

from PySide6.QtCore import QObject, QThread, Signal

from ..models.job import CANCELED_BY_USER, Workflow
from ..parsers.media_info import parse_progress_line, parse_vspipe_frames, percent
from ..utils.script import write_script

log = logging.getLogger(__name__)

_SPLIT = re.compile(r"[\r\n]+")


class Executor(QObject):
    """What the scheduler needs from whatever actually transforms the video.

    `job_done(ok, message)` is emitted exactly once per `start()`, including
    after `cancel()`; `progress` carries 0-100 while the run is in flight.
    """
    progress = Signal(int)
    job_done = Signal(bool, str)

    def start(self, source_path: str, workflow: Workflow, output_path: str) -> None:
        raise NotImplementedError

    def cancel(self) -> None:
        raise NotImplementedError


class ProcessingWorker(QObject):
    progress = Signal(int)
    line_out = Signal(str)
    job_done = Signal(bool, str)

    def __init__(self, settings: dict):
        super().__init__()
        self.settings = settings
        self.job: tuple[str, Workflow, str] | None = None
        self._stop = False

    def stop(self):
        self._stop = True

    def set_job(self, source_path: str, workflow: Workflow, output_path: str):
        self.job = (source_path, workflow.copy(), output_path)
        self._stop = False

    def _count_frames(self, script: Path, timeout: float = 180) -> int:
        """Frame count from `vspipe --info`, 0 when unknown or stopped."""
        cmd = [self.settings["vspipe_path"], "--info", str(script)]
        deadline = time.monotonic() + timeout
        with subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.STDOUT, text=True) as p:
            while True:
                if self._stop:
                    p.terminate()
                    p.communicate()
                    return 0
                try:
                    out, _ = p.communicate(timeout=0.2)
                    break
                except subprocess.TimeoutExpired:
                    if time.monotonic() > deadline:
                        p.kill()
                        p.communicate()
                        raise
        if p.returncode:
            raise subprocess.CalledProcessError(p.returncode, cmd, output=out)
        return parse_vspipe_frames(out) or 0

    def _ffmpeg_cmd(self, source_path: str, output_path: str) -> list[str]:
        cmd = [self.settings["ffmpeg_path"], "-hide_banner", "-y", "-i", "-", "-i", source_path,
               "-map", "0:v", "-map", "1:a?", "-c:a", "copy"]
        if extra := self.settings.get("ffmpeg_args", "").strip():
            cmd.extend(shlex.split(extra))
        cmd.append(output_path)
        return cmd

    def run(self):
        if not self.job:
            self.job_done.emit(False, "No job set")
            return
        source_path, workflow, output_path = self.job
        script: Path | None = None
        ok, message = False, ""

        try:
            script = write_script(source_path, workflow, self.settings.get("plugins_path", ""),
                                  self.settings.get("engine_dir", ""))
            self.line_out.emit(f"Script: {script}")
            total = self._count_frames(script)
            # A stop during the count never starts the pipeline
            if not self._stop:
                ok, message = self._run_pipeline(source_path, script, output_path, total)
        except FileNotFoundError as e:
            message = f"Executable not found: {e.filename}. Check Preferences."
        except subprocess.CalledProcessError as e:
            message = f"vspipe --info failed (rc={e.returncode}): {(e.output or '').strip()[-300:]}"
        except subprocess.TimeoutExpired:
            message = "vspipe --info timed out"
        except Exception as e:
            message = str(e) or e.__class__.__name__
        finally:
            if script:
                try:
                    script.unlink()
                except OSError:
                    pass

        if self._stop:
            ok, message = False, CANCELED_BY_USER
        if ok:
            self.progress.emit(100)
        self.job_done.emit(ok, message)

    def _run_pipeline(self, source_path: str, script: Path, output_path: str, total: int) -> tuple[bool, str]:
        self.line_out.emit(f"Expected frames: {total or '?'}")
        Path(output_path).parent.mkdir(parents=True, exist_ok=True)

        vs_cmd = [self.settings["vspipe_path"], "-c", "y4m", str(script), "-"]
        ff_cmd = self._ffmpeg_cmd(source_path, output_path)
        self.line_out.emit("$ " + " | ".join(shlex.join(cmd) for cmd in (vs_cmd, ff_cmd)))

        with subprocess.Popen(vs_cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE) as vspipe:
            with subprocess.Popen(ff_cmd, stdin=vspipe.stdout, stdout=subprocess.DEVNULL,
                                  stderr=subprocess.PIPE) as ffmpeg:
                vspipe.stdout.close()  # ffmpeg owns the read end now
                return self._pump(vspipe, ffmpeg, total)

    def _pump(self, vspipe: subprocess.Popen, ffmpeg: subprocess.Popen, total: int) -> tuple[bool, str]:
        streams = {vspipe.stderr.fileno(): ("vspipe", b""), ffmpeg.stderr.fileno(): ("ffmpeg", b"")}
        tail: list[str] = []
        last_pct, last_log = -1, 0.0

        while streams:
            if self._stop:
                for p in (vspipe, ffmpeg):
                    if p.poll() is None:
                        p.terminate()
                break
            ready, _, _ = select.select(list(streams), [], [], 0.1)
            for fd in ready:
                name, buf = streams[fd]
                if not (chunk := os.read(fd, 4096)):
                    del streams[fd]
                    continue
                *lines, rest = _SPLIT.split((buf + chunk).decode("utf-8", errors="replace"))
                streams[fd] = (name, rest.encode())
                for line in filter(None, (l.strip() for l in lines)):
                    if name == "ffmpeg" and (prog := parse_progress_line(line)):
                        pct = percent(prog[0], total)
                        if ffmpeg.poll() is None and pct >= 100:
                            pct = 99  # Never show 100% until actually done
                        if pct != last_pct:
                            last_pct = pct
                            self.progress.emit(pct)
                        if (now := time.time()) - last_log >= 10:
                            last_log = now
                            log.debug("frame %d/%d (%d%%) @ %.1f fps", prog[0], total, pct, prog[1])
                        continue
                    tail = (tail + [f"{name}: {line}"])[-20:]
                    self.line_out.emit(f"{name}: {line}")

        for p in (vspipe, ffmpeg):
            try:
                p.wait(timeout=10)
            except subprocess.TimeoutExpired:
                p.kill()
                p.wait()

        if ffmpeg.returncode == 0 and vspipe.returncode == 0:
            return True, ""
        detail = next((t for t in reversed(tail) if "error" in t.lower()), tail[-1] if tail else "")
        return False, f"Processing failed (vspipe={vspipe.returncode}, ffmpeg={ffmpeg.returncode}) {detail}".strip()


class ThreadedExecutor(Executor):
    """Runs a ProcessingWorker on its own QThread, one job at a time."""
    line_out = Signal(str)

    def __init__(self, settings: dict, parent=None):
        super().__init__(parent)
        self.worker = ProcessingWorker(settings)
        self.work_thread = QThread(self)
        self.worker.moveToThread(self.work_thread)
        self.work_thread.started.connect(self.worker.run)
        self.worker.progress.connect(self._on_progress)
        self.worker.line_out.connect(self.line_out)
        self.worker.job_done.connect(self._on_done)
        self._running = False

    @property
    def settings(self) -> dict:
        return self.worker.settings

    @settings.setter
    def settings(self, value: dict):
        self.worker.settings = value

    def is_running(self) -> bool:
        return self._running

    def start(self, source_path: str, workflow: Workflow, output_path: str) -> None:
        if self._running:
            raise RuntimeError("Executor is already running a job")
        self.worker.set_job(source_path, workflow, output_path)
        self._running = True
        log.info("Executor started: %s -> %s", source_path, output_path)
        self.work_thread.start()

    def cancel(self) -> None:
        if self._running:
            log.info("Executor stop requested")
            self.worker.stop()

    def shutdown(self, wait_ms: int = 5000) -> None:
        self.cancel()
        if self.work_thread.isRunning():
            self.work_thread.quit()
            self.work_thread.wait(wait_ms)

    def _on_progress(self, pct: int):
        if self._running:
            self.progress.emit(pct)

    def _on_done(self, ok: bool, message: str):
        self.work_thread.quit()
        self.work_thread.wait()
        self._running = False
        log.info("Executor finished: %s%s", "ok" if ok else "failed", f" ({message})" if message else "")
        self.job_done.emit(ok, message)
