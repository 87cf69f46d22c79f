"""
Shared fixtures: a headless Qt application, a scripted executor and a queue
store bound to a temporary folder.
"""

import pytest
from PySide6.QtCore import QCoreApplication

from vpq.models.job import Workflow
from vpq.queue.controller import QueueController
from vpq.queue.scheduler import QueueScheduler
from vpq.queue.store import QueueStore
from vpq.workers.processor import Executor


@pytest.fixture(scope="session")
def qapp():
    app = QCoreApplication.instance() or QCoreApplication([])
    yield app


class FakeExecutor(Executor):
    """Records starts; the test decides when progress and results arrive."""

    def __init__(self):
        super().__init__()
        self.started: list[tuple[str, Workflow, str]] = []
        self.cancel_calls = 0
        self.fail_on_start: Exception | None = None

    def start(self, source_path, workflow, output_path):
        if self.fail_on_start:
            raise self.fail_on_start
        self.started.append((source_path, workflow, output_path))

    def cancel(self):
        self.cancel_calls += 1

    def emit_progress(self, pct: int):
        self.progress.emit(pct)

    def finish(self, ok: bool = True, message: str = ""):
        self.job_done.emit(ok, message)


@pytest.fixture
def queue_path(tmp_path):
    return tmp_path / "data" / "queue.json"


@pytest.fixture
def store(qapp, queue_path):
    s = QueueStore(queue_path)
    s.load()
    return s


@pytest.fixture
def executor(qapp):
    return FakeExecutor()


@pytest.fixture
def scheduler(store, executor):
    return QueueScheduler(store, executor)


@pytest.fixture
def controller(store, scheduler):
    return QueueController(store, scheduler.is_started)


@pytest.fixture
def workflow():
    return Workflow(selected_model="/models/2x_tspan.onnx", output_format="mkv", stream_count=2)
