"""
Sequential dispatch: one job at a time, progress routing, cancel and stop.
"""

import pytest

from vpq.models.job import CANCELED_BY_USER, JobStatus
from vpq.parsers.media_info import VideoInfo
from vpq.queue.scheduler import QueueScheduler


def _statuses(store):
    return [j.status for j in store.jobs()]


def test_start_refused_with_nothing_pending(scheduler):
    res = scheduler.start_queue()
    assert not res
    assert not scheduler.is_started()


def test_runs_jobs_in_order(scheduler, controller, store, executor, workflow):
    a, b = controller.enqueue(["/v/a.mp4", "/v/b.mp4"], workflow)
    finished, done = [], []
    scheduler.job_finished.connect(lambda jid, ok: finished.append((jid, ok)))
    scheduler.queue_finished.connect(lambda: done.append(True))

    assert scheduler.start_queue()
    assert scheduler.is_started()
    assert len(executor.started) == 1
    assert executor.started[0][0] == "/v/a.mp4"
    assert scheduler.is_busy()
    assert scheduler.active_job_id() == a.id
    assert executor.started[0][2] == a.output_path
    assert _statuses(store) == [JobStatus.PROCESSING, JobStatus.PENDING]

    executor.emit_progress(42)
    assert store.get(a.id).progress == 42

    executor.finish(True)
    job_a = store.get(a.id)
    assert job_a.status == JobStatus.COMPLETED
    assert job_a.progress == 100
    assert job_a.completed_at
    assert len(executor.started) == 2
    assert store.get(b.id).status == JobStatus.PROCESSING

    executor.finish(True)
    assert _statuses(store) == [JobStatus.COMPLETED, JobStatus.COMPLETED]
    assert finished == [(a.id, True), (b.id, True)]
    assert done == [True]
    assert not scheduler.is_started()
    assert not scheduler.is_busy()
    assert scheduler.active_job_id() is None


def test_executor_gets_a_copy_of_the_workflow(scheduler, controller, store, executor, workflow):
    a, = controller.enqueue(["/v/a.mp4"], workflow)
    scheduler.start_queue()
    sent = executor.started[0][1]
    sent.stream_count = 7
    assert store.get(a.id).workflow.stream_count == 2


def test_failure_continues_with_next_job(scheduler, controller, store, executor, workflow):
    a, b = controller.enqueue(["/v/a.mp4", "/v/b.mp4"], workflow)
    scheduler.start_queue()
    executor.emit_progress(30)
    executor.finish(False, "ffmpeg exited with 1")

    job_a = store.get(a.id)
    assert job_a.status == JobStatus.ERROR
    assert job_a.error_message == "ffmpeg exited with 1"
    assert job_a.progress == 30
    assert store.get(b.id).status == JobStatus.PROCESSING

    executor.finish(True)
    assert controller.requeue(a.id)
    assert scheduler.start_queue()
    assert executor.started[-1][0] == "/v/a.mp4"


def test_failure_without_message(scheduler, controller, store, executor, workflow):
    a, = controller.enqueue(["/v/a.mp4"], workflow)
    scheduler.start_queue()
    executor.finish(False, "")
    assert store.get(a.id).error_message == "Processing failed"


def test_start_failure_marks_error(scheduler, controller, store, executor, workflow):
    a, b = controller.enqueue(["/v/a.mp4", "/v/b.mp4"], workflow)
    executor.fail_on_start = RuntimeError("vspipe missing")
    scheduler.start_queue()
    assert store.get(a.id).status == JobStatus.ERROR
    assert store.get(a.id).error_message == "vspipe missing"
    assert store.get(b.id).status == JobStatus.ERROR
    assert not scheduler.is_started()


@pytest.fixture
def reading_scheduler(store, executor):
    sched = QueueScheduler(store, executor, read_info_first=True)
    requested = []
    sched.info_requested.connect(lambda jid, path: requested.append((jid, path)))
    return sched, requested


def test_run_waits_for_video_info(reading_scheduler, controller, store, executor, workflow):
    sched, requested = reading_scheduler
    a, = controller.enqueue(["/v/a.mp4"], workflow)
    ready = []
    sched.info_ready.connect(lambda jid, info: ready.append((jid, info)))

    assert sched.start_queue()
    assert requested == [(a.id, "/v/a.mp4")]
    assert executor.started == []
    assert store.get(a.id).status == JobStatus.PROCESSING
    # Progress or results from no run at all are not this job's
    executor.emit_progress(40)
    executor.finish(True)
    assert store.get(a.id).progress == 0

    info = VideoInfo(path="/v/a.mp4", width=1920, height=1080)
    sched.on_info(a.id, info, "")
    assert ready == [(a.id, info)]
    assert executor.started[0][0] == "/v/a.mp4"
    executor.finish(True)
    assert store.get(a.id).status == JobStatus.COMPLETED


def test_unreadable_source_fails_the_job(reading_scheduler, controller, store, executor, workflow):
    sched, requested = reading_scheduler
    a, b = controller.enqueue(["/v/a.mp4", "/v/b.mp4"], workflow)
    sched.start_queue()
    sched.on_info(a.id, None, "ffprobe failed (rc=1): Invalid data")
    assert executor.started == []
    assert store.get(a.id).status == JobStatus.ERROR
    assert store.get(a.id).error_message == "ffprobe failed (rc=1): Invalid data"
    assert requested[-1] == (b.id, "/v/b.mp4")


def test_info_for_other_jobs_is_ignored(reading_scheduler, controller, store, executor, workflow):
    sched, _ = reading_scheduler
    a, b = controller.enqueue(["/v/a.mp4", "/v/b.mp4"], workflow)
    sched.start_queue()
    sched.on_info(b.id, VideoInfo(path="/v/b.mp4"), "")
    assert executor.started == []
    assert store.get(b.id).status == JobStatus.PENDING


def test_stop_while_reading_info(reading_scheduler, controller, store, executor, workflow):
    sched, requested = reading_scheduler
    a, = controller.enqueue(["/v/a.mp4"], workflow)
    sched.start_queue()
    assert sched.stop_queue()
    assert executor.cancel_calls == 0
    assert not sched.is_busy()
    assert store.get(a.id).status == JobStatus.PENDING

    # The answer to the abandoned request starts nothing
    sched.on_info(a.id, VideoInfo(path="/v/a.mp4"), "")
    assert executor.started == []

    assert sched.start_queue()
    assert len(requested) == 2
    sched.on_info(a.id, VideoInfo(path="/v/a.mp4"), "")
    assert len(executor.started) == 1


def test_cancel_while_reading_info(reading_scheduler, controller, store, executor, workflow):
    sched, requested = reading_scheduler
    a, b = controller.enqueue(["/v/a.mp4", "/v/b.mp4"], workflow)
    sched.start_queue()
    assert sched.cancel(a.id)
    assert executor.cancel_calls == 0
    assert store.get(a.id).error_message == CANCELED_BY_USER
    assert requested[-1][0] == b.id

    sched.on_info(a.id, VideoInfo(path="/v/a.mp4"), "")
    assert executor.started == []


def test_cancel_active_job_then_next(scheduler, controller, store, executor, workflow):
    a, b = controller.enqueue(["/v/a.mp4", "/v/b.mp4"], workflow)
    scheduler.start_queue()
    assert scheduler.cancel(a.id)
    assert executor.cancel_calls == 1
    executor.finish(False, "terminated")

    assert store.get(a.id).status == JobStatus.ERROR
    assert store.get(a.id).error_message == CANCELED_BY_USER
    assert store.get(b.id).status == JobStatus.PROCESSING
    assert scheduler.is_started()


def test_cancel_refused_for_other_jobs(scheduler, controller, executor, workflow):
    a, b = controller.enqueue(["/v/a.mp4", "/v/b.mp4"], workflow)
    assert not scheduler.cancel(b.id)
    scheduler.start_queue()
    assert not scheduler.cancel(b.id)
    assert executor.cancel_calls == 0


def test_stop_returns_job_to_pending(scheduler, controller, store, executor, workflow):
    a, b = controller.enqueue(["/v/a.mp4", "/v/b.mp4"], workflow)
    scheduler.start_queue()
    executor.emit_progress(60)

    assert scheduler.stop_queue()
    assert executor.cancel_calls == 1
    assert not scheduler.is_started()
    assert store.get(a.id).status == JobStatus.PENDING
    assert store.get(a.id).progress == 0

    # The executor's late acknowledgement changes nothing
    executor.finish(False, CANCELED_BY_USER)
    assert _statuses(store) == [JobStatus.PENDING, JobStatus.PENDING]
    assert len(executor.started) == 1


def test_restart_after_stop(scheduler, controller, store, executor, workflow):
    a, = controller.enqueue(["/v/a.mp4"], workflow)
    scheduler.start_queue()
    scheduler.stop_queue()
    executor.finish(False, CANCELED_BY_USER)
    assert scheduler.start_queue()
    assert len(executor.started) == 2
    assert store.get(a.id).status == JobStatus.PROCESSING


def test_progress_without_run_is_dropped(scheduler, controller, store, executor, workflow):
    a, = controller.enqueue(["/v/a.mp4"], workflow)
    executor.emit_progress(50)
    assert store.get(a.id).progress == 0

    scheduler.start_queue()
    executor.finish(True)
    executor.emit_progress(10)
    assert store.get(a.id).progress == 100


def test_progress_is_clamped(scheduler, controller, store, executor, workflow):
    a, = controller.enqueue(["/v/a.mp4"], workflow)
    scheduler.start_queue()
    executor.emit_progress(250)
    assert store.get(a.id).progress == 100
    executor.emit_progress(-5)
    assert store.get(a.id).progress == 0


def test_only_one_job_processing(scheduler, controller, store, executor, workflow):
    controller.enqueue(["/v/a.mp4", "/v/b.mp4"], workflow)
    scheduler.start_queue()
    # More work arriving re-triggers dispatch; the guard keeps it to one run
    controller.enqueue(["/v/c.mp4"], workflow)
    store.update(store.jobs()[1].id, progress=0)
    assert len(executor.started) == 1
    assert store.stats().processing == 1


def test_enqueue_while_started_is_picked_up(scheduler, controller, store, executor, workflow):
    a, = controller.enqueue(["/v/a.mp4"], workflow)
    scheduler.start_queue()
    b, = controller.enqueue(["/v/b.mp4"], workflow)
    executor.finish(True)
    assert store.get(b.id).status == JobStatus.PROCESSING
    assert executor.started[-1][0] == "/v/b.mp4"
