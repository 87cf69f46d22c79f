"""
Edit sessions: debounced auto-save into the pending job being edited.
"""

import pytest
from PySide6.QtTest import QTest

from vpq.models.job import Filter, JobStatus, Segment
from vpq.models.live import LiveWorkflow
from vpq.queue.editing import EditSessionCoordinator

DELAY = 50


@pytest.fixture
def live(qapp):
    return LiveWorkflow()


@pytest.fixture
def editor(controller, live):
    return EditSessionCoordinator(controller, live, delay_ms=DELAY)


@pytest.fixture
def two_jobs(controller, workflow):
    return controller.enqueue(["/v/a.mp4", "/v/b.mp4"], workflow)


def test_begin_loads_job_into_live(editor, live, two_jobs, store):
    a, _ = two_jobs
    store.update(a.id, output_path="/out/a.mkv")
    assert editor.begin_editing(a.id)
    assert editor.editing_id == a.id
    assert live.selected_model == "/models/2x_tspan.onnx"
    assert live.output_path == "/out/a.mkv"
    # Loading alone never schedules a save
    assert not editor.has_pending_save()


def test_edit_is_saved_after_quiet_period(editor, live, two_jobs, store):
    a, b = two_jobs
    editor.begin_editing(a.id)
    live.set_stream_count(4)

    assert editor.has_pending_save()
    assert store.get(a.id).workflow.stream_count == 2

    QTest.qWait(DELAY * 4)
    assert not editor.has_pending_save()
    assert store.get(a.id).workflow.stream_count == 4
    assert store.get(b.id).workflow.stream_count == 2


def test_burst_of_edits_is_one_write(editor, live, two_jobs, store):
    a, _ = two_jobs
    editor.begin_editing(a.id)
    writes = []
    store.changed.connect(lambda: writes.append(1))

    live.set_stream_count(3)
    live.set_stream_count(4)
    live.set_output_format("mp4")
    QTest.qWait(DELAY * 4)

    assert len(writes) == 1
    wf = store.get(a.id).workflow
    assert (wf.stream_count, wf.output_format) == (4, "mp4")


def test_switching_jobs_saves_into_previous_job(editor, live, two_jobs, store):
    a, b = two_jobs
    editor.begin_editing(a.id)
    live.set_segment(Segment(enabled=True, start_frame=10, end_frame=200))

    assert editor.begin_editing(b.id)
    assert not editor.has_pending_save()
    assert store.get(a.id).workflow.segment == Segment(True, 10, 200)
    assert store.get(b.id).workflow.segment is None
    assert live.segment is None

    live.set_use_alternate_backend(True)
    QTest.qWait(DELAY * 4)
    assert store.get(b.id).workflow.use_alternate_backend is True
    assert store.get(a.id).workflow.use_alternate_backend is False


def test_end_editing_keeps_in_flight_save(editor, live, two_jobs, store):
    a, _ = two_jobs
    editor.begin_editing(a.id)
    live.set_stream_count(6)
    editor.end_editing()
    assert editor.editing_id is None

    # Edits after the session ended belong to nobody
    live.set_stream_count(1)
    QTest.qWait(DELAY * 4)
    assert store.get(a.id).workflow.stream_count == 6


def test_only_pending_jobs_can_be_edited(editor, two_jobs, store):
    a, _ = two_jobs
    store.update(a.id, status=JobStatus.COMPLETED)
    res = editor.begin_editing(a.id)
    assert not res and res.message
    assert editor.editing_id is None
    assert not editor.begin_editing("missing")


def test_session_ends_when_job_leaves_pending(editor, live, two_jobs, store):
    a, _ = two_jobs
    editor.begin_editing(a.id)
    store.update(a.id, status=JobStatus.PROCESSING)
    assert editor.editing_id is None

    live.set_stream_count(5)
    QTest.qWait(DELAY * 4)
    assert store.get(a.id).workflow.stream_count == 2


def test_session_ends_when_job_removed(editor, controller, two_jobs):
    a, _ = two_jobs
    editor.begin_editing(a.id)
    controller.remove(a.id)
    assert editor.editing_id is None


def test_output_path_edit_updates_job(editor, live, two_jobs, store):
    a, b = two_jobs
    editor.begin_editing(a.id)
    live.set_output_path("/out/renamed.mkv")
    assert store.get(a.id).output_path == "/out/renamed.mkv"
    assert store.get(b.id).output_path == b.output_path


def test_hiding_queue_ends_session(editor, two_jobs):
    a, _ = two_jobs
    editor.begin_editing(a.id)
    editor.set_queue_visible(False)
    assert editor.editing_id is None


def test_show_completed_job_is_read_only(editor, live, two_jobs, store, controller):
    a, _ = two_jobs
    controller.update_workflow(a.id, {"stream_count": 3})
    store.update(a.id, status=JobStatus.COMPLETED)

    assert editor.show_job(a.id)
    assert live.stream_count == 3
    assert editor.editing_id is None

    live.set_stream_count(8)
    QTest.qWait(DELAY * 4)
    assert store.get(a.id).workflow.stream_count == 3


def test_show_job_refuses_pending(editor, two_jobs):
    a, _ = two_jobs
    assert not editor.show_job(a.id)


def test_editing_changed_signal(editor, two_jobs):
    a, _ = two_jobs
    seen = []
    editor.editing_changed.connect(seen.append)
    editor.begin_editing(a.id)
    editor.end_editing()
    assert seen == [a.id, ""]


def test_filter_edits_are_saved(editor, live, two_jobs, store):
    a, b = two_jobs
    editor.begin_editing(a.id)
    live.set_filters([Filter(id="f1", preset="Sharpen", code="clip = core.cas.CAS(clip)")])
    QTest.qWait(DELAY * 4)
    assert store.get(a.id).workflow.filters == live.filters

    live.set_filters(live.filters + [Filter(id="f2", code="clip = clip", order=1)])
    assert editor.begin_editing(b.id)
    assert [f.id for f in store.get(a.id).workflow.filters] == ["f1", "f2"]
    QTest.qWait(DELAY * 4)
    assert store.get(b.id).workflow.filters == []
    assert live.filters == []


def test_inspected_job_path_is_not_reused(editor, live, controller, store, workflow):
    a, = controller.enqueue(["/v/a.mp4"], workflow)
    store.update(a.id, status=JobStatus.COMPLETED)
    editor.show_job(a.id)
    assert live.output_path == a.output_path
    assert live.pinned_output_path is None
    assert editor.new_item_output_path(1) is None

    b, = controller.enqueue(["/v/b.mp4"], live.snapshot(), editor.new_item_output_path(1))
    assert b.output_path != a.output_path


def test_edited_job_path_is_not_reused(editor, live, two_jobs):
    a, _ = two_jobs
    editor.begin_editing(a.id)
    live.set_output_path("/out/renamed.mkv")
    assert editor.new_item_output_path(1) is None
    editor.end_editing()
    assert live.output_path == "/out/renamed.mkv"
    assert editor.new_item_output_path(1) is None


def test_chosen_path_applies_to_a_single_new_item(editor, live):
    live.set_output_path("/out/custom.mkv")
    assert editor.new_item_output_path(1) == "/out/custom.mkv"
    assert editor.new_item_output_path(2) is None
    live.unpin_output_path()
    assert editor.new_item_output_path(1) is None
