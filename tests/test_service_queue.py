import gc
import logging
import threading
import weakref

from restmap import (
    Call,
    CancelledError,
    DecodeError,
    HTTPMethod,
    InvalidSessionError,
    NetworkError,
    QueueState,
    ResultKind,
    ServiceQueue,
    TaskState,
    TransportSession,
)
from restmap.mock import MockSession

from conftest import StubHttp


class FinalRecorder:
    def __init__(self):
        self.calls = []
        self.event = threading.Event()

    def __call__(self, failed_tasks, errors):
        self.calls.append((failed_tasks, errors))
        self.event.set()


class UnreliableSession(MockSession):
    """Cannot create tasks for URLs containing ``broken``."""

    def data_task(self, request, completion, timeout=None):
        if "broken" in request.url:
            return None
        return super().data_task(request, completion, timeout)


def test_final_fires_once_after_every_completion(configuration, manual_session):
    manual_session.stub("GET", "posts", json=[])
    final = FinalRecorder()
    queue = ServiceQueue(configuration, final, session=manual_session)
    results = []

    tasks = [queue.perform_json_result(Call("posts"), results.append) for _ in range(3)]
    assert len(queue.task_queue) == 3
    assert all(task.state is TaskState.SUSPENDED for task in tasks)

    queue.resume_all()
    manual_session.complete(tasks[0])
    manual_session.complete(tasks[1])
    assert final.calls == []
    assert queue.has_outstanding_tasks

    manual_session.complete(tasks[2])
    assert final.calls == [(None, None)]
    assert len(results) == 3
    assert queue.state is QueueState.FINALIZED
    assert manual_session.invalidated == "graceful"


def test_task_removed_before_completion_runs(configuration, manual_session):
    manual_session.stub("GET", "posts", json=[])
    queue = ServiceQueue(configuration, FinalRecorder(), session=manual_session)
    tasks = []
    observed = []

    def completion(result):
        observed.append(tasks[0] in queue.task_queue)

    tasks.append(queue.perform_json_result(Call("posts"), completion))
    queue.perform_json_result(Call("posts"), lambda result: None)
    queue.resume_all()
    manual_session.complete(tasks[0])

    assert observed == [False]
    assert tasks[0] not in queue.task_queue


def test_failures_are_recorded(configuration, manual_session):
    manual_session.stub("GET", "posts", json=[])
    manual_session.stub("GET", "users", status=500)
    manual_session.stub("PUT", "posts/1", status=503)
    final = FinalRecorder()
    queue = ServiceQueue(configuration, final, session=manual_session)

    queue.perform_json_result(Call("posts"), lambda result: None)
    failing_read = queue.perform_json_result(Call("users"), lambda result: None)
    failing_write = queue.perform_write(Call("posts/1", HTTPMethod.PUT), lambda result: None)
    queue.resume_all()
    manual_session.complete_all()

    failed_tasks, errors = final.calls[0]
    assert failed_tasks == {failing_read, failing_write}
    assert sorted(error.status_code for error in errors) == [500, 503]
    assert all(isinstance(error, NetworkError) for error in errors)


def test_not_found_counts_as_resolved(configuration, manual_session):
    manual_session.stub("GET", "entities", json={"other": 1})
    final = FinalRecorder()
    queue = ServiceQueue(configuration, final, session=manual_session)
    results = []

    queue.perform_json_result(Call("entities", root_node="results"), results.append, auto_start=True)
    manual_session.complete_all()

    assert results[0].kind is ResultKind.NOT_FOUND
    assert final.calls == [(None, None)]


def test_failed_task_creation_is_not_part_of_batch(configuration, caplog):
    session = UnreliableSession(auto_complete=False)
    session.stub("GET", "posts", json=[])
    final = FinalRecorder()
    queue = ServiceQueue(configuration, final, session=session)
    results = []

    with caplog.at_level(logging.ERROR, logger="restmap.services.service_queue"):
        broken = queue.perform_json_result(Call("broken"), results.append)
    good = [queue.perform_json_result(Call("posts"), results.append) for _ in range(2)]

    assert broken is None
    assert isinstance(results[0].error, InvalidSessionError)
    assert "Invalid session" in caplog.text
    assert final.calls == []
    assert queue.task_queue == set(good)

    queue.resume_all()
    session.complete_all()
    assert final.calls == [(None, None)]


def test_invalidate_and_cancel_skips_final(configuration, manual_session):
    manual_session.stub("GET", "users", status=500)
    manual_session.stub("GET", "posts", json=[])
    final = FinalRecorder()
    queue = ServiceQueue(configuration, final, session=manual_session)
    results = []

    failing = queue.perform_json_result(Call("users"), results.append)
    queue.perform_json_result(Call("posts"), results.append)
    queue.perform_json_result(Call("posts"), results.append)
    queue.resume_all()
    manual_session.complete(failing)
    assert queue.failed_tasks == {failing}

    queue.invalidate_and_cancel()

    assert queue.task_queue == set()
    assert queue.failed_tasks == set()
    assert queue.state is QueueState.CANCELLED
    assert final.calls == []
    assert manual_session.invalidated == "cancel"
    assert [type(result.error) for result in results[1:]] == [CancelledError, CancelledError]


def test_never_resumed_task_blocks_final(configuration, manual_session):
    manual_session.stub("GET", "posts", json=[])
    final = FinalRecorder()
    queue = ServiceQueue(configuration, final, session=manual_session)

    task = queue.perform_json_result(Call("posts"), lambda result: None, auto_start=False)
    manual_session.complete_all()

    assert final.calls == []
    assert queue.has_outstanding_tasks
    assert task.state is TaskState.SUSPENDED
    assert queue.state is QueueState.ACTIVE


def test_resume_all_only_starts_suspended_tasks(configuration, manual_session):
    queue = ServiceQueue(configuration, FinalRecorder(), session=manual_session)
    first = queue.perform_json_result(Call("posts"), lambda result: None)
    second = queue.perform_json_result(Call("posts"), lambda result: None)

    queue.resume(first)
    queue.resume_all()
    queue.resume_all()

    assert manual_session.running.count(first) == 1
    assert manual_session.running.count(second) == 1


def test_auto_start_completes_immediately(configuration, mock_session):
    mock_session.stub("GET", "posts", json=[{"id": 1}])
    final = FinalRecorder()
    queue = ServiceQueue(configuration, final, session=mock_session)

    queue.perform_json_result(Call("posts"), lambda result: None, auto_start=True)

    assert final.calls == [(None, None)]
    assert not queue.has_outstanding_tasks


def test_submit_after_final_has_no_task(configuration, mock_session):
    mock_session.stub("GET", "posts", json=[])
    final = FinalRecorder()
    queue = ServiceQueue(configuration, final, session=mock_session)
    queue.perform_json_result(Call("posts"), lambda result: None, auto_start=True)
    results = []

    late = queue.perform_json_result(Call("posts"), results.append, auto_start=True)

    assert late is None
    assert isinstance(results[0].error, InvalidSessionError)
    assert len(final.calls) == 1


def test_dropped_queue_releases_session(configuration, manual_session):
    queue = ServiceQueue(configuration, FinalRecorder(), session=manual_session)
    del queue
    gc.collect()

    assert manual_session.invalidated == "graceful"
    assert not manual_session.valid


def test_dropped_queue_with_tracked_tasks_releases_session(configuration, manual_session):
    manual_session.stub("GET", "posts", json=[])
    final = FinalRecorder()
    queue = ServiceQueue(configuration, final, session=manual_session)
    results = []
    queue.perform_json_result(Call("posts"), results.append)
    queue.perform(Call("posts"), dict, results.append)
    queue.perform_write(Call("posts", HTTPMethod.POST), results.append)
    queue.resume_all()
    alive = weakref.ref(queue)

    del queue
    gc.collect()

    assert alive() is None
    assert manual_session.invalidated == "graceful"

    # Completions still reach the caller once the queue is gone.
    manual_session.complete_all()
    assert len(results) == 3
    assert final.calls == []


def test_parser_exception_fails_the_call_and_finalizes(configuration, manual_session):
    manual_session.stub("GET", "posts", json=[{"title": "a"}])
    final = FinalRecorder()
    queue = ServiceQueue(configuration, final, session=manual_session)
    results = []

    task = queue.perform(Call("posts"), lambda item: item["id"], results.append)
    queue.resume_all()
    manual_session.complete_all()

    assert isinstance(results[0].error, DecodeError)
    assert "KeyError" in str(results[0].error)
    assert final.calls[0][0] == {task}
    assert not queue.has_outstanding_tasks
    assert queue.state is QueueState.FINALIZED


def test_repository_error_during_mapping_fails_the_call(configuration, manual_session, mapping, repository):
    manual_session.stub("GET", "CoreDataEntity", json={"results": [{"uniqueValue": "u1"}]})
    final = FinalRecorder()
    queue = ServiceQueue(configuration, final, session=manual_session)
    results = []

    queue.perform(Call("CoreDataEntity", root_node="results"), mapping.from_json, results.append)
    repository.close()
    queue.resume_all()
    manual_session.complete_all()

    assert isinstance(results[0].error, DecodeError)
    assert len(final.calls) == 1


def test_concurrent_completions_fire_final_once(configuration):
    http = StubHttp(body=b"[]")
    session = TransportSession(max_workers=4, http=http)
    final = FinalRecorder()
    queue = ServiceQueue(configuration, final, session=session)
    completed = []
    lock = threading.Lock()

    def completion(result):
        with lock:
            completed.append(result.kind)

    for index in range(20):
        queue.perform_json_result(Call(f"posts/{index}"), completion)
    queue.resume_all()

    assert final.event.wait(5)
    assert len(final.calls) == 1
    assert len(completed) == 20
    assert final.calls[0] == (None, None)
    assert not queue.has_outstanding_tasks
