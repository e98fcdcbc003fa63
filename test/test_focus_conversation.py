import asyncio

import httpx
import pytest

from classification.focus_client import FocusServiceClient
from classification.focus_conversation import (
    VERDICT_MESSAGES,
    FocusCheckConversation,
    FocusResult,
    important_task_names,
)
from extraction.conversation import Abandoned
from signal2noise.errors import CaptureBusy, MissingInput, TransportError
from signal2noise.models import TaskRecord
from storage.task_store import InMemoryTaskStore, TaskFeed
from voice.capture import CaptureArbiter, UtteranceCapture

URL = "https://example.test/signalOrNoise"


def _records(names, priorities):
    return [TaskRecord(task_name=n, priority=p) for n, p in zip(names, priorities)]


def test_important_tasks_keep_order_and_drop_low():
    tasks = _records(["A", "B", "C", "D"], ["Top", "Medium", "Low", "Top"])
    assert important_task_names(tasks) == ["A", "B", "D"]


def test_important_tasks_skip_unnamed():
    tasks = _records(["", "  ", "E"], ["Top", "Medium", "Medium"])
    assert important_task_names(tasks) == ["E"]


@pytest.fixture
def feed():
    store = InMemoryTaskStore()
    feed = TaskFeed()

    async def setup():
        for name, prio in [("A", "Top"), ("B", "Medium"), ("C", "Low"), ("D", "Top")]:
            await store.create("user-1", TaskRecord(task_name=name, priority=prio))
        await feed.attach(store, "user-1")

    asyncio.run(setup())
    feed.store = store
    return feed


@pytest.fixture
def make_focus(device, notifier, feed, http_factory):
    def _make(*responses, arbiter=None):
        http, recorder = http_factory(*responses)
        conv = FocusCheckConversation(
            "user-1",
            client=FocusServiceClient(url=URL, http_client=http),
            feed=feed,
            arbiter=arbiter or CaptureArbiter(device),
            notifier=notifier,
        )
        return conv, recorder
    return _make


def _check(conv, device, text):
    conv.begin()
    device.hear(final=text)
    return asyncio.run(conv.finish())


def test_signal_verdict_is_affirmed(make_focus, device, notifier):
    conv, recorder = make_focus({"verdict": "Signal"})
    outcome = _check(conv, device, "working on A")

    assert isinstance(outcome, FocusResult)
    assert outcome.verdict == "Signal"
    assert outcome.message == VERDICT_MESSAGES["Signal"]
    assert notifier.messages == [("Focus Check", VERDICT_MESSAGES["Signal"])]
    # store lists newest first
    assert recorder.requests[0] == {
        "userId": "user-1",
        "currentActivity": "working on A",
        "importantTasks": ["D", "B", "A"],
    }


def test_noise_verdict_redirects(make_focus, device):
    conv, _ = make_focus({"verdict": "Noise"})
    outcome = _check(conv, device, "watching videos")
    assert outcome.message == VERDICT_MESSAGES["Noise"]


def test_reads_latest_snapshot(make_focus, device, feed):
    conv, recorder = make_focus({"verdict": "Signal"})
    asyncio.run(feed.store.create("user-1", TaskRecord(task_name="E", priority="Top")))
    _check(conv, device, "doing E")
    assert recorder.requests[0]["importantTasks"][0] == "E"


def test_empty_transcript_never_calls_classifier(make_focus, device):
    conv, recorder = make_focus()
    conv.begin()
    outcome = asyncio.run(conv.finish())
    assert isinstance(outcome, Abandoned)
    assert isinstance(outcome.error, MissingInput)
    assert recorder.requests == []


def test_classifier_failure_is_reported_and_forgotten(make_focus, device, notifier):
    conv, recorder = make_focus(httpx.Response(503), {"verdict": "Noise"})
    failed = _check(conv, device, "emails")
    assert isinstance(failed.error, TransportError)
    assert notifier.titles == ["Error"]

    again = _check(conv, device, "more emails")
    assert again.verdict == "Noise"
    assert recorder.requests[1]["currentActivity"] == "more emails"


def test_cannot_start_while_task_capture_listens(make_focus, device):
    arbiter = CaptureArbiter(device)
    other = UtteranceCapture(arbiter, owner="task-extraction")
    other.start()
    conv, _ = make_focus(arbiter=arbiter)
    with pytest.raises(CaptureBusy):
        conv.begin()
    assert arbiter.owner == "task-extraction"


def test_late_recognition_error_after_check_is_ignored(make_focus, device, notifier):
    conv, _ = make_focus({"verdict": "Signal"})
    _check(conv, device, "working on A")
    device.fail(RuntimeError("recognizer timed out"))
    assert notifier.titles == ["Focus Check"]
    assert not conv.listening


def test_recognition_error_while_listening_is_reported(make_focus, device, notifier):
    conv, recorder = make_focus()
    conv.begin()
    device.fail(RuntimeError("recognizer crashed"))
    assert not conv.listening
    assert device.listener is conv.capture
    assert notifier.titles == ["Error"]
    assert recorder.requests == []


def test_error_reported_from_inside_device_start(make_focus, device, notifier):
    conv, _ = make_focus({"verdict": "Noise"})
    device.error_on_start = RuntimeError("permission denied")
    conv.begin()
    assert not conv.listening
    assert conv.capture.arbiter.owner is None
    assert notifier.titles == ["Error"]

    assert _check(conv, device, "emails").verdict == "Noise"
