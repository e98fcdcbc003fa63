import json
from contextlib import asynccontextmanager

import httpx
import pytest

from voice.capture import CaptureDevice
from voice.output import Notifier, Speaker


class FakeProvider:
    def __init__(self, response_text: str):
        self._response_text = response_text
        self.prompts = []

    def generate(self, *, system: str, user: str) -> str:
        self.prompts.append(user)
        return self._response_text


@pytest.fixture
def fake_provider_factory():
    def _make(response_text: str):
        return FakeProvider(response_text)
    return _make


class FakeCaptureDevice(CaptureDevice):
    """Speech recognizer driven by the test: hear() pushes results, fail() pushes an error."""

    def __init__(self):
        self.listener = None
        self.locale = None
        self.starts = 0
        self.stops = 0
        self.final_on_stop = None
        self.fail_on_start = None
        self.error_on_start = None

    def start(self, locale, listener):
        if self.fail_on_start is not None:
            raise self.fail_on_start
        self.locale = locale
        self.listener = listener
        self.starts += 1
        if self.error_on_start is not None:
            # reported through the listener, start() itself returns normally
            error, self.error_on_start = self.error_on_start, None
            listener.on_error(error)

    def stop(self):
        self.stops += 1
        if self.final_on_stop is not None:
            text, self.final_on_stop = self.final_on_stop, None
            self.listener.on_final(text)

    def hear(self, *partials, final=None):
        for p in partials:
            self.listener.on_partial(p)
        if final is not None:
            self.listener.on_final(final)

    def fail(self, error):
        self.listener.on_error(error)


class RecordingNotifier(Notifier):
    def __init__(self):
        self.messages = []

    def notify(self, title, message):
        self.messages.append((title, message))

    @property
    def titles(self):
        return [t for t, _ in self.messages]


class RecordingSpeaker(Speaker):
    def __init__(self):
        self.spoken = []

    def speak(self, text):
        self.spoken.append(text)


@pytest.fixture
def device():
    return FakeCaptureDevice()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def speaker():
    return RecordingSpeaker()


class RecordedHttp:
    """Serves canned responses in order and keeps the JSON body of every request."""

    def __init__(self, responses):
        self.responses = list(responses)
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(json.loads(request.content))
        if not self.responses:
            raise AssertionError(f"unexpected request to {request.url}")
        canned = self.responses.pop(0)
        if isinstance(canned, Exception):
            raise canned
        if isinstance(canned, httpx.Response):
            return canned
        return httpx.Response(200, json=canned)


@pytest.fixture
def http_factory():
    def _make(*responses):
        recorder = RecordedHttp(responses)
        client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        return client, recorder
    return _make


class FakeConnection:
    def __init__(self, healthy=True):
        self.healthy = healthy
        self.executed = []

    async def execute(self, query, *args):
        self.executed.append(query)
        return "OK"

    async def fetchval(self, query, *args):
        if not self.healthy:
            raise ConnectionRefusedError("connection refused")
        return 1


class FakePool:
    """Stands in for an asyncpg pool: acquire() hands out one shared connection."""

    def __init__(self, healthy=True):
        self.conn = FakeConnection(healthy=healthy)
        self.closed = False

    @asynccontextmanager
    async def acquire(self):
        yield self.conn

    async def close(self):
        self.closed = True


@pytest.fixture
def fake_pool():
    return FakePool
