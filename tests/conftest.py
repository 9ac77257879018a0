"""Shared fakes: an in-memory runner channel and a recording notifier."""

import asyncio
import json

import pytest

from wizflow.config import Settings
from wizflow.notify import Notifier

_CLOSED = object()


class FakeChannel:
    """In-memory stand-in for a runner websocket connection."""

    def __init__(self):
        self.sent = []
        self.closed = False
        self._inbound = asyncio.Queue()

    async def send(self, text):
        if self.closed:
            raise OSError("channel is closed")
        self.sent.append(json.loads(text))

    async def close(self):
        if not self.closed:
            self.closed = True
            self._inbound.put_nowait(_CLOSED)

    def feed(self, message):
        """Queue an inbound frame (dicts are JSON encoded)."""
        if not isinstance(message, str):
            message = json.dumps(message)
        self._inbound.put_nowait(message)

    def finish(self):
        """Runner side closes the connection."""
        self._inbound.put_nowait(_CLOSED)

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._inbound.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item


class FakeRunner:
    def __init__(self, fail=False):
        self.fail = fail
        self.urls = []
        self.channels = []

    async def connect(self, url):
        self.urls.append(url)
        if self.fail:
            raise OSError("connection refused")
        channel = FakeChannel()
        self.channels.append(channel)
        return channel


class RecordingNotifier(Notifier):
    def __init__(self):
        self.successes = []
        self.errors = []

    def success(self, message):
        self.successes.append(message)

    def error(self, message):
        self.errors.append(message)


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def settings():
    return Settings(runner_url="ws://runner.test/ws", _env_file=None)
