import threading
import time
from collections import deque

import pytest

from teensy_bridge.communication.link import LinkConnectionError, LinkReadError, LinkWriteError
from teensy_bridge.communication.transport_manager import TransportManager


class FakeLink:
    """Scripted stand-in for SerialLink.

    ``feed`` queues chunks (or exceptions) for ``read_available``; every
    successful ``write_line`` is recorded in ``written``.
    """

    def __init__(self, chunks=(), write_delay=0.0, open_delay=0.0,
                 fail_open=False, fail_writes=()):
        self.port = "fake://teensy"
        self.write_delay = write_delay
        self.open_delay = open_delay
        self.fail_open = fail_open
        self.fail_writes = set(fail_writes)

        self.written = []
        self.open_count = 0
        self.close_count = 0

        self._chunks = deque(chunks)
        self._lock = threading.Lock()
        self._open = False

    @property
    def is_open(self):
        return self._open

    def feed(self, chunk):
        with self._lock:
            self._chunks.append(chunk)

    def open(self):
        if self.open_delay:
            time.sleep(self.open_delay)
        if self.fail_open:
            raise LinkConnectionError(f"Failed to open {self.port}: device not found")
        self._open = True
        self.open_count += 1

    def close(self):
        if self._open:
            self.close_count += 1
        self._open = False

    def read_available(self):
        if not self._open:
            raise LinkReadError("Link is not open")
        with self._lock:
            chunk = self._chunks.popleft() if self._chunks else None
        if chunk is None:
            time.sleep(0.002)
            return b""
        if isinstance(chunk, Exception):
            raise chunk
        return chunk

    def write_line(self, command):
        if self.write_delay:
            time.sleep(self.write_delay)
        if command in self.fail_writes:
            raise LinkWriteError(f"Write to {self.port} failed: device unplugged")
        with self._lock:
            self.written.append(command)


def wait_for(predicate, timeout=2.0, interval=0.005):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


@pytest.fixture
def fake_link():
    return FakeLink()


@pytest.fixture
def manager(fake_link):
    manager = TransportManager(fake_link, idle_sleep=0.001, join_timeout=1.0)
    yield manager
    manager.stop()
