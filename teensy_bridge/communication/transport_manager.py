"""
Transport Manager for the Teensy Serial Link

Owns the serial link and runs two background threads: a read worker that
frames and annotates the device's telemetry, and a write worker that
drains the outbound command queue. Callers interact only through
``send_command`` and ``latest_telemetry``, both of which never block.
"""

import logging
import threading
import time
from enum import Enum
from queue import Queue, Empty
from typing import Optional, Dict, Any, List

from .link import SerialLink, LinkReadError, LinkWriteError
from .telemetry import LineFramer, AgeAnnotator


DEFAULT_IDLE_SLEEP = 0.01


class TransportState(Enum):
    """Lifecycle states of the transport manager."""
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"


class CommandQueue:
    """Unbounded FIFO of pending command strings, safe for many producers."""

    def __init__(self):
        self._queue: Queue = Queue()

    def enqueue(self, command: str):
        self._queue.put_nowait(command)

    def try_dequeue(self) -> Optional[str]:
        """Return the oldest pending command, or None if the queue is empty."""
        try:
            return self._queue.get_nowait()
        except Empty:
            return None

    def dequeue(self, timeout: float) -> Optional[str]:
        """Wait up to ``timeout`` seconds for the oldest pending command."""
        try:
            return self._queue.get(timeout=timeout)
        except Empty:
            return None

    def __len__(self) -> int:
        return self._queue.qsize()


class TelemetryCache:
    """Single slot holding the most recent telemetry record."""

    def __init__(self):
        self._lock = threading.Lock()
        self._value = ""

    def publish(self, record: str):
        with self._lock:
            self._value = record

    def read(self) -> str:
        with self._lock:
            return self._value


class ReadWorker:
    """
    Drains the link, frames records and publishes them to the cache.

    The partial-line buffer and the previous-timestamp state belong to this
    worker alone.
    """

    def __init__(self, link: SerialLink, cache: TelemetryCache,
                 stats: Dict[str, int], idle_sleep: float = DEFAULT_IDLE_SLEEP):
        self.link = link
        self.cache = cache
        self.idle_sleep = idle_sleep
        self._stats = stats
        self._framer = LineFramer()
        self._annotator = AgeAnnotator()
        self.logger = logging.getLogger(__name__)

    def process_chunk(self, data: bytes) -> List[str]:
        """
        Frame, annotate and publish every complete record in a chunk.

        Args:
            data: Bytes read from the link (may be empty)

        Returns:
            List[str]: Published records in stream order
        """
        published = []
        for line in self._framer.feed(data):
            record = self._annotator.annotate(line)
            self.logger.debug(f"Received: {record}")
            self.cache.publish(record)
            self._stats['records_received'] += 1
            published.append(record)
        return published

    def run(self, stop_event: threading.Event):
        self.logger.debug("Read worker started")
        while not stop_event.is_set():
            try:
                data = self.link.read_available()
                if data:
                    self.process_chunk(data)
            except LinkReadError as e:
                if not stop_event.is_set():
                    self.logger.error(f"Read worker error: {e}")
                    self._stats['read_errors'] += 1
            except Exception as e:
                self.logger.error(f"Unexpected read worker error: {e}")
                self._stats['read_errors'] += 1

            time.sleep(self.idle_sleep)
        self.logger.debug("Read worker stopped")


class WriteWorker:
    """Drains the command queue onto the link, at most once per command."""

    def __init__(self, link: SerialLink, queue: CommandQueue,
                 stats: Dict[str, int], idle_sleep: float = DEFAULT_IDLE_SLEEP):
        self.link = link
        self.queue = queue
        self.idle_sleep = idle_sleep
        self._stats = stats
        self.logger = logging.getLogger(__name__)

    def write_pending(self, timeout: float = 0.0) -> bool:
        """
        Send the oldest pending command, if any.

        Args:
            timeout: Seconds to wait for a command to arrive

        Returns:
            bool: True if a command was taken from the queue
        """
        if timeout > 0:
            command = self.queue.dequeue(timeout)
        else:
            command = self.queue.try_dequeue()
        if command is None:
            return False

        try:
            self.logger.debug(f"Sending command: {command}")
            self.link.write_line(command)
            self._stats['commands_sent'] += 1
        except LinkWriteError as e:
            self.logger.error(f"Failed to send command {command!r}: {e}")
            self._stats['commands_dropped'] += 1
        return True

    def run(self, stop_event: threading.Event):
        self.logger.debug("Write worker started")
        while not stop_event.is_set():
            try:
                self.write_pending(timeout=self.idle_sleep)
            except Exception as e:
                self.logger.error(f"Unexpected write worker error: {e}")
                self._stats['commands_dropped'] += 1
        self.logger.debug("Write worker stopped")


class TransportManager:
    """
    Thread-safe bridge between callers and the serial link.

    Features:
    - Fire-and-forget command submission, FIFO to the device
    - Latest-telemetry polling with inter-sample age annotation
    - Idempotent stop, safe before start and during start
    - Commands queued before start are sent once the link is up
    """

    def __init__(self, link: SerialLink,
                 idle_sleep: float = DEFAULT_IDLE_SLEEP,
                 join_timeout: float = 2.0):
        self.link = link
        self.idle_sleep = idle_sleep
        self.join_timeout = join_timeout

        self._state = TransportState.STOPPED
        self._lifecycle_lock = threading.RLock()
        self._stop_event = threading.Event()

        self._command_queue = CommandQueue()
        self._telemetry = TelemetryCache()

        self._read_thread: Optional[threading.Thread] = None
        self._write_thread: Optional[threading.Thread] = None

        # Each counter is only incremented by one worker thread
        self._stats = {
            'commands_sent': 0,
            'commands_dropped': 0,
            'records_received': 0,
            'read_errors': 0
        }

        self.logger = logging.getLogger(__name__)

    @property
    def state(self) -> TransportState:
        return self._state

    @property
    def latest_telemetry(self) -> str:
        return self._telemetry.read()

    def get_latest_telemetry(self) -> str:
        """Return the most recent record, or an empty string if none arrived yet."""
        return self._telemetry.read()

    def send_command(self, command: str):
        """Queue a command for transmission. Never blocks, never fails."""
        self._command_queue.enqueue(command)

    def pending_commands(self) -> int:
        return len(self._command_queue)

    def get_stats(self) -> Dict[str, Any]:
        """Get communication statistics."""
        stats = dict(self._stats)
        stats['pending_commands'] = len(self._command_queue)
        stats['state'] = self._state.value
        return stats

    def start(self):
        """
        Open the link and launch the read and write workers.

        Raises:
            LinkConnectionError: If the link cannot be opened
            RuntimeError: If the manager is not stopped
        """
        with self._lifecycle_lock:
            if self._state is not TransportState.STOPPED:
                raise RuntimeError(f"Cannot start transport manager in state {self._state.value}")

            self._state = TransportState.STARTING
            # Workers left over from a stop that timed out keep their own, already set, event
            self._stop_event = threading.Event()

            try:
                self.link.open()
            except Exception:
                self._state = TransportState.STOPPED
                self.logger.error(f"Failed to open link to {self.link.port}")
                raise

            read_worker = ReadWorker(self.link, self._telemetry, self._stats, self.idle_sleep)
            write_worker = WriteWorker(self.link, self._command_queue, self._stats, self.idle_sleep)

            self._read_thread = threading.Thread(
                target=read_worker.run, args=(self._stop_event,),
                name="teensy-read", daemon=True
            )
            self._write_thread = threading.Thread(
                target=write_worker.run, args=(self._stop_event,),
                name="teensy-write", daemon=True
            )
            self._read_thread.start()
            self._write_thread.start()

            self._state = TransportState.RUNNING
            self.logger.info("Transport manager started")

    def stop(self):
        """Signal both workers to stop and release the link. Idempotent."""
        self._stop_event.set()

        with self._lifecycle_lock:
            if self._state is TransportState.STOPPED and not self.link.is_open:
                return

            # A concurrent start() may have replaced the event before we got the lock
            self._stop_event.set()
            self.logger.info("Stopping transport manager")
            self._state = TransportState.STOPPING

            for thread in (self._write_thread, self._read_thread):
                if thread and thread.is_alive():
                    thread.join(timeout=self.join_timeout)
                    if thread.is_alive():
                        self.logger.warning(f"{thread.name} did not stop within {self.join_timeout}s")
            self._read_thread = None
            self._write_thread = None

            self.link.close()
            self._state = TransportState.STOPPED
            self.logger.info("Transport manager stopped")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
