"""
Timed Solenoid Command Sequences

Runs fire-and-forget command sequences as background asyncio tasks. A
sequence only ever calls ``send_command`` on the transport manager, so a
slow or cancelled sequence never holds up the transport itself.

Solenoid commands follow the firmware convention ``s<index><state>``,
e.g. ``s11`` turns solenoid 1 on and ``s160`` turns solenoid 16 off.
"""

import asyncio
import logging
from typing import Awaitable, Set

from ..communication.transport_manager import TransportManager
from ..config.settings import SequenceConfig


def solenoid_command(index: int, on: bool) -> str:
    return f"s{index}{1 if on else 0}"


class CommandSequencer:
    """
    Launches and tracks timed command sequences.

    Every sequence runs in its own task; ``cancel_all`` cancels the ones
    still in flight and waits for them to unwind.
    """

    def __init__(self, manager: TransportManager, config: SequenceConfig = None):
        self.manager = manager
        self.config = config or SequenceConfig()
        self.logger = logging.getLogger(__name__)

        self._tasks: Set[asyncio.Task] = set()

    @property
    def active_count(self) -> int:
        return sum(1 for task in self._tasks if not task.done())

    def start_precise(self) -> asyncio.Task:
        """
        Start the precise activation sequence.

        Solenoid 1 fires immediately, each further solenoid follows after
        ``precise_step_delay``, all are held for ``precise_hold`` and then
        switched off back-to-back.
        """
        return self._launch(self.run_precise(), "precise")

    def start_sweep(self) -> asyncio.Task:
        """
        Start the sweep sequence.

        Each cycle switches the solenoids on in ascending order and off in
        descending order, pausing ``sweep_step_delay`` after every command.
        """
        return self._launch(self.run_sweep(), "sweep")

    async def run_precise(self):
        count = self.config.solenoid_count
        for index in range(1, count + 1):
            if index > 1:
                await asyncio.sleep(self.config.precise_step_delay)
            self.manager.send_command(solenoid_command(index, True))

        await asyncio.sleep(self.config.precise_hold)

        for index in range(1, count + 1):
            self.manager.send_command(solenoid_command(index, False))

    async def run_sweep(self):
        count = self.config.solenoid_count
        for _ in range(self.config.sweep_cycles):
            for index in range(1, count + 1):
                self.manager.send_command(solenoid_command(index, True))
                await asyncio.sleep(self.config.sweep_step_delay)

            for index in range(count, 0, -1):
                self.manager.send_command(solenoid_command(index, False))
                await asyncio.sleep(self.config.sweep_step_delay)

    async def cancel_all(self):
        """Cancel every running sequence and wait for it to finish."""
        tasks = [task for task in self._tasks if not task.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            self.logger.info(f"Cancelled {len(tasks)} running sequence(s)")

    def _launch(self, coro: Awaitable, name: str) -> asyncio.Task:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(lambda t: self._on_done(t, name))
        self.logger.info(f"Started {name} sequence")
        return task

    def _on_done(self, task: asyncio.Task, name: str):
        self._tasks.discard(task)
        if task.cancelled():
            self.logger.info(f"{name.capitalize()} sequence cancelled")
        elif task.exception() is not None:
            self.logger.error(f"{name.capitalize()} sequence failed: {task.exception()}")
        else:
            self.logger.info(f"{name.capitalize()} sequence completed")
