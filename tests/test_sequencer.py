import asyncio

import pytest

from teensy_bridge.config.settings import SequenceConfig
from teensy_bridge.control.sequencer import CommandSequencer, solenoid_command


class RecordingManager:
    def __init__(self):
        self.commands = []

    def send_command(self, command):
        self.commands.append(command)


def test_solenoid_command_format():
    assert solenoid_command(1, True) == "s11"
    assert solenoid_command(16, False) == "s160"


@pytest.mark.asyncio
async def test_precise_sequence_switches_on_in_order_then_all_off():
    manager = RecordingManager()
    config = SequenceConfig(solenoid_count=3, precise_step_delay=0.001, precise_hold=0.001)
    sequencer = CommandSequencer(manager, config)

    await sequencer.start_precise()

    assert manager.commands == ["s11", "s21", "s31", "s10", "s20", "s30"]
    assert sequencer.active_count == 0


@pytest.mark.asyncio
async def test_sweep_sequence_repeats_up_and_down():
    manager = RecordingManager()
    config = SequenceConfig(solenoid_count=2, sweep_cycles=2, sweep_step_delay=0)
    sequencer = CommandSequencer(manager, config)

    await sequencer.start_sweep()

    assert manager.commands == ["s11", "s21", "s20", "s10"] * 2


@pytest.mark.asyncio
async def test_cancel_all_stops_sequence_during_hold():
    manager = RecordingManager()
    config = SequenceConfig(solenoid_count=2, precise_step_delay=0, precise_hold=30.0)
    sequencer = CommandSequencer(manager, config)

    task = sequencer.start_precise()
    for _ in range(10):
        await asyncio.sleep(0)
    assert sequencer.active_count == 1

    await sequencer.cancel_all()

    assert task.cancelled()
    assert sequencer.active_count == 0
    assert manager.commands == ["s11", "s21"]


@pytest.mark.asyncio
async def test_sequences_run_independently():
    manager = RecordingManager()
    config = SequenceConfig(solenoid_count=1, precise_hold=30.0, sweep_cycles=1, sweep_step_delay=0)
    sequencer = CommandSequencer(manager, config)

    sequencer.start_precise()
    await sequencer.start_sweep()

    assert manager.commands == ["s11", "s11", "s10"]
    assert sequencer.active_count == 1
    await sequencer.cancel_all()
