"""
Teensy Serial Bridge - Python Host

Bridges a Teensy microcontroller on a serial line to the rest of the
process: queued fire-and-forget commands out, latest telemetry line in.
"""

__version__ = "0.1.0"
__author__ = "Teensy Bridge Project"

# Core transport
from .communication.link import SerialLink, LinkConnectionError, LinkReadError, LinkWriteError
from .communication.transport_manager import TransportManager, TransportState

# Configuration and control
from .config.settings import Settings
from .control.sequencer import CommandSequencer

__all__ = [
    'SerialLink',
    'LinkConnectionError',
    'LinkReadError',
    'LinkWriteError',
    'TransportManager',
    'TransportState',
    'Settings',
    'CommandSequencer'
]
