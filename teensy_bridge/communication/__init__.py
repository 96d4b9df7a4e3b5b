"""
Communication package for the serial link to the Teensy.
"""

from .link import SerialLink, auto_detect_port
from .transport_manager import TransportManager, TransportState, CommandQueue, TelemetryCache

__all__ = ['SerialLink', 'auto_detect_port', 'TransportManager', 'TransportState',
           'CommandQueue', 'TelemetryCache']
