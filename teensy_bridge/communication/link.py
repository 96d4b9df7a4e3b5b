"""
Serial Link to the Teensy Microcontroller

Owns the physical byte-stream connection: open/close, timeout-bounded
reads of whatever bytes are available, and newline-framed writes.
"""

import logging
from typing import Optional

import serial
import serial.tools.list_ports


DEFAULT_BAUDRATE = 115200
DEFAULT_READ_TIMEOUT = 0.5
LINE_TERMINATOR = "\n"


class LinkConnectionError(ConnectionError):
    """The link could not be opened (missing device, port busy, bad settings)."""


class LinkReadError(OSError):
    """Transient failure while reading from an open link."""


class LinkWriteError(OSError):
    """Failure while writing a command to the link."""


def auto_detect_port() -> Optional[str]:
    """
    Pick the most likely microcontroller port.

    Prefers ports whose vendor ID or description looks like a Teensy,
    Arduino or common USB-serial adapter, then falls back to the first
    enumerated port.

    Returns:
        Optional[str]: Device path, or None if no ports exist
    """
    logger = logging.getLogger(__name__)
    known_vendors = ['16c0', '2341', '1a86', '0403']  # PJRC, Arduino, CH340, FTDI
    keywords = ['teensy', 'arduino', 'usbmodem', 'ttyacm', 'ch340', 'ft232']

    ports = list(serial.tools.list_ports.comports())
    for port in ports:
        if port.vid and f"{port.vid:04x}" in known_vendors:
            logger.info(f"Found potential microcontroller on {port.device}")
            return port.device

        description = f"{port.device} {port.description or ''}".lower()
        if any(keyword in description for keyword in keywords):
            logger.info(f"Found potential microcontroller on {port.device}")
            return port.device

    if ports:
        logger.warning(f"No microcontroller detected, trying first port: {ports[0].device}")
        return ports[0].device

    return None


class SerialLink:
    """
    Byte-stream connection to the device.

    At most one underlying handle is open at a time. The read side and the
    write side are each driven by a single worker thread.

    Args:
        port: Device path or pyserial URL (e.g. ``/dev/ttyACM0``, ``COM15``,
            ``loop://``). None means auto-detect on open.
        baudrate: Fixed baud rate
        read_timeout: Upper bound for a single ``read_available`` call, seconds
        write_timeout: Upper bound for a single write, seconds
        exclusive: Request exclusive access to the port where supported
    """

    def __init__(self, port: Optional[str] = None,
                 baudrate: int = DEFAULT_BAUDRATE,
                 read_timeout: float = DEFAULT_READ_TIMEOUT,
                 write_timeout: Optional[float] = 1.0,
                 exclusive: bool = True):
        self.port = port
        self.baudrate = baudrate
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.exclusive = exclusive

        self._serial: Optional[serial.SerialBase] = None
        self.logger = logging.getLogger(__name__)

    @property
    def is_open(self) -> bool:
        return self._serial is not None and self._serial.is_open

    def open(self):
        """
        Open the connection.

        Raises:
            LinkConnectionError: If no port is available, the device path does
                not exist, or the port is already in use
        """
        if self.is_open:
            raise LinkConnectionError(f"Link to {self.port} is already open")

        if self.port is None:
            self.port = auto_detect_port()
            if self.port is None:
                raise LinkConnectionError("No suitable serial port found")

        self.logger.info(f"Connecting to {self.port} at {self.baudrate} baud...")
        try:
            handle = serial.serial_for_url(
                self.port,
                baudrate=self.baudrate,
                timeout=self.read_timeout,
                write_timeout=self.write_timeout,
                exclusive=self.exclusive,
                do_not_open=True
            )
            handle.open()
        except (serial.SerialException, OSError, ValueError) as e:
            raise LinkConnectionError(f"Failed to open {self.port}: {e}") from e

        self._serial = handle
        self.logger.info(f"Connected to {self.port}")

    def close(self):
        """Release the connection. Safe to call when already closed."""
        handle, self._serial = self._serial, None
        if handle is None:
            return

        try:
            handle.close()
        except (serial.SerialException, OSError) as e:
            self.logger.warning(f"Error while closing {self.port}: {e}")
        else:
            self.logger.info(f"Closed link to {self.port}")

    def read_available(self) -> bytes:
        """
        Read whatever bytes are currently available.

        Blocks for at most ``read_timeout`` when nothing is pending.

        Returns:
            bytes: Received data, empty if the read timed out

        Raises:
            LinkReadError: On I/O failure or if the link is not open
        """
        handle = self._serial
        if handle is None or not handle.is_open:
            raise LinkReadError("Link is not open")

        try:
            return handle.read(handle.in_waiting or 1)
        except (serial.SerialException, OSError) as e:
            raise LinkReadError(f"Read from {self.port} failed: {e}") from e

    def write_line(self, command: str):
        """
        Send a command followed by the line terminator.

        Raises:
            LinkWriteError: On I/O failure, write timeout, or if the link is not open
        """
        handle = self._serial
        if handle is None or not handle.is_open:
            raise LinkWriteError("Link is not open")

        try:
            payload = (command + LINE_TERMINATOR).encode('utf-8')
        except UnicodeEncodeError as e:
            raise LinkWriteError(f"Command {command!r} cannot be encoded: {e}") from e

        try:
            handle.write(payload)
            handle.flush()
        except (serial.SerialException, OSError) as e:
            raise LinkWriteError(f"Write to {self.port} failed: {e}") from e
