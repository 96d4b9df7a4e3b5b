"""
Telemetry Framing and Age Annotation

Turns the device's newline-delimited byte stream into trimmed records and
annotates each timestamped record with the device-clock milliseconds
elapsed since the previous timestamped record.

A well-formed record looks like::

    TS:1500 | ARM:1 | BATT:87

and is published as::

    TS:1500 | ARM:1 | BATT:87 | AGE:500ms
"""

import re
from typing import List, Optional


RECORD_SEPARATOR = b"\n"
FIELD_SEPARATOR = "|"
TIMESTAMP_MARKER = "TS"
AGE_MARKER = "AGE"

TIMESTAMP_PATTERN = re.compile(r"[+-]?[0-9]+")


class LineFramer:
    """
    Reassembles newline-terminated records from arbitrarily split chunks.

    Bytes that do not yet form a complete record stay in the internal
    buffer until the terminator arrives. Splitting happens on raw bytes so
    multi-byte UTF-8 characters cut across reads decode correctly.
    """

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding
        self._buffer = bytearray()

    @property
    def pending(self) -> bytes:
        """Bytes received but not yet terminated."""
        return bytes(self._buffer)

    def feed(self, data: bytes) -> List[str]:
        """
        Append a chunk and extract every complete record.

        Args:
            data: Raw bytes as read from the link

        Returns:
            List[str]: Trimmed, non-empty records in stream order
        """
        self._buffer.extend(data)

        lines = []
        while True:
            index = self._buffer.find(RECORD_SEPARATOR)
            if index < 0:
                break

            raw = bytes(self._buffer[:index])
            del self._buffer[:index + 1]

            line = raw.decode(self.encoding, errors="replace").strip()
            if line:
                lines.append(line)

        return lines

    def reset(self):
        self._buffer.clear()


def parse_timestamp(line: str) -> Optional[int]:
    """
    Extract the device timestamp from a record.

    Scans the pipe-separated fields for the first one prefixed with
    ``TS:`` and parses its value as an ASCII decimal integer.

    Args:
        line: A trimmed record

    Returns:
        Optional[int]: Milliseconds, or None if the field is missing or
        unparsable
    """
    prefix = TIMESTAMP_MARKER + ":"
    for field in line.split(FIELD_SEPARATOR):
        field = field.strip()
        if not field.startswith(prefix):
            continue
        value = field[len(prefix):].strip()
        if not TIMESTAMP_PATTERN.fullmatch(value):
            return None
        return int(value)
    return None


def format_age(line: str, age_ms: int) -> str:
    return f"{line} {FIELD_SEPARATOR} {AGE_MARKER}:{age_ms}ms"


class AgeAnnotator:
    """
    Tracks the previous device timestamp and appends the age field.

    The device clock is not assumed to be monotonic: a reset or an
    out-of-order record yields a zero or negative age and still becomes the
    new reference.
    """

    def __init__(self):
        self.previous_timestamp: Optional[int] = None

    def annotate(self, line: str) -> str:
        """
        Annotate one record.

        Args:
            line: A trimmed, non-empty record

        Returns:
            str: The record with ``| AGE:<n>ms`` appended, or the record
            unchanged if it carries no parsable timestamp
        """
        timestamp = parse_timestamp(line)
        if timestamp is None:
            return line

        if self.previous_timestamp is None:
            age = 0
        else:
            age = timestamp - self.previous_timestamp
        self.previous_timestamp = timestamp

        return format_age(line, age)
