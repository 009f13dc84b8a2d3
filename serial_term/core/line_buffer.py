# serial_term/core/line_buffer.py
from __future__ import annotations

from collections import deque
from typing import Deque, List, Tuple

DEFAULT_LOG_CAPACITY = 250


class LineBuffer:
    """
    Turns an arbitrarily chunked text stream into complete display lines.

      - '\\n' is the only delimiter
      - every '\\r' is removed from a completed line
      - lines that end up empty are dropped
      - completed lines go into a FIFO log of at most `capacity` entries

    The unterminated remainder is kept in `tail` until its delimiter shows up.
    """

    def __init__(self, capacity: int = DEFAULT_LOG_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be >= 1")
        self.capacity = capacity
        self.tail = ""
        self._log: Deque[str] = deque(maxlen=capacity)

    @property
    def log(self) -> List[str]:
        return list(self._log)

    def ingest(self, chunk: str) -> Tuple[List[str], bool]:
        """
        Feed one inbound chunk.

        Returns (completed_lines, tail_updated) where tail_updated is True only
        when at least one line was completed; callers use it to decide whether
        the view needs scrolling.
        """
        segments = (self.tail + chunk).split("\n")
        self.tail = segments.pop()

        lines = []
        for seg in segments:
            line = seg.replace("\r", "")
            if line:
                lines.append(line)

        self._log.extend(lines)
        return lines, bool(lines)

    def append(self, line: str) -> None:
        """Add a line that did not come from the stream (e.g. an error notice)."""
        self._log.append(line)

    def discard_tail(self) -> None:
        self.tail = ""
