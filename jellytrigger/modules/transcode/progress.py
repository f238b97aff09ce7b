import re
from typing import Protocol

_LINE_BREAK_RE = re.compile(r"[\r\n]+")


class ProgressSource(Protocol):
    """Extracts a completion percentage from one line of encoder output."""

    def parse(self, line: str) -> float | None: ...


class PercentProgressSource:
    """Matches the first ``NN.NN %`` token on any line."""

    _PERCENT_RE = re.compile(r"([0-9]{1,3}(?:[.,][0-9]{1,2})?)\s*%")

    def parse(self, line: str) -> float | None:
        match = self._PERCENT_RE.search(line)
        if match is None:
            return None
        value = float(match.group(1).replace(",", "."))
        return max(0.0, min(value, 100.0))


class HandBrakeProgressSource(PercentProgressSource):
    """Reads only HandBrakeCLI encode lines.

    Scan passes print their own percentages (``Scanning title 1 of 1, preview 10,
    100.00 %``) and must not count toward encode progress.
    """

    def parse(self, line: str) -> float | None:
        if not line.startswith("Encoding:"):
            return None
        return super().parse(line)


class LineSplitter:
    """Reassembles output chunks into lines.

    HandBrake redraws its progress line with bare carriage returns, so both
    ``\\r`` and ``\\n`` end a line.
    """

    def __init__(self) -> None:
        self._buffer = ""

    def feed(self, chunk: str) -> list[str]:
        self._buffer += chunk
        parts = _LINE_BREAK_RE.split(self._buffer)
        self._buffer = parts.pop()
        return [part.strip() for part in parts if part.strip()]

    def flush(self) -> list[str]:
        tail = self._buffer.strip()
        self._buffer = ""
        return [tail] if tail else []


def scale_encode_progress(percent: float) -> float:
    """Map encoder 0-100 onto the 10-90 band reserved for encoding."""
    return min(percent * 0.8 + 10, 90.0)
