"""Instruction-window bookkeeping and plain-text trace reading."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Iterator

BILLION = 1_000_000_000
WINDOW_LENGTH = BILLION


@dataclass
class InstructionWindow:
    """Tracks executed instructions against a fast-forward point and a window.

    Analysis is active once ``fast_forward`` instructions have been counted,
    and the run is finished once ``fast_forward + length`` have been counted.
    """

    fast_forward: int = 0
    length: int = WINDOW_LENGTH
    count: int = 0

    def __post_init__(self) -> None:
        if self.fast_forward < 0:
            raise ValueError("fast_forward must not be negative")
        if self.length < 0:
            raise ValueError("length must not be negative")

    def tick(self) -> None:
        """Count one executed instruction."""
        self.count += 1

    def active(self) -> bool:
        """Whether analysis should run for the current instruction."""
        return self.count >= self.fast_forward and self.count != 0

    def finished(self) -> bool:
        """Whether the analysis window has been used up."""
        return self.count >= self.fast_forward + self.length

    def executed(self) -> int:
        """Instructions counted after the fast-forward point."""
        return max(0, self.count - self.fast_forward)


def parse_int(text: str) -> int:
    """Parse a decimal or prefixed (0x, 0o, 0b) integer, sign allowed."""
    cleaned = text.strip()
    if not cleaned:
        raise ValueError("empty integer field")
    try:
        return int(cleaned, 0)
    except ValueError:
        pass
    try:
        return int(cleaned, 10)
    except ValueError:
        raise ValueError(f"not an integer: {text!r}") from None


def read_trace(stream: Iterable[str]) -> Iterator[tuple[str, ...]]:
    """Yield the whitespace-separated fields of each meaningful trace line.

    Blank lines are skipped and everything after a ``#`` is ignored.
    """
    for line in stream:
        content = line.split("#", 1)[0]
        fields = tuple(content.split())
        if fields:
            yield fields