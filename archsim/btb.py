"""Set-associative branch target buffers with LRU replacement."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass

from .predictors import GlobalHistoryRegister


@dataclass
class BTBEntry:
    """One cached branch target."""

    tag: int
    target: int
    valid: bool = True


@dataclass(frozen=True)
class BTBOutcome:
    """What a single BTB access found."""

    hit: bool
    mispredicted: bool


class _SetAssociativeBTB(ABC):
    """Sets kept most-recently-inserted first; the oldest entry sits at the back."""

    def __init__(self, sets: int, ways: int) -> None:
        if sets <= 0:
            raise ValueError("a BTB needs at least one set")
        if ways <= 0:
            raise ValueError("a BTB needs at least one way")
        self.ways = ways
        self.sets: list[deque[BTBEntry]] = [deque() for _ in range(sets)]

    @abstractmethod
    def _locate(self, pc: int) -> tuple[int, int]:
        """Return the set index and tag for a branch address."""

    def _train(self, pc: int, target: int, next_pc: int) -> BTBOutcome:
        index, tag = self._locate(pc)
        entries = self.sets[index]
        entry = next((e for e in entries if e.valid and e.tag == tag), None)
        taken = target != next_pc

        if entry is None:
            if taken:
                if len(entries) >= self.ways:
                    entries.pop()
                entries.appendleft(BTBEntry(tag, target))
            return BTBOutcome(hit=False, mispredicted=taken)

        mispredicted = entry.target != target
        if not taken:
            entries.remove(entry)
        elif mispredicted:
            entries.remove(entry)
            entries.appendleft(BTBEntry(tag, target))
        return BTBOutcome(hit=True, mispredicted=mispredicted)


class PCIndexedBTB(_SetAssociativeBTB):
    """BTB indexed by the low bits of the branch address; the rest is the tag."""

    def __init__(self, sets: int, ways: int) -> None:
        super().__init__(sets, ways)
        self.index_bits = sets.bit_length() - 1

    def _locate(self, pc: int) -> tuple[int, int]:
        return pc % len(self.sets), pc >> self.index_bits

    def update(self, pc: int, target: int, next_pc: int) -> BTBOutcome:
        """Look up ``pc``, score the prediction and train the buffer.

        A miss predicts fall-through. A taken branch that misses is inserted;
        a hit whose branch fell through is removed; a hit with a stale target
        is replaced at the front of its set.
        """
        return self._train(pc, target, next_pc)


class HistoryHashedBTB(_SetAssociativeBTB):
    """BTB indexed by branch address XOR global history; the full address is the tag."""

    def __init__(self, sets: int, ways: int, ghr: GlobalHistoryRegister) -> None:
        super().__init__(sets, ways)
        if (1 << ghr.width) > sets:
            raise ValueError("history width addresses more sets than the BTB has")
        self.ghr = ghr

    def _locate(self, pc: int) -> tuple[int, int]:
        span = 1 << self.ghr.width
        return (pc % span) ^ (self.ghr.value % span), pc

    def update(self, pc: int, target: int, next_pc: int) -> BTBOutcome:
        """Look up ``pc`` under the current history, score it and train the buffer.

        The replacement rules are those of :meth:`PCIndexedBTB.update`.
        """
        return self._train(pc, target, next_pc)