"""Two-level inclusive cache hierarchies with LRU, SRRIP and NRU L2 policies.

Every hierarchy keeps an LRU L1. A block missing in L1 is looked up in L2.
On an L2 miss the block is filled into both levels. An L2 eviction also
removes the victim from L1, so L1 stays a subset of L2.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

BLOCK_SIZE = 64
L1_SETS = 128
L1_WAYS = 8
L2_SETS = 1024
L2_WAYS = 16

SRRIP_MAX_AGE = 3
SRRIP_INSERT_AGE = 2


@dataclass
class CacheLine:
    """One resident block."""

    tag: int
    hits: int = 0
    age: int = SRRIP_MAX_AGE
    ref: int = 1
    valid: bool = True


@dataclass
class CacheStats:
    """Access and miss counters for one hierarchy.

    The fill, dead-on-fill and hit-count fields are kept by the LRU
    hierarchy only.
    """

    l1_accesses: int = 0
    l2_accesses: int = 0
    l1_misses: int = 0
    l2_misses: int = 0
    l2_fills: int = 0
    dead_on_fill: int = 0
    l2_hit_once: int = 0
    l2_hit_twice: int = 0


def _index_bits(count: int, what: str) -> int:
    if count <= 0 or count & (count - 1):
        raise ValueError(f"{what} must be a positive power of two, got {count}")
    return count.bit_length() - 1


def _find(lines: list[CacheLine], tag: int) -> int | None:
    return next(
        (way for way, line in enumerate(lines) if line.valid and line.tag == tag),
        None,
    )


class _TwoLevelCache(ABC):
    """Shared geometry, L1 handling and back-invalidation."""

    def __init__(
        self,
        l1_sets: int = L1_SETS,
        l1_ways: int = L1_WAYS,
        l2_sets: int = L2_SETS,
        l2_ways: int = L2_WAYS,
        block_size: int = BLOCK_SIZE,
    ) -> None:
        self.l1_index_bits = _index_bits(l1_sets, "l1_sets")
        self.l2_index_bits = _index_bits(l2_sets, "l2_sets")
        if l1_ways <= 0 or l2_ways <= 0:
            raise ValueError("every cache level needs at least one way")
        if block_size <= 0:
            raise ValueError("block_size must be positive")
        self.block_size = block_size
        self.l1_ways = l1_ways
        self.l2_ways = l2_ways
        self.l1: list[list[CacheLine]] = [[] for _ in range(l1_sets)]
        self.l2: list[list[CacheLine]] = [[] for _ in range(l2_sets)]
        self.stats = CacheStats()

    def _l1_key(self, block: int) -> tuple[int, int]:
        return block & (len(self.l1) - 1), block >> self.l1_index_bits

    def _l2_key(self, block: int) -> tuple[int, int]:
        return block & (len(self.l2) - 1), block >> self.l2_index_bits

    def _lookup_range(self, start: int, end: int) -> None:
        if start < 0 or end < start:
            raise ValueError("address range must be non-negative and ordered")
        for block in range(start // self.block_size, end // self.block_size + 1):
            self._access_block(block)

    def _access_block(self, block: int) -> None:
        self.stats.l1_accesses += 1
        index, tag = self._l1_key(block)
        lines = self.l1[index]
        way = _find(lines, tag)
        if way is not None:
            line = lines.pop(way)
            line.hits += 1
            lines.insert(0, line)
            return
        self.stats.l1_misses += 1
        self.stats.l2_accesses += 1
        self._access_l2(block)
        self._fill_l1(index, tag)

    def _fill_l1(self, index: int, tag: int) -> None:
        lines = self.l1[index]
        if len(lines) >= self.l1_ways:
            lines.pop()
        lines.insert(0, CacheLine(tag))

    def _back_invalidate(self, l2_index: int, l2_tag: int) -> None:
        block = (l2_tag << self.l2_index_bits) | l2_index
        index, tag = self._l1_key(block)
        lines = self.l1[index]
        way = _find(lines, tag)
        if way is not None:
            del lines[way]

    @abstractmethod
    def _access_l2(self, block: int) -> None:
        """Look the block up in L2, counting a miss and filling on one."""


class LRUHierarchy(_TwoLevelCache):
    """LRU at both levels, tracking per-block L2 hit counts."""

    def lookup(self, start: int, end: int) -> None:
        """Access every block from the one holding ``start`` to the one holding ``end``."""
        self._lookup_range(start, end)

    def _access_l2(self, block: int) -> None:
        index, tag = self._l2_key(block)
        lines = self.l2[index]
        way = _find(lines, tag)
        if way is not None:
            line = lines.pop(way)
            if line.hits == 0:
                self.stats.l2_hit_once += 1
            elif line.hits == 1:
                self.stats.l2_hit_twice += 1
            line.hits += 1
            lines.insert(0, line)
            return
        self.stats.l2_misses += 1
        if len(lines) >= self.l2_ways:
            victim = lines.pop()
            if victim.hits == 0:
                self.stats.dead_on_fill += 1
            self._back_invalidate(index, victim.tag)
        self.stats.l2_fills += 1
        lines.insert(0, CacheLine(tag))

    def count_resident_dead_blocks(self) -> int:
        """L2 blocks still resident that have not been hit since their fill."""
        return sum(
            1 for lines in self.l2 for line in lines if line.valid and line.hits == 0
        )


class SRRIPHierarchy(_TwoLevelCache):
    """LRU L1 over a static re-reference interval prediction L2."""

    def lookup(self, start: int, end: int) -> None:
        """Access every block from the one holding ``start`` to the one holding ``end``."""
        self._lookup_range(start, end)

    def _access_l2(self, block: int) -> None:
        index, tag = self._l2_key(block)
        lines = self.l2[index]
        way = _find(lines, tag)
        if way is not None:
            lines[way].age = 0
            return
        self.stats.l2_misses += 1
        if len(lines) < self.l2_ways:
            lines.append(CacheLine(tag, age=SRRIP_INSERT_AGE))
            return
        victim_way = self._victim(lines)
        victim = lines[victim_way]
        self._back_invalidate(index, victim.tag)
        victim.tag = tag
        victim.valid = True
        victim.age = SRRIP_INSERT_AGE

    @staticmethod
    def _victim(lines: list[CacheLine]) -> int:
        while True:
            way = next(
                (w for w, line in enumerate(lines) if line.valid and line.age >= SRRIP_MAX_AGE),
                None,
            )
            if way is not None:
                return way
            for line in lines:
                if line.valid:
                    line.age += 1


class NRUHierarchy(_TwoLevelCache):
    """LRU L1 over a not-recently-used L2."""

    def __init__(
        self,
        l1_sets: int = L1_SETS,
        l1_ways: int = L1_WAYS,
        l2_sets: int = L2_SETS,
        l2_ways: int = L2_WAYS,
        block_size: int = BLOCK_SIZE,
    ) -> None:
        super().__init__(l1_sets, l1_ways, l2_sets, l2_ways, block_size)
        self._most_recent: list[int | None] = [None] * l2_sets

    def lookup(self, start: int, end: int) -> None:
        """Access every block from the one holding ``start`` to the one holding ``end``."""
        self._lookup_range(start, end)

    def _refresh(self, index: int) -> None:
        lines = self.l2[index]
        if all(line.ref for line in lines if line.valid):
            keep = self._most_recent[index]
            for way, line in enumerate(lines):
                if line.valid and way != keep:
                    line.ref = 0

    def _access_l2(self, block: int) -> None:
        index, tag = self._l2_key(block)
        lines = self.l2[index]
        way = _find(lines, tag)
        if way is not None:
            lines[way].ref = 1
            self._most_recent[index] = way
            self._refresh(index)
            return
        self.stats.l2_misses += 1
        if len(lines) < self.l2_ways:
            self._most_recent[index] = len(lines)
            lines.append(CacheLine(tag, ref=1))
            self._refresh(index)
            return
        victim_way = next(
            (w for w, line in enumerate(lines) if line.valid and line.ref == 0), None
        )
        if victim_way is None:
            raise RuntimeError(f"no NRU victim available in L2 set {index}")
        victim = lines[victim_way]
        old_tag = victim.tag
        victim.tag = tag
        victim.valid = True
        victim.ref = 1
        self._most_recent[index] = victim_way
        self._refresh(index)
        self._back_invalidate(index, old_tag)