"""Compare LRU, SRRIP and NRU cache hierarchies over a memory-access trace.

Trace lines, one executed instruction each:
    X                                   instruction without memory operands
    M <addr> <size> [<addr> <size> ...] instruction touching memory; each
                                        address/size pair is one access
"""

from __future__ import annotations

import argparse
import math
import sys
from contextlib import ExitStack
from typing import Iterable, TextIO

from .caches import LRUHierarchy, NRUHierarchy, SRRIPHierarchy
from .trace import BILLION, InstructionWindow, parse_int, read_trace

_RULE_LEFT = "=" * 37
_RULE_RIGHT = "=" * 43
_BANNER = "=" * 47


def _heading(title: str) -> str:
    return f"{_RULE_LEFT} {title} {_RULE_RIGHT}"


def _number(value: float) -> str:
    """Format a float the way a default-configured output stream does."""
    if math.isnan(value):
        return "nan"
    if math.isinf(value):
        return "inf" if value > 0 else "-inf"
    return format(value, "g")


class CacheSimulator:
    """Feeds every memory access to three hierarchies that differ in L2 policy."""

    def __init__(self) -> None:
        self.lru = LRUHierarchy()
        self.srrip = SRRIPHierarchy()
        self.nru = NRUHierarchy()

    def access(self, address: int, size: int) -> None:
        """Access ``size`` bytes from ``address`` in all three hierarchies."""
        if address < 0:
            raise ValueError("address must not be negative")
        if size < 0:
            raise ValueError("size must not be negative")
        end = address + size
        for hierarchy in (self.lru, self.srrip, self.nru):
            hierarchy.lookup(address, end)

    def report(self) -> str:
        """The results as text; the simulation state is left untouched."""
        stats = self.lru.stats
        dead = stats.dead_on_fill + self.lru.count_resident_dead_blocks()
        if stats.l2_fills:
            dead_percent = dead * 100 / stats.l2_fills
        else:
            dead_percent = math.nan if dead == 0 else math.inf
        if stats.l2_hit_once > 0:
            reuse_percent = stats.l2_hit_twice * 100 / stats.l2_hit_once
        else:
            reuse_percent = 0.0

        lines = [
            "",
            _heading("Part A (LRU Policy)"),
            f"No of L1 accesses: {stats.l1_accesses}",
            f"No of L2 accesses: {stats.l2_accesses}",
            f"No of L1 Cache Misses: {stats.l1_misses}",
            f"No of L2 Cache Misses: {stats.l2_misses}",
            f"Percentage of L2 DoF Blocks: {_number(dead_percent)}",
            f"Number of Total DOF Blocks: {dead}",
            f"Percentage of L2 Blocks(>= 2 hits): {_number(reuse_percent)}",
            f"L2 blocks with atleast 2 hits: {stats.l2_hit_twice}",
            f"L2 blocks with atleast 1 hit: {stats.l2_hit_once}",
            "",
            _heading("Part B (SRRIP Policy)"),
            f"No of L1 Cache Misses: {self.srrip.stats.l1_misses}",
            f"No of L2 Cache Misses: {self.srrip.stats.l2_misses}",
            "",
            _heading("Part C (NRU Policy)"),
            f"No of L1 Cache Misses: {self.nru.stats.l1_misses}",
            f"No of L2 Cache Misses: {self.nru.stats.l2_misses}",
        ]
        return "\n".join(lines) + "\n"


def _parse_accesses(fields: tuple[str, ...]) -> list[tuple[int, int]]:
    kind = fields[0].upper()
    values = [parse_int(field) for field in fields[1:]]
    if kind == "X":
        if values:
            raise ValueError(f"record X takes no fields, got {len(values)}")
        return []
    if kind != "M":
        raise ValueError(f"unknown trace record kind: {fields[0]!r}")
    if not values or len(values) % 2:
        raise ValueError("record M takes address/size pairs")
    return list(zip(values[::2], values[1::2]))


def run_trace(
    stream: Iterable[str], fast_forward: int = 0
) -> tuple[CacheSimulator, InstructionWindow]:
    """Feed a trace through a fresh simulator, honouring the fast-forward window."""
    simulator = CacheSimulator()
    window = InstructionWindow(fast_forward=fast_forward)
    for fields in read_trace(stream):
        if window.finished():
            break
        accesses = _parse_accesses(fields)
        window.tick()
        if not window.active():
            continue
        for address, size in accesses:
            simulator.access(address, size)
    return simulator, window


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="archsim-cache",
        description="Compare L2 replacement policies on a memory-access trace.",
    )
    parser.add_argument("trace", nargs="?", default="-", help="trace file, '-' for stdin")
    parser.add_argument("-o", dest="output", default="", help="file for the results")
    parser.add_argument(
        "-f", dest="fast_forward", type=int, default=0,
        help="instructions to skip, in billions",
    )
    args = parser.parse_args(argv)
    if args.fast_forward < 0:
        parser.error("fast forward amount must not be negative")
    fast_forward = args.fast_forward * BILLION

    with ExitStack() as stack:
        out: TextIO = (
            stack.enter_context(open(args.output, "w", encoding="utf-8"))
            if args.output
            else sys.stderr
        )
        out.write(f"Fast Forward Amount:  {fast_forward}\n")
        if args.output:
            print(f"See file {args.output} for analysis results", file=sys.stderr)
        try:
            if args.trace == "-":
                simulator, window = run_trace(sys.stdin, fast_forward)
            else:
                with open(args.trace, encoding="utf-8") as stream:
                    simulator, window = run_trace(stream, fast_forward)
        except (OSError, ValueError) as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
        if not window.finished():
            out.write(f"{_BANNER}\nHW4 analysis results: \n{_BANNER}\n")
        out.write(simulator.report())
    return 0