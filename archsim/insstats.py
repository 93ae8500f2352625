"""Instruction-mix, footprint and operand statistics over an instruction trace.

Trace lines, one executed instruction each, as ``key=value`` fields:
    ip=<addr> size=<bytes> cat=<category>      required
    ops=<n> rr=<n> rw=<n>                      operand, register-read and
                                               register-write counts (default 0)
    imm=<v>[,<v>...]                           immediate operand values
    mem=<r|w|rw>:<addr>:<size>[:<disp>]        one memory operand; repeatable
    exec=<0|1>                                 whether the predicate held (default 1)

Categories are the names of :class:`Category` members other than LOAD and
STORE, in any case, e.g. ``cat=direct_call``.
"""

from __future__ import annotations

import argparse
import math
import sys
from collections import Counter
from contextlib import ExitStack
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, TextIO

from .trace import BILLION, InstructionWindow, parse_int, read_trace

CHUNK_SIZE = 32
ACCESS_SIZE = 4
MEMORY_LATENCY = 50
OTHER_LATENCY = 1

_BANNER = "=" * 47


def _heading(title: str) -> str:
    return f"{'=' * 37} {title} {'=' * 43}"


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator else math.nan


class Category(Enum):
    """Instruction classes counted in the mix, in report order."""

    LOAD = "Loads"
    STORE = "Stores"
    NOP = "NOPs"
    DIRECT_CALL = "Direct calls"
    INDIRECT_CALL = "Indirect calls"
    RETURN = "Returns"
    UNCONDITIONAL_BRANCH = "Unconditional branches"
    CONDITIONAL_BRANCH = "Conditional branches"
    LOGICAL = "Logical operations"
    ROTATE_SHIFT = "Rotate and shift"
    FLAG = "Flag operations"
    VECTOR = "Vector instructions"
    CMOV = "Conditional moves"
    MMX_SSE = "MMX and SSE instructions"
    SYSCALL = "System calls"
    FLOATING_POINT = "Floating-point"
    OTHER = "The rest"

    @classmethod
    def from_name(cls, name: str) -> Category:
        try:
            return cls[name.upper()]
        except KeyError:
            raise ValueError(f"unknown instruction category: {name!r}") from None


_MEMORY_CATEGORIES = (Category.LOAD, Category.STORE)


@dataclass(frozen=True)
class MemoryOperand:
    """One memory operand of an instruction."""

    address: int
    size: int
    read: bool = False
    written: bool = False
    displacement: int = 0

    def __post_init__(self) -> None:
        if self.address < 0:
            raise ValueError("memory address must not be negative")
        if self.size < 0:
            raise ValueError("memory operand size must not be negative")

    @property
    def accesses(self) -> int:
        """Number of 4-byte accesses needed to cover the operand."""
        return -(-self.size // ACCESS_SIZE)


@dataclass(frozen=True)
class InstructionRecord:
    """One executed instruction as seen by the analysis."""

    address: int
    size: int
    category: Category
    operand_count: int = 0
    register_reads: int = 0
    register_writes: int = 0
    immediates: tuple[int, ...] = ()
    memory: tuple[MemoryOperand, ...] = ()
    executed: bool = True

    def __post_init__(self) -> None:
        if self.category in _MEMORY_CATEGORIES:
            raise ValueError("loads and stores are counted from memory operands")
        if self.address < 0:
            raise ValueError("instruction address must not be negative")
        for name in ("size", "operand_count", "register_reads", "register_writes"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")


def _chunks(address: int, size: int) -> range:
    return range(address // CHUNK_SIZE, (address + size) // CHUNK_SIZE + 1)


@dataclass
class InstructionStats:
    """Accumulates the instruction mix and operand distributions.

    ``instructions_executed`` counts recorded instructions; a trace runner
    may overwrite it with the count its instruction window reports.
    """

    counts: Counter = field(default_factory=Counter)
    instructions_executed: int = 0
    memory_instructions: int = 0
    length_counts: Counter = field(default_factory=Counter)
    operand_counts: Counter = field(default_factory=Counter)
    register_read_counts: Counter = field(default_factory=Counter)
    register_write_counts: Counter = field(default_factory=Counter)
    memory_operand_counts: Counter = field(default_factory=Counter)
    memory_read_counts: Counter = field(default_factory=Counter)
    memory_write_counts: Counter = field(default_factory=Counter)
    max_memory_bytes: int = 0
    total_memory_bytes: int = 0
    min_immediate: int | None = None
    max_immediate: int | None = None
    min_displacement: int | None = None
    max_displacement: int | None = None
    instruction_chunks: set = field(default_factory=set)
    data_chunks: set = field(default_factory=set)

    @property
    def predicated_count(self) -> int:
        """Sum of all mix counters (loads and stores count per access)."""
        return sum(self.counts.values())

    def record(self, ins: InstructionRecord) -> None:
        """Account for one executed instruction."""
        self.instructions_executed += 1
        self.length_counts[ins.size] += 1
        self.operand_counts[ins.operand_count] += 1
        self.register_read_counts[ins.register_reads] += 1
        self.register_write_counts[ins.register_writes] += 1
        if ins.immediates:
            low, high = min(ins.immediates), max(ins.immediates)
            if self.min_immediate is None or low < self.min_immediate:
                self.min_immediate = low
            if self.max_immediate is None or high > self.max_immediate:
                self.max_immediate = high
        self.instruction_chunks.update(_chunks(ins.address, ins.size))

        if not ins.executed:
            return

        reads = sum(1 for op in ins.memory if op.read)
        writes = sum(1 for op in ins.memory if op.written)
        if ins.memory:
            self.memory_instructions += 1
            touched = 0
            for op in ins.memory:
                if op.read:
                    self.counts[Category.LOAD] += op.accesses
                    touched += op.size
                if op.written:
                    self.counts[Category.STORE] += op.accesses
                    touched += op.size
                self.data_chunks.update(_chunks(op.address, op.size))
            self.max_memory_bytes = max(self.max_memory_bytes, touched)
            self.total_memory_bytes += touched
            displacements = [op.displacement for op in ins.memory]
            low, high = min(displacements), max(displacements)
            if self.min_displacement is None or low < self.min_displacement:
                self.min_displacement = low
            if self.max_displacement is None or high > self.max_displacement:
                self.max_displacement = high

        self.counts[ins.category] += 1
        self.memory_read_counts[reads] += 1
        self.memory_write_counts[writes] += 1
        self.memory_operand_counts[reads + writes] += 1

    def cpi(self) -> float:
        """Cycles per counted instruction: memory accesses cost 50, the rest 1."""
        cycles = sum(
            count * (MEMORY_LATENCY if category in _MEMORY_CATEGORIES else OTHER_LATENCY)
            for category, count in self.counts.items()
        )
        return _ratio(cycles, self.predicated_count)

    def instruction_footprint(self) -> int:
        """Bytes of distinct 32-byte chunks holding executed instructions."""
        return len(self.instruction_chunks) * CHUNK_SIZE

    def data_footprint(self) -> int:
        """Bytes of distinct 32-byte chunks touched by memory operands."""
        return len(self.data_chunks) * CHUNK_SIZE

    def report(self) -> str:
        """The results as text."""
        total = self.predicated_count
        lines = [
            "",
            _heading("Part A"),
            f"{'S.No':<10}{'Instruction Type':<35}{'Count':<30}{'Percentage':<20}",
        ]
        for number, category in enumerate(Category, start=1):
            count = self.counts[category]
            percent = _ratio(count * 100, total)
            lines.append(f"{number:<10}{category.value:<35}{count:<30}{percent:<20.2f}")
        lines += [
            "",
            f"Addition of all the counters = {total}",
            f"Instructions Executed (Total) = {self.instructions_executed}",
            f"Number of Memory Instructions (Predicated) = {self.memory_instructions}",
            "",
            _heading("Part B"),
            f"CPI = {self.cpi():.2f}",
            "",
            _heading("Part C"),
            f"Instruction Footprint Size = {self.instruction_footprint()} bytes",
            f"Data Footprint Size = {self.data_footprint()} bytes",
            "",
            _heading("Part D"),
        ]
        distributions = (
            ("Distribution of Instruction Lengths", "Length", self.length_counts),
            ("Distribution of  the number of operands", "Number of Operands",
             self.operand_counts),
            ("Distribution of  the number of register read operands", "Number of Operands",
             self.register_read_counts),
            ("Distribution of  the number of register write operands", "Number of Operands",
             self.register_write_counts),
            ("Distribution of  the number of memory operands", "Number of Operands",
             self.memory_operand_counts),
            ("Distribution of  the number of memory read operands", "Number of Operands",
             self.memory_read_counts),
            ("Distribution of  the number of memory write operands", "Number of Operands",
             self.memory_write_counts),
        )
        for number, (title, header, counts) in enumerate(distributions, start=1):
            if number > 1:
                lines.append("")
            lines.append(f"D{number}: {title}")
            lines.append(f"{header:<35}{'Count':<30}")
            lines += [f"{key:<35}{value:<30}" for key, value in sorted(counts.items())]

        average = _ratio(self.total_memory_bytes, self.memory_instructions)
        lines += [
            "",
            "D8: Maximum and average number of memory bytes touched",
            f"Maximum:{self.max_memory_bytes}",
            f"Average:{average:.2f}",
            "",
            "D9: Maximum and minimum Value of Immediate Field",
        ]
        if self.max_immediate is None:
            lines.append("No instruction with immediate operand")
        else:
            lines += [f"Maximum:{self.max_immediate}", f"Minimum:{self.min_immediate}"]
        lines += ["", "D10: Maximum and minimum Value of Displacement Field"]
        if self.max_displacement is None:
            lines.append("No instruction with Displacement Field")
        else:
            lines += [f"Maximum:{self.max_displacement}", f"Minimum:{self.min_displacement}"]
        return "\n".join(lines) + "\n"


_ACCESS_MODES = {
    "r": (True, False),
    "w": (False, True),
    "rw": (True, True),
    "wr": (True, True),
}
_SCALAR_KEYS = ("ip", "size", "cat", "ops", "rr", "rw", "exec")
_REQUIRED_KEYS = ("ip", "size", "cat")


def _parse_memory(spec: str) -> MemoryOperand:
    parts = spec.split(":")
    if len(parts) not in (3, 4):
        raise ValueError(f"memory operand must be access:address:size[:disp], got {spec!r}")
    access = parts[0].lower()
    if access not in _ACCESS_MODES:
        raise ValueError(f"memory access must be r, w or rw, got {parts[0]!r}")
    read, written = _ACCESS_MODES[access]
    displacement = parse_int(parts[3]) if len(parts) == 4 else 0
    return MemoryOperand(
        address=parse_int(parts[1]),
        size=parse_int(parts[2]),
        read=read,
        written=written,
        displacement=displacement,
    )


def _record_from_fields(fields: Iterable[str]) -> InstructionRecord:
    values: dict[str, str] = {}
    immediates: list[int] = []
    memory: list[MemoryOperand] = []
    for item in fields:
        key, sep, value = item.partition("=")
        key = key.lower()
        if not sep or not value:
            raise ValueError(f"expected key=value, got {item!r}")
        if key == "mem":
            memory.append(_parse_memory(value))
        elif key == "imm":
            immediates.extend(parse_int(part) for part in value.split(","))
        elif key in _SCALAR_KEYS:
            if key in values:
                raise ValueError(f"field {key!r} given twice")
            values[key] = value
        else:
            raise ValueError(f"unknown field: {key!r}")
    missing = [key for key in _REQUIRED_KEYS if key not in values]
    if missing:
        raise ValueError(f"missing field(s): {', '.join(missing)}")
    executed = parse_int(values.get("exec", "1"))
    if executed not in (0, 1):
        raise ValueError("exec must be 0 or 1")
    return InstructionRecord(
        address=parse_int(values["ip"]),
        size=parse_int(values["size"]),
        category=Category.from_name(values["cat"]),
        operand_count=parse_int(values.get("ops", "0")),
        register_reads=parse_int(values.get("rr", "0")),
        register_writes=parse_int(values.get("rw", "0")),
        immediates=tuple(immediates),
        memory=tuple(memory),
        executed=bool(executed),
    )


def parse_record(line: str) -> InstructionRecord:
    """Parse one trace line into an instruction record."""
    fields = line.split("#", 1)[0].split()
    if not fields:
        raise ValueError("empty trace line")
    return _record_from_fields(fields)


def run_trace(
    stream: Iterable[str], fast_forward: int = 0
) -> tuple[InstructionStats, InstructionWindow]:
    """Feed a trace through fresh statistics, honouring the fast-forward window."""
    stats = InstructionStats()
    window = InstructionWindow(fast_forward=fast_forward)
    for fields in read_trace(stream):
        if window.finished():
            break
        record = _record_from_fields(fields)
        window.tick()
        if window.active():
            stats.record(record)
    stats.instructions_executed = window.executed()
    return stats, window


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="archsim-insstats",
        description="Report instruction mix, CPI, footprints and operand statistics.",
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
                stats, window = run_trace(sys.stdin, fast_forward)
            else:
                with open(args.trace, encoding="utf-8") as stream:
                    stats, window = run_trace(stream, fast_forward)
        except (OSError, ValueError) as exc:
            print(f"error: {exc}", file=sys.stderr)
            return 1
        if not window.finished():
            out.write(f"{_BANNER}\nHW1 analysis results: \n{_BANNER}\n")
        out.write(stats.report())
    return 0