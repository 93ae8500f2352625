"""Branch direction and target prediction over an instruction trace.

Trace lines, one executed instruction each:
    X                           any other instruction
    C <pc> <taken> <target>     conditional branch
    I <pc> <target> <next_pc>   indirect control transfer
"""

from __future__ import annotations

import argparse
import math
import sys
from contextlib import ExitStack
from typing import Iterable, TextIO

from .btb import HistoryHashedBTB, PCIndexedBTB
from .predictors import (
    FNBT,
    BimodalPredictor,
    GAg,
    GlobalHistoryRegister,
    GShare,
    MajorityHybrid,
    SAg,
    SAgGAgHybrid,
    TournamentHybrid,
)
from .trace import BILLION, InstructionWindow, parse_int, read_trace

DIRECTION_NAMES = (
    "FNBT",
    "Bimodal",
    "SAg",
    "GAg",
    "gshare",
    "SAg and GAg Hybrid",
    "SAg, GAg, and gshare Hybrid(Majority)",
    "SAg, GAg, and gshare Hybrid(Tournament)",
)

BTB_NAMES = (
    "BTB(Indexed with PC)",
    "BTB(Indexed with PC and GHR Hash)",
)

_PART_A = "=" * 37 + " Part A " + "=" * 43
_PART_B = "=" * 37 + " Part B " + "=" * 43
_BANNER = "=" * 47


def _ratio(numerator: int, denominator: int) -> float:
    return numerator / denominator if denominator else math.nan


class BranchSimulator:
    """Runs every direction predictor and both BTBs side by side."""

    def __init__(self) -> None:
        self.ghr_a = GlobalHistoryRegister(9)
        self.ghr_b = GlobalHistoryRegister(7)

        self.fnbt = FNBT()
        self.bimodal = BimodalPredictor(512, 2)
        self.sag = SAg(9, 1024, 2)
        self.gag = GAg(3, self.ghr_a)
        self.gshare = GShare(3, self.ghr_a)
        self.sag_gag = SAgGAgHybrid(self.sag, self.gag, self.ghr_a, 2)
        self.majority = MajorityHybrid(self.sag, self.gag, self.gshare)
        self.tournament = TournamentHybrid(self.sag, self.gag, self.gshare, self.ghr_a, 2)

        self.btbs = (PCIndexedBTB(128, 4), HistoryHashedBTB(128, 4, self.ghr_b))

        self.forward_branches = 0
        self.backward_branches = 0
        self.total_branches = 0
        self.forward_wrong = [0] * len(DIRECTION_NAMES)
        self.backward_wrong = [0] * len(DIRECTION_NAMES)

        self.indirect_total = 0
        self.btb_miss = [0] * len(BTB_NAMES)
        self.btb_mispredicted = [0] * len(BTB_NAMES)

    def conditional_branch(self, pc: int, taken: bool, target: int) -> None:
        """Score all direction predictors on one branch, then train them."""
        taken = bool(taken)
        is_forward = target >= pc
        if is_forward:
            self.forward_branches += 1
        else:
            self.backward_branches += 1
        self.total_branches += 1

        predictions = (
            self.fnbt.predict(is_forward),
            self.bimodal.predict(pc),
            self.sag.predict(pc),
            self.gag.predict(pc),
            self.gshare.predict(pc),
            self.sag_gag.predict_and_train_selector(pc, taken),
            self.majority.predict(pc),
            self.tournament.predict_and_train_selector(pc, taken),
        )
        wrong = self.forward_wrong if is_forward else self.backward_wrong
        for slot, prediction in enumerate(predictions):
            if bool(prediction) != taken:
                wrong[slot] += 1

        self.bimodal.update(pc, taken)
        self.sag.update(pc, taken)
        self.gag.update(pc, taken)
        self.gshare.update(pc, taken)

        self.ghr_a.update(taken)
        self.ghr_b.update(taken)

    def indirect_branch(self, pc: int, target: int, next_pc: int) -> None:
        """Score and train both BTBs on one indirect control transfer."""
        self.indirect_total += 1
        for slot, btb in enumerate(self.btbs):
            outcome = btb.update(pc, target, next_pc)
            if not outcome.hit:
                self.btb_miss[slot] += 1
            if outcome.mispredicted:
                self.btb_mispredicted[slot] += 1

    def misprediction_fractions(self) -> list[tuple[str, float, float, float]]:
        """Per predictor: name, forward, backward and overall misprediction fraction."""
        return [
            (
                name,
                _ratio(forward, self.forward_branches),
                _ratio(backward, self.backward_branches),
                _ratio(forward + backward, self.total_branches),
            )
            for name, forward, backward in zip(
                DIRECTION_NAMES, self.forward_wrong, self.backward_wrong
            )
        ]

    def btb_rates(self) -> list[tuple[str, float, float]]:
        """Per BTB: name, misprediction fraction and miss rate."""
        return [
            (
                name,
                _ratio(mispredicted, self.indirect_total),
                _ratio(missed, self.indirect_total),
            )
            for name, mispredicted, missed in zip(
                BTB_NAMES, self.btb_mispredicted, self.btb_miss
            )
        ]

    def report(self) -> str:
        """The results as a text table."""
        lines = [
            "",
            _PART_A,
            f"{'S.No':<10}{'Prediction Technique':<45}"
            f"{'Misprediction Fraction(FCB)':<35}{'Misprediction Fraction(BCB)':<35}"
            f"{'Misprediction Fraction(Overall)':<35}",
        ]
        for number, (name, forward, backward, overall) in enumerate(
            self.misprediction_fractions(), start=1
        ):
            lines.append(
                f"{number:<10}{name:<45}{forward:<35.3f}{backward:<35.3f}{overall:<35.3f}"
            )
        lines += [
            "",
            _PART_B,
            f"{'S.No':<10}{'Predictor':<45}{'Misprediction Fraction':<35}{'BTB Miss rate':<35}",
        ]
        for number, (name, mispredicted, missed) in enumerate(self.btb_rates(), start=1):
            lines.append(f"{number:<10}{name:<45}{mispredicted:<35.10f}{missed:<35.10f}")
        return "\n".join(lines) + "\n"


def _parse_event(fields: tuple[str, ...]) -> tuple[str, tuple[int, ...]]:
    kind = fields[0].upper()
    arity = {"X": 0, "C": 3, "I": 3}
    if kind not in arity:
        raise ValueError(f"unknown trace record kind: {fields[0]!r}")
    values = tuple(parse_int(field) for field in fields[1:])
    if len(values) != arity[kind]:
        raise ValueError(
            f"record {kind} takes {arity[kind]} fields, got {len(values)}"
        )
    return kind, values


def run_trace(
    stream: Iterable[str], fast_forward: int = 0
) -> tuple[BranchSimulator, InstructionWindow]:
    """Feed a trace through a fresh simulator, honouring the fast-forward window."""
    simulator = BranchSimulator()
    window = InstructionWindow(fast_forward=fast_forward)
    for fields in read_trace(stream):
        if window.finished():
            break
        kind, values = _parse_event(fields)
        window.tick()
        if not window.active():
            continue
        if kind == "C":
            pc, taken, target = values
            simulator.conditional_branch(pc, bool(taken), target)
        elif kind == "I":
            simulator.indirect_branch(*values)
    return simulator, window


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="archsim-branch",
        description="Evaluate branch direction predictors and BTBs on a trace.",
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
            out.write(f"{_BANNER}\nHW2 analysis results: \n{_BANNER}\n")
        out.write(simulator.report())
    return 0