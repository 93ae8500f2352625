# archsim

Trace-driven simulators for three classic computer-architecture studies:

- **Instruction statistics** (`archsim.insstats`): instruction-category mix,
  a CPI estimate where each 4-byte load or store access costs 50 cycles and
  everything else 1, instruction and data footprints in 32-byte chunks, and
  distributions of instruction length, operand counts, register and memory
  operands, memory bytes touched, immediates and displacements.
- **Branch prediction** (`archsim.predictors`, `archsim.btb`,
  `archsim.branch_sim`): misprediction fractions for forward, backward and all
  conditional branches under FNBT, bimodal, SAg, GAg, gshare, an SAg/GAg hybrid,
  and SAg/GAg/gshare majority and tournament hybrids; plus misprediction and
  miss rates of two 128-set, 4-way branch target buffers, one indexed by PC and
  one by PC hashed with global history.
- **Cache replacement** (`archsim.caches`, `archsim.cache_sim`): a 128-set 8-way
  LRU L1 in front of a 1024-set 16-way inclusive L2 with 64-byte blocks, with
  L2 replaced by LRU, SRRIP or NRU. The LRU run also reports dead-on-fill
  blocks and how many L2 blocks saw at least one and at least two hits.

No runtime dependencies beyond the standard library; Python 3.10 or later.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Command line

Three commands are installed:

```
archsim-insstats [trace] [-o FILE] [-f N]
archsim-branch   [trace] [-o FILE] [-f N]
archsim-cache    [trace] [-o FILE] [-f N]
```

- `trace` is a trace file; omitted or `-` reads standard input.
- `-o FILE` writes the results to `FILE`; without it they go to standard error.
- `-f N` skips the first `N` billion trace instructions before collecting
  statistics (default 0; negative values are rejected).

Each run writes a `Fast Forward Amount:` line, then the report. Collection
stops once one billion instructions past the fast-forward point have been
counted. A malformed trace or unreadable file prints `error: ...` to standard
error and the command exits with status 1.

## Trace formats

All traces are plain text, one executed instruction per line. Blank lines are
skipped and anything after `#` is ignored. Integers may be decimal or carry a
`0x`, `0o` or `0b` prefix, with an optional sign.

**archsim-branch**

```
X                           any other instruction
C <pc> <taken> <target>     conditional branch (taken is 0 or non-zero)
I <pc> <target> <next_pc>   indirect control transfer
```

**archsim-cache**

```
X                                     instruction without memory operands
M <addr> <size> [<addr> <size> ...]   one access per address/size pair
```

**archsim-insstats** uses `key=value` fields:

```
ip=<addr> size=<bytes> cat=<category>     required
ops=<n> rr=<n> rw=<n>                     operand, register-read and
                                          register-write counts (default 0)
imm=<v>[,<v>...]                          immediate operand values
mem=<r|w|rw>:<addr>:<size>[:<disp>]       one memory operand; repeatable
exec=<0|1>                                whether the predicate held (default 1)
```

Categories are the lower- or upper-case names of `Category` members other than
`LOAD` and `STORE`: `nop`, `direct_call`, `indirect_call`, `return`,
`unconditional_branch`, `conditional_branch`, `logical`, `rotate_shift`,
`flag`, `vector`, `cmov`, `mmx_sse`, `syscall`, `floating_point`, `other`.
Loads and stores are counted from the memory operands, one per 4-byte access.
An instruction with `exec=0` still counts towards lengths, operand and register
distributions, immediates and the instruction footprint, but not towards the
mix, memory statistics or data footprint.

## Library use

The building blocks can be used directly:

- `archsim.predictors`: `GlobalHistoryRegister`, `SaturatingCounter`, `FNBT`,
  `BimodalPredictor`, `SAg`, `GAg`, `GShare`, `SAgGAgHybrid`,
  `MajorityHybrid`, `TournamentHybrid`.
- `archsim.btb`: `PCIndexedBTB` and `HistoryHashedBTB`, whose `update(pc,
  target, next_pc)` trains the buffer and returns a `BTBOutcome` with `hit`
  and `mispredicted`.
- `archsim.branch_sim`: `BranchSimulator`, fed with
  `conditional_branch(pc, taken, target)` and
  `indirect_branch(pc, target, next_pc)`; results via
  `misprediction_fractions()`, `btb_rates()` and `report()`.
- `archsim.caches`: `LRUHierarchy`, `SRRIPHierarchy` and `NRUHierarchy`, each
  driven by `lookup(start, end)` over a byte range, with counts kept in their
  `stats` (a `CacheStats`). `LRUHierarchy.count_resident_dead_blocks()` counts
  L2 blocks not hit since they were filled.
- `archsim.cache_sim`: `CacheSimulator`, which runs all three hierarchies side
  by side through `access(address, size)`.
- `archsim.insstats`: `InstructionStats`, fed with `InstructionRecord` values
  via `record(ins)`, with `cpi()`, `instruction_footprint()`,
  `data_footprint()` and `report()`; `parse_record(line)` parses one trace line.
- `archsim.trace`: `read_trace` for splitting trace lines into fields,
  `parse_int` for integer fields, and `InstructionWindow` for the
  fast-forward and stop window.

Each of `archsim.insstats`, `archsim.branch_sim` and `archsim.cache_sim` also
offers `run_trace(stream, fast_forward)`, which processes a whole trace and
returns the finished simulator together with its `InstructionWindow`; the
simulator's `report()` gives the text of the report.

```python
from archsim.branch_sim import run_trace

with open("branches.trace") as stream:
    simulator, window = run_trace(stream)
print(simulator.report())
```

## What it does not do

archsim does not observe running programs. It has no way of instrumenting a
process or capturing instructions, branches or memory accesses; every trace
must be produced by some other means and written in the formats above.