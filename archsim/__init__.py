"""Trace-driven simulators for instruction statistics, branch prediction and caches."""

__version__ = "0.1.0"

__all__ = [
    "trace",
    "predictors",
    "btb",
    "branch_sim",
    "caches",
    "cache_sim",
    "insstats",
]