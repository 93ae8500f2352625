[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "archsim"
version = "0.1.0"
description = "Trace-driven simulators for instruction mix statistics, branch prediction and two-level cache replacement policies"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "computer-architecture",
    "simulation",
    "branch-prediction",
    "branch-target-buffer",
    "cache",
    "lru",
    "srrip",
    "nru",
    "instruction-trace",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
archsim-insstats = "archsim.insstats:main"
archsim-branch = "archsim.branch_sim:main"
archsim-cache = "archsim.cache_sim:main"

[tool.hatch.build.targets.wheel]
packages = ["archsim"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]
