[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "labkv"
version = "0.1.0"
description = "MapReduce framework, a key/value store with exactly-once writes, a key/value history model and a self-describing value codec."
requires-python = ">=3.10"
dependencies = []
keywords = [
    "distributed-systems",
    "mapreduce",
    "key-value",
    "linearizability",
    "serialization",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
    "Operating System :: POSIX",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Topic :: Education",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
labkv-mrsequential = "labkv.mr.cli:sequential_main"
labkv-mrcoordinator = "labkv.mr.cli:coordinator_main"
labkv-mrworker = "labkv.mr.cli:worker_main"

[tool.hatch.build.targets.wheel]
packages = ["labkv"]

[tool.hatch.build.targets.sdist]
include = ["labkv", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
