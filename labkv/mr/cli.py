"""Command entry points for MapReduce: sequential run, coordinator and worker."""

from __future__ import annotations

import os
import sys
import time
from itertools import groupby
from operator import attrgetter
from pathlib import Path
from typing import Callable, Iterable, Sequence

from labkv.mr.apps import load_app
from labkv.mr.coordinator import make_coordinator
from labkv.mr.protocol import KeyValue
from labkv.mr.worker import worker

__all__ = ["run_sequential", "sequential_main", "coordinator_main", "worker_main"]

MapFunc = Callable[[str, str], list[KeyValue]]
ReduceFunc = Callable[[str, list[str]], str]

N_REDUCE = 10


def run_sequential(
    mapf: MapFunc,
    reducef: ReduceFunc,
    filenames: Iterable[str],
    output: str | os.PathLike[str],
) -> list[str]:
    """Map every input file, reduce each distinct key, write "key value" lines.

    Returns the lines written, sorted by key.  Raises OSError if an input
    file cannot be read.
    """
    intermediate: list[KeyValue] = []
    for name in filenames:
        with open(name, encoding="utf-8", errors="replace") as handle:
            content = handle.read()
        intermediate.extend(mapf(name, content))
    intermediate.sort(key=attrgetter("key"))
    lines = [
        f"{key} {reducef(key, [kv.value for kv in group])}\n"
        for key, group in groupby(intermediate, key=attrgetter("key"))
    ]
    Path(output).write_text("".join(lines), encoding="utf-8")
    return lines


def _load(name: str) -> tuple[MapFunc, ReduceFunc] | None:
    try:
        return load_app(name)
    except ValueError:
        print(f"cannot load plugin {name}", file=sys.stderr)
        return None


def sequential_main(argv: Sequence[str] | None = None) -> int:
    """mrsequential APP inputfiles... -- write the result to mr-out-0."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) < 2:
        print("Usage: mrsequential xxx.so inputfiles...", file=sys.stderr)
        return 1
    app = _load(args[0])
    if app is None:
        return 1
    mapf, reducef = app
    try:
        run_sequential(mapf, reducef, args[1:], "mr-out-0")
    except OSError as exc:
        print(f"cannot open {exc.filename}", file=sys.stderr)
        return 1
    return 0


def coordinator_main(argv: Sequence[str] | None = None) -> int:
    """mrcoordinator inputfiles... -- serve tasks until the whole job is done."""
    args = list(sys.argv[1:] if argv is None else argv)
    if not args:
        print("Usage: mrcoordinator inputfiles...", file=sys.stderr)
        return 1
    coordinator = make_coordinator(args, N_REDUCE)
    try:
        while not coordinator.done():
            time.sleep(1)
        time.sleep(1)
    finally:
        coordinator.stop_server()
    return 0


def worker_main(argv: Sequence[str] | None = None) -> int:
    """mrworker APP -- run tasks for the coordinator until told to stop."""
    args = list(sys.argv[1:] if argv is None else argv)
    if len(args) != 1:
        print("Usage: mrworker xxx.so", file=sys.stderr)
        return 1
    app = _load(args[0])
    if app is None:
        return 1
    mapf, reducef = app
    worker(mapf, reducef)
    return 0