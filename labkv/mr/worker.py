"""MapReduce worker: fetches tasks from the coordinator and runs them."""

from __future__ import annotations

import glob
import json
import os
import tempfile
import time
import zlib  # noqa: F401  (kept out of the hash; FNV-1a below)
from itertools import groupby
from typing import Callable

from labkv.codec import register
from labkv.mr.protocol import JobFinishArgs, JobState, JobType, KeyValue, TaskReply, call

__all__ = ["ihash", "process_job", "worker"]

for _cls in (JobType, JobState, TaskReply, JobFinishArgs):
    register(_cls)

MapFunc = Callable[[str, str], list[KeyValue]]
ReduceFunc = Callable[[str, list[str]], str]

_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193


def ihash(key: str) -> int:
    """Non-negative 32-bit FNV-1a hash; use ``ihash(key) % n_reduce`` to pick a bucket."""
    h = _FNV_OFFSET
    for byte in key.encode("utf-8"):
        h ^= byte
        h = (h * _FNV_PRIME) & 0xFFFFFFFF
    return h & 0x7FFFFFFF


def _intermediate_name(map_id: object, reduce_id: object) -> str:
    return f"mr-{map_id}-{reduce_id}"


def _output_name(reduce_id: int) -> str:
    return f"mr-out-{reduce_id}"


def _write_atomically(final_name: str, lines: list[str]) -> None:
    with tempfile.NamedTemporaryFile(
        "w", dir=".", prefix=final_name, delete=False, encoding="utf-8"
    ) as tmp:
        tmp.writelines(lines)
    os.replace(tmp.name, final_name)


def _run_map(reply: TaskReply, mapf: MapFunc) -> bool:
    try:
        with open(reply.map_job_file_name, encoding="utf-8", errors="replace") as handle:
            content = handle.read()
    except OSError:
        print(f"cannot open {reply.map_job_file_name}", end="")
        return False
    buckets: dict[int, list[KeyValue]] = {}
    for pair in mapf(reply.map_job_file_name, content):
        buckets.setdefault(ihash(pair.key) % reply.n_reduce, []).append(pair)
    for index, pairs in buckets.items():
        lines = [
            json.dumps({"Key": p.key, "Value": p.value}, separators=(",", ":")) + "\n"
            for p in pairs
        ]
        try:
            _write_atomically(_intermediate_name(reply.job_id, index), lines)
        except OSError as exc:
            print("map task write intermediate file fail, error:", exc)
            return False
    return True


def _read_pairs(path: str) -> list[KeyValue]:
    pairs: list[KeyValue] = []
    try:
        with open(path, encoding="utf-8", errors="replace") as handle:
            for line in handle:
                try:
                    record = json.loads(line)
                    pairs.append(KeyValue(record["Key"], record["Value"]))
                except (ValueError, KeyError, TypeError):
                    break
    except OSError:
        raise
    return pairs


def _run_reduce(reply: TaskReply, reducef: ReduceFunc) -> bool:
    files = glob.glob(_intermediate_name("*", reply.job_id))
    if not files:
        return True
    pairs: list[KeyValue] = []
    for path in files:
        try:
            pairs.extend(_read_pairs(path))
        except OSError:
            print(f"reduce task,cannot open {path}", end="")
            return False
    pairs.sort(key=lambda p: p.key)
    lines = [
        f"{key} {reducef(key, [p.value for p in group])}\n"
        for key, group in groupby(pairs, key=lambda p: p.key)
    ]
    try:
        _write_atomically(_output_name(reply.job_id), lines)
    except OSError as exc:
        print("reduce task rename temp file fail, error:", exc)
        return False
    return True


def process_job(reply: TaskReply, mapf: MapFunc, reducef: ReduceFunc) -> bool:
    """Run one task in the current directory; return whether it succeeded."""
    if reply.job_type == JobType.MAP_JOB:
        return _run_map(reply, mapf)
    if reply.job_type == JobType.REDUCE_JOB:
        return _run_reduce(reply, reducef)
    if reply.job_type in (JobType.TERMINAL_JOB, JobType.WAIT_JOB):
        return True
    print(f"error...worker get unknow job type, type is: {int(reply.job_type)}", end="")
    return True


def worker(
    mapf: MapFunc,
    reducef: ReduceFunc,
    sockname: str | None = None,
    pause: float = 3.0,
) -> None:
    """Ask for tasks until the coordinator says to stop or cannot be reached."""
    while True:
        try:
            reply = call("Coordinator.GetJob", 99, sockname)
        except OSError:
            return
        except RuntimeError:
            print("call failed!")
            reply = TaskReply()
        success = process_job(reply, mapf, reducef)
        result = JobFinishArgs(job_type=reply.job_type, success=success, job_id=reply.job_id)
        try:
            call("Coordinator.ReportJobResult", result, sockname)
        except OSError:
            return
        except RuntimeError:
            print("call failed!")
        if reply.job_type == JobType.TERMINAL_JOB:
            return
        time.sleep(pause)