"""Task messages exchanged between the MapReduce coordinator and workers.

A call is carried over a Unix-domain stream socket using :mod:`labkv.codec`:
the client sends the method name and the argument; the server answers with
an error string (empty on success) followed by the reply value.
"""

from __future__ import annotations

import enum
import os
import socket
from dataclasses import dataclass
from typing import Any

from labkv.codec import Decoder, Encoder

__all__ = [
    "JobType",
    "JobState",
    "KeyValue",
    "Job",
    "TaskReply",
    "JobFinishArgs",
    "coordinator_sock",
    "call",
]


class JobType(enum.IntEnum):
    UNKNOWN_JOB = 0
    MAP_JOB = 1
    REDUCE_JOB = 2
    TERMINAL_JOB = 3
    WAIT_JOB = 4


class JobState(enum.IntEnum):
    UNKNOWN = 0
    UNFINISHED = 1
    DOING = 2
    FINISHED = 3


@dataclass(frozen=True)
class KeyValue:
    key: str
    value: str


@dataclass
class Job:
    job_type: JobType = JobType.UNKNOWN_JOB
    job_state: JobState = JobState.UNKNOWN
    job_id: int = 0
    operate_file_name: str = ""


@dataclass
class TaskReply:
    """A task handed to a worker."""

    job_type: JobType = JobType.UNKNOWN_JOB
    job_id: int = 0
    map_job_file_name: str = ""
    map_job_id: int = 0
    n_reduce: int = 0
    reduce_job_id: int = 0


@dataclass
class JobFinishArgs:
    job_type: JobType = JobType.UNKNOWN_JOB
    success: bool = False
    job_id: int = 0


def coordinator_sock() -> str:
    """Per-user Unix socket path for the coordinator."""
    return "/var/tmp/5840-mr-" + str(os.getuid())


def call(rpcname: str, args: Any, sockname: str | None = None) -> Any:
    """Send one request to the coordinator and return its reply.

    Raises OSError if the coordinator cannot be reached and RuntimeError if
    it reports an error.
    """
    path = sockname or coordinator_sock()
    with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
        sock.connect(path)
        with sock.makefile("rwb") as stream:
            encoder = Encoder(stream)
            encoder.encode(rpcname)
            encoder.encode(args)
            stream.flush()
            decoder = Decoder(stream)
            error = decoder.decode(str)
            reply = decoder.decode()
    if error:
        raise RuntimeError(error)
    return reply