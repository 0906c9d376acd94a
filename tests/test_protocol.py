import io
import os
import shutil
import socket
import tempfile
import threading

import pytest

from labkv.codec import Decoder, Encoder
from labkv.mr.protocol import (
    Job,
    JobFinishArgs,
    JobState,
    JobType,
    KeyValue,
    TaskReply,
    call,
    coordinator_sock,
)


def test_coordinator_sock_is_per_user():
    path = coordinator_sock()
    assert path.startswith("/var/tmp/5840-mr-")
    assert path.endswith(str(os.getuid()))


def test_messages_round_trip_through_codec():
    values = [
        TaskReply(job_type=JobType.MAP_JOB, job_id=2, map_job_file_name="in.txt", n_reduce=10),
        JobFinishArgs(job_type=JobType.REDUCE_JOB, success=True, job_id=4),
        Job(JobType.MAP_JOB, JobState.DOING, 1, "a.txt"),
        KeyValue("k", "v"),
    ]
    buf = io.BytesIO()
    enc = Encoder(buf)
    for v in values:
        enc.encode(v)
    dec = Decoder(io.BytesIO(buf.getvalue()))
    decoded = [dec.decode() for _ in values]
    assert decoded == values
    assert decoded[0].job_type is JobType.MAP_JOB


def test_enums_round_trip_through_codec_in_protocol_order():
    members = list(JobType) + list(JobState)
    buf = io.BytesIO()
    enc = Encoder(buf)
    for member in members:
        enc.encode(member)
    dec = Decoder(io.BytesIO(buf.getvalue()))
    decoded = [dec.decode() for _ in members]
    assert decoded == members
    assert [j.value for j in decoded[: len(JobType)]] == list(range(5))
    assert JobState.UNFINISHED < JobState.DOING < JobState.FINISHED


@pytest.fixture
def server_path():
    directory = tempfile.mkdtemp()
    path = os.path.join(directory, "s")
    listener = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    listener.bind(path)
    listener.listen()

    def serve():
        while True:
            try:
                conn, _ = listener.accept()
            except OSError:
                return
            with conn, conn.makefile("rwb") as stream:
                dec = Decoder(stream)
                name = dec.decode(str)
                args = dec.decode()
                enc = Encoder(stream)
                if name == "Coordinator.GetJob":
                    enc.encode("")
                    enc.encode(TaskReply(job_type=JobType.WAIT_JOB, job_id=args.job_id))
                else:
                    enc.encode("unknown method " + name)
                    enc.encode(None)
                stream.flush()

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    yield path
    listener.close()
    shutil.rmtree(directory, ignore_errors=True)


def test_call_returns_reply(server_path):
    reply = call("Coordinator.GetJob", JobFinishArgs(job_id=7), server_path)
    assert reply == TaskReply(job_type=JobType.WAIT_JOB, job_id=7)


def test_call_raises_on_server_error(server_path):
    with pytest.raises(RuntimeError, match="Coordinator.Nope"):
        call("Coordinator.Nope", JobFinishArgs(), server_path)


def test_call_raises_when_unreachable():
    directory = tempfile.mkdtemp()
    try:
        with pytest.raises(OSError):
            call("Coordinator.GetJob", JobFinishArgs(), os.path.join(directory, "missing"))
    finally:
        shutil.rmtree(directory, ignore_errors=True)