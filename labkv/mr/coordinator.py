"""MapReduce coordinator: hands out map and reduce tasks and tracks their state.

Workers ask for a task with ``Coordinator.GetJob`` and report the outcome
with ``Coordinator.ReportJobResult``.  A task that is not reported finished
within ``task_timeout`` seconds is handed out again.
"""

from __future__ import annotations

import os
import socketserver
import threading
from typing import Any, Iterable

from labkv.codec import Decoder, Encoder, register
from labkv.mr.protocol import (
    Job,
    JobFinishArgs,
    JobState,
    JobType,
    TaskReply,
    coordinator_sock,
)

__all__ = ["Coordinator", "make_coordinator"]

for _cls in (JobType, JobState, Job, TaskReply, JobFinishArgs):
    register(_cls)


class _Handler(socketserver.StreamRequestHandler):
    def handle(self) -> None:
        decoder = Decoder(self.rfile)
        try:
            name = decoder.decode(str)
            args = decoder.decode()
        except (EOFError, Exception):
            return
        coordinator: Coordinator = self.server.coordinator  # type: ignore[attr-defined]
        try:
            reply = coordinator._dispatch(name, args)
            error = ""
        except Exception as exc:
            reply = None
            error = str(exc) or type(exc).__name__
        encoder = Encoder(self.wfile)
        encoder.encode(error)
        encoder.encode(reply)


class _UnixServer(socketserver.ThreadingUnixStreamServer):
    daemon_threads = True

    def __init__(self, path: str, coordinator: Coordinator) -> None:
        self.coordinator = coordinator
        super().__init__(path, _Handler)


class Coordinator:
    """Keeps the map and reduce task tables and serves them to workers."""

    def __init__(self, files: Iterable[str], n_reduce: int, task_timeout: float = 10.0) -> None:
        self.files = list(files)
        self.n_reduce = n_reduce
        self.task_timeout = task_timeout
        self._lock = threading.Lock()
        self._jobs: dict[JobType, list[Job]] = {
            JobType.MAP_JOB: [
                Job(JobType.MAP_JOB, JobState.UNFINISHED, i, name)
                for i, name in enumerate(self.files)
            ],
            JobType.REDUCE_JOB: [
                Job(JobType.REDUCE_JOB, JobState.UNFINISHED, i) for i in range(n_reduce)
            ],
        }
        self._map_finished = False
        self._reduce_finished = False
        self._timers: list[threading.Timer] = []
        self._server: _UnixServer | None = None
        self._thread: threading.Thread | None = None
        self._sockname: str | None = None

    def _watch(self, job: Job) -> None:
        """Put ``job`` back in the queue if it is still running after the timeout."""

        def expire() -> None:
            with self._lock:
                if job.job_state == JobState.DOING:
                    job.job_state = JobState.UNFINISHED

        timer = threading.Timer(self.task_timeout, expire)
        timer.daemon = True
        self._timers = [t for t in self._timers if t.is_alive()]
        self._timers.append(timer)
        timer.start()

    @staticmethod
    def _next_unfinished(jobs: list[Job]) -> Job | None:
        return next((job for job in jobs if job.job_state == JobState.UNFINISHED), None)

    def get_job(self) -> TaskReply:
        """Hand out the next task: a map, then a reduce, a wait, or terminate."""
        with self._lock:
            if not self._map_finished:
                job = self._next_unfinished(self._jobs[JobType.MAP_JOB])
                if job is not None:
                    job.job_state = JobState.DOING
                    self._watch(job)
                    return TaskReply(
                        job_type=job.job_type,
                        job_id=job.job_id,
                        map_job_file_name=job.operate_file_name,
                        n_reduce=self.n_reduce,
                    )
            else:
                job = self._next_unfinished(self._jobs[JobType.REDUCE_JOB])
                if job is not None:
                    job.job_state = JobState.DOING
                    self._watch(job)
                    return TaskReply(job_type=job.job_type, job_id=job.job_id)
            if self._reduce_finished:
                return TaskReply(job_type=JobType.TERMINAL_JOB)
            return TaskReply(job_type=JobType.WAIT_JOB)

    def report_job_result(self, args: JobFinishArgs) -> None:
        """Record a worker's result; results for timed-out tasks are ignored."""
        with self._lock:
            if args.job_type in (JobType.TERMINAL_JOB, JobType.WAIT_JOB):
                return
            if args.job_type not in self._jobs:
                raise ValueError(f"unknown job type {args.job_type!r}")
            job = self._jobs[args.job_type][args.job_id]
            if job.job_state != JobState.DOING:
                return
            if args.success:
                job.job_state = JobState.FINISHED
                self._check_all_state(args.job_type)
            else:
                job.job_state = JobState.UNFINISHED

    def _check_all_state(self, job_type: JobType) -> None:
        finished = all(j.job_state == JobState.FINISHED for j in self._jobs[job_type])
        if not finished:
            return
        if job_type == JobType.MAP_JOB:
            print("master all map job are finish.......")
            self._map_finished = True
        else:
            print("master all reduce job are finish.......")
            self._reduce_finished = True

    def done(self) -> bool:
        """True once every reduce task has finished."""
        with self._lock:
            return self._reduce_finished

    def _dispatch(self, name: str, args: Any) -> Any:
        if name == "Coordinator.GetJob":
            return self.get_job()
        if name == "Coordinator.ReportJobResult":
            if not isinstance(args, JobFinishArgs):
                raise TypeError("ReportJobResult expects JobFinishArgs")
            return self.report_job_result(args)
        raise LookupError(f"unknown method {name!r}")

    def start_server(self, sockname: str | None = None) -> str:
        """Listen for workers on a Unix socket; return its path."""
        path = sockname or coordinator_sock()
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        self._server = _UnixServer(path, self)
        self._sockname = path
        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()
        return path

    def stop_server(self) -> None:
        """Stop listening, remove the socket and cancel pending task timers."""
        for timer in self._timers:
            timer.cancel()
        self._timers.clear()
        if self._server is not None:
            self._server.shutdown()
            self._server.server_close()
            self._server = None
        if self._thread is not None:
            self._thread.join()
            self._thread = None
        if self._sockname is not None:
            try:
                os.remove(self._sockname)
            except FileNotFoundError:
                pass
            self._sockname = None


def make_coordinator(files: Iterable[str], n_reduce: int) -> Coordinator:
    """Create a coordinator and start serving on the default socket."""
    coordinator = Coordinator(files, n_reduce)
    coordinator.start_server()
    return coordinator