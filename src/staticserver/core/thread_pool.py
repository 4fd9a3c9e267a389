"""
=============================================================================
CONNECTION WORKER POOL
=============================================================================

Worker threads that each own one client connection at a time.

    accept loop ──submit()──▶ ┌──────────────────────┐
                              │ backlog (maxsize N)  │
                              └──────────┬───────────┘
                       ┌─────────────────┼─────────────────┐
                       ▼                 ▼                 ▼
                  ┌─────────┐       ┌─────────┐       ┌─────────┐
                  │Worker-0 │       │Worker-1 │  ...  │Worker-M │
                  └─────────┘       └─────────┘       └─────────┘

A task is "serve this connection until it closes": read a request, run the
pipeline, stream the response, repeat while keep-alive holds. That is all
blocking I/O and it only ever blocks the worker holding the connection.

    min_workers    started eagerly, never retired
    max_workers    a worker is added when every worker is busy and a
                   connection is waiting
    idle_timeout   workers above min_workers exit after this long
                   without work
    queue_size     backlog bound; submit(block=False) on a full backlog
                   returns False and the server answers 503

A connection that sat in the backlog longer than its task timeout is not
served: the task's on_expired callback runs instead, so the server can
answer 503 and close the socket rather than leak it.

Shutdown waits for the backlog to drain, then sends one poison pill (None)
per worker.

=============================================================================
"""

import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """
    One queued connection.

    Attributes:
        func:         Serves the connection.
        args/kwargs:  Its arguments.
        timeout:      Longest acceptable wait in the backlog.
        on_expired:   Called with the same arguments instead of ``func``
                      when the wait was longer.
        submitted_at: Enqueue time.
    """

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    timeout: Optional[float] = None
    on_expired: Optional[Callable[..., Any]] = None
    submitted_at: float = field(default_factory=time.time)

    @property
    def waited(self) -> float:
        return time.time() - self.submitted_at

    @property
    def expired(self) -> bool:
        return bool(self.timeout) and self.waited > self.timeout


class Worker(threading.Thread):
    """
    Daemon thread running tasks until a poison pill arrives, or until it
    has been idle for ``idle_timeout`` and ``may_retire`` agrees.
    """

    def __init__(
        self,
        task_queue: queue.Queue,
        worker_id: int,
        idle_timeout: float = 60.0,
        may_retire: Optional[Callable[["Worker"], bool]] = None,
    ):
        super().__init__(name=f"Worker-{worker_id}", daemon=True)
        self.task_queue = task_queue
        self.worker_id = worker_id
        self.idle_timeout = idle_timeout
        self.may_retire = may_retire

        self.state = WorkerState.IDLE
        self.connections_served = 0
        self.connections_failed = 0

    def run(self):
        logger.debug(f"{self.name} started")

        while True:
            try:
                task = self.task_queue.get(timeout=self.idle_timeout)
            except queue.Empty:
                if self.may_retire is not None and self.may_retire(self):
                    logger.debug(f"{self.name} retiring after {self.idle_timeout}s idle")
                    break
                continue

            try:
                if task is None:
                    break
                self._run_task(task)
            finally:
                self.task_queue.task_done()

        self.state = WorkerState.STOPPED
        logger.debug(f"{self.name} stopped")

    def _run_task(self, task: Task):
        self.state = WorkerState.BUSY
        try:
            if task.expired:
                logger.warning(
                    f"{self.name}: connection waited {task.waited:.2f}s in the backlog "
                    f"(limit {task.timeout}s), dropping it"
                )
                self.connections_failed += 1
                if task.on_expired is not None:
                    task.on_expired(*task.args, **task.kwargs)
                return

            started = time.time()
            task.func(*task.args, **task.kwargs)
            self.connections_served += 1
            logger.debug(f"{self.name} released connection after {time.time() - started:.3f}s")

        except Exception:
            # One failing connection must not take the worker down with it.
            logger.exception(f"{self.name}: connection task failed")
            self.connections_failed += 1

        finally:
            self.state = WorkerState.IDLE


class ThreadPool:
    """
    Bounded, self-scaling pool of Worker threads.

        pool = ThreadPool(min_workers=4, max_workers=16, queue_size=100)
        pool.start()
        pool.submit(serve, args=(conn,), timeout=30, on_expired=reject, block=False)
        pool.shutdown(wait=True, timeout=10)
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 16,
        queue_size: int = 100,
        idle_timeout: float = 60.0,
    ):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._backlog: queue.Queue[Optional[Task]] = queue.Queue(maxsize=queue_size)
        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._closing = False
        self._next_id = 0

    def start(self):
        if self._started:
            return

        logger.info(f"Starting {self.min_workers} workers (up to {self.max_workers})")
        self._closing = False
        with self._lock:
            for _ in range(self.min_workers):
                self._spawn()
        self._started = True

    def _spawn(self) -> Worker:
        """Start one more worker. Caller holds ``_lock``."""
        worker = Worker(
            task_queue=self._backlog,
            worker_id=self._next_id,
            idle_timeout=self.idle_timeout,
            may_retire=self._may_retire,
        )
        self._next_id += 1
        self._workers.append(worker)
        worker.start()
        return worker

    def _may_retire(self, worker: Worker) -> bool:
        """Called by an idle worker; removes it if the pool is above minimum."""
        with self._lock:
            if self._closing or len(self._workers) <= self.min_workers:
                return False
            self._workers.remove(worker)
            return True

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        timeout: Optional[float] = None,
        on_expired: Optional[Callable[..., Any]] = None,
        block: bool = True,
        queue_timeout: Optional[float] = None,
    ) -> bool:
        """
        Queue a connection.

        Returns:
            False if the backlog is full (only possible with block=False or
            a queue_timeout), True otherwise.

        Raises:
            RuntimeError: If the pool is not running.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._closing:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(
            func=func,
            args=args,
            kwargs=kwargs or {},
            timeout=timeout,
            on_expired=on_expired,
        )
        try:
            self._backlog.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            return False

        self._grow_if_saturated()
        return True

    def _grow_if_saturated(self):
        with self._lock:
            if (
                self._backlog.qsize() > 0
                and len(self._workers) < self.max_workers
                and all(w.state is WorkerState.BUSY for w in self._workers)
            ):
                logger.debug(f"All {len(self._workers)} workers busy, adding one")
                self._spawn()

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop the pool.

        Args:
            wait:    Let queued connections be served first.
            timeout: Stop waiting after this many seconds.
        """
        if not self._started:
            return

        logger.info("Shutting down thread pool...")
        with self._lock:
            self._closing = True
            workers = list(self._workers)

        if wait:
            deadline = time.time() + timeout if timeout else None
            while self._backlog.unfinished_tasks:
                if deadline is not None and time.time() > deadline:
                    logger.warning("Shutdown timeout, abandoning queued connections")
                    break
                time.sleep(0.05)

        for _ in workers:
            try:
                self._backlog.put(None, block=False)
            except queue.Full:
                break
        for worker in workers:
            worker.join(timeout=2.0)

        logger.info(f"Thread pool stopped: {self.stats}")
        with self._lock:
            self._workers.clear()
        self._started = False

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def worker_count(self) -> int:
        return len(self._workers)

    @property
    def busy_workers(self) -> int:
        return sum(1 for w in self._workers if w.state is WorkerState.BUSY)

    @property
    def queue_size(self) -> int:
        """Connections currently waiting."""
        return self._backlog.qsize()

    @property
    def stats(self) -> dict:
        return {
            "workers": len(self._workers),
            "busy": self.busy_workers,
            "queued": self._backlog.qsize(),
            "served": sum(w.connections_served for w in self._workers),
            "failed": sum(w.connections_failed for w in self._workers),
        }
