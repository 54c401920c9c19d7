"""
=============================================================================
THREAD POOL
=============================================================================

A fixed-floor, bounded-ceiling pool of worker threads fed from a queue.
Each accepted connection becomes one task; a worker owns that connection
until it closes.

=============================================================================
WHY A POOL?
=============================================================================

Thread-per-connection without a bound lets a burst of clients spawn
thousands of threads. The pool caps concurrency at max_workers and queues
the rest (up to queue_size; beyond that submit() returns False and the
server answers 503).

    accept loop ──submit──► ┌──────────── queue ────────────┐
                            │ task │ task │ task │    ...   │
                            └──┬──────┬──────┬──────────────┘
                               ▼      ▼      ▼
                           Worker-0 Worker-1 Worker-2 ... (≤ max_workers)

=============================================================================
DRAINING
=============================================================================

The pool counts IN-FLIGHT tasks: submitted and not yet finished, whether
still queued or running. drain(timeout) blocks until that count reaches
zero or the deadline passes, which is what graceful shutdown waits on:

    submit()  → in_flight += 1
    task ends → in_flight -= 1, notify drain()

=============================================================================
"""

import threading
import queue
import time
import logging
from typing import Callable, Optional, Any
from dataclasses import dataclass, field
from enum import Enum


logger = logging.getLogger(__name__)


class WorkerState(Enum):
    IDLE = "idle"
    BUSY = "busy"
    STOPPED = "stopped"


@dataclass
class Task:
    """
    A deferred function call: "call func(*args, **kwargs) later".
    """

    func: Callable[..., Any]
    args: tuple = ()
    kwargs: dict = field(default_factory=dict)
    submitted_at: float = field(default_factory=time.monotonic)


class Worker(threading.Thread):
    """
    One thread of the pool. Serves one task (one connection) at a time.

        get task ──► None? stop
            │
            ▼
        run it ──► raised? log it
            │
            ▼
        report done (queue + in-flight counter)

    The get() wakes every idle_timeout to notice stop() without a pill.
    """

    def __init__(
        self,
        tasks: queue.Queue,
        index: int,
        on_done: Callable[[], None],
        idle_timeout: float = 1.0
    ):
        # daemon: a connection stuck past shutdown must not pin the process
        super().__init__(name=f"mdhttp-worker-{index}", daemon=True)
        self.index = index
        self._tasks = tasks
        self._on_done = on_done
        self._idle_timeout = idle_timeout
        self._stop_requested = threading.Event()

        self.state = WorkerState.IDLE

    def run(self):
        logger.debug("worker started", extra={"worker": self.index})
        try:
            while not self._stop_requested.is_set():
                try:
                    task = self._tasks.get(timeout=self._idle_timeout)
                except queue.Empty:
                    continue
                if task is None:
                    self._tasks.task_done()
                    return
                self._serve(task)
        finally:
            self.state = WorkerState.STOPPED
            logger.debug("worker stopped", extra={"worker": self.index})

    def _serve(self, task: Task) -> None:
        self.state = WorkerState.BUSY
        started = time.monotonic()
        try:
            task.func(*task.args, **task.kwargs)
        except Exception:
            # Logged; the worker moves on to the next task
            logger.exception("task failed", extra={
                "worker": self.index,
                "queued_for": round(started - task.submitted_at, 3),
            })
        finally:
            self.state = WorkerState.IDLE
            self._tasks.task_done()
            self._on_done()

    def stop(self) -> None:
        """Ask the worker to exit after its current task."""
        self._stop_requested.set()

class ThreadPool:
    """
    Thread pool for connection handling.

        pool = ThreadPool(min_workers=4, max_workers=32)
        pool.start()

        if not pool.submit(handle_connection, args=(conn,)):
            ...  # queue full, reject

        pool.drain(timeout=10.0)   # wait for in-flight tasks
        pool.shutdown()            # stop the workers
    """

    def __init__(
        self,
        min_workers: int = 4,
        max_workers: int = 32,
        queue_size: int = 100,
        idle_timeout: float = 1.0
    ):
        self.min_workers = min_workers
        self.max_workers = max_workers
        self.max_queue_size = queue_size
        self.idle_timeout = idle_timeout

        self._task_queue: queue.Queue[Optional[Task]] = queue.Queue(maxsize=queue_size)

        self._workers: list[Worker] = []
        self._lock = threading.Lock()
        self._started = False
        self._shutdown = False
        self._next_worker_id = 0

        self._in_flight = 0
        self._idle = threading.Condition()

    def start(self):
        """Start min_workers threads. No-op if already started."""
        if self._started:
            return

        logger.debug("starting thread pool", extra={"workers": self.min_workers})
        for _ in range(self.min_workers):
            self._add_worker()
        self._started = True

    def _add_worker(self) -> Worker:
        with self._lock:
            if len(self._workers) >= self.max_workers:
                raise RuntimeError("Maximum workers reached")

            worker = Worker(
                tasks=self._task_queue,
                index=self._next_worker_id,
                on_done=self._task_finished,
                idle_timeout=self.idle_timeout,
            )
            self._next_worker_id += 1
            self._workers.append(worker)
            worker.start()
            return worker

    def submit(
        self,
        func: Callable[..., Any],
        args: tuple = (),
        kwargs: Optional[dict] = None,
        block: bool = False,
        queue_timeout: Optional[float] = None
    ) -> bool:
        """
        Queue func(*args, **kwargs) for a worker.

        Returns:
            True if accepted, False if the queue was full.

        Raises:
            RuntimeError: If the pool is not started or is shutting down.
        """
        if not self._started:
            raise RuntimeError("Thread pool not started")
        if self._shutdown:
            raise RuntimeError("Thread pool is shutting down")

        task = Task(func=func, args=args, kwargs=kwargs or {})

        with self._idle:
            self._in_flight += 1
        try:
            self._task_queue.put(task, block=block, timeout=queue_timeout)
        except queue.Full:
            self._task_finished()
            return False

        self._maybe_scale_up()
        return True

    def _task_finished(self) -> None:
        with self._idle:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._idle.notify_all()

    def _maybe_scale_up(self):
        """Add a worker when every worker is busy and tasks are waiting."""
        with self._lock:
            busy_count = sum(1 for w in self._workers if w.state == WorkerState.BUSY)
            if busy_count < len(self._workers) or len(self._workers) >= self.max_workers:
                return
            if self._task_queue.qsize() == 0:
                return
        logger.debug("scaling up thread pool", extra={"workers": len(self._workers) + 1})
        self._add_worker()

    def drain(self, timeout: Optional[float] = None) -> bool:
        """
        Wait until no task is queued or running.

        Returns:
            True if the pool went idle, False if timeout expired first.
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._in_flight == 0, timeout=timeout)

    def shutdown(self, wait: bool = True, timeout: Optional[float] = None):
        """
        Stop accepting tasks and stop the workers.

        Args:
            wait: Drain in-flight tasks first.
            timeout: Bound on the drain wait; None waits forever.
        """
        if not self._started:
            return

        self._shutdown = True

        if wait and not self.drain(timeout):
            logger.warning("thread pool shutdown timeout", extra={"in_flight": self.in_flight})

        for worker in self._workers:
            worker.stop()
        for _ in self._workers:
            try:
                self._task_queue.put(None, block=False)
            except queue.Full:
                pass  # workers also notice the shutdown flag on their own
        for worker in self._workers:
            worker.join(timeout=2.0)

        self._workers.clear()
        self._started = False
        logger.debug("thread pool stopped")

    # =========================================================================
    # MONITORING
    # =========================================================================

    @property
    def in_flight(self) -> int:
        with self._idle:
            return self._in_flight

