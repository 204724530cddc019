"""Background execution of long running cluster operations."""

import logging
import os
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum

from ..exceptions import TaskError, UnknownTask
from ..utils.event_logger import EventLogger

logger = logging.getLogger(__name__)


class TaskState(str, Enum):
    RUNNING = "running"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass
class Task:
    id: str
    kind: str
    target: str | None
    user: str
    log: EventLogger
    state: TaskState = TaskState.RUNNING
    started: float = field(default_factory=time.time)
    finished: float | None = None
    error: str | None = None
    future: Future | None = None

    def status(self) -> dict:
        return {
            "id": self.id,
            "type": self.kind,
            "target": self.target,
            "user": self.user,
            "status": self.state.value,
            "started": self.started,
            "finished": self.finished,
            "exitstatus": None if self.state is TaskState.RUNNING else (self.error or "OK"),
        }


class TaskManager:
    """Run workers in the background and keep their status and log.

    A worker is called with a single ``log`` callable that appends to the
    task log. Exceptions end the task in the ``failed`` state; they are never
    propagated to the code that scheduled the task.
    """

    def __init__(self, task_dir: str, nodename: str, max_workers: int = 4) -> None:
        self.task_dir = task_dir
        self.nodename = nodename
        self._tasks: dict[str, Task] = {}
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="task")

    def _new_id(self, kind: str, target: str | None, user: str) -> str:
        return ":".join(
            [
                "UPID",
                self.nodename,
                f"{os.getpid():08X}",
                f"{int(time.time()):08X}",
                kind,
                target or "",
                user,
                uuid.uuid4().hex[:8],
            ]
        )

    def submit(self, kind: str, worker, *, target: str | None = None, user: str = "root@pam") -> str:
        """Schedule ``worker`` and return the task id immediately."""
        task_id = self._new_id(kind, target, user)
        try:
            log = EventLogger(os.path.join(self.task_dir, task_id.replace(":", "_") + ".log"))
        except OSError as exc:
            raise TaskError(f"unable to create task log: {exc}")
        task = Task(id=task_id, kind=kind, target=target, user=user, log=log)
        with self._lock:
            self._tasks[task_id] = task
        try:
            task.future = self._executor.submit(self._run, task, worker)
        except RuntimeError as exc:
            self._finish(task, str(exc))
            raise TaskError(f"unable to start task: {exc}")
        logger.info("started task %s", task_id)
        return task_id

    def _run(self, task: Task, worker) -> None:
        try:
            worker(task.log.log)
        except Exception as exc:
            message = getattr(exc, "message", None) or str(exc) or type(exc).__name__
            task.log.log(f"TASK ERROR: {message}")
            logger.error("task %s failed: %s", task.id, message)
            self._finish(task, message)
        else:
            task.log.log("TASK OK")
            self._finish(task, None)

    def _finish(self, task: Task, error: str | None) -> None:
        task.error = error
        task.finished = time.time()
        task.state = TaskState.FAILED if error else TaskState.SUCCEEDED
        task.log.close()

    def get(self, task_id: str) -> Task:
        with self._lock:
            task = self._tasks.get(task_id)
        if task is None:
            raise UnknownTask(f"no such task '{task_id}'")
        return task

    def list_tasks(self) -> list[dict]:
        with self._lock:
            tasks = list(self._tasks.values())
        return [t.status() for t in sorted(tasks, key=lambda t: t.started)]

    def read_log(self, task_id: str, offset: int = 0, limit: int | None = None) -> list[dict]:
        return self.get(task_id).log.get_events(offset=offset, limit=limit)

    def wait(self, task_id: str, timeout: float | None = None) -> Task:
        """Block until the task finished (used by the CLI and tests)."""
        task = self.get(task_id)
        if task.future is not None:
            task.future.result(timeout=timeout)
        return task

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)
