import anyio
from anyio import TASK_STATUS_IGNORED
from anyio.abc import TaskStatus


class Task:
    """A task that can be awaited independent of a TaskGroup.

    Awaiting a task blocks until it signals that it is running.
    """

    def __init__(self):
        self._running = anyio.Event()
        self._stop = anyio.Event()
        self._task_group = None

    @property
    def is_running(self):
        return self._running.is_set()

    def __await__(self):
        return self._running.wait().__await__()

    async def __call__(self, task_status: TaskStatus[None] = TASK_STATUS_IGNORED):
        raise NotImplementedError()

    def stop(self):
        if self._task_group:
            self._task_group.cancel_scope.cancel()
        self._stop.set()
