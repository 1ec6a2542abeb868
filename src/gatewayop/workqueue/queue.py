import logging

import anyio
from anyio import TASK_STATUS_IGNORED
from anyio.abc import TaskStatus

from ..tasks import Task
from .limiters import default_rate_limiter


log = logging.getLogger(__name__)


class Queue:
    """Insertion ordered set of items."""

    def __init__(self):
        self._items = {}

    def push(self, item):
        self._items[item] = None

    def __contains__(self, item):
        return item in self._items

    def pop(self):
        k = next(iter(self._items))
        del self._items[k]
        return k

    def __len__(self):
        return len(self._items)


class Workqueue(Task):
    """Work queue with the guarantees a controller relies on:

    - an item is queued at most once, no matter how often it is added
    - an item is never handed out again while it is being processed;
      if it is added in the meantime it is marked dirty and queued
      again once processing is done
    - items can be added after a delay or rate limited
    """

    def __init__(self, rate_limiter=None):
        super().__init__()
        if rate_limiter is None:
            rate_limiter = default_rate_limiter()
        self._rate_limiter = rate_limiter
        self._buffer = []
        self._queue = Queue()
        self._delayed = {}
        self._processing = {}
        self._dirty = {}
        self._condition = anyio.Condition()

    def __len__(self):
        return len(self._queue)

    @property
    def processing(self):
        return set(self._processing)

    def __repr__(self):
        length = len(self)
        delayed = len(self._delayed)
        dirty = len(self._dirty)
        processing = len(self._processing)
        out = f'queued: {length}, delayed: {delayed}, dirty: {dirty}, processing: {processing}'
        if not self.is_running:
            out = f'{out}, buffered: {len(self._buffer)}'
        return f'<Workqueue {out}>'

    async def _add(self, item):
        async with self._condition:
            if item in self._dirty:
                # Already queued, or queued again once processing is done.
                return
            self._dirty[item] = None
            if item not in self._processing:
                self._queue.push(item)
                self._condition.notify()

    async def add(self, item):
        """Add marks item as needing processing."""
        if self.is_running:
            await self._add(item)
        else:
            # If the queue has not yet been started we buffer items
            # and add them during startup.
            self._buffer.append(item)

    async def get(self):
        """Get blocks until it can return an item to be processed."""
        async with self._condition:
            while len(self._queue) == 0:
                await self._condition.wait()
            item = self._queue.pop()
            self._processing[item] = None
            del self._dirty[item]
            return item

    async def done(self, item):
        """Done marks item as done processing, and if it has been marked as dirty
        again while it was being processed, it will be re-added to the queue for
        re-processing.
        """
        async with self._condition:
            del self._processing[item]
            if item in self._dirty:
                self._queue.push(item)
                self._condition.notify()

    async def _add_after(self, item, delay):
        self._delayed[item] = delay
        try:
            await anyio.sleep(delay)
            await self.add(item)
        finally:
            self._delayed.pop(item, None)

    async def add_after(self, item, delay):
        """Add the item after the given delay in seconds."""
        if delay <= 0:
            await self.add(item)
        else:
            self._task_group.start_soon(self._add_after, item, delay)

    async def add_rate_limited(self, item):
        """Add the item after the rate limiter says it's ok."""
        await self.add_after(item, self._rate_limiter.delay(item))

    async def forget(self, item):
        """Stop tracking the item in the rate limiter, e.g. after it was
        processed successfully.
        """
        self._rate_limiter.forget(item)

    async def num_requeues(self, item):
        return self._rate_limiter.count(item)

    async def __call__(self, task_status: TaskStatus[None] = TASK_STATUS_IGNORED):
        async with anyio.create_task_group() as tg:
            self._task_group = tg

            self._running.set()
            # Add any buffered items.
            while self._buffer:
                item = self._buffer.pop(0)
                await self._add(item)

            task_status.started()
            await self._stop.wait()
            tg.cancel_scope.cancel()
