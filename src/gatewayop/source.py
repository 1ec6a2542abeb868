import dataclasses
import logging
import typing

import anyio

from lightkube.core import resource as lkr

from .tasks import Task
from .invocation import invoke, all_true


__all__ = [
    'EventSource',
]

log = logging.getLogger(__name__)


@dataclasses.dataclass(eq=False)
class EventSource(Task):
    """Turns events of one watched resource into queued requests.

    Events are received on a memory stream, filtered by the predicates and
    mapped to requests by the handler.
    """
    queue: object
    resource: lkr.Resource
    handler: typing.Callable
    kwargs: dict = None
    predicates: typing.List[typing.Callable] = None

    def __post_init__(self):
        Task.__init__(self)
        if self.kwargs is None:
            self.kwargs = {}
        if self.predicates is None:
            self.predicates = []
        self.tx, self.rx = anyio.create_memory_object_stream(100)

    def __repr__(self):
        api_version = self.resource._api_info.resource.api_version
        kind = self.resource._api_info.resource.kind
        return f'<{self.__class__.__name__} {api_version}/{kind}>'

    @property
    def stream(self):
        """A new send stream for an informer to deliver events on."""
        return self.tx.clone()

    async def handle(self, event):
        """Filter one event and queue the requests it maps to."""
        if not await all_true(self.predicates, event):
            log.debug('predicate prevented event: %r', event)
            return
        try:
            requests = await invoke(self.handler, event, **self.kwargs)
        except Exception:
            log.error('%r: failed to map %r to requests', self, event)
            raise
        for request in requests or []:
            await self.queue.add(request)

    async def event_stream_handler(self):
        async with self.rx:
            async for event in self.rx:
                log.debug('received event: %r', event)
                await self.handle(event)

    async def __call__(self, task_status=anyio.TASK_STATUS_IGNORED):
        log.debug('starting %s', self)

        try:
            async with anyio.create_task_group() as tg:
                self._task_group = tg

                try:
                    tg.start_soon(self.event_stream_handler)

                    log.debug('started %s', self)
                    # Inform any awaiters that we are ready.
                    self._running.set()
                    task_status.started()

                    # Wait until told otherwise.
                    await self._stop.wait()

                except anyio.get_cancelled_exc_class():
                    log.debug('canceled %s', self)
                    raise

                finally:
                    log.debug('stopping %s', self)
                    self.tx.close()

        finally:
            log.debug('stopped %s', self)
