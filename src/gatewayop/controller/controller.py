import logging
import typing

import anyio
from anyio import TASK_STATUS_IGNORED
from anyio.abc import TaskStatus

from lightkube.core import resource as lkr

from ..tasks import Task
from ..workqueue import Workqueue
from ..source import EventSource
from ..resources import get_resource
from ..invocation import invoke
from ..exceptions import ObjectNotFound

from .request import requests_from_event_for_object, requests_from_event_for_owner
from .result import Result


log = logging.getLogger(__name__)


class ReconcilerLoggerAdapter(logging.LoggerAdapter):
    """Prefixes the log message with reconcilers number"""

    def process(self, msg, kwargs):
        reconciler = 'reconciler[%i]' % self.extra['num']
        return '%s: %s' % (reconciler, msg), kwargs


class Controller(Task):
    """Runs a pool of workers that take requests from the queue and pass
    them to the reconcile function.

    Requests are added to the queue by event sources, one for the
    reconciled resource itself and one for each additional watch.
    """
    cache: object
    resource: lkr.Resource
    reconcile: typing.Callable
    name: str = None
    predicates: typing.List[typing.Callable]
    concurrent_reconciles: int = 1
    reconcile_timeout: float = None
    wait_for_cache: bool = True

    def __init__(self, cache, resource, reconcile,
        name=None, watches=None, predicates=None,
        concurrent_reconciles=1, rate_limiter=None,
        reconcile_timeout=None, wait_for_cache=True):
        super().__init__()
        self.cache = cache
        self.resource = get_resource(resource)
        self.reconcile = reconcile
        self.name = name
        self.predicates = list(predicates or [])
        self.concurrent_reconciles = concurrent_reconciles
        self.reconcile_timeout = reconcile_timeout
        self.wait_for_cache = wait_for_cache

        self.queue = Workqueue(rate_limiter=rate_limiter)
        self._event_sources = []

        # The resource we reconcile is always watched.
        self.watch(self.resource, requests_from_event_for_object)

        for watch in watches or []:
            self.watch(
                watch['resource'],
                watch['handler'],
                predicates=watch.get('predicates'),
                **watch.get('kwargs', {}),
            )

    @property
    def api_version(self) -> str:
        return self.resource._api_info.resource.api_version

    @property
    def kind(self) -> str:
        return self.resource._api_info.resource.kind

    def __repr__(self):
        if self.name is not None:
            return f'<{self.__class__.__name__} {self.name} {self.api_version}/{self.kind}>'
        else:
            return f'<{self.__class__.__name__} {self.api_version}/{self.kind}>'

    @property
    def event_sources(self):
        return list(self._event_sources)

    def watch(self, resource, handler, predicates=None, **kwargs):
        """Add an event source that maps events of `resource` to requests
        using `handler`. Controller wide predicates apply to all sources.
        """
        source = EventSource(
            self.queue,
            get_resource(resource),
            handler,
            kwargs,
            predicates=self.predicates + list(predicates or []),
        )
        self._event_sources.append(source)
        return source

    def watch_owner(self, resource, predicates=None):
        """Watch objects of `resource` that are controlled by objects we
        reconcile.
        """
        return self.watch(
            resource,
            requests_from_event_for_owner,
            predicates=predicates,
            owner=self.resource,
        )

    async def _reconcile(self, request):
        if self.reconcile_timeout is None:
            return await invoke(self.reconcile, request)
        with anyio.fail_after(self.reconcile_timeout):
            return await invoke(self.reconcile, request)

    async def _reconciler(self, num):
        log_vars = {'num': num}
        logger = ReconcilerLoggerAdapter(log, log_vars)
        logger.debug('started')
        while True:
            request = await self.queue.get()
            logger.debug('processing %r', request)

            try:
                result = await self._reconcile(request)
                if result is None:
                    result = Result()
                elif not isinstance(result, Result):
                    raise TypeError(f'reconcile returned {result!r}, expected a Result')
            except ObjectNotFound as e:
                logger.debug(e)
                # If the object is gone there's no point to requeue the
                # request. So we give up and forget about it.
                await self.queue.forget(request)
            except Exception as e:
                # Unexpected error, log it and requeue with rate limiting.
                logger.exception('reconciling %r failed: %s', request, e)
                request.retries = await self.queue.num_requeues(request) + 1
                await self.queue.add_rate_limited(request)
            else:
                if result.requeue_after:
                    logger.debug('requeuing with delay %s %r', result.requeue_after, request)
                    await self.queue.forget(request)
                    await self.queue.add_after(request, result.requeue_after)
                elif result.requeue:
                    logger.debug('requeuing with rate limiting %r', request)
                    request.retries = await self.queue.num_requeues(request) + 1
                    await self.queue.add_rate_limited(request)
                else:
                    # Success! Forget about this request.
                    request.retries = 0
                    await self.queue.forget(request)
            finally:
                # In any case, mark this request as done.
                logger.debug('done processing %r', request)
                await self.queue.done(request)

    async def _run_reconcilers(self):
        async with anyio.create_task_group() as tg:
            for num in range(self.concurrent_reconciles):
                tg.start_soon(self._reconciler, num)

    async def __call__(self, task_status: TaskStatus[None] = TASK_STATUS_IGNORED):
        log.debug('starting %s', self)

        try:
            async with anyio.create_task_group() as tg:
                self._task_group = tg

                try:
                    for source in self._event_sources:
                        await tg.start(source)

                    await tg.start(self.queue)

                    log.info('started %s', self)
                    # Inform any awaiters that we are ready.
                    self._running.set()
                    task_status.started()

                    if self.wait_for_cache:
                        await self.cache.wait_for_sync()

                    tg.start_soon(self._run_reconcilers)

                    # Wait until told otherwise.
                    await self._stop.wait()

                except anyio.get_cancelled_exc_class():
                    log.debug('canceled %s', self)
                    raise

                finally:
                    log.debug('stopping %s', self)
                    self.queue.stop()

        finally:
            log.info('stopped %s', self)
