import functools
import logging
import signal

import uvloop

import anyio
from anyio import open_signal_receiver
from anyio import TASK_STATUS_IGNORED
from anyio.abc import CancelScope, TaskStatus

from lightkube import AsyncClient as LightkubeAsyncClient

from .. import exceptions
from ..cache import Cache
from ..cache.cache import ALL_NAMESPACES
from ..client import AsyncClient
from ..config import Settings
from ..resources import get_resource
from .builders import ControllerBuilder


log = logging.getLogger(__name__)


async def signal_handler(scope: CancelScope):
    with open_signal_receiver(signal.SIGINT, signal.SIGTERM) as signals:
        async for signum in signals:
            if signum == signal.SIGINT:
                log.info('interrupted, shutting down')
            else:
                log.info('terminated, shutting down')
            scope.cancel()
            return


class Manager:
    """Wires controllers, informers and the cache together and runs them."""

    def __init__(self, settings=None, api_client=None):
        if settings is None:
            settings = Settings()
        self.settings = settings
        if api_client is None:
            api_client = LightkubeAsyncClient()
        self.api_client = api_client
        self.resources = set()

        self.namespaces = self._watched_namespaces()
        self.cache = Cache(
            self.api_client,
            namespaces=self.namespaces,
        )
        self.client = AsyncClient(self.api_client, self.cache)

        self._builders = {}
        self._controllers = []
        self._task_group = None
        self._stop = anyio.Event()

    def __repr__(self):
        namespaces = self.namespaces or ALL_NAMESPACES
        resources = {'%s/%s' % (resource.apiVersion, resource.kind) for resource in self.resources}
        return f'<Manager namespaces: {namespaces} resources: {resources}>'

    def _watched_namespaces(self):
        if self.settings.all_namespaces:
            return None
        if self.settings.namespaces:
            return set(self.settings.namespaces)
        return {self.api_client.namespace}

    @property
    def controllers(self):
        return list(self._controllers)

    def register_resource(self, resource):
        resource = get_resource(resource)
        self.resources.add(resource)
        return resource

    def controller(self, resource, name=None):
        """Create and return a controller builder."""
        resource = self.register_resource(resource)
        key = name if name is not None else resource
        builder = self._builders.get(key, None)
        if builder is None:
            builder = ControllerBuilder(
                self,
                resource,
                name=name,
            )
            self._builders[key] = builder
        return builder

    def run(self):
        anyio.run(
            functools.partial(self, setup_signal_handler=True),
            backend_options={'loop_factory': uvloop.new_event_loop},
        )

    def stop(self):
        log.debug('stop %r', self)
        self._stop.set()
        if self._task_group:
            self._task_group.cancel_scope.cancel()

    def _build_controllers(self):
        for builder in self._builders.values():
            log.debug('creating controller from builder: %r', builder)
            controller = builder.build(
                self.cache,
                rate_limiter=self.settings.rate_limiter(),
                reconcile_timeout=self.settings.reconcile_timeout,
            )
            # Connect the controllers sources to the informers.
            for source in controller.event_sources:
                for informer in self.cache.watch(source.resource):
                    if not informer.has_stream(key=source):
                        informer.add_stream(source.stream, key=source)
            self._controllers.append(controller)

    async def __call__(self, setup_signal_handler=False,
            task_status: TaskStatus[None] = TASK_STATUS_IGNORED):
        log.debug('startup %s', self)
        self._build_controllers()

        try:
            async with anyio.create_task_group() as tg:
                self._task_group = tg

                if setup_signal_handler:
                    tg.start_soon(signal_handler, tg.cancel_scope)

                for controller in self._controllers:
                    await tg.start(controller)

                await tg.start(self.cache)
                log.info('started %s', self)
                task_status.started()

                # Wait until told otherwise.
                await self._stop.wait()
                tg.cancel_scope.cancel()

        except* exceptions.Error as eg:
            if self.settings.debug:
                raise
            error_messages = []
            for error in exceptions.iterate_errors(eg):
                error_messages.append(str(error))
            raise exceptions.FatalError(' '.join(error_messages)) from eg

        log.debug('exiting %s', self)
