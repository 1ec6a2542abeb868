import dataclasses
import logging
import random

import anyio
import httpx

from lightkube.core import resource as lkr

from ..exceptions import HttpError
from ..tasks import Task
from ..resources import is_same_version
from . import CreateEvent, UpdateEvent, DeleteEvent


log = logging.getLogger(__name__)


@dataclasses.dataclass(eq=False)
class Informer(Task):
    """Keeps a store in sync with the api server by listing and watching
    one resource in one namespace. Changes are sent as events to all
    registered streams.
    """
    api_client: object
    store: object
    resource: lkr.Resource
    namespace: str = None
    resync_after: int = 10 * 60 * 60 + 60 * random.randint(
        0, 9
    )  # 10 hours + 0..9 Minutes
    timeout: int = 60
    retry_delay: float = 5
    resource_version: str = None

    @property
    def api_version(self) -> str:
        return self.resource._api_info.resource.api_version

    @property
    def kind(self) -> str:
        return self.resource._api_info.resource.kind

    def __post_init__(self):
        super().__init__()
        self._streams = {}

    def __hash__(self):
        return hash((self.api_version, self.kind, self.namespace))

    def __repr__(self):
        _out = [f'{self.api_version}/{self.kind}']
        if self.namespace is not None:
            _out.append(self.namespace)
        if self.resource_version:
            _out.append(self.resource_version)
        _s = ' '.join(_out)
        return f'<Informer {_s}>'

    @property
    def _store_namespace(self):
        if self.namespace in (None, '*'):
            return None
        return self.namespace

    def add_stream(self, stream, key=None):
        if key is None:
            key = stream
        self._streams[key] = stream

    def has_stream(self, stream=None, key=None):
        if key is None:
            key = stream
        return key in self._streams

    def remove_stream(self, stream=None, key=None):
        if key is None:
            key = stream
        self._streams.pop(key, None)

    def purge_streams(self):
        for stream in self._streams.values():
            stream.close()
        self._streams.clear()

    async def _dispatch(self, event):
        # Events are sent one after the other so every stream sees them
        # in the order they happened.
        for key in list(self._streams.keys()):
            stream = self._streams[key]
            try:
                await stream.send(event)
            except (anyio.ClosedResourceError, anyio.BrokenResourceError):
                self.remove_stream(key=key)

    async def _add_or_update(self, obj):
        try:
            old = self.store.get(obj)
        except KeyError:
            self.store.add(obj)
            await self._dispatch(CreateEvent(obj))
        else:
            if not is_same_version(obj, old):
                self.store.update(obj)
                await self._dispatch(UpdateEvent(old, obj))

    async def _delete(self, obj):
        self.store.delete(obj)
        await self._dispatch(DeleteEvent(obj))

    def _http_error(self, e, action):
        return HttpError(
            e.request.method,
            e.request.url,
            e.response.status_code,
            message=f'HTTP error while {action} {self.api_version}/{self.kind}',
        )

    async def _list(self):
        log.debug('start listing %s/%s', self.api_version, self.kind)
        seen = set()
        try:
            with anyio.fail_after(self.timeout):
                resource_list = self.api_client.list(
                    self.resource, namespace=self.namespace
                )
                async for obj in resource_list:
                    seen.add(self.store.key_func(obj))
                    await self._add_or_update(obj)
                self.resource_version = resource_list.resourceVersion
        except httpx.HTTPStatusError as e:
            raise self._http_error(e, 'listing') from e
        except TimeoutError as e:
            raise TimeoutError(
                f'TimeoutError while listing {self.api_version}/{self.kind}'
            ) from e

        # Whatever we knew about but did not get listed again was deleted
        # while we were not watching.
        for obj in self.store.list(namespace=self._store_namespace):
            if self.store.key_func(obj) not in seen:
                await self._delete(obj)

        log.debug(
            'done listing %s/%s %s',
            self.api_version,
            self.kind,
            self.resource_version,
        )

    async def _watch(self):
        log.debug(
            'start watching %s/%s %s',
            self.api_version,
            self.kind,
            self.resource_version,
        )
        try:
            async for event, obj in self.api_client.watch(
                self.resource,
                resource_version=self.resource_version,
                namespace=self.namespace,
            ):
                match event:
                    case 'ADDED' | 'MODIFIED':
                        await self._add_or_update(obj)
                    case 'DELETED':
                        await self._delete(obj)
                self.resource_version = obj.metadata.resourceVersion
        except httpx.HTTPStatusError as e:
            raise self._http_error(e, 'watching') from e

    async def _listwatch(self):
        while True:
            try:
                await self._list()

                # We are running and our store is synced.
                self._running.set()

                if self.resync_after is None:
                    await self._watch()
                else:
                    with anyio.move_on_after(self.resync_after) as scope:
                        await self._watch()
                    if scope.cancelled_caught:
                        log.debug(
                            'resyncing %s/%s %s',
                            self.api_version,
                            self.kind,
                            self.resource_version,
                        )
                        continue

            except (TimeoutError, HttpError, httpx.TransportError) as e:
                log.error('%r: %s', self, e)

            # The watch ended or failed, start over after a short pause.
            await anyio.sleep(self.retry_delay)

    async def __call__(self):
        log.debug('starting %s', self)

        try:
            async with anyio.create_task_group() as tg:
                self._task_group = tg

                try:
                    tg.start_soon(self._listwatch)

                    await self
                    log.info('started %s', self)

                    # Wait until told otherwise.
                    await self._stop.wait()

                except anyio.get_cancelled_exc_class():
                    log.debug('canceled %s', self)
                    raise

                finally:
                    log.debug('stopping %s', self)
                    self.purge_streams()

        finally:
            log.info('stopped %s', self)
