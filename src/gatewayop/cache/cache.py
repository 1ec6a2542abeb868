import copy
import logging

import anyio
from anyio import TASK_STATUS_IGNORED
from anyio.abc import TaskStatus

from ..tasks import Task
from ..resources import get_resource, is_namespaced_resource
from ..exceptions import ApiObjectNotFound
from . import Informer, Store


log = logging.getLogger(__name__)


# - one store for each resource, shared by all informers of that resource
# - when watching specific namespaces:
#   - one informer for each combination of resource and namespace
# - when watching all namespaces:
#   - one informer per resource

ALL_NAMESPACES = '*'


class Cache(Task):
    """Read side of the api: objects of all watched resources kept
    up to date by informers.
    """

    def __init__(self, api_client, namespaces=None):
        super().__init__()
        self.api_client = api_client
        # None means all namespaces.
        self.namespaces = set(namespaces) if namespaces else None
        self._stores = {}
        self._informers = []

    def __repr__(self):
        namespaces = self.namespaces or ALL_NAMESPACES
        resources = {f'{r.apiVersion}/{r.kind}' for r in self._stores}
        return f'<Cache namespaces: {namespaces} resources: {resources}>'

    @property
    def informers(self):
        return list(self._informers)

    def get_store(self, resource):
        resource = get_resource(resource)
        try:
            return self._stores[resource]
        except KeyError:
            store = self._stores[resource] = Store()
            return store

    def is_watched_resource(self, resource, namespace=None):
        resource = get_resource(resource)
        if not any(informer.resource is resource for informer in self._informers):
            return False
        if namespace is None or self.namespaces is None:
            return True
        return namespace in self.namespaces

    def get_informers(self, resource):
        resource = get_resource(resource)
        return [
            informer for informer in self._informers
            if informer.resource is resource
        ]

    def watch(self, resource):
        """Ensure informers exist for the given resource and return them."""
        resource = get_resource(resource)
        informers = self.get_informers(resource)
        if informers:
            return informers
        store = self.get_store(resource)
        if not is_namespaced_resource(resource):
            namespaces = [None]
        elif self.namespaces is None:
            namespaces = [ALL_NAMESPACES]
        else:
            namespaces = sorted(self.namespaces)
        for namespace in namespaces:
            informer = Informer(
                self.api_client,
                store,
                resource,
                namespace=namespace,
            )
            log.debug('created %r', informer)
            self._informers.append(informer)
            informers.append(informer)
        return informers

    async def wait_for_sync(self):
        """Wait until all informers have listed their objects once."""
        for informer in self._informers:
            await informer

    async def __call__(self, task_status: TaskStatus[None] = TASK_STATUS_IGNORED):
        log.debug('starting %r', self)

        try:
            async with anyio.create_task_group() as tg:
                self._task_group = tg

                try:
                    for informer in self._informers:
                        tg.start_soon(informer)

                    log.info('started %s', self)
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

        finally:
            log.info('stopped %s', self)

    async def get(self, resource, namespace=None, name=None):
        """Get from cache."""
        store = self.get_store(resource)
        key = f'{namespace}/{name}' if namespace is not None else name
        try:
            obj = store[key]
        except KeyError as e:
            raise ApiObjectNotFound(resource, name, namespace=namespace) from e
        # We return a copy, so that external changes don't change the
        # original in the store.
        return copy.deepcopy(obj)

    async def list(self, resource, namespace=None):
        """List from cache."""
        store = self.get_store(resource)
        # We return copies, so that external changes don't change the
        # objects in the store.
        return [copy.deepcopy(obj) for obj in store.list(namespace=namespace)]
