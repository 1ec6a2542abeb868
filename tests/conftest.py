import copy
import inspect
import itertools

import pytest

from lightkube.models.apps_v1 import DeploymentSpec
from lightkube.models.core_v1 import Container, PodSpec, PodTemplateSpec
from lightkube.models.meta_v1 import LabelSelector, ObjectMeta
from lightkube.resources.apps_v1 import Deployment
from lightkube.resources.core_v1 import Secret

from gatewayop.controller import Request
from gatewayop.exceptions import ApiConflict, ApiObjectNotFound
from gatewayop.gateway import (
    ExposedHost,
    Gateway,
    GatewaySpec,
    GatewayStatus,
    LocalObjectReference,
)


# Make all tests in this directory and below anyio-compatible by default.
@pytest.hookimpl(hookwrapper=True)
def pytest_pycollect_makeitem(collector, name, obj):
    if collector.funcnamefilter(name) and inspect.iscoroutinefunction(obj):
        pytest.mark.anyio(obj)
    yield


@pytest.fixture()
def anyio_backend():
    return 'asyncio'


class FakeClient:
    """In-memory stand-in for the AsyncClient.

    Writes are checked against the stored resourceVersion the same way the
    api server does it. All writes are recorded in `writes`.
    """

    def __init__(self, *objects):
        self.objects = {}
        self.writes = []
        self.failures = {}
        self._versions = itertools.count(1)
        self._uids = itertools.count(1)
        for obj in objects:
            self.put(obj)

    @staticmethod
    def _key(resource, namespace, name):
        return (resource, namespace, name)

    def _obj_key(self, obj):
        return self._key(type(obj), obj.metadata.namespace, obj.metadata.name)

    def _next_version(self):
        return str(next(self._versions))

    def put(self, obj):
        """Store the object as if it was written by someone else."""
        obj = copy.deepcopy(obj)
        obj.metadata.resourceVersion = self._next_version()
        if obj.metadata.uid is None:
            obj.metadata.uid = f'uid-{next(self._uids)}'
        self.objects[self._obj_key(obj)] = obj
        return copy.deepcopy(obj)

    def stored(self, resource, name, namespace):
        return self.objects.get(self._key(resource, namespace, name))

    def fail(self, verb, error, times=1):
        """Raise `error` on the next `times` calls of `verb`."""
        self.failures[verb] = [error] * times

    def _maybe_fail(self, verb):
        errors = self.failures.get(verb)
        if errors:
            raise errors.pop(0)

    async def get(self, request=None, *, resource=None, name=None, namespace=None):
        self._maybe_fail('get')
        if isinstance(request, Request):
            resource, name, namespace = request.resource, request.name, request.namespace
        elif request is not None:
            resource = request
        try:
            return copy.deepcopy(self.objects[self._key(resource, namespace, name)])
        except KeyError:
            raise ApiObjectNotFound(resource, name, namespace=namespace) from None

    async def list(self, request=None, *, resource=None, namespace=None):
        self._maybe_fail('list')
        if request is not None:
            resource = request
        return [
            copy.deepcopy(obj)
            for (res, ns, _), obj in self.objects.items()
            if res is resource and (namespace is None or ns == namespace)
        ]

    async def create(self, obj):
        self._maybe_fail('create')
        key = self._obj_key(obj)
        if key in self.objects:
            raise ApiConflict(type(obj), obj.metadata.name, namespace=obj.metadata.namespace,
                message='already exists')
        self.writes.append(('create', type(obj).__name__, obj.metadata.name))
        return self.put(obj)

    def _check_version(self, obj):
        key = self._obj_key(obj)
        try:
            current = self.objects[key]
        except KeyError:
            raise ApiObjectNotFound(type(obj), obj.metadata.name,
                namespace=obj.metadata.namespace) from None
        if obj.metadata.resourceVersion != current.metadata.resourceVersion:
            raise ApiConflict(type(obj), obj.metadata.name, namespace=obj.metadata.namespace,
                message='the object has been modified')
        return current

    async def update(self, obj):
        self._maybe_fail('update')
        current = self._check_version(obj)
        obj = copy.deepcopy(obj)
        obj.metadata.uid = current.metadata.uid
        self.writes.append(('update', type(obj).__name__, obj.metadata.name))
        return self.put(obj)

    async def update_status(self, obj):
        self._maybe_fail('update_status')
        current = copy.deepcopy(self._check_version(obj))
        current.status = copy.deepcopy(obj.status)
        self.writes.append(('update_status', type(obj).__name__, obj.metadata.name))
        return self.put(current)

    async def delete(self, request=None, *, resource=None, name=None, namespace=None):
        self._maybe_fail('delete')
        if isinstance(request, Request):
            resource, name, namespace = request.resource, request.name, request.namespace
        key = self._key(resource, namespace, name)
        if key not in self.objects:
            raise ApiObjectNotFound(resource, name, namespace=namespace)
        self.writes.append(('delete', resource.__name__, name))
        del self.objects[key]


class ListQueue:
    """Collects whatever is added, in place of a Workqueue."""

    def __init__(self):
        self.items = []

    async def add(self, item):
        self.items.append(item)


def _make_gateway(name='example', namespace='default', image=None, secret=None,
        host=None, deployed_image=None, uid='gateway-uid'):
    spec = GatewaySpec(image=image)
    if secret is not None:
        spec.embeddedConfigurationSecretRef = LocalObjectReference(name=secret)
    if host is not None:
        spec.exposedHost = ExposedHost(host=host)
    return Gateway(
        metadata=ObjectMeta(name=name, namespace=namespace, uid=uid),
        spec=spec,
        status=GatewayStatus(deployedImage=deployed_image),
    )


def _make_secret(name='config', namespace='default', labels=None):
    return Secret(
        metadata=ObjectMeta(name=name, namespace=namespace, labels=labels),
        stringData={'config.json': '{}'},
    )


def _make_deployment(name='gateway-example', namespace='default', images=('gateway:1',)):
    return Deployment(
        metadata=ObjectMeta(name=name, namespace=namespace),
        spec=DeploymentSpec(
            selector=LabelSelector(matchLabels={'app': 'gateway'}),
            template=PodTemplateSpec(
                spec=PodSpec(
                    containers=[
                        Container(name=f'c{num}', image=image)
                        for num, image in enumerate(images)
                    ],
                ),
            ),
        ),
    )


@pytest.fixture()
def make_gateway():
    return _make_gateway


@pytest.fixture()
def make_secret():
    return _make_secret


@pytest.fixture()
def make_deployment():
    return _make_deployment


@pytest.fixture()
def gateway():
    return _make_gateway()


@pytest.fixture()
def client():
    return FakeClient()


@pytest.fixture()
def queue():
    return ListQueue()
