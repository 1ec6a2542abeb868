import logging

from ..cache import CreateEvent, UpdateEvent, DeleteEvent, GenericEvent
from ..resources import get_resource
from ..invocation import nonblocking


log = logging.getLogger(__name__)


class Request:
    """Identifies the object to reconcile: resource, namespace and name."""
    resource: object
    name: str
    namespace: str = None
    retries: int = 0

    def __init__(self, resource, name, namespace=None):
        self.resource = get_resource(resource)
        self.name = name
        self.namespace = namespace
        self.retries = 0

    @property
    def api_version(self) -> str:
        return self.resource.apiVersion

    @property
    def kind(self) -> str:
        return self.resource.kind

    @property
    def key(self) -> str:
        if self.namespace is not None:
            return f'{self.namespace}/{self.name}'
        return self.name

    def _identity(self):
        return (self.api_version, self.kind, self.namespace, self.name)

    def __hash__(self):
        return hash(self._identity())

    def __eq__(self, other):
        if not isinstance(other, Request):
            return NotImplemented
        return self._identity() == other._identity()

    def __repr__(self):
        return f'<Request {self.api_version}/{self.kind} {self.key} retries: {self.retries}>'


def _event_objects(event):
    match event:
        case CreateEvent() | DeleteEvent() | GenericEvent():
            return [event.obj]
        case UpdateEvent():
            return [event.old, event.new]
    return []


@nonblocking
def requests_from_event_for_object(event):
    """Map an event to a request for the object itself."""
    requests = []
    for obj in _event_objects(event):
        for request in request_for_object(obj):
            if request not in requests:
                requests.append(request)
    return requests


@nonblocking
def requests_from_event_for_owner(event, owner=None):
    """Map an event to requests for the controlling owner of the object."""
    requests = []
    for obj in _event_objects(event):
        for request in request_for_owner(obj, owner=owner):
            if request not in requests:
                requests.append(request)
    return requests


def request_for_object(obj):
    if obj is None:
        return
    yield Request(
        type(obj),
        obj.metadata.name,
        namespace=getattr(obj.metadata, 'namespace', None),
    )


def request_for_owner(obj, owner=None):
    if obj is None:
        return
    owner = get_resource(owner)
    namespace = getattr(obj.metadata, 'namespace', None)
    for ref in obj.metadata.ownerReferences or []:
        if (
            ref.apiVersion == owner.apiVersion
            and ref.kind == owner.kind
            and ref.controller
        ):
            yield Request(owner, ref.name, namespace=namespace)
