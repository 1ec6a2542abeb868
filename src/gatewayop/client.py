import contextlib
import logging

from lightkube.core.exceptions import ApiError
from lightkube.types import PatchType

from .controller import Request
from .exceptions import from_api_error
from .resources import get_resource

__all__ = [
    'AsyncClient',
    'Client',
]

log = logging.getLogger(__name__)


@contextlib.contextmanager
def api_errors(resource, name, namespace=None):
    """Translate lightkube api errors into our own exceptions."""
    try:
        yield
    except ApiError as e:
        error = from_api_error(e, resource, name, namespace=namespace)
        if error is e:
            raise
        raise error from e


class Client:
    """Interface: End user interface to client and cache."""

    def _get_resource(self, request, resource):
        if request is not None:
            resource = request
        return get_resource(resource)

    def get(self, request=None, *, resource=None, name=None, namespace=None):
        """Get from cache or api server."""
        raise NotImplementedError()

    def list(self, request=None, *, resource=None, namespace=None):
        """List from cache or api server."""
        raise NotImplementedError()

    def create(self, obj):
        """Create in API server."""
        raise NotImplementedError()

    def update(self, obj):
        """Update on API server."""
        raise NotImplementedError()

    def update_status(self, obj):
        """Update the status subresource on API server."""
        raise NotImplementedError()

    def delete(self, request=None, *, resource=None, name=None, namespace=None):
        """Delete from API server."""
        raise NotImplementedError()


class AsyncClient(Client):
    """Async end user interface to client and cache.

    Reads of watched resources are served from the cache, everything else
    goes to the api server. Errors for missing objects and write conflicts
    are raised as `ApiObjectNotFound` and `ApiConflict`.
    """

    def __init__(self, api_client, cache):
        self.api_client = api_client
        self.cache = cache

    async def get(self, request=None, *, resource=None, name=None, namespace=None):
        if isinstance(request, Request):
            resource = request.resource
            namespace = request.namespace
            name = request.name
        else:
            resource = self._get_resource(request, resource)
        if self.cache.is_watched_resource(resource, namespace):
            return await self.cache.get(
                resource,
                namespace=namespace,
                name=name,
            )
        with api_errors(resource, name, namespace=namespace):
            return await self.api_client.get(
                resource,
                namespace=namespace,
                name=name,
            )

    async def list(self, request=None, *, resource=None, namespace=None):
        resource = self._get_resource(request, resource)
        if self.cache.is_watched_resource(resource, namespace):
            return await self.cache.list(
                resource,
                namespace=namespace,
            )
        return [
            obj
            async for obj in self.api_client.list(
                resource,
                namespace=namespace,
            )
        ]

    async def create(self, obj):
        resource = type(obj)
        with api_errors(resource, obj.metadata.name, namespace=obj.metadata.namespace):
            return await self.api_client.create(obj)

    async def update(self, obj):
        """Replace the object. The resourceVersion of `obj` is sent along,
        so a stale object raises `ApiConflict`.
        """
        resource = type(obj)
        with api_errors(resource, obj.metadata.name, namespace=obj.metadata.namespace):
            return await self.api_client.replace(obj)

    async def update_status(self, obj):
        """Merge patch the status subresource.

        The patch includes the resourceVersion of `obj`, so it only
        succeeds if the object did not change since it was read.
        """
        resource = type(obj)
        name = obj.metadata.name
        namespace = obj.metadata.namespace
        body = {
            'metadata': {'resourceVersion': obj.metadata.resourceVersion},
            'status': obj.to_dict().get('status', {}),
        }
        log.debug('update status of %s/%s: %s', namespace, name, body['status'])
        with api_errors(resource, name, namespace=namespace):
            return await self.api_client.patch(
                resource.Status,
                name,
                body,
                namespace=namespace,
                patch_type=PatchType.MERGE,
            )

    async def delete(self, request=None, *, resource=None, name=None, namespace=None):
        if isinstance(request, Request):
            resource = request.resource
            namespace = request.namespace
            name = request.name
        else:
            resource = self._get_resource(request, resource)
        with api_errors(resource, name, namespace=namespace):
            return await self.api_client.delete(resource, name=name, namespace=namespace)
