from lightkube.core import resource as lkr
from lightkube.core.exceptions import ApiError

__all__ = [
    'ApiConflict',
    'ApiError',
    'ApiObjectNotFound',
    'ConfigurationError',
    'Conflict',
    'Error',
    'FatalError',
    'HttpError',
    'InvalidObject',
    'ObjectError',
    'ObjectNotFound',
    'StoreKeyError',
    'from_api_error',
    'is_conflict',
    'is_not_found',
    'iterate_errors',
]


def iterate_errors(exc):
    """
    iterate over all non-exceptiongroup parts of an exception(group)
    """
    if isinstance(exc, BaseExceptionGroup):
        for e in exc.exceptions:
            yield from iterate_errors(e)
    else:
        yield exc


def _describe(api_version, kind, namespace, name):
    out = []
    if api_version is not None and kind is not None:
        out.append(f'{api_version}/{kind}')
    if namespace is not None:
        out.append(f'{namespace}/{name}')
    else:
        out.append(name)
    return ' '.join(out)


class FatalError(Exception):
    """A fatal error that we can not recover from."""


class Error(Exception):
    """Base class for all custom Exceptions."""

    def __init__(self, message=None):
        self.message = message

    def __str__(self):
        return self.__repr__()

    def __repr__(self):
        return f'{self.__class__.__name__}: {self.message}'


class ConfigurationError(Error):
    """Invalid operator configuration, e.g. a malformed label selector."""


class HttpError(Error):
    """An error that occured on the transport level while talking to the api.
    """
    def __init__(self, http_method, url, status_code, message=None):
        self.http_method = http_method
        self.url = url
        self.status_code = status_code
        self.message = message

    def __str__(self):
        if self.message:
            return self.message
        else:
            return '{0} to {1} failed with status: {2}'.format(
                self.http_method, self.url, self.status_code
            )


class ObjectError(Error):
    def __init__(self, obj, message=None):
        self.obj = obj
        self.message = message

    def __repr__(self):
        obj = self.obj
        msg = _describe(
            getattr(obj, 'apiVersion', None),
            getattr(obj, 'kind', None),
            getattr(obj.metadata, 'namespace', None),
            obj.metadata.name,
        )
        if self.message:
            msg = f'{msg}: {self.message}'
        return f'{self.__class__.__name__}: {msg}'


class ObjectNotFound(ObjectError):
    """The object does not exist (anymore)."""


class Conflict(ObjectError):
    """A write was rejected because the object changed since it was read."""


class InvalidObject(ObjectError):
    """An object does not have the shape we rely on."""


class StoreKeyError(ObjectError):
    pass


class _ApiObjectError:
    """Mixin for errors about objects we only know by resource and name."""

    def __init__(self, resource, name, namespace=None, message=None):
        self.resource = resource
        self.name = name
        self.namespace = namespace
        self.message = message

    def __repr__(self):
        info = lkr.api_info(self.resource)
        msg = _describe(
            info.resource.api_version,
            info.resource.kind,
            self.namespace,
            self.name,
        )
        if self.message:
            msg = f'{msg}: {self.message}'
        return f'{self.__class__.__name__}: {msg}'


class ApiObjectNotFound(_ApiObjectError, ObjectNotFound):
    pass


class ApiConflict(_ApiObjectError, Conflict):
    pass


def _status_code(exc):
    status = getattr(exc, 'status', None)
    return getattr(status, 'code', None)


def is_not_found(exc) -> bool:
    if isinstance(exc, ObjectNotFound):
        return True
    return isinstance(exc, ApiError) and _status_code(exc) == 404


def is_conflict(exc) -> bool:
    if isinstance(exc, Conflict):
        return True
    return isinstance(exc, ApiError) and _status_code(exc) == 409


def from_api_error(error, resource, name, namespace=None):
    """Translate a lightkube ApiError into our own error taxonomy.
    Errors we have no special meaning for are returned unchanged.
    """
    message = getattr(error.status, 'message', None)
    match _status_code(error):
        case 404:
            return ApiObjectNotFound(resource, name, namespace=namespace, message=message)
        case 409:
            return ApiConflict(resource, name, namespace=namespace, message=message)
    return error
