import logging

from ..controller import Controller, requests_from_event_for_owner
from ..exceptions import ConfigurationError


log = logging.getLogger(__name__)


class Builder:
    """A Builder is used to collect information at setup time
    that is later used to create actual instances at runtime.
    """


class ControllerBuilder(Builder):
    def __init__(self, manager, resource, name=None) -> None:
        self.manager = manager
        self.resource = resource
        self._kwargs = {
            'name': name,
            'predicates': [],
            'watches': [],
            'reconcile': None,
            'concurrent_reconciles': 1,
        }
        self._instance = None

    def __repr__(self):
        return f'<ControllerBuilder {self.resource.apiVersion}/{self.resource.kind}>'

    def __getattr__(self, key):
        # proxy to Controller instance
        if key.startswith('_') or self._instance is None:
            raise AttributeError(key)
        return getattr(self._instance, key)

    def _add_watch(self, resource, handler, predicates=None, **kwargs):
        self.manager.register_resource(resource)
        self._kwargs['watches'].append({
            'resource': resource,
            'handler': handler,
            'predicates': list(predicates or []),
            'kwargs': kwargs,
        })

    def owns(self, resource, predicates=None):
        """Watch the given resource and enqueue the controlling owner if it
        is of the resource managed by this controller.
        """
        self._add_watch(
            resource,
            requests_from_event_for_owner,
            predicates=predicates,
            owner=self.resource,
        )
        return self

    def watch(self, resource, handler=None, /, *, predicates=None):
        """Register a watch for the given resource.
        The handler maps an event to the Requests that are then added to the
        workqueue for reconcilation. Without a handler this is a decorator.
        """
        def decorator(f):
            self._add_watch(resource, f, predicates=predicates)
            return f

        if handler is None:
            return decorator
        decorator(handler)
        return self

    def predicate(self, func=None, /):
        """Decorator that registers a predicate function with this controller.
        All registered predicates must return True for a request to be added
        to the workqueue for reconcilation.
        """
        def decorator(f):
            self._kwargs['predicates'].append(f)
            return f

        if func is None:
            # We're called as @decorator() with parens.
            return decorator
        else:
            # We're called as @decorator without parens.
            return decorator(func)

    def reconcile(self, func=None, /, *, concurrency=1):
        """Decorator that registers a reconcile function with this controller."""
        existing = self._kwargs.get('reconcile', None)
        if callable(existing):
            raise ConfigurationError(
                f'Controller already has a reconcile function registered: {existing}'
            )
        self._kwargs['concurrent_reconciles'] = concurrency

        def decorator(f):
            self._kwargs['reconcile'] = f
            return f

        if func is None:
            # We're called as @decorator() with parens.
            return decorator
        else:
            # We're called as @decorator without parens.
            return decorator(func)

    def build(self, cache, **kwargs):
        """Create the controller."""
        if not callable(self._kwargs['reconcile']):
            raise ConfigurationError(f'{self!r} has no reconcile function')
        self._instance = Controller(
            cache,
            self.resource,
            self._kwargs['reconcile'],
            name=self._kwargs['name'],
            watches=self._kwargs['watches'],
            predicates=self._kwargs['predicates'],
            concurrent_reconciles=self._kwargs['concurrent_reconciles'],
            **kwargs,
        )
        return self._instance
