import logging
import typing

from lightkube.resources.apps_v1 import Deployment
from lightkube.resources.core_v1 import Secret, Service
from lightkube.resources.networking_v1 import Ingress

from ..controller import Result
from ..exceptions import is_conflict, is_not_found
from ..resources import resources_to_yaml
from ..selectors import LabelSelector, label_selector_predicate
from .logic import GatewayLogicReconciler
from .mapper import SecretToGatewayEventMapper
from .resource import Gateway
from .status import StatusConverger


log = logging.getLogger(__name__)


class ConvergenceDelegate(typing.Protocol):
    """Brings the dependent objects of a gateway in line with its spec."""

    async def apply(self, gateway) -> Result:
        ...


class GatewayLoggerAdapter(logging.LoggerAdapter):
    """Prefixes the log message with the gateway key"""

    def process(self, msg, kwargs):
        return 'gateway[%s]: %s' % (self.extra['key'], msg), kwargs


class GatewayReconciler:
    """Reconciles one gateway per call.

    The dependent objects are converged by the delegate, then the status
    is converged against the live deployment. Write conflicts caused by
    concurrent writers end the pass with a requeue instead of an error.
    """

    def __init__(self, client, delegate, status_converger=None):
        self.client = client
        self.delegate = delegate
        if status_converger is None:
            status_converger = StatusConverger(client)
        self.status_converger = status_converger

    async def _fetch(self, request):
        try:
            return await self.client.get(request)
        except Exception as e:
            if is_not_found(e):
                return None
            raise

    async def _converge(self, logger, step, func, gateway):
        try:
            result = await func(gateway)
        except Exception as e:
            if not is_conflict(e):
                raise
            logger.info('conflict during %s, requeuing: %s', step, e)
            return Result(requeue=True)
        return result if result is not None else Result()

    async def reconcile(self, request):
        logger = GatewayLoggerAdapter(log, {'key': request.key})

        gateway = await self._fetch(request)
        if gateway is None:
            logger.debug('gone, nothing to do')
            return Result()

        if log.isEnabledFor(logging.DEBUG):
            logger.debug('reconciling\n%s', resources_to_yaml(gateway))

        result = await self._converge(logger, 'apply', self.delegate.apply, gateway)
        if result.should_requeue:
            return result

        # The delegate may have written, start from fresh state.
        gateway = await self._fetch(request)
        if gateway is None:
            logger.debug('deleted while reconciling')
            return Result()

        result = await self._converge(
            logger, 'status update', self.status_converger.reconcile, gateway
        )
        if result.should_requeue:
            return result

        logger.debug('converged')
        return Result()

    @classmethod
    def setup_with_manager(cls, manager, settings):
        """Register the gateway controller and its watches with the manager."""
        selector = LabelSelector.parse(settings.secret_label_selector)
        delegate = GatewayLogicReconciler(manager.client, default_image=settings.default_image)
        reconciler = cls(manager.client, delegate)
        mapper = SecretToGatewayEventMapper(manager.client)

        builder = manager.controller(Gateway, name='gateway')
        builder.owns(Deployment)
        builder.owns(Service)
        builder.owns(Ingress)
        builder.watch(Secret, mapper.map, predicates=[label_selector_predicate(selector)])
        builder.reconcile(reconciler.reconcile, concurrency=settings.concurrency)
        return reconciler
