import logging

from lightkube.resources.core_v1 import Service
from lightkube.resources.networking_v1 import Ingress

from ..config import DEFAULT_IMAGE
from ..controller import Result, is_controlled_by
from ..exceptions import InvalidObject, ObjectNotFound
from ..resources import describe
from .factory import GatewayFactory, get_desired_hash


log = logging.getLogger(__name__)


def _keep_cluster_ip(live, desired):
    # The cluster ip is immutable and assigned by the api server.
    if isinstance(desired, Service) and live.spec is not None:
        desired.spec.clusterIP = live.spec.clusterIP
        desired.spec.clusterIPs = live.spec.clusterIPs


class GatewayLogicReconciler:
    """Creates, updates and deletes the dependent objects of a gateway."""

    def __init__(self, client, default_image=DEFAULT_IMAGE):
        self.client = client
        self.default_image = default_image

    async def apply(self, gateway):
        try:
            factory = await GatewayFactory.create(
                self.client, gateway, default_image=self.default_image
            )
        except ObjectNotFound as e:
            log.info('configuration secret of %s is missing: %s', describe(gateway), e)
            return Result(requeue=True)

        await self.ensure(gateway, factory.deployment())
        await self.ensure(gateway, factory.service())

        ingress = factory.ingress()
        if ingress is None:
            await self.remove(gateway, Ingress, factory.name)
        else:
            await self.ensure(gateway, ingress)
        return Result()

    async def ensure(self, gateway, desired):
        """Create `desired` or bring the live object in line with it.
        Nothing is written if the live object already has the desired hash.
        """
        resource = type(desired)
        try:
            live = await self.client.get(
                resource=resource,
                name=desired.metadata.name,
                namespace=desired.metadata.namespace,
            )
        except ObjectNotFound:
            log.info('creating %s', describe(desired))
            return await self.client.create(desired)

        if not is_controlled_by(live, gateway):
            raise InvalidObject(live, f'not controlled by {describe(gateway)}')

        if get_desired_hash(live) == get_desired_hash(desired):
            log.debug('%s is up to date', describe(live))
            return live

        _keep_cluster_ip(live, desired)
        desired.metadata.resourceVersion = live.metadata.resourceVersion
        log.info('updating %s', describe(live))
        return await self.client.update(desired)

    async def remove(self, gateway, resource, name):
        """Delete the named object if it exists and belongs to the gateway."""
        namespace = gateway.metadata.namespace
        try:
            live = await self.client.get(resource=resource, name=name, namespace=namespace)
        except ObjectNotFound:
            return
        if not is_controlled_by(live, gateway):
            log.warning('not deleting %s, it is not controlled by %s',
                describe(live), describe(gateway))
            return
        log.info('deleting %s', describe(live))
        try:
            await self.client.delete(resource=resource, name=name, namespace=namespace)
        except ObjectNotFound:
            log.debug('%s was already deleted', describe(live))
