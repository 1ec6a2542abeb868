import logging

from lightkube.resources.apps_v1 import Deployment

from ..controller import Result
from ..exceptions import InvalidObject, ObjectNotFound
from ..resources import describe
from .factory import dependent_name
from .resource import GatewayStatus


log = logging.getLogger(__name__)


def deployed_image(deployment):
    """Image of the first container of the deployments pod template."""
    containers = None
    spec = deployment.spec
    if spec is not None and spec.template is not None and spec.template.spec is not None:
        containers = spec.template.spec.containers
    if not containers:
        raise InvalidObject(deployment, 'pod template has no containers')
    if len(containers) > 1:
        log.warning('%s has %i containers, using the image of the first one',
            describe(deployment), len(containers))
    return containers[0].image


class StatusConverger:
    """Reports the image of the gateway deployment in the gateway status."""

    def __init__(self, client):
        self.client = client

    async def reconcile(self, gateway):
        try:
            deployment = await self.client.get(
                resource=Deployment,
                name=dependent_name(gateway),
                namespace=gateway.metadata.namespace,
            )
        except ObjectNotFound:
            log.debug('deployment of %s does not exist yet', describe(gateway))
            return Result(requeue=True)

        image = deployed_image(deployment)
        if gateway.status is None:
            gateway.status = GatewayStatus()
        if gateway.status.deployedImage == image:
            return Result()

        log.info('%s: deployed image changed from %s to %s',
            describe(gateway), gateway.status.deployedImage, image)
        gateway.status.deployedImage = image
        await self.client.update_status(gateway)
        return Result(requeue=True)
