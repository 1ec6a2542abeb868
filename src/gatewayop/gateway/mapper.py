import logging

from ..controller import Request
from .resource import Gateway


log = logging.getLogger(__name__)


def requests_for_secret(secret_name, gateways, namespace=None):
    """Requests for all gateways that reference the named configuration
    secret. Only names are compared, the secret data is never looked at.
    """
    requests = []
    for gateway in gateways:
        if namespace is not None and gateway.metadata.namespace != namespace:
            continue
        spec = gateway.spec
        ref = spec.embeddedConfigurationSecretRef if spec is not None else None
        if ref is not None and ref.name == secret_name:
            requests.append(
                Request(Gateway, gateway.metadata.name, namespace=gateway.metadata.namespace)
            )
    return requests


class SecretToGatewayEventMapper:
    """Maps events of configuration secrets to the gateways using them."""

    def __init__(self, client):
        self.client = client

    async def map(self, event):
        secret = event.object
        namespace = secret.metadata.namespace
        gateways = await self.client.list(resource=Gateway, namespace=namespace)
        requests = requests_for_secret(secret.metadata.name, gateways, namespace=namespace)
        log.debug('secret %s/%s maps to %r', namespace, secret.metadata.name, requests)
        return requests
