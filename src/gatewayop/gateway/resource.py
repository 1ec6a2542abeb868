from dataclasses import dataclass, field
from typing import List

from lightkube.models.meta_v1 import ObjectMeta
from lightkube.models.networking_v1 import IngressTLS

from ..resources import ModelMixin, resource


GROUP = 'apps.gatewayop.dev'
VERSION = 'v1alpha1'


@dataclass
class LocalObjectReference(ModelMixin):
    name: str = None


@dataclass
class ExposedHost(ModelMixin):
    """Host name under which the gateway is reachable from outside."""
    host: str = None
    tls: List[IngressTLS] = None


@dataclass
class GatewaySpec(ModelMixin):
    replicas: int = None
    image: str = None
    embeddedConfigurationSecretRef: LocalObjectReference = None
    exposedHost: ExposedHost = None


@dataclass
class GatewayStatus(ModelMixin):
    deployedImage: str = None


@resource(group=GROUP, version=VERSION, kind='Gateway', plural='gateways')
@dataclass
class Gateway:
    """Gateway is the Schema for the gateways API."""
    apiVersion: str = f'{GROUP}/{VERSION}'
    kind: str = 'Gateway'
    metadata: ObjectMeta = None
    spec: GatewaySpec = field(default_factory=GatewaySpec)
    status: GatewayStatus = field(default_factory=GatewayStatus)
