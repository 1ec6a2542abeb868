"""Desired state of the objects a gateway consists of.

Every gateway is made of a Deployment running the gateway image, a
Service in front of it and, if the gateway is exposed, an Ingress.
All of them are named after the gateway and carry a hash of their
desired shape, so unchanged objects don't have to be written again.
"""
import copy
import hashlib
import json
import logging

from lightkube.models.apps_v1 import DeploymentSpec
from lightkube.models.core_v1 import (
    Container,
    ContainerPort,
    EnvVar,
    HTTPGetAction,
    PodSpec,
    PodTemplateSpec,
    Probe,
    SecretVolumeSource,
    ServicePort,
    ServiceSpec,
    Volume,
    VolumeMount,
)
from lightkube.models.meta_v1 import LabelSelector, ObjectMeta
from lightkube.models.networking_v1 import (
    HTTPIngressPath,
    HTTPIngressRuleValue,
    IngressBackend,
    IngressRule,
    IngressServiceBackend,
    IngressSpec,
    ServiceBackendPort,
)
from lightkube.resources.apps_v1 import Deployment
from lightkube.resources.core_v1 import Secret, Service
from lightkube.resources.networking_v1 import Ingress

from ..config import DEFAULT_IMAGE
from ..controller import set_controller_reference


log = logging.getLogger(__name__)


DESIRED_HASH_ANNOTATION = 'gatewayop.dev/desired-hash'
SECRET_VERSION_ANNOTATION = 'gatewayop.dev/embedded-configuration-secret-version'

CONTAINER_NAME = 'gateway'
PROXY_PORT = 8080
MANAGEMENT_PORT = 8090
METRICS_PORT = 9421

CONFIG_VOLUME = 'gateway-config'
CONFIG_MOUNT_PATH = '/opt/gateway/config'
CONFIG_FILE = f'{CONFIG_MOUNT_PATH}/config.json'
CONFIG_FILE_ENV = 'THREESCALE_CONFIG_FILE'


def dependent_name(gateway):
    """Name of the Deployment, Service and Ingress of the given gateway."""
    return f'gateway-{gateway.metadata.name}'


def selector_labels(gateway):
    return {
        'app.kubernetes.io/name': 'gateway',
        'app.kubernetes.io/instance': gateway.metadata.name,
    }


def labels(gateway):
    out = selector_labels(gateway)
    out['app.kubernetes.io/managed-by'] = 'gatewayop'
    return out


def desired_hash(obj):
    """Hash over everything we set on the object, except the hash itself."""
    data = obj.to_dict()
    annotations = data.get('metadata', {}).get('annotations') or {}
    annotations.pop(DESIRED_HASH_ANNOTATION, None)
    encoded = json.dumps(data, sort_keys=True, default=str).encode('utf-8')
    return hashlib.sha256(encoded).hexdigest()[:16]


def get_desired_hash(obj):
    annotations = obj.metadata.annotations or {}
    return annotations.get(DESIRED_HASH_ANNOTATION)


def stamp_desired_hash(obj):
    value = desired_hash(obj)
    if obj.metadata.annotations is None:
        obj.metadata.annotations = {}
    obj.metadata.annotations[DESIRED_HASH_ANNOTATION] = value
    return value


class GatewayFactory:
    """Builds the desired dependent objects of one gateway."""

    def __init__(self, gateway, default_image=DEFAULT_IMAGE, secret=None):
        self.gateway = gateway
        self.default_image = default_image
        self.secret = secret

    @classmethod
    async def create(cls, client, gateway, default_image=DEFAULT_IMAGE):
        """Create a factory, fetching the referenced configuration secret.
        Raises ObjectNotFound if the secret does not exist.
        """
        secret = None
        secret_name = cls.secret_name(gateway)
        if secret_name:
            secret = await client.get(
                resource=Secret,
                name=secret_name,
                namespace=gateway.metadata.namespace,
            )
        return cls(gateway, default_image=default_image, secret=secret)

    @staticmethod
    def secret_name(gateway):
        spec = gateway.spec
        if spec is None or spec.embeddedConfigurationSecretRef is None:
            return None
        return spec.embeddedConfigurationSecretRef.name or None

    @property
    def name(self):
        return dependent_name(self.gateway)

    @property
    def namespace(self):
        return self.gateway.metadata.namespace

    @property
    def image(self):
        spec = self.gateway.spec
        if spec is not None and spec.image:
            return spec.image
        return self.default_image

    @property
    def replicas(self):
        spec = self.gateway.spec
        if spec is not None and spec.replicas is not None:
            return spec.replicas
        return 1

    def _metadata(self):
        return ObjectMeta(
            name=self.name,
            namespace=self.namespace,
            labels=labels(self.gateway),
        )

    def _finish(self, obj):
        set_controller_reference(self.gateway, obj)
        stamp_desired_hash(obj)
        return obj

    def _container(self):
        container = Container(
            name=CONTAINER_NAME,
            image=self.image,
            ports=[
                ContainerPort(name='proxy', containerPort=PROXY_PORT, protocol='TCP'),
                ContainerPort(name='management', containerPort=MANAGEMENT_PORT, protocol='TCP'),
                ContainerPort(name='metrics', containerPort=METRICS_PORT, protocol='TCP'),
            ],
            readinessProbe=Probe(
                httpGet=HTTPGetAction(path='/status/ready', port=MANAGEMENT_PORT),
                initialDelaySeconds=15,
                periodSeconds=30,
            ),
            livenessProbe=Probe(
                httpGet=HTTPGetAction(path='/status/live', port=MANAGEMENT_PORT),
                initialDelaySeconds=10,
                periodSeconds=10,
            ),
        )
        if self.secret is not None:
            container.env = [EnvVar(name=CONFIG_FILE_ENV, value=CONFIG_FILE)]
            container.volumeMounts = [
                VolumeMount(name=CONFIG_VOLUME, mountPath=CONFIG_MOUNT_PATH, readOnly=True),
            ]
        return container

    def deployment(self):
        pod_metadata = ObjectMeta(labels=labels(self.gateway))
        pod_spec = PodSpec(containers=[self._container()])
        if self.secret is not None:
            pod_metadata.annotations = {
                SECRET_VERSION_ANNOTATION: self.secret.metadata.resourceVersion,
            }
            pod_spec.volumes = [
                Volume(
                    name=CONFIG_VOLUME,
                    secret=SecretVolumeSource(secretName=self.secret.metadata.name),
                ),
            ]
        deployment = Deployment(
            metadata=self._metadata(),
            spec=DeploymentSpec(
                replicas=self.replicas,
                selector=LabelSelector(matchLabels=selector_labels(self.gateway)),
                template=PodTemplateSpec(metadata=pod_metadata, spec=pod_spec),
            ),
        )
        return self._finish(deployment)

    def service(self):
        service = Service(
            metadata=self._metadata(),
            spec=ServiceSpec(
                type='ClusterIP',
                selector=selector_labels(self.gateway),
                ports=[
                    ServicePort(name='proxy', port=PROXY_PORT, targetPort='proxy', protocol='TCP'),
                    ServicePort(name='management', port=MANAGEMENT_PORT, targetPort='management', protocol='TCP'),
                ],
            ),
        )
        return self._finish(service)

    def ingress(self):
        """The desired ingress, or None if the gateway is not exposed."""
        spec = self.gateway.spec
        exposed = spec.exposedHost if spec is not None else None
        if exposed is None or not exposed.host:
            return None
        ingress = Ingress(
            metadata=self._metadata(),
            spec=IngressSpec(
                rules=[
                    IngressRule(
                        host=exposed.host,
                        http=HTTPIngressRuleValue(
                            paths=[
                                HTTPIngressPath(
                                    path='/',
                                    pathType='Prefix',
                                    backend=IngressBackend(
                                        service=IngressServiceBackend(
                                            name=self.name,
                                            port=ServiceBackendPort(name='proxy'),
                                        ),
                                    ),
                                ),
                            ],
                        ),
                    ),
                ],
                tls=copy.deepcopy(exposed.tls) if exposed.tls else None,
            ),
        )
        return self._finish(ingress)
