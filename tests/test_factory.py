from lightkube.models.networking_v1 import IngressTLS

from gatewayop.config import DEFAULT_IMAGE
from gatewayop.gateway import ExposedHost, GatewayFactory, dependent_name
from gatewayop.gateway.factory import (
    DESIRED_HASH_ANNOTATION,
    SECRET_VERSION_ANNOTATION,
    get_desired_hash,
)


def test_dependent_name(gateway):
    assert dependent_name(gateway) == 'gateway-example'


def test_deployment_defaults(gateway):
    deployment = GatewayFactory(gateway).deployment()
    assert deployment.metadata.name == 'gateway-example'
    assert deployment.metadata.namespace == 'default'
    assert deployment.metadata.labels == {
        'app.kubernetes.io/name': 'gateway',
        'app.kubernetes.io/instance': 'example',
        'app.kubernetes.io/managed-by': 'gatewayop',
    }
    assert deployment.metadata.ownerReferences[0].name == 'example'
    assert DESIRED_HASH_ANNOTATION in deployment.metadata.annotations
    assert deployment.spec.replicas == 1
    assert deployment.spec.selector.matchLabels == {
        'app.kubernetes.io/name': 'gateway',
        'app.kubernetes.io/instance': 'example',
    }

    [container] = deployment.spec.template.spec.containers
    assert container.image == DEFAULT_IMAGE
    assert [(p.name, p.containerPort) for p in container.ports] == [
        ('proxy', 8080),
        ('management', 8090),
        ('metrics', 9421),
    ]
    assert container.readinessProbe.httpGet.path == '/status/ready'
    assert container.livenessProbe.httpGet.path == '/status/live'
    assert container.livenessProbe.httpGet.port == 8090
    assert container.env is None
    assert deployment.spec.template.spec.volumes is None


def test_deployment_from_spec(make_gateway):
    gateway = make_gateway(image='gateway:2')
    gateway.spec.replicas = 3
    deployment = GatewayFactory(gateway, default_image='gateway:1').deployment()
    assert deployment.spec.replicas == 3
    assert deployment.spec.template.spec.containers[0].image == 'gateway:2'


def test_deployment_with_configuration_secret(make_gateway, make_secret):
    gateway = make_gateway(secret='config')
    secret = make_secret()
    secret.metadata.resourceVersion = '42'
    deployment = GatewayFactory(gateway, secret=secret).deployment()

    template = deployment.spec.template
    assert template.metadata.annotations == {SECRET_VERSION_ANNOTATION: '42'}
    [volume] = template.spec.volumes
    assert volume.secret.secretName == 'config'
    [container] = template.spec.containers
    assert container.volumeMounts[0].mountPath == '/opt/gateway/config'
    assert container.volumeMounts[0].readOnly
    assert [(e.name, e.value) for e in container.env] == [
        ('THREESCALE_CONFIG_FILE', '/opt/gateway/config/config.json'),
    ]


def test_secret_version_changes_hash(make_gateway, make_secret):
    gateway = make_gateway(secret='config')
    secret = make_secret()
    secret.metadata.resourceVersion = '1'
    first = GatewayFactory(gateway, secret=secret).deployment()
    secret.metadata.resourceVersion = '2'
    second = GatewayFactory(gateway, secret=secret).deployment()
    assert get_desired_hash(first) != get_desired_hash(second)


def test_hash_is_stable(gateway):
    first = GatewayFactory(gateway).deployment()
    second = GatewayFactory(gateway).deployment()
    assert get_desired_hash(first) == get_desired_hash(second)


def test_service(gateway):
    service = GatewayFactory(gateway).service()
    assert service.metadata.name == 'gateway-example'
    assert service.spec.type == 'ClusterIP'
    assert [(p.name, p.port) for p in service.spec.ports] == [
        ('proxy', 8080),
        ('management', 8090),
    ]
    assert service.spec.selector['app.kubernetes.io/instance'] == 'example'


def test_no_ingress_without_exposed_host(gateway, make_gateway):
    assert GatewayFactory(gateway).ingress() is None
    gateway = make_gateway()
    gateway.spec.exposedHost = ExposedHost(host=None)
    assert GatewayFactory(gateway).ingress() is None


def test_ingress(make_gateway):
    gateway = make_gateway(host='gateway.example.com')
    gateway.spec.exposedHost.tls = [
        IngressTLS(hosts=['gateway.example.com'], secretName='tls'),
    ]
    ingress = GatewayFactory(gateway).ingress()
    [rule] = ingress.spec.rules
    assert rule.host == 'gateway.example.com'
    [path] = rule.http.paths
    assert path.path == '/'
    assert path.pathType == 'Prefix'
    assert path.backend.service.name == 'gateway-example'
    assert path.backend.service.port.name == 'proxy'
    assert ingress.spec.tls[0].secretName == 'tls'


async def test_create_fetches_secret(client, make_gateway, make_secret):
    stored = client.put(make_secret())
    factory = await GatewayFactory.create(client, make_gateway(secret='config'))
    assert factory.secret.metadata.resourceVersion == stored.metadata.resourceVersion
