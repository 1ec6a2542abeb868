import pytest

from lightkube.resources.apps_v1 import Deployment
from lightkube.resources.core_v1 import Service
from lightkube.resources.networking_v1 import Ingress

from gatewayop.controller import Result
from gatewayop.exceptions import ApiConflict, InvalidObject
from gatewayop.gateway import ExposedHost, GatewayLogicReconciler
from gatewayop.gateway.factory import DESIRED_HASH_ANNOTATION


@pytest.fixture()
def logic(client):
    return GatewayLogicReconciler(client, default_image='gateway:1')


async def test_creates_dependents_once(client, logic, gateway):
    assert await logic.apply(gateway) == Result()
    assert client.writes == [
        ('create', 'Deployment', 'gateway-example'),
        ('create', 'Service', 'gateway-example'),
    ]

    client.writes.clear()
    assert await logic.apply(gateway) == Result()
    assert client.writes == []


async def test_creates_ingress_for_exposed_host(client, logic, make_gateway):
    gateway = make_gateway(host='gateway.example.com')
    await logic.apply(gateway)
    assert ('create', 'Ingress', 'gateway-example') in client.writes
    assert client.stored(Ingress, 'gateway-example', 'default') is not None


async def test_deletes_ingress_when_host_is_removed(client, logic, make_gateway):
    gateway = make_gateway(host='gateway.example.com')
    await logic.apply(gateway)
    client.writes.clear()

    gateway.spec.exposedHost = ExposedHost()
    assert await logic.apply(gateway) == Result()
    assert client.writes == [('delete', 'Ingress', 'gateway-example')]
    assert client.stored(Ingress, 'gateway-example', 'default') is None


async def test_changed_spec_updates_deployment(client, logic, make_gateway):
    await logic.apply(make_gateway())
    client.writes.clear()

    await logic.apply(make_gateway(image='gateway:2'))
    assert client.writes == [('update', 'Deployment', 'gateway-example')]
    stored = client.stored(Deployment, 'gateway-example', 'default')
    assert stored.spec.template.spec.containers[0].image == 'gateway:2'


async def test_service_update_keeps_cluster_ip(client, logic, gateway):
    await logic.apply(gateway)
    live = client.stored(Service, 'gateway-example', 'default')
    live.spec.clusterIP = '10.0.0.1'
    live.spec.clusterIPs = ['10.0.0.1']
    live.metadata.annotations[DESIRED_HASH_ANNOTATION] = 'outdated'
    client.writes.clear()

    await logic.apply(gateway)
    assert client.writes == [('update', 'Service', 'gateway-example')]
    stored = client.stored(Service, 'gateway-example', 'default')
    assert stored.spec.clusterIP == '10.0.0.1'
    assert stored.spec.clusterIPs == ['10.0.0.1']
    assert stored.metadata.annotations[DESIRED_HASH_ANNOTATION] != 'outdated'


async def test_missing_secret_requeues(client, logic, make_gateway):
    assert await logic.apply(make_gateway(secret='config')) == Result(requeue=True)
    assert client.writes == []


async def test_secret_is_mounted(client, logic, make_gateway, make_secret):
    client.put(make_secret())
    assert await logic.apply(make_gateway(secret='config')) == Result()
    stored = client.stored(Deployment, 'gateway-example', 'default')
    assert stored.spec.template.spec.volumes[0].secret.secretName == 'config'


async def test_conflicts_propagate(client, logic, gateway):
    client.fail('create', ApiConflict(Deployment, 'gateway-example', namespace='default'))
    with pytest.raises(ApiConflict):
        await logic.apply(gateway)


async def test_foreign_objects_are_not_touched(client, logic, gateway, make_gateway):
    await logic.apply(make_gateway(uid='someone-else'))
    client.writes.clear()
    with pytest.raises(InvalidObject):
        await logic.apply(gateway)
    assert client.writes == []
