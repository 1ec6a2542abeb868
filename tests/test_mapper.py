from lightkube.resources.core_v1 import Secret

from gatewayop.cache import CreateEvent, DeleteEvent, UpdateEvent
from gatewayop.controller import Request
from gatewayop.gateway import Gateway, SecretToGatewayEventMapper, requests_for_secret
from gatewayop.selectors import LabelSelector, label_selector_predicate
from gatewayop.source import EventSource


LABELS = {'gatewayop.dev/watched-by': 'gateway'}


def test_requests_for_secret_matches_by_name(make_gateway):
    gateways = [
        make_gateway(name='one', secret='config'),
        make_gateway(name='two', secret='other'),
        make_gateway(name='three'),
    ]
    assert requests_for_secret('config', gateways) == [
        Request(Gateway, 'one', namespace='default'),
    ]


def test_requests_for_secret_without_matches(make_gateway):
    assert requests_for_secret('config', []) == []
    assert requests_for_secret('config', [make_gateway(secret='other')]) == []


def test_requests_for_secret_in_other_namespace(make_gateway):
    gateways = [make_gateway(namespace='other', secret='config')]
    assert requests_for_secret('config', gateways, namespace='default') == []


async def test_mapper_lists_gateways_of_secret_namespace(client, make_gateway, make_secret):
    client.put(make_gateway(name='one', secret='config'))
    client.put(make_gateway(name='two', namespace='other', secret='config'))
    mapper = SecretToGatewayEventMapper(client)

    requests = await mapper.map(CreateEvent(make_secret(labels=LABELS)))
    assert requests == [Request(Gateway, 'one', namespace='default')]


async def test_mapper_uses_new_object_on_update(client, make_gateway, make_secret):
    client.put(make_gateway(name='one', secret='new'))
    mapper = SecretToGatewayEventMapper(client)

    event = UpdateEvent(make_secret(name='old'), make_secret(name='new'))
    assert await mapper.map(event) == [Request(Gateway, 'one', namespace='default')]


def _source(client, queue):
    selector = LabelSelector.parse('gatewayop.dev/watched-by=gateway')
    mapper = SecretToGatewayEventMapper(client)
    return EventSource(queue, Secret, mapper.map, predicates=[label_selector_predicate(selector)])


async def test_unlabeled_secret_produces_no_requests(client, queue, make_gateway, make_secret):
    client.put(make_gateway(secret='config'))
    source = _source(client, queue)

    await source.handle(CreateEvent(make_secret()))
    await source.handle(CreateEvent(make_secret(labels={'gatewayop.dev/watched-by': 'other'})))
    assert queue.items == []


async def test_labeled_secret_produces_one_request(client, queue, make_gateway, make_secret):
    client.put(make_gateway(secret='config'))
    client.put(make_gateway(name='unrelated', secret='other'))
    source = _source(client, queue)

    await source.handle(CreateEvent(make_secret(labels=LABELS)))
    assert queue.items == [Request(Gateway, 'example', namespace='default')]


async def test_label_removal_does_not_pass(client, queue, make_gateway, make_secret):
    client.put(make_gateway(secret='config'))
    source = _source(client, queue)

    event = UpdateEvent(make_secret(labels=LABELS), make_secret())
    await source.handle(event)
    await source.handle(DeleteEvent(make_secret()))
    assert queue.items == []
