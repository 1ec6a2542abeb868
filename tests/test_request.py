import pytest

from lightkube.models.meta_v1 import ObjectMeta
from lightkube.resources.apps_v1 import Deployment

from gatewayop.cache import CreateEvent, DeleteEvent, UpdateEvent
from gatewayop.controller import (
    Request,
    controller_reference,
    is_controlled_by,
    requests_from_event_for_object,
    requests_from_event_for_owner,
    set_controller_reference,
    set_owner_reference,
)
from gatewayop.exceptions import ObjectError
from gatewayop.gateway import Gateway


def deployment(name='gateway-example', namespace='default'):
    return Deployment(metadata=ObjectMeta(name=name, namespace=namespace))


def test_request_identity():
    a = Request(Gateway, 'example', namespace='default')
    b = Request(Gateway, 'example', namespace='default')
    b.retries = 3
    assert a == b
    assert hash(a) == hash(b)
    assert a != Request(Gateway, 'example', namespace='other')
    assert a != Request(Deployment, 'example', namespace='default')
    assert a.key == 'default/example'
    assert len({a, b}) == 1


def test_requests_for_object():
    obj = deployment()
    assert requests_from_event_for_object(CreateEvent(obj)) == [
        Request(Deployment, 'gateway-example', namespace='default'),
    ]
    assert requests_from_event_for_object(UpdateEvent(obj, obj)) == [
        Request(Deployment, 'gateway-example', namespace='default'),
    ]


def test_requests_for_owner(gateway):
    obj = deployment()
    set_controller_reference(gateway, obj)
    expected = [Request(Gateway, 'example', namespace='default')]
    assert requests_from_event_for_owner(CreateEvent(obj), owner=Gateway) == expected
    assert requests_from_event_for_owner(DeleteEvent(obj), owner=Gateway) == expected
    assert requests_from_event_for_owner(UpdateEvent(obj, obj), owner=Gateway) == expected


def test_requests_for_owner_ignores_non_controllers(gateway):
    obj = deployment()
    set_owner_reference(gateway, obj)
    assert requests_from_event_for_owner(CreateEvent(obj), owner=Gateway) == []
    assert requests_from_event_for_owner(CreateEvent(deployment()), owner=Gateway) == []


def test_requests_for_owner_on_owner_change(make_gateway):
    old, new = deployment(), deployment()
    set_controller_reference(make_gateway(name='one', uid='1'), old)
    set_controller_reference(make_gateway(name='two', uid='2'), new)
    assert requests_from_event_for_owner(UpdateEvent(old, new), owner=Gateway) == [
        Request(Gateway, 'one', namespace='default'),
        Request(Gateway, 'two', namespace='default'),
    ]


def test_set_controller_reference(gateway):
    obj = deployment()
    ref = set_controller_reference(gateway, obj)
    assert ref.apiVersion == 'apps.gatewayop.dev/v1alpha1'
    assert ref.kind == 'Gateway'
    assert ref.uid == 'gateway-uid'
    assert ref.controller and ref.blockOwnerDeletion
    # Setting it again replaces the existing reference.
    set_controller_reference(gateway, obj)
    assert len(obj.metadata.ownerReferences) == 1
    assert controller_reference(obj) == ref
    assert is_controlled_by(obj, gateway)


def test_only_one_controller(gateway, make_gateway):
    obj = deployment()
    set_controller_reference(gateway, obj)
    with pytest.raises(ObjectError):
        set_controller_reference(make_gateway(name='other', uid='other-uid'), obj)
    assert not is_controlled_by(obj, make_gateway(name='other', uid='other-uid'))
