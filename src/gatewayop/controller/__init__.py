from .request import (
    Request,
    request_for_object,
    request_for_owner,
    requests_from_event_for_object,
    requests_from_event_for_owner,
)
from .result import Result
from .ownership import (
    controller_reference,
    is_controlled_by,
    set_controller_reference,
    set_owner_reference,
)
from .controller import (
    Controller,
)

__all__ = [
    'Controller',
    'Request',
    'Result',
    'controller_reference',
    'is_controlled_by',
    'request_for_object',
    'request_for_owner',
    'requests_from_event_for_object',
    'requests_from_event_for_owner',
    'set_controller_reference',
    'set_owner_reference',
]
