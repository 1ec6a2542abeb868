from .events import (
    CreateEvent,
    UpdateEvent,
    DeleteEvent,
    GenericEvent,
)
from .store import Store
from .informer import Informer
from .cache import Cache

__all__ = [
    'Cache',
    'CreateEvent',
    'DeleteEvent',
    'GenericEvent',
    'Informer',
    'Store',
    'UpdateEvent',
]
