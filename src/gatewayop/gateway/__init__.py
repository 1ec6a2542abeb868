from .resource import (
    ExposedHost,
    Gateway,
    GatewaySpec,
    GatewayStatus,
    LocalObjectReference,
)
from .factory import GatewayFactory, dependent_name
from .logic import GatewayLogicReconciler
from .status import StatusConverger, deployed_image
from .mapper import SecretToGatewayEventMapper, requests_for_secret
from .reconciler import ConvergenceDelegate, GatewayReconciler

__all__ = [
    'ConvergenceDelegate',
    'ExposedHost',
    'Gateway',
    'GatewayFactory',
    'GatewayLogicReconciler',
    'GatewayReconciler',
    'GatewaySpec',
    'GatewayStatus',
    'LocalObjectReference',
    'SecretToGatewayEventMapper',
    'StatusConverger',
    'dependent_name',
    'deployed_image',
    'requests_for_secret',
]
