# All types a user would care about are made available in the top level package.

from .exceptions import *  # noqa: F403 public API
from .resources import *  # noqa: F403 public API
from .cache import *  # noqa: F403 public API
from .source import *  # noqa: F403 public API
from .controller import *  # noqa: F403 public API
from .client import *  # noqa: F403 public API
from .config import Settings
from .manager import Manager
from .gateway import (
    Gateway,
    GatewayLogicReconciler,
    GatewayReconciler,
    SecretToGatewayEventMapper,
    StatusConverger,
)


def run(settings=None):
    """Run the gateway operator until it is interrupted."""
    if settings is None:
        settings = Settings()
    manager = Manager(settings)
    GatewayReconciler.setup_with_manager(manager, settings)
    manager.run()
