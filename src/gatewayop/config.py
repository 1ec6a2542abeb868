import dataclasses
import typing

from .workqueue import default_rate_limiter


DEFAULT_IMAGE = 'quay.io/3scale/apicast:latest'
DEFAULT_SECRET_LABEL_SELECTOR = 'gatewayop.dev/watched-by=gateway'


@dataclasses.dataclass
class Settings:
    """Runtime configuration of the operator."""
    # Namespaces to watch. Empty means the namespace of the api client.
    namespaces: typing.List[str] = dataclasses.field(default_factory=list)
    all_namespaces: bool = False
    secret_label_selector: str = DEFAULT_SECRET_LABEL_SELECTOR
    default_image: str = DEFAULT_IMAGE
    concurrency: int = 1
    # Seconds a single reconcile pass may take, None for no limit.
    reconcile_timeout: float = None
    # Rate limiting of requeued requests.
    base_delay: float = 0.005
    max_delay: float = 1000
    bucket_rate: float = 10
    bucket_capacity: int = 100
    debug: bool = False

    def rate_limiter(self):
        return default_rate_limiter(
            base_delay=self.base_delay,
            max_delay=self.max_delay,
            rate=self.bucket_rate,
            capacity=self.bucket_capacity,
        )
