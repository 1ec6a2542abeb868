import dataclasses
import math
import sys
import time

from typing import Dict, Sequence


class RateLimiter:
    """Decides how long an item has to wait before it is processed again."""

    def delay(self, item):
        raise NotImplementedError()

    def forget(self, item):
        raise NotImplementedError()

    def count(self, item):
        raise NotImplementedError()


@dataclasses.dataclass(init=False)
class MaxOfRateLimiter(RateLimiter):
    """Uses the longest delay of all the given limiters."""
    limiters: Sequence[RateLimiter]

    def __init__(self, *args):
        self.limiters = args

    def delay(self, item):
        return max([limiter.delay(item) for limiter in self.limiters])

    def forget(self, item):
        for limiter in self.limiters:
            limiter.forget(item)

    def count(self, item):
        return max([limiter.count(item) for limiter in self.limiters])


@dataclasses.dataclass
class BucketRateLimiter(RateLimiter):
    """Overall rate limit over all items."""
    # Maximum number of tokens in the bucket
    capacity: int = 100
    # Rate of token addition per second
    rate: float = 10
    clock: object = time.monotonic

    def __post_init__(self):
        self._tokens = self.capacity
        self._last_added = self.clock()
        self._missing_tokens = 0

    def _add_tokens(self):
        # Add tokens to the bucket based on the elapsed time and rate
        now = self.clock()
        tokens_to_add = int((now - self._last_added) * self.rate)
        if tokens_to_add > 0:
            self._tokens = min(self.capacity, self._tokens + tokens_to_add)
            self._last_added = now

    def delay(self, item):
        self._add_tokens()
        if self._tokens > 0:
            # As we've got tokens, reset our missing tokens counter.
            self._missing_tokens = 0
            self._tokens -= 1
            return 0
        # Every missing token adds another slot of 1/rate seconds.
        # See https://danielmangum.com/posts/controller-runtime-client-go-rate-limiting/
        self._missing_tokens += 1
        return self._missing_tokens / self.rate

    def forget(self, item):
        pass

    def count(self, item):
        return 0


@dataclasses.dataclass
class ItemExponentialFailureRateLimiter(RateLimiter):
    """Per item exponential backoff: base_delay * 2^failures, capped."""
    items: Dict[object, int] = dataclasses.field(default_factory=dict, init=False)
    base_delay: float = 0.005  # 5 Milliseconds
    max_delay: float = 1000  # 1000 Seconds

    def delay(self, item):
        current = self.items.get(item, 0)
        self.items[item] = current + 1
        try:
            backoff = self.base_delay * math.pow(2, current)
        except OverflowError:
            return self.max_delay
        if backoff > sys.maxsize or backoff > self.max_delay:
            return self.max_delay
        return backoff

    def forget(self, item):
        self.items.pop(item, None)

    def count(self, item):
        return self.items.get(item, 0)


def default_rate_limiter(base_delay=0.005, max_delay=1000, rate=10, capacity=100):
    return MaxOfRateLimiter(
        ItemExponentialFailureRateLimiter(base_delay=base_delay, max_delay=max_delay),
        BucketRateLimiter(capacity=capacity, rate=rate),
    )
