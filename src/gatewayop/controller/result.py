import dataclasses


@dataclasses.dataclass(frozen=True)
class Result:
    """Outcome of a single reconcile pass.

    An empty Result means done. `requeue` asks for the request to be
    processed again with rate limiting, `requeue_after` asks for it to be
    processed again after the given number of seconds.
    """
    requeue: bool = False
    requeue_after: float = None

    @property
    def should_requeue(self) -> bool:
        return self.requeue or bool(self.requeue_after)
