import functools
import inspect

import anyio


def is_async_fn(fn) -> bool:
    if fn is None:
        return False
    elif isinstance(fn, functools.partial):
        return is_async_fn(fn.func)
    elif hasattr(fn, '__wrapped__'):  # @functools.wraps()
        return is_async_fn(fn.__wrapped__)
    elif inspect.isfunction(fn) or inspect.ismethod(fn) or inspect.isclass(fn):
        return inspect.iscoroutinefunction(fn)
    else:
        # Instances with an `async def __call__`.
        return inspect.iscoroutinefunction(getattr(type(fn), '__call__', None))


def nonblocking(func):
    """Decorator that marks a given sync function as safe to call
    from the event loop, e.g. because it only looks at its arguments.
    """
    func.__nonblocking__ = True
    return func


async def invoke(func, *args, **kwargs):
    """Call a sync or async function.
    Blocking sync functions are run in a worker thread.
    """
    if is_async_fn(func):
        return await func(*args, **kwargs)
    elif getattr(func, '__nonblocking__', False):
        return func(*args, **kwargs)
    else:
        return await anyio.to_thread.run_sync(
            functools.partial(func, *args, **kwargs)
        )


async def all_true(predicates, *args, **kwargs):
    """Return True if all given predicates return True.
    Evaluation stops at the first predicate that returns False.
    """
    for predicate in predicates:
        if not await invoke(predicate, *args, **kwargs):
            return False
    return True
