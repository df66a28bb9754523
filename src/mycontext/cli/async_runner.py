"""Bridge from synchronous click commands to the async pipeline.

The scheduler, sentinel and router are coroutines; commands call them
through run_async (or the async_command decorator) instead of asyncio.run.
"""

import asyncio
import functools
from collections.abc import Callable, Coroutine
from typing import Any, ParamSpec, TypeVar

T = TypeVar("T")
P = ParamSpec("P")


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run async code from synchronous code.

    Uses asyncio.run() normally. When a loop is already running (embedding
    the CLI in a notebook or an async test), the loop is made re-entrant
    with nest_asyncio and the coroutine runs on it.

    Raises:
        Any exception raised by the coroutine is propagated
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        # No running loop - the normal case for CLI commands
        return asyncio.run(coro)

    import nest_asyncio

    nest_asyncio.apply(loop)
    return loop.run_until_complete(coro)


def async_command(
    f: Callable[P, Coroutine[Any, Any, T]],
) -> Callable[P, T]:
    """Decorator that wraps async functions for Click commands.

    Usage:
        @main.command()
        @click.pass_context
        @async_command
        async def generate(ctx, prompt):
            click.echo(await _pipeline(ctx).router.generate_text(prompt))
    """

    @functools.wraps(f)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
        return run_async(f(*args, **kwargs))

    return wrapper
