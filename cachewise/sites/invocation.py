"""
cachewise — Invocation

One intercepted call: the method, its bound arguments, and the thunk that
runs the method. Multi sites proceed with a replacement list substituted at
the fan-out position; every other argument is passed unchanged.
"""

import inspect
from collections.abc import Callable, Mapping
from typing import Any


class Invocation:
    """Bound call to a cached method."""

    def __init__(
        self,
        func: Callable[..., Any],
        signature: inspect.Signature,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ):
        self.func = func
        self.signature = signature
        self.bound = signature.bind(*args, **kwargs)
        self.bound.apply_defaults()
        self.parameter_names = list(signature.parameters)

    def argument(self, position: int) -> Any:
        """Argument bound to the parameter at a signature position."""
        return self.bound.arguments[self.parameter_names[position]]

    async def proceed(self, replacements: Mapping[int, Any] | None = None) -> Any:
        """
        Run the underlying method.

        Args:
            replacements: Arguments to substitute, keyed by signature position

        Returns:
            The method's result (awaited when the method is a coroutine)
        """
        bound = self.bound
        if replacements:
            bound = self.signature.bind(*self.bound.args, **self.bound.kwargs)
            for position, value in replacements.items():
                bound.arguments[self.parameter_names[position]] = value

        result = self.func(*bound.args, **bound.kwargs)
        if inspect.isawaitable(result):
            result = await result
        return result
