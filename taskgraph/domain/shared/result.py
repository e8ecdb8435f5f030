"""Result type for engine operations that can fail in expected ways.

Every engine call returns either ``Ok(value)`` or ``Err(error)`` where the
error is a typed ``TaskError``. Callers branch on the variant instead of
catching exceptions, so a rejected mutation is always visible in the
signature.

Example usage:
    >>> def parse_interval(raw: str) -> Result[int, str]:
    ...     if not raw.isdigit() or int(raw) < 1:
    ...         return Err(f"Interval must be a positive integer: {raw!r}")
    ...     return Ok(int(raw))
    ...
    >>> result = parse_interval("3")
    >>> if is_ok(result):
    ...     print(result.value)
    3
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")
E = TypeVar("E")
U = TypeVar("U")


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Successful outcome carrying ``value``."""

    value: T


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Failed outcome carrying ``error``."""

    error: E


# TypeVar aliases don't work with | syntax at runtime
Result = Union[Ok[T], Err[E]]  # noqa: UP007


def is_ok(result: Ok[T] | Err[E]) -> bool:
    """Return True if the result is Ok."""
    return isinstance(result, Ok)


def is_err(result: Ok[T] | Err[E]) -> bool:
    """Return True if the result is Err."""
    return isinstance(result, Err)


def map_result(result: Ok[T] | Err[E], fn: Callable[[T], U]) -> Ok[U] | Err[E]:
    """Transform the value of an Ok result, passing an Err through untouched.

    Args:
        result: The result to transform.
        fn: Function applied to the Ok value.

    Returns:
        ``Ok(fn(value))`` or the original Err.
    """
    if isinstance(result, Ok):
        return Ok(fn(result.value))
    return result


def flat_map(result: Ok[T] | Err[E], fn: Callable[[T], Ok[U] | Err[E]]) -> Ok[U] | Err[E]:
    """Chain a fallible step after a result.

    Args:
        result: The result to continue from.
        fn: Step that receives the Ok value and returns its own Result.

    Returns:
        The Result of ``fn`` or the original Err.
    """
    if isinstance(result, Ok):
        return fn(result.value)
    return result


def unwrap_or(result: Ok[T] | Err[E], default: T) -> T:
    """Return the Ok value, or ``default`` for an Err."""
    if isinstance(result, Ok):
        return result.value
    return default


def collect(results: Iterable[Ok[T] | Err[E]]) -> Ok[list[T]] | Err[E]:
    """Gather a sequence of results into one.

    Stops at the first Err and returns it; otherwise returns Ok with all
    values in order.
    """
    values: list[T] = []
    for result in results:
        if isinstance(result, Err):
            return result
        values.append(result.value)
    return Ok(values)
