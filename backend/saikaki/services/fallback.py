# saikaki/services/fallback.py
"""
Ordered provider fallback.
Tries each provider once, in order, and returns the first acceptable result.
Used by completions (blocking path), image analysis and image generation.
"""
from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, List, Optional, Sequence, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# (display name, zero-argument callable); the callable may be sync or async
Provider = Tuple[str, Callable[[], Any]]


class ProviderError(Exception):
    """A provider answered, but the answer is unusable."""


class AllProvidersFailed(Exception):
    """
    Every provider in the list raised or returned an invalid value.
    `failures` keeps (provider name, exception) pairs in attempt order.
    """

    def __init__(self, failures: List[Tuple[str, BaseException]]):
        self.failures = failures
        names = ", ".join(name for name, _ in failures) or "no providers configured"
        super().__init__(f"All providers failed: {names}")

    @property
    def provider_names(self) -> List[str]:
        return [name for name, _ in self.failures]


@dataclass(frozen=True)
class FallbackResult(Generic[T]):
    provider_name: str
    value: T


async def try_in_order(
    providers: Sequence[Provider],
    *,
    is_valid: Optional[Callable[[Any], bool]] = None,
) -> FallbackResult:
    """
    Run providers one at a time until one succeeds.
    - no retries of a single provider
    - a value rejected by `is_valid` counts as a failure
    - cancellation is not swallowed (CancelledError is a BaseException)
    """
    failures: List[Tuple[str, BaseException]] = []

    for name, call in providers:
        try:
            value = call()
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            logger.warning(f"Provider '{name}' failed: {e}")
            failures.append((name, e))
            continue

        if is_valid is not None and not is_valid(value):
            logger.warning(f"Provider '{name}' returned an invalid result")
            failures.append((name, ProviderError(f"{name} returned an invalid result")))
            continue

        if failures:
            logger.info(f"Provider '{name}' succeeded after {len(failures)} failure(s)")
        return FallbackResult(provider_name=name, value=value)

    raise AllProvidersFailed(failures)


def non_empty_text(value: Any) -> bool:
    return isinstance(value, str) and bool(value.strip())
