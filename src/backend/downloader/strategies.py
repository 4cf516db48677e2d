"""
Ordered fallback strategies: each is attempted in turn, the first accepted
result wins, and every failure is recorded separately.

Used for archive -> individual image downloads and for cache lookup ->
detail fetch when resolving a record.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Optional, Sequence, TypeVar

T = TypeVar("T")
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Strategy(Generic[T]):
    name: str
    run: Callable[[], Awaitable[T]]


@dataclass(frozen=True)
class StrategyFailure:
    strategy: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"strategy": self.strategy, "error": self.error}


class StrategiesExhausted(Exception):
    """Every strategy of a chain failed."""

    def __init__(self, failures: Sequence[StrategyFailure]) -> None:
        summary = "; ".join(f"{f.strategy}: {f.error}" for f in failures) or "no strategies"
        super().__init__(f"all strategies failed ({summary})")
        self.failures = tuple(failures)


@dataclass(frozen=True)
class StrategyOutcome(Generic[T]):
    strategy: str
    result: T
    failures: tuple[StrategyFailure, ...] = ()


async def first_success(
    strategies: Sequence[Strategy[T]],
    *,
    accept: Optional[Callable[[T], bool]] = None,
) -> StrategyOutcome[T]:
    """
    Run strategies in order until one produces an accepted result.

    A strategy fails when it raises, or when `accept` rejects its result
    (default: any result other than None is accepted).

    Raises:
        StrategiesExhausted: If no strategy succeeded.
    """
    accept = accept or (lambda result: result is not None)
    failures: list[StrategyFailure] = []

    for strategy in strategies:
        try:
            result = await strategy.run()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Strategy %s failed: %s", strategy.name, exc)
            failures.append(StrategyFailure(strategy.name, f"{type(exc).__name__}: {exc}"))
            continue

        if accept(result):
            return StrategyOutcome(strategy=strategy.name, result=result, failures=tuple(failures))

        logger.debug("Strategy %s produced no result", strategy.name)
        failures.append(StrategyFailure(strategy.name, "no result"))

    raise StrategiesExhausted(failures)
