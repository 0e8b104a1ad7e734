"""Strategy plugin contract and the guarded call into it.

A strategy is any object with ``decide(state) -> sequence of orders``.
Strategies are untrusted: the engine checks conformance once before the
replay starts, calls ``decide`` under a per-call time budget, and
validates every returned order at this boundary.

Usage:
    from alphaback.backtesting.plugin import StrategyInvoker, verify_plugin

    plugin = verify_plugin(loader.load("my_strategy"))
    invoker = StrategyInvoker(plugin, timeout=5.0)
    orders = invoker.decide(state)
"""

from __future__ import annotations

import time
from collections.abc import Iterable, Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Protocol, runtime_checkable

from pydantic import ValidationError

from alphaback.backtesting.exceptions import PluginExecutionError, PluginResolutionError
from alphaback.backtesting.schemas import Order, StrategyState
from alphaback.common.logging import get_logger
from alphaback.common.metrics import STRATEGY_DECIDE_DURATION_SECONDS

logger = get_logger("STRATEGY")


@runtime_checkable
class StrategyPlugin(Protocol):
    """Capability every strategy must provide.

    ``decide`` is called once per trading day that has at least one price.
    Returning None or an empty sequence means "no orders". Orders may be
    ``Order`` instances, mappings, or objects exposing ``instrument``,
    ``quantity`` and ``direction``.
    """

    def decide(self, state: StrategyState) -> Sequence[Order] | None: ...


def verify_plugin(plugin: object) -> StrategyPlugin:
    """Check that a resolved object satisfies the strategy capability.

    Raises:
        PluginResolutionError: If ``plugin`` is missing, is a class rather
            than an instance, or has no callable ``decide``.
    """
    if plugin is None or isinstance(plugin, type):
        raise PluginResolutionError(
            "Strategy must be an instantiated object",
            context={"resolved": repr(plugin)},
        )
    if not isinstance(plugin, StrategyPlugin) or not callable(getattr(plugin, "decide", None)):
        raise PluginResolutionError(
            f"{type(plugin).__name__} does not implement decide(state)",
            context={"resolved_type": type(plugin).__name__},
        )
    return plugin


def materialize_orders(raw: object) -> list:
    """Drain whatever ``decide`` returned into a plain list.

    Lazy iterables run strategy code while they are consumed, so this is
    called inside the guarded call.

    Raises:
        PluginExecutionError: If the return value is not a sequence.
    """
    if raw is None:
        return []
    if isinstance(raw, (str, bytes, Mapping)) or not isinstance(raw, Iterable):
        raise PluginExecutionError(
            "Strategy must return a sequence of orders",
            context={"returned_type": type(raw).__name__},
        )
    return list(raw)


def coerce_orders(raw: object) -> list[Order]:
    """Validate whatever ``decide`` returned into a list of Orders.

    Raises:
        PluginExecutionError: If the return value is not a sequence of
            order-shaped items.
    """
    orders: list[Order] = []
    for index, item in enumerate(materialize_orders(raw)):
        if isinstance(item, Order):
            orders.append(item)
            continue
        try:
            orders.append(Order.model_validate(item, from_attributes=not isinstance(item, Mapping)))
        except ValidationError as exc:
            raise PluginExecutionError(
                f"Strategy returned a malformed order at position {index}",
                context={"index": index, "errors": exc.errors(include_url=False)},
            ) from exc
    return orders


class StrategyInvoker:
    """Calls ``plugin.decide`` with a time budget and validates the result.

    The guarded call covers both ``decide`` and draining its return value.
    With a positive ``timeout`` it runs on a single-worker thread pool and
    the engine waits at most ``timeout`` seconds. A call that overruns
    cannot be interrupted; its worker is abandoned and the run aborts.
    """

    def __init__(self, plugin: StrategyPlugin, timeout: float | None = None) -> None:
        self._plugin = plugin
        self._timeout = timeout if timeout and timeout > 0 else None

    def decide(self, state: StrategyState) -> list[Order]:
        start = time.perf_counter()
        try:
            if self._timeout is None:
                items = self._call_inline(state)
            else:
                items = self._call_with_budget(state)
        finally:
            STRATEGY_DECIDE_DURATION_SECONDS.observe(time.perf_counter() - start)
        return coerce_orders(items)

    def _drain(self, state: StrategyState) -> list:
        return materialize_orders(self._plugin.decide(state))

    def _call_inline(self, state: StrategyState) -> list:
        try:
            return self._drain(state)
        except PluginExecutionError:
            raise
        except Exception as exc:
            raise _execution_error(state, exc) from exc

    def _call_with_budget(self, state: StrategyState) -> list:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="strategy-decide")
        try:
            future = executor.submit(self._drain, state)
            done, _ = wait([future], timeout=self._timeout)
            if not done:
                logger.error(
                    "Strategy decide timed out",
                    extra={"data": {"day": state.day, "timeout_seconds": self._timeout}},
                )
                raise PluginExecutionError(
                    f"Strategy exceeded its {self._timeout}s time budget on {state.day}",
                    context={"day": state.day, "timeout_seconds": self._timeout},
                )
            try:
                return future.result()
            except PluginExecutionError:
                raise
            except Exception as exc:
                raise _execution_error(state, exc) from exc
        finally:
            executor.shutdown(wait=False, cancel_futures=True)


def _execution_error(state: StrategyState, exc: BaseException) -> PluginExecutionError:
    logger.error(
        "Strategy raised during decide",
        extra={"data": {"day": state.day, "error": f"{type(exc).__name__}: {exc}"}},
    )
    return PluginExecutionError(
        f"Strategy raised {type(exc).__name__} on {state.day}: {exc}",
        context={"day": state.day, "error_type": type(exc).__name__},
    )
