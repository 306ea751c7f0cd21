"""
Refresh controller.

Components are pure and synchronous; this module decides when they run.
Requests are identified by (component, input key):

- a finished result for the same key is served from an LRU memo
- an identical in-flight request is awaited rather than recomputed
- a request with a different key for the same component supersedes the
  in-flight one, whose waiters get RequestSuperseded
- every wait is bounded by its own timeout (ComputationTimeout); the
  computation is cancelled only when its last waiter gives up

Work runs in a worker thread via asyncio.to_thread. A superseded or timed
out thread cannot be interrupted; its result is discarded.
"""

import asyncio
import hashlib
import json
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from pydantic import BaseModel

from fitness_insights import errors
from fitness_insights.config import RefreshConfig
from fitness_insights.schemas import ensure_utc

logger = logging.getLogger(__name__)

SUPERSEDED = "superseded"
TIMED_OUT = "timeout"


def _jsonable(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        items = [_jsonable(v) for v in value]
        return sorted(items, key=repr) if isinstance(value, (set, frozenset)) else items
    if isinstance(value, datetime):
        return ensure_utc(value).isoformat()
    return value


def input_key(*inputs: Any, now: datetime, granularity_seconds: int = 60) -> str:
    """
    Fingerprint request inputs.

    SHA-256 of the JSON-serialized inputs plus `now` truncated to the given
    granularity, so rapid repeated requests share a key.
    """
    now = ensure_utc(now)
    bucket = int(now.timestamp()) // granularity_seconds * granularity_seconds
    payload = json.dumps(
        {"inputs": [_jsonable(i) for i in inputs], "now": bucket},
        sort_keys=True,
        default=str,
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass
class _Inflight:
    key: str
    task: "asyncio.Task[Any]"
    reason: Optional[str] = None
    waiters: int = 0


class RefreshController:
    """Memoizes, coalesces, supersedes and times out component computations."""

    def __init__(self, config: Optional[RefreshConfig] = None):
        self.config = config or RefreshConfig()
        self._memo: "OrderedDict[Tuple[str, str], Any]" = OrderedDict()
        self._inflight: Dict[str, _Inflight] = {}

    def input_key(self, *inputs: Any, now: datetime) -> str:
        return input_key(*inputs, now=now, granularity_seconds=self.config.now_granularity_seconds)

    async def run(self, component: str, key: str, fn: Callable[..., Any], *args: Any) -> Any:
        """
        Run `fn(*args)` for (component, key) under the refresh policy.

        Args:
            component: Component name, e.g. "fatigue"
            key: Input fingerprint from input_key()
            fn: Synchronous callable to run off the event loop
            *args: Arguments for fn

        Returns:
            fn's result, possibly memoized or shared with another request

        Raises:
            RequestSuperseded: If a request with a different key replaced this one
            ComputationTimeout: If the result did not arrive within timeout_seconds
        """
        memo_key = (component, key)
        if memo_key in self._memo:
            self._memo.move_to_end(memo_key)
            logger.debug("%s: memo hit for %s", component, key[:12])
            return self._memo[memo_key]

        entry = self._inflight.get(component)
        if entry is not None and entry.key == key and not entry.task.done():
            logger.debug("%s: coalescing with in-flight request %s", component, key[:12])
        else:
            if entry is not None and not entry.task.done():
                logger.debug("%s: superseding in-flight request %s", component, entry.key[:12])
                entry.reason = SUPERSEDED
                entry.task.cancel()
            task = asyncio.ensure_future(asyncio.to_thread(fn, *args))
            entry = _Inflight(key=key, task=task)
            self._inflight[component] = entry
            task.add_done_callback(lambda t, c=component, e=entry: self._on_done(c, e))

        entry.waiters += 1
        try:
            return await asyncio.wait_for(
                asyncio.shield(entry.task), timeout=self.config.timeout_seconds
            )
        except asyncio.TimeoutError:
            # only the last waiter abandons the work
            if entry.waiters == 1 and not entry.task.done():
                entry.reason = TIMED_OUT
                entry.task.cancel()
            raise errors.ComputationTimeout(component, self.config.timeout_seconds, key) from None
        except asyncio.CancelledError:
            if not entry.task.cancelled():
                raise
            if entry.reason == TIMED_OUT:
                raise errors.ComputationTimeout(
                    component, self.config.timeout_seconds, key
                ) from None
            raise errors.RequestSuperseded(component, key) from None
        finally:
            entry.waiters -= 1

    def _on_done(self, component: str, entry: _Inflight) -> None:
        if self._inflight.get(component) is entry:
            del self._inflight[component]
        task = entry.task
        if task.cancelled() or task.exception() is not None:
            return
        self._memo[(component, entry.key)] = task.result()
        self._memo.move_to_end((component, entry.key))
        while len(self._memo) > self.config.cache_size:
            evicted, _ = self._memo.popitem(last=False)
            logger.debug("Evicted memo entry %s:%s", evicted[0], evicted[1][:12])

    def invalidate(self, component: Optional[str] = None) -> int:
        """
        Drop memoized results, for one component or all of them.

        Returns:
            Number of entries dropped
        """
        if component is None:
            dropped = len(self._memo)
            self._memo.clear()
            return dropped
        keys = [k for k in self._memo if k[0] == component]
        for k in keys:
            del self._memo[k]
        return len(keys)

    def in_flight(self, component: str) -> bool:
        entry = self._inflight.get(component)
        return entry is not None and not entry.task.done()

    async def refresh_insights(self, aggregator: Any, now: datetime, sessions: Any, **inputs: Any) -> Any:
        """
        Run one aggregation pass under the refresh policy.

        Identical requests within the same `now` bucket share one pass.
        """
        sessions = list(sessions)
        key = self.input_key(sessions, inputs, now=now)
        return await self.run(
            "insights", key, lambda: aggregator.run_pass(now, sessions, **inputs)
        )
