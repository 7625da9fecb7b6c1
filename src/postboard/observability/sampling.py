"""
postboard.observability.sampling

Sticky per-trace sampling decisions.

Responsibilities:
- Draw a Bernoulli decision once per trace id.
- Serve cached decisions to every later event of the same trace.
"""

from __future__ import annotations

import random
import threading
from collections import OrderedDict


def _check_ratio(ratio: float) -> float:
    if not 0.0 <= ratio <= 1.0:
        raise ValueError(f"sampling ratio must be within [0, 1], got {ratio!r}")
    return float(ratio)


class SamplingDecider:
    """
    Keeps every span/log of one trace consistently kept or dropped.

    The cache is bounded; once a trace id is evicted a later `lookup` draws again,
    the same degradation as a process restart.
    """

    def __init__(
        self,
        ratio: float = 0.1,
        *,
        max_entries: int = 100_000,
        rng: random.Random | None = None,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self._ratio = _check_ratio(ratio)
        self._max_entries = max_entries
        self._rng = rng or random.Random()
        self._decisions: OrderedDict[str, bool] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def ratio(self) -> float:
        return self._ratio

    def decide(self, trace_id: str, ratio: float | None = None) -> bool:
        effective = self._ratio if ratio is None else _check_ratio(ratio)
        with self._lock:
            existing = self._decisions.get(trace_id)
            if existing is not None:
                self._decisions.move_to_end(trace_id)
                return existing
            sampled = self._rng.random() < effective
            self._decisions[trace_id] = sampled
            if len(self._decisions) > self._max_entries:
                self._decisions.popitem(last=False)
            return sampled

    def lookup(self, trace_id: str) -> bool:
        with self._lock:
            existing = self._decisions.get(trace_id)
            if existing is not None:
                self._decisions.move_to_end(trace_id)
                return existing
        return self.decide(trace_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._decisions)


# --- Module Notes -----------------------------------------------------------
# Decisions are drawn in `tracing.Tracer.start_span` for new root traces and looked up
# by the emitter when deciding whether a traced record is exported remotely.
