"""
Dispatch queue: three independent FIFO tiers of outbound API requests.

- MUTABLE: drained as one batch; may be aborted wholesale before extraction.
- IMMUTABLE: handed out one request at a time; never aborted.
- PASSIVE: drained as one batch; never aborted.

All operations are synchronous and run to completion, so there is no locking. A flush driver owns
timers and the network; the queue only buffers, extracts and forgets.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from anycommerce.config import OVERFLOW_EVICT_OLDEST, OVERFLOW_POLICIES, OVERFLOW_REJECT, DispatchConfig
from anycommerce.dispatch.errors import QueueFullError
from anycommerce.dispatch.models import ApiRequest, QueueType, RequestInput, coerce_queue_type, decode_request

logger = logging.getLogger(__name__)


class DispatchQueue:
    """
    Tiered request buffer bound to one API endpoint.

    Optional hardening (both off by default):
    - `max_depth`: per-tier capacity. On overflow, `reject` raises `QueueFullError`; `evict_oldest`
      drops the oldest MUTABLE request. IMMUTABLE/PASSIVE never evict and always reject.
    - `single_flight`: after an IMMUTABLE request is extracted, further IMMUTABLE extractions return
      `[]` until `ack(QueueType.IMMUTABLE)` is called.
    """

    def __init__(
        self,
        endpoint: str,
        *,
        max_depth: Optional[int] = None,
        overflow: str = OVERFLOW_REJECT,
        single_flight: bool = False,
    ) -> None:
        if max_depth is not None and max_depth <= 0:
            raise ValueError("max_depth must be > 0")
        if overflow not in OVERFLOW_POLICIES:
            raise ValueError(f"overflow must be one of {OVERFLOW_POLICIES}")
        self._endpoint = endpoint
        self._buffers: Dict[QueueType, Deque[ApiRequest]] = {qt: deque() for qt in QueueType}
        self._max_depth = max_depth
        self._overflow = overflow
        self._single_flight = bool(single_flight)
        self._immutable_in_flight = False

    @classmethod
    def from_config(cls, cfg: DispatchConfig) -> DispatchQueue:
        return cls(
            cfg.api_endpoint,
            max_depth=cfg.max_queue_depth,
            overflow=cfg.overflow_policy,
            single_flight=cfg.immutable_single_flight,
        )

    def push(self, queue_type: Any, request: RequestInput) -> None:
        """
        Append a request to the tail of a tier.

        All-or-nothing: an unknown tier, an undecodable payload or a full tier leaves every buffer
        unchanged.
        """
        qt = coerce_queue_type(queue_type)
        req = decode_request(request)
        buf = self._buffers[qt]
        if self._max_depth is not None and len(buf) >= self._max_depth:
            if self._overflow == OVERFLOW_EVICT_OLDEST and qt is QueueType.MUTABLE:
                dropped = buf.popleft()
                logger.debug("Evicted oldest mutable request %s (max_depth=%d)", dropped.cmd, self._max_depth)
            else:
                raise QueueFullError(qt.value, self._max_depth)
        buf.append(req)
        logger.debug("Queued %s on %s (depth=%d)", req.cmd, qt.value, len(buf))

    def can_accept(self, queue_type: Any, count: int = 1) -> bool:
        """True if `count` more pushes to the tier would all succeed under the capacity policy."""
        qt = coerce_queue_type(queue_type)
        if self._max_depth is None:
            return True
        if self._overflow == OVERFLOW_EVICT_OLDEST and qt is QueueType.MUTABLE:
            return True
        return len(self._buffers[qt]) + count <= self._max_depth

    def length(self, queue_type: Any) -> int:
        return len(self._buffers[coerce_queue_type(queue_type)])

    def abort(self, queue_type: Any) -> int:
        """Clear the MUTABLE tier and return how many requests were dropped; other tiers return 0."""
        qt = coerce_queue_type(queue_type)
        if qt is not QueueType.MUTABLE:
            return 0
        dropped = len(self._buffers[qt])
        self._buffers[qt] = deque()
        if dropped:
            logger.debug("Aborted %d mutable request(s)", dropped)
        return dropped

    def get_batch(self, queue_type: Any) -> List[ApiRequest]:
        """
        Remove and return the next batch of a tier, oldest first.

        MUTABLE and PASSIVE hand over the whole buffer; IMMUTABLE hands over at most one request.
        Returned requests are forgotten by the queue.
        """
        qt = coerce_queue_type(queue_type)
        buf = self._buffers[qt]
        if qt is QueueType.IMMUTABLE:
            if not buf or (self._single_flight and self._immutable_in_flight):
                return []
            req = buf.popleft()
            if self._single_flight:
                self._immutable_in_flight = True
            return [req]
        # Swap in a fresh buffer so later pushes never join this batch.
        self._buffers[qt] = deque()
        return list(buf)

    def ack(self, queue_type: Any = QueueType.IMMUTABLE) -> bool:
        """
        Report that the outstanding IMMUTABLE request has resolved (success or failure).

        Returns True if a request was outstanding. Other tiers have nothing to acknowledge.
        """
        qt = coerce_queue_type(queue_type)
        if qt is not QueueType.IMMUTABLE:
            return False
        was = self._immutable_in_flight
        self._immutable_in_flight = False
        return was

    def in_flight(self, queue_type: Any = QueueType.IMMUTABLE) -> bool:
        qt = coerce_queue_type(queue_type)
        return qt is QueueType.IMMUTABLE and self._immutable_in_flight

    def has_pending(self) -> bool:
        return any(self._buffers[qt] for qt in QueueType)

    def get_endpoint(self) -> str:
        return self._endpoint

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def max_depth(self) -> Optional[int]:
        return self._max_depth

    def stats(self) -> Dict[str, Any]:
        return {
            "endpoint": self._endpoint,
            "mutable": len(self._buffers[QueueType.MUTABLE]),
            "immutable": len(self._buffers[QueueType.IMMUTABLE]),
            "passive": len(self._buffers[QueueType.PASSIVE]),
            "immutable_in_flight": self._immutable_in_flight,
            "max_depth": self._max_depth,
        }
