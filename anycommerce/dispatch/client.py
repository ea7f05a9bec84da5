"""
HTTP flush driver for the dispatch queue.

The queue decides what goes out and in which order; this client owns the network. Each flush POSTs
one batch (a JSON array of requests) to the queue's endpoint. There is no retry: a failed batch is
reported to the caller and not re-queued.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional

import requests

from anycommerce.config import load_dispatch_config
from anycommerce.dispatch import commands
from anycommerce.dispatch.errors import DispatchTransportError, QueueFullError
from anycommerce.dispatch.models import (
    ApiRequest,
    QueueType,
    RequestInput,
    coerce_queue_type,
    decode_request,
    serialize_batch,
)
from anycommerce.dispatch.queue import DispatchQueue

logger = logging.getLogger(__name__)

# Immutable first so cart mutations are never overtaken by reads issued after them.
FLUSH_ORDER = (QueueType.IMMUTABLE, QueueType.MUTABLE, QueueType.PASSIVE)


def build_url(base_url: str, endpoint: str) -> str:
    ep = (endpoint or "").strip()
    if ep.startswith(("http://", "https://")):
        return ep
    base = (base_url or "").strip().rstrip("/")
    return f"{base}/{ep.lstrip('/')}"


class ApiClient:
    def __init__(
        self,
        queue: Optional[DispatchQueue] = None,
        *,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        cfg = load_dispatch_config()
        self.queue = queue if queue is not None else DispatchQueue.from_config(cfg)
        self.base_url = base_url if base_url is not None else cfg.base_url
        self.timeout_seconds = float(timeout_seconds if timeout_seconds is not None else cfg.http_timeout_seconds)

    @property
    def url(self) -> str:
        return build_url(self.base_url, self.queue.get_endpoint())

    def _send(self, batch: List[ApiRequest], queue_type: QueueType) -> Any:
        url = self.url
        logger.info(f"Dispatching {len(batch)} {queue_type.value} request(s) to {url}")
        try:
            resp = requests.post(url, json=serialize_batch(batch), timeout=self.timeout_seconds)
            resp.raise_for_status()
            return resp.json()
        except requests.exceptions.JSONDecodeError as e:
            logger.warning(f"Dispatch of {queue_type.value} batch returned a non-JSON body: {e}")
            raise DispatchTransportError(f"Non-JSON response from {url}: {e}") from e
        except requests.exceptions.RequestException as e:
            logger.warning(f"Dispatch of {queue_type.value} batch failed: {e}")
            raise DispatchTransportError(f"Failed to dispatch {queue_type.value} batch to {url}: {e}") from e

    def flush(self, queue_type: Any) -> List[Any]:
        """
        Send what a tier has ready and return the decoded responses, oldest batch first.

        IMMUTABLE requests go out one per POST and each is acknowledged before the next is
        extracted, whether it succeeded or not.
        """
        qt = coerce_queue_type(queue_type)
        responses: List[Any] = []
        if qt is QueueType.IMMUTABLE:
            while True:
                batch = self.queue.get_batch(qt)
                if not batch:
                    break
                try:
                    responses.append(self._send(batch, qt))
                finally:
                    self.queue.ack(qt)
            return responses

        batch = self.queue.get_batch(qt)
        if batch:
            responses.append(self._send(batch, qt))
        return responses

    def flush_all(self) -> Dict[str, List[Any]]:
        return {qt.value: self.flush(qt) for qt in FLUSH_ORDER}

    def dispatch(self, reqs: Iterable[RequestInput], queue_type: Any = QueueType.MUTABLE) -> List[Any]:
        """Queue `reqs` on a tier, then flush that tier."""
        qt = coerce_queue_type(queue_type)
        # Decode and check capacity up front so a bad payload or a full tier queues nothing.
        decoded = [decode_request(r) for r in reqs]
        if not self.queue.can_accept(qt, len(decoded)):
            raise QueueFullError(qt.value, self.queue.max_depth or 0)
        for req in decoded:
            self.queue.push(qt, req)
        return self.flush(qt)

    def abort(self) -> int:
        return self.queue.abort(QueueType.MUTABLE)

    def _dispatch_one(self, req: ApiRequest) -> Optional[Any]:
        responses = self.dispatch([req], commands.queue_type_for(req.cmd))
        # Older queued requests on the same tier are flushed first; ours is last.
        return responses[-1] if responses else None

    def product_get(self, pid: str, with_variations: bool = True, with_inventory: bool = True) -> Optional[Any]:
        return self._dispatch_one(commands.product_get(pid, with_variations, with_inventory))

    def cart_create(self) -> Optional[Any]:
        return self._dispatch_one(commands.cart_create())

    def cart_detail(self, cart_id: str) -> Optional[Any]:
        return self._dispatch_one(commands.cart_detail(cart_id))

    def cart_item_append(self, cart_id: str, sku: str, qty: int) -> Optional[Any]:
        return self._dispatch_one(commands.cart_item_append(cart_id, sku, qty))

    def category_list(self, navcat: Optional[str] = None) -> Optional[Any]:
        return self._dispatch_one(commands.category_list(navcat))

    def public_search(self, query: str) -> Optional[Any]:
        return self._dispatch_one(commands.public_search(query))
