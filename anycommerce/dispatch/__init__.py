"""
Storefront request dispatch.

`DispatchQueue` buffers outbound API calls in three tiers (mutable, immutable, passive) and hands
out batches; `ApiClient` is the HTTP flush driver that ships them.
"""

from anycommerce.dispatch.client import ApiClient
from anycommerce.dispatch.errors import (
    DispatchError,
    DispatchTransportError,
    QueueFullError,
    RequestDecodeError,
    UnknownQueueTypeError,
)
from anycommerce.dispatch.models import (
    ApiRequest,
    QueueType,
    RequestTag,
    coerce_queue_type,
    decode_request,
    serialize_batch,
)
from anycommerce.dispatch.queue import DispatchQueue

__all__ = [
    "ApiClient",
    "ApiRequest",
    "DispatchError",
    "DispatchQueue",
    "DispatchTransportError",
    "QueueFullError",
    "QueueType",
    "RequestDecodeError",
    "RequestTag",
    "UnknownQueueTypeError",
    "coerce_queue_type",
    "decode_request",
    "serialize_batch",
]
