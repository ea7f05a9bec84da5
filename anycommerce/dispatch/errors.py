from __future__ import annotations


class DispatchError(Exception):
    """Base class for every error raised by the dispatch layer."""


class RequestDecodeError(DispatchError, ValueError):
    """
    Inbound request payload is structurally invalid.

    Raised before any buffer is touched; the underlying pydantic/JSON error is kept as `__cause__`.
    """


class UnknownQueueTypeError(DispatchError, ValueError):
    def __init__(self, value: object) -> None:
        super().__init__(f"Unknown queue type: {value!r}")
        self.value = value


class QueueFullError(DispatchError, RuntimeError):
    def __init__(self, queue_type: str, max_depth: int) -> None:
        super().__init__(f"{queue_type} queue is full (max_depth={max_depth})")
        self.queue_type = queue_type
        self.max_depth = max_depth


class DispatchTransportError(DispatchError, RuntimeError):
    """Sending a batch to the API endpoint failed (network, HTTP status or body)."""
