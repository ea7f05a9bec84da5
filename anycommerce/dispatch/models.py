"""Request descriptors and queue tiers for the storefront dispatch layer.

Wire shape of one request (what UI code submits and what a batch carries):

    {"_cmd": "cartItemAppend", "_cartid": "c1", "sku": "ABC", "qty": 1,
     "_tag": {"datapointer": "cartDetail|c1", "callback": "updateCart"}}

Everything except `_cmd`/`_tag` is an opaque parameter and is kept verbatim.
"""

from __future__ import annotations

import json
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, JsonValue, ValidationError, field_validator, model_validator

from anycommerce.dispatch.errors import RequestDecodeError, UnknownQueueTypeError

CMD_KEY = "_cmd"
TAG_KEY = "_tag"
_RESERVED_KEYS = (CMD_KEY, TAG_KEY)


class QueueType(str, Enum):
    MUTABLE = "mutable"  # standard requests, may be aborted
    IMMUTABLE = "immutable"  # mission-critical (cart, checkout), serial execution
    PASSIVE = "passive"  # fire-and-forget, never aborted


# Numeric values used by the storefront front end.
_NUMERIC_QUEUE_TYPES: Dict[int, QueueType] = {
    0: QueueType.MUTABLE,
    1: QueueType.IMMUTABLE,
    2: QueueType.PASSIVE,
}


def coerce_queue_type(value: Any) -> QueueType:
    """
    Resolve a tier selector to a `QueueType`.

    Accepts a member, its wire string (case-insensitive) or the numeric alias 0/1/2.
    Anything else raises `UnknownQueueTypeError`.
    """
    if isinstance(value, QueueType):
        return value
    if isinstance(value, bool):
        raise UnknownQueueTypeError(value)
    if isinstance(value, int):
        qt = _NUMERIC_QUEUE_TYPES.get(value)
        if qt is None:
            raise UnknownQueueTypeError(value)
        return qt
    if isinstance(value, str):
        try:
            return QueueType(value.strip().lower())
        except ValueError:
            raise UnknownQueueTypeError(value) from None
    raise UnknownQueueTypeError(value)


class RequestTag(BaseModel):
    """
    Caller metadata telling the UI where a response belongs. Never interpreted by the queue.

    Unknown keys are dropped on decode, so they do not survive into the outbound batch.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    datapointer: str
    callback: Optional[str] = None
    extension: Optional[str] = None


class ApiRequest(BaseModel):
    """
    One outbound API call.

    Build it from Python with `ApiRequest(cmd=..., params=..., tag=...)`, or from the flat wire
    shape with `decode_request(...)`.
    """

    model_config = ConfigDict(extra="forbid", frozen=True, populate_by_name=True)

    cmd: str = Field(alias=CMD_KEY, strict=True)
    params: Dict[str, JsonValue] = Field(default_factory=dict)
    tag: Optional[RequestTag] = Field(default=None, alias=TAG_KEY)

    @model_validator(mode="before")
    @classmethod
    def _split_wire_payload(cls, data: Any) -> Any:
        if not isinstance(data, Mapping) or CMD_KEY not in data:
            return data
        out: Dict[str, Any] = {
            CMD_KEY: data[CMD_KEY],
            "params": {k: v for k, v in data.items() if k not in _RESERVED_KEYS},
        }
        if data.get(TAG_KEY) is not None:
            out[TAG_KEY] = data[TAG_KEY]
        return out

    @field_validator("params")
    @classmethod
    def _no_reserved_params(cls, v: Dict[str, Any]) -> Dict[str, Any]:
        clash = [k for k in _RESERVED_KEYS if k in v]
        if clash:
            raise ValueError(f"reserved keys are not parameters: {clash}")
        return v

    def to_payload(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {CMD_KEY: self.cmd}
        out.update(self.params)
        if self.tag is not None:
            out[TAG_KEY] = self.tag.model_dump(exclude_none=True)
        return out


RequestInput = Union[ApiRequest, Mapping[str, Any], str, bytes]


def decode_request(payload: RequestInput) -> ApiRequest:
    """
    Decode an inbound request descriptor.

    `payload` may already be an `ApiRequest`, a mapping in wire shape, or JSON text/bytes of one.
    Raises `RequestDecodeError` when `_cmd` is missing or not a string, the tag is malformed, or a
    parameter is not a JSON value.
    """
    if isinstance(payload, ApiRequest):
        # Callers keep their reference; the queued copy must not change with it.
        return payload.model_copy(deep=True)
    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = bytes(payload).decode("utf-8")
        except UnicodeDecodeError as e:
            raise RequestDecodeError(f"Failed to parse request: {e}") from e
    if isinstance(payload, str):
        s = payload.strip()
        try:
            payload = json.loads(s) if s else {}
        except json.JSONDecodeError as e:
            raise RequestDecodeError(f"Failed to parse request: {e}") from e
    if not isinstance(payload, Mapping):
        raise RequestDecodeError(f"Failed to parse request: expected an object, got {type(payload).__name__}")
    if CMD_KEY not in payload:
        raise RequestDecodeError(f"Failed to parse request: missing field `{CMD_KEY}`")
    try:
        return ApiRequest.model_validate(dict(payload))
    except ValidationError as e:
        raise RequestDecodeError(f"Failed to parse request: {e}") from e


def serialize_batch(batch: Sequence[ApiRequest]) -> List[Dict[str, Any]]:
    """Body of one outbound call: the batch in wire shape, oldest first."""
    return [req.to_payload() for req in batch]
