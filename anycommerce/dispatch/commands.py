"""Builders for the storefront API commands issued by the front end."""

from __future__ import annotations

from typing import Any, Dict, Optional

from anycommerce.dispatch.models import ApiRequest, QueueType, RequestTag

# Cart commands mutate server-side session state and must run serially.
_IMMUTABLE_COMMANDS = frozenset({"appCartCreate", "cartDetail", "cartItemAppend"})


def queue_type_for(cmd: str) -> QueueType:
    return QueueType.IMMUTABLE if cmd in _IMMUTABLE_COMMANDS else QueueType.MUTABLE


def _request(cmd: str, params: Dict[str, Any], tag: Optional[RequestTag]) -> ApiRequest:
    return ApiRequest(cmd=cmd, params=params, tag=tag)


def product_get(
    pid: str,
    with_variations: bool = True,
    with_inventory: bool = True,
    *,
    tag: Optional[RequestTag] = None,
) -> ApiRequest:
    # The API expects 1/0 flags, not JSON booleans.
    return _request(
        "appProductGet",
        {
            "pid": pid,
            "withVariations": 1 if with_variations else 0,
            "withInventory": 1 if with_inventory else 0,
        },
        tag,
    )


def cart_create(*, tag: Optional[RequestTag] = None) -> ApiRequest:
    return _request("appCartCreate", {}, tag)


def cart_detail(cart_id: str, *, tag: Optional[RequestTag] = None) -> ApiRequest:
    return _request("cartDetail", {"_cartid": cart_id}, tag)


def cart_item_append(cart_id: str, sku: str, qty: int, *, tag: Optional[RequestTag] = None) -> ApiRequest:
    return _request("cartItemAppend", {"_cartid": cart_id, "sku": sku, "qty": qty}, tag)


def category_list(navcat: Optional[str] = None, *, tag: Optional[RequestTag] = None) -> ApiRequest:
    params: Dict[str, Any] = {}
    if navcat:
        params["navcat"] = navcat
    return _request("appCategoryList", params, tag)


def public_search(query: str, *, tag: Optional[RequestTag] = None) -> ApiRequest:
    return _request("appPublicSearch", {"query": query}, tag)
