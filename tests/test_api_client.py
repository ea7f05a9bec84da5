from __future__ import annotations

from typing import Any, Dict, List

import pytest
import requests

from anycommerce.dispatch import (
    ApiClient,
    DispatchQueue,
    DispatchTransportError,
    QueueFullError,
    QueueType,
    RequestDecodeError,
)
from anycommerce.dispatch.client import build_url


class _Resp:
    def __init__(self, *, body: Any = None, status_code: int = 200, json_ok: bool = True) -> None:
        self.body = body
        self.status_code = status_code
        self.json_ok = json_ok

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.exceptions.HTTPError(f"status={self.status_code}")

    def json(self):
        if not self.json_ok:
            raise requests.exceptions.JSONDecodeError("Expecting value", "<html>", 0)
        return self.body


@pytest.fixture
def posts(monkeypatch) -> List[Dict[str, Any]]:
    calls: List[Dict[str, Any]] = []

    def _fake_post(url, json=None, timeout=None):
        calls.append({"url": url, "json": json, "timeout": timeout})
        return _Resp(body={"n": len(calls), "cmds": [r["_cmd"] for r in json]})

    monkeypatch.setattr(requests, "post", _fake_post)
    return calls


def _client() -> ApiClient:
    q = DispatchQueue("/jsonapi/", single_flight=True)
    return ApiClient(q, base_url="http://shop.test", timeout_seconds=5)


@pytest.mark.parametrize(
    "base,endpoint,expected",
    [
        ("http://shop.test", "/jsonapi/", "http://shop.test/jsonapi/"),
        ("http://shop.test/", "jsonapi/", "http://shop.test/jsonapi/"),
        ("http://ignored", "https://api.shop.test/jsonapi/", "https://api.shop.test/jsonapi/"),
    ],
)
def test_build_url(base: str, endpoint: str, expected: str) -> None:
    assert build_url(base, endpoint) == expected


def test_mutable_flush_posts_one_batch(posts) -> None:
    c = _client()
    c.queue.push(QueueType.MUTABLE, {"_cmd": "A"})
    c.queue.push(QueueType.MUTABLE, {"_cmd": "B", "x": 1})

    out = c.flush(QueueType.MUTABLE)

    assert out == [{"n": 1, "cmds": ["A", "B"]}]
    assert posts == [
        {"url": "http://shop.test/jsonapi/", "json": [{"_cmd": "A"}, {"_cmd": "B", "x": 1}], "timeout": 5.0}
    ]
    assert c.queue.has_pending() is False


def test_empty_flush_sends_nothing(posts) -> None:
    c = _client()
    assert c.flush(QueueType.PASSIVE) == []
    assert posts == []


def test_immutable_flush_is_serial(posts) -> None:
    c = _client()
    for cmd in ("appCartCreate", "cartItemAppend", "cartDetail"):
        c.queue.push(QueueType.IMMUTABLE, {"_cmd": cmd})

    out = c.flush(QueueType.IMMUTABLE)

    assert [p["json"] for p in posts] == [
        [{"_cmd": "appCartCreate"}],
        [{"_cmd": "cartItemAppend"}],
        [{"_cmd": "cartDetail"}],
    ]
    assert len(out) == 3
    assert c.queue.in_flight() is False
    assert c.queue.length(QueueType.IMMUTABLE) == 0


def test_transport_failure_releases_immutable_and_does_not_requeue(monkeypatch) -> None:
    def _fail(url, json=None, timeout=None):
        raise requests.exceptions.ConnectionError("no route")

    monkeypatch.setattr(requests, "post", _fail)
    c = _client()
    c.queue.push(QueueType.IMMUTABLE, {"_cmd": "X"})
    c.queue.push(QueueType.IMMUTABLE, {"_cmd": "Y"})

    with pytest.raises(DispatchTransportError) as ei:
        c.flush(QueueType.IMMUTABLE)

    assert isinstance(ei.value.__cause__, requests.exceptions.ConnectionError)
    assert c.queue.in_flight() is False
    # X was handed to the transport and is gone; Y is still waiting.
    assert [r.cmd for r in c.queue.get_batch(QueueType.IMMUTABLE)] == ["Y"]


def test_http_error_status_is_a_transport_error(monkeypatch) -> None:
    monkeypatch.setattr(requests, "post", lambda url, json=None, timeout=None: _Resp(status_code=502))
    c = _client()
    c.queue.push(QueueType.MUTABLE, {"_cmd": "A"})
    with pytest.raises(DispatchTransportError):
        c.flush(QueueType.MUTABLE)
    assert c.queue.length(QueueType.MUTABLE) == 0


def test_non_json_body_is_a_transport_error(monkeypatch) -> None:
    monkeypatch.setattr(requests, "post", lambda url, json=None, timeout=None: _Resp(json_ok=False))
    c = _client()
    c.queue.push(QueueType.PASSIVE, {"_cmd": "track"})
    with pytest.raises(DispatchTransportError):
        c.flush(QueueType.PASSIVE)


def test_flush_all_sends_immutable_first(posts) -> None:
    c = _client()
    c.queue.push(QueueType.PASSIVE, {"_cmd": "p"})
    c.queue.push(QueueType.MUTABLE, {"_cmd": "m"})
    c.queue.push(QueueType.IMMUTABLE, {"_cmd": "i"})

    out = c.flush_all()

    assert [p["json"][0]["_cmd"] for p in posts] == ["i", "m", "p"]
    assert set(out) == {"immutable", "mutable", "passive"}


def test_dispatch_rejects_whole_list_on_bad_payload(posts) -> None:
    c = _client()
    with pytest.raises(RequestDecodeError):
        c.dispatch([{"_cmd": "A"}, {"pid": "no-cmd"}])
    assert c.queue.has_pending() is False
    assert posts == []


def test_dispatch_uses_numeric_tier(posts) -> None:
    c = _client()
    out = c.dispatch([{"_cmd": "cartDetail", "_cartid": "c1"}], 1)
    assert out == [{"n": 1, "cmds": ["cartDetail"]}]


def test_convenience_methods_route_to_tiers(posts) -> None:
    c = _client()
    c.queue.push(QueueType.IMMUTABLE, {"_cmd": "appCartCreate"})

    resp = c.cart_item_append("c1", "SKU1", 3)

    # The older immutable request goes first; the method returns the response for its own call.
    assert [p["json"][0]["_cmd"] for p in posts] == ["appCartCreate", "cartItemAppend"]
    assert resp == {"n": 2, "cmds": ["cartItemAppend"]}

    assert c.product_get("P1") == {"n": 3, "cmds": ["appProductGet"]}
    assert posts[-1]["json"] == [{"_cmd": "appProductGet", "pid": "P1", "withVariations": 1, "withInventory": 1}]
    c.category_list()
    c.public_search("hat")
    c.cart_create()
    c.cart_detail("c1")
    assert [p["json"][0]["_cmd"] for p in posts[3:]] == [
        "appCategoryList",
        "appPublicSearch",
        "appCartCreate",
        "cartDetail",
    ]


def test_abort_drops_pending_mutable_requests(posts) -> None:
    c = _client()
    c.queue.push(QueueType.MUTABLE, {"_cmd": "appPublicSearch", "query": "s"})
    c.queue.push(QueueType.MUTABLE, {"_cmd": "appPublicSearch", "query": "sh"})
    assert c.abort() == 2
    assert c.flush(QueueType.MUTABLE) == []
    assert posts == []


def test_client_builds_queue_from_env(monkeypatch) -> None:
    monkeypatch.setenv("ANYCOMMERCE_API_ENDPOINT", "/api/v3/")
    monkeypatch.setenv("ANYCOMMERCE_BASE_URL", "https://store.example")
    monkeypatch.setenv("DISPATCH_HTTP_TIMEOUT_SECONDS", "2.5")

    c = ApiClient()

    assert c.url == "https://store.example/api/v3/"
    assert c.timeout_seconds == 2.5
    c.queue.push(QueueType.IMMUTABLE, {"_cmd": "X"})
    c.queue.get_batch(QueueType.IMMUTABLE)
    assert c.queue.in_flight() is True  # single-flight is on by default for configured clients


def test_dispatch_that_overflows_the_tier_queues_nothing(posts) -> None:
    q = DispatchQueue("/jsonapi/", max_depth=2)
    c = ApiClient(q, base_url="http://shop.test", timeout_seconds=5)
    q.push(QueueType.MUTABLE, {"_cmd": "appPublicSearch", "query": "s"})

    with pytest.raises(QueueFullError):
        c.dispatch([{"_cmd": "A"}, {"_cmd": "B"}])

    assert [r.cmd for r in q.get_batch(QueueType.MUTABLE)] == ["appPublicSearch"]
    assert posts == []


def test_non_json_body_is_reported_as_non_json(monkeypatch, caplog) -> None:
    monkeypatch.setattr(requests, "post", lambda url, json=None, timeout=None: _Resp(json_ok=False))
    c = _client()
    c.queue.push(QueueType.MUTABLE, {"_cmd": "A"})
    with pytest.raises(DispatchTransportError, match="Non-JSON response"):
        c.flush(QueueType.MUTABLE)
    assert "non-JSON body" in caplog.text
