from __future__ import annotations

from typing import Any

import pytest
import requests

from bulkinvoices.adapters import stripe_api


class _FakeResponse:
    def __init__(self, status_code: int = 200, payload=None, text: str = "", body: bytes = b""):
        self.status_code = status_code
        self._payload = payload
        self.text = text or str(payload or "")
        self._body = body

    def json(self):
        if self._payload is None:
            raise ValueError("no json payload")
        return self._payload

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

    def iter_content(self, chunk_size: int = 131072):  # noqa: ARG002
        if self._body:
            yield self._body[:3]
            yield self._body[3:]

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        return False


class _FakeSession:
    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.headers: dict[str, str] = {}
        self.calls: list[dict[str, Any]] = []

    def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        if not self.responses:
            raise AssertionError("No queued fake response")
        return self.responses.pop(0)


def test_resolve_api_key_precedence():
    env = {"STRIPE_API_KEY": "sk_live_env", "STRIPE_TEST_API_KEY": "sk_test_env"}
    assert stripe_api.resolve_api_key("sk_live_explicit", False, env) == "sk_live_explicit"
    assert stripe_api.resolve_api_key(None, True, env) == "sk_test_env"
    assert stripe_api.resolve_api_key(None, False, env) == "sk_live_env"
    assert stripe_api.resolve_api_key(None, False, {"STRIPE_LIVE_API_KEY": "rk_live_x"}) == "rk_live_x"


def test_resolve_api_key_reads_process_env(monkeypatch):
    monkeypatch.setenv("STRIPE_API_KEY", "sk_test_proc")
    assert stripe_api.resolve_api_key(None, True) == "sk_test_proc"


def test_resolve_api_key_missing_and_mode_mismatch():
    with pytest.raises(ValueError, match="No Stripe API key"):
        stripe_api.resolve_api_key(None, False, {})
    with pytest.raises(ValueError, match="live-mode key but test mode"):
        stripe_api.resolve_api_key("sk_live_abc", True, {})
    with pytest.raises(ValueError, match="test-mode key but live mode"):
        stripe_api.resolve_api_key(None, False, {"STRIPE_API_KEY": "sk_test_abc"})
    # keys without a recognizable prefix are passed through
    assert stripe_api.resolve_api_key("opaque-key", True, {}) == "opaque-key"


def test_list_invoices_builds_query_and_parses_page():
    session = _FakeSession(
        [
            _FakeResponse(
                payload={
                    "object": "list",
                    "data": [
                        {"id": "in_1", "invoice_pdf": "https://x/1.pdf"},
                        {"id": "in_2", "invoice_pdf": None},
                    ],
                    "has_more": True,
                }
            )
        ]
    )
    client = stripe_api.StripeClient("sk_test_abc", timeout=5, session=session)
    page = client.list_invoices(
        created_gte=1704067200, limit=2, status="paid", starting_after="in_0"
    )

    assert session.headers["Authorization"] == "Bearer sk_test_abc"
    call = session.calls[0]
    assert call["url"] == "https://api.stripe.com/v1/invoices"
    assert call["params"] == {
        "limit": 2,
        "created[gte]": 1704067200,
        "status": "paid",
        "starting_after": "in_0",
    }
    assert call["timeout"] == 5
    assert [r.id for r in page.records] == ["in_1", "in_2"]
    assert page.records[0].has_document
    assert not page.records[1].has_document
    assert page.has_more is True


def test_list_invoices_first_page_omits_optional_params():
    session = _FakeSession([_FakeResponse(payload={"data": [], "has_more": False})])
    client = stripe_api.StripeClient("sk_live_abc", session=session)
    page = client.list_invoices(created_gte=1, limit=100)
    assert session.calls[0]["params"] == {"limit": 100, "created[gte]": 1}
    assert session.calls[0]["timeout"] is None
    assert page.records == []
    assert page.has_more is False


def test_get_raises_stripe_api_error_from_error_body():
    session = _FakeSession(
        [
            _FakeResponse(
                status_code=401,
                payload={
                    "error": {
                        "type": "invalid_request_error",
                        "code": "api_key_expired",
                        "message": "Expired API Key provided",
                    }
                },
            )
        ]
    )
    client = stripe_api.StripeClient("sk_live_old", session=session)
    with pytest.raises(stripe_api.StripeAPIError) as exc:
        client.list_invoices(created_gte=1, limit=10)
    assert exc.value.status_code == 401
    assert exc.value.code == "api_key_expired"
    assert exc.value.err_type == "invalid_request_error"
    assert "Expired API Key" in str(exc.value)


def test_get_non_json_error_raises_http_error():
    session = _FakeSession([_FakeResponse(status_code=502, text="Bad Gateway")])
    client = stripe_api.StripeClient("sk_live_abc", session=session)
    with pytest.raises(requests.HTTPError):
        client.get("invoices")


def test_download_document_streams_and_overwrites(tmp_path, monkeypatch):
    calls = []

    def fake_get(url, stream=False, timeout=None):
        calls.append((url, stream, timeout))
        return _FakeResponse(body=b"%PDF-1.7 fixture")

    monkeypatch.setattr(stripe_api.requests, "get", fake_get)
    dest = tmp_path / "in_1.pdf"
    dest.write_bytes(b"stale content that is longer than the new one")

    client = stripe_api.StripeClient("sk_test_abc", timeout=7, session=_FakeSession())
    client.download_document("https://pay.stripe.com/invoice/x/pdf", str(dest))

    assert dest.read_bytes() == b"%PDF-1.7 fixture"
    assert calls == [("https://pay.stripe.com/invoice/x/pdf", True, 7)]


def test_download_document_http_error_writes_nothing(tmp_path, monkeypatch):
    monkeypatch.setattr(
        stripe_api.requests, "get", lambda url, stream=False, timeout=None: _FakeResponse(404)
    )
    dest = tmp_path / "in_404.pdf"
    client = stripe_api.StripeClient("sk_test_abc", session=_FakeSession())
    with pytest.raises(requests.HTTPError):
        client.download_document("https://x/404.pdf", str(dest))
    assert not dest.exists()


def test_get_rejects_non_object_payload():
    session = _FakeSession([_FakeResponse(payload=[{"id": "in_1"}])])
    client = stripe_api.StripeClient("sk_live_abc", session=session)
    with pytest.raises(stripe_api.StripeAPIError, match="unexpected response payload: list"):
        client.list_invoices(created_gte=1, limit=10)
