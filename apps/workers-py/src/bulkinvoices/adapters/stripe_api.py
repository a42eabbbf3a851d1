"""Stripe REST adapter: invoice listing and invoice PDF download."""

from __future__ import annotations

import os
from typing import Any, Dict, Mapping, Optional

import requests

from .base import InvoicePage, InvoiceRecord

STRIPE_API_BASE = "https://api.stripe.com/v1"

API_KEY_ENV = "STRIPE_API_KEY"
TEST_API_KEY_ENV = "STRIPE_TEST_API_KEY"
LIVE_API_KEY_ENV = "STRIPE_LIVE_API_KEY"

INVOICE_STATUSES = ("draft", "open", "paid", "uncollectible", "void")


class StripeAPIError(RuntimeError):
    def __init__(self, error: Dict[str, Any], status_code: Optional[int] = None):
        self.error = error
        self.status_code = status_code
        self.code = error.get("code")
        self.err_type = error.get("type")
        self.message = error.get("message", "Stripe API error")
        super().__init__(f"Stripe API error ({status_code}): {self.message}")


def key_mode(api_key: str) -> Optional[str]:
    """Return "test" / "live" for keys carrying a mode prefix, else None."""
    for prefix in ("sk_", "rk_"):
        if api_key.startswith(prefix + "test_"):
            return "test"
        if api_key.startswith(prefix + "live_"):
            return "live"
    return None


def resolve_api_key(
    explicit: Optional[str],
    test_mode: bool,
    environ: Optional[Mapping[str, str]] = None,
) -> str:
    """
    Pick the API key once, at startup.

    Order: explicit override, then the mode specific variable
    (STRIPE_TEST_API_KEY / STRIPE_LIVE_API_KEY), then STRIPE_API_KEY.
    A key whose prefix names the other mode is rejected.
    """
    env = os.environ if environ is None else environ
    key = (explicit or "").strip()
    if not key:
        mode_var = TEST_API_KEY_ENV if test_mode else LIVE_API_KEY_ENV
        key = (env.get(mode_var) or env.get(API_KEY_ENV) or "").strip()
    if not key:
        raise ValueError(f"No Stripe API key: pass -s SECRET or set {API_KEY_ENV}")

    wanted = "test" if test_mode else "live"
    found = key_mode(key)
    if found and found != wanted:
        raise ValueError(
            f"API key is a {found}-mode key but {wanted} mode was requested"
            + (" (drop -T)" if test_mode else " (add -T)")
        )
    return key


class StripeClient:
    def __init__(
        self,
        api_key: str,
        api_base: str = STRIPE_API_BASE,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Authorization": f"Bearer {api_key}"})

    def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        r = self.session.get(
            f"{self.api_base}/{path.lstrip('/')}", params=params or {}, timeout=self.timeout
        )
        try:
            data = r.json()
        except ValueError:
            r.raise_for_status()
            raise StripeAPIError(
                {"message": f"unexpected non-JSON response: {r.text[:200]}"}, r.status_code
            )

        if not isinstance(data, dict):
            raise StripeAPIError(
                {"message": f"unexpected response payload: {type(data).__name__}"}, r.status_code
            )
        # Stripe reports failures as {"error": {...}} alongside a 4xx/5xx status
        if "error" in data:
            raise StripeAPIError(data["error"] or {}, r.status_code)
        if r.status_code >= 400:
            raise StripeAPIError({"message": r.text}, r.status_code)
        return data

    def list_invoices(
        self,
        *,
        created_gte: int,
        limit: int,
        status: Optional[str] = None,
        starting_after: Optional[str] = None,
    ) -> InvoicePage:
        params: Dict[str, Any] = {"limit": limit, "created[gte]": created_gte}
        if status:
            params["status"] = status
        if starting_after:
            params["starting_after"] = starting_after
        data = self.get("invoices", params)

        records = []
        for item in data.get("data") or []:
            records.append(
                InvoiceRecord(
                    id=str(item.get("id") or ""),
                    pdf_url=item.get("invoice_pdf") or None,
                )
            )
        return InvoicePage(records=records, has_more=bool(data.get("has_more")))

    def download_document(self, url: str, dest: str) -> None:
        # plain requests.get: the API key must not travel to the document host
        with requests.get(url, stream=True, timeout=self.timeout) as r:
            r.raise_for_status()
            with open(dest, "wb") as f:
                for chunk in r.iter_content(chunk_size=1024 * 128):
                    if chunk:
                        f.write(chunk)
