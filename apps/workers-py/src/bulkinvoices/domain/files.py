"""File-system helpers for the invoice download flow."""

from __future__ import annotations

import pathlib
import re


def ensure_dir(path: str) -> str:
    pathlib.Path(path).mkdir(parents=True, exist_ok=True)
    return path


def sanitize_filename(name: str, default: str = "invoice") -> str:
    name = re.sub(r'[\\/:*?"<>|]+', "_", (name or "").strip())
    if name in ("", ".", ".."):
        return default
    return name


def invoice_pdf_path(out_dir: str, invoice_id: str) -> str:
    """Deterministic destination for an invoice document: ``<out_dir>/<id>.pdf``."""
    return str(pathlib.Path(out_dir) / f"{sanitize_filename(invoice_id)}.pdf")
