from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Protocol


@dataclass
class InvoiceRecord:
    id: str
    pdf_url: Optional[str] = None

    @property
    def has_document(self) -> bool:
        return bool(self.pdf_url)


@dataclass
class InvoicePage:
    records: List[InvoiceRecord] = field(default_factory=list)
    has_more: bool = False


class InvoiceSource(Protocol):
    """Minimal contract a billing provider adapter must fulfil."""

    def list_invoices(
        self,
        *,
        created_gte: int,
        limit: int,
        status: Optional[str] = None,
        starting_after: Optional[str] = None,
    ) -> InvoicePage: ...

    def download_document(self, url: str, dest: str) -> None: ...
