from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from ..adapters.base import InvoiceRecord, InvoiceSource
from ..domain import files as domain_files

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


class PaginationError(RuntimeError):
    """Provider claimed more pages but gave no record to continue after."""


@dataclass(frozen=True)
class FetchConfig:
    start_ts: int
    out_dir: str
    limit: int = MAX_PAGE_SIZE
    status: Optional[str] = None
    dry_run: bool = False
    test_mode: bool = False
    fail_fast: bool = False


@dataclass
class FetchResult:
    pages: int = 0
    seen: int = 0
    downloaded: int = 0
    previewed: int = 0
    skipped: int = 0
    failed: int = 0
    download_errors: int = 0
    written: List[str] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return self.downloaded + self.download_errors


def validate_limit(limit: int) -> int:
    if not 1 <= limit <= MAX_PAGE_SIZE:
        raise ValueError(f"Page size must be between 1 and {MAX_PAGE_SIZE}, got {limit}")
    return limit


def handle_document(
    source: InvoiceSource,
    record: InvoiceRecord,
    config: FetchConfig,
    result: FetchResult,
) -> None:
    """Preview or download one invoice PDF. Per-item failures are counted, not raised,
    unless ``config.fail_fast`` is set."""
    if not record.id:
        logger.warning("Error: Empty invoice ID (url=%s)", record.pdf_url)
        result.failed += 1
        return

    dest = domain_files.invoice_pdf_path(config.out_dir, record.id)
    if config.dry_run:
        print(f"[dry-run] {record.id} → {dest}")
        result.previewed += 1
        return

    logger.info("↓ %s → %s", record.id, dest)
    try:
        source.download_document(record.pdf_url, dest)
    except Exception as e:
        result.failed += 1
        result.download_errors += 1
        if config.fail_fast:
            raise
        logger.warning("[WARN] invoice download failed (%s): %s", record.id, e)
        return
    result.downloaded += 1
    result.written.append(dest)


def fetch_invoices(source: InvoiceSource, config: FetchConfig) -> FetchResult:
    result = FetchResult()
    cursor: Optional[str] = None

    while True:
        logger.debug(
            "list invoices: limit=%s created[gte]=%s status=%s starting_after=%s",
            config.limit,
            config.start_ts,
            config.status or "-",
            cursor or "-",
        )
        page = source.list_invoices(
            created_gte=config.start_ts,
            limit=config.limit,
            status=config.status,
            starting_after=cursor,
        )
        result.pages += 1
        result.seen += len(page.records)

        with_pdf = [r for r in page.records if r.has_document]
        logger.info("Found %d invoices with PDFs in this batch", len(with_pdf))

        for record in page.records:
            if not record.has_document:
                logger.debug("    skip %s: no PDF yet", record.id or "<no id>")
                result.skipped += 1
                continue
            handle_document(source, record, config, result)

        logger.debug("has_more: %s", page.has_more)
        if not page.has_more:
            break
        if not page.records:
            raise PaginationError(
                f"provider reported more pages after an empty page (page {result.pages})"
            )
        cursor = page.records[-1].id
        if not cursor:
            raise PaginationError(f"last invoice on page {result.pages} has no id")
        logger.info("Next page starting after: %s", cursor)

    return result
