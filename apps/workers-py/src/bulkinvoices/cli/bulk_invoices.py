#!/usr/bin/env python3
"""
bulk_invoices.py
================

Download every Stripe invoice PDF created on or after a given date.

Pages through GET /v1/invoices (created[gte] = local midnight of --start-date,
optional status filter, starting_after cursor) and saves each invoice that
already has a generated PDF as <output-dir>/<invoice-id>.pdf, overwriting any
earlier copy. Invoices whose PDF is not ready yet are skipped.

Authentication
--------------
The API key comes from -s, else STRIPE_TEST_API_KEY / STRIPE_LIVE_API_KEY
(depending on -T), else STRIPE_API_KEY. It is read once at startup.

Examples
--------
    python -m bulkinvoices.cli.bulk_invoices -d 2024-01-01 -o ~/Downloads/invoices

    # preview only, sandbox data, paid invoices, small pages
    python -m bulkinvoices.cli.bulk_invoices \
      -d 2024-01-01 -o out -T -n -t paid -l 20 --debug
"""

from __future__ import annotations

import argparse
import logging
import math
import re
import sys
from typing import List, Optional

import requests

from ..adapters.stripe_api import (
    INVOICE_STATUSES,
    StripeAPIError,
    StripeClient,
    resolve_api_key,
)
from ..domain import dates as domain_dates
from ..domain import files as domain_files
from ..usecases.fetch_invoices import (
    MAX_PAGE_SIZE,
    FetchConfig,
    PaginationError,
    fetch_invoices,
    validate_limit,
)

# -h alone or at the end of a cluster of switch flags (-nh, -nTh)
_SHORT_HELP = re.compile(r"^-[nT]*h")

EXAMPLE = "Example:\n  %(prog)s -d 2024-01-01 -o ~/Downloads/invoices"


class UsageError(Exception):
    pass


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str):  # type: ignore[override]
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    ap = _ArgumentParser(
        prog="bulk-stripe-invoices",
        description="Download every Stripe invoice PDF created on or after a given date.",
        epilog=EXAMPLE,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    req = ap.add_argument_group("required")
    req.add_argument(
        "-d", "--start-date", required=True, metavar="DATE",
        help="Inclusive start date in YYYY-MM-DD format.",
    )
    req.add_argument(
        "-o", "--output-dir", required=True, metavar="DIR",
        help="Directory to save PDFs (created if it doesn't exist).",
    )
    ap.add_argument(
        "-s", "--secret", metavar="SECRET",
        help="Stripe secret key (overrides STRIPE_API_KEY).",
    )
    ap.add_argument(
        "-l", "--limit", default=str(MAX_PAGE_SIZE), metavar="LIMIT",
        help=f"Page size per request (default {MAX_PAGE_SIZE}, max {MAX_PAGE_SIZE}).",
    )
    ap.add_argument(
        "-t", "--status", choices=INVOICE_STATUSES, metavar="STATUS",
        help="Invoice status filter (" + " | ".join(INVOICE_STATUSES) + "). Defaults to all.",
    )
    ap.add_argument(
        "-n", "--dry-run", action="store_true",
        help="Dry-run - list invoices but don't download.",
    )
    ap.add_argument(
        "-T", "--test", action="store_true",
        help="Use test mode (default: live mode).",
    )
    ap.add_argument(
        "--fail-fast", action="store_true",
        help="Abort on the first failed download (default: log and continue).",
    )
    ap.add_argument(
        "--timeout", metavar="SECONDS",
        help="HTTP timeout per request (default: none).",
    )
    ap.add_argument("--debug", action="store_true", help="Verbose logging.")
    return ap


def _parse_limit(raw: str) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValueError(f"Page size must be an integer, got {raw!r}") from None
    return validate_limit(value)


def _parse_timeout(raw: Optional[str]) -> Optional[float]:
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"Timeout must be a number of seconds, got {raw!r}") from None
    if not math.isfinite(value) or value <= 0:
        raise ValueError(f"Timeout must be a positive finite number, got {raw!r}")
    return value


def _is_help_request(token: str) -> bool:
    if token.startswith("--"):
        return len(token) >= 3 and "--help".startswith(token)
    return bool(_SHORT_HELP.match(token))


def main(argv: Optional[List[str]] = None) -> int:
    argv = sys.argv[1:] if argv is None else list(argv)
    ap = build_parser()

    # help wins over every other check
    if any(_is_help_request(a) for a in argv):
        ap.print_help()
        return 0
    try:
        args = ap.parse_args(argv)
    except UsageError as e:
        ap.print_help(sys.stderr)
        print(f"\nError: {e}", file=sys.stderr)
        return 1

    logging.basicConfig(level=logging.DEBUG if args.debug else logging.INFO, format="%(message)s")

    # ---------- pre-flight: nothing touches disk or network before this passes ----------
    try:
        limit = _parse_limit(args.limit)
        timeout = _parse_timeout(args.timeout)
        start_ts = domain_dates.local_midnight_epoch(args.start_date)
        api_key = resolve_api_key(args.secret, args.test)
    except ValueError as e:
        print(f"❌  {e}", file=sys.stderr)
        return 1

    config = FetchConfig(
        start_ts=start_ts,
        out_dir=args.output_dir,
        limit=limit,
        status=args.status,
        dry_run=args.dry_run,
        test_mode=args.test,
        fail_fast=args.fail_fast,
    )

    if not config.dry_run:
        try:
            domain_files.ensure_dir(config.out_dir)
        except OSError as e:
            print(f"❌  Cannot create output directory {config.out_dir}: {e}", file=sys.stderr)
            return 1

    logging.info("▶ Downloading invoices created on/after %s …", args.start_date)
    if config.status:
        logging.info("  • status filter: %s", config.status)
    if config.dry_run:
        logging.info("  • dry-run mode")
    if config.test_mode:
        logging.info("  • test mode")

    client = StripeClient(api_key, timeout=timeout)
    try:
        result = fetch_invoices(client, config)
    except StripeAPIError as e:
        logging.error("[ERROR] invoice listing failed: %s", e)
        return 1
    except PaginationError as e:
        logging.error("[ERROR] pagination stopped: %s", e)
        return 1
    except (requests.RequestException, OSError) as e:
        logging.error("[ERROR] %s", e)
        return 1

    logging.info(
        "✔ Finished. pages=%d invoices=%d downloaded=%d previewed=%d skipped=%d failed=%d",
        result.pages,
        result.seen,
        result.downloaded,
        result.previewed,
        result.skipped,
        result.failed,
    )
    if result.attempted and not result.downloaded:
        logging.error("[ERROR] every download failed")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
