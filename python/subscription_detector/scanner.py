"""
Statement Scanner

Caller-side glue: loads statement files off the event loop, lines up their
sign conventions, removes overlap between files and runs detection.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from pathlib import Path

from statement_parser import Transaction, detect_file_type, parse_statement_result

from .detector import RecurringChargeDetector, orient_charges
from .enrichment import EnrichedSubscription, enrich_subscription
from .merchant_lookup import get_provider_catalog

logger = logging.getLogger(__name__)

# Description characters compared when deduplicating overlapping statements
DEDUPE_PREFIX_LENGTH = 20


@dataclass
class LoadResult:
    """Result of loading one statement file."""

    path: Path
    file_type: str
    transactions: list[Transaction] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class ScanResult:
    """Result of scanning a set of statements."""

    subscriptions: list[EnrichedSubscription] = field(default_factory=list)
    loads: list[LoadResult] = field(default_factory=list)
    transactions: list[Transaction] = field(default_factory=list)
    stats: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "subscriptions": [s.to_dict() for s in self.subscriptions],
            "files": [
                {
                    "path": str(load.path),
                    "file_type": load.file_type,
                    "transactions": len(load.transactions),
                    "errors": load.errors,
                }
                for load in self.loads
            ],
            "stats": self.stats,
        }


def _load_sync(path: Path, today: date | None) -> LoadResult:
    try:
        content = path.read_bytes()
    except OSError as e:
        logger.warning(f"Cannot read statement {path}: {e}")
        return LoadResult(path=path, file_type="unknown", errors=[f"Cannot read file: {e}"])

    file_type = detect_file_type(path.name, content)
    result = parse_statement_result(content, file_type, source=path.name, today=today)
    return LoadResult(
        path=path,
        file_type=file_type,
        transactions=result.transactions,
        errors=result.errors,
        warnings=result.warnings,
    )


async def load_statement(path: Path | str, today: date | None = None) -> LoadResult:
    """Read and parse one statement without blocking the event loop.

    Args:
        path: Statement file path
        today: Reference date for year rollback

    Returns:
        LoadResult; unreadable files carry errors instead of raising
    """
    return await asyncio.to_thread(_load_sync, Path(path), today)


async def load_statements(
    paths: list[Path | str],
    concurrent: bool = True,
    today: date | None = None,
) -> list[LoadResult]:
    """Load several statements, in input order.

    Args:
        paths: Statement file paths
        concurrent: Parse files in parallel worker threads
        today: Reference date for year rollback

    Returns:
        One LoadResult per path
    """
    if concurrent:
        return list(await asyncio.gather(*(load_statement(p, today) for p in paths)))

    results = []
    for path in paths:
        results.append(await load_statement(path, today))
    return results


def dedupe_transactions(transactions: list[Transaction]) -> list[Transaction]:
    """Drop repeats of the same charge from overlapping statements.

    Two transactions are the same when date, amount and the first characters
    of the uppercased description agree. The first occurrence is kept.
    """
    seen: set[tuple] = set()
    unique = []
    for txn in transactions:
        key = (
            txn.date,
            txn.amount.quantize(Decimal("0.01")),
            txn.description[:DEDUPE_PREFIX_LENGTH].upper().strip(),
        )
        if key in seen:
            continue
        seen.add(key)
        unique.append(txn)

    if len(unique) < len(transactions):
        logger.info(f"Removed {len(transactions) - len(unique)} duplicate transactions")
    return unique


def _candidate_key(subscription: EnrichedSubscription) -> tuple[str, int]:
    amount = subscription.candidate.average_amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return subscription.candidate.name, int(amount)


async def scan_statements(
    paths: list[Path | str],
    config_dir: Path | str | None = None,
    concurrent: bool = True,
    today: date | None = None,
) -> ScanResult:
    """Load statements and detect subscriptions across all of them.

    Args:
        paths: Statement file paths
        config_dir: Path to configuration directory
        concurrent: Parse files in parallel worker threads
        today: Reference date for year rollback

    Returns:
        ScanResult
    """
    result = ScanResult()
    result.loads = await load_statements(paths, concurrent=concurrent, today=today)

    combined: list[Transaction] = []
    for load in result.loads:
        for error in load.errors:
            logger.warning(f"{load.path.name}: {error}")
        combined.extend(orient_charges(load.transactions))

    result.transactions = dedupe_transactions(combined)

    detector = RecurringChargeDetector(config_dir=config_dir)
    candidates = detector.detect(result.transactions)

    catalog = get_provider_catalog(config_dir)
    seen: set[tuple[str, int]] = set()
    for candidate in candidates:
        subscription = enrich_subscription(candidate, catalog)
        key = _candidate_key(subscription)
        if key in seen:
            continue
        seen.add(key)
        result.subscriptions.append(subscription)

    result.stats = {
        "files": len(result.loads),
        "failed_files": sum(1 for load in result.loads if not load.success),
        "transactions": len(combined),
        "unique_transactions": len(result.transactions),
        "subscriptions": len(result.subscriptions),
    }
    return result


def main():
    """Command-line entry point."""
    import argparse
    import json

    parser = argparse.ArgumentParser(description="Find recurring subscriptions in bank statements")
    parser.add_argument("paths", nargs="+", help="CSV or PDF statement files")
    parser.add_argument("--config-dir", default=None, help="Directory with detection config YAML")
    parser.add_argument("--sequential", action="store_true", help="Parse files one at a time")
    parser.add_argument("--verbose", action="store_true", help="Log rejected merchant groups")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )

    result = asyncio.run(
        scan_statements(args.paths, config_dir=args.config_dir, concurrent=not args.sequential)
    )
    print(json.dumps(result.to_dict(), indent=2))


if __name__ == "__main__":
    main()
