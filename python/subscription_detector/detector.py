"""
Recurring Charge Detector Module

Finds subscription-like charges in a statement: transactions are grouped by
normalized description, refunds cancel their charges, each group is split into
price clusters and every cluster's payment interval decides its frequency and
confidence. Known providers and published price plans adjust the verdict.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from pathlib import Path

from dateutil.relativedelta import relativedelta

from statement_parser.models import Transaction

from .config import DetectorRules, load_detector_rules
from .merchant_lookup import (
    PriceCheck,
    PricePlanCatalog,
    ProviderCatalog,
    get_price_catalog,
    get_provider_catalog,
)
from .normalizer import DescriptionNormalizer, get_normalizer

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


class Frequency(Enum):
    MONTHLY = "Monthly"
    YEARLY = "Yearly"
    WEEKLY = "Weekly"
    IRREGULAR = "Irregular"


class Confidence(Enum):
    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


CADENCE = {
    Frequency.WEEKLY: relativedelta(weeks=1),
    Frequency.MONTHLY: relativedelta(months=1),
    Frequency.YEARLY: relativedelta(years=1),
}


@dataclass(frozen=True)
class SubscriptionCandidate:
    """A detected recurring charge."""

    name: str
    average_amount: Decimal
    frequency: Frequency
    confidence: Confidence
    transactions: tuple[Transaction, ...]

    @property
    def candidate_id(self) -> str:
        return f"{self.name}-{self.average_amount:.2f}"

    @property
    def last_payment_date(self) -> date:
        return max(t.date for t in self.transactions)

    @property
    def next_payment_date(self) -> date | None:
        """Last payment plus one billing period."""
        cadence = CADENCE.get(self.frequency)
        if cadence is None:
            return None
        return self.last_payment_date + cadence

    def to_dict(self) -> dict:
        next_payment = self.next_payment_date
        return {
            "id": self.candidate_id,
            "name": self.name,
            "average_amount": float(self.average_amount),
            "frequency": self.frequency.value,
            "confidence": self.confidence.value,
            "next_payment_date": next_payment.isoformat() if next_payment else None,
            "transaction_count": len(self.transactions),
            "transactions": [t.to_dict() for t in self.transactions],
        }


@dataclass
class DetectionReport:
    """Candidates plus the reason every other group was dropped."""

    candidates: list[SubscriptionCandidate] = field(default_factory=list)
    rejected: dict[str, str] = field(default_factory=dict)
    stats: dict = field(default_factory=dict)


class RecurringChargeDetector:
    """Detects recurring subscription charges in statement transactions.

    Transactions may carry their statement's own sign: each source whose
    amounts are mostly negative is flipped first, so charges read positive and
    refunds negative.
    """

    # Tolerances
    REFUND_TOLERANCE = Decimal("0.01")  # charge + refund within a cent of zero
    REFUND_WINDOW_DAYS = 30
    CLUSTER_TOLERANCE = Decimal("1.00")  # same plan price
    KNOWN_INTERVAL_MULTIPLIER = 3.0  # known gaps within [median/3, median*3]
    UNKNOWN_INTERVAL_TOLERANCE = 0.5  # unknown gaps within 50% of the mean

    # Interval bands in days
    WEEKLY_DAYS = (6, 8)
    MONTHLY_DAYS = (20, 70)
    MONTHLY_IDEAL_DAYS = (25, 35)
    YEARLY_DAYS = (360, 370)
    YEARLY_MIN_SPAN_DAYS = 300

    MIN_UNKNOWN_KEY_LENGTH = 4
    SHOPPING_CLUSTER_COUNT = 3
    PROMOTION_MIN_TRANSACTIONS = 3

    def __init__(
        self,
        config_dir: Path | str | None = None,
        normalizer: DescriptionNormalizer | None = None,
        providers: ProviderCatalog | None = None,
        prices: PricePlanCatalog | None = None,
        rules: DetectorRules | None = None,
    ):
        """Initialize the detector.

        Args:
            config_dir: Path to configuration directory
            normalizer: Description normalizer (shared one if omitted)
            providers: Known provider catalog (shared one if omitted)
            prices: Price plan catalog (shared one if omitted)
            rules: Detector tables (loaded from config if omitted)
        """
        self.normalizer = normalizer or get_normalizer(config_dir)
        self.providers = providers or get_provider_catalog(config_dir)
        self.prices = prices or get_price_catalog(config_dir)
        self.rules = rules or load_detector_rules(config_dir)

    def detect(self, transactions: list[Transaction]) -> list[SubscriptionCandidate]:
        """Detect subscription candidates.

        Args:
            transactions: Concatenated, deduplicated transactions

        Returns:
            Candidates in the order their merchants first appear
        """
        return self.analyze(transactions).candidates

    def analyze(self, transactions: list[Transaction]) -> DetectionReport:
        """Detect candidates and record why other groups were dropped."""
        report = DetectionReport()

        groups: dict[str, list[Transaction]] = {}
        for txn in orient_by_source(transactions):
            key = self.normalizer.normalize(txn.description)
            groups.setdefault(key, []).append(txn)

        for key, group in groups.items():
            report.candidates.extend(self._analyze_group(key, group, report))

        report.stats = {
            "total_transactions": len(transactions),
            "groups": len(groups),
            "candidates": len(report.candidates),
            "rejected_groups": len(report.rejected),
        }
        logger.info(
            f"Detected {len(report.candidates)} subscriptions in {len(groups)} merchant groups"
        )
        return report

    def _reject(self, report: DetectionReport, key: str, reason: str) -> list:
        logger.debug(f"Rejected {key!r}: {reason}")
        report.rejected.setdefault(key, reason)
        return []

    def _analyze_group(
        self, key: str, group: list[Transaction], report: DetectionReport
    ) -> list[SubscriptionCandidate]:
        charges = self.cancel_refunds(group)
        if not charges:
            return self._reject(report, key, "no charges left after refunds")

        is_known = self.providers.match_subscription(key) is not None

        if not is_known:
            if len(charges) < 2 and len(key) < self.MIN_UNKNOWN_KEY_LENGTH:
                return self._reject(report, key, "single charge with a short name")
            if self.is_blacklisted(key):
                return self._reject(report, key, "merchant is blacklisted")

        clusters = self.cluster_by_price(charges)

        if len(clusters) > 1 and self.prices.should_consolidate(key):
            return self._consolidate(key, charges, clusters, report)

        if len(clusters) >= self.SHOPPING_CLUSTER_COUNT:
            return self._reject(report, key, f"{len(clusters)} price levels look like shopping")

        candidates = []
        for cluster in clusters:
            candidate = self._analyze_cluster(key, cluster, is_known)
            if candidate is not None:
                candidates.append(candidate)

        if not candidates:
            self._reject(report, key, "no cluster has a regular interval")
        return candidates

    def _consolidate(
        self,
        key: str,
        charges: list[Transaction],
        clusters: list[list[Transaction]],
        report: DetectionReport,
    ) -> list[SubscriptionCandidate]:
        """One candidate at the highest price for providers whose price drifts."""
        highest = max(t.amount for t in charges)

        if self.prices.validate_price(key, highest) is PriceCheck.REJECT:
            return self._reject(report, key, f"consolidated price {highest} rejected")

        cluster = next(c for c in clusters if any(t.amount == highest for t in c))
        return [
            SubscriptionCandidate(
                name=key,
                average_amount=highest.quantize(CENTS, rounding=ROUND_HALF_UP),
                frequency=Frequency.MONTHLY,
                confidence=Confidence.HIGH,
                transactions=tuple(cluster),
            )
        ]

    def _analyze_cluster(
        self, key: str, cluster: list[Transaction], is_known: bool
    ) -> SubscriptionCandidate | None:
        if len(cluster) == 1:
            if not is_known:
                return None
            frequency, confidence = Frequency.YEARLY, Confidence.LOW
        else:
            gaps = self.payment_gaps(cluster)
            if is_known:
                frequency, confidence = self._classify_known(gaps)
            else:
                classified = self._classify_unknown(gaps)
                if classified is None:
                    logger.debug(f"{key!r}: irregular gaps {gaps}")
                    return None
                frequency, confidence = classified

        average = (sum(t.amount for t in cluster) / len(cluster)).quantize(
            CENTS, rounding=ROUND_HALF_UP
        )

        price_check = self.prices.validate_price(key, average)
        if price_check is PriceCheck.REJECT:
            logger.debug(f"{key!r}: price {average} rejected")
            return None
        if price_check is PriceCheck.MATCH:
            confidence = Confidence.HIGH

        if frequency is Frequency.IRREGULAR:
            return None

        if len(cluster) >= self.PROMOTION_MIN_TRANSACTIONS:
            confidence = Confidence.HIGH

        return SubscriptionCandidate(
            name=key,
            average_amount=average,
            frequency=frequency,
            confidence=confidence,
            transactions=tuple(cluster),
        )

    def _classify_known(self, gaps: list[int]) -> tuple[Frequency, Confidence]:
        median = sorted(gaps)[len(gaps) // 2]
        low = median / self.KNOWN_INTERVAL_MULTIPLIER
        high = median * self.KNOWN_INTERVAL_MULTIPLIER
        consistent = all(low <= gap <= high for gap in gaps)

        if _within(median, self.WEEKLY_DAYS):
            frequency, confidence = Frequency.WEEKLY, Confidence.HIGH
        elif _within(median, self.MONTHLY_DAYS):
            frequency = Frequency.MONTHLY
            if any(_within(gap, self.MONTHLY_IDEAL_DAYS) for gap in gaps):
                confidence = Confidence.HIGH
            else:
                confidence = Confidence.MEDIUM
        elif _within(median, self.YEARLY_DAYS):
            frequency, confidence = Frequency.YEARLY, Confidence.HIGH
        else:
            frequency, confidence = Frequency.IRREGULAR, Confidence.LOW

        if not consistent and confidence is Confidence.HIGH:
            confidence = Confidence.MEDIUM
        return frequency, confidence

    def _classify_unknown(self, gaps: list[int]) -> tuple[Frequency, Confidence] | None:
        mean = sum(gaps) / len(gaps)
        if mean <= 0:
            return None

        limit = mean * self.UNKNOWN_INTERVAL_TOLERANCE
        if any(abs(gap - mean) >= limit for gap in gaps):
            return None

        median = sorted(gaps)[len(gaps) // 2]
        span = sum(gaps)

        if _within(median, self.MONTHLY_DAYS) and any(
            _within(gap, self.MONTHLY_IDEAL_DAYS) for gap in gaps
        ):
            frequency = Frequency.MONTHLY
        elif _within(median, self.WEEKLY_DAYS) and any(
            _within(gap, self.WEEKLY_DAYS) for gap in gaps
        ):
            frequency = Frequency.WEEKLY
        elif _within(median, self.YEARLY_DAYS) and span > self.YEARLY_MIN_SPAN_DAYS:
            frequency = Frequency.YEARLY
        else:
            frequency = Frequency.IRREGULAR

        return frequency, Confidence.LOW

    def cancel_refunds(self, group: list[Transaction]) -> list[Transaction]:
        """Remove charge/refund pairs and return the remaining charges.

        Each refund cancels the closest-dated unused charge of the same size
        within the refund window. Unpaired refunds and zero amounts are dropped.

        Args:
            group: Transactions of one merchant

        Returns:
            Remaining charges in date order, amounts positive
        """
        ordered = sorted(group, key=lambda t: t.date)
        charges = [t for t in ordered if t.amount > 0]
        refunds = [t for t in ordered if t.amount < 0]

        consumed: set[int] = set()
        for refund in refunds:
            best_index = None
            best_days = None
            for index, charge in enumerate(charges):
                if index in consumed:
                    continue
                if abs(charge.amount + refund.amount) > self.REFUND_TOLERANCE:
                    continue
                days = abs((charge.date - refund.date).days)
                if days > self.REFUND_WINDOW_DAYS:
                    continue
                if best_days is None or days < best_days:
                    best_index, best_days = index, days

            if best_index is not None:
                consumed.add(best_index)

        return [c for index, c in enumerate(charges) if index not in consumed]

    def cluster_by_price(self, charges: list[Transaction]) -> list[list[Transaction]]:
        """Split charges into date-ordered clusters of near-identical amounts.

        A charge joins the first cluster whose members are all within the
        cluster tolerance of it.
        """
        clusters: list[list[Transaction]] = []
        for txn in sorted(charges, key=lambda t: t.date):
            for cluster in clusters:
                if all(abs(txn.amount - m.amount) < self.CLUSTER_TOLERANCE for m in cluster):
                    cluster.append(txn)
                    break
            else:
                clusters.append([txn])
        return clusters

    @staticmethod
    def payment_gaps(cluster: list[Transaction]) -> list[int]:
        """Days between successive payments."""
        dates = sorted(t.date for t in cluster)
        return [(later - earlier).days for earlier, later in zip(dates, dates[1:])]

    def is_blacklisted(self, key: str) -> bool:
        padded = f" {key} "
        compact = key.replace(" ", "")
        return any(entry in padded or entry in compact for entry in self.rules.blacklist)


def _within(value: float, band: tuple[int, int]) -> bool:
    return band[0] <= value <= band[1]


def _mostly_negative(transactions: list[Transaction]) -> bool:
    negatives = sum(1 for t in transactions if t.amount < 0)
    return negatives * 2 > len(transactions)


def orient_charges(transactions: list[Transaction]) -> list[Transaction]:
    """Return one file's transactions with charges positive.

    Bank exports print money leaving the account as negative; when most of a
    file's transactions are negative the whole file is flipped.
    """
    if _mostly_negative(transactions):
        return [t.with_amount(-t.amount) for t in transactions]
    return list(transactions)


def orient_by_source(transactions: list[Transaction]) -> list[Transaction]:
    """Apply orient_charges to each source separately, keeping input order."""
    by_source: dict[str | None, list[Transaction]] = {}
    for txn in transactions:
        by_source.setdefault(txn.source, []).append(txn)

    flipped = {source for source, group in by_source.items() if _mostly_negative(group)}
    if flipped:
        logger.debug(f"Flipped amount signs for sources {sorted(map(str, flipped))}")
    return [t.with_amount(-t.amount) if t.source in flipped else t for t in transactions]
