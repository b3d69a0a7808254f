"""
Subscription Detector Module

Normalizes statement descriptions, matches known subscription providers and
detects recurring charges with a frequency and confidence.
"""

from .config import NormalizerRules, DetectorRules, load_normalizer_rules, load_detector_rules
from .normalizer import DescriptionNormalizer, normalize_description, get_normalizer
from .merchant_lookup import (
    Provider,
    ProviderMatch,
    ProviderCatalog,
    PricePlan,
    PricePlanCatalog,
    PriceCheck,
    RiskLevel,
    get_provider_catalog,
    get_price_catalog,
)
from .detector import (
    RecurringChargeDetector,
    SubscriptionCandidate,
    DetectionReport,
    Frequency,
    Confidence,
)
from .enrichment import EnrichedSubscription, enrich_subscription
from .scanner import (
    LoadResult,
    ScanResult,
    load_statement,
    load_statements,
    dedupe_transactions,
    orient_charges,
    scan_statements,
)

__all__ = [
    # Configuration
    "NormalizerRules",
    "DetectorRules",
    "load_normalizer_rules",
    "load_detector_rules",
    # Normalization
    "DescriptionNormalizer",
    "normalize_description",
    "get_normalizer",
    # Merchant Lookup
    "Provider",
    "ProviderMatch",
    "ProviderCatalog",
    "PricePlan",
    "PricePlanCatalog",
    "PriceCheck",
    "RiskLevel",
    "get_provider_catalog",
    "get_price_catalog",
    # Detection
    "RecurringChargeDetector",
    "SubscriptionCandidate",
    "DetectionReport",
    "Frequency",
    "Confidence",
    # Enrichment
    "EnrichedSubscription",
    "enrich_subscription",
    # Scanning
    "LoadResult",
    "ScanResult",
    "load_statement",
    "load_statements",
    "dedupe_transactions",
    "orient_charges",
    "scan_statements",
]
