"""
Merchant Lookup Module

Fast lookup of known subscription providers and their published price plans,
without any network access.
"""

import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from functools import lru_cache
from pathlib import Path

from statement_parser.models import to_decimal

from .config import load_yaml, resolve_config_dir

logger = logging.getLogger(__name__)


class RiskLevel(Enum):
    """How likely a merchant's charges are one-off purchases."""

    NEUTRAL = "NEUTRAL"
    HIGH = "HIGH"
    EXTREME = "EXTREME"


class PriceCheck(Enum):
    """Outcome of validating an amount against known plans."""

    MATCH = "MATCH"
    REJECT = "REJECT"
    NEUTRAL = "NEUTRAL"


@dataclass(frozen=True)
class Provider:
    """A known subscription provider."""

    id: str
    name: str
    keywords: tuple[str, ...]
    cancel_url: str | None = None
    instructions: str | None = None
    logo: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "keywords": list(self.keywords),
            "cancel_url": self.cancel_url,
            "instructions": self.instructions,
            "logo": self.logo,
        }


@dataclass(frozen=True)
class ProviderMatch:
    """Result of a provider lookup."""

    id: str
    name: str
    is_weak_signal: bool
    keyword: str = ""


@dataclass(frozen=True)
class PlanPrice:
    name: str
    amount: Decimal


@dataclass(frozen=True)
class PricePlan:
    """Known pricing for a merchant."""

    merchant_keywords: tuple[str, ...]
    risk_level: RiskLevel = RiskLevel.NEUTRAL
    min_amount: Decimal | None = None
    variance_permitted: bool = False
    consolidate: bool = False
    plans: tuple[PlanPrice, ...] = field(default_factory=tuple)


class ProviderCatalog:
    """Known-provider lookup using preloaded keywords."""

    CATALOG_FILE = "providers.yaml"

    # Keywords this short only match whole words ("HULU" must not match "SHULUK")
    WORD_BOUNDARY_MAX_LENGTH = 5

    # A match on a keyword this short ("HBO", "MAX") is a weak signal
    WEAK_KEYWORD_MAX_LENGTH = 3

    def __init__(self, config_dir: Path | str | None = None):
        """Initialize the provider catalog.

        Args:
            config_dir: Path to configuration directory
        """
        self.config_dir = resolve_config_dir(config_dir)
        self._providers: list[Provider] = []
        self._by_id: dict[str, Provider] = {}
        self._load_providers()

    def _load_providers(self) -> None:
        """Load providers from config file."""
        data = load_yaml(self.config_dir / self.CATALOG_FILE)

        for entry in data.get("providers") or []:
            provider = Provider(
                id=str(entry["id"]),
                name=str(entry["name"]),
                keywords=tuple(str(k).upper() for k in entry.get("keywords") or []),
                cancel_url=entry.get("cancel_url"),
                instructions=entry.get("instructions"),
                logo=entry.get("logo"),
            )
            self._providers.append(provider)
            self._by_id[provider.id] = provider

        logger.info(f"Loaded {len(self._providers)} subscription providers")

    @property
    def providers(self) -> list[Provider]:
        return list(self._providers)

    def __len__(self) -> int:
        return len(self._providers)

    def get(self, provider_id: str) -> Provider | None:
        return self._by_id.get(provider_id)

    def _keyword_matches(self, keyword: str, text: str) -> bool:
        if len(keyword) <= self.WORD_BOUNDARY_MAX_LENGTH:
            return re.search(rf"(?<![A-Z0-9]){re.escape(keyword)}(?![A-Z0-9])", text) is not None
        return keyword in text

    def find_provider(self, description: str) -> tuple[Provider, str] | None:
        """Return the first provider with a matching keyword, and that keyword."""
        if not description:
            return None

        text = description.upper()
        for provider in self._providers:
            for keyword in provider.keywords:
                if self._keyword_matches(keyword, text):
                    return provider, keyword
        return None

    def match_subscription(self, description: str) -> ProviderMatch | None:
        """Match a normalized description against the known providers.

        Args:
            description: Normalized description

        Returns:
            ProviderMatch if a provider keyword matches, None otherwise
        """
        found = self.find_provider(description)
        if found is None:
            return None

        provider, keyword = found
        return ProviderMatch(
            id=provider.id,
            name=provider.name,
            is_weak_signal=len(keyword) <= self.WEAK_KEYWORD_MAX_LENGTH,
            keyword=keyword,
        )


class PricePlanCatalog:
    """Validates charge amounts against published subscription prices."""

    CATALOG_FILE = "price_plans.yaml"

    # Distance from a published price still counted as that plan
    PLAN_TOLERANCE = Decimal("0.05")

    def __init__(self, config_dir: Path | str | None = None):
        """Initialize the price plan catalog.

        Args:
            config_dir: Path to configuration directory
        """
        self.config_dir = resolve_config_dir(config_dir)
        self._entries: list[PricePlan] = []
        self._load_plans()

    def _load_plans(self) -> None:
        data = load_yaml(self.config_dir / self.CATALOG_FILE)

        for entry in data.get("price_plans") or []:
            risk = str(entry.get("risk_level", "NEUTRAL")).upper()
            try:
                risk_level = RiskLevel(risk)
            except ValueError:
                logger.warning(f"Unknown risk level {risk!r}; treating as NEUTRAL")
                risk_level = RiskLevel.NEUTRAL

            min_amount = entry.get("min_amount")
            self._entries.append(
                PricePlan(
                    merchant_keywords=tuple(str(k).upper() for k in entry.get("merchant_keywords") or []),
                    risk_level=risk_level,
                    min_amount=to_decimal(min_amount) if min_amount is not None else None,
                    variance_permitted=bool(entry.get("variance_permitted", False)),
                    consolidate=bool(entry.get("consolidate", False)),
                    plans=tuple(
                        PlanPrice(name=str(p.get("name", "")), amount=to_decimal(p["amount"]))
                        for p in entry.get("plans") or []
                    ),
                )
            )

        logger.info(f"Loaded {len(self._entries)} price plan entries")

    @property
    def entries(self) -> list[PricePlan]:
        return list(self._entries)

    def find_entry(self, name: str) -> PricePlan | None:
        """Return the entry with the longest keyword contained in the name."""
        if not name:
            return None

        text = name.upper()
        best: PricePlan | None = None
        best_length = 0
        for entry in self._entries:
            for keyword in entry.merchant_keywords:
                if keyword in text and len(keyword) > best_length:
                    best, best_length = entry, len(keyword)
        return best

    def validate_price(self, name: str, amount) -> PriceCheck:
        """Validate an amount against the merchant's known plans.

        Args:
            name: Normalized merchant name
            amount: Charge amount (positive)

        Returns:
            MATCH for a confirmed subscription price, REJECT for a confirmed
            purchase price, NEUTRAL when there is no evidence either way
        """
        entry = self.find_entry(name)
        if entry is None:
            return PriceCheck.NEUTRAL

        amount = to_decimal(amount)

        if entry.min_amount is not None and amount < entry.min_amount:
            return PriceCheck.REJECT

        if any(abs(plan.amount - amount) <= self.PLAN_TOLERANCE for plan in entry.plans):
            return PriceCheck.MATCH

        if entry.min_amount is not None and entry.variance_permitted:
            return PriceCheck.MATCH

        if entry.risk_level in (RiskLevel.HIGH, RiskLevel.EXTREME):
            return PriceCheck.REJECT

        return PriceCheck.NEUTRAL

    def should_consolidate(self, name: str) -> bool:
        """Whether several price levels of this merchant form one subscription."""
        entry = self.find_entry(name)
        return bool(entry and entry.consolidate)


@lru_cache(maxsize=None)
def _provider_catalog(config_dir: Path) -> ProviderCatalog:
    return ProviderCatalog(config_dir)


@lru_cache(maxsize=None)
def _price_catalog(config_dir: Path) -> PricePlanCatalog:
    return PricePlanCatalog(config_dir)


def get_provider_catalog(config_dir: Path | str | None = None) -> ProviderCatalog:
    """Shared provider catalog, loaded once per config directory."""
    return _provider_catalog(resolve_config_dir(config_dir))


def get_price_catalog(config_dir: Path | str | None = None) -> PricePlanCatalog:
    """Shared price plan catalog, loaded once per config directory."""
    return _price_catalog(resolve_config_dir(config_dir))
