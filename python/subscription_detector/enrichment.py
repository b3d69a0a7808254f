"""
Subscription Enrichment

Merges provider display data (pretty name, logo, cancellation help) into
detected candidates.
"""

from dataclasses import dataclass

from .detector import SubscriptionCandidate
from .merchant_lookup import ProviderCatalog

FALLBACK_INSTRUCTIONS = "No specific cancellation info found. Try searching Google."


@dataclass(frozen=True)
class EnrichedSubscription:
    """A candidate plus whatever the provider catalog knows about it."""

    candidate: SubscriptionCandidate
    display_name: str
    provider_id: str | None = None
    logo: str | None = None
    cancel_url: str | None = None
    instructions: str | None = None

    @property
    def is_known(self) -> bool:
        return self.provider_id is not None

    def to_dict(self) -> dict:
        data = self.candidate.to_dict()
        data.update({
            "display_name": self.display_name,
            "provider_id": self.provider_id,
            "logo": self.logo,
            "cancel_url": self.cancel_url,
            "instructions": self.instructions,
        })
        return data


def enrich_subscription(
    candidate: SubscriptionCandidate, catalog: ProviderCatalog
) -> EnrichedSubscription:
    """Attach provider display data to a candidate.

    Args:
        candidate: Detected subscription
        catalog: Known provider catalog

    Returns:
        EnrichedSubscription; unknown merchants keep their normalized name
    """
    found = catalog.find_provider(candidate.name)
    if found is None:
        return EnrichedSubscription(
            candidate=candidate,
            display_name=candidate.name,
            instructions=FALLBACK_INSTRUCTIONS,
        )

    provider, _ = found
    return EnrichedSubscription(
        candidate=candidate,
        display_name=provider.name,
        provider_id=provider.id,
        logo=provider.logo,
        cancel_url=provider.cancel_url,
        instructions=provider.instructions or FALLBACK_INSTRUCTIONS,
    )
