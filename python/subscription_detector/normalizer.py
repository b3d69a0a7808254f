"""
Description Normalizer Module

Reduces raw statement descriptions to a grouping key, so that
"SQ *NETFLIX.COM 866-579-7172 CA" and "NETFLIX.COM *8329" land in one group.
"""

import logging
import re
from functools import lru_cache
from pathlib import Path

from .config import NormalizerRules, load_normalizer_rules, resolve_config_dir

logger = logging.getLogger(__name__)

# Stage 1: pending and authorization-hold markers
_LEADING_PUNCT = re.compile(r"^[\s*#\-:]+")
_PENDING_PREFIX = re.compile(r"^(?:CHECKCARD\s+POSTING\s+)?PENDING\b[\s*:\-]*")
_AUTH_HOLD_PREFIX = re.compile(
    r"^(?:AUTH(?:ORIZATION)?\s+HOLD|TEMP(?:ORARY)?\s+AUTH(?:ORIZATION)?)\b[\s*:\-]*"
)
_PENDING_SUFFIX = re.compile(r"[\s\-]*\(?\bPENDING\)?$")

# Stage 2: "UTILITIES: CITY WATER"
_CATEGORY_PREFIX = re.compile(r"^[A-Z][A-Z&,/ ]{2,14}:\s+")

# Stage 3
_SHORT_DATE = re.compile(r"\b\d{1,2}[/-]\d{1,2}(?:[/-]\d{2,4})?\b")
_MONTH_YEAR = re.compile(r"\b(?:JAN|FEB|MAR|APR|MAY|JUN|JUL|AUG|SEP|OCT|NOV|DEC)\s*\d{2,4}\b")

# Stage 6
_PHONE = re.compile(r"(?:\+?1[\s.\-]?)?\(?\b\d{3}\)?[\s.\-]?\d{3}[\s.\-]?\d{4}\b")
_RAW_PHONE = re.compile(r"\b\d{10,12}\b")

# Stage 7
_MARKED_ID = re.compile(r"[*#]\s*\d+\b")
_STORE_NUMBER = re.compile(r"\b\d{3,9}\b")
_LONG_TOKEN = re.compile(r"\b(?=[A-Z]*\d)[A-Z0-9]{15,}\b")

# Stage 8
_SEPARATORS = re.compile(r"[*.\-#_|/\\:;,]+")
_WHITESPACE = re.compile(r"\s+")


def _collapse_separators(text: str) -> str:
    return _WHITESPACE.sub(" ", _SEPARATORS.sub(" ", text)).strip()


class DescriptionNormalizer:
    """Turns raw merchant text into a stable grouping key."""

    MIN_KEY_LENGTH = 3

    # Cleaning repeats until nothing changes; this bounds pathological input
    MAX_PASSES = 8

    def __init__(
        self,
        config_dir: Path | str | None = None,
        rules: NormalizerRules | None = None,
    ):
        """Initialize the normalizer.

        Args:
            config_dir: Path to configuration directory
            rules: Preloaded rules, overriding config_dir
        """
        self.rules = rules or load_normalizer_rules(config_dir)
        self._compile_rules()

    def _compile_rules(self) -> None:
        rules = self.rules

        self._processor_prefix = None
        if rules.processor_prefixes:
            names = "|".join(re.escape(p) for p in rules.processor_prefixes)
            self._processor_prefix = re.compile(rf"^(?:{names})\s*\*\s*")

        self._wallet_prefix = None
        if rules.wallet_prefixes:
            names = "|".join(re.escape(p) for p in rules.wallet_prefixes)
            self._wallet_prefix = re.compile(rf"^(?:{names})\b\s*\*?\s*")

        self._noise = None
        if rules.noise_tokens:
            tokens = "|".join(re.escape(t) for t in rules.noise_tokens)
            self._noise = re.compile(rf"\b(?:{tokens})\b")

        self._domain_suffix = None
        if rules.domain_suffixes:
            suffixes = "|".join(
                re.escape(s) for s in sorted(rules.domain_suffixes, key=len, reverse=True)
            )
            self._domain_suffix = re.compile(rf"(?:{suffixes})\b")

    def normalize(self, description: str | None) -> str:
        """Normalize a statement description.

        Args:
            description: Raw description text

        Returns:
            Grouping key; the uppercased input when cleaning leaves too little
        """
        raw = (description or "").upper().strip()
        if not raw:
            return raw

        override = self._override(raw, _collapse_separators(raw))
        if override:
            return override

        clean = raw
        for _ in range(self.MAX_PASSES):
            cleaned = self._clean(clean)
            if cleaned == clean:
                break
            clean = cleaned

        # Cleaning can expose a trigger the raw text hid, e.g. "YOUTUBE 12/01 TV"
        override = self._override(clean)
        if override:
            return override

        if len(clean) < self.MIN_KEY_LENGTH:
            logger.debug(f"Normalizing {raw!r} left {clean!r}; keeping raw text")
            return raw

        return clean

    def _override(self, *texts: str) -> str | None:
        """First override whose pattern matches any of the given forms."""
        for pattern, name in self.rules.overrides:
            if any(pattern.search(text) for text in texts):
                return name
        return None

    def _clean(self, text: str) -> str:
        text = self._strip_markers(text)
        text = _CATEGORY_PREFIX.sub("", text)
        text = _SHORT_DATE.sub(" ", text)
        text = _MONTH_YEAR.sub(" ", text)
        if self._noise:
            text = self._noise.sub(" ", text)
        text = self._strip_location(text)
        text = _PHONE.sub(" ", text)
        text = _RAW_PHONE.sub(" ", text)
        text = _MARKED_ID.sub(" ", text)
        text = _STORE_NUMBER.sub(" ", text)
        text = _LONG_TOKEN.sub(" ", text)
        if self._domain_suffix:
            text = self._domain_suffix.sub("", text)
        text = _SEPARATORS.sub(" ", text)
        return _WHITESPACE.sub(" ", text).strip()

    def _strip_markers(self, text: str) -> str:
        """Strip pending markers, then payment-processor prefixes."""
        while True:
            before = text
            text = _LEADING_PUNCT.sub("", text)
            text = _PENDING_PREFIX.sub("", text)
            text = _AUTH_HOLD_PREFIX.sub("", text)
            text = _PENDING_SUFFIX.sub("", text)
            if text == before:
                break

        if self._processor_prefix:
            text = self._processor_prefix.sub("", text)
        if self._wallet_prefix:
            text = self._wallet_prefix.sub("", text)
        return text

    def _strip_location(self, text: str) -> str:
        """Strip a trailing "CITY ST" suffix, never the only merchant word."""
        words = text.split()
        if len(words) < 2 or words[-1] not in self.rules.state_codes:
            return text

        words = words[:-1]
        remaining = " ".join(words)

        for city in self.rules.multi_word_cities:
            if remaining.endswith(" " + city):
                return remaining[: -len(city)].strip()

        if len(words) >= 2:
            words = words[:-1]
        return " ".join(words)


@lru_cache(maxsize=None)
def _default_normalizer(config_dir: Path) -> DescriptionNormalizer:
    return DescriptionNormalizer(config_dir=config_dir)


def get_normalizer(config_dir: Path | str | None = None) -> DescriptionNormalizer:
    """Shared normalizer for a config directory."""
    return _default_normalizer(resolve_config_dir(config_dir))


def normalize_description(description: str | None, config_dir: Path | str | None = None) -> str:
    """Normalize a description with the shared normalizer."""
    return get_normalizer(config_dir).normalize(description)
