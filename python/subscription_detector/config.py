"""
Detection Rules Configuration

Loads the reference tables in config/detection_rules.yaml into immutable
dataclasses, once per config directory.
"""

import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = Path(__file__).parent.parent.parent / "config"

RULES_FILE = "detection_rules.yaml"


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """Return the absolute config directory, defaulting to the project config/."""
    return (Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR).resolve()


def load_yaml(path: Path) -> dict:
    """Read a YAML mapping; a missing file yields an empty mapping.

    Malformed YAML raises yaml.YAMLError.
    """
    if not path.exists():
        logger.warning(f"Config file not found: {path}")
        return {}

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f)

    return data or {}


@dataclass(frozen=True)
class NormalizerRules:
    """Tables used by the description normalizer."""

    processor_prefixes: tuple[str, ...] = ()
    wallet_prefixes: tuple[str, ...] = ()
    noise_tokens: tuple[str, ...] = ()
    domain_suffixes: tuple[str, ...] = ()
    state_codes: frozenset[str] = frozenset()
    multi_word_cities: tuple[str, ...] = ()
    overrides: tuple[tuple[re.Pattern, str], ...] = ()


@dataclass(frozen=True)
class DetectorRules:
    """Tables used by the recurring-charge detector."""

    blacklist: tuple[str, ...] = ()


def _upper_tuple(values) -> tuple[str, ...]:
    return tuple(str(v).upper() for v in values or [])


@lru_cache(maxsize=None)
def _load_rules(config_dir: Path) -> tuple[NormalizerRules, DetectorRules]:
    data = load_yaml(config_dir / RULES_FILE)
    normalizer = data.get("normalizer") or {}
    detector = data.get("detector") or {}

    # Longest first so SALT LAKE CITY is tried before shorter names
    cities = sorted(_upper_tuple(normalizer.get("multi_word_cities")), key=len, reverse=True)

    overrides = tuple(
        (re.compile(entry["pattern"], re.IGNORECASE), str(entry["name"]).upper())
        for entry in normalizer.get("overrides") or []
    )

    normalizer_rules = NormalizerRules(
        # Longest first so SQUARE wins over SQ
        processor_prefixes=tuple(
            sorted(_upper_tuple(normalizer.get("processor_prefixes")), key=len, reverse=True)
        ),
        wallet_prefixes=_upper_tuple(normalizer.get("wallet_prefixes")),
        noise_tokens=_upper_tuple(normalizer.get("noise_tokens")),
        domain_suffixes=_upper_tuple(normalizer.get("domain_suffixes")),
        state_codes=frozenset(_upper_tuple(normalizer.get("state_codes"))),
        multi_word_cities=tuple(cities),
        overrides=overrides,
    )
    detector_rules = DetectorRules(blacklist=_upper_tuple(detector.get("blacklist")))

    logger.debug(
        f"Loaded detection rules from {config_dir}: "
        f"{len(overrides)} overrides, {len(detector_rules.blacklist)} blacklist entries"
    )
    return normalizer_rules, detector_rules


def load_normalizer_rules(config_dir: Path | str | None = None) -> NormalizerRules:
    return _load_rules(resolve_config_dir(config_dir))[0]


def load_detector_rules(config_dir: Path | str | None = None) -> DetectorRules:
    return _load_rules(resolve_config_dir(config_dir))[1]
