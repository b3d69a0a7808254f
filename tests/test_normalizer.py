"""
Description Normalizer Tests
"""

import pytest
import yaml
from pathlib import Path

import sys
sys.path.insert(0, str(Path(__file__).parent.parent / "python"))

from subscription_detector.config import NormalizerRules, load_normalizer_rules
from subscription_detector.normalizer import (
    DescriptionNormalizer,
    get_normalizer,
    normalize_description,
)


@pytest.fixture
def normalizer(config_dir):
    return DescriptionNormalizer(config_dir=config_dir)


class TestCleaningStages:
    """Tests for the individual cleaning stages."""

    @pytest.mark.parametrize("raw, expected", [
        ("SQ *BLUE BOTTLE COFFEE", "BLUE BOTTLE COFFEE"),
        ("SQUARE *BLUE BOTTLE COFFEE", "BLUE BOTTLE COFFEE"),
        ("TST* JOES DINER", "JOES DINER"),
        ("PAYPAL *GITHUB", "GITHUB"),
        ("PAYPAL GITHUB", "GITHUB"),
        ("SQ *PAYPAL *GITHUB", "GITHUB"),
    ])
    def test_processor_prefixes(self, normalizer, raw, expected):
        """Test card processor and wallet prefixes are removed."""
        assert normalizer.normalize(raw) == expected

    @pytest.mark.parametrize("raw", [
        "PENDING - GYM MEMBERSHIP",
        "PENDING: GYM MEMBERSHIP",
        "GYM MEMBERSHIP (PENDING)",
        "AUTH HOLD - GYM MEMBERSHIP",
        "TEMPORARY AUTHORIZATION GYM MEMBERSHIP",
    ])
    def test_pending_markers(self, normalizer, raw):
        """Test pending and authorization hold markers are removed."""
        assert normalizer.normalize(raw) == "GYM MEMBERSHIP"

    def test_category_prefix(self, normalizer):
        """Test bank category labels are removed."""
        assert normalizer.normalize("UTILITIES: CITY WATER") == "CITY WATER"

    def test_embedded_dates(self, normalizer):
        """Test dates inside the description are removed."""
        assert normalizer.normalize("PLANET GYMS 12/15") == "PLANET GYMS"
        assert normalizer.normalize("PLANET GYMS JAN 2024") == "PLANET GYMS"

    def test_noise_tokens(self, normalizer):
        """Test transaction-type words are removed."""
        assert normalizer.normalize("ACH DEBIT GEICO INSURANCE") == "GEICO INSURANCE"

    def test_city_and_state(self, normalizer):
        """Test trailing city and state are removed."""
        assert normalizer.normalize("GOLDS GYM AUSTIN TX") == "GOLDS GYM"

    def test_multi_word_city(self, normalizer):
        """Test known multi-word cities are removed as a whole."""
        assert normalizer.normalize("CREATIVE CLOUD SAN JOSE CA") == "CREATIVE CLOUD"
        assert normalizer.normalize("FIT CLUB SALT LAKE CITY UT") == "FIT CLUB"

    def test_single_word_merchant_kept_before_state(self, normalizer):
        """Test the only merchant word is never taken for a city."""
        assert normalizer.normalize("CLOROX CA") == "CLOROX"

    def test_phone_numbers(self, normalizer):
        """Test phone numbers in several layouts are removed."""
        assert normalizer.normalize("GOLDS GYM 866-555-1234") == "GOLDS GYM"
        assert normalizer.normalize("GOLDS GYM (866) 555-1234") == "GOLDS GYM"
        assert normalizer.normalize("GOLDS GYM 8665551234") == "GOLDS GYM"

    def test_reference_ids(self, normalizer):
        """Test marked IDs, store numbers and long reference tokens are removed."""
        assert normalizer.normalize("HBO MAX *8329") == "HBO MAX"
        assert normalizer.normalize("SHELL OIL 57444") == "SHELL OIL"
        assert normalizer.normalize("PATREON MEMBERSHIP X9Y8Z7W6V5U4T3S2") == "PATREON MEMBERSHIP"

    def test_long_word_without_digits_kept(self, normalizer):
        """Test long plain words are not mistaken for IDs."""
        assert normalizer.normalize("SUPERCALIFRAGILISTIC TOYS") == "SUPERCALIFRAGILISTIC TOYS"

    def test_domain_suffix_and_separators(self, normalizer):
        """Test domain suffixes and punctuation are removed."""
        assert normalizer.normalize("DROPBOX.COM") == "DROPBOX"
        assert normalizer.normalize("PELOTON*MEMBERSHIP") == "PELOTON MEMBERSHIP"

    def test_combined_stages(self, normalizer):
        """Test a description that needs several stages."""
        raw = "POS PURCHASE CITY GYM 12/01 #1234 AUSTIN TX"

        assert normalizer.normalize(raw) == "CITY GYM"

    def test_uppercases(self, normalizer):
        """Test output is uppercase."""
        assert normalizer.normalize("Golds Gym") == "GOLDS GYM"


class TestOverrides:
    """Tests for well-known merchant overrides."""

    @pytest.mark.parametrize("raw, expected", [
        ("NETFLIX.COM 866-579-7172 CA", "NETFLIX"),
        ("netflix.com", "NETFLIX"),
        ("SQ *NETFLIX.COM", "NETFLIX"),
        ("AMZN Mktp US*2K4AB1", "AMAZON"),
        ("Amazon Prime*AB12CD", "AMAZON PRIME"),
        ("PRIME VIDEO CHANNELS", "AMAZON PRIME"),
        ("GOOGLE *YOUTUBETV", "YOUTUBE TV"),
        ("SXM*SIRIUSXM.COM/ACCT", "SIRIUSXM"),
        ("VISIBLE WIRELESS", "VISIBLE"),
        ("DISNEYPLUS 888-905-7888", "DISNEY PLUS"),
        ("AMAZON-PRIME", "AMAZON PRIME"),
        ("PRIME*VIDEO", "AMAZON PRIME"),
        ("PRIME-VIDEO 800-123-4567", "AMAZON PRIME"),
    ])
    def test_override_names(self, normalizer, raw, expected):
        """Test overrides win over the cleaning stages."""
        assert normalizer.normalize(raw) == expected

    def test_override_after_cleaning(self, normalizer):
        """Test a trigger split by a date is found once the date is removed."""
        assert normalizer.normalize("YOUTUBE 12/01 TV") == "YOUTUBE TV"

    def test_specific_override_beats_broad_one(self, normalizer):
        """Test punctuation does not send Prime to the marketplace key."""
        assert normalizer.normalize("AMAZON-PRIME") != normalizer.normalize("AMAZON.COM")


class TestEdgeCases:
    """Tests for fallbacks and stability."""

    @pytest.mark.parametrize("raw", [
        "SQ *BLUE BOTTLE COFFEE",
        "NETFLIX.COM *8329",
        "POS PURCHASE CITY GYM 12/01 #1234 AUSTIN TX",
        "CREATIVE CLOUD SAN JOSE CA",
        "Amazon Prime*AB12CD",
        "PATREON MEMBERSHIP X9Y8Z7W6V5U4T3S2",
        "PRIME*VIDEO",
        "PRIME-VIDEO 800-123-4567",
        "AMAZON-PRIME",
        "YOUTUBE 12/01 TV",
    ])
    def test_idempotent(self, normalizer, raw):
        """Test normalizing a key again leaves it unchanged."""
        once = normalizer.normalize(raw)

        assert normalizer.normalize(once) == once

    def test_short_result_falls_back_to_raw(self, normalizer):
        """Test too little left after cleaning keeps the raw text."""
        assert normalizer.normalize("SQ *AB") == "SQ *AB"
        assert normalizer.normalize("12345") == "12345"

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_empty(self, normalizer, raw):
        """Test empty input."""
        assert normalizer.normalize(raw) == ""

    def test_deterministic(self, normalizer):
        """Test the same input always yields the same key."""
        raw = "SQ *BLUE BOTTLE COFFEE 415-555-0100 SAN FRANCISCO CA"

        assert len({normalizer.normalize(raw) for _ in range(5)}) == 1


class TestConfiguration:
    """Tests for rule loading."""

    def test_shared_normalizer(self, config_dir):
        """Test the default and explicit config directory share one instance."""
        assert get_normalizer() is get_normalizer(config_dir)
        assert normalize_description("SQ *BLUE BOTTLE COFFEE") == "BLUE BOTTLE COFFEE"

    def test_rules_loaded(self, config_dir):
        """Test rule tables are read from YAML."""
        rules = load_normalizer_rules(config_dir)

        assert "CA" in rules.state_codes
        assert rules.processor_prefixes.index("SQUARE") < rules.processor_prefixes.index("SQ")
        assert "SALT LAKE CITY" in rules.multi_word_cities
        assert rules.overrides

    def test_missing_config_uses_builtin_stages_only(self, tmp_path):
        """Test a missing rules file leaves only the built-in stages."""
        normalizer = DescriptionNormalizer(config_dir=tmp_path)

        assert normalizer.normalize("NETFLIX.COM") == "NETFLIX COM"
        assert normalizer.normalize("GOLDS GYM 866-555-1234") == "GOLDS GYM"

    def test_explicit_rules(self):
        """Test rules can be passed in directly."""
        rules = NormalizerRules(wallet_prefixes=("VENMO",), state_codes=frozenset({"ZZ"}))
        normalizer = DescriptionNormalizer(rules=rules)

        assert normalizer.normalize("VENMO *BOOK CLUB") == "BOOK CLUB"
        assert normalizer.normalize("BOOK CLUB TOWN ZZ") == "BOOK CLUB"

    def test_malformed_yaml_raises(self, tmp_path):
        """Test broken rule files are reported."""
        (tmp_path / "detection_rules.yaml").write_text("normalizer: [unclosed\n")

        with pytest.raises(yaml.YAMLError):
            load_normalizer_rules(tmp_path)
