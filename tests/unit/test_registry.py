"""Unit tests for the Legitimacy Registry and the cancellation directory."""

from subscout.subscriptions.cancellation import CancellationDirectory, CancellationInfo
from subscout.subscriptions.registry import LegitimacyRegistry, get_registry


class TestLegitimacyRegistry:
    def test_known_service_is_case_insensitive(self):
        registry = get_registry()
        assert registry.is_known("Hulu")
        assert registry.is_known("hulu")
        assert registry.is_known("  HULU ")

    def test_no_fuzzy_or_partial_matching(self):
        registry = get_registry()
        assert not registry.is_known("Hul")
        assert not registry.is_known("Hulu Plus Live")
        assert not registry.is_known("")
        assert not registry.is_known(None)

    def test_canonical_spelling(self):
        registry = get_registry()
        assert registry.canonical("apple tv+") == "Apple TV+"
        assert registry.canonical("nosuchservice") is None

    def test_longest_names_first(self):
        names = get_registry().names_longest_first()
        assert names.index("Apple TV+") < names.index("Apple")

    def test_find_in_prefers_longer_name(self):
        registry = get_registry()
        assert registry.find_in("Your trial of Apple TV+ is active. Apple Support") == "Apple TV+"

    def test_find_in_respects_word_boundaries(self):
        registry = get_registry()
        assert registry.find_in("check your inbox for details") is None

    def test_registry_is_loaded_once(self):
        assert get_registry() is get_registry()
        assert len(get_registry()) > 50

    def test_custom_registry(self):
        registry = LegitimacyRegistry(["Foo", "foo", "  ", "Foo Pro"])
        assert len(registry) == 2
        assert "FOO" in registry
        assert registry.find_in("welcome to foo pro!") == "Foo Pro"


class TestCancellationDirectory:
    def test_lookup_by_name_and_alias(self):
        directory = CancellationDirectory.from_yaml()
        assert directory.cancel_url_for("Hulu") == "https://secure.hulu.com/account"
        assert directory.cancel_url_for("hulu.com") == "https://secure.hulu.com/account"

    def test_entry_without_url(self):
        directory = CancellationDirectory.from_yaml()
        info = directory.lookup("NordVPN")
        assert info is not None
        assert info.method == "email"
        assert directory.cancel_url_for("NordVPN") is None

    def test_unknown_service(self):
        directory = CancellationDirectory([CancellationInfo(name="Foo", method="account")])
        assert directory.lookup("Bar") is None
        assert directory.cancel_url_for(None) is None
