"""
Property-based tests for internationalization (i18n) module.

Uses Hypothesis for property-based testing to verify that every message is
translated into both supported languages and formats safely.
"""

import re

from hypothesis import given, settings
from hypothesis import strategies as st

from focus_blocker.enums import OverallPermissionStatus
from focus_blocker.i18n import (
    DEFAULT_LANGUAGE,
    SUPPORTED_LANGUAGES,
    TRANSLATIONS,
    get_all_message_keys,
    get_message,
    get_missing_translations,
    has_translation,
)
from focus_blocker.notifications import TRANSITION_EVENTS


PLACEHOLDER = re.compile(r"\{(\w+)(?::[^}]*)?\}")


class TestTranslationCoverageProperty:
    """Both languages carry every message."""

    def test_all_languages_have_all_translations(self) -> None:
        assert len(get_all_message_keys()) > 0, "No translations defined"

        for language in SUPPORTED_LANGUAGES:
            missing = get_missing_translations(language)
            assert len(missing) == 0, (
                f"Language '{language}' is missing translations for: {missing}"
            )

    @given(key=st.sampled_from(sorted(TRANSLATIONS.keys())))
    @settings(max_examples=100)
    def test_every_key_has_both_languages(self, key: str) -> None:
        assert has_translation(key, "de")
        assert has_translation(key, "en")
        assert TRANSLATIONS[key]["de"].strip()
        assert TRANSLATIONS[key]["en"].strip()

    @given(key=st.sampled_from(sorted(TRANSLATIONS.keys())))
    @settings(max_examples=100)
    def test_placeholders_match_across_languages(self, key: str) -> None:
        german = set(PLACEHOLDER.findall(TRANSLATIONS[key]["de"]))
        english = set(PLACEHOLDER.findall(TRANSLATIONS[key]["en"]))
        assert german == english, f"Placeholders differ for '{key}'"

    def test_every_transition_event_has_a_message(self) -> None:
        for event in TRANSITION_EVENTS:
            assert f"notify.{event}" in TRANSLATIONS

    def test_every_permission_status_has_a_message(self) -> None:
        for status in OverallPermissionStatus:
            for language in SUPPORTED_LANGUAGES:
                assert get_message(f"status.{status.value}", language) != f"status.{status.value}"


class TestGetMessageProperty:
    """Message lookup falls back instead of failing."""

    @given(
        key=st.sampled_from(sorted(TRANSLATIONS.keys())),
        language=st.sampled_from(sorted(SUPPORTED_LANGUAGES)),
    )
    @settings(max_examples=100)
    def test_get_message_returns_translation(self, key: str, language: str) -> None:
        assert get_message(key, language) == TRANSLATIONS[key][language]

    def test_default_language_is_german(self) -> None:
        assert DEFAULT_LANGUAGE == "de"

    @given(language=st.one_of(st.none(), st.sampled_from(["fr", "", "EN", "deu"])))
    @settings(max_examples=20)
    def test_unsupported_language_uses_default(self, language) -> None:
        assert get_message("cli.strict.disabled", language) == "Strikter Modus deaktiviert"

    def test_unknown_key_returns_key(self) -> None:
        assert get_message("cli.unknown.key", "en") == "cli.unknown.key"

    def test_format_arguments_applied(self) -> None:
        message = get_message("cli.rules.created", "en", rule_id="r1", target="youtube.com")
        assert message == "Rule r1 for 'youtube.com' created"

    def test_missing_format_arguments_keep_template(self) -> None:
        message = get_message("cli.rules.created", "en", rule_id="r1")
        assert message == TRANSLATIONS["cli.rules.created"]["en"]

    def test_numeric_format_spec(self) -> None:
        message = get_message(
            "cli.stats.rule", "en", rule_id="r1", total=3, bypasses=1, avg=0.5
        )
        assert message == "Rule r1: 3 blocks, 1 bypasses, 0.50 per day"

    def test_mistyped_format_argument_keeps_template(self) -> None:
        message = get_message(
            "cli.stats.rule", "en", rule_id="r1", total=3, bypasses=1, avg="many"
        )
        assert message == TRANSLATIONS["cli.stats.rule"]["en"]
