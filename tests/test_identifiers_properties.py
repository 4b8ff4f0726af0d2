"""
Property-based tests for identifier types and categories.

Uses Hypothesis for property-based testing to verify domain normalization,
app name matching, cron expression validation and category expansion.
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from focus_blocker.categories import (
    CATEGORY_TARGETS,
    expand_categories,
    is_known_category,
    list_categories,
)
from focus_blocker.exceptions import ValidationError
from focus_blocker.identifiers import (
    AppName,
    CronExpression,
    Domain,
    RuleId,
    normalize_domain,
)


# Strategies for generating valid test data

@st.composite
def valid_label(draw) -> str:
    """Generate a valid lowercase DNS label."""
    first = draw(st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789"))
    middle = draw(st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789-"),
        min_size=0,
        max_size=10,
    ))
    last = draw(st.sampled_from("abcdefghijklmnopqrstuvwxyz0123456789"))
    return f"{first}{middle}{last}"


@st.composite
def valid_domain(draw) -> str:
    """Generate a valid host name with one to three labels before the TLD."""
    labels = draw(st.lists(valid_label(), min_size=1, max_size=3))
    tld = draw(st.sampled_from(["com", "de", "net", "org", "tv", "eu"]))
    return ".".join(labels + [tld])


@st.composite
def mixed_case(draw, text: str) -> str:
    """Randomly upper-case characters of a string."""
    flags = draw(st.lists(st.booleans(), min_size=len(text), max_size=len(text)))
    return "".join(c.upper() if flag else c for c, flag in zip(text, flags))


class TestDomainNormalizationProperty:
    """Domains are stored in one canonical form."""

    @given(domain=valid_domain(), data=st.data())
    @settings(max_examples=100)
    def test_case_and_trailing_dot_are_normalized(self, domain: str, data) -> None:
        raw = data.draw(mixed_case(domain))
        if data.draw(st.booleans()):
            raw += "."

        assert Domain(raw).value == domain
        assert Domain(raw) == Domain(domain)

    @given(domain=valid_domain())
    @settings(max_examples=100)
    def test_normalization_is_idempotent(self, domain: str) -> None:
        once = normalize_domain(domain)
        assert normalize_domain(once) == once

    @given(domain=valid_domain())
    @settings(max_examples=100)
    def test_parents_are_suffixes_nearest_first(self, domain: str) -> None:
        parents = Domain(domain).parents()
        labels = domain.split(".")

        assert len(parents) == max(0, len(labels) - 2)
        for parent in parents:
            assert domain.endswith("." + parent.value)
        lengths = [len(parent.value) for parent in parents]
        assert lengths == sorted(lengths, reverse=True)

    def test_subdomain_parents(self) -> None:
        parents = Domain("a.b.example.com").parents()
        assert [p.value for p in parents] == ["b.example.com", "example.com"]
        assert Domain("example.com").parents() == []

    def test_international_domain_is_idna_encoded(self) -> None:
        assert Domain("München.de").value == "xn--mnchen-3ya.de"

    @pytest.mark.parametrize("raw", [
        "",
        "   ",
        "localhost",
        "exa mple.com",
        "-bad.com",
        "bad-.com",
        "user@example.com",
        "https://example.com",
        "example..com",
        "a" * 64 + ".com",
    ])
    def test_invalid_domains_rejected(self, raw: str) -> None:
        try:
            Domain(raw)
            assert False, f"Expected ValidationError for {raw!r}"
        except ValidationError as e:
            assert e.field == "target"
            assert e.code == "validation"

    def test_non_string_rejected(self) -> None:
        with pytest.raises(ValidationError):
            Domain(None)


class TestAppNameProperty:
    """App names match case-insensitively but keep their display form."""

    @given(name=st.text(
        alphabet=st.sampled_from("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789._"),
        min_size=1,
        max_size=30,
    ))
    @settings(max_examples=100)
    def test_match_key_ignores_case(self, name: str) -> None:
        app = AppName(name)
        assert AppName(name.upper()).match_key == app.match_key
        assert app.value == name

    def test_whitespace_trimmed(self) -> None:
        assert AppName("  Slack ").value == "Slack"

    @pytest.mark.parametrize("raw", ["", "   ", None])
    def test_blank_rejected(self, raw) -> None:
        with pytest.raises(ValidationError):
            AppName(raw)


class TestRuleIdProperty:
    def test_generated_ids_are_unique(self) -> None:
        ids = {RuleId.generate() for _ in range(100)}
        assert len(ids) == 100

    def test_blank_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RuleId("  ")


class TestCronExpressionProperty:
    def test_valid_expression_is_normalized(self) -> None:
        assert CronExpression("0  9 * *  1-5").value == "0 9 * * 1-5"

    @pytest.mark.parametrize(
        "raw", ["", "0 9 * *", "61 * * * *", "0 0 * * * *", "1_0 9 * * 1-5", "+0 9 * * *"]
    )
    def test_invalid_expression_rejected(self, raw: str) -> None:
        try:
            CronExpression(raw)
            assert False, f"Expected ValidationError for {raw!r}"
        except ValidationError as e:
            assert e.field == "schedule_cron"

    def test_stored_expression_skips_validation(self) -> None:
        stored = CronExpression.stored("not a cron")
        assert stored.value == "not a cron"


class TestCategoryExpansionProperty:
    """Category expansion is a deduplicated union."""

    @given(ids=st.lists(st.sampled_from(sorted(CATEGORY_TARGETS)), max_size=10))
    @settings(max_examples=100)
    def test_expansion_is_union_of_category_targets(self, ids: list[str]) -> None:
        expected = set()
        for category_id in ids:
            expected |= CATEGORY_TARGETS[category_id]

        assert expand_categories(ids) == frozenset(expected)

    @given(ids=st.lists(st.sampled_from(sorted(CATEGORY_TARGETS)), min_size=1, max_size=10))
    @settings(max_examples=100)
    def test_order_and_repetition_do_not_matter(self, ids: list[str]) -> None:
        assert expand_categories(ids) == expand_categories(sorted(set(ids)))
        assert expand_categories(ids + ids) == expand_categories(ids)

    def test_social_media_contains_known_sites(self) -> None:
        targets = expand_categories(["social_media"])
        assert Domain("facebook.com") in targets
        assert Domain("tiktok.com") in targets

    def test_adult_category_is_empty(self) -> None:
        assert expand_categories(["adult"]) == frozenset()

    def test_empty_input_expands_to_nothing(self) -> None:
        assert expand_categories([]) == frozenset()

    def test_unknown_category_rejected(self) -> None:
        with pytest.raises(ValidationError):
            expand_categories(["social_media", "sports"])

    def test_known_categories_listed(self) -> None:
        assert list_categories() == sorted(CATEGORY_TARGETS)
        assert is_known_category("news")
        assert not is_known_category("News")
