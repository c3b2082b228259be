"""Tests for converter/frontmatter.py and utils/locale.py."""

import pytest

from typstify.config import TypstifyConfig
from typstify.converter.context import IssueReporter
from typstify.converter.frontmatter import (
    decode_frontmatter,
    merge_metadata,
    parse_date,
    resolve_authors,
)
from typstify.models import DocumentMetadata, Frontmatter, IssueCode, Severity
from typstify.utils.locale import normalize_language, normalize_region


# =========================================================================
# Decoding
# =========================================================================

class TestDecodeFrontmatter:

    def test_known_fields(self):
        raw = (
            "title: My Doc\n"
            "author: Ada\n"
            "authors: [Ada, Grace]\n"
            "description: About things\n"
            "keywords: [a, b]\n"
            "date: '2024-01-15'\n"
            "abstract: Short.\n"
            "lang: en\n"
            "region: US\n"
            "unknown: ignored\n"
        )
        fm = decode_frontmatter(raw)
        assert fm == Frontmatter(
            title="My Doc",
            author="Ada",
            authors=["Ada", "Grace"],
            description="About things",
            keywords=["a", "b"],
            date="2024-01-15",
            abstract="Short.",
            language="en",
            region="US",
        )

    def test_empty_block(self):
        assert decode_frontmatter("") == Frontmatter()
        assert decode_frontmatter("   \n") == Frontmatter()

    def test_invalid_yaml_warns_and_returns_empty(self):
        report = IssueReporter()
        assert decode_frontmatter("title: [unclosed", report) == Frontmatter()
        assert report.issues[0].code == IssueCode.INVALID_FRONTMATTER
        assert report.issues[0].severity == Severity.WARNING
        assert report.issues[0].cause is not None

    def test_non_mapping_warns(self):
        report = IssueReporter()
        assert decode_frontmatter("- a\n- b\n", report) == Frontmatter()
        assert report.issues[0].details["value_type"] == "list"

    def test_bad_field_is_skipped_without_aborting_the_rest(self):
        report = IssueReporter()
        fm = decode_frontmatter("title: 42\ndescription: fine\n", report)
        assert fm.title is None
        assert fm.description == "fine"
        assert [i.code for i in report.issues] == [IssueCode.INVALID_METADATA_FIELD]
        assert report.issues[0].details["field"] == "title"

    def test_list_field_keeps_only_strings(self):
        report = IssueReporter()
        fm = decode_frontmatter("keywords: [a, 1, b]\n", report)
        assert fm.keywords == ["a", "b"]
        assert len(report.issues) == 1

    def test_author_list(self):
        assert decode_frontmatter("author: [A, B]\n").author == ["A", "B"]

    def test_unquoted_date_is_formatted(self):
        assert decode_frontmatter("date: 2024-01-15\n").date == "2024-01-15"

    def test_timestamp_keeps_calendar_date(self):
        assert decode_frontmatter("date: 2024-01-15T10:30:00Z\n").date == "2024-01-15"
        assert decode_frontmatter("date: 2024-01-15 10:30:00\n").date == "2024-01-15"

    def test_impossible_date_keeps_other_fields(self):
        report = IssueReporter()
        fm = decode_frontmatter("title: Kept\ndate: 2024-02-30\nlang: en\n", report)
        assert fm.title == "Kept"
        assert fm.language == "en"
        assert fm.date == "2024-02-30"
        assert report.issues == []

    def test_lang_preferred_over_language(self):
        assert decode_frontmatter("lang: fr\nlanguage: de\n").language == "fr"
        assert decode_frontmatter("language: de\n").language == "de"


# =========================================================================
# Dates
# =========================================================================

class TestParseDate:

    def test_iso_date(self):
        assert parse_date("2024-01-15") == "datetime(day: 15, month: 1, year: 2024)"

    @pytest.mark.parametrize("keyword", ["auto", "none"])
    def test_keywords_pass_through(self, keyword):
        report = IssueReporter()
        assert parse_date(keyword, report) == keyword
        assert report.issues == []

    def test_unparseable_falls_back_to_auto(self):
        report = IssueReporter()
        assert parse_date("not-a-date", report) == "auto"
        assert len(report.issues) == 1
        assert report.issues[0].code == IssueCode.INVALID_DATE
        assert report.issues[0].severity == Severity.WARNING

    def test_impossible_calendar_date_falls_back_to_auto(self):
        report = IssueReporter()
        assert parse_date("2024-02-30", report) == "auto"
        assert report.issues[0].code == IssueCode.INVALID_DATE


# =========================================================================
# Merging
# =========================================================================

class TestResolveAuthors:

    @pytest.mark.parametrize(
        ("author", "authors", "expected"),
        [
            ("Ada", None, ["Ada"]),
            (["Ada", "Grace"], None, ["Ada", "Grace"]),
            ("Ada", ["Grace"], ["Grace"]),
            ("Ada", [], ["Ada"]),
            (None, None, []),
            (["Ada", " ", ""], None, ["Ada"]),
            (None, ["Ada", "Ada"], ["Ada", "Ada"]),
        ],
    )
    def test_plural_wins_when_non_empty(self, author, authors, expected):
        assert resolve_authors(author, authors) == expected


class TestMergeMetadata:

    def test_option_beats_frontmatter(self):
        merged = merge_metadata(TypstifyConfig(title="B"), Frontmatter(title="A"))
        assert merged.title == "B"

    def test_frontmatter_beats_leading_title(self):
        merged = merge_metadata(TypstifyConfig(), Frontmatter(title="A"), "Heading")
        assert merged.title == "A"

    def test_leading_title_used_last(self):
        assert merge_metadata(TypstifyConfig(), Frontmatter(), "Heading").title == "Heading"

    def test_absent_title_is_empty_string(self):
        assert merge_metadata(TypstifyConfig(), Frontmatter()) == DocumentMetadata()

    def test_option_authors_replace_frontmatter_authors(self):
        merged = merge_metadata(TypstifyConfig(author="Opt"), Frontmatter(authors=["Fm"]))
        assert merged.authors == ["Opt"]

    def test_frontmatter_authors_used_without_options(self):
        merged = merge_metadata(TypstifyConfig(), Frontmatter(author="Fm"))
        assert merged.authors == ["Fm"]

    def test_language_and_region_normalised(self):
        merged = merge_metadata(
            TypstifyConfig(), Frontmatter(language="en-US", region="united states")
        )
        assert merged.language == "en"
        assert merged.region == "US"

    def test_unresolvable_language_dropped_silently(self):
        merged = merge_metadata(TypstifyConfig(language="Klingonese"), Frontmatter())
        assert merged.language is None


# =========================================================================
# Locale lookups
# =========================================================================

class TestNormalizeLanguage:

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("en", "en"),
            ("EN", "en"),
            ("en-US", "en"),
            ("zh_CN", "zh"),
            ("fra", "fr"),
            ("deu", "de"),
            ("fre", "fr"),
            ("ENG", "en"),
            ("English", "en"),
            ("german", "de"),
            ("  es  ", "es"),
        ],
    )
    def test_resolves(self, value, expected):
        assert normalize_language(value) == expected

    @pytest.mark.parametrize("value", [None, "", "   ", "xx-nope", "Klingonese"])
    def test_unresolvable(self, value):
        assert normalize_language(value) is None


class TestNormalizeRegion:

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            ("US", "US"),
            ("us", "US"),
            ("USA", "US"),
            ("deu", "DE"),
            ("gbr", "GB"),
            ("Germany", "DE"),
            ("united kingdom", "GB"),
        ],
    )
    def test_resolves(self, value, expected):
        assert normalize_region(value) == expected

    @pytest.mark.parametrize("value", [None, "", "Atlantis", "ZZ"])
    def test_unresolvable(self, value):
        assert normalize_region(value) is None
