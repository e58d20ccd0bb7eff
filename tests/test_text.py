import pytest

from flock.utils.text import (
    extract_hashtags,
    extract_mentions,
    format_count,
    normalize_username,
    truncate_preview,
    username_base_from_email,
    username_error,
)


@pytest.mark.parametrize(
    ("raw", "valid"),
    [
        ("ab", False),
        ("abc", True),
        ("Abc_123", True),
        ("abc-123", False),
        ("a" * 15, True),
        ("a" * 16, False),
    ],
)
def test_username_rules(raw, valid):
    assert (username_error(normalize_username(raw)) is None) is valid


def test_normalize_username_lowercases_and_trims():
    assert normalize_username("  Abc_123 ") == "abc_123"


def test_mentions_are_distinct_and_lowercased():
    assert extract_mentions("hi @Bob and @bob, also @carol_1!") == ["bob", "carol_1"]


def test_hashtags():
    assert extract_hashtags("hello @B #fun #Fun #python3") == ["fun", "python3"]
    assert extract_hashtags("no tags here") == []


def test_format_count():
    assert format_count(999) == "999"
    assert format_count(1000) == "1.0K"
    assert format_count(1234) == "1.2K"
    assert format_count(1250) == "1.3K"
    assert format_count(1050) == "1.1K"
    assert format_count(12_345) == "12.3K"


def test_truncate_preview():
    assert truncate_preview("short", 50) == "short"
    assert truncate_preview("x" * 51, 50) == "x" * 50 + "..."


def test_username_base_from_email():
    assert username_base_from_email("John.Doe+tag@mail.com") == "johndoetag"
    assert username_base_from_email("a@mail.com") == "aus"
    assert username_base_from_email("...@mail.com") == "user"
    assert len(username_base_from_email("averyveryverylongname@mail.com")) == 12
