"""Tests for placeholder URLs and default values."""

from urllib.parse import parse_qs, urlparse

from linksync.fallback import (
    DEFAULT_BACKGROUND_COLOR,
    DEFAULT_DIMENSIONS,
    default_dimensions,
    placeholder_image_url,
)

ENDPOINT = "https://og.example.test/generate"


def test_placeholder_carries_title():
    url = placeholder_image_url("https://example.com/a", "A", ENDPOINT)

    assert url.startswith(ENDPOINT + "?")
    assert "title=A&" in url
    assert "backgroundColor=%23121212" in url
    assert "color=%23efefef" in url


def test_placeholder_parameters_in_order():
    url = placeholder_image_url("https://example.com/a", "A", ENDPOINT)

    keys = [pair.split("=")[0] for pair in urlparse(url).query.split("&")]
    assert keys == ["fontSize", "backgroundColor", "title", "fontSizeTwo", "color"]


def test_placeholder_encodes_title():
    url = placeholder_image_url("https://example.com/a", "Hello & welcome #1", ENDPOINT)

    assert "Hello%20%26%20welcome%20%231" in url
    assert parse_qs(urlparse(url).query)["title"] == ["Hello & welcome #1"]


def test_placeholder_is_deterministic():
    a = placeholder_image_url("https://example.com/a", "Same", ENDPOINT)
    b = placeholder_image_url("https://example.com/a", "Same", ENDPOINT)

    assert a == b


def test_placeholder_uses_link_when_title_missing():
    url = placeholder_image_url("https://example.com/a", None, ENDPOINT)

    assert parse_qs(urlparse(url).query)["title"] == ["https://example.com/a"]


def test_defaults():
    assert DEFAULT_DIMENSIONS == {"width": 1200, "height": 630, "format": "png"}
    assert DEFAULT_BACKGROUND_COLOR == "rgb(18,18,18)"


def test_default_dimensions_is_a_copy():
    dims = default_dimensions()
    dims["width"] = 1

    assert DEFAULT_DIMENSIONS["width"] == 1200
