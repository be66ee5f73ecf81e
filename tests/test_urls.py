"""Tests for URL helpers."""

import json
from urllib.parse import parse_qs, urlsplit

from asset_pipe_client.urls import build_url, join_url


class TestBuildUrl:
    """Tests for build_url function."""

    def test_no_params(self):
        """An empty path should be normalized to /."""
        assert build_url("http://server.com") == "http://server.com/"

    def test_one_param(self):
        """Should append a single parameter."""
        assert build_url("http://server.com", {"prop": "value"}) == (
            "http://server.com/?prop=value"
        )

    def test_multiple_params_keep_order(self):
        """Parameters should follow the mapping's order."""
        result = build_url(
            "http://server.com",
            {"prop1": "value", "prop2": "value", "prop3": "value"},
        )
        assert result == "http://server.com/?prop1=value&prop2=value&prop3=value"

    def test_none_is_omitted(self):
        """None values should not appear at all."""
        assert build_url("http://server.com", {"prop": None}) == "http://server.com/"

    def test_object_serialized(self):
        """Dicts should be encoded as JSON."""
        result = build_url("http://server.com", {"prop": {"key": "value"}})
        assert result == "http://server.com/?prop=%7B%22key%22%3A%22value%22%7D"

    def test_array_serialized(self):
        """Lists should be encoded as JSON."""
        result = build_url("http://server.com", {"prop": ["one", "two"]})
        assert result == "http://server.com/?prop=%5B%22one%22%2C%22two%22%5D"

    def test_number(self):
        """Numbers should be stringified."""
        assert build_url("http://server.com", {"prop": 1}) == "http://server.com/?prop=1"

    def test_booleans(self):
        """Booleans should be written as true/false."""
        assert build_url("http://server.com", {"a": True, "b": False}) == (
            "http://server.com/?a=true&b=false"
        )

    def test_mixed_round_trip(self):
        """Decoded query should give back the original values."""
        result = build_url("http://host", {"a": "1", "b": None, "c": {"x": 1}})

        query = parse_qs(urlsplit(result).query)
        assert query["a"] == ["1"]
        assert "b" not in query
        assert json.loads(query["c"][0]) == {"x": 1}

    def test_keeps_path_and_existing_query(self):
        """Existing path and query parameters should be preserved."""
        result = build_url("http://host/publish-assets?x=1", {"minify": True})
        assert result == "http://host/publish-assets?x=1&minify=true"

    def test_encodes_reserved_characters(self):
        """Reserved characters should be percent-encoded."""
        result = build_url("http://host", {"q": "a b&c"})
        assert result == "http://host/?q=a%20b%26c"


class TestJoinUrl:
    """Tests for join_url function."""

    def test_single_slash(self):
        """Should join with exactly one slash."""
        assert join_url("http://host/", "/feed/", "js") == "http://host/feed/js"

    def test_no_segments(self):
        """Should strip the trailing slash of the base."""
        assert join_url("http://host/") == "http://host"
