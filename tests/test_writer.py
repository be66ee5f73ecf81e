"""Tests for feed writers and serialization."""

import json

import pytest

from asset_pipe_client.hashing import hash_content
from asset_pipe_client.types import AssetType
from asset_pipe_client.writer import (
    FileFeedWriter,
    create_writer,
    serialize_feed,
    serialize_publish_body,
    write_feed,
)


@pytest.fixture
def script(tmp_path):
    """Create a JavaScript entrypoint."""
    path = tmp_path / "script.js"
    path.write_text("console.log('hello');\n")
    return path


@pytest.fixture
def style(tmp_path):
    """Create a CSS entrypoint."""
    path = tmp_path / "style.css"
    path.write_text("body { background-color: red; }\n")
    return path


class TestFileFeedWriter:
    """Tests for FileFeedWriter."""

    def test_js_records(self, script):
        """JS records should carry id, file, source, deps and entry."""
        records = list(FileFeedWriter([str(script)], AssetType.JS).bundle())

        assert len(records) == 1
        record = records[0]
        assert record["file"] == str(script)
        assert record["source"] == script.read_text()
        assert record["id"] == hash_content(script.read_text())
        assert record["entry"] is True
        assert record["deps"] == {}

    def test_css_records(self, style):
        """CSS records should carry id, file and content."""
        records = list(FileFeedWriter([str(style)], AssetType.CSS).bundle())

        assert records[0]["content"] == style.read_text()
        assert "source" not in records[0]

    def test_transforms_in_order(self, script):
        """Transforms should be applied in registration order."""
        writer = FileFeedWriter([str(script)], AssetType.JS)
        writer.transform(lambda src, opts: src + opts["suffix"], {"suffix": "A"})
        writer.transform(lambda src, opts: src + "B")

        record = next(iter(writer.bundle()))
        assert record["source"].endswith("AB")

    def test_plugin_called_with_writer(self, script):
        """Plugins should be called with the writer and their options."""
        calls = []
        writer = create_writer([str(script)], AssetType.JS)
        writer.plugin(lambda w, opts: calls.append((w, opts)), {"x": 1})

        assert calls == [(writer, {"x": 1})]

    def test_missing_file(self, tmp_path):
        """A missing entrypoint should raise when the feed is produced."""
        writer = FileFeedWriter([str(tmp_path / "missing.js")], AssetType.JS)
        with pytest.raises(OSError):
            list(writer.bundle())


class TestSerialization:
    """Tests for feed serialization."""

    def test_serialize_feed(self):
        """Chunks should form a JSON array of the records."""
        chunks = list(serialize_feed([{"id": "a"}, {"id": "b"}]))

        assert len(chunks) == 4
        assert json.loads(b"".join(chunks)) == [{"id": "a"}, {"id": "b"}]

    def test_serialize_empty_feed(self):
        """An empty feed should serialize to an empty array."""
        assert b"".join(serialize_feed([])) == b"[]"

    def test_serialize_publish_body(self):
        """Publish body should wrap the feed with tag and type."""
        body = b"".join(serialize_publish_body("podlet", AssetType.CSS, [{"id": "a"}]))

        assert json.loads(body) == {"tag": "podlet", "type": "css", "data": [{"id": "a"}]}

    def test_write_feed(self, tmp_path, script):
        """write_feed should write the serialized feed to disk."""
        destination = tmp_path / "out" / "feed.json"
        writer = create_writer([str(script)], AssetType.JS)

        size = write_feed(writer.bundle(), destination)

        assert destination.stat().st_size == size
        assert json.loads(destination.read_text())[0]["file"] == str(script)
