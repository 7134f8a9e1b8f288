"""
Tests for the manifest builder and the request scratch directory.
"""

import json
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from passkit.assembly import ManifestBuilder, scratch_directory, serialize_manifest
from passkit.errors import InvalidManifestInput, InvalidScratchPath


DIGESTS = {
    "pass.json": "b0e1a9d5f4e9b7d3c4b8a5e6f7d8c9b0a1e2f3d4",
    "icon.png": "0123456789abcdef0123456789abcdef01234567",
}


class TestSerializeManifest:

    def test_compact_sorted_json(self):
        data = serialize_manifest(DIGESTS)
        assert data == (
            b'{"icon.png":"0123456789abcdef0123456789abcdef01234567",'
            b'"pass.json":"b0e1a9d5f4e9b7d3c4b8a5e6f7d8c9b0a1e2f3d4"}'
        )

    def test_deterministic_regardless_of_insertion_order(self):
        reordered = dict(reversed(list(DIGESTS.items())))
        assert serialize_manifest(reordered) == serialize_manifest(DIGESTS)

    def test_non_ascii_names_are_utf8(self):
        data = serialize_manifest({"café.png": "00"})
        assert "café.png".encode("utf-8") in data
        assert json.loads(data.decode("utf-8")) == {"café.png": "00"}


class TestManifestBuilder:
    """Tests for ManifestBuilder.build."""

    def test_written_bytes_equal_returned_bytes(self, temp_dir):
        manifest = ManifestBuilder().build(DIGESTS, temp_dir)
        assert manifest.path == temp_dir / "manifest.json"
        assert manifest.path.read_bytes() == manifest.data
        assert manifest.read_back() == manifest.data
        assert json.loads(manifest.data) == DIGESTS

    def test_accepts_serialized_string(self, temp_dir):
        text = '{"pass.json":"aa"}'
        manifest = ManifestBuilder().build(text, temp_dir)
        assert manifest.data == text.encode("utf-8")

    def test_accepts_path_string(self, temp_dir):
        manifest = ManifestBuilder().build(DIGESTS, str(temp_dir))
        assert manifest.path.exists()

    def test_custom_filename(self, temp_dir):
        manifest = ManifestBuilder(filename="manifest").build(DIGESTS, temp_dir)
        assert manifest.path.name == "manifest"

    def test_missing_source(self, temp_dir):
        with pytest.raises(InvalidManifestInput):
            ManifestBuilder().build(None, temp_dir)

    @pytest.mark.parametrize("source", [42, ["pass.json"], {"pass.json": 1}])
    def test_wrong_shaped_source(self, temp_dir, source):
        with pytest.raises(InvalidManifestInput):
            ManifestBuilder().build(source, temp_dir)

    @pytest.mark.parametrize("scratch", [None, 7, ""])
    def test_scratch_must_be_a_path(self, scratch):
        with pytest.raises(InvalidScratchPath):
            ManifestBuilder().build(DIGESTS, scratch)

    def test_scratch_must_exist(self, temp_dir):
        with pytest.raises(InvalidScratchPath):
            ManifestBuilder().build(DIGESTS, temp_dir / "missing")

    def test_nothing_written_on_invalid_input(self, temp_dir):
        with pytest.raises(InvalidManifestInput):
            ManifestBuilder().build(42, temp_dir)
        assert not (temp_dir / "manifest.json").exists()


class TestScratchDirectory:
    """Tests for the request scratch directory."""

    def test_created_and_removed(self, temp_dir):
        with scratch_directory(root=temp_dir) as scratch:
            assert scratch.is_dir()
            assert scratch.parent == temp_dir
            assert scratch.name.startswith("passkit-")
            (scratch / "manifest.json").write_bytes(b"{}")
        assert not scratch.exists()

    def test_removed_on_error(self, temp_dir):
        with pytest.raises(RuntimeError):
            with scratch_directory(root=temp_dir) as scratch:
                (scratch / "manifest.json").write_bytes(b"{}")
                raise RuntimeError("stage failed")
        assert not scratch.exists()

    def test_unique_per_request(self, temp_dir):
        with scratch_directory(root=temp_dir) as first, scratch_directory(root=temp_dir) as second:
            assert first != second

    def test_custom_prefix(self, temp_dir):
        with scratch_directory(prefix="req-", root=temp_dir) as scratch:
            assert scratch.name.startswith("req-")
