"""
Tests for content enumeration of a pass model directory.
"""

import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from passkit.assembly import ContentEnumerator, remove_dot_files
from passkit.errors import EmptySource, MissingRequiredEntry, SourceNotFound


class TestRemoveDotFiles:

    def test_hidden_entries_removed(self):
        assert remove_dot_files([".DS_Store", "pass.json", ".git", "icon.png"]) == [
            "pass.json", "icon.png",
        ]

    def test_no_hidden_entries(self):
        assert remove_dot_files(["a", "b"]) == ["a", "b"]


class TestContentEnumerator:
    """Tests for ContentEnumerator.enumerate."""

    def test_lists_visible_files_sorted(self, make_model):
        model = make_model("event", {
            "pass.json": b"{}",
            "logo.png": b"L",
            "icon.png": b"I",
            ".DS_Store": b"x",
        })
        sources = ContentEnumerator().enumerate(model)
        assert [s.name for s in sources] == ["icon.png", "logo.png", "pass.json"]
        assert all(s.path.parent == model for s in sources)

    def test_missing_directory(self, temp_dir):
        with pytest.raises(SourceNotFound) as exc:
            ContentEnumerator().enumerate(temp_dir / "nope.pass")
        assert exc.value.cause is not None

    def test_empty_directory(self, make_model):
        model = make_model("event", {})
        with pytest.raises(EmptySource):
            ContentEnumerator().enumerate(model)

    def test_only_hidden_files_is_empty(self, make_model):
        model = make_model("event", {".DS_Store": b"x", ".hidden": b"y"})
        with pytest.raises(EmptySource) as exc:
            ContentEnumerator().enumerate(model)
        assert exc.value.http_status == 422

    def test_missing_pass_json(self, make_model):
        model = make_model("event", {"icon.png": b"I"})
        with pytest.raises(MissingRequiredEntry) as exc:
            ContentEnumerator().enumerate(model)
        assert exc.value.entry == "pass.json"
        assert exc.value.client_error

    def test_custom_required_entry(self, make_model):
        model = make_model("event", {"ticket.json": b"{}"})
        sources = ContentEnumerator(required_entry="ticket.json").enumerate(model)
        assert [s.name for s in sources] == ["ticket.json"]

    def test_reserved_names_skipped(self, make_model):
        model = make_model("event", {
            "pass.json": b"{}",
            "manifest.json": b"stale",
            "signature": b"stale",
        })
        sources = ContentEnumerator().enumerate(model)
        assert [s.name for s in sources] == ["pass.json"]

    def test_subdirectories_skipped(self, make_model):
        model = make_model("event")
        (model / "en.lproj").mkdir()
        names = [s.name for s in ContentEnumerator().enumerate(model)]
        assert "en.lproj" not in names
        assert names == ["icon.png", "pass.json"]
