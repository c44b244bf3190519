"""Tests for dot-path resolution."""

import pytest

from worky.core.paths import join_path, lookup, resolve, split_path, to_pointer
from worky.errors import InvalidPath


class TestSplitPath:
    """Tests for path segmentation."""

    def test_empty_path_is_root(self):
        assert split_path("") == []

    def test_splits_on_dots(self):
        assert split_path("fields.System.IterationPath") == ["fields", "System", "IterationPath"]

    @pytest.mark.parametrize("path", [".state", "state.", "fields..x"])
    def test_empty_segment_raises(self, path):
        """Leading, trailing or doubled dots are malformed."""
        with pytest.raises(InvalidPath):
            split_path(path)

    def test_join_path(self):
        assert join_path("", "state") == "state"
        assert join_path("fields", "priority") == "fields.priority"


class TestToPointer:
    """Tests for RFC 6901 conversion."""

    def test_examples(self):
        assert to_pointer("state") == "/state"
        assert to_pointer("fields.priority") == "/fields/priority"
        assert to_pointer("fields.System.IterationPath") == "/fields/System/IterationPath"
        assert to_pointer("") == ""

    def test_escapes_tilde_and_slash(self):
        assert to_pointer("fields.a/b.c~d") == "/fields/a~1b/c~0d"


class TestResolve:
    """Tests for slot resolution."""

    def test_root(self):
        doc = {"a": 1}
        assert resolve(doc, "") == (None, "")
        assert doc == {"a": 1}

    def test_existing_slot(self):
        doc = {"state": "TODO"}
        parent, key = resolve(doc, "state")
        assert parent is doc
        assert key == "state"
        assert doc == {"state": "TODO"}

    def test_creates_intermediates_and_placeholder(self):
        """Missing segments become objects; the terminal slot holds None."""
        doc = {}
        parent, key = resolve(doc, "fields.System.IterationPath")
        assert doc == {"fields": {"System": {"IterationPath": None}}}
        assert parent is doc["fields"]["System"]
        assert key == "IterationPath"

    def test_idempotent(self):
        """Resolving twice leaves the same document as resolving once."""
        once = {"fields": {"x": 1}}
        resolve(once, "fields.y.z")
        twice = {"fields": {"x": 1}}
        resolve(twice, "fields.y.z")
        resolve(twice, "fields.y.z")
        assert once == twice

    def test_through_scalar_raises(self):
        doc = {"state": "TODO"}
        with pytest.raises(InvalidPath, match="non-object at 'state'"):
            resolve(doc, "state.x")

    def test_through_array_raises(self):
        doc = {"labels": ["bug"]}
        with pytest.raises(InvalidPath):
            resolve(doc, "labels.0")

    def test_non_object_root_raises(self):
        with pytest.raises(InvalidPath):
            resolve([1, 2], "a")


class TestLookup:
    """Tests for read-only lookup."""

    def test_reads_nested_value(self):
        assert lookup({"fields": {"a": {"b": 3}}}, "fields.a.b") == 3

    def test_missing_returns_default_without_creating(self):
        doc = {"fields": {}}
        assert lookup(doc, "fields.a.b", default="none") == "none"
        assert doc == {"fields": {}}

    def test_root(self):
        doc = {"a": 1}
        assert lookup(doc, "") is doc
