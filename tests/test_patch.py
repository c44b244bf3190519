"""Tests for set operations and JSON merge patch."""

import pytest

from worky.core.patch import (
    SetOperation,
    apply_merge_patch,
    apply_set_operation,
    apply_set_operations,
    coerce_operations,
    parse_value,
)
from worky.errors import InvalidPath


class TestParseValue:
    """Tests for JSON-or-text value parsing."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("42", 42),
            ("1.5", 1.5),
            ("true", True),
            ("null", None),
            ('"quoted"', "quoted"),
            ('{"a": [1, 2]}', {"a": [1, 2]}),
            ("IN_PROGRESS", "IN_PROGRESS"),
            ("hello world", "hello world"),
            ("", ""),
        ],
    )
    def test_values(self, text, expected):
        assert parse_value(text) == expected

    def test_nan_stays_text(self):
        assert parse_value("NaN") == "NaN"


class TestSetOperationParse:
    """Tests for 'path=value' parsing."""

    def test_plain_string(self):
        op = SetOperation.parse("state=IN_PROGRESS")
        assert op == SetOperation("state", "IN_PROGRESS")

    def test_json_value(self):
        assert SetOperation.parse("fields.count=42").value == 42
        assert SetOperation.parse("fields.active=true").value is True

    def test_strips_whitespace(self):
        op = SetOperation.parse("  assignee = alice ")
        assert op.path == "assignee"
        assert op.value == "alice"

    def test_value_may_contain_equals(self):
        assert SetOperation.parse("fields.expr=a=b").value == "a=b"

    def test_missing_equals_raises(self):
        with pytest.raises(InvalidPath):
            SetOperation.parse("state")

    def test_empty_path_raises(self):
        with pytest.raises(InvalidPath):
            SetOperation.parse("=value")

    def test_malformed_path_raises(self):
        with pytest.raises(InvalidPath):
            SetOperation.parse("fields..x=1")

    def test_coerce_mixes_objects_and_text(self):
        ops = coerce_operations([SetOperation("a", 1), "b=2"])
        assert ops == [SetOperation("a", 1), SetOperation("b", 2)]

    def test_coerce_rejects_other_types(self):
        with pytest.raises(InvalidPath):
            coerce_operations([42])


class TestApplySetOperation:
    """Tests for applying set operations."""

    def test_returns_old_value(self):
        doc = {"state": "TODO"}
        doc, old = apply_set_operation(doc, SetOperation("state", "DONE"))
        assert doc == {"state": "DONE"}
        assert old == "TODO"

    def test_creates_nested_path(self):
        doc, old = apply_set_operation({}, SetOperation("fields.System.IterationPath", "Sprint 5"))
        assert doc == {"fields": {"System": {"IterationPath": "Sprint 5"}}}
        assert old is None

    def test_root_replaces_document(self):
        doc, old = apply_set_operation({"a": 1}, SetOperation("", {"b": 2}))
        assert doc == {"b": 2}
        assert old == {"a": 1}

    def test_value_is_copied(self):
        value = {"nested": [1]}
        doc, _ = apply_set_operation({}, SetOperation("fields.x", value))
        value["nested"].append(2)
        assert doc["fields"]["x"] == {"nested": [1]}

    def test_unset_removes_key(self):
        doc, old = apply_set_operation({"fields": {"a": 1, "b": 2}}, SetOperation.remove("fields.a"))
        assert doc == {"fields": {"b": 2}}
        assert old == 1

    def test_unset_missing_is_noop(self):
        doc, old = apply_set_operation({"fields": {}}, SetOperation.remove("fields.a.b"))
        assert doc == {"fields": {}}
        assert old is None

    def test_through_scalar_raises(self):
        with pytest.raises(InvalidPath):
            apply_set_operation({"state": "TODO"}, SetOperation("state.x", 1))

    def test_operations_apply_in_order(self):
        doc, olds = apply_set_operations(
            {"state": "TODO"},
            [SetOperation("state", "IN_PROGRESS"), SetOperation("state", "DONE")],
        )
        assert doc == {"state": "DONE"}
        assert olds == ["TODO", "IN_PROGRESS"]

    def test_str_form(self):
        assert str(SetOperation("fields.count", 42)) == "fields.count=42"
        assert str(SetOperation.remove("fields.count")) == "-fields.count"


class TestMergePatch:
    """RFC 7396 behaviour."""

    def test_rfc_example(self):
        target = {"a": "b", "c": {"d": "e", "f": "g"}}
        patch = {"a": "z", "c": {"f": None}}
        assert apply_merge_patch(target, patch) == {"a": "z", "c": {"d": "e"}}

    def test_null_removes(self):
        assert apply_merge_patch({"a": 1, "b": 2}, {"a": None}) == {"b": 2}

    def test_null_on_missing_key_is_noop(self):
        assert apply_merge_patch({"a": 1}, {"zz": None}) == {"a": 1}

    def test_scalar_patch_replaces(self):
        assert apply_merge_patch({"a": 1}, "text") == "text"
        assert apply_merge_patch({"a": 1}, None) is None

    def test_arrays_replace(self):
        assert apply_merge_patch({"labels": [1, 2]}, {"labels": [3]}) == {"labels": [3]}

    def test_object_patch_over_scalar_target(self):
        assert apply_merge_patch("x", {"a": {"b": None, "c": 1}}) == {"a": {"c": 1}}

    def test_empty_patch_is_identity(self):
        target = {"a": {"b": [1]}}
        assert apply_merge_patch(target, {}) == {"a": {"b": [1]}}

    def test_idempotent(self):
        patch = {"fields": {"priority": "high", "gone": None, "nested": {"x": 1}}}
        once = apply_merge_patch({"fields": {"gone": 1}}, patch)
        twice = apply_merge_patch(apply_merge_patch({"fields": {"gone": 1}}, patch), patch)
        assert once == twice
