"""
Unit tests for JSON merge patch helpers.
"""

import pytest

from service_ratelimit.app.mergepatch import apply_merge_patch, create_merge_patch


class TestCreateMergePatch:
    """Test cases for create_merge_patch."""

    def test_identical_documents(self):
        document = {"metadata": {"name": "a", "labels": {"app": "x"}}}

        assert create_merge_patch(document, document) == {}

    def test_nested_addition(self):
        original = {"metadata": {"name": "a", "annotations": {"x": "1"}}, "spec": {"nodeName": ""}}
        modified = {"metadata": {"name": "a", "annotations": {"x": "1", "y": "2"}}, "spec": {"nodeName": ""}}

        assert create_merge_patch(original, modified) == {"metadata": {"annotations": {"y": "2"}}}

    def test_removed_key_becomes_null(self):
        assert create_merge_patch({"a": 1, "b": 2}, {"a": 1}) == {"b": None}

    def test_lists_replaced_whole(self):
        patch = create_merge_patch({"items": [1, 2]}, {"items": [1, 2, 3]})

        assert patch == {"items": [1, 2, 3]}

    def test_requires_objects(self):
        with pytest.raises(TypeError):
            create_merge_patch([], {})


class TestApplyMergePatch:
    """Test cases for apply_merge_patch."""

    def test_apply_nested(self):
        target = {"metadata": {"name": "a", "annotations": {"x": "1"}}}

        result = apply_merge_patch(target, {"metadata": {"annotations": {"y": "2", "x": None}}})

        assert result == {"metadata": {"name": "a", "annotations": {"y": "2"}}}
        assert target == {"metadata": {"name": "a", "annotations": {"x": "1"}}}

    def test_apply_creates_missing_objects(self):
        assert apply_merge_patch({"metadata": {}}, {"metadata": {"annotations": {"k": "v"}}}) == {
            "metadata": {"annotations": {"k": "v"}}
        }

    def test_non_object_patch_replaces(self):
        assert apply_merge_patch({"a": 1}, ["x"]) == ["x"]
