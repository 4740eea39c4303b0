from __future__ import annotations

from etcd_statefulset.patch import create_merge_patch


def test_unchanged_documents_produce_empty_patch() -> None:
    doc = {"metadata": {"name": "myetcd", "labels": {"a": "1"}}, "spec": {"replicas": 1}}

    assert create_merge_patch(doc, dict(doc)) == {}


def test_changed_and_removed_fields() -> None:
    original = {
        "metadata": {"labels": {"a": "1", "b": "2"}, "resourceVersion": "7"},
        "spec": {"replicas": 1, "template": {"spec": {"containers": [{"name": "etcd", "image": "v1"}]}}},
        "status": {"replicas": 1},
    }
    modified = {
        "metadata": {"labels": {"a": "1", "c": "3"}, "resourceVersion": "7"},
        "spec": {"replicas": 3, "template": {"spec": {"containers": [{"name": "etcd", "image": "v2"}]}}},
        "status": {"replicas": 1},
    }

    assert create_merge_patch(original, modified) == {
        "metadata": {"labels": {"b": None, "c": "3"}},
        "spec": {
            "replicas": 3,
            "template": {"spec": {"containers": [{"name": "etcd", "image": "v2"}]}},
        },
    }


def test_type_change_replaces_value() -> None:
    assert create_merge_patch({"a": {"b": 1}}, {"a": "flat"}) == {"a": "flat"}
