from __future__ import annotations

from datasync_api.normalizer import normalize
from datasync_api.reconciler import reconcile
from datasync_api.records import Action


def test_every_record_becomes_an_upsert_in_page_order() -> None:
    records = [normalize({"id": record_id}) for record_id in ("c", "a", "b")]

    ops = reconcile(records)

    assert [op.record_id for op in ops] == ["c", "a", "b"]
    assert {op.action for op in ops} == {Action.UPSERT}
    assert ops[0].payload == {"id": "c"}


def test_tombstones_become_deletes_only_when_enabled() -> None:
    records = [normalize({"id": "a"}), normalize({"id": "b", "deleted": True})]

    assert [op.record_id for op in reconcile(records)] == ["a"]
    assert [op.action for op in reconcile(records, apply_deletes=True)] == [
        Action.UPSERT,
        Action.DELETE,
    ]


def test_string_false_deleted_flag_keeps_the_record() -> None:
    for flag in ("false", "0", "no"):
        ops = reconcile([normalize({"id": 1, "name": "keep me", "deleted": flag})], apply_deletes=True)

        assert [op.action for op in ops] == [Action.UPSERT]


def test_duplicate_ids_collapse_to_latest_version_at_first_position() -> None:
    records = [
        normalize({"id": "a", "v": 2, "updated_at": "2026-01-02T00:00:00Z"}),
        normalize({"id": "b", "v": 1}),
        normalize({"id": "a", "v": 1, "updated_at": "2026-01-01T00:00:00Z"}),
        normalize({"id": "b", "v": 2}),
    ]

    ops = reconcile(records)

    assert [op.record_id for op in ops] == ["a", "b"]
    assert ops[0].payload["v"] == 2
    assert ops[1].payload["v"] == 2


def test_empty_page_yields_no_ops() -> None:
    assert reconcile([]) == []
