from __future__ import annotations

import uuid

from identity_pool.core.pool.models import IdentityRecord
from identity_pool.core.pool.registry import IdentityRegistry


def test_add_generates_uuid_and_defaults():
    reg = IdentityRegistry()
    iid, inserted = reg.add({"data": {"user": "u1"}})
    assert inserted is True
    uuid.UUID(iid)
    rec = reg.get(iid)
    assert rec is not None
    assert rec.deprecation_count == 0
    assert rec.last_used_at == 0.0
    assert rec.locked_at is None


def test_add_existing_id_keeps_local_values():
    reg = IdentityRegistry()
    reg.add({"id": "x", "data": "local", "deprecation_count": 1, "last_used_at": 50.0})
    assert reg.add({"id": "x", "data": "remote", "deprecation_count": 0, "last_used_at": 99.0}) == ("x", False)
    rec = reg.get("x")
    assert rec.data == "local"
    assert rec.deprecation_count == 1
    assert rec.last_used_at == 50.0


def test_add_fills_missing_payload_only():
    reg = IdentityRegistry()
    reg.add({"id": "x", "last_used_at": 5.0})
    reg.add({"id": "x", "data": "remote", "last_used_at": 99.0})
    rec = reg.get("x")
    assert rec.data == "remote"
    assert rec.last_used_at == 5.0


def test_add_can_drop_incoming_lock():
    reg = IdentityRegistry()
    reg.add(IdentityRecord(data=1, locked_at=10.0).model_dump() | {"id": "x"}, drop_lock=True)
    assert reg.get("x").locked_at is None


def test_tombstone_hides_record_but_keeps_id():
    reg = IdentityRegistry()
    reg.add({"id": "x", "data": 1})
    reg.add({"id": "y", "data": 2})
    assert reg.tombstone("x") is not None
    assert "x" in reg
    assert reg.get("x") is None
    assert reg.live_ids() == ["y"]
    assert reg.dump()["x"] is None
    assert reg.tombstone("x") is None


def test_tombstone_wins_over_incoming_record():
    reg = IdentityRegistry()
    reg.add({"id": "x", "data": 1})
    reg.tombstone("x")
    assert reg.add({"id": "x", "data": 1}) == ("x", False)
    assert reg.get("x") is None


def test_revive_replaces_tombstone_only():
    reg = IdentityRegistry()
    reg.add({"id": "x", "data": "old", "deprecation_count": 2})
    reg.tombstone("x")
    assert reg.add({"id": "x", "data": "new"}, revive=True) == ("x", True)
    rec = reg.get("x")
    assert rec.data == "new"
    assert rec.deprecation_count == 0
    assert reg.tombstones() == []
    # a live record still wins
    assert reg.add({"id": "x", "data": "other"}, revive=True) == ("x", False)
    assert reg.get("x").data == "new"
    # a revived slot is not purged by the sync that carried its tombstone
    assert reg.purge_tombstones(["x"]) == []


def test_purge_only_listed_tombstones():
    reg = IdentityRegistry()
    for k in ("a", "b", "c"):
        reg.add({"id": k})
    reg.tombstone("a")
    reg.tombstone("b")
    assert reg.purge_tombstones(["a", "c"]) == ["a"]
    assert "a" not in reg
    assert reg.tombstones() == ["b"]
    assert reg.purge_tombstones() == ["b"]
    assert reg.live_ids() == ["c"]
