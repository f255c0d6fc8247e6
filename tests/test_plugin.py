from __future__ import annotations

import pytest

from identity_pool import PoolConfigError
from identity_pool import plugin
from identity_pool.core.config import validate_pools_config
from .helpers.log_assertions import ops_events, read_ops_log


def test_key_is_the_name():
    assert plugin.key("accounts") == "accounts"


def test_create_local_pool_is_ready():
    pool = plugin.create("local", {"lock_expire": 30}, identities={"a": {"data": 1}})
    try:
        assert pool.options.lock_expire == 30
        assert pool.acquire().id == "a"
    finally:
        plugin.destroy(pool)


def test_create_stored_pool_reports_missing_entry(store, fatal):
    with pytest.raises(PoolConfigError):
        plugin.create("nowhere", stored=True, store=store, fatal=fatal)
    assert fatal.calls[0]["pool"] == "nowhere"


def test_host_caches_by_key(store):
    store.put("shared", {"options": {}, "identities": {"a": {"data": 1}}})
    host = plugin.PoolHost(store=store)
    first = host.get_or_create("shared", stored=True)
    again = host.get_or_create("shared", stored=True)
    assert first is again
    assert host.names() == ["shared"]
    assert host.destroy("shared") is True
    assert host.destroy("shared") is False
    assert host.names() == []


def test_host_from_config_and_destroy_all(store, ops, ops_path):
    store.put("accounts", {"options": {}, "identities": {"x": {"data": 1}}})
    cfg = validate_pools_config(
        {
            "pools": {
                "accounts": {"stored": True},
                "local": {"options": {"recently_used_first": False}, "identities": {"a": {"data": 1}}},
            }
        }
    )
    host = plugin.PoolHost.from_config(cfg, store=store, ops=ops)
    assert host.names() == ["accounts", "local"]

    accounts = host.get_or_create("accounts")
    got = accounts.acquire(lock=True)
    assert got.id == "x"

    assert host.destroy_all() == {"accounts": True, "local": True}
    assert store.document()["accounts"]["identities"]["x"]["locked_at"] == got.locked_at

    rows = read_ops_log(ops_path)
    assert {r["pool"] for r in ops_events(rows, "pool.destroy")} == {"accounts", "local"}
    assert ops_events(rows, "pool.init")[0]["pool"] == "accounts"
