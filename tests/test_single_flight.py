from __future__ import annotations

import threading

import pytest

from identity_pool.core.single_flight import SingleFlight
from .helpers.fakes import run_threads, wait_for


def test_concurrent_same_key_runs_once_and_shares_result():
    sf = SingleFlight()
    gate = threading.Event()
    calls = {"n": 0}
    results = {}

    def fn():
        calls["n"] += 1
        gate.wait(5)
        return object()

    def worker(i):
        results[i] = sf.run("k", fn)

    threads = run_threads(8, worker)
    assert wait_for(lambda: sf.waiters("k") == 7)
    gate.set()
    for t in threads:
        t.join(5)

    assert calls["n"] == 1
    assert len(results) == 8
    assert len({id(v) for v in results.values()}) == 1
    assert sf.inflight() == 0


def test_failure_reaches_every_waiter_and_does_not_stick():
    sf = SingleFlight()
    gate = threading.Event()
    calls = {"n": 0}
    errors = {}

    def boom():
        calls["n"] += 1
        gate.wait(5)
        raise RuntimeError("factory down")

    def worker(i):
        try:
            sf.run("k", boom)
        except RuntimeError as e:
            errors[i] = e

    threads = run_threads(4, worker)
    assert wait_for(lambda: sf.waiters("k") == 3)
    gate.set()
    for t in threads:
        t.join(5)

    assert calls["n"] == 1
    assert len(errors) == 4
    assert len({id(e) for e in errors.values()}) == 1

    # next call starts fresh
    assert sf.run("k", lambda: "ok") == "ok"


def test_different_keys_do_not_collapse():
    sf = SingleFlight()
    gate = threading.Event()
    calls = {"a": 0, "b": 0}

    def make(k):
        def fn():
            calls[k] += 1
            gate.wait(5)
            return k

        return fn

    out = {}
    ta = threading.Thread(target=lambda: out.__setitem__("a", sf.run("a", make("a"))))
    tb = threading.Thread(target=lambda: out.__setitem__("b", sf.run("b", make("b"))))
    ta.start()
    tb.start()
    assert wait_for(lambda: sf.inflight() == 2)
    gate.set()
    ta.join(5)
    tb.join(5)
    assert out == {"a": "a", "b": "b"}
    assert calls == {"a": 1, "b": 1}


def test_bound_key_ignores_caller_arguments():
    sf = SingleFlight()
    create_or_wait = sf.bind("create-or-wait")
    gate = threading.Event()
    seen = []

    def round_(factory_name):
        seen.append(factory_name)
        gate.wait(5)
        return factory_name

    out = {}

    def worker(i):
        out[i] = create_or_wait(round_, f"factory-{i}")

    threads = run_threads(3, worker)
    assert wait_for(lambda: sf.waiters("create-or-wait") == 2)
    gate.set()
    for t in threads:
        t.join(5)

    assert len(seen) == 1
    assert set(out.values()) == {seen[0]}


def test_sequential_calls_each_execute():
    sf = SingleFlight()
    calls = {"n": 0}

    def fn():
        calls["n"] += 1
        return calls["n"]

    assert sf.run("k", fn) == 1
    assert sf.run("k", fn) == 2


def test_leader_exception_type_preserved():
    sf = SingleFlight()
    with pytest.raises(KeyError):
        sf.run("k", lambda: {}["missing"])
    assert sf.inflight() == 0
