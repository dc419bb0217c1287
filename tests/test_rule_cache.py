import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeout

import pytest

from ledgerlens.errors import RuleFetchFailed
from ledgerlens.models import ClassificationRule
from ledgerlens.rule_cache import RuleCache

RULES = {
    "u1": [{"id": 1, "category": "Meals", "keywords": ["Starbucks"], "amount_direction": "negative"}],
    "u2": [{"id": 2, "category": "Travel", "keywords": ["uber"]}],
}


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_rules_are_parsed(store):
    store.rules = RULES
    rules = RuleCache(store).get_rules("u1")
    assert rules == [ClassificationRule(id=1, category="Meals", keywords=("starbucks",),
                                        amount_direction="negative")]


def test_two_calls_within_ttl_fetch_once(store):
    store.rules = RULES
    cache = RuleCache(store)
    cache.get_rules("u1")
    cache.get_rules("u1")
    assert store.calls == 1


def test_clear_user_forces_refetch(store):
    store.rules = RULES
    cache = RuleCache(store)
    cache.get_rules("u1")
    cache.get_rules("u2")
    cache.clear("u1")
    cache.get_rules("u1")
    cache.get_rules("u2")
    assert store.calls == 3


def test_clear_all(store):
    store.rules = RULES
    cache = RuleCache(store)
    cache.get_rules("u1")
    cache.get_rules("u2")
    cache.clear()
    cache.get_rules("u1")
    cache.get_rules("u2")
    assert store.calls == 4


def test_entry_expires_after_ttl(store):
    store.rules = RULES
    clock = FakeClock()
    cache = RuleCache(store, ttl=60, clock=clock)
    cache.get_rules("u1")
    clock.now = 59.9
    cache.get_rules("u1")
    assert store.calls == 1
    clock.now = 60.0
    cache.get_rules("u1")
    assert store.calls == 2


def test_returned_list_is_a_copy(store):
    store.rules = RULES
    cache = RuleCache(store)
    cache.get_rules("u1").clear()
    assert len(cache.get_rules("u1")) == 1


def test_unknown_user_gets_no_rules(store):
    assert RuleCache(store).get_rules("nobody") == []


def test_store_error_raises_and_is_not_cached(store):
    store.error = ConnectionError("database unavailable")
    cache = RuleCache(store)
    with pytest.raises(RuleFetchFailed) as excinfo:
        cache.get_rules("u1")
    assert excinfo.value.user_id == "u1"
    assert "database unavailable" in str(excinfo.value)

    with pytest.raises(RuleFetchFailed):
        cache.get_rules("u1")
    assert store.calls == 2


def test_slow_store_times_out(store):
    store.delay = 0.5
    cache = RuleCache(store)
    try:
        with pytest.raises(RuleFetchFailed, match="timed out"):
            cache.get_rules("u1", timeout=0.05)
    finally:
        cache.close()


def test_fetch_within_timeout_succeeds(store):
    store.rules = RULES
    cache = RuleCache(store)
    try:
        assert len(cache.get_rules("u2", timeout=5.0)) == 1
    finally:
        cache.close()


def test_cancelled_fetch(store):
    store.delay = 0.5
    cancel = threading.Event()
    cancel.set()
    cache = RuleCache(store)
    try:
        with pytest.raises(RuleFetchFailed, match="cancelled"):
            cache.get_rules("u1", cancel=cancel)
    finally:
        cache.close()


def test_clear_during_fetch_discards_result(store):
    store.rules = RULES
    cache = RuleCache(store)
    real_fetch = store.get_classification_rules

    def fetch_then_clear(user_id):
        records = real_fetch(user_id)
        cache.clear(user_id)  # a rule edit lands while the fetch is in flight
        return records

    store.get_classification_rules = fetch_then_clear
    assert len(cache.get_rules("u1")) == 1
    store.get_classification_rules = real_fetch
    cache.get_rules("u1")
    assert store.calls == 2


def test_concurrent_readers(store):
    store.rules = RULES
    cache = RuleCache(store)
    cache.get_rules("u1")
    results = []

    def read():
        results.append(cache.get_rules("u1"))

    threads = [threading.Thread(target=read) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(results) == 8
    assert all(r[0].category == "Meals" for r in results)
    assert store.calls == 1


class _FinishesAfterWait(Future):
    """Completes just after the caller's bounded wait gives up."""

    def __init__(self, value):
        super().__init__()
        self._value = value
        self._waited = False

    def result(self, timeout=None):
        if not self._waited:
            self._waited = True
            self.set_result(self._value)
            raise FutureTimeout()
        return super().result(timeout)


class _InlineExecutor:
    def submit(self, fn, *args):
        return _FinishesAfterWait(fn(*args))

    def shutdown(self, wait=True, cancel_futures=False):
        pass


def test_fetch_finishing_right_after_wait_is_returned(store, monkeypatch):
    store.rules = RULES
    cache = RuleCache(store)
    monkeypatch.setattr(cache, "_pool", lambda: _InlineExecutor())
    rules = cache.get_rules("u2", timeout=5.0)
    assert [r.category for r in rules] == ["Travel"]
