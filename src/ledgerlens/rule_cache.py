"""Time-bounded, per-user cache of classification rules.

The cache is an explicit object owned by whoever runs classification. An entry
is created on the first request for a user, replaced wholesale on refetch, and
dropped by ``clear`` (call it right after any rule create/update/delete) or
when it is older than ``ttl`` seconds.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, Iterable, Mapping, Protocol

from ledgerlens.errors import RuleFetchFailed
from ledgerlens.logging_setup import get_logger
from ledgerlens.models import CachedRuleSet, ClassificationRule

DEFAULT_TTL = 60.0
_POLL_INTERVAL = 0.05

_logger = get_logger("ledgerlens.rule_cache")


class RuleStore(Protocol):
    def get_classification_rules(self, user_id: str) -> Iterable[Mapping]: ...


class RuleCache:
    def __init__(
        self,
        store: RuleStore,
        ttl: float = DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
        max_workers: int = 4,
    ):
        self._store = store
        self.ttl = ttl
        self._clock = clock
        self._max_workers = max_workers
        self._lock = threading.Lock()
        self._entries: dict[str, CachedRuleSet] = {}
        # Bumped by clear() so a fetch that started earlier can't repopulate stale rules.
        self._generations: dict[str, int] = {}
        self._epoch = 0
        self._executor: ThreadPoolExecutor | None = None

    def get_rules(
        self,
        user_id: str,
        *,
        timeout: float | None = None,
        cancel: threading.Event | None = None,
    ) -> list[ClassificationRule]:
        """Return the user's rules, fetching from the store on a miss or expiry.

        Raises RuleFetchFailed when the store errors, the fetch takes longer
        than ``timeout`` seconds, or ``cancel`` is set while waiting.
        """
        now = self._clock()
        with self._lock:
            entry = self._entries.get(user_id)
            if entry is not None and now - entry.fetched_at < self.ttl:
                _logger.debug("rule_cache:hit user=%s rules=%d", user_id, len(entry.rules))
                return list(entry.rules)
            token = (self._epoch, self._generations.get(user_id, 0))

        _logger.debug("rule_cache:miss user=%s expired=%s", user_id, entry is not None)
        records = self._fetch(user_id, timeout, cancel)
        rules = tuple(ClassificationRule.from_record(r) for r in records)
        fresh = CachedRuleSet(rules=rules, fetched_at=self._clock())

        with self._lock:
            if token == (self._epoch, self._generations.get(user_id, 0)):
                self._entries[user_id] = fresh
            else:
                _logger.debug("rule_cache:discard user=%s reason=cleared_during_fetch", user_id)
        return list(rules)

    def clear(self, user_id: str | None = None) -> None:
        """Forget one user's rules, or everyone's when ``user_id`` is None."""
        with self._lock:
            if user_id is None:
                self._entries.clear()
                self._epoch += 1
            else:
                self._entries.pop(user_id, None)
                self._generations[user_id] = self._generations.get(user_id, 0) + 1

    def close(self) -> None:
        with self._lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    def _load(self, user_id: str) -> list:
        return list(self._store.get_classification_rules(user_id) or [])

    def _pool(self) -> ThreadPoolExecutor:
        with self._lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers, thread_name_prefix="ledgerlens-rules",
                )
            return self._executor

    def _fetch(self, user_id: str, timeout: float | None, cancel: threading.Event | None) -> list:
        if timeout is None and cancel is None:
            try:
                return self._load(user_id)
            except Exception as exc:
                raise RuleFetchFailed(user_id, str(exc) or exc.__class__.__name__) from exc

        future = self._pool().submit(self._load, user_id)
        deadline = None if timeout is None else time.monotonic() + timeout
        while True:
            if cancel is not None and cancel.is_set():
                future.cancel()
                raise RuleFetchFailed(user_id, "cancelled")
            wait_for = _POLL_INTERVAL if cancel is not None else None
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    future.cancel()
                    raise RuleFetchFailed(user_id, f"timed out after {timeout}s")
                wait_for = remaining if wait_for is None else min(wait_for, remaining)
            try:
                try:
                    return future.result(timeout=wait_for)
                except FutureTimeout:
                    if not future.done():
                        continue
                    # Finished between the wait and the check; collect its outcome.
                    return future.result()
            except Exception as exc:
                raise RuleFetchFailed(user_id, str(exc) or exc.__class__.__name__) from exc
