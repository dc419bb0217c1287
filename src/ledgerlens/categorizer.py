import sqlite3
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict
from typing import Any, Iterable, Mapping

from ledgerlens.categories import FALLBACK_RULES, UNCATEGORIZED
from ledgerlens.errors import RuleFetchFailed
from ledgerlens.logging_setup import get_logger
from ledgerlens.models import (
    Classification, ClassificationRule, ClassifiedTransaction, TransactionCandidate,
)
from ledgerlens.normalize import coerce_amount
from ledgerlens.rule_cache import RuleCache

_logger = get_logger("ledgerlens.categorizer")


def _field(transaction: Any, name: str) -> Any:
    if isinstance(transaction, Mapping):
        return transaction.get(name)
    return getattr(transaction, name, None)


def search_text_for(transaction: Any) -> str:
    description = _field(transaction, "description") or ""
    payee = _field(transaction, "payee") or ""
    return f"{description} {payee}".lower()


class Classifier:
    """User rules first (through the rule cache), then the fallback table; first match wins."""

    def __init__(
        self,
        cache: RuleCache,
        fallback_rules: Mapping[str, list[str]] = FALLBACK_RULES,
        fetch_timeout: float | None = None,
    ):
        self.cache = cache
        self.fetch_timeout = fetch_timeout
        self._fallback = [
            (category, tuple(kw.lower() for kw in keywords if isinstance(kw, str) and kw))
            for category, keywords in fallback_rules.items()
        ]

    def _user_rules(self, user_id: str, cancel: threading.Event | None) -> list[ClassificationRule]:
        try:
            return self.cache.get_rules(user_id, timeout=self.fetch_timeout, cancel=cancel)
        except RuleFetchFailed:
            _logger.warning("classify:rules_unavailable user=%s; using fallback rules only",
                            user_id, exc_info=True)
            return []

    def classify(
        self, transaction: Any, user_id: str, *, cancel: threading.Event | None = None
    ) -> Classification:
        search_text = search_text_for(transaction)
        amount = coerce_amount(_field(transaction, "amount"))

        for rule in self._user_rules(user_id, cancel):
            if not rule.allows(amount):
                continue
            keyword = rule.match(search_text)
            if keyword is not None:
                _logger.debug("classify:user_rule rule=%s keyword=%r category=%r",
                              rule.id, keyword, rule.category)
                return Classification(category=rule.category, source="user",
                                      rule_id=rule.id, keyword=keyword)

        for category, keywords in self._fallback:
            for keyword in keywords:
                if keyword in search_text:
                    _logger.debug("classify:fallback keyword=%r category=%r", keyword, category)
                    return Classification(category=category, source="fallback", keyword=keyword)

        _logger.debug("classify:no_match text=%r", search_text[:100])
        return Classification(category=UNCATEGORIZED)

    def classify_all(
        self,
        candidates: Iterable[TransactionCandidate],
        user_id: str,
        *,
        concurrency: int = 4,
        cancel: threading.Event | None = None,
    ) -> list[ClassifiedTransaction]:
        """Classify a batch on a thread pool, preserving input order."""
        if concurrency < 1:
            raise ValueError("concurrency must be a positive integer")

        def _one(candidate: TransactionCandidate) -> ClassifiedTransaction:
            result = self.classify(candidate, user_id, cancel=cancel)
            fields = asdict(candidate)
            fields["category"] = result.category
            return ClassifiedTransaction(**fields)

        with ThreadPoolExecutor(max_workers=concurrency) as pool:
            return list(pool.map(_one, candidates))


def categorize_transactions(conn: sqlite3.Connection, classifier: Classifier, user_id: str) -> dict:
    """Re-run classification on a user's stored uncategorized transactions. Returns counts."""
    flagged = conn.execute(
        "SELECT id, description, payee, amount FROM transactions "
        "WHERE user_id = ? AND category = ''",
        (user_id,),
    ).fetchall()

    categorized = 0
    still_flagged = 0
    for txn in flagged:
        result = classifier.classify(dict(txn), user_id)
        if result.category:
            conn.execute(
                "UPDATE transactions SET category = ?, is_flagged = 0, flag_reason = NULL WHERE id = ?",
                (result.category, txn["id"]),
            )
            categorized += 1
        else:
            still_flagged += 1

    conn.commit()
    return {"categorized": categorized, "still_flagged": still_flagged}
