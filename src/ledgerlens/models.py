import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Mapping

POSITIVE = "positive"
NEGATIVE = "negative"
ANY = "any"
DIRECTIONS = (POSITIVE, NEGATIVE, ANY)

UNKNOWN_BANK = "unknown"


@dataclass
class TransactionCandidate:
    """A transaction recovered from statement text, before classification."""
    date: date
    description: str
    payee: str
    amount: Decimal  # negative = money out, positive = money in
    source_line: str

    @property
    def type(self) -> str:
        return "income" if self.amount > 0 else "expense"

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "description": self.description,
            "payee": self.payee,
            "amount": str(self.amount),
            "type": self.type,
            "source_line": self.source_line,
        }


@dataclass
class ClassifiedTransaction(TransactionCandidate):
    category: str = ""  # empty = no rule matched, needs review

    def to_dict(self) -> dict:
        return {**super().to_dict(), "category": self.category}


@dataclass
class BankInfo:
    identity: str  # registered format key or "unknown"
    name: str
    confidence: float

    def to_dict(self) -> dict:
        return {"identity": self.identity, "name": self.name, "confidence": self.confidence}


@dataclass
class StatementPeriod:
    start: date
    end: date

    def to_dict(self) -> dict:
        return {"start": self.start.isoformat(), "end": self.end.isoformat()}


@dataclass
class ExtractionResult:
    success: bool
    transactions: list[TransactionCandidate]
    metadata: dict
    bank_info: BankInfo | None = None
    statement_period: StatementPeriod | None = None
    error: str | None = None

    def to_dict(self) -> dict:
        if not self.success:
            return {
                "success": False,
                "error": self.error,
                "transactions": [],
                "metadata": dict(self.metadata),
            }
        return {
            "success": True,
            "bank_info": self.bank_info.to_dict() if self.bank_info else None,
            "statement_period": self.statement_period.to_dict() if self.statement_period else None,
            "transactions": [t.to_dict() for t in self.transactions],
            "metadata": dict(self.metadata),
        }


@dataclass(frozen=True)
class ClassificationRule:
    """A user keyword → category rule, validated once when it leaves the store."""
    id: Any
    category: str
    keywords: tuple[str, ...] = ()  # lowercased
    amount_direction: str = ANY
    is_valid_direction: bool = True

    @classmethod
    def from_record(cls, record: Any) -> "ClassificationRule":
        """Build a rule from a loosely shaped store record. Never raises.

        Bad shapes make the rule inert instead of failing: non-list keywords
        become an empty tuple, non-string keywords are dropped, a rule without
        a category name has no keywords, and an unrecognized direction is
        never satisfied. String keywords are kept as given, so an empty
        keyword matches every transaction.
        """
        if isinstance(record, ClassificationRule):
            return record
        if not isinstance(record, Mapping):
            return cls(id=None, category="", keywords=())

        category = record.get("category")
        if not isinstance(category, str) or not category.strip():
            category = ""

        raw_keywords = record.get("keywords")
        keywords: tuple[str, ...] = ()
        if category and isinstance(raw_keywords, (list, tuple)):
            keywords = tuple(kw.lower() for kw in raw_keywords if isinstance(kw, str))

        direction = record.get("amount_direction", record.get("amountDirection"))
        valid = True
        if direction is None:
            direction = ANY
        elif not isinstance(direction, str) or direction.lower() not in DIRECTIONS:
            valid = False
            direction = str(direction)
        else:
            direction = direction.lower()

        return cls(
            id=record.get("id"),
            category=category,
            keywords=keywords,
            amount_direction=direction,
            is_valid_direction=valid,
        )

    def allows(self, amount: Decimal | None) -> bool:
        if not self.is_valid_direction:
            return False
        if self.amount_direction == ANY:
            return True
        if amount is None:
            return False
        if self.amount_direction == POSITIVE:
            return amount >= 0
        return amount < 0

    def match(self, search_text: str) -> str | None:
        """Return the first keyword contained in ``search_text`` (already lowercased)."""
        for keyword in self.keywords:
            if keyword in search_text:
                return keyword
        return None


@dataclass(frozen=True)
class CachedRuleSet:
    rules: tuple[ClassificationRule, ...]
    fetched_at: float  # clock seconds


@dataclass
class Classification:
    category: str  # "" when nothing matched
    source: str | None = None  # "user", "fallback" or None
    rule_id: Any = None
    keyword: str | None = None


@dataclass(frozen=True)
class LinePattern:
    """One line grammar: a regex with ``date``/``description``/``amount`` groups."""
    regex: re.Pattern
    name: str = ""


@dataclass
class StatementFormat:
    """Metadata and line grammar for one bank's statement layout."""
    key: str
    name: str
    signatures: list[str]  # case-insensitive regexes searched in the full text
    patterns: list[LinePattern] = field(default_factory=list)
    version: str = "1.0"
