import re

from ledgerlens.models import UNKNOWN_BANK, BankInfo, StatementFormat

MATCH_CONFIDENCE = 0.9
UNKNOWN_CONFIDENCE = 0.1


class FormatRegistry:
    def __init__(self):
        self._formats: dict[str, StatementFormat] = {}
        self._signatures: dict[str, list[re.Pattern]] = {}

    def register(self, fmt: StatementFormat) -> None:
        self._formats[fmt.key] = fmt
        self._signatures[fmt.key] = [re.compile(sig, re.IGNORECASE) for sig in fmt.signatures]

    def get_by_key(self, key: str) -> StatementFormat | None:
        return self._formats.get(key)

    def detect(self, text: str) -> BankInfo:
        """First registered format whose signature appears in ``text`` wins."""
        for key, fmt in self._formats.items():
            if any(sig.search(text) for sig in self._signatures[key]):
                return BankInfo(identity=key, name=fmt.name, confidence=MATCH_CONFIDENCE)
        return BankInfo(identity=UNKNOWN_BANK, name="Unknown", confidence=UNKNOWN_CONFIDENCE)

    def list_all(self) -> list[StatementFormat]:
        return list(self._formats.values())


registry = FormatRegistry()
