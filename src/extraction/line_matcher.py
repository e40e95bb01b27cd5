"""Rule-based matching of fixed-length numbers in OCR lines.

A number qualifies when a maximal run of digits has exactly the rule's
length and starts with the rule's prefix. Runs that are longer or shorter
are rejected, so a misread that inserts or drops a digit never matches.
"""

import re
from dataclasses import dataclass

from src.ocr.tesseract_engine import OCRLine
from src.utils.logger import get_logger

logger = get_logger(__name__)

_DIGIT_RUN = re.compile(r"[0-9]+")


@dataclass(frozen=True)
class NumberRule:
    """Defines a valid field value: exact digit count and leading digits."""

    length: int
    prefix: str = ""

    def __post_init__(self) -> None:
        if self.length < 1:
            raise ValueError(f"Rule length must be positive, got {self.length}")
        if self.prefix and not _DIGIT_RUN.fullmatch(self.prefix):
            raise ValueError(f"Rule prefix must be digits, got {self.prefix!r}")
        if len(self.prefix) > self.length:
            raise ValueError(
                f"Rule prefix {self.prefix!r} is longer than length {self.length}"
            )

    def matches(self, number: str) -> bool:
        return len(number) == self.length and number.startswith(self.prefix)


@dataclass
class MatchedLine:
    """An OCR line together with the qualifying number found in it."""

    line: OCRLine
    number: str


def qualifying_numbers(text: str, rule: NumberRule) -> list[str]:
    """Return the maximal digit runs in ``text`` that satisfy ``rule``."""
    return [run for run in _DIGIT_RUN.findall(text) if rule.matches(run)]


def find_matching_line(lines: list[OCRLine], rule: NumberRule) -> MatchedLine | None:
    """Find the first line containing a number that satisfies ``rule``.

    Args:
        lines: OCR lines in reading order.
        rule: Length and prefix the number must have.

    Returns:
        The first matching line and its first qualifying number, or
        ``None`` if no line qualifies.
    """
    for line in lines:
        numbers = qualifying_numbers(line.text, rule)
        if numbers:
            logger.debug("Line %r matches rule %s", line.text, rule)
            return MatchedLine(line=line, number=numbers[0])
    return None
