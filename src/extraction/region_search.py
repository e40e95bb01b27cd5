"""Iterative region search with consensus for a single numeric field.

The search recognizes a rectangle of the page, looks for a number that
satisfies the field rule and widens the rectangle after every attempt.
A number is accepted once the same digits are read from two different
windows; otherwise the first number seen is reported as not accepted.
"""

from dataclasses import dataclass
from enum import StrEnum

from src.ocr.tesseract_engine import OCRSession, Rectangle
from src.utils.logger import get_logger

from .line_matcher import NumberRule, find_matching_line

logger = get_logger(__name__)

DEFAULT_MAX_ITERATIONS = 5
DEFAULT_EXPAND_STEP = 30


class SearchStatus(StrEnum):
    """Whether a found number was confirmed by a second reading."""

    ACCEPTED = "accepted"
    NOT_ACCEPTED = "not_accepted"


@dataclass
class Candidate:
    """A number read once, with where it was read."""

    text_box: Rectangle
    search_rect: Rectangle


@dataclass
class NumberResult:
    """Outcome of searching one field on one page."""

    found_number: str
    text_box: Rectangle
    search_rect: Rectangle
    status: SearchStatus

    @property
    def accepted(self) -> bool:
        return self.status == SearchStatus.ACCEPTED

    def to_dict(self) -> dict[str, object]:
        return {
            "found_number": self.found_number,
            "text_box": self.text_box.to_dict(),
            "search_rect": self.search_rect.to_dict(),
            "status": self.status.value,
        }


def expand_rect(rect: Rectangle, n: int, step: int) -> Rectangle:
    """Grow ``rect`` symmetrically by ``step * n`` pixels on every side."""
    shift = step * n
    return Rectangle(
        left=rect.left - shift,
        top=rect.top - shift,
        width=rect.width + 2 * shift,
        height=rect.height + 2 * shift,
    )


def search_field(
    session: OCRSession,
    image_bytes: bytes,
    rule: NumberRule,
    initial_rect: Rectangle,
    max_iterations: int = DEFAULT_MAX_ITERATIONS,
    expand_step: int = DEFAULT_EXPAND_STEP,
) -> NumberResult | None:
    """Search a page region for a number satisfying ``rule``.

    Each iteration recognizes the current window once. Growth accelerates
    with the iteration index, so after ``k`` expansions every side has
    moved out by ``expand_step * k * (k + 1) / 2`` pixels.

    Args:
        session: Open OCR session; used for exactly one call per iteration.
        image_bytes: Encoded page image.
        rule: Length and prefix of a valid value.
        initial_rect: First window to recognize.
        max_iterations: Upper bound on recognition calls.
        expand_step: Base expansion in pixels.

    Returns:
        An accepted result as soon as a number repeats, else the first
        number seen as not accepted, or ``None`` if nothing qualified.
    """
    if max_iterations < 1:
        raise ValueError(f"max_iterations must be >= 1, got {max_iterations}")
    if expand_step < 0:
        raise ValueError(f"expand_step must be >= 0, got {expand_step}")

    candidates: dict[str, Candidate] = {}
    rect = initial_rect

    for iteration in range(max_iterations):
        lines = session.recognize(image_bytes, rect)
        match = find_matching_line(lines, rule)

        if match is not None:
            number = match.number
            text_box = match.line.bbox
            if number in candidates:
                logger.info(
                    "Accepted %s on iteration %d in %s", number, iteration, rect
                )
                return NumberResult(
                    found_number=number,
                    text_box=text_box,
                    search_rect=rect,
                    status=SearchStatus.ACCEPTED,
                )
            candidates[number] = Candidate(text_box=text_box, search_rect=rect)
            logger.debug("Iteration %d: new candidate %s", iteration, number)
        else:
            logger.debug("Iteration %d: no match in %s", iteration, rect)

        rect = expand_rect(rect, iteration + 1, expand_step)

    if not candidates:
        logger.info("No number matching %s after %d iterations", rule, max_iterations)
        return None

    number, first = next(iter(candidates.items()))
    logger.info(
        "Unconfirmed %s after %d iterations (%d candidates)",
        number,
        max_iterations,
        len(candidates),
    )
    return NumberResult(
        found_number=number,
        text_box=first.text_box,
        search_rect=first.search_rect,
        status=SearchStatus.NOT_ACCEPTED,
    )
