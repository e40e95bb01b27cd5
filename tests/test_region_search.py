"""Tests for the iterative region search with consensus."""

import pytest

from src.extraction.line_matcher import NumberRule
from src.extraction.region_search import (
    NumberResult,
    SearchStatus,
    expand_rect,
    search_field,
)
from src.ocr.errors import RecognitionError
from src.ocr.tesseract_engine import OCRLine, Rectangle

RULE = NumberRule(length=12, prefix="002")
INITIAL = Rectangle(left=750, top=650, width=400, height=80)


class ScriptedSession:
    """Session stand-in replaying one scripted line list per recognize call."""

    def __init__(self, script: list[list[OCRLine]]) -> None:
        self.script = script
        self.rects: list[Rectangle] = []

    def recognize(self, image_bytes: bytes, rectangle: Rectangle) -> list[OCRLine]:
        index = len(self.rects)
        self.rects.append(rectangle)
        if index < len(self.script):
            return self.script[index]
        return []


class FailingSession(ScriptedSession):
    """Session stand-in that fails on a given call."""

    def __init__(self, script: list[list[OCRLine]], fail_on: int) -> None:
        super().__init__(script)
        self.fail_on = fail_on

    def recognize(self, image_bytes: bytes, rectangle: Rectangle) -> list[OCRLine]:
        if len(self.rects) == self.fail_on:
            self.rects.append(rectangle)
            raise RecognitionError("engine crashed")
        return super().recognize(image_bytes, rectangle)


def _line(text: str, left: int = 800, top: int = 670) -> OCRLine:
    return OCRLine(text=text, bbox=Rectangle(left, top, 300, 40))


class TestExpandRect:
    """Tests for the window expansion rule."""

    def test_single_expansion(self) -> None:
        assert expand_rect(INITIAL, 1, 30) == Rectangle(720, 620, 460, 140)

    def test_expansion_scales_with_index(self) -> None:
        assert expand_rect(INITIAL, 3, 10) == Rectangle(720, 620, 460, 140)

    def test_zero_step_keeps_rect(self) -> None:
        assert expand_rect(INITIAL, 4, 0) == INITIAL


class TestSearchField:
    """Tests for search_field."""

    def test_end_to_end_confirmation(self) -> None:
        session = ScriptedSession(
            [[_line("002123456789")], [_line("002123456789", left=805, top=672)]]
        )
        result = search_field(session, b"page", RULE, INITIAL)

        assert result is not None
        assert result.found_number == "002123456789"
        assert result.status == SearchStatus.ACCEPTED
        assert result.accepted
        assert result.search_rect == Rectangle(720, 620, 460, 140)
        assert result.text_box == Rectangle(805, 672, 300, 40)
        assert len(session.rects) == 2

    def test_confirmation_across_non_consecutive_iterations(self) -> None:
        session = ScriptedSession(
            [
                [_line("002111111111")],
                [],
                [_line("002222222222")],
                [_line("002111111111", left=700)],
            ]
        )
        result = search_field(session, b"page", RULE, INITIAL)

        assert result is not None
        assert result.status == SearchStatus.ACCEPTED
        assert result.found_number == "002111111111"
        assert result.search_rect == session.rects[3]
        assert result.text_box.left == 700
        assert len(session.rects) == 4

    def test_exhaustion_returns_first_candidate(self) -> None:
        session = ScriptedSession(
            [[_line(f"00200000000{i}", left=800 + i)] for i in range(5)]
        )
        result = search_field(session, b"page", RULE, INITIAL)

        assert result is not None
        assert result.status == SearchStatus.NOT_ACCEPTED
        assert result.found_number == "002000000000"
        assert result.search_rect == INITIAL
        assert result.text_box.left == 800
        assert len(session.rects) == 5

    def test_nothing_found_returns_none(self) -> None:
        session = ScriptedSession([[_line("hello")], [_line("0021234567890")]])
        result = search_field(session, b"page", RULE, INITIAL)
        assert result is None
        assert len(session.rects) == 5

    def test_max_iterations_bounds_engine_calls(self) -> None:
        session = ScriptedSession([])
        search_field(session, b"page", RULE, INITIAL, max_iterations=3)
        assert len(session.rects) == 3

    def test_expansion_formula(self) -> None:
        session = ScriptedSession([])
        search_field(session, b"page", RULE, INITIAL, max_iterations=5, expand_step=30)

        for n, rect in enumerate(session.rects):
            shift = 30 * n * (n + 1) // 2
            assert rect.left == INITIAL.left - shift
            assert rect.top == INITIAL.top - shift
            assert rect.width == INITIAL.width + 2 * shift
            assert rect.height == INITIAL.height + 2 * shift

    def test_window_expands_after_match(self) -> None:
        session = ScriptedSession([[_line("002999999999")], [_line("002888888888")]])
        search_field(session, b"page", RULE, INITIAL, max_iterations=2)
        assert session.rects[1] == Rectangle(720, 620, 460, 140)

    def test_deterministic(self) -> None:
        script = [
            [_line("002333333333")],
            [_line("002444444444")],
            [_line("002333333333")],
        ]
        first = search_field(ScriptedSession(script), b"page", RULE, INITIAL)
        second = search_field(ScriptedSession(script), b"page", RULE, INITIAL)
        assert first == second

    def test_engine_error_propagates(self) -> None:
        session = FailingSession([[_line("002123456789")]], fail_on=1)
        with pytest.raises(RecognitionError):
            search_field(session, b"page", RULE, INITIAL)
        assert len(session.rects) == 2

    def test_invalid_iterations(self) -> None:
        with pytest.raises(ValueError):
            search_field(ScriptedSession([]), b"page", RULE, INITIAL, max_iterations=0)

    def test_invalid_step(self) -> None:
        with pytest.raises(ValueError):
            search_field(ScriptedSession([]), b"page", RULE, INITIAL, expand_step=-1)


class TestNumberResult:
    """Tests for NumberResult serialization."""

    def test_to_dict(self) -> None:
        result = NumberResult(
            found_number="002123456789",
            text_box=Rectangle(1, 2, 3, 4),
            search_rect=Rectangle(5, 6, 7, 8),
            status=SearchStatus.NOT_ACCEPTED,
        )
        data = result.to_dict()
        assert data["found_number"] == "002123456789"
        assert data["text_box"] == {"left": 1, "top": 2, "width": 3, "height": 4}
        assert data["search_rect"]["width"] == 7
        assert data["status"] == "not_accepted"
        assert not result.accepted
