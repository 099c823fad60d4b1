"""
Unit tests for the optimization advisor.
"""

import pytest

from shelfspace.config import AdvisorConfig
from shelfspace.optimization.advisor import (
    HEURISTICS,
    OptimizationAdvisor,
    SuggestionKind,
)
from shelfspace.vision.detection import Detection, volume_efficiency


def book(width, height, thickness, id="book_0", x=100.0, y=50.0):
    return Detection(
        id=id,
        x=x,
        y=y,
        width=width,
        height=height,
        confidence=0.8,
        estimated_thickness=thickness,
        can_rotate=height < width * 3,
        can_stack=height > 100 and width < 30,
        volume_efficiency=volume_efficiency(width, height),
        stable=True,
    )


class TestHeuristics:
    """Tests for the individual heuristics."""

    def test_priority_order(self):
        assert [h.kind for h in HEURISTICS] == [
            SuggestionKind.ROTATE,
            SuggestionKind.STACK,
            SuggestionKind.FACE_OUT,
        ]

    def test_rotate_applies_but_is_not_beneficial(self):
        advisor = OptimizationAdvisor()
        rotate = advisor.evaluate(book(60, 80, 40))[0]

        assert rotate.applicable
        assert not rotate.beneficial
        assert rotate.volume_gain == pytest.approx(60 * 40 - 80 * 40)

    def test_rotate_beneficial_for_wide_book(self):
        rotate = OptimizationAdvisor().evaluate(book(80, 60, 30))[0]

        assert rotate.beneficial
        assert rotate.volume_gain == pytest.approx(600)
        assert rotate.efficiency_gain == 25

    def test_stack_for_tall_thin_book(self):
        stack = OptimizationAdvisor().evaluate(book(20, 150, 15))[1]

        assert stack.applicable
        assert stack.beneficial
        assert stack.volume_gain == pytest.approx(20 * 150 - 20 * 15 / 0.6)
        assert stack.details["estimated_books"] == 6

    def test_stack_does_not_apply_to_thick_book(self):
        stack = OptimizationAdvisor().evaluate(book(20, 150, 30))[1]

        assert not stack.applicable

    def test_face_out_for_wide_book(self):
        face_out = OptimizationAdvisor().evaluate(book(60, 85, 40))[2]

        assert face_out.beneficial
        assert face_out.efficiency_gain == 48
        assert face_out.volume_gain == pytest.approx(-20)


class TestOptimizationAdvisor:
    """Tests for OptimizationAdvisor class."""

    @pytest.fixture
    def advisor(self):
        return OptimizationAdvisor(AdvisorConfig())

    def test_no_suggestion_when_nothing_is_beneficial(self, advisor):
        # Rotating would grow the footprint and the book is too short to face out
        assert advisor.analyze(book(60, 80, 40)) is None

    def test_face_out_when_rotate_is_not_beneficial(self, advisor):
        suggestion = advisor.analyze(book(60, 85, 40))

        assert suggestion.kind == SuggestionKind.FACE_OUT

    def test_stack_suggestion(self, advisor):
        suggestion = advisor.analyze(book(20, 150, 15, x=100, y=50))

        assert suggestion.kind == SuggestionKind.STACK
        assert suggestion.detection_id == "book_0"
        assert suggestion.efficiency_gain == 83
        assert suggestion.anchor_x == pytest.approx(130)
        assert suggestion.anchor_y == pytest.approx(125)

    def test_rotate_wins_over_face_out(self, advisor):
        suggestion = advisor.analyze(book(100, 90, 30))

        assert suggestion.kind == SuggestionKind.ROTATE

    def test_at_most_one_suggestion_per_book(self, advisor):
        books = [
            book(20, 150, 15, id="a"),
            book(60, 85, 40, id="b"),
            book(60, 80, 40, id="c"),
            book(80, 60, 30, id="d"),
        ]

        suggestions = advisor.suggest(books)

        assert [s.detection_id for s in suggestions] == ["a", "b", "d"]
        assert [s.kind for s in suggestions] == [
            SuggestionKind.STACK,
            SuggestionKind.FACE_OUT,
            SuggestionKind.ROTATE,
        ]

    def test_potential_gain(self, advisor):
        books = [book(20, 150, 15), book(60, 80, 40)]

        assert advisor.potential_gain(books) == pytest.approx(2500)

    def test_shelf_utilization(self, advisor):
        usage = advisor.shelf_utilization([book(40, 150, 24), book(60, 150, 36)], 1000, 240)

        assert usage.width_utilization == pytest.approx(10)
        assert usage.space_remaining == pytest.approx(900)
        assert usage.shelf.estimated_capacity == 40

    def test_frame_stats(self, advisor):
        books = [book(20, 150, 15, y=50)]

        stats = advisor.frame_stats(books, frame_width=640, frame_height=480, stability=90, suggestion_count=1)

        assert stats.books_found == 1
        # 20 / 640 on the top shelf, nothing on the bottom one
        assert stats.space_used_percent == 2
        assert stats.potential_gain_percent == round(2500 / 1280 * 100)
        assert stats.detection_stability == 90

    def test_frame_stats_empty(self, advisor):
        stats = advisor.frame_stats([], frame_width=640, frame_height=480)

        assert stats.to_dict() == {
            "booksFound": 0,
            "spaceUsedPercent": 0,
            "potentialGainPercent": 0,
            "detectionStability": 100,
            "suggestionCount": 0,
        }

    def test_custom_heuristics(self):
        advisor = OptimizationAdvisor(heuristics=HEURISTICS[2:])

        assert advisor.analyze(book(20, 150, 15)) is None
