"""
Optimization Advisor

Geometry-driven suggestions for using shelf space better.

Each heuristic is a pure (applies, assess) pair. They are evaluated in a
fixed priority order (rotate, stack, face out) and the first one that is
beneficial produces the single suggestion for a book.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from loguru import logger

from shelfspace.config import AdvisorConfig
from shelfspace.vision.book_dimensions import DimensionValidator, ShelfMatch
from shelfspace.vision.detection import Detection


# Rotation
ROTATE_ASPECT_LIMIT = 2.5
ROTATE_MIN_WIDTH = 30
ROTATE_MIN_SAVING = 5

# Stacking
STACK_MIN_HEIGHT = 120
STACK_MAX_WIDTH = 35
STACK_MAX_THICKNESS = 25
STACK_PACKING_EFFICIENCY = 0.6
STACK_MIN_SAVING = 3
STACKED_BOOK_HEIGHT = 25

# Face out
FACE_OUT_MIN_WIDTH = 45
FACE_OUT_MIN_HEIGHT = 80
FACE_OUT_VISIBILITY_FACTOR = 0.8
FACE_OUT_MIN_VISIBILITY = 25

ANCHOR_OFFSET = 10


class SuggestionKind(str, Enum):
    """Kinds of optimization suggestions."""
    ROTATE = "rotate"
    STACK = "stack"
    FACE_OUT = "faceOut"


@dataclass
class Assessment:
    """Outcome of one heuristic for one book."""
    kind: SuggestionKind
    applicable: bool
    beneficial: bool = False
    efficiency_gain: float = 0.0
    volume_gain: float = 0.0
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class Heuristic:
    """A precondition plus the scorer run when it holds."""
    kind: SuggestionKind
    description: str
    applies: Callable[[Detection], bool]
    assess: Callable[[Detection], Assessment]

    def evaluate(self, book: Detection) -> Assessment:
        if not self.applies(book):
            return Assessment(kind=self.kind, applicable=False)
        return self.assess(book)


@dataclass
class Suggestion:
    """A single optimization suggestion anchored next to its book."""
    detection_id: str
    kind: SuggestionKind
    efficiency_gain: float
    volume_gain: float
    anchor_x: float
    anchor_y: float
    description: str = ""
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detection_id": self.detection_id,
            "kind": self.kind.value,
            "efficiency_gain": self.efficiency_gain,
            "volume_gain": self.volume_gain,
            "anchor_x": self.anchor_x,
            "anchor_y": self.anchor_y,
            "description": self.description,
            "details": self.details,
        }


@dataclass
class ShelfUtilization:
    """Space usage of one shelf."""
    width_utilization: float
    volume_utilization: float
    space_remaining: float
    potential_gain: float
    shelf: Optional[ShelfMatch] = None


@dataclass
class FrameStats:
    """Aggregate statistics reported with every frame."""
    books_found: int = 0
    space_used_percent: int = 0
    potential_gain_percent: int = 0
    detection_stability: int = 100
    suggestion_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "booksFound": self.books_found,
            "spaceUsedPercent": self.space_used_percent,
            "potentialGainPercent": self.potential_gain_percent,
            "detectionStability": self.detection_stability,
            "suggestionCount": self.suggestion_count,
        }


# =============================================================================
# Heuristics
# =============================================================================

def _rotate_applies(book: Detection) -> bool:
    return book.height < book.width * ROTATE_ASPECT_LIMIT and book.width > ROTATE_MIN_WIDTH


def _assess_rotate(book: Detection) -> Assessment:
    thickness = book.estimated_thickness
    before = book.width * thickness
    after = book.height * thickness
    saved = before - after

    assessment = Assessment(kind=SuggestionKind.ROTATE, applicable=True, volume_gain=saved)
    if saved > ROTATE_MIN_SAVING:
        assessment.beneficial = True
        assessment.efficiency_gain = round(saved / before * 100)
        assessment.details = {
            "footprint_before": before,
            "footprint_after": after,
            "new_width": book.height,
            "new_height": book.width,
        }
    return assessment


def _stack_applies(book: Detection) -> bool:
    return (
        book.height > STACK_MIN_HEIGHT
        and book.width < STACK_MAX_WIDTH
        and book.estimated_thickness < STACK_MAX_THICKNESS
    )


def _assess_stack(book: Detection) -> Assessment:
    # Shelf-face area: upright spine vs. the book lying flat in a stack
    before = book.width * book.height
    after = book.width * book.estimated_thickness / STACK_PACKING_EFFICIENCY
    saved = max(0.0, before - after)

    assessment = Assessment(kind=SuggestionKind.STACK, applicable=True, volume_gain=saved)
    if saved > STACK_MIN_SAVING:
        assessment.beneficial = True
        assessment.efficiency_gain = round(saved / before * 100)
        assessment.details = {
            "footprint_before": before,
            "footprint_after": after,
            "orientation": "horizontal",
            "estimated_books": int(book.height // STACKED_BOOK_HEIGHT),
        }
    return assessment


def _face_out_applies(book: Detection) -> bool:
    return book.width > FACE_OUT_MIN_WIDTH and book.height > FACE_OUT_MIN_HEIGHT


def _assess_face_out(book: Detection) -> Assessment:
    visibility = book.width * FACE_OUT_VISIBILITY_FACTOR
    # Usually negative: facing out trades depth for visibility
    volume_impact = book.estimated_thickness - book.width

    assessment = Assessment(kind=SuggestionKind.FACE_OUT, applicable=True, volume_gain=volume_impact)
    if visibility > FACE_OUT_MIN_VISIBILITY:
        assessment.beneficial = True
        assessment.efficiency_gain = round(visibility)
        assessment.details = {"front_facing": True, "cover_visible": True}
    return assessment


HEURISTICS: Tuple[Heuristic, ...] = (
    Heuristic(SuggestionKind.ROTATE, "Rotate horizontally", _rotate_applies, _assess_rotate),
    Heuristic(SuggestionKind.STACK, "Stack horizontally", _stack_applies, _assess_stack),
    Heuristic(SuggestionKind.FACE_OUT, "Face out", _face_out_applies, _assess_face_out),
)


class OptimizationAdvisor:
    """
    Suggest rotate / stack / face-out moves for stabilized detections.

    Usage:
        advisor = OptimizationAdvisor()
        suggestions = advisor.suggest(detections)
    """

    def __init__(
        self,
        config: Optional[AdvisorConfig] = None,
        heuristics: Sequence[Heuristic] = HEURISTICS,
        validator: Optional[DimensionValidator] = None,
    ):
        self.config = config or AdvisorConfig()
        self.heuristics = tuple(heuristics)
        self.validator = validator or DimensionValidator()

    def evaluate(self, book: Detection) -> List[Assessment]:
        """Run every heuristic on a book, in priority order."""
        return [heuristic.evaluate(book) for heuristic in self.heuristics]

    def analyze(self, book: Detection) -> Optional[Suggestion]:
        """First beneficial heuristic for a book, or None."""
        for heuristic in self.heuristics:
            assessment = heuristic.evaluate(book)
            if assessment.beneficial:
                return Suggestion(
                    detection_id=book.id,
                    kind=heuristic.kind,
                    efficiency_gain=assessment.efficiency_gain,
                    volume_gain=assessment.volume_gain,
                    anchor_x=book.x + book.width + ANCHOR_OFFSET,
                    anchor_y=book.y + book.height / 2,
                    description=heuristic.description,
                    details=assessment.details,
                )
        return None

    def suggest(self, detections: Sequence[Detection]) -> List[Suggestion]:
        """At most one suggestion per detection, in detection order."""
        suggestions = []
        for book in detections:
            suggestion = self.analyze(book)
            if suggestion is not None:
                suggestions.append(suggestion)

        logger.debug(f"Advisor: {len(suggestions)} suggestions for {len(detections)} books")
        return suggestions

    def potential_gain(self, detections: Sequence[Detection]) -> float:
        """Sum over books of the larger of the rotate and stack savings."""
        rotate, stack = self.heuristics_by_kind(SuggestionKind.ROTATE, SuggestionKind.STACK)
        total = 0.0
        for book in detections:
            gains = [0.0]
            for heuristic in (rotate, stack):
                if heuristic is None:
                    continue
                assessment = heuristic.evaluate(book)
                if assessment.beneficial:
                    gains.append(assessment.volume_gain)
            total += max(gains)
        return total

    def shelf_utilization(
        self,
        detections: Sequence[Detection],
        shelf_width: float,
        shelf_height: float,
    ) -> ShelfUtilization:
        """Width and volume usage of one shelf."""
        total_width = sum(book.width for book in detections)
        total_volume = sum(book.width * book.height * book.estimated_thickness for book in detections)
        max_volume = shelf_width * shelf_height * self.config.max_shelf_depth

        return ShelfUtilization(
            width_utilization=total_width / shelf_width * 100 if shelf_width > 0 else 0.0,
            volume_utilization=total_volume / max_volume * 100 if max_volume > 0 else 0.0,
            space_remaining=shelf_width - total_width,
            potential_gain=self.potential_gain(detections),
            shelf=self.validator.validate_shelf(shelf_width, shelf_height),
        )

    def frame_stats(
        self,
        detections: Sequence[Detection],
        frame_width: float,
        frame_height: float,
        stability: int = 100,
        suggestion_count: int = 0,
    ) -> FrameStats:
        """
        Aggregate statistics for a frame.

        The frame is split into `shelf_count` equal horizontal shelves and
        each detection is assigned to the shelf containing its top edge.
        """
        shelf_count = max(1, self.config.shelf_count)
        shelf_height = frame_height / shelf_count

        shelves: List[List[Detection]] = [[] for _ in range(shelf_count)]
        for book in detections:
            index = int(book.y // shelf_height) if shelf_height > 0 else 0
            shelves[min(max(index, 0), shelf_count - 1)].append(book)

        utilizations = [
            self.shelf_utilization(books, frame_width, shelf_height) for books in shelves
        ]
        space_used = sum(u.width_utilization for u in utilizations) / shelf_count
        potential_gain = sum(u.potential_gain for u in utilizations)
        gain_percent = potential_gain / (frame_width * shelf_count) * 100 if frame_width > 0 else 0.0

        return FrameStats(
            books_found=len(detections),
            space_used_percent=int(round(space_used)),
            potential_gain_percent=int(round(gain_percent)),
            detection_stability=stability,
            suggestion_count=suggestion_count,
        )

    def heuristics_by_kind(self, *kinds: SuggestionKind) -> List[Optional[Heuristic]]:
        by_kind = {h.kind: h for h in self.heuristics}
        return [by_kind.get(kind) for kind in kinds]
