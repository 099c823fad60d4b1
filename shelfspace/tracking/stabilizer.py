"""
Temporal Stabilizer

Smooths detections across successive frames so books do not flicker.

Association is greedy nearest-neighbour in input order, which only
approximates an optimal assignment. For a given input order the pass is
deterministic, but the pairing can change with the order when:

- two previous detections are equally close to a new one (a tie), or
- a previous detection is claimed by a new detection while a later new
  detection of the same frame is at least as close to it (contested).

Both cases are reported as AmbiguousMatch records instead of being
resolved silently.
"""

import itertools
import math
import threading
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional, Sequence, Tuple

from loguru import logger

from shelfspace.config import StabilizerConfig
from shelfspace.vision.detection import Detection


# Distances closer than this count as a tie
TIE_TOLERANCE = 1e-6


# Ambiguity reasons
TIE = "tie"
CONTESTED = "contested"


@dataclass(frozen=True)
class AmbiguousMatch:
    """
    An association that may change with the order of the input.

    For a tie, `tied_ids` holds the equally close previous detections.
    For a contested match, `competitor_ids` holds the later new detections
    that were at least as close to `chosen_id` as `detection_id` was.
    """
    detection_id: str
    chosen_id: str
    tied_ids: Tuple[str, ...]
    distance: float
    reason: str = TIE
    competitor_ids: Tuple[str, ...] = ()


@dataclass
class StabilizationResult:
    """Stabilized set of one frame plus matching diagnostics."""
    detections: List[Detection] = field(default_factory=list)
    matched: int = 0
    added: int = 0
    retained: int = 0
    dropped: int = 0
    ambiguous: List[AmbiguousMatch] = field(default_factory=list)


class TemporalStabilizer:
    """
    Carry detections across frames.

    - matched detections are blended into their previous geometry
    - new detections enter unstable
    - missing detections decay and are dropped below the drop floor

    Frames must be fed one at a time; `update` serializes callers with a
    lock so the carried set is never mutated concurrently.
    """

    def __init__(self, config: Optional[StabilizerConfig] = None):
        self.config = config or StabilizerConfig()
        self._previous: List[Detection] = []
        self._ids = itertools.count()
        self._lock = threading.Lock()

    @property
    def detections(self) -> Tuple[Detection, ...]:
        """The current stabilized set (read-only)."""
        return tuple(self._previous)

    def reset(self) -> None:
        with self._lock:
            self._previous = []
            self._ids = itertools.count()

    def update(self, raw_detections: Sequence[Detection]) -> StabilizationResult:
        """
        Fold one frame's raw detections into the stabilized set.

        Args:
            raw_detections: Fresh detections of the current frame

        Returns:
            StabilizationResult whose detections replace the stored state
        """
        with self._lock:
            result = self._stabilize(list(raw_detections), self._previous)
            self._previous = result.detections

        logger.debug(
            f"Stabilizer: {result.matched} matched, {result.added} new, "
            f"{result.retained} retained, {result.dropped} dropped"
        )
        return result

    def _stabilize(self, new: List[Detection], old: List[Detection]) -> StabilizationResult:
        cfg = self.config
        result = StabilizationResult()
        claimed = {}
        stabilized = []

        for position, detection in enumerate(new):
            match_index, ambiguity = self._closest(detection, old, claimed)

            if match_index is None:
                stabilized.append(replace(detection, id=self._next_id(), stable=False))
                result.added += 1
                continue

            claimed[match_index] = position
            previous = old[match_index]
            stabilized.append(self._blend(previous, detection))
            result.matched += 1

            if ambiguity:
                tied_ids = tuple(old[i].id for i in ambiguity)
                logger.warning(
                    f"Ambiguous match for {detection.id}: {len(tied_ids)} candidates "
                    f"at equal distance, kept {previous.id}"
                )
                result.ambiguous.append(AmbiguousMatch(
                    detection_id=detection.id,
                    chosen_id=previous.id,
                    tied_ids=tied_ids,
                    distance=distance(detection, previous),
                ))

        result.ambiguous.extend(self._contested(new, old, claimed))

        # Tolerate brief disappearance
        for index, previous in enumerate(old):
            if index in claimed:
                continue
            confidence = previous.confidence * cfg.decay
            if confidence <= cfg.drop_confidence:
                result.dropped += 1
                continue
            stabilized.append(replace(
                previous,
                confidence=confidence,
                stable=confidence > cfg.stable_confidence,
            ))
            result.retained += 1

        # Matched and new detections can also sit below the floor
        kept = [d for d in stabilized if d.confidence > cfg.drop_confidence]
        result.dropped += len(stabilized) - len(kept)
        result.detections = kept
        return result

    def _closest(
        self,
        detection: Detection,
        old: List[Detection],
        claimed: Dict[int, int],
    ) -> Tuple[Optional[int], List[int]]:
        """
        Index of the nearest unclaimed previous detection within range.

        Returns:
            (index or None, indices tied at the best distance when more than one)
        """
        best_index = None
        best_distance = math.inf
        tied: List[int] = []

        for index, previous in enumerate(old):
            if index in claimed:
                continue
            d = distance(detection, previous)
            if d >= self.config.match_distance:
                continue
            if d < best_distance - TIE_TOLERANCE:
                best_index, best_distance = index, d
                tied = [index]
            elif abs(d - best_distance) <= TIE_TOLERANCE:
                tied.append(index)

        return best_index, (tied if len(tied) > 1 else [])

    def _contested(
        self,
        new: List[Detection],
        old: List[Detection],
        claimed: Dict[int, int],
    ) -> List[AmbiguousMatch]:
        """Claims that a later detection of the same frame could have made."""
        contested = []

        for index, position in sorted(claimed.items(), key=lambda item: item[1]):
            previous = old[index]
            claimant = new[position]
            claim_distance = distance(claimant, previous)

            competitors = tuple(
                later.id
                for later in new[position + 1:]
                if distance(later, previous) <= claim_distance + TIE_TOLERANCE
            )
            if not competitors:
                continue

            logger.warning(
                f"Contested match for {previous.id}: claimed by {claimant.id}, "
                f"{len(competitors)} later detections at least as close"
            )
            contested.append(AmbiguousMatch(
                detection_id=claimant.id,
                chosen_id=previous.id,
                tied_ids=(previous.id,),
                distance=claim_distance,
                reason=CONTESTED,
                competitor_ids=competitors,
            ))

        return contested

    def _blend(self, previous: Detection, current: Detection) -> Detection:
        """Exponential smoothing of geometry and confidence."""
        cfg = self.config
        alpha = cfg.alpha

        def smooth(old_value: float, new_value: float) -> float:
            return old_value * alpha + new_value * (1 - alpha)

        confidence = max(
            previous.confidence * cfg.confidence_retention
            + current.confidence * (1 - cfg.confidence_retention),
            cfg.min_matched_confidence,
        )

        return Detection.from_geometry(
            id=previous.id,
            x=smooth(previous.x, current.x),
            y=smooth(previous.y, current.y),
            width=smooth(previous.width, current.width),
            height=smooth(previous.height, current.height),
            confidence=confidence,
            source_method=current.source_method,
            stable=True,
            label=current.label or previous.label,
        )

    def _next_id(self) -> str:
        return f"book_{next(self._ids)}"


def distance(a: Detection, b: Detection) -> float:
    """Euclidean distance between the (x, y) anchors of two detections."""
    return math.hypot(a.x - b.x, a.y - b.y)
