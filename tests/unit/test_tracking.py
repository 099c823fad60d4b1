"""
Unit tests for temporal stabilization and detection history.
"""

import pytest

from shelfspace.config import StabilizerConfig
from shelfspace.tracking.history import DetectionHistory
from shelfspace.tracking.stabilizer import CONTESTED, TIE, TemporalStabilizer, distance

from tests.conftest import make_detection


class TestTemporalStabilizer:
    """Tests for TemporalStabilizer class."""

    @pytest.fixture
    def stabilizer(self):
        return TemporalStabilizer(StabilizerConfig())

    def test_first_frame_is_unstable(self, stabilizer, sample_detection):
        result = stabilizer.update([sample_detection])

        assert len(result.detections) == 1
        book = result.detections[0]
        assert book.id == "book_0"
        assert not book.stable
        assert book.confidence == pytest.approx(0.5)
        assert result.added == 1

    def test_repeated_detection_becomes_stable(self, stabilizer, sample_detection):
        stabilizer.update([sample_detection])
        result = stabilizer.update([sample_detection])

        book = result.detections[0]
        assert book.id == "book_0"
        assert book.stable
        assert (book.x, book.y, book.width, book.height) == (100, 50, 40, 150)
        # max(0.5 * 0.8 + 0.5 * 0.2, 0.3)
        assert book.confidence == pytest.approx(0.5)
        assert result.matched == 1

    def test_identical_frames_are_idempotent(self, stabilizer, sample_detection):
        stabilizer.update([sample_detection])
        second = stabilizer.update([sample_detection]).detections
        third = stabilizer.update([sample_detection]).detections

        assert [d.to_dict() for d in second] == [d.to_dict() for d in third]

    def test_geometry_is_blended(self, stabilizer):
        stabilizer.update([make_detection(x=100)])
        book = stabilizer.update([make_detection(x=110)]).detections[0]

        assert book.x == pytest.approx(100 * 0.6 + 110 * 0.4)

    def test_matched_confidence_floor(self, stabilizer):
        stabilizer.update([make_detection(confidence=0.2)])
        book = stabilizer.update([make_detection(confidence=0.2)]).detections[0]

        assert book.confidence == pytest.approx(0.3)

    def test_missing_detection_decays(self, stabilizer, sample_detection):
        stabilizer.update([sample_detection])
        result = stabilizer.update([])

        book = result.detections[0]
        assert book.confidence == pytest.approx(0.45)
        assert book.stable
        assert result.retained == 1

    def test_decayed_detection_loses_stability(self, stabilizer, sample_detection):
        stabilizer.update([sample_detection])
        for _ in range(5):
            result = stabilizer.update([])

        # 0.5 * 0.9 ** 5 is below the stable confidence
        assert not result.detections[0].stable

    def test_missing_detection_is_eventually_dropped(self, stabilizer, sample_detection):
        stabilizer.update([sample_detection])

        for _ in range(11):
            result = stabilizer.update([])
        assert len(result.detections) == 1

        result = stabilizer.update([])
        assert result.detections == []
        assert result.dropped == 1

    def test_match_distance_is_exclusive(self, stabilizer):
        stabilizer.update([make_detection(x=100)])
        result = stabilizer.update([make_detection(x=150)])

        assert result.matched == 0
        assert sorted(d.id for d in result.detections) == ["book_0", "book_1"]

    def test_each_previous_detection_matches_once(self, stabilizer):
        stabilizer.update([make_detection(x=100)])
        result = stabilizer.update([make_detection(x=105), make_detection(x=108)])

        assert result.matched == 1
        assert result.added == 1
        assert result.detections[0].id == "book_0"
        assert result.detections[1].id == "book_1"

    def test_matching_is_deterministic(self):
        frames = [
            [make_detection(x=100), make_detection(x=200)],
            [make_detection(x=104), make_detection(x=196), make_detection(x=400)],
            [make_detection(x=400)],
        ]

        runs = []
        for _ in range(2):
            stabilizer = TemporalStabilizer()
            for frame in frames:
                result = stabilizer.update(frame)
            runs.append([d.to_dict() for d in result.detections])

        assert runs[0] == runs[1]

    def test_single_close_pair_is_associated(self, stabilizer):
        stabilizer.update([make_detection(x=100), make_detection(x=400), make_detection(x=700)])
        result = stabilizer.update([make_detection(x=950), make_detection(x=406, y=58)])

        assert result.matched == 1
        matched = [d for d in result.detections if d.stable and d.id == "book_1"]
        assert len(matched) == 1
        assert matched[0].x == pytest.approx(400 * 0.6 + 406 * 0.4)
        assert result.ambiguous == []

    def test_unseen_detection_keeps_geometry(self, stabilizer):
        raw = make_detection(x=100, y=0, width=40, height=150, confidence=0.5)
        book = stabilizer.update([raw]).detections[0]

        assert (book.x, book.y, book.width, book.height) == (100, 0, 40, 150)
        assert book.confidence == pytest.approx(0.5)
        assert not book.stable

    def test_equidistant_match_is_flagged(self, stabilizer):
        stabilizer.update([make_detection(x=0), make_detection(x=20)])
        result = stabilizer.update([make_detection(id="raw_9", x=10)])

        assert len(result.ambiguous) == 1
        ambiguous = result.ambiguous[0]
        assert ambiguous.detection_id == "raw_9"
        assert ambiguous.chosen_id == "book_0"
        assert ambiguous.tied_ids == ("book_0", "book_1")
        assert ambiguous.distance == pytest.approx(10)
        assert ambiguous.reason == TIE

    def test_nearest_claimant_first_is_not_flagged(self, stabilizer):
        stabilizer.update([make_detection(x=100)])
        result = stabilizer.update([
            make_detection(id="raw_0", x=105),
            make_detection(id="raw_1", x=108),
        ])

        assert result.ambiguous == []
        assert result.detections[0].x == pytest.approx(100 * 0.6 + 105 * 0.4)

    def test_contested_match_is_flagged(self, stabilizer):
        stabilizer.update([make_detection(x=100)])
        result = stabilizer.update([
            make_detection(id="raw_1", x=108),
            make_detection(id="raw_0", x=105),
        ])

        assert len(result.ambiguous) == 1
        ambiguous = result.ambiguous[0]
        assert ambiguous.reason == CONTESTED
        assert ambiguous.detection_id == "raw_1"
        assert ambiguous.chosen_id == "book_0"
        assert ambiguous.competitor_ids == ("raw_0",)
        assert ambiguous.distance == pytest.approx(8)

    def test_input_order_change_is_always_visible(self):
        frame = [make_detection(id="raw_0", x=105), make_detection(id="raw_1", x=108)]

        outcomes = []
        for order in (frame, frame[::-1]):
            stabilizer = TemporalStabilizer()
            stabilizer.update([make_detection(x=100)])
            result = stabilizer.update(order)
            outcomes.append((result.detections[0].x, bool(result.ambiguous)))

        # The pairings differ, so at least one order reports it
        assert outcomes[0][0] != pytest.approx(outcomes[1][0])
        assert any(flagged for _, flagged in outcomes)

    def test_later_equidistant_competitor_is_flagged(self, stabilizer):
        stabilizer.update([make_detection(x=100)])
        result = stabilizer.update([
            make_detection(id="raw_0", x=95),
            make_detection(id="raw_1", x=105),
        ])

        assert [a.reason for a in result.ambiguous] == [CONTESTED]
        assert result.ambiguous[0].competitor_ids == ("raw_1",)

    def test_repeated_frame_has_no_ambiguity(self, stabilizer):
        frame = [make_detection(x=100), make_detection(x=200), make_detection(x=300)]
        stabilizer.update(frame)

        assert stabilizer.update(frame).ambiguous == []

    def test_reset(self, stabilizer, sample_detection):
        stabilizer.update([sample_detection])
        stabilizer.reset()

        assert stabilizer.detections == ()
        assert stabilizer.update([sample_detection]).detections[0].id == "book_0"

    def test_distance(self):
        assert distance(make_detection(x=0, y=0), make_detection(x=3, y=4)) == pytest.approx(5)


class TestDetectionHistory:
    """Tests for DetectionHistory class."""

    def test_single_frame_is_stable(self):
        history = DetectionHistory()
        history.record(0.0, 5, "local_segmentation")

        assert history.stability() == 100

    def test_constant_counts(self):
        history = DetectionHistory()
        for t in range(4):
            history.record(float(t), 5, "local_segmentation")

        assert history.stability() == 100

    def test_varying_counts(self):
        history = DetectionHistory()
        for t, count in enumerate([10, 2, 4, 6]):
            history.record(float(t), count, "local_segmentation")

        # Variance of the last three counts (2, 4, 6) is 8/3
        assert history.stability() == round(100 - 80 / 3)

    def test_stability_floor(self):
        history = DetectionHistory()
        for t, count in enumerate([0, 20, 0]):
            history.record(float(t), count, "local_segmentation")

        assert history.stability() == 0

    def test_bounded_size(self):
        history = DetectionHistory(max_size=5)
        for t in range(8):
            history.record(float(t), t, "external_detector")

        assert len(history) == 5
        assert history.last_method == "external_detector"
