"""
Unit tests for the frame analysis service.
"""

import pytest

from shelfspace.config import ShelfSpaceConfig
from shelfspace.exceptions import InvalidBufferError
from shelfspace.service import ShelfSpaceService
from shelfspace.vision.detection import SOURCE_EXTERNAL, SOURCE_LOCAL
from shelfspace.vision.pixel_buffer import PixelBuffer

from tests.conftest import FailingDetector, StaticDetector


class TestShelfSpaceService:
    """Tests for ShelfSpaceService class."""

    @pytest.fixture
    def service(self):
        return ShelfSpaceService(ShelfSpaceConfig())

    def test_first_frame(self, service, striped_buffer):
        analysis = service.process_frame(striped_buffer)

        assert analysis.frame_index == 1
        assert analysis.source_method == SOURCE_LOCAL
        assert len(analysis.detections) == 10
        assert [d.id for d in analysis.detections] == [f"book_{i}" for i in range(10)]
        assert not any(d.stable for d in analysis.detections)
        assert analysis.stats.books_found == 10

    def test_second_frame_is_stable(self, service, striped_buffer):
        first = service.process_frame(striped_buffer)
        second = service.process_frame(striped_buffer)

        assert [d.id for d in second.detections] == [d.id for d in first.detections]
        assert all(d.stable for d in second.detections)
        assert second.ambiguous_matches == []
        assert second.stats.detection_stability == 100

    def test_invalid_buffer_leaves_state_untouched(self, service, striped_buffer):
        service.process_frame(striped_buffer)
        before = service.stabilizer.detections

        with pytest.raises(InvalidBufferError):
            service.process_frame(None)

        assert service.stabilizer.detections == before
        assert service.frame_count == 1
        assert len(service.history) == 1

    def test_zero_length_buffer(self, service, striped_buffer):
        service.process_frame(striped_buffer)
        before = service.stabilizer.detections

        with pytest.raises(InvalidBufferError):
            service.process_frame(PixelBuffer.from_rgba(b"", 0, 0))

        assert service.stabilizer.detections == before

    def test_blank_frame_decays_previous_books(self, service, striped_buffer, blank_buffer):
        service.process_frame(striped_buffer)
        analysis = service.process_frame(blank_buffer)

        assert len(analysis.detections) == 10
        assert all(d.confidence < 0.9 for d in analysis.detections)

    def test_to_dict_contract(self, service, striped_buffer):
        result = service.process_frame(striped_buffer).to_dict()

        assert set(result) == {"detections", "suggestions", "stats", "sourceMethod"}
        assert set(result["stats"]) >= {
            "booksFound",
            "spaceUsedPercent",
            "potentialGainPercent",
            "detectionStability",
        }
        detection = result["detections"][0]
        assert detection["estimatedThickness"] == pytest.approx(24)
        assert detection["sourceMethod"] == SOURCE_LOCAL

    def test_reset(self, service, striped_buffer):
        service.process_frame(striped_buffer)
        service.reset()

        assert service.frame_count == 0
        assert service.stabilizer.detections == ()
        assert len(service.history) == 0

    @pytest.mark.asyncio
    async def test_async_uses_external_detector(self, striped_buffer, book_boxes):
        service = ShelfSpaceService(external_detector=StaticDetector(book_boxes))

        analysis = await service.process_frame_async(striped_buffer)

        assert analysis.source_method == SOURCE_EXTERNAL
        assert len(analysis.detections) == 1
        assert analysis.detections[0].id == "book_0"

    @pytest.mark.asyncio
    async def test_async_falls_back(self, striped_buffer):
        service = ShelfSpaceService(external_detector=FailingDetector())

        analysis = await service.process_frame_async(striped_buffer)

        assert analysis.source_method == SOURCE_LOCAL
        assert len(analysis.detections) == 10

    @pytest.mark.asyncio
    async def test_async_rejects_invalid_buffer(self, service):
        with pytest.raises(InvalidBufferError):
            await service.process_frame_async("not a buffer")

        assert service.frame_count == 0
