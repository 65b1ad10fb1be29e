"""
Unit tests for ChangeDetector.

Tests frame differencing and the auto seek state machine.
"""

import asyncio

import numpy as np
import pytest

from src.score_ocr.detection.change_detector import (
    CancellationToken,
    ChangeDetector,
    DetectionState,
    grayscale,
    region_diff,
)
from src.score_ocr.errors import ConfigurationError
from src.score_ocr.models import PerspectiveQuad, Rect, TextRegion

REGION = TextRegion('NOTES', Rect(0, 0, 10, 10), field='notes')


def flat_frames(count: int, value: int = 100):
    return [np.full((20, 20, 3), value, dtype=np.uint8) for _ in range(count)]


def seek(detector, source, regions=(REGION,), token=None):
    return asyncio.run(detector.seek(source, regions, PerspectiveQuad(), 1 / 60, token))


@pytest.mark.unit
class TestRegionDiff:
    """Test suite for the grayscale difference metric."""

    def test_identical_regions(self):
        region = np.random.default_rng(1).integers(0, 256, (8, 8, 3), dtype=np.uint8)

        assert region_diff(region, region.copy()) == 0.0

    @pytest.mark.parametrize("magnitude", [1, 30, 155])
    def test_single_pixel_change(self, magnitude):
        """Changing one pixel by m raises the diff by m / pixel count."""
        reference = np.full((10, 10, 3), 50, dtype=np.uint8)
        current = reference.copy()
        current[4, 7] = 50 + magnitude

        assert region_diff(reference, current) == pytest.approx(magnitude / 100)

    def test_grayscale_is_channel_mean(self):
        pixel = np.array([[[30, 60, 90]]], dtype=np.uint8)

        assert grayscale(pixel)[0, 0] == pytest.approx(60.0)

    def test_shape_mismatch(self):
        with pytest.raises(ValueError):
            region_diff(np.zeros((4, 4, 3)), np.zeros((4, 5, 3)))


@pytest.mark.unit
class TestChangeDetector:
    """Test suite for ChangeDetector.seek."""

    @pytest.mark.parametrize("k", [1, 3, 7])
    def test_fires_at_first_changed_frame(self, fake_source, k):
        """A change of threshold + 1 at frame k is found at frame k, not earlier."""
        frames = flat_frames(10)
        for frame in frames[k:]:
            frame[0:10, 0:10] = 100 + 21

        source = fake_source(frames)
        result = seek(ChangeDetector(diff_threshold=20.0), source)

        assert result.outcome is DetectionState.CHANGE_FOUND
        assert result.steps == k
        assert source.index == k
        assert result.region_label == "NOTES/integer"
        assert result.diff == pytest.approx(21.0)

    def test_change_equal_to_threshold_is_ignored(self, fake_source):
        frames = flat_frames(5)
        for frame in frames[2:]:
            frame[0:10, 0:10] = 120

        result = seek(ChangeDetector(diff_threshold=20.0), fake_source(frames))

        assert result.outcome is DetectionState.EXHAUSTED_SOURCE

    def test_change_outside_regions_is_ignored(self, fake_source):
        frames = flat_frames(5)
        frames[3][15:20, 15:20] = 255

        result = seek(ChangeDetector(), fake_source(frames))

        assert result.outcome is DetectionState.EXHAUSTED_SOURCE
        assert result.steps == 4

    def test_any_region_triggers(self, fake_source):
        """Every region is compared against its own reference."""
        other = TextRegion('PEAK', Rect(10, 10, 10, 10), field='peak')
        frames = flat_frames(6)
        for frame in frames[4:]:
            frame[10:20, 10:20] = 0

        result = seek(ChangeDetector(), fake_source(frames), regions=(REGION, other))

        assert result.outcome is DetectionState.CHANGE_FOUND
        assert result.region_label == "PEAK/integer"
        assert result.steps == 4

    def test_cancelled_before_start(self, fake_source):
        token = CancellationToken()
        token.cancel()
        source = fake_source(flat_frames(5))

        detector = ChangeDetector()
        result = seek(detector, source, token=token)

        assert result.outcome is DetectionState.CANCELLED
        assert result.steps == 0
        assert source.seek_calls == 0
        assert detector.state is DetectionState.CANCELLED

    def test_cancel_takes_effect_after_current_step(self, fake_source):
        token = CancellationToken()

        class CancellingSource(fake_source):
            async def seek_by(self, seconds):
                await super().seek_by(seconds)
                if self.seek_calls == 3:
                    token.cancel()

        source = CancellingSource(flat_frames(10))
        result = seek(ChangeDetector(), source, token=token)

        assert result.outcome is DetectionState.CANCELLED
        assert result.steps == 3
        assert source.index == 3

    def test_out_of_bounds_region_skipped(self, fake_source):
        outside = TextRegion('SCRATCH', Rect(15, 15, 10, 10), field='scratch')
        frames = flat_frames(4)
        frames[2][0:10, 0:10] = 200

        result = seek(ChangeDetector(), fake_source(frames), regions=(outside, REGION))

        assert result.outcome is DetectionState.CHANGE_FOUND
        assert result.steps == 2

    def test_no_usable_region(self, fake_source):
        outside = TextRegion('SCRATCH', Rect(15, 15, 10, 10), field='scratch')

        with pytest.raises(ConfigurationError):
            seek(ChangeDetector(), fake_source(flat_frames(3)), regions=(outside,))

    def test_settle_stops_at_end(self, fake_source):
        source = fake_source(flat_frames(4))
        source.index = 2

        taken = asyncio.run(ChangeDetector().settle(source, 1 / 60, 5))

        assert taken == 2
        assert source.at_end()

    def test_initial_state_idle(self):
        assert ChangeDetector().state is DetectionState.IDLE
