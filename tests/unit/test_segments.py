"""Tests for bad segment bookkeeping and the bad segment step."""

import numpy as np
import pytest
from pydantic import ValidationError

from eegclean.core.exceptions import FormatError
from eegclean.core.models import BadSegment
from eegclean.core.review import StaticReview
from eegclean.core.segments import SegmentRegistry, good_sample_mask, merge_segments
from eegclean.modules.preprocessing.steps import BadSegmentStep


class TestBadSegment:
    """Test the BadSegment model."""

    def test_n_samples(self):
        assert BadSegment(start_sample=10, end_sample=25).n_samples == 15

    def test_empty_interval_rejected(self):
        with pytest.raises(ValidationError):
            BadSegment(start_sample=10, end_sample=10)

    def test_negative_start_rejected(self):
        with pytest.raises(ValidationError):
            BadSegment(start_sample=-1, end_sample=10)

    def test_coerce(self):
        expected = BadSegment(start_sample=1, end_sample=5)
        assert BadSegment.coerce((1, 5)) == expected
        assert BadSegment.coerce({'start_sample': 1, 'end_sample': 5}) == expected
        assert BadSegment.coerce(expected) is expected

    def test_rescale_collapsing_segment(self):
        assert BadSegment(start_sample=3, end_sample=4).rescale(0.1, 100) is None


class TestMergeSegments:
    """Test merge_segments function."""

    def test_sorted_output(self):
        merged = merge_segments([(500, 600), (0, 100)])
        assert [(s.start_sample, s.end_sample) for s in merged] == [(0, 100), (500, 600)]

    def test_overlapping_merged(self):
        merged = merge_segments([(0, 100), (50, 200)])
        assert merged == (BadSegment(start_sample=0, end_sample=200),)

    def test_touching_merged(self):
        merged = merge_segments([(0, 100), (100, 150)])
        assert merged == (BadSegment(start_sample=0, end_sample=150),)

    def test_contained_segment_absorbed(self):
        merged = merge_segments([(0, 1000), (200, 300)])
        assert merged == (BadSegment(start_sample=0, end_sample=1000),)

    def test_empty(self):
        assert merge_segments([]) == ()


class TestGoodSampleMask:
    """Test good_sample_mask function."""

    def test_mask(self):
        segments = merge_segments([(2, 4), (7, 8)])
        mask = good_sample_mask(segments, 10)

        expected = np.array([1, 1, 0, 0, 1, 1, 1, 0, 1, 1], dtype=bool)
        np.testing.assert_array_equal(mask, expected)

    def test_recording_good_data_excludes_segments(self, make_rec):
        recording = make_rec(("A", "B"), n_seconds=4.0, bad_segments=[(0, 250)])

        assert recording.good_data().shape == (2, 750)
        # Signal itself is untouched
        assert recording.data.shape == (2, 1000)


class TestSegmentRegistry:
    """Test SegmentRegistry."""

    def test_register_merges(self):
        registry = SegmentRegistry()

        merged = registry.register("sub-01", [(0, 100), (50, 200)], n_samples=1000)

        assert merged == (BadSegment(start_sample=0, end_sample=200),)
        assert registry.get("sub-01") == merged

    def test_register_accumulates(self):
        registry = SegmentRegistry()
        registry.register("sub-01", [(0, 100)], n_samples=1000)
        registry.register("sub-01", [(90, 300), (500, 600)], n_samples=1000)

        assert registry.get("sub-01") == (
            BadSegment(start_sample=0, end_sample=300),
            BadSegment(start_sample=500, end_sample=600),
        )

    def test_sessions_independent(self):
        registry = SegmentRegistry()
        registry.register("sub-01", [(0, 100)], n_samples=1000)

        assert registry.get("sub-02") == ()
        assert registry.sessions() == ["sub-01"]

    def test_segment_past_end_raises(self):
        registry = SegmentRegistry()

        with pytest.raises(FormatError, match="beyond the recording"):
            registry.register("sub-01", [(900, 1100)], n_samples=1000)

        assert registry.get("sub-01") == ()

    def test_to_dict(self):
        registry = SegmentRegistry()
        registry.register("sub-01", [(0, 100)], n_samples=1000)

        record = registry.to_dict("sub-01")

        assert record['bad_segments'] == [{'start_sample': 0, 'end_sample': 100}]


class TestBadSegmentStep:
    """Test BadSegmentStep."""

    def test_attaches_reviewed_segments(self, recording):
        review = StaticReview(bad_segments={'sub-01': [(1000, 1500), (1400, 2000)]})
        step = BadSegmentStep('sub-01', reviewer=review)

        marked, meta = step.process(recording, {})

        assert marked.bad_segments == (BadSegment(start_sample=1000, end_sample=2000),)
        np.testing.assert_array_equal(marked.data, recording.data)
        assert meta['n_bad_samples'] == 1000
        assert meta['pct_bad'] == pytest.approx(20.0)

    def test_no_review(self, recording):
        marked, meta = BadSegmentStep('sub-01').process(recording, {})

        assert marked.bad_segments == ()
        assert meta['n_segments'] == 0

    def test_out_of_range_segment(self, recording):
        review = StaticReview(bad_segments={'sub-01': [(4900, 6000)]})
        step = BadSegmentStep('sub-01', reviewer=review)

        with pytest.raises(FormatError):
            step.process(recording, {})
