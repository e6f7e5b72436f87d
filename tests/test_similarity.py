import numpy as np
import pytest

from conftest import make_icon
from core.errors import DecodeError
from solvers.similarity import ImageSimilarityMatcher, decode_luminance, ssim


@pytest.fixture
def matcher():
    return ImageSimilarityMatcher()


class TestDistance:
    """Structural dissimilarity properties."""

    def test_identical_image_is_zero(self, matcher):
        icon = make_icon("circle")
        assert matcher.distance(icon, icon) == 0.0

    def test_symmetric(self, matcher):
        a, b = make_icon("circle"), make_icon("triangle")
        assert matcher.distance(a, b) == pytest.approx(matcher.distance(b, a))

    def test_different_shapes_are_apart(self, matcher):
        assert matcher.distance(make_icon("circle"), make_icon("square")) > 0.05

    def test_reencoded_copy_is_closer_than_other_shapes(self, matcher):
        png = make_icon("circle")
        jpeg = make_icon("circle", fmt="JPEG", quality=70)
        same = matcher.distance(png, jpeg)
        for other in ("square", "triangle", "hbar", "vbar"):
            assert same < matcher.distance(png, make_icon(other))

    def test_different_sizes_are_compared(self, matcher):
        small = make_icon("circle", size=48)
        large = make_icon("circle", size=64)
        assert matcher.distance(small, large) < matcher.distance(small, make_icon("square", size=64))

    def test_undecodable_bytes(self, matcher):
        with pytest.raises(DecodeError):
            matcher.distance(b"definitely not an image", make_icon("circle"))


class TestBestMatch:
    """Candidate selection."""

    def test_exact_match_wins(self, matcher):
        candidates = [make_icon(k) for k in ("square", "hbar", "circle", "vbar")]
        assert matcher.best_match(make_icon("circle"), candidates) == 2

    def test_reencoded_reference(self, matcher):
        reference = make_icon("triangle", fmt="JPEG", quality=80)
        candidates = [make_icon(k) for k in ("circle", "triangle", "square", "hbar")]
        assert matcher.best_match(reference, candidates) == 1

    def test_tie_goes_to_lowest_index(self, matcher):
        icon = make_icon("vbar")
        candidates = [make_icon("circle"), icon, icon]
        assert matcher.best_match(icon, candidates) == 1

    def test_empty_candidates(self, matcher):
        with pytest.raises(ValueError):
            matcher.best_match(make_icon("circle"), [])

    def test_one_broken_candidate_fails_the_match(self, matcher):
        icon = make_icon("circle")
        with pytest.raises(DecodeError):
            matcher.best_match(icon, [icon, b"\x00\x01garbage"])


class TestLuminance:
    """Decoding and the raw SSIM kernel."""

    def test_transparent_canvas_becomes_white(self):
        lum = decode_luminance(make_icon("circle"))
        assert lum.shape == (48, 48)
        assert lum[0, 0] == pytest.approx(1.0)
        assert lum[24, 24] == pytest.approx(0.0)

    def test_ssim_of_identical_arrays_is_one(self):
        arr = np.linspace(0, 1, 100).reshape(10, 10)
        assert ssim(arr, arr) == pytest.approx(1.0)

    def test_ssim_shape_mismatch(self):
        with pytest.raises(ValueError):
            ssim(np.zeros((4, 4)), np.zeros((5, 5)))
