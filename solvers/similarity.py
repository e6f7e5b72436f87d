"""Perceptual image distance for captcha icons.

The captcha server re-encodes its icons, so byte equality is useless
for recognising a previously-seen answer.  Instead both images are
decoded, flattened onto white, converted to luminance and compared with
the structural similarity index (SSIM) over a sliding window.  The
distance reported is the structural dissimilarity::

    distance = (1 - mean(SSIM)) / 2

which is ``0.0`` for identical pixels, symmetric, and grows towards
``1.0`` as the images diverge.
"""

import io
import logging
from typing import Sequence, Tuple

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from PIL import Image, UnidentifiedImageError

from core.errors import DecodeError

logger = logging.getLogger(__name__)

WINDOW_SIZE = 7
# Stabilisers from Wang et al. for a dynamic range of 1.0
K1 = 0.01
K2 = 0.03


def decode_luminance(data: bytes) -> np.ndarray:
    """Decode raster bytes into a float64 luminance array in ``[0, 1]``.

    Transparent pixels are composited onto white first, since the
    captcha icons are drawn on a transparent canvas.

    Raises:
        DecodeError: If *data* is not a decodable image.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            rgba = img.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise DecodeError(f"Cannot decode image ({len(data)} bytes): {e}") from e

    background = Image.new("RGBA", rgba.size, (255, 255, 255, 255))
    flattened = Image.alpha_composite(background, rgba).convert("L")
    return np.asarray(flattened, dtype=np.float64) / 255.0


def _common_size(a: np.ndarray, b: np.ndarray) -> Tuple[int, int]:
    return min(a.shape[0], b.shape[0]), min(a.shape[1], b.shape[1])


def _resize(arr: np.ndarray, height: int, width: int) -> np.ndarray:
    if arr.shape == (height, width):
        return arr
    img = Image.fromarray(np.round(arr * 255.0).astype(np.uint8))
    img = img.resize((width, height), Image.Resampling.LANCZOS)
    return np.asarray(img, dtype=np.float64) / 255.0


def ssim(a: np.ndarray, b: np.ndarray) -> float:
    """Mean structural similarity of two equally-shaped luminance arrays."""
    if a.shape != b.shape:
        raise ValueError(f"shape mismatch: {a.shape} vs {b.shape}")
    win = max(1, min(WINDOW_SIZE, a.shape[0], a.shape[1]))

    wa = sliding_window_view(a, (win, win))
    wb = sliding_window_view(b, (win, win))
    mu_a = wa.mean(axis=(-2, -1))
    mu_b = wb.mean(axis=(-2, -1))
    var_a = (wa * wa).mean(axis=(-2, -1)) - mu_a * mu_a
    var_b = (wb * wb).mean(axis=(-2, -1)) - mu_b * mu_b
    cov = (wa * wb).mean(axis=(-2, -1)) - mu_a * mu_b

    c1 = K1 ** 2
    c2 = K2 ** 2
    numerator = (2 * mu_a * mu_b + c1) * (2 * cov + c2)
    denominator = (mu_a * mu_a + mu_b * mu_b + c1) * (var_a + var_b + c2)
    return float(np.mean(numerator / denominator))


class ImageSimilarityMatcher:
    """Structural-dissimilarity comparison between raster images."""

    def distance(self, image_a: bytes, image_b: bytes) -> float:
        """Return the structural dissimilarity of two encoded images.

        Images of different sizes are both resampled to the smaller
        common extent before comparison.

        Raises:
            DecodeError: If either image cannot be decoded.
        """
        a = decode_luminance(image_a)
        b = decode_luminance(image_b)
        return self._distance(a, b)

    def _distance(self, a: np.ndarray, b: np.ndarray) -> float:
        height, width = _common_size(a, b)
        a = _resize(a, height, width)
        b = _resize(b, height, width)
        if np.array_equal(a, b):
            return 0.0
        return max(0.0, (1.0 - ssim(a, b)) / 2.0)

    def best_match(self, reference: bytes, candidates: Sequence[bytes]) -> int:
        """Index of the candidate closest to *reference*.

        Ties go to the lowest index.  Every candidate is decoded before
        any comparison, so one broken image fails the whole match rather
        than quietly losing to the others.

        Raises:
            ValueError: If *candidates* is empty.
            DecodeError: If any image cannot be decoded.
        """
        if not candidates:
            raise ValueError("no candidates to match against")
        ref = decode_luminance(reference)
        decoded = [decode_luminance(c) for c in candidates]
        distances = [self._distance(ref, c) for c in decoded]
        best = min(range(len(distances)), key=distances.__getitem__)
        logger.debug(
            "Similarity distances %s -> best index %d",
            ", ".join(f"{d:.4f}" for d in distances), best,
        )
        return best
