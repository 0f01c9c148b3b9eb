from typing import Tuple

import numpy as np
from PIL import Image, ImageFilter, ImageOps

MIN_PAGE_DIMENSION = 1000
THRESHOLD_RATIO = 0.9


def _upscaled_size(size: Tuple[int, int], min_dim: int) -> Tuple[int, int]:
    longest = max(size)
    if longest >= min_dim:
        return size
    scale = min_dim / longest
    return round(size[0] * scale), round(size[1] * scale)


def binarize(page: Image.Image, ratio: float = THRESHOLD_RATIO) -> Image.Image:
    """Black text on white: pixels darker than `ratio` x the median brightness become 0."""
    pixels = np.asarray(page)
    cutoff = np.median(pixels) * ratio
    return Image.fromarray(np.where(pixels > cutoff, 255, 0).astype(np.uint8))


def preprocess_image_for_ocr(
    page: Image.Image,
    min_dim: int = MIN_PAGE_DIMENSION,
    threshold_ratio: float = THRESHOLD_RATIO,
) -> Image.Image:
    """
    Prepare a rasterised résumé page for Tesseract.

    Scanned pages are often faint and small: stretch the contrast, bring the
    longest side up to `min_dim`, sharpen, then binarise around the median.
    """
    gray = ImageOps.autocontrast(ImageOps.grayscale(page))

    target = _upscaled_size(gray.size, min_dim)
    if target != gray.size:
        gray = gray.resize(target, Image.Resampling.LANCZOS)

    return binarize(gray.filter(ImageFilter.SHARPEN), threshold_ratio)
