"""Image normalization for CVs uploaded as photos or scans.

Keeps the vision model payload bounded:
1. Decode image bytes (PNG or JPEG)
2. Downscale so the longest side fits MAX_IMAGE_SIDE
3. Encode as JPEG

Each step degrades gracefully — if it fails, the original image continues.
PDFs are sent to the model untouched and never reach this module.
"""

import logging

import cv2
import numpy as np

from config import settings

logger = logging.getLogger(__name__)

JPEG_QUALITY = 90


def prepare_image(image_bytes: bytes, max_side: int | None = None) -> bytes:
    """Run the normalization pipeline on raw image bytes.

    Returns JPEG bytes. If decoding fails, returns the original bytes.
    """
    img = _decode(image_bytes)
    if img is None:
        logger.warning("preprocessing: could not decode image, returning original")
        return image_bytes

    img = _downscale(img, max_side if max_side is not None else settings.MAX_IMAGE_SIDE)
    return _encode(img, fallback=image_bytes)


def _decode(image_bytes: bytes) -> np.ndarray | None:
    """Decode raw bytes into an OpenCV BGR array."""
    arr = np.frombuffer(image_bytes, dtype=np.uint8)
    return cv2.imdecode(arr, cv2.IMREAD_COLOR)


def _downscale(img: np.ndarray, max_side: int) -> np.ndarray:
    """Shrink so that max(width, height) <= max_side, keeping aspect ratio. Never upscales."""
    try:
        h, w = img.shape[:2]
        longest = max(h, w)
        if longest <= max_side:
            return img

        scale = max_side / longest
        size = (max(1, round(w * scale)), max(1, round(h * scale)))
        logger.debug("preprocessing: downscaling %dx%d -> %dx%d", w, h, size[0], size[1])
        return cv2.resize(img, size, interpolation=cv2.INTER_AREA)

    except Exception as e:
        logger.warning("preprocessing: resize failed: %s", e)
        return img


def _encode(img: np.ndarray, fallback: bytes) -> bytes:
    """Encode image as JPEG bytes."""
    try:
        success, buf = cv2.imencode(".jpg", img, [cv2.IMWRITE_JPEG_QUALITY, JPEG_QUALITY])
        if success:
            return buf.tobytes()
    except Exception as e:
        logger.warning("preprocessing: JPEG encode failed: %s", e)

    return fallback
