"""Run-length encoding for binary selection masks.

Masks travel between the annotation workspace and remote smart-tool services
as space-separated run lengths. Runs alternate between unselected and selected
pixels and always start with an unselected run (which may be ``0``).
"""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)


def encode_rle(mask: np.ndarray) -> str:
    """Encode a binary mask as alternating run lengths.

    Args:
        mask: Mask of any shape; non-zero values count as selected. The mask
            is flattened in row-major order.

    Returns:
        Space-separated run lengths, e.g. ``"3 2 4"`` for ``000110000``.
        Empty string for an empty mask.
    """
    flat = np.asarray(mask).ravel() != 0
    if flat.size == 0:
        return ""

    changes = np.flatnonzero(np.diff(flat.astype(np.int8))) + 1
    boundaries = np.concatenate(([0], changes, [flat.size]))
    runs = np.diff(boundaries)

    # First run always counts unselected pixels
    if flat[0]:
        runs = np.concatenate(([0], runs))

    return " ".join(str(int(run)) for run in runs)


def decode_rle(rle: str, shape: tuple[int, int]) -> np.ndarray:
    """Decode alternating run lengths into a flat ``uint8`` mask.

    Runs extending past the end of the mask are clipped.

    Args:
        rle: Space-separated run lengths, starting with an unselected run.
        shape: Mask shape as ``(height, width)``.

    Returns:
        Flat row-major mask of length ``height * width``.

    Raises:
        ValueError: If a run is not a non-negative integer.
    """
    height, width = shape
    total = int(height) * int(width)
    mask = np.zeros(total, dtype=np.uint8)

    if not rle or not rle.strip():
        return mask

    position = 0
    value = 0
    for token in rle.split():
        count = int(token)
        if count < 0:
            raise ValueError(f"Negative run length in RLE mask: {count}")
        if value == 1:
            mask[position : min(position + count, total)] = 1
        position += count
        value = 1 - value

    if position > total:
        logger.debug(f"RLE runs cover {position} pixels, clipped to {total}")

    return mask
