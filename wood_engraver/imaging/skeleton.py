"""Topological thinning (Zhang-Suen) of a binarized intensity buffer.

Foreground convention inside this module: 1 = dark (line), 0 = background.

Each round runs two sub-passes over the interior pixels (the 1-pixel border
is never touched).  For a foreground pixel with clockwise neighbours
``p2..p9`` starting straight above:

    B = number of foreground neighbours
    A = number of 0 -> 1 transitions around p2, p3, ..., p9, p2

    sub-pass 1 deletes when A == 1, 2 <= B <= 6, p2*p4*p6 == 0, p4*p6*p8 == 0
    sub-pass 2 deletes when A == 1, 2 <= B <= 6, p2*p4*p8 == 0, p2*p6*p8 == 0

Within a sub-pass every test reads the state from before that sub-pass;
deletions are applied together once the whole interior has been evaluated.
The vectorized slices below compute the full deletion mask before any
assignment, which is exactly that collect-then-apply discipline.  Thinning
stops after the first round in which neither sub-pass deleted anything.
"""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)


def binarize(gray: np.ndarray, threshold: int) -> np.ndarray:
    """Foreground mask: 1 where ``gray < threshold``, else 0 (uint8)."""
    return (gray < threshold).astype(np.uint8)


def _neighbours(mask: np.ndarray) -> list[np.ndarray]:
    """Views p2..p9 aligned with the interior of *mask* (clockwise from top)."""
    return [
        mask[:-2, 1:-1],   # p2  N
        mask[:-2, 2:],     # p3  NE
        mask[1:-1, 2:],    # p4  E
        mask[2:, 2:],      # p5  SE
        mask[2:, 1:-1],    # p6  S
        mask[2:, :-2],     # p7  SW
        mask[1:-1, :-2],   # p8  W
        mask[:-2, :-2],    # p9  NW
    ]


def _sub_pass(mask: np.ndarray, second: bool) -> int:
    """Evaluate one sub-pass on *mask* in place; return deletions applied."""
    ring = _neighbours(mask)
    p2, _, p4, _, p6, _, p8, _ = ring

    b = sum(p.astype(np.uint8) for p in ring)
    a = sum(
        ((cur == 0) & (nxt == 1)).astype(np.uint8)
        for cur, nxt in zip(ring, ring[1:] + ring[:1])
    )

    if second:
        side = ((p2 & p4 & p8) == 0) & ((p2 & p6 & p8) == 0)
    else:
        side = ((p2 & p4 & p6) == 0) & ((p4 & p6 & p8) == 0)

    delete = (mask[1:-1, 1:-1] == 1) & (a == 1) & (b >= 2) & (b <= 6) & side
    count = int(np.count_nonzero(delete))
    if count:
        mask[1:-1, 1:-1][delete] = 0
    return count


def thin(mask: np.ndarray) -> tuple[np.ndarray, int]:
    """Thin a 0/1 mask to a 1-pixel-wide skeleton.

    Parameters
    ----------
    mask : np.ndarray
        Foreground mask, shape (H, W), values in {0, 1}.  Not modified.

    Returns
    -------
    skeleton : np.ndarray
        Thinned 0/1 mask, same shape, dtype uint8.
    rounds : int
        Number of rounds that deleted at least one pixel.
    """
    work = (np.asarray(mask) != 0).astype(np.uint8)
    h, w = work.shape
    if h < 3 or w < 3 or not work[1:-1, 1:-1].any():
        return work, 0

    rounds = 0
    while True:
        deleted = _sub_pass(work, second=False)
        deleted += _sub_pass(work, second=True)
        if deleted == 0:
            break
        rounds += 1
        logger.debug("Thinning round %d removed %d pixels", rounds, deleted)

    return work, rounds


def skeletonize(gray: np.ndarray, threshold: int) -> np.ndarray:
    """Binarize at *threshold*, thin, and render as an intensity buffer.

    Parameters
    ----------
    gray : np.ndarray
        Intensity buffer, shape (H, W), dtype uint8.
    threshold : int
        Pixels darker than this are foreground.

    Returns
    -------
    np.ndarray
        Shape (H, W), dtype uint8: 0 on skeleton pixels, 255 elsewhere.
    """
    skeleton, rounds = thin(binarize(gray, threshold))
    logger.debug(
        "Skeleton: %d pixels after %d rounds",
        int(np.count_nonzero(skeleton)), rounds,
    )
    return np.where(skeleton == 1, 0, 255).astype(np.uint8)
