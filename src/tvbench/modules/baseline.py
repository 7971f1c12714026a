# src/tvbench/modules/baseline.py
from __future__ import annotations

import time
from dataclasses import dataclass

import cv2
import numpy as np

from .estimator import split_points, split_stacked


@dataclass
class BaselineResult:
    model: np.ndarray | None
    mask: np.ndarray  # (N,) bool, as labeled by OpenCV
    elapsed_s: float
    valid: bool = True


def opencv_ransac(
    points: np.ndarray,
    family: str,
    threshold: float,
    *,
    confidence: float = 0.99,
) -> BaselineResult:
    """
    Plain OpenCV RANSAC reference fit.

    Args:
        points: (N,4) correspondences; for "essential" they must already be in
            normalized camera coordinates and `threshold` normalized as well.
        family: "homography", "fundamental" or "essential".
        threshold: inlier-outlier threshold handed to OpenCV.

    Returns:
        BaselineResult. If OpenCV fails, valid=False and model=None.
    """
    p1, p2 = split_points(points)
    n = p1.shape[0]
    empty = np.zeros((n,), dtype=bool)

    start = time.perf_counter()
    if family == "homography":
        M, mask = cv2.findHomography(p1, p2, cv2.RANSAC, threshold)
    elif family == "fundamental":
        M, mask = cv2.findFundamentalMat(p1, p2, cv2.FM_RANSAC, threshold, confidence)
    elif family == "essential":
        M, mask = cv2.findEssentialMat(
            p1,
            p2,
            cameraMatrix=np.eye(3, dtype=np.float64),
            method=cv2.RANSAC,
            prob=confidence,
            threshold=threshold,
        )
    else:
        raise ValueError(f"Unknown model family: {family!r}")
    elapsed = time.perf_counter() - start

    models = split_stacked(M)
    if not models or mask is None:
        return BaselineResult(None, empty, elapsed, valid=False)

    # several essential matrices may come back stacked; keep the first one
    return BaselineResult(models[0], mask.reshape(-1).astype(bool), elapsed, valid=True)
