# src/tvbench/system/metrics.py
from __future__ import annotations

import math

import numpy as np

from ..modules.estimator import ModelEstimator


def ground_truth_indices(labels: np.ndarray) -> np.ndarray:
    return np.flatnonzero(np.asarray(labels) == 1)


def rmse(
    points: np.ndarray,
    model: np.ndarray,
    estimator: ModelEstimator,
    gt_indices: np.ndarray,
) -> float | None:
    """
    sqrt(mean of squared residuals over the ground truth inliers).

    Returns None when there are no ground truth inliers; the caller has to
    report the metric as undefined.
    """
    idx = np.asarray(gt_indices, dtype=np.int64)
    if idx.size == 0:
        return None
    sq = estimator.squared_residuals(np.asarray(points, dtype=np.float64)[idx], model)
    return float(math.sqrt(float(np.mean(sq))))


def inlier_count(points: np.ndarray, model: np.ndarray, estimator: ModelEstimator, threshold: float) -> int:
    return int(np.count_nonzero(estimator.residuals(points, model) <= float(threshold)))


def labeling_at(points: np.ndarray, model: np.ndarray, estimator: ModelEstimator, threshold: float) -> np.ndarray:
    return (estimator.residuals(points, model) <= float(threshold)).astype(np.int32)


def theoretical_iterations(confidence: float, inlier_ratio: float, sample_size: int) -> float:
    """log(1-c) / log(1-p^k); diagnostic only."""
    if inlier_ratio <= 0.0:
        return math.inf
    if inlier_ratio >= 1.0:
        return 1.0
    p_good = inlier_ratio ** sample_size
    if p_good <= 0.0:
        return math.inf
    return math.log(1.0 - confidence) / math.log1p(-p_good)
