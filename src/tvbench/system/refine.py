# src/tvbench/system/refine.py
from __future__ import annotations

import numpy as np

from ..modules.estimator import ModelEstimator


class DegenerateLabelingError(ValueError):
    """The reference inliers cannot determine a model of the requested family."""


def refine_labeling(
    points: np.ndarray,
    labels: np.ndarray,
    estimator: ModelEstimator,
    threshold: float,
) -> np.ndarray:
    """
    Complete a conservative manual labeling.

    The manually selected inliers are usually a subset of all inliers, so:
      1) fit a model to every point labeled 1,
      2) relabel each point as inlier iff its residual <= threshold.

    Returns a new (N,) int32 labeling; `labels` is not modified.
    """
    pts = np.asarray(points, dtype=np.float64)
    lab = np.asarray(labels)
    if lab.shape != (pts.shape[0],):
        raise ValueError(f"labels shape {lab.shape} does not match {pts.shape[0]} points")

    subset = pts[lab == 1]
    if subset.shape[0] < estimator.sample_size:
        raise DegenerateLabelingError(
            f"{subset.shape[0]} reference inliers, {estimator.name} needs at least {estimator.sample_size}"
        )

    model = estimator.fit_nonminimal(subset)
    if not estimator.is_valid(model):
        raise DegenerateLabelingError(f"{estimator.name} fit to the reference inliers failed")

    return (estimator.residuals(pts, model) <= float(threshold)).astype(np.int32)


def select_ground_truth(reference: np.ndarray, refined: np.ndarray) -> tuple[np.ndarray, str]:
    # A refit on a nearly degenerate subset (e.g. after enforcing rank two) can
    # select fewer points than the manual labeling; keep whichever has more inliers.
    if int(np.count_nonzero(refined == 1)) > int(np.count_nonzero(reference == 1)):
        return refined, "refined"
    return reference, "reference"
