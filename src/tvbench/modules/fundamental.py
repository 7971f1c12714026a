# src/tvbench/modules/fundamental.py
from __future__ import annotations

import cv2
import numpy as np

from .estimator import ModelEstimator, sampson_distances, split_points, split_stacked


class FundamentalEstimator(ModelEstimator):
    """Uncalibrated epipolar geometry; residual is the Sampson distance in pixels."""

    name = "fundamental"
    sample_size = 7

    def fit_minimal(self, points: np.ndarray) -> list[np.ndarray]:
        p1, p2 = split_points(points)
        if p1.shape[0] != self.sample_size:
            return []
        F, _ = cv2.findFundamentalMat(p1, p2, cv2.FM_7POINT)
        # the 7-point solver yields up to three real solutions
        return [m for m in split_stacked(F) if self.is_valid(m)]

    def fit_nonminimal(self, points: np.ndarray) -> np.ndarray | None:
        p1, p2 = split_points(points)
        n = p1.shape[0]
        if n < self.sample_size:
            return None
        if n < 8:
            return self._best_of(points, self.fit_minimal(points[: self.sample_size]))
        F, _ = cv2.findFundamentalMat(p1, p2, cv2.FM_8POINT)
        models = [m for m in split_stacked(F) if self.is_valid(m)]
        return models[0] if models else None

    def residuals(self, points: np.ndarray, model: np.ndarray) -> np.ndarray:
        return sampson_distances(points, np.asarray(model, dtype=np.float64))
