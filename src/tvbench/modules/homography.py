# src/tvbench/modules/homography.py
from __future__ import annotations

from itertools import combinations

import cv2
import numpy as np

from .estimator import ModelEstimator, split_points


class HomographyEstimator(ModelEstimator):
    """Planar homography; residual is the reprojection distance in the destination image."""

    name = "homography"
    sample_size = 4

    def _fit(self, points: np.ndarray) -> np.ndarray | None:
        p1, p2 = split_points(points)
        if p1.shape[0] < self.sample_size:
            return None
        # method=0: plain least squares over all given points
        H, _ = cv2.findHomography(p1, p2, 0)
        if H is None or not self.is_valid(H) or abs(H[2, 2]) < 1e-12:
            return None
        return H / H[2, 2]

    def is_degenerate_sample(self, sample: np.ndarray) -> bool:
        # three collinear points in either image leave the homography underdetermined
        p1, p2 = split_points(sample)
        return _has_collinear_triple(p1) or _has_collinear_triple(p2)

    def fit_minimal(self, points: np.ndarray) -> list[np.ndarray]:
        H = self._fit(points)
        return [] if H is None else [H]

    def fit_nonminimal(self, points: np.ndarray) -> np.ndarray | None:
        return self._fit(points)

    def residuals(self, points: np.ndarray, model: np.ndarray) -> np.ndarray:
        p1, p2 = split_points(points)
        x1 = np.hstack([p1, np.ones((p1.shape[0], 1))])
        proj = x1 @ np.asarray(model, dtype=np.float64).T
        w = proj[:, 2:3]
        w = np.where(np.abs(w) < 1e-12, 1e-12, w)
        return np.linalg.norm(proj[:, :2] / w - p2, axis=1)


def _has_collinear_triple(p: np.ndarray, eps: float = 1e-6) -> bool:
    for i, j, k in combinations(range(p.shape[0]), 3):
        u = p[j] - p[i]
        v = p[k] - p[i]
        cross = abs(u[0] * v[1] - u[1] * v[0])
        if cross <= eps * np.linalg.norm(u) * np.linalg.norm(v):
            return True
    return False
