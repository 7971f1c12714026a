# src/tvbench/modules/essential.py
from __future__ import annotations

import cv2
import numpy as np

from .estimator import ModelEstimator, sampson_distances, split_points, split_stacked


def project_to_essential(M: np.ndarray) -> np.ndarray:
    """Closest essential matrix: singular values forced to (1, 1, 0)."""
    U, _, Vt = np.linalg.svd(M)
    return U @ np.diag([1.0, 1.0, 0.0]) @ Vt


class EssentialEstimator(ModelEstimator):
    """
    Calibrated epipolar geometry.

    Expects correspondences already in normalized camera coordinates, so the
    residual (Sampson distance) is in normalized units as well.
    """

    name = "essential"
    sample_size = 5

    def fit_minimal(self, points: np.ndarray) -> list[np.ndarray]:
        p1, p2 = split_points(points)
        if p1.shape[0] != self.sample_size:
            return []
        # With exactly five points findEssentialMat runs the five-point solver
        # once and returns every solution stacked (3k x 3).
        E, _ = cv2.findEssentialMat(
            p1,
            p2,
            cameraMatrix=np.eye(3, dtype=np.float64),
            method=cv2.RANSAC,
            prob=0.999,
            threshold=1.0,
        )
        return [m for m in split_stacked(E) if self.is_valid(m)]

    def fit_nonminimal(self, points: np.ndarray) -> np.ndarray | None:
        p1, p2 = split_points(points)
        n = p1.shape[0]
        if n < self.sample_size:
            return None
        if n < 8:
            return self._best_of(points, self.fit_minimal(points[: self.sample_size]))

        # linear eight-point on x2^T E x1 = 0
        A = np.column_stack([
            p2[:, 0] * p1[:, 0], p2[:, 0] * p1[:, 1], p2[:, 0],
            p2[:, 1] * p1[:, 0], p2[:, 1] * p1[:, 1], p2[:, 1],
            p1[:, 0], p1[:, 1], np.ones(n),
        ])
        _, _, Vt = np.linalg.svd(A)
        E = project_to_essential(Vt[-1].reshape(3, 3))
        return E if self.is_valid(E) else None

    def residuals(self, points: np.ndarray, model: np.ndarray) -> np.ndarray:
        return sampson_distances(points, np.asarray(model, dtype=np.float64))
