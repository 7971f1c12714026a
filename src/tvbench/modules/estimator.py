# src/tvbench/modules/estimator.py
from __future__ import annotations

from abc import ABC, abstractmethod

import numpy as np


class ModelEstimator(ABC):
    """
    Capability of one geometric model family.

    All methods are pure functions of (correspondences, model). Correspondences
    are (N,4) float64 rows [x1 y1 x2 y2]; models are 3x3 float64 matrices.
    """

    name: str = ""
    sample_size: int = 0

    @abstractmethod
    def fit_minimal(self, points: np.ndarray) -> list[np.ndarray]:
        """Fit every model implied by a minimal sample. Empty list if degenerate."""

    @abstractmethod
    def fit_nonminimal(self, points: np.ndarray) -> np.ndarray | None:
        """Least-squares fit to all given points. None if degenerate."""

    @abstractmethod
    def residuals(self, points: np.ndarray, model: np.ndarray) -> np.ndarray:
        """(N,) distance-like residuals, same unit as the thresholds."""

    def squared_residuals(self, points: np.ndarray, model: np.ndarray) -> np.ndarray:
        r = self.residuals(points, model)
        return r * r

    def residual(self, point: np.ndarray, model: np.ndarray) -> float:
        return float(self.residuals(np.asarray(point, dtype=np.float64).reshape(1, 4), model)[0])

    def squared_residual(self, point: np.ndarray, model: np.ndarray) -> float:
        return float(self.squared_residuals(np.asarray(point, dtype=np.float64).reshape(1, 4), model)[0])

    def is_valid(self, model: np.ndarray | None) -> bool:
        return model is not None and model.shape == (3, 3) and bool(np.all(np.isfinite(model)))

    def is_degenerate_sample(self, sample: np.ndarray) -> bool:
        """True when two sampled correspondences share a point in either image."""
        p1, p2 = split_points(sample)
        return _has_repeated_point(p1) or _has_repeated_point(p2)

    def _best_of(self, points: np.ndarray, models: list[np.ndarray]) -> np.ndarray | None:
        # several solutions from a minimal solver: keep the one with the lowest total residual
        best, best_err = None, np.inf
        for m in models:
            err = float(np.sum(self.squared_residuals(points, m)))
            if err < best_err:
                best, best_err = m, err
        return best


def split_points(points: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    pts = np.asarray(points, dtype=np.float64)
    return np.ascontiguousarray(pts[:, :2]), np.ascontiguousarray(pts[:, 2:4])


def _has_repeated_point(p: np.ndarray, rtol: float = 1e-10) -> bool:
    if p.shape[0] < 2:
        return False
    d = np.linalg.norm(p[:, None, :] - p[None, :, :], axis=2)
    iu = np.triu_indices(p.shape[0], 1)
    return bool(np.any(d[iu] <= rtol * float(np.abs(p).max())))


def split_stacked(M: np.ndarray | None) -> list[np.ndarray]:
    # OpenCV returns several solutions stacked vertically (3k x 3)
    if M is None or M.size == 0:
        return []
    M = np.asarray(M, dtype=np.float64)
    return [M[i:i + 3, :3].copy() for i in range(0, M.shape[0] - 2, 3)]


def sampson_distances(points: np.ndarray, F: np.ndarray) -> np.ndarray:
    """First-order geometric error of the epipolar constraint x2^T F x1 = 0."""
    p1, p2 = split_points(points)
    ones = np.ones((p1.shape[0], 1))
    x1 = np.hstack([p1, ones])
    x2 = np.hstack([p2, ones])
    Fx1 = x1 @ F.T        # rows: F @ x1
    Ftx2 = x2 @ F         # rows: F^T @ x2
    num = np.sum(x2 * Fx1, axis=1)
    den = Fx1[:, 0] ** 2 + Fx1[:, 1] ** 2 + Ftx2[:, 0] ** 2 + Ftx2[:, 1] ** 2
    return np.abs(num) / np.sqrt(np.maximum(den, 1e-300))


def make_estimator(family: str) -> ModelEstimator:
    from .homography import HomographyEstimator
    from .fundamental import FundamentalEstimator
    from .essential import EssentialEstimator

    table = {
        "homography": HomographyEstimator,
        "fundamental": FundamentalEstimator,
        "essential": EssentialEstimator,
    }
    if family not in table:
        raise ValueError(f"Unknown model family: {family!r} (expected one of {sorted(table)})")
    return table[family]()
