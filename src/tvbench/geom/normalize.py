# src/tvbench/geom/normalize.py
from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class PixelThreshold:
    value: float

    def __float__(self) -> float:
        return float(self.value)


@dataclass(frozen=True)
class NormalizedThreshold:
    value: float
    mean_focal: float  # focal length the pixel value was divided by

    def __float__(self) -> float:
        return float(self.value)


Threshold = PixelThreshold | NormalizedThreshold


def mean_focal_length(K1: np.ndarray, K2: np.ndarray) -> float:
    return float((K1[0, 0] + K1[1, 1] + K2[0, 0] + K2[1, 1]) / 4.0)


def normalize_threshold(t: PixelThreshold, mean_focal: float) -> NormalizedThreshold:
    """
    Convert a pixel threshold into calibration-free units: T / f_mean.

    Only pixel thresholds are accepted. Passing an already normalized
    threshold raises TypeError instead of dividing a second time.
    """
    if isinstance(t, NormalizedThreshold):
        raise TypeError(f"Threshold already normalized (f={t.mean_focal:g}): {t.value:g}")
    if not isinstance(t, PixelThreshold):
        raise TypeError(f"Expected PixelThreshold, got {type(t).__name__}")
    if not mean_focal > 0.0:
        raise ValueError(f"Mean focal length must be positive, got {mean_focal}")
    return NormalizedThreshold(float(t.value) / float(mean_focal), float(mean_focal))


@dataclass(frozen=True)
class ThresholdSet:
    """
    The three independent threshold roles of one run.

    maximum: upper bound of the noise scale inside the engine
    reference: threshold the engine counts inliers with internally
    reporting: post-hoc threshold for the final inlier count and drawing
    """
    maximum: Threshold
    reference: Threshold
    reporting: Threshold

    @classmethod
    def from_pixels(cls, maximum: float, reference: float, reporting: float) -> "ThresholdSet":
        return cls(PixelThreshold(float(maximum)), PixelThreshold(float(reference)), PixelThreshold(float(reporting)))

    @property
    def is_normalized(self) -> bool:
        return isinstance(self.maximum, NormalizedThreshold)

    def normalized(self, mean_focal: float) -> "ThresholdSet":
        return ThresholdSet(
            normalize_threshold(self.maximum, mean_focal),
            normalize_threshold(self.reference, mean_focal),
            normalize_threshold(self.reporting, mean_focal),
        )


def _inv_K(K: np.ndarray) -> np.ndarray:
    K64 = np.asarray(K, dtype=np.float64)
    if K64.shape != (3, 3):
        raise ValueError(f"Intrinsics must be 3x3, got {K64.shape}")
    try:
        return np.linalg.inv(K64)
    except np.linalg.LinAlgError as ex:
        raise ValueError("Intrinsics matrix is not invertible") from ex


def _to_camera(pts: np.ndarray, K_inv: np.ndarray) -> np.ndarray:
    pts_h = np.hstack([pts, np.ones((pts.shape[0], 1))])  # Nx3
    x = (K_inv @ pts_h.T).T
    return x[:, :2] / x[:, 2:3]


def normalize_correspondences(points: np.ndarray, K1: np.ndarray, K2: np.ndarray) -> np.ndarray:
    """
    Map (N,4) pixel correspondences [x1 y1 x2 y2] into normalized camera
    coordinates using the inverse of the source / destination intrinsics.
    """
    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[1] != 4:
        raise ValueError(f"Expected (N,4) correspondences, got {pts.shape}")
    out = np.empty_like(pts)
    out[:, :2] = _to_camera(pts[:, :2], _inv_K(K1))
    out[:, 2:] = _to_camera(pts[:, 2:], _inv_K(K2))
    return out
