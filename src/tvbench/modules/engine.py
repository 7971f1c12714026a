# src/tvbench/modules/engine.py
from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import numpy as np

from .estimator import ModelEstimator
from .sampler import UniformSampler

DEFAULT_MAXIMUM_THRESHOLD = 10.0
DEFAULT_REFERENCE_THRESHOLD = 2.0
DEFAULT_ITERATION_LIMIT = 10000


@dataclass
class ModelScore:
    value: float = 0.0
    inlier_number: int = 0  # at the reference threshold


@dataclass
class EngineResult:
    success: bool
    model: np.ndarray | None
    iterations: int
    score: ModelScore = field(default_factory=ModelScore)


class RobustEngine(ABC):
    """
    Sample-consensus engine contract.

    Thresholds are plain floats here: the caller decides their unit (pixels,
    or normalized camera units for calibrated scenes) and must pass all of
    them in the same unit as the estimator's residuals.
    """

    def __init__(
        self,
        *,
        maximum_threshold: float = DEFAULT_MAXIMUM_THRESHOLD,
        reference_threshold: float = DEFAULT_REFERENCE_THRESHOLD,
        iteration_limit: int = DEFAULT_ITERATION_LIMIT,
    ):
        self.maximum_threshold = float(maximum_threshold)
        self.reference_threshold = float(reference_threshold)
        self.iteration_limit = int(iteration_limit)

    def set_maximum_threshold(self, value: float) -> None:
        if not value > 0.0:
            raise ValueError(f"maximum threshold must be positive, got {value}")
        self.maximum_threshold = float(value)

    def get_reference_threshold(self) -> float:
        return self.reference_threshold

    def set_reference_threshold(self, value: float) -> None:
        if not value > 0.0:
            raise ValueError(f"reference threshold must be positive, got {value}")
        self.reference_threshold = float(value)

    def set_iteration_limit(self, value: int) -> None:
        if int(value) < 1:
            raise ValueError(f"iteration limit must be >= 1, got {value}")
        self.iteration_limit = int(value)

    @abstractmethod
    def estimate(
        self,
        points: np.ndarray,
        confidence: float,
        estimator: ModelEstimator,
        sampler: UniformSampler,
    ) -> EngineResult:
        ...

    def inlier_mask(
        self,
        points: np.ndarray,
        model: np.ndarray,
        estimator: ModelEstimator,
        threshold: float,
    ) -> np.ndarray:
        return estimator.residuals(points, model) <= float(threshold)


def required_iterations(confidence: float, inlier_ratio: float, sample_size: int, limit: int) -> int:
    """Standard RANSAC bound log(1-c) / log(1-w^k), clamped to [1, limit]."""
    if inlier_ratio >= 1.0:
        return 1
    p_good = inlier_ratio ** sample_size
    if p_good <= 1e-12:
        return limit
    n = math.log(1.0 - confidence) / math.log(1.0 - p_good)
    return int(min(limit, max(1, math.ceil(n))))


class MarginalizingEngine(RobustEngine):
    """
    In-process sample-consensus engine.

    Candidates are scored with a truncated quadratic (MSAC) quality averaged
    over a ladder of noise scales sigma_i = i / P * maximum_threshold, which
    removes the need for a single hand-picked inlier threshold. The reference
    threshold is only used to count inliers for the validity check, the
    stopping bound and the least-squares re-fit of the best model.
    """

    def __init__(self, *, min_iterations: int = 50, partition_number: int = 10, **kwargs):
        super().__init__(**kwargs)
        self.min_iterations = int(min_iterations)
        self.partition_number = max(1, int(partition_number))

    def score(self, points: np.ndarray, model: np.ndarray, estimator: ModelEstimator) -> ModelScore:
        r2 = np.nan_to_num(estimator.squared_residuals(points, model), nan=np.inf)
        levels = np.arange(1, self.partition_number + 1, dtype=np.float64) / self.partition_number
        sigma2 = (levels * self.maximum_threshold) ** 2
        gains = np.clip(1.0 - r2[None, :] / sigma2[:, None], 0.0, None)
        value = float(gains.sum(axis=1).mean())
        inliers = int(np.count_nonzero(r2 <= self.reference_threshold ** 2))
        return ModelScore(value=value, inlier_number=inliers)

    def _refit(self, points, estimator, model, score):
        mask = self.inlier_mask(points, model, estimator, self.reference_threshold)
        if int(mask.sum()) <= estimator.sample_size:
            return model, score
        refit = estimator.fit_nonminimal(points[mask])
        if not estimator.is_valid(refit):
            return model, score
        refit_score = self.score(points, refit, estimator)
        if refit_score.value > score.value:
            return refit, refit_score
        return model, score

    def estimate(self, points, confidence, estimator, sampler) -> EngineResult:
        if not 0.0 < confidence < 1.0:
            raise ValueError(f"confidence must be in (0, 1), got {confidence}")
        pts = np.asarray(points, dtype=np.float64)
        n = pts.shape[0]
        k = estimator.sample_size
        if n < k:
            return EngineResult(False, None, 0)

        best_model = None
        best_score = ModelScore()
        needed = self.iteration_limit
        iterations = 0

        while iterations < min(self.iteration_limit, max(self.min_iterations, needed)):
            iterations += 1
            sample = pts[sampler.sample(k)]
            if estimator.is_degenerate_sample(sample):
                continue
            for model in estimator.fit_minimal(sample):
                s = self.score(pts, model, estimator)
                # a model supported only by its own sample is rejected
                if s.inlier_number <= k or s.value <= best_score.value:
                    continue
                best_model, best_score = self._refit(pts, estimator, model, s)
                needed = required_iterations(confidence, best_score.inlier_number / n, k, self.iteration_limit)

        return EngineResult(best_model is not None, best_model, iterations, best_score)
