# src/tvbench/modules/sampler.py
from __future__ import annotations

import numpy as np


class UniformSampler:
    """Draws minimal samples uniformly, without replacement inside a sample."""

    def __init__(self, n_points: int, seed: int | None = None):
        self.n_points = int(n_points)
        self.rng = np.random.default_rng(seed)

    def sample(self, k: int) -> np.ndarray:
        if k > self.n_points:
            raise ValueError(f"Cannot draw {k} distinct indices from {self.n_points} points")
        return self.rng.choice(self.n_points, size=k, replace=False)
