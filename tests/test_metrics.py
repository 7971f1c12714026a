"""
Unit tests for RMSE, inlier counts and the theoretical iteration bound
"""

import math

import numpy as np
import pytest

from tvbench.modules.homography import HomographyEstimator
from tvbench.system.metrics import (
    ground_truth_indices,
    inlier_count,
    labeling_at,
    rmse,
    theoretical_iterations,
)
from tests.synthetic import H_TRUE, homography_scene


class TestRmse:

    def test_matches_definition(self):
        pts, truth = homography_scene(n_inliers=40, n_outliers=10, noise=0.5, seed=7)
        est = HomographyEstimator()
        gt = np.flatnonzero(truth)
        expected = math.sqrt(np.mean(est.squared_residuals(pts[gt], H_TRUE)))
        value = rmse(pts, H_TRUE, est, gt)
        assert value == pytest.approx(expected)
        assert math.isfinite(value) and value >= 0.0

    def test_undefined_without_ground_truth(self):
        pts, _ = homography_scene(seed=8)
        assert rmse(pts, H_TRUE, HomographyEstimator(), np.array([], dtype=np.int64)) is None

    def test_ground_truth_indices(self):
        np.testing.assert_array_equal(ground_truth_indices(np.array([0, 1, 1, 0, 1])), [1, 2, 4])


class TestInlierCount:

    def test_monotonic_in_threshold(self):
        pts, _ = homography_scene(n_inliers=40, n_outliers=40, noise=2.0, seed=9)
        est = HomographyEstimator()
        counts = [inlier_count(pts, H_TRUE, est, t) for t in (0.1, 0.5, 1.0, 2.0, 5.0, 50.0, 1e6)]
        assert counts == sorted(counts)
        assert counts[-1] == len(pts)

    def test_labeling_agrees_with_count(self):
        pts, _ = homography_scene(noise=1.0, seed=10)
        est = HomographyEstimator()
        labels = labeling_at(pts, H_TRUE, est, 1.5)
        assert labels.dtype == np.int32
        assert labels.sum() == inlier_count(pts, H_TRUE, est, 1.5)


class TestTheoreticalIterations:

    def test_known_value(self):
        expected = math.log(0.01) / math.log(1.0 - 0.5 ** 4)
        assert theoretical_iterations(0.99, 0.5, 4) == pytest.approx(expected)
        assert theoretical_iterations(0.99, 0.5, 4) == pytest.approx(71.36, abs=0.01)

    def test_no_inliers(self):
        assert math.isinf(theoretical_iterations(0.99, 0.0, 7))

    def test_all_inliers(self):
        assert theoretical_iterations(0.99, 1.0, 5) == 1.0

    def test_grows_with_sample_size(self):
        assert theoretical_iterations(0.99, 0.6, 7) > theoretical_iterations(0.99, 0.6, 4)
