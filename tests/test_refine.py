"""
Unit tests for ground truth refinement and the tie-break between labelings
"""

import numpy as np
import pytest

from tvbench.modules.fundamental import FundamentalEstimator
from tvbench.modules.homography import HomographyEstimator
from tvbench.system.refine import DegenerateLabelingError, refine_labeling, select_ground_truth
from tests.synthetic import homography_scene, reference_labels, two_view_scene


class TestRefineLabeling:

    def test_homography_scenario(self):
        """50 points, 20 manually labeled inliers, 2 px refinement threshold"""
        pts, truth = homography_scene(n_inliers=40, n_outliers=10, noise=0.3, seed=1)
        labels = reference_labels(truth, 20, seed=1)

        refined = refine_labeling(pts, labels, HomographyEstimator(), 2.0)

        assert refined.shape == labels.shape
        assert set(np.unique(refined)) <= {0, 1}
        assert refined.sum() >= 20
        # every true inlier is recovered, no outlier is accepted
        assert refined[truth].sum() == truth.sum()
        assert refined[~truth].sum() == 0

    def test_fundamental_refinement(self):
        pts, truth, _ = two_view_scene(n_inliers=60, n_outliers=20, noise=0.1, seed=2)
        labels = reference_labels(truth, 25, seed=2)
        refined = refine_labeling(pts, labels, FundamentalEstimator(), 0.35)
        assert refined.sum() > labels.sum()
        assert refined[~truth].sum() <= 2

    def test_reference_not_modified(self):
        pts, truth = homography_scene(seed=3)
        labels = reference_labels(truth, 10, seed=3)
        before = labels.copy()
        refine_labeling(pts, labels, HomographyEstimator(), 2.0)
        np.testing.assert_array_equal(labels, before)

    def test_too_few_reference_inliers(self):
        pts, truth = homography_scene(seed=4)
        labels = reference_labels(truth, 3, seed=4)
        with pytest.raises(DegenerateLabelingError):
            refine_labeling(pts, labels, HomographyEstimator(), 2.0)

    def test_no_reference_inliers(self):
        pts, _ = homography_scene(seed=5)
        with pytest.raises(DegenerateLabelingError):
            refine_labeling(pts, np.zeros(len(pts), dtype=np.int32), HomographyEstimator(), 2.0)

    def test_label_length_mismatch(self):
        pts, _ = homography_scene(seed=6)
        with pytest.raises(ValueError):
            refine_labeling(pts, np.ones(len(pts) - 1, dtype=np.int32), HomographyEstimator(), 2.0)


class TestSelectGroundTruth:

    def test_more_generous_refined_wins(self):
        reference = np.array([1, 0, 0, 1, 0])
        refined = np.array([1, 1, 0, 1, 0])
        labels, source = select_ground_truth(reference, refined)
        assert source == "refined"
        np.testing.assert_array_equal(labels, refined)

    def test_stricter_refined_loses(self):
        reference = np.array([1, 1, 0, 1, 0])
        refined = np.array([1, 0, 0, 0, 0])
        labels, source = select_ground_truth(reference, refined)
        assert source == "reference"
        np.testing.assert_array_equal(labels, reference)

    def test_tie_keeps_reference(self):
        reference = np.array([1, 0, 1])
        refined = np.array([0, 1, 1])
        _, source = select_ground_truth(reference, refined)
        assert source == "reference"

    def test_never_below_reference_count(self):
        rng = np.random.default_rng(0)
        for _ in range(20):
            reference = rng.integers(0, 2, 30)
            refined = rng.integers(0, 2, 30)
            labels, _ = select_ground_truth(reference, refined)
            assert labels.sum() >= reference.sum()
            assert labels.sum() >= refined.sum()
