# src/tvbench/system/runner.py
from __future__ import annotations

import sys
import time
from typing import Callable

import cv2
import numpy as np

from .state import SceneData
from .telemetry import Telemetry
from .report import MethodResult, SceneReport
from .refine import DegenerateLabelingError, refine_labeling, select_ground_truth
from .metrics import ground_truth_indices, inlier_count, labeling_at, rmse, theoretical_iterations
from ..geom.normalize import (
    PixelThreshold,
    ThresholdSet,
    mean_focal_length,
    normalize_correspondences,
    normalize_threshold,
)
from ..modules.engine import MarginalizingEngine, RobustEngine
from ..modules.estimator import ModelEstimator, make_estimator
from ..modules.sampler import UniformSampler
from ..modules.baseline import opencv_ransac

# Thresholds in pixels. Refinement thresholds follow the LO*-RANSAC paper (F)
# and the dataset annotation accuracy (H).
FAMILY_DEFAULTS = {
    "homography": {
        "maximum_threshold_px": 50.0,
        "reference_threshold_px": 2.0,
        "drawing_threshold_px": 2.5,
        "refine_threshold_px": 2.0,
        "baseline_threshold_px": 1.0,
    },
    "fundamental": {
        "maximum_threshold_px": 5.0,
        "reference_threshold_px": 2.0,
        "drawing_threshold_px": 1.0,
        "refine_threshold_px": 0.35,
        "baseline_threshold_px": 1.0,
    },
    "essential": {
        "maximum_threshold_px": 5.0,
        "reference_threshold_px": 2.0,
        "drawing_threshold_px": 3.0,
        "refine_threshold_px": 2.0,
        "baseline_threshold_px": 3.0,
    },
}

# visualize(points, labels, img1, img2, title, method=...)
Visualizer = Callable[..., None]


def family_config(cfg: dict, family: str) -> dict:
    out = dict(FAMILY_DEFAULTS[family])
    out.update(cfg.get("families", {}).get(family, {}) or {})
    return out


def make_engine(cfg: dict) -> RobustEngine:
    ecfg = cfg.get("engine", {}) or {}
    return MarginalizingEngine(
        min_iterations=int(ecfg.get("min_iterations", 50)),
        partition_number=int(ecfg.get("partition_number", 10)),
        iteration_limit=int(ecfg.get("iteration_limit", 10000)),
    )


def _error(msg: str) -> None:
    print(f"[ERROR] {msg}", file=sys.stderr)


def _score(
    method: MethodResult,
    points: np.ndarray,
    model: np.ndarray,
    estimator: ModelEstimator,
    gt_idx: np.ndarray | None,
    thresholds: ThresholdSet,
    engine: RobustEngine,
    unit: str,
) -> None:
    if gt_idx is None:
        print("\tRMSE: undefined (scene has no reference labeling)")
    else:
        method.rmse = rmse(points, model, estimator, gt_idx)
        if method.rmse is None:
            print("[WARN] RMSE undefined: zero ground truth inliers")
        else:
            print(f"\tRMSE error: {method.rmse:f} {unit}")

    mask = engine.inlier_mask(points, model, estimator, float(thresholds.maximum))
    method.inliers_at_maximum = int(np.count_nonzero(mask))
    method.inliers_at_reporting = inlier_count(points, model, estimator, float(thresholds.reporting))
    print(f"\tNumber of inliers for threshold {float(thresholds.maximum):g} {unit}: {method.inliers_at_maximum}")
    print(f"\tNumber of points closer than {float(thresholds.reporting):g} {unit}: {method.inliers_at_reporting}")


def _draw(visualize, scene, labeling, title, method) -> None:
    if scene.img1 is None or scene.img2 is None:
        print("[WARN] No images loaded, skipping visualization")
        return
    visualize(scene.points, labeling, scene.img1, scene.img2, title, method=method)


def _run_baseline(
    points, scene, estimator, gt_idx, thresholds, baseline_thr, confidence, engine, unit, fam, visualize
) -> MethodResult:
    method = MethodResult("opencv_ransac")
    print(f"1. Running OpenCV's RANSAC with threshold {float(baseline_thr):g} {unit}")
    try:
        res = opencv_ransac(points, scene.family, float(baseline_thr), confidence=confidence)
    except cv2.error as ex:
        _error(f"OpenCV RANSAC failed on scene '{scene.name}': {ex}")
        return method
    method.elapsed_s = res.elapsed_s
    print(f"\tElapsed time: {res.elapsed_s:f} secs")
    if not res.valid:
        print("\tOpenCV found no model.")
        return method
    method.labeled_inliers = int(np.count_nonzero(res.mask))
    print(f"\tNumber of inliers labeled by OpenCV: {method.labeled_inliers}")
    _score(method, points, res.model, estimator, gt_idx, thresholds, engine, unit)

    if visualize is not None:
        title = f"OpenCV's RANSAC: {scene.name}; threshold = {fam['baseline_threshold_px']:g} px"
        _draw(visualize, scene, res.mask.astype(np.int32), title, method.method)
    return method


def evaluate_scene(
    scene: SceneData,
    cfg: dict,
    telemetry: Telemetry,
    *,
    scene_idx: int = 0,
    engine: RobustEngine | None = None,
    visualize: Visualizer | None = None,
) -> SceneReport:
    """
    Benchmark one scene end to end.

    Responsibilities:
      1) normalize points and thresholds for calibrated scenes
      2) refine the reference labeling into the ground truth
      3) run the OpenCV baseline (optional) and the robust engine
      4) score both against the ground truth
      5) draw (optional) and log telemetry

    Failures of the scene (empty data, degenerate labeling, no model) are
    recorded in the returned report instead of being raised. Any other
    exception is reported as ERROR_<type> so the remaining scenes still run.
    """
    report = SceneReport(scene=scene.name, family=scene.family, num_points=scene.n_points)
    try:
        _evaluate(scene, cfg, report, engine, visualize)
    except Exception as ex:
        _error(f"Evaluation of scene '{scene.name}' failed: {type(ex).__name__}: {ex}")
        report.valid = False
        report.reason = f"ERROR_{type(ex).__name__}"
    finally:
        telemetry.log_scene(scene_idx, report.to_record())
    return report


def _evaluate(scene, cfg, report, engine, visualize) -> None:
    if scene.n_points == 0:
        _error(f"A problem occured when loading the annotated points for test scene '{scene.name}'")
        report.reason = "SKIP_EMPTY"
        return

    fam = family_config(cfg, scene.family)
    estimator = make_estimator(scene.family)
    confidence = float(cfg.get("confidence", 0.99))

    thresholds = ThresholdSet.from_pixels(
        fam["maximum_threshold_px"], fam["reference_threshold_px"], fam["drawing_threshold_px"]
    )
    refine_thr = PixelThreshold(float(fam["refine_threshold_px"]))
    baseline_thr = PixelThreshold(float(fam["baseline_threshold_px"]))
    points = scene.points
    unit = "px"

    if scene.family == "essential":
        if not scene.is_calibrated:
            _error(f"Scene '{scene.name}' has no intrinsics; essential matrix needs both cameras")
            report.reason = "SKIP_NO_INTRINSICS"
            return
        f_mean = mean_focal_length(scene.K1, scene.K2)
        points = normalize_correspondences(scene.points, scene.K1, scene.K2)
        thresholds = thresholds.normalized(f_mean)
        refine_thr = normalize_threshold(refine_thr, f_mean)
        baseline_thr = normalize_threshold(baseline_thr, f_mean)
        unit = "(normalized)"

    report.thresholds = {
        "maximum": float(thresholds.maximum),
        "reference": float(thresholds.reference),
        "reporting": float(thresholds.reporting),
        "normalized": thresholds.is_normalized,
    }

    print(f"\tEstimated model = '{estimator.name}'.")
    print(f"\tNumber of correspondences loaded = {scene.n_points}.")

    gt_idx = None
    if scene.labels is not None:
        try:
            refined = refine_labeling(points, scene.labels, estimator, float(refine_thr))
        except DegenerateLabelingError as ex:
            _error(f"Cannot refine the reference labeling of scene '{scene.name}': {ex}")
            report.reason = "REJECT_DEGENERATE_LABELING"
            return
        gt_labels, report.gt_source = select_ground_truth(scene.labels, refined)
        gt_idx = ground_truth_indices(gt_labels)
        report.num_gt_inliers = int(gt_idx.size)
        report.theoretical_iterations = theoretical_iterations(
            confidence, gt_idx.size / scene.n_points, estimator.sample_size
        )
        print(f"\tNumber of ground truth inliers = {gt_idx.size} ({report.gt_source} labeling).")
        print(f"\tTheoretical RANSAC iteration number at {confidence:.2f} confidence = {report.theoretical_iterations:.0f}.")

    if engine is None:
        engine = make_engine(cfg)

    if (cfg.get("baseline", {}) or {}).get("enabled", True):
        report.results.append(
            _run_baseline(
                points, scene, estimator, gt_idx, thresholds, baseline_thr, confidence, engine, unit, fam, visualize
            )
        )

    engine.set_maximum_threshold(float(thresholds.maximum))
    engine.set_reference_threshold(float(thresholds.reference))
    engine.set_iteration_limit(int((cfg.get("engine", {}) or {}).get("iteration_limit", 10000)))

    method = MethodResult("engine")
    report.results.append(method)
    print(f"2. Running the robust engine with maximum threshold {float(thresholds.maximum):g} {unit}")

    sampler = UniformSampler(scene.n_points, cfg.get("seed"))
    start = time.perf_counter()
    result = engine.estimate(points, confidence, estimator, sampler)
    method.elapsed_s = time.perf_counter() - start
    method.iterations = int(result.iterations)
    print(f"\tActual number of iterations drawn at {confidence:.2f} confidence: {method.iterations}")
    print(f"\tElapsed time: {method.elapsed_s:f} secs")

    if not result.success or not estimator.is_valid(result.model):
        print("No reasonable model has been found.")
        report.reason = "NO_MODEL"
        return

    method.score = float(result.score.value)
    _score(method, points, result.model, estimator, gt_idx, thresholds, engine, unit)

    if visualize is not None:
        labeling = labeling_at(points, result.model, estimator, float(thresholds.reporting))
        title = (
            f"{scene.name}: threshold = {fam['drawing_threshold_px']:g} px; "
            f"maximum threshold = {fam['maximum_threshold_px']:g} px"
        )
        _draw(visualize, scene, labeling, title, method.method)

    report.valid = True
    report.reason = "OK"
