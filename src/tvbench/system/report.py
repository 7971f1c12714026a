from dataclasses import dataclass, field, asdict
import math

@dataclass
class MethodResult:
    method: str                       # "engine" or "opencv_ransac"
    iterations: int = 0
    elapsed_s: float = 0.0
    score: float | None = None
    rmse: float | None = None         # None: undefined (no ground truth inliers)
    inliers_at_maximum: int | None = None
    inliers_at_reporting: int | None = None
    labeled_inliers: int | None = None  # inliers as labeled by the method itself (baseline)

@dataclass
class SceneReport:
    scene: str
    family: str
    valid: bool = False
    reason: str = ""
    num_points: int = 0
    num_gt_inliers: int | None = None
    gt_source: str | None = None      # "reference" | "refined"
    theoretical_iterations: float | None = None
    thresholds: dict = field(default_factory=dict)
    results: list[MethodResult] = field(default_factory=list)

    def to_record(self) -> dict:
        rec = asdict(self)
        it = rec.get("theoretical_iterations")
        if it is not None and math.isinf(it):
            rec["theoretical_iterations"] = None
        return rec
