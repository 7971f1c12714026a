from dataclasses import dataclass
import numpy as np

FAMILIES = ("homography", "fundamental", "essential")

@dataclass
class SceneData:
    name: str
    family: str                       # one of FAMILIES
    points: np.ndarray                # (N,4) x1 y1 x2 y2, pixels
    labels: np.ndarray | None = None  # (N,) 0/1 reference labeling
    K1: np.ndarray | None = None      # 3x3 source intrinsics (essential only)
    K2: np.ndarray | None = None      # 3x3 destination intrinsics
    img1: np.ndarray | None = None
    img2: np.ndarray | None = None

    @property
    def n_points(self) -> int:
        return int(self.points.shape[0])

    @property
    def is_calibrated(self) -> bool:
        return self.K1 is not None and self.K2 is not None
