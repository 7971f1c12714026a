# src/tvbench/dataset/scenes.py
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import List, Tuple

import cv2
import numpy as np

from ..system.state import FAMILIES, SceneData

IMAGE_EXTENSIONS = (".png", ".jpg")


@dataclass(frozen=True)
class SceneLayout:
    subdir: str
    image_suffixes: Tuple[str, str]
    annotated: bool  # label column appended to every row
    calibrated: bool


LAYOUTS = {
    "homography": SceneLayout("homography", ("A", "B"), annotated=True, calibrated=False),
    "fundamental": SceneLayout("fundamental_matrix", ("A", "B"), annotated=True, calibrated=False),
    "essential": SceneLayout("essential_matrix", ("1", "2"), annotated=False, calibrated=True),
}


def _read_rows(path: str, n_cols: int) -> np.ndarray:
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Missing correspondence file: {path}")

    rows: List[List[float]] = []
    with open(path, "r", encoding="utf-8") as f:
        for lineno, line in enumerate(f, start=1):
            line = line.strip()
            if (not line) or line.startswith("#"):
                continue
            parts = line.split()
            if len(parts) != n_cols:
                raise ValueError(f"{path}:{lineno}: expected {n_cols} values, got {len(parts)}")
            rows.append([float(p) for p in parts])
    return np.array(rows, dtype=np.float64).reshape(-1, n_cols)


def read_points(path: str) -> np.ndarray:
    """Rows of x1 y1 x2 y2 -> (N,4) float64."""
    return _read_rows(path, 4)


def read_annotated_points(path: str) -> Tuple[np.ndarray, np.ndarray]:
    """Rows of x1 y1 x2 y2 label -> ((N,4) float64, (N,) int labels in {0,1})."""
    data = _read_rows(path, 5)
    labels = data[:, 4]
    if not np.all((labels == 0.0) | (labels == 1.0)):
        raise ValueError(f"{path}: labels must be 0 or 1")
    return np.ascontiguousarray(data[:, :4]), labels.astype(np.int32)


def read_intrinsics(path: str) -> np.ndarray:
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Missing intrinsics file: {path}")
    with open(path, "r", encoding="utf-8") as f:
        values = [float(v) for v in f.read().split()]
    if len(values) != 9:
        raise ValueError(f"{path}: expected a 3x3 matrix, got {len(values)} values")
    K = np.array(values, dtype=np.float64).reshape(3, 3)
    if abs(np.linalg.det(K)) < 1e-12:
        raise ValueError(f"{path}: intrinsics matrix is singular")
    return K


def load_image_pair(stem1: str, stem2: str) -> Tuple[np.ndarray, np.ndarray]:
    """Load <stem1>.png / <stem2>.png, falling back to .jpg when either is missing."""
    for ext in IMAGE_EXTENSIONS:
        img1 = cv2.imread(stem1 + ext)
        img2 = cv2.imread(stem2 + ext)
        if img1 is not None and img2 is not None:
            return img1, img2
    raise FileNotFoundError(f"Failed to read images: {stem1}{{{','.join(IMAGE_EXTENSIONS)}}} / {stem2}")


def load_scene(root: str, family: str, name: str) -> SceneData:
    if family not in LAYOUTS:
        raise ValueError(f"Unknown model family: {family!r} (expected one of {FAMILIES})")
    layout = LAYOUTS[family]
    base = os.path.join(root, layout.subdir, name)

    img1, img2 = load_image_pair(base + layout.image_suffixes[0], base + layout.image_suffixes[1])

    labels = None
    if layout.annotated:
        points, labels = read_annotated_points(base + "_pts.txt")
    else:
        points = read_points(base + "_pts.txt")

    K1 = K2 = None
    if layout.calibrated:
        K1 = read_intrinsics(base + layout.image_suffixes[0] + ".K")
        K2 = read_intrinsics(base + layout.image_suffixes[1] + ".K")

    return SceneData(name=name, family=family, points=points, labels=labels, K1=K1, K2=K2, img1=img1, img2=img2)
