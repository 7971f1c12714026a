# src/tvbench/modules/draw.py
from __future__ import annotations

import cv2
import numpy as np
import matplotlib.pyplot as plt


def draw_matches(
    points: np.ndarray,
    labels: np.ndarray,
    img1: np.ndarray,
    img2: np.ndarray,
    *,
    seed: int = 0,
) -> np.ndarray:
    """
    Put the two BGR images side by side and draw every correspondence
    labeled 1 as a line between its endpoints.

    Returns:
        BGR canvas of shape (max(h1,h2), w1+w2, 3).
    """
    h1, w1 = img1.shape[:2]
    h2, w2 = img2.shape[:2]
    canvas = np.zeros((max(h1, h2), w1 + w2, 3), dtype=np.uint8)
    canvas[:h1, :w1] = img1 if img1.ndim == 3 else cv2.cvtColor(img1, cv2.COLOR_GRAY2BGR)
    canvas[:h2, w1:] = img2 if img2.ndim == 3 else cv2.cvtColor(img2, cv2.COLOR_GRAY2BGR)

    rng = np.random.default_rng(seed)
    radius = max(2, int(round(0.003 * canvas.shape[1])))
    for (x1, y1, x2, y2), lab in zip(points, labels):
        if not lab:
            continue
        color = tuple(int(c) for c in rng.integers(0, 256, size=3))
        pt1 = (int(round(x1)), int(round(y1)))
        pt2 = (int(round(x2)) + w1, int(round(y2)))
        cv2.circle(canvas, pt1, radius, color, -1)
        cv2.circle(canvas, pt2, radius, color, -1)
        cv2.line(canvas, pt1, pt2, color, 1, cv2.LINE_AA)
    return canvas


def show_matches(canvas_bgr: np.ndarray, title: str) -> None:
    # blocks until the window is closed
    fig = plt.figure(figsize=(16, 9))
    plt.imshow(cv2.cvtColor(canvas_bgr, cv2.COLOR_BGR2RGB))
    plt.title(title)
    plt.axis("off")
    plt.tight_layout()
    plt.show()
    plt.close(fig)
