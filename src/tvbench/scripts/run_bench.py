from __future__ import annotations

import argparse
import sys
from pathlib import Path

import cv2
import numpy as np

try:
    import yaml
except ImportError as ex:
    raise ImportError("PyYAML is required. Install with: pip install pyyaml") from ex

from tvbench.dataset.scenes import load_scene
from tvbench.modules.draw import draw_matches, show_matches
from tvbench.system.report import SceneReport
from tvbench.system.runner import evaluate_scene
from tvbench.system.state import FAMILIES
from tvbench.system.telemetry import Telemetry

PROBLEM_NAMES = {
    "homography": "Homography",
    "fundamental": "Fundamental matrix",
    "essential": "Essential matrix",
}


class MatchVisualizer:
    """Shows each drawing (blocking) and/or writes it to save_dir."""

    def __init__(self, show: bool, save_dir: Path | None):
        self.show = show
        self.save_dir = save_dir
        self.scene = "scene"
        if save_dir is not None:
            save_dir.mkdir(parents=True, exist_ok=True)

    def __call__(
        self,
        points: np.ndarray,
        labels: np.ndarray,
        img1: np.ndarray,
        img2: np.ndarray,
        title: str,
        method: str = "engine",
    ):
        canvas = draw_matches(points, labels, img1, img2)
        if self.save_dir is not None:
            stem = self.scene if method == "engine" else f"{self.scene}_{method}"
            path = self.save_dir / (stem.replace("/", "_") + ".png")
            cv2.imwrite(str(path), canvas)
            print(f"[OK] wrote: {path}")
        if self.show:
            print("\nClose the window to continue.\n")
            show_matches(canvas, title)


def _scene_list(cfg: dict, datasets: list[str] | None, scenes: list[str] | None) -> list[tuple[str, str, str]]:
    catalog = cfg.get("datasets", {}) or {}
    names = datasets if datasets else list(catalog)
    out = []
    for ds in names:
        if ds not in catalog:
            raise KeyError(f"Unknown dataset '{ds}'. Available: {sorted(catalog)}")
        entry = catalog[ds]
        family = entry["family"]
        if family not in FAMILIES:
            raise ValueError(f"Dataset '{ds}' has unknown family '{family}'")
        for scene in entry.get("scenes", []):
            if scenes and scene not in scenes:
                continue
            out.append((ds, family, scene))
    return out


def main() -> None:
    ap = argparse.ArgumentParser(description="Benchmark robust two-view geometry estimation on annotated scenes.")
    ap.add_argument("--config", type=str, default="configs/default.yaml")
    ap.add_argument("--data_root", type=str, default=None, help="Overrides data_root from the config")
    ap.add_argument("--datasets", type=str, nargs="*", default=None, help="Dataset names from the config catalog")
    ap.add_argument("--scenes", type=str, nargs="*", default=None, help="Restrict to these scene names")
    ap.add_argument("--out_dir", type=str, default="outputs")
    ap.add_argument("--draw", action="store_true", help="Show inlier matches and wait for the window to close")
    ap.add_argument("--save_vis", action="store_true", help="Write inlier match drawings to out_dir/vis")
    ap.add_argument("--no_baseline", action="store_true", help="Skip the OpenCV RANSAC baseline")
    args = ap.parse_args()

    print(f"[INFO] Loading config: {args.config}")
    with open(args.config, "r", encoding="utf-8") as f:
        cfg = yaml.safe_load(f) or {}

    if args.no_baseline:
        cfg.setdefault("baseline", {})["enabled"] = False
    data_root = args.data_root or cfg.get("data_root", "data")

    out_dir = Path(args.out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    print(f"[INFO] Output dir: {out_dir}")

    visualizer = None
    if args.draw or args.save_vis or bool(cfg.get("draw", False)):
        visualizer = MatchVisualizer(
            show=args.draw or bool(cfg.get("draw", False)),
            save_dir=(out_dir / "vis") if args.save_vis else None,
        )

    telemetry = Telemetry()
    jobs = _scene_list(cfg, args.datasets, args.scenes)
    print(f"[INFO] Scenes to evaluate: {len(jobs)}")

    n_ok = 0
    for idx, (dataset, family, name) in enumerate(jobs):
        print("--------------------------------------------------------------")
        print(f"{PROBLEM_NAMES[family]} estimation on scene \"{name}\" from dataset \"{dataset}\".")
        print("--------------------------------------------------------------")

        try:
            scene = load_scene(data_root, family, name)
        except (FileNotFoundError, ValueError) as ex:
            print(f"[ERROR] A problem occured when loading test scene '{name}': {ex}", file=sys.stderr)
            rec = SceneReport(scene=name, family=family, reason="SKIP_LOAD_FAILED").to_record()
            rec["dataset"] = dataset
            telemetry.log_scene(idx, rec)
            continue

        if visualizer is not None:
            visualizer.scene = f"{dataset}_{name}"
        report = evaluate_scene(scene, cfg, telemetry, scene_idx=idx, visualize=visualizer)
        telemetry.scenes[-1]["dataset"] = dataset
        n_ok += int(report.valid)

    metrics_path = out_dir / "metrics.json"
    cfg_path = out_dir / "config_used.yaml"

    telemetry.dump(metrics_path)

    with open(cfg_path, "w", encoding="utf-8") as f:
        yaml.safe_dump(cfg, f, sort_keys=False)

    print(f"[INFO] Scenes with a model: {n_ok} / {len(jobs)}")
    for reason, count in sorted(telemetry.reasons().items()):
        print(f"[INFO]   {reason}: {count}")
    print(f"[OK] wrote: {metrics_path}")
    print(f"[OK] wrote: {cfg_path}")


if __name__ == "__main__":
    main()
