import json
from collections import Counter


class Telemetry:
    """Collects one JSON-serialisable record per evaluated (or skipped) scene."""

    def __init__(self):
        self.scenes = []

    def log_scene(self, idx: int, rec: dict):
        rec["scene_idx"] = idx
        self.scenes.append(rec)

    def reasons(self) -> Counter:
        return Counter(rec.get("reason", "") for rec in self.scenes)

    def dump(self, path):
        with open(path, "w", encoding="utf-8") as f:
            json.dump(self.scenes, f, indent=2)
