"""Run folders: one timestamped directory per baseplate generation run.

Layout::

    <runs_root>/<run_id>/input/config.json
    <runs_root>/<run_id>/artifacts/...
    <runs_root>/<run_id>/{manifest.json, metrics.json, summary.md}
    <runs_root>/latest -> <run_id>
"""

from __future__ import annotations

import json
import os
import re
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Union

PathLike = Union[str, Path]


@dataclass
class RunPaths:
    run_id: str
    run_dir: Path

    @property
    def input_dir(self) -> Path:
        return self.run_dir / "input"

    @property
    def artifacts_dir(self) -> Path:
        return self.run_dir / "artifacts"

    @property
    def manifest_path(self) -> Path:
        return self.run_dir / "manifest.json"

    @property
    def metrics_path(self) -> Path:
        return self.run_dir / "metrics.json"

    @property
    def summary_path(self) -> Path:
        return self.run_dir / "summary.md"


def slugify(value: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", value.strip().lower()).strip("-")
    return slug or "run"


def create_run_id(design_name: str) -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S")
    return f"{stamp}_{slugify(design_name)}"


def prepare_run_dir(runs_root: PathLike, design_name: str) -> RunPaths:
    """Create a fresh run folder with empty input/ and artifacts/ dirs.

    Runs started within the same second get a _2, _3 ... suffix.
    """
    root = Path(runs_root)
    root.mkdir(parents=True, exist_ok=True)

    base_id = create_run_id(design_name)
    run_id, n = base_id, 1
    while (root / run_id).exists():
        n += 1
        run_id = f"{base_id}_{n}"

    paths = RunPaths(run_id=run_id, run_dir=root / run_id)
    for directory in (paths.input_dir, paths.artifacts_dir):
        directory.mkdir(parents=True)
    return paths


def write_json(path: Path, payload: Dict[str, Any]) -> None:
    """Pretty-printed JSON; Paths and other odd values are written as strings."""
    write_text(path, json.dumps(payload, indent=2, default=str) + "\n")


def write_text(path: Path, content: str) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def update_latest_pointer(runs_root: PathLike, run_dir: Path) -> None:
    """Point <runs_root>/latest at *run_dir*."""
    root = Path(runs_root)
    latest = root / "latest"

    if latest.is_symlink() or latest.is_file():
        latest.unlink()
    elif latest.is_dir():
        shutil.rmtree(latest)

    try:
        latest.symlink_to(os.path.relpath(run_dir, root))
    except OSError:
        # No symlink support: leave a marker file instead.
        latest.mkdir()
        write_text(latest / "latest_run.txt", Path(run_dir).name)
