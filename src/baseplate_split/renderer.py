"""
OpenSCAD subprocess renderer.

Writes the model source to a temporary .scad file, runs
``openscad -o <output> <input>`` and reports the artifact path. The
temporary source is always removed; a partial artifact is removed when the
render fails.
"""
import logging
import os
import shutil
import subprocess
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from baseplate_split.errors import GenerationFailed

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 120.0
OPENSCAD_PATH_ENV = "OPENSCAD_PATH"


@dataclass
class RenderResult:
    """Outcome of a successful OpenSCAD render."""
    artifact_path: Path
    elapsed_s: float
    stdout: str = ""
    stderr: str = ""


class OpenSCADRenderer:
    """Renders OpenSCAD source to STL (or any format OpenSCAD infers).

    Args:
        executable: Path or name of the openscad binary. Falls back to the
            OPENSCAD_PATH environment variable, then "openscad" on PATH.
        timeout_s: Seconds before the process is killed.
        work_dir: Directory for temporary .scad files (system temp if None).
    """

    def __init__(
        self,
        executable: Optional[str] = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        work_dir: Optional[Union[str, Path]] = None,
    ):
        self.executable = executable or os.environ.get(OPENSCAD_PATH_ENV) or "openscad"
        self.timeout_s = timeout_s
        self.work_dir = Path(work_dir) if work_dir is not None else None

    def is_available(self) -> bool:
        return shutil.which(self.executable) is not None

    def render(self, scad_code: str, output_path: Union[str, Path]) -> RenderResult:
        """Render *scad_code* to *output_path*.

        Raises:
            GenerationFailed: the executable is missing or cannot be run, exits non-zero,
                produces no output, or exceeds the timeout.
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        if self.work_dir is not None:
            self.work_dir.mkdir(parents=True, exist_ok=True)

        fd, scad_path = tempfile.mkstemp(
            suffix=".scad",
            prefix=f"{output_path.stem}_",
            dir=str(self.work_dir) if self.work_dir is not None else None,
        )
        with os.fdopen(fd, "w") as f:
            f.write(scad_code)

        cmd = [self.executable, "-o", str(output_path), scad_path]
        logger.info("Rendering %s", output_path.name)
        logger.debug("Command: %s", " ".join(cmd))
        t0 = time.monotonic()
        try:
            try:
                proc = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    timeout=self.timeout_s,
                )
            except FileNotFoundError as exc:
                raise GenerationFailed(
                    f"OpenSCAD executable not found: {self.executable}"
                ) from exc
            except OSError as exc:
                raise GenerationFailed(
                    f"OpenSCAD could not be started: {self.executable} ({exc})"
                ) from exc
            except subprocess.TimeoutExpired as exc:
                raise GenerationFailed(
                    f"OpenSCAD timed out after {self.timeout_s:g}s rendering "
                    f"{output_path.name}",
                    stderr=_as_text(exc.stderr),
                ) from exc

            if proc.returncode != 0:
                raise GenerationFailed(
                    f"OpenSCAD exited with code {proc.returncode} rendering "
                    f"{output_path.name}",
                    returncode=proc.returncode,
                    stderr=proc.stderr,
                )
            if not output_path.exists():
                raise GenerationFailed(
                    f"OpenSCAD produced no output for {output_path.name}",
                    returncode=proc.returncode,
                    stderr=proc.stderr,
                )
        except GenerationFailed:
            _unlink(output_path)
            raise
        finally:
            _unlink(Path(scad_path))

        elapsed = time.monotonic() - t0
        logger.info("Rendered %s in %.1fs", output_path.name, elapsed)
        return RenderResult(
            artifact_path=output_path,
            elapsed_s=elapsed,
            stdout=proc.stdout,
            stderr=proc.stderr,
        )


def _unlink(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


def _as_text(value) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
