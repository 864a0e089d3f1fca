from __future__ import annotations

import logging
import subprocess
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Sequence, Tuple

from pixproxy.common.errors import ProcessingFailedError, ProcessingTimeoutError

logger = logging.getLogger(__name__)
STDERR_TAIL_LINES = 10


def _tail(output: str) -> str:
    return "\n".join(output.splitlines()[-STDERR_TAIL_LINES:])


def run_gm(args: Sequence[str], timeout: float, *, stage: str = "convert") -> str:
    """Run one GraphicsMagick invocation and return its stdout.

    On timeout the child is killed and ProcessingTimeoutError is raised; a
    non-zero exit raises ProcessingFailedError with the captured output.
    """
    logger.debug("GraphicsMagick cmd: %s", list(args))
    try:
        res = subprocess.run(list(args), capture_output=True, text=True, timeout=timeout)
    except subprocess.TimeoutExpired as exc:
        raise ProcessingTimeoutError(
            f"GraphicsMagick {stage} timed out after {timeout} seconds",
            timeout_seconds=timeout,
        ) from exc
    except OSError as exc:
        raise ProcessingFailedError(f"GraphicsMagick could not be started: {exc}", stage=stage) from exc

    if res.returncode != 0:
        output = "\n".join(part for part in (res.stdout, res.stderr) if part)
        tail = _tail(output)
        logger.error("GraphicsMagick %s failed (code %s): %s", stage, res.returncode, tail)
        raise ProcessingFailedError(
            f"GraphicsMagick failed (code {res.returncode}): {tail}",
            output=output,
            stage=stage,
        )
    return res.stdout or ""


def _remove(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Failed to clean up temp file %s: %s", path, exc)


@contextmanager
def scratch_files(tmp_dir: str, extension: str, *roles: str) -> Iterator[Tuple[Path, ...]]:
    """Yield uniquely named temp paths, one per role; all are deleted on exit."""
    suffix = f".{extension}" if extension else ""
    paths: List[Path] = [Path(tmp_dir) / f"gm_{role}_{uuid.uuid4().hex}{suffix}" for role in roles]
    try:
        yield tuple(paths)
    finally:
        for path in paths:
            _remove(path)
