"""Liveness route and GraphicsMagick availability check."""
import logging
import shutil
import subprocess
from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel

from pixproxy import __version__

logger = logging.getLogger(__name__)
MAX_TOOL_PROBE_TIMEOUT = 3

router = APIRouter(tags=["system"])


@dataclass
class ToolInfo:
    available: bool
    version: Optional[str] = None
    error: Optional[str] = None


class HealthStatus(BaseModel):
    status: str
    version: str = __version__


def check_graphicsmagick(binary: str = "gm") -> ToolInfo:
    """Checks that the GraphicsMagick binary is on PATH and answers ``version``."""
    located = shutil.which(binary)
    if not located:
        return ToolInfo(False, None, f"{binary} not found in PATH")

    try:
        res = subprocess.run(
            [binary, "version"],
            capture_output=True,
            text=True,
            timeout=MAX_TOOL_PROBE_TIMEOUT,
        )
        version_line = next(
            (line.strip() for line in (res.stdout or "").splitlines() if line.strip()),
            None,
        )
        error_msg = None
        if res.returncode != 0:
            error_msg = f"{binary} version check exited {res.returncode}"
        return ToolInfo(True, version_line, error_msg)
    except subprocess.TimeoutExpired as exc:
        return ToolInfo(True, None, f"{binary} version check timed out after {exc.timeout}s")
    except OSError as exc:
        logger.debug("Tool check failed for %s: %s", binary, exc)
        return ToolInfo(False, None, str(exc))


@router.get("/health", response_model=HealthStatus)
def health_check():
    return HealthStatus(status="UP")
