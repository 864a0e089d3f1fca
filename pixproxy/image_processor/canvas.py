from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional, Sequence, Tuple

from pixproxy.common.errors import ProcessingFailedError
from pixproxy.config.runtime_config import GraphicsMagickConfig
from pixproxy.gm_pool.pool import GraphicsMagickPool
from pixproxy.image_processor.commands import (
    Stage,
    canvas_command,
    canvas_stages,
    compose_mask_command,
    corner_mask_command,
    identify_command,
)
from pixproxy.image_processor.runner import run_gm, scratch_files
from pixproxy.transforms.models import CanvasSet

logger = logging.getLogger(__name__)


class CanvasProcessor:
    """Synthesizes PNG images from a CanvasSet; shares the pool with ImageProcessor."""

    def __init__(self, pool: GraphicsMagickPool, config: Optional[GraphicsMagickConfig] = None):
        self.pool = pool
        self.config = config or GraphicsMagickConfig(pool_size=pool.size)

    async def create_canvas(self, c: CanvasSet) -> bytes:
        stages = canvas_stages(c)
        return await self.pool.run(lambda: asyncio.to_thread(self._create_unsafe, c, stages))

    def _create_unsafe(self, c: CanvasSet, stages: Sequence[Stage]) -> bytes:
        with scratch_files(self.config.tmp_dir, "png", "canvas") as (output_file,):
            run_gm(canvas_command(self.config, str(output_file), stages), self.config.timeout_seconds)
            if c.radius:
                self._round_corners(output_file, c.radius)
            if not output_file.exists():
                raise ProcessingFailedError("GraphicsMagick produced no canvas file")
            return output_file.read_bytes()

    def _measure(self, image: Path) -> Tuple[int, int]:
        # border and rotation change the rendered size
        out = run_gm(identify_command(self.config, str(image)), self.config.timeout_seconds, stage="identify")
        try:
            width, height = (int(v) for v in out.split()[:2])
        except ValueError:
            raise ProcessingFailedError(f"Unexpected identify output: {out!r}", stage="identify") from None
        return width, height

    def _round_corners(self, image: Path, radius: int) -> None:
        width, height = self._measure(image)
        with scratch_files(self.config.tmp_dir, "png", "mask") as (mask_file,):
            run_gm(
                corner_mask_command(self.config, width, height, radius, str(mask_file)),
                self.config.timeout_seconds,
                stage="corner_mask",
            )
            run_gm(
                compose_mask_command(self.config, str(mask_file), str(image)),
                self.config.timeout_seconds,
                stage="compose_mask",
            )
