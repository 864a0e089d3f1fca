from __future__ import annotations

import asyncio
import logging
import re
from typing import Optional, Sequence

from pixproxy.common.errors import ProcessingFailedError
from pixproxy.config.runtime_config import GraphicsMagickConfig
from pixproxy.gm_pool.pool import GraphicsMagickPool
from pixproxy.image_processor.commands import Stage, convert_command, transform_stages
from pixproxy.image_processor.runner import run_gm, scratch_files
from pixproxy.transforms.models import TransformSet

logger = logging.getLogger(__name__)

_SAFE_EXTENSION = re.compile(r"^[a-z0-9]{1,10}$")


def safe_extension(extension: str) -> str:
    extension = (extension or "").lower()
    return extension if _SAFE_EXTENSION.match(extension) else ""


class ImageProcessor:
    """Applies a validated TransformSet to source bytes through GraphicsMagick."""

    def __init__(self, pool: GraphicsMagickPool, config: Optional[GraphicsMagickConfig] = None):
        self.pool = pool
        self.config = config or GraphicsMagickConfig(pool_size=pool.size)

    async def process(self, data: bytes, extension: str, t: TransformSet) -> bytes:
        # fit errors surface here, before a permit is taken
        operations = transform_stages(t)
        ext = safe_extension(extension)
        return await self.pool.run(
            lambda: asyncio.to_thread(self._process_unsafe, data, ext, operations)
        )

    def _process_unsafe(self, data: bytes, extension: str, operations: Sequence[Stage]) -> bytes:
        with scratch_files(self.config.tmp_dir, extension, "input", "output") as (input_file, output_file):
            logger.debug("Input file: %s, Output file: %s", input_file, output_file)
            input_file.write_bytes(data)
            command = convert_command(self.config, str(input_file), str(output_file), operations)
            run_gm(command, self.config.timeout_seconds)
            if not output_file.exists():
                raise ProcessingFailedError("GraphicsMagick produced no output file")
            return output_file.read_bytes()
