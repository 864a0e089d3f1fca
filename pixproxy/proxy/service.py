"""Request orchestration: parse, police, cache and process one image or canvas."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from pixproxy.cache_key.service import cache_key
from pixproxy.common.files import content_type_for_extension, get_file_extension
from pixproxy.image_processor.canvas import CanvasProcessor
from pixproxy.image_processor.commands import transform_stages
from pixproxy.image_processor.service import ImageProcessor
from pixproxy.policy.models import PolicyRule, ValidationMode
from pixproxy.policy.service import validate, validate_canvas
from pixproxy.stats.counters import Counters
from pixproxy.storage.blob_store import Blob, BlobStore, CacheStore
from pixproxy.transforms.parsing import RawParams, parse, parse_canvas

logger = logging.getLogger(__name__)

PNG = "image/png"


@dataclass
class ProxyService:
    processor: ImageProcessor
    canvas_processor: CanvasProcessor
    source_store: BlobStore
    source_bucket: str
    cache: Optional[CacheStore] = None
    counters: Counters = field(default_factory=Counters)
    rules: Sequence[PolicyRule] = ()
    canvas_rules: Sequence[PolicyRule] = ()
    mode: ValidationMode = ValidationMode.STRICT
    canvas_max_dimension: int = 4096

    async def image(self, path: str, params: RawParams) -> Blob:
        """Return the transformed image for ``path``.

        Malformed or disallowed requests fail before the cache or the source
        store is touched. An identity request returns the source bytes as-is.
        """
        self.counters.record_request()
        transforms = validate(parse(params, path), self.rules, self.mode)
        # an unsatisfiable fit is a client error, reported before any store I/O
        transform_stages(transforms)

        if transforms.is_identity():
            logger.debug("Identity request for %s, serving source", path)
            return await asyncio.to_thread(self.source_store.get, self.source_bucket, path)

        key = cache_key(transforms)
        if self.cache is not None:
            cached = await asyncio.to_thread(self.cache.check, key)
            if cached is not None:
                logger.debug("Cache hit: %s", key)
                self.counters.record_cache_hit()
                return cached

        source = await asyncio.to_thread(self.source_store.get, self.source_bucket, path)
        extension = get_file_extension(path)
        output = await self.processor.process(source.data, extension, transforms)

        if self.cache is not None:
            await asyncio.to_thread(self.cache.write, key, output)
        content_type = source.content_type or content_type_for_extension(extension)
        return Blob(data=output, content_type=content_type)

    async def canvas(self, dimensions: str, params: RawParams) -> Blob:
        self.counters.record_canvas_request()
        canvas = parse_canvas(dimensions, params, self.canvas_max_dimension)
        canvas = validate_canvas(canvas, self.canvas_rules, self.mode)
        data = await self.canvas_processor.create_canvas(canvas)
        return Blob(data=data, content_type=PNG)

    def rule_names(self) -> List[str]:
        return [rule.name for rule in self.rules]
