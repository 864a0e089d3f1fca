"""pixproxy HTTP service: image proxy, canvas generator and admin status."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI

from pixproxy import __version__
from pixproxy.common.error_envelope import install_error_handlers
from pixproxy.common.health import router as health_router
from pixproxy.config import runtime_config
from pixproxy.gm_pool.pool import GraphicsMagickPool
from pixproxy.image_processor.canvas import CanvasProcessor
from pixproxy.image_processor.service import ImageProcessor
from pixproxy.policy.models import ValidationMode
from pixproxy.policy.rules import parse_rules
from pixproxy.proxy.routes import admin_router, canvas_router, image_router, system_router
from pixproxy.proxy.service import ProxyService
from pixproxy.stats.counters import Counters
from pixproxy.storage.blob_store import CacheStore, InMemoryBlobStore, S3BlobStore

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)
    logging.getLogger().setLevel(getattr(logging, level.upper(), logging.INFO))


def build_service_from_env() -> ProxyService:
    gm_config = runtime_config.gm_config_from_env()
    pool = GraphicsMagickPool(gm_config.pool_size)

    bucket = runtime_config.get_s3_bucket()
    if bucket:
        store = S3BlobStore(region=runtime_config.get_aws_region())
    else:
        logger.warning("PIXPROXY_S3_BUCKET is not set; serving from an empty in-memory store")
        store = InMemoryBlobStore()
        bucket = "local"

    cache = None
    if runtime_config.cache_enabled():
        cache = CacheStore(
            store,
            runtime_config.get_cache_bucket() or bucket,
            runtime_config.get_cache_folder(),
        )

    return ProxyService(
        processor=ImageProcessor(pool, gm_config),
        canvas_processor=CanvasProcessor(pool, gm_config),
        source_store=store,
        source_bucket=bucket,
        cache=cache,
        counters=Counters(),
        rules=parse_rules(runtime_config.get_rules_config()),
        canvas_rules=parse_rules(runtime_config.get_canvas_rules_config()),
        mode=ValidationMode.parse(runtime_config.get_rules_mode()),
        canvas_max_dimension=runtime_config.get_canvas_max_dimension(),
    )


def create_app(
    service: Optional[ProxyService] = None,
    *,
    proxy_enabled: Optional[bool] = None,
    canvas_enabled: Optional[bool] = None,
    admin_enabled: Optional[bool] = None,
    admin_api_key: Optional[str] = None,
) -> FastAPI:
    """Build the app. Anything not passed in is read from the environment."""
    if proxy_enabled is None:
        proxy_enabled = runtime_config.proxy_enabled()
    if canvas_enabled is None:
        canvas_enabled = runtime_config.canvas_enabled()
    if admin_enabled is None:
        admin_enabled = runtime_config.admin_enabled()
    if admin_api_key is None:
        admin_api_key = runtime_config.get_admin_api_key()
    if admin_enabled and not admin_api_key:
        raise RuntimeError("PIXPROXY_ADMIN_API_KEY must be set when the admin endpoint is enabled")

    app = FastAPI(title="pixproxy", version=__version__)
    app.state.proxy_service = service or build_service_from_env()
    app.state.admin_api_key = admin_api_key
    install_error_handlers(app)

    app.include_router(health_router)
    app.include_router(system_router)
    if proxy_enabled:
        app.include_router(image_router)
    if canvas_enabled:
        app.include_router(canvas_router)
    if admin_enabled:
        app.include_router(admin_router)
    return app


def main() -> None:
    import uvicorn

    configure_logging(runtime_config.get_log_level())
    logger.info("Starting pixproxy %s with config %s", __version__, runtime_config.config_snapshot())
    uvicorn.run(create_app(), host="0.0.0.0", port=runtime_config.get_http_port())


if __name__ == "__main__":
    main()
