"""Runtime configuration helpers for pixproxy."""
from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from typing import Optional

DEFAULT_CACHE_FOLDER = "_cache/"


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value


def _get_bool(name: str, default: bool) -> bool:
    value = _get_env(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int(name: str, default: int) -> int:
    value = _get_env(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float(name: str, default: float) -> float:
    value = _get_env(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _default_pool_size() -> int:
    return os.cpu_count() or 1


@dataclass(frozen=True)
class GraphicsMagickConfig:
    binary: str = "gm"
    timeout_seconds: float = 30.0
    memory_limit: str = "256MB"
    map_limit: str = "512MB"
    disk_limit: str = "1GB"
    pool_size: int = field(default_factory=_default_pool_size)
    tmp_dir: str = field(default_factory=tempfile.gettempdir)


def gm_config_from_env() -> GraphicsMagickConfig:
    return GraphicsMagickConfig(
        binary=_get_env("PIXPROXY_GM_BINARY", "gm"),
        timeout_seconds=_get_float("PIXPROXY_GM_TIMEOUT_SECONDS", 30.0),
        memory_limit=_get_env("PIXPROXY_GM_MEMORY_LIMIT", "256MB"),
        map_limit=_get_env("PIXPROXY_GM_MAP_LIMIT", "512MB"),
        disk_limit=_get_env("PIXPROXY_GM_DISK_LIMIT", "1GB"),
        pool_size=max(1, _get_int("PIXPROXY_GM_POOL_SIZE", _default_pool_size())),
        tmp_dir=_get_env("PIXPROXY_TMP_DIR", tempfile.gettempdir()),
    )


def get_s3_bucket() -> Optional[str]:
    return _get_env("PIXPROXY_S3_BUCKET")


def get_aws_region() -> Optional[str]:
    return _get_env("PIXPROXY_AWS_REGION") or _get_env("AWS_DEFAULT_REGION")


def cache_enabled() -> bool:
    return _get_bool("PIXPROXY_CACHE_ENABLED", True)


def get_cache_bucket() -> Optional[str]:
    # optional, defaults to source bucket
    return _get_env("PIXPROXY_CACHE_BUCKET") or get_s3_bucket()


def get_cache_folder() -> str:
    return _get_env("PIXPROXY_CACHE_FOLDER", DEFAULT_CACHE_FOLDER)


def proxy_enabled() -> bool:
    return _get_bool("PIXPROXY_ENABLED", True)


def canvas_enabled() -> bool:
    return _get_bool("PIXPROXY_CANVAS_ENABLED", True)


def admin_enabled() -> bool:
    return _get_bool("PIXPROXY_ADMIN_ENABLED", False)


def get_admin_api_key() -> str:
    return _get_env("PIXPROXY_ADMIN_API_KEY", "") or ""


def get_rules_mode() -> str:
    return (_get_env("PIXPROXY_RULES_MODE", "strict") or "strict").lower()


def _read_rules(env_name: str, file_env_name: str) -> str:
    inline = _get_env(env_name)
    if inline:
        return inline
    path = _get_env(file_env_name)
    if path:
        with open(path, "r", encoding="utf-8") as handle:
            return handle.read()
    return ""


def get_rules_config() -> str:
    return _read_rules("PIXPROXY_RULES", "PIXPROXY_RULES_FILE")


def get_canvas_rules_config() -> str:
    return _read_rules("PIXPROXY_CANVAS_RULES", "PIXPROXY_CANVAS_RULES_FILE")


def get_canvas_max_dimension() -> int:
    return _get_int("PIXPROXY_CANVAS_MAX_DIM", 4096)


def get_http_port() -> int:
    return _get_int("PIXPROXY_HTTP_PORT", 8080)


def get_log_level() -> str:
    return (_get_env("PIXPROXY_LOG_LEVEL", "info") or "info").upper()


def config_snapshot() -> dict:
    """Return a snapshot of relevant env-driven config (secrets omitted)."""
    gm = gm_config_from_env()
    return {
        "s3_bucket": get_s3_bucket(),
        "aws_region": get_aws_region(),
        "cache_enabled": cache_enabled(),
        "cache_bucket": get_cache_bucket(),
        "cache_folder": get_cache_folder(),
        "proxy_enabled": proxy_enabled(),
        "canvas_enabled": canvas_enabled(),
        "admin_enabled": admin_enabled(),
        "rules_mode": get_rules_mode(),
        "canvas_max_dimension": get_canvas_max_dimension(),
        "gm_binary": gm.binary,
        "gm_timeout_seconds": gm.timeout_seconds,
        "gm_pool_size": gm.pool_size,
        "http_port": get_http_port(),
        "log_level": get_log_level(),
    }
