from __future__ import annotations

import hmac

from fastapi import APIRouter, Depends, Header, Request
from fastapi.responses import PlainTextResponse, Response

from pixproxy import __version__
from pixproxy.common.error_envelope import build_error_envelope
from pixproxy.common.health import check_graphicsmagick
from pixproxy.proxy.service import ProxyService
from pixproxy.transforms.parsing import params_from_query

image_router = APIRouter(tags=["images"])
canvas_router = APIRouter(tags=["canvas"])
system_router = APIRouter(tags=["system"])
admin_router = APIRouter(prefix="/admin", tags=["admin"])

API_KEY_SCHEME = "ApiKey "


def get_proxy_service(request: Request) -> ProxyService:
    return request.app.state.proxy_service


@image_router.get("/img/{path:path}")
async def get_image(request: Request, path: str, service: ProxyService = Depends(get_proxy_service)):
    params = params_from_query(request.query_params.multi_items())
    blob = await service.image(path, params)
    return Response(content=blob.data, media_type=blob.content_type)


@canvas_router.get("/canvas/{dimensions}")
async def get_canvas(request: Request, dimensions: str, service: ProxyService = Depends(get_proxy_service)):
    params = params_from_query(request.query_params.multi_items())
    blob = await service.canvas(dimensions, params)
    return Response(content=blob.data, media_type=blob.content_type)


@system_router.get("/version", response_class=PlainTextResponse)
def get_version():
    return __version__


@admin_router.get("/status")
def admin_status(
    request: Request,
    authorization: str = Header(default=""),
    service: ProxyService = Depends(get_proxy_service),
):
    expected = request.app.state.admin_api_key
    supplied = authorization[len(API_KEY_SCHEME):] if authorization.startswith(API_KEY_SCHEME) else ""
    if not supplied or not hmac.compare_digest(supplied.encode(), expected.encode()):
        envelope = build_error_envelope(
            code="auth.unauthorized",
            message="Missing or invalid ApiKey authorization",
            status_code=401,
        )
        return Response(
            content=envelope.model_dump_json(),
            status_code=401,
            media_type="application/json",
            headers={"WWW-Authenticate": "ApiKey"},
        )

    gm = check_graphicsmagick(service.processor.config.binary)
    return {
        "version": __version__,
        "counters": service.counters.snapshot().model_dump(),
        "pool": service.processor.pool.get_stats().model_dump(),
        "rules": service.rule_names(),
        "mode": service.mode.value,
        "graphicsmagick": {"available": gm.available, "version": gm.version, "error": gm.error},
    }
