"""Generic HTTP layer for resource controllers.

``resource_router`` exposes the six CRUD actions of a controller class; the
controller itself is built per request by a FastAPI dependency, so tests can
swap it through ``app.dependency_overrides``.
"""


import logging
from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.datastructures import UploadFile

from apitoolbox.controllers.base import ResourceController
from apitoolbox.controllers.request import ApiRequest, Upload, parse_query
from apitoolbox.core.exceptions import AppException
from apitoolbox.core.response import Result

logger = logging.getLogger(__name__)

_FORM_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")


# ---------------------------------------------------------------------------
# Request / response translation
# ---------------------------------------------------------------------------

async def build_request(request: Request) -> ApiRequest:
    """Translate the HTTP request into the controller's ApiRequest."""
    query = parse_query(request.query_params.multi_items())
    data: dict[str, Any] = dict(query)
    files: dict[str, list[Upload]] = {}

    content_type = request.headers.get("content-type", "").split(";")[0].strip()
    if content_type == "application/json":
        body = await request.body()
        if body:
            try:
                payload = await request.json()
            except ValueError as exc:
                raise AppException("Request body is not valid JSON", status_code=400, code="invalid_json") from exc
            if isinstance(payload, dict):
                data.update(payload)
    elif content_type in _FORM_TYPES:
        form = await request.form()
        pairs = []
        for key, value in form.multi_items():
            if isinstance(value, UploadFile):
                field = key[:-2] if key.endswith("[]") else key
                files.setdefault(field, []).append(
                    Upload(
                        filename=value.filename or "",
                        content_type=value.content_type or "application/octet-stream",
                        content=await value.read(),
                    )
                )
            else:
                pairs.append((key, value))
        data.update(parse_query(pairs))

    return ApiRequest(query=query, data=data, files=files, headers=dict(request.headers))


def render(result: Result) -> JSONResponse:
    return JSONResponse(status_code=result.status_code, content=result.to_json())


# ---------------------------------------------------------------------------
# Router factory
# ---------------------------------------------------------------------------

def resource_router(
    controller: Callable[..., ResourceController],
    *,
    prefix: str,
    tags: list[str] | None = None,
) -> APIRouter:
    """Build an APIRouter mapping HTTP routes onto *controller* actions.

    :param controller: FastAPI dependency returning a controller for the request
    """
    router = APIRouter(prefix=prefix, tags=tags or [])

    @router.get("")
    async def index(ctl: ResourceController = Depends(controller)):
        """Paginated list: `{ data: [...], meta: {...} }`."""
        result = await ctl.index()
        if result.success:
            return JSONResponse(content=jsonable_encoder(result.data))
        return render(result)

    @router.get("/list")
    async def list_all(ctl: ResourceController = Depends(controller)):
        return render(await ctl.list())

    @router.get("/{identifier}")
    async def show(identifier: str, ctl: ResourceController = Depends(controller)):
        return render(await ctl.show(identifier))

    @router.post("")
    async def store(ctl: ResourceController = Depends(controller)):
        return render(await ctl.store())

    @router.api_route("/{identifier}", methods=["PUT", "PATCH", "POST"])
    async def update(identifier: str, ctl: ResourceController = Depends(controller)):
        return render(await ctl.update(identifier))

    @router.delete("/{identifier}")
    async def destroy(identifier: str, ctl: ResourceController = Depends(controller)):
        return render(await ctl.destroy(identifier))

    return router
