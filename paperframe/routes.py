"""
HTTP routes for the paperframe API.
"""

from __future__ import annotations

import logging
import mimetypes
from typing import Any

from fastapi import APIRouter, Body, Depends, File, Form, Response, UploadFile
from fastapi.responses import PlainTextResponse, RedirectResponse

from paperframe.auth import RequestContext
from paperframe.config import Settings, get_settings
from paperframe.dependencies import (
    get_authorized,
    get_carousel_service,
    get_request_context,
    require_admin,
)
from paperframe.errors import AuthError, NotFoundError, ValidationError
from paperframe.service import CarouselService

logger = logging.getLogger(__name__)

router = APIRouter()


def _content_type_for(filename: str | None) -> str:
    guessed, _ = mimetypes.guess_type(filename or "")
    return guessed or "application/octet-stream"


@router.get("", response_class=PlainTextResponse)
def liveness():
    return "Paperframe backend is running"


@router.get("/auth/login")
def login(
    authorized: bool = Depends(get_authorized),
    settings: Settings = Depends(get_settings),
):
    """
    Unauthenticated calls get a 401 with the Basic challenge so the browser
    prompts; once it resends credentials we bounce back to the frontend.
    """
    if not authorized:
        raise AuthError("Login required")
    return RedirectResponse(settings.login_redirect_url, status_code=302)


@router.get("/auth/check")
def auth_check(authorized: bool = Depends(get_authorized)):
    return Response(status_code=204 if authorized else 400)


@router.get("/auth/logout")
def logout():
    # Sent without a challenge header so the browser forgets its cached credentials.
    return PlainTextResponse("Logged out", status_code=401)


@router.get("/now/{kind}")
def now(
    kind: str,
    context: RequestContext = Depends(get_request_context),
    settings: Settings = Depends(get_settings),
):
    if kind not in ("id", "image"):
        raise ValidationError(f"Unknown type {kind!r}, expected 'id' or 'image'")
    photo = context.state.current_photo()
    if photo is None:
        raise NotFoundError("Carousel is empty")
    if kind == "id":
        return photo.id
    return RedirectResponse(f"{settings.api_prefix}/image/{photo.id}", status_code=302)


@router.post("/now")
def set_now(
    photo_id: Any = Body(None),
    context: RequestContext = Depends(require_admin),
    service: CarouselService = Depends(get_carousel_service),
):
    position = service.set_current(context.state, photo_id)
    return {"current": position}


@router.post("/image", status_code=201)
def upload_image(
    image: UploadFile | None = File(None),
    title: str | None = Form(None),
    context: RequestContext = Depends(require_admin),
    service: CarouselService = Depends(get_carousel_service),
):
    if image is None or not image.filename:
        raise ValidationError("No image supplied")
    data = image.file.read()
    record = service.upload(
        context.state,
        data=data,
        original_name=image.filename,
        title=title,
        content_type=image.content_type or _content_type_for(image.filename),
    )
    return record.as_dict()


@router.get("/image/{photo_id}")
def get_image(
    photo_id: int,
    context: RequestContext = Depends(get_request_context),
    service: CarouselService = Depends(get_carousel_service),
):
    record, data = service.read_image(context.state, photo_id)
    return Response(content=data, media_type=_content_type_for(record.filename))


@router.delete("/image/{photo_id}", status_code=204)
def delete_image(
    photo_id: int,
    context: RequestContext = Depends(require_admin),
    service: CarouselService = Depends(get_carousel_service),
):
    service.delete(context.state, photo_id)
    return Response(status_code=204)


@router.get("/carousel")
def get_carousel(context: RequestContext = Depends(get_request_context)):
    return [record.as_dict() for record in context.state.carousel]


@router.post("/carousel")
def reorder_carousel(
    ordered_ids: Any = Body(None),
    context: RequestContext = Depends(require_admin),
    service: CarouselService = Depends(get_carousel_service),
):
    records = service.reorder(context.state, ordered_ids)
    return [record.as_dict() for record in records]
