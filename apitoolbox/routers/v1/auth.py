"""Session helpers: who is calling, and a fresh anti-forgery token."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from apitoolbox.controllers.base import ResourceController
from apitoolbox.db.base import get_db
from apitoolbox.repositories.user import UserRepository
from apitoolbox.routers.resource import build_request, render

router = APIRouter(prefix="/auth", tags=["Auth"])


async def get_session_controller(
    request: Request,
    session: AsyncSession = Depends(get_db),
) -> ResourceController:
    return ResourceController(await build_request(request), users=UserRepository(session))


@router.get("/check")
async def check(ctl: ResourceController = Depends(get_session_controller)):
    """Authentication state of the caller: `{ success, data: { group: [...] } }`."""
    return render(await ctl.check())


@router.get("/csrf-token")
async def csrf_token(ctl: ResourceController = Depends(get_session_controller)):
    return render(await ctl.csrf_token())
