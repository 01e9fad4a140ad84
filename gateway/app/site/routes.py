"""
Site Routes
===========

Catch-all router: every GET/HEAD request is handed to the Dispatcher held
on ``app.state``.
"""

from fastapi import APIRouter, HTTPException, Request, status
from starlette.responses import Response

from .dispatcher import Dispatcher

site_router = APIRouter()


def get_dispatcher(request: Request) -> Dispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Gateway not initialized",
        )
    return dispatcher


@site_router.api_route("/{full_path:path}", methods=["GET", "HEAD"], include_in_schema=False)
async def serve_site(request: Request, full_path: str) -> Response:
    return await get_dispatcher(request).dispatch(request)
