"""Common dependencies for the read-only API."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, HTTPException, Request, status

from civic_stage.sync.context import AppContext


def get_context(request: Request) -> AppContext:
    """Return the application context created at startup."""
    context: AppContext | None = getattr(request.app.state, "context", None)
    if context is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up",
        )
    return context


def get_available_context(context: Annotated[AppContext, Depends(get_context)]) -> AppContext:
    """Like :func:`get_context`, but refuse requests while maintenance mode is on."""
    if not context.is_site_available():
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Site is under maintenance",
        )
    return context


ContextDep = Annotated[AppContext, Depends(get_context)]
AvailableContextDep = Annotated[AppContext, Depends(get_available_context)]
