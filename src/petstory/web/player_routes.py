# src/petstory/web/player_routes.py
"""Player-facing story endpoints."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from petstory.engine import traversal
from petstory.models import CompleteEventRequest
from petstory.web.deps import get_current_user_id, get_session

router = APIRouter(prefix="/api/story", tags=["story"])


@router.get("/plots")
async def get_user_plots(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> list[dict[str, Any]]:
    """Active plots with the caller's progress merged in."""
    plots = await traversal.list_plots(session, user_id)
    return [plot.to_wire() for plot in plots]


@router.get("/plots/{plot_id}/chapters")
async def get_plot_chapters(
    plot_id: UUID,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    view = await traversal.list_chapters(session, user_id, plot_id)
    return view.to_wire()


@router.get("/plots/{plot_id}/start")
async def start_plot(
    plot_id: UUID,
    restart: bool = False,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Start, resume or (with ``restart=true``) restart a plot."""
    result = await traversal.start_or_resume(session, user_id, plot_id, restart=restart)
    return result.to_wire()


@router.get("/plots/{plot_id}/current-event")
async def get_current_event(
    plot_id: UUID,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    view = await traversal.get_current_event(session, user_id, plot_id)
    return view.to_wire()


@router.post("/complete-event")
async def complete_event(
    body: CompleteEventRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(get_session),
) -> dict[str, Any]:
    """Complete the caller's current event and advance."""
    result = await traversal.complete_event(
        session, user_id, body.plot_id, body.event_id, body.choice_index
    )
    return result.to_wire()


__all__ = ["router"]
