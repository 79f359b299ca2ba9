"""Spot hold endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..core import room
from ..core.auth import get_user_id
from ..db.session import get_session
from ..models.commitment import Commitment
from ..schemas import reservations as schemas
from ..services import locks as locks_service

slots_router = APIRouter()
router = APIRouter()


def _commitment_out(commitment: Commitment) -> schemas.CommitmentOut:
    out = schemas.CommitmentOut.model_validate(commitment)
    out.time_left = room.format_time_remaining(commitment.locked_until)
    return out


@slots_router.post("/{slot_id}/lock", response_model=schemas.CommitmentOut, status_code=status.HTTP_201_CREATED)
async def lock_slot(
    slot_id: str,
    payload: schemas.LockRequest | None = None,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
) -> schemas.CommitmentOut:
    """Hold a spot for the caller."""

    commitment = await locks_service.acquire_lock(
        session,
        slot_id=slot_id,
        user_id=user_id,
        checklist_answers=payload.checklist_answers if payload else None,
    )
    return _commitment_out(commitment)


@router.get("/active", response_model=schemas.CommitmentOut | None)
async def active_commitment(
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
) -> schemas.CommitmentOut | None:
    commitment = await locks_service.get_active_commitment(session, user_id=user_id)
    return _commitment_out(commitment) if commitment is not None else None


@router.post("/{commitment_id}/cancel", status_code=status.HTTP_204_NO_CONTENT)
async def cancel_commitment(
    commitment_id: str,
    user_id: str = Depends(get_user_id),
    session: AsyncSession = Depends(get_session),
) -> Response:
    """Release the caller's hold."""

    await locks_service.cancel_lock(session, commitment_id=commitment_id, user_id=user_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
