"""Voting routes — feature proposals users can back with paid pledges."""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from lander.constants import VOTINGS_PER_PAGE
from lander.db.session import get_db
from lander.models.user import User
from lander.models.voting import Voting
from lander.schemas.voting import VotingCreate, VotingOut, VotingUpdate
from lander.services import voting_service
from lander.services.auth_service import get_current_user

router = APIRouter(prefix="/api/voting", tags=["voting"])


async def _get_or_404(db: AsyncSession, voting_id: int) -> Voting:
    voting = await voting_service.get_voting(db, voting_id)
    if not voting:
        raise HTTPException(status_code=404, detail="Voting not found")
    return voting


def _check_owner(voting: Voting, user: User) -> None:
    if voting.creator_id != user.id and not user.is_admin:
        raise HTTPException(status_code=403, detail="Access denied")


@router.post("", status_code=201)
async def create_voting(
    body: VotingCreate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    voting = await voting_service.create_voting(db, user.id, body)
    return {"success": True, "voting": VotingOut.model_validate(voting)}


@router.get("")
async def list_votings(
    page: int = Query(1, ge=1),
    limit: int = Query(VOTINGS_PER_PAGE, ge=1, le=100),
    user_id: int | None = Query(None, alias="userId"),
    db: AsyncSession = Depends(get_db),
):
    lists = await voting_service.list_votings(db, page, limit, user_id)
    return {"success": True, **lists}


@router.get("/{voting_id}")
async def get_voting(voting_id: int, db: AsyncSession = Depends(get_db)):
    voting = await _get_or_404(db, voting_id)
    return {"success": True, "voting": VotingOut.model_validate(voting)}


@router.patch("/{voting_id}")
async def update_voting(
    voting_id: int,
    body: VotingUpdate,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    voting = await _get_or_404(db, voting_id)
    _check_owner(voting, user)
    voting = await voting_service.update_voting(db, voting, body)
    return {"success": True, "voting": VotingOut.model_validate(voting)}


@router.delete("/{voting_id}")
async def delete_voting(
    voting_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    voting = await _get_or_404(db, voting_id)
    _check_owner(voting, user)
    await voting_service.delete_voting(db, voting)
    return {"success": True, "message": "Voting deleted"}
