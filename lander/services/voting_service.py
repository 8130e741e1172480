"""Voting proposals and paid pledges."""

import logging
from decimal import Decimal

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from lander.models.voting import Vote, Voting
from lander.schemas.voting import VotingCreate, VotingOut, VotingUpdate

logger = logging.getLogger(__name__)


async def create_voting(db: AsyncSession, creator_id: int, data: VotingCreate) -> Voting:
    voting = Voting(creator_id=creator_id, **data.model_dump())
    db.add(voting)
    await db.commit()
    await db.refresh(voting)
    return voting


async def get_voting(db: AsyncSession, voting_id: int) -> Voting | None:
    return await db.get(Voting, voting_id)


async def _page(db: AsyncSession, page: int, limit: int, creator_id: int | None = None) -> dict:
    votes_count = (
        select(func.count(Vote.id)).where(Vote.voting_id == Voting.id).scalar_subquery()
    )
    query = select(Voting, votes_count).order_by(Voting.created_at.desc(), Voting.id.desc())
    count_query = select(func.count(Voting.id))
    if creator_id is not None:
        query = query.where(Voting.creator_id == creator_id)
        count_query = count_query.where(Voting.creator_id == creator_id)

    rows = (await db.execute(query.offset((page - 1) * limit).limit(limit))).all()
    total = (await db.execute(count_query)).scalar_one()

    return {
        "votings": [
            VotingOut.model_validate(voting).model_copy(update={"votes_count": count}).model_dump(mode="json")
            for voting, count in rows
        ],
        "totalPages": -(-total // limit),
        "currentPage": page,
        "totalCount": total,
    }


async def list_votings(db: AsyncSession, page: int, limit: int, user_id: int | None) -> dict:
    """Paginated "my" and "all" lists, newest first."""
    mine = await _page(db, page, limit, creator_id=user_id if user_id is not None else -1)
    everything = await _page(db, page, limit)
    return {"my": mine, "all": everything}


async def update_voting(db: AsyncSession, voting: Voting, data: VotingUpdate) -> Voting:
    for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
        setattr(voting, key, value)
    await db.commit()
    await db.refresh(voting)
    return voting


async def delete_voting(db: AsyncSession, voting: Voting) -> None:
    await db.execute(delete(Vote).where(Vote.voting_id == voting.id))
    await db.delete(voting)
    await db.commit()


async def create_pledge(db: AsyncSession, user_id: int, voting_id: int, amount: Decimal, payment_id: str) -> Vote:
    """Draft vote bound to a gateway payment; counted only once the payment succeeds."""
    vote = Vote(user_id=user_id, voting_id=voting_id, amount=amount, yoo_payment_id=payment_id)
    db.add(vote)
    await db.commit()
    return vote


async def credit_pledge(db: AsyncSession, payment_id: str) -> bool:
    """Add the pledge for ``payment_id`` to its voting total exactly once.

    The ``credited`` flag is flipped with a conditional update; only the
    request that flips it increments the aggregate, so webhook redelivery
    cannot double-count.
    """
    vote = (await db.execute(select(Vote).where(Vote.yoo_payment_id == payment_id))).scalar_one_or_none()
    if not vote:
        logger.info("No pledge bound to payment %s", payment_id)
        return False

    flipped = await db.execute(
        update(Vote)
        .where(Vote.id == vote.id, Vote.credited.is_(False))
        .values(credited=True)
        .execution_options(synchronize_session=False)
    )
    if flipped.rowcount != 1:
        logger.info("Pledge for payment %s already credited", payment_id)
        return False

    await db.execute(
        update(Voting)
        .where(Voting.id == vote.voting_id)
        .values(amount=Voting.amount + vote.amount)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    logger.info("Credited %s to voting %s (payment %s)", vote.amount, vote.voting_id, payment_id)
    return True
