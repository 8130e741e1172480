"""Voting-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field


class VotingCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    level: int = 0
    status: str = "pending"


class VotingUpdate(BaseModel):
    """Partial update; ``amount`` is an aggregate of pledges and is not editable."""

    title: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    level: int | None = None
    status: str | None = None


class VotingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    creator_id: int
    level: int
    status: str
    amount: Decimal
    created_at: datetime
    votes_count: int = 0
