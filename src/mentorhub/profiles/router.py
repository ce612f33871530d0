"""Profile batch lookup endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from mentorhub.database import get_session
from mentorhub.profiles.service import get_public_profiles

router = APIRouter(prefix="/api/v1/profiles", tags=["Profiles"])


class ProfilesBulkRequest(BaseModel):
    ids: list[int] = Field(default_factory=list)


class PublicProfileResponse(BaseModel):
    id: int
    display_name: str | None = None
    username: str
    full_name: str | None = None
    institution: str | None = None
    country: str | None = None
    avatar_url: str | None = None
    role: str


class ProfilesBulkResponse(BaseModel):
    profiles: list[PublicProfileResponse]


@router.post("/bulk", response_model=ProfilesBulkResponse)
async def profiles_bulk(
    body: ProfilesBulkRequest,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ProfilesBulkResponse:
    """Public profiles for a batch of user ids (capped)."""
    profiles = await get_public_profiles(db, body.ids)
    return ProfilesBulkResponse(profiles=[PublicProfileResponse(**p) for p in profiles])
