"""Public profile lookups: the batch read used to decorate ranklists."""

from __future__ import annotations

import re

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mentorhub.config import get_settings
from mentorhub.db.models import User

# Auto-generated placeholder names ("user 123") are not shown
_PLACEHOLDER_NAME = re.compile(r"^user\s*\d+$", re.IGNORECASE)


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


def public_profile(user: User) -> dict:
    """Public fields of a profile. Never includes moderation state."""
    return {
        "id": user.id,
        "display_name": user.display_name,
        "username": user.username,
        "full_name": user.full_name,
        "institution": user.institution,
        "country": user.country,
        "avatar_url": user.avatar_url,
        "role": user.role,
    }


async def get_public_profiles(db: AsyncSession, ids: list[int]) -> list[dict]:
    """Batch-load public profiles. Side-effect free; unknown ids are skipped.

    Duplicate ids are collapsed and the batch is capped at profile_batch_limit.
    """
    unique = list(dict.fromkeys(i for i in ids if i is not None))
    unique = unique[: get_settings().profile_batch_limit]
    if not unique:
        return []

    result = await db.execute(select(User).where(User.id.in_(unique)))
    users = {u.id: u for u in result.scalars()}
    return [public_profile(users[uid]) for uid in unique if uid in users]


async def get_profiles_map(db: AsyncSession, ids: list[int]) -> dict[int, dict]:
    return {p["id"]: p for p in await get_public_profiles(db, ids)}


def choose_name(profile: dict | None, user_id: int | str) -> str:
    """Best display name: display_name, full_name, username, then an id-based fallback."""
    profile = profile or {}
    display = (profile.get("display_name") or "").strip()
    if display and not _PLACEHOLDER_NAME.match(display):
        return display
    for field in ("full_name", "username"):
        value = (profile.get(field) or "").strip()
        if value:
            return value
    return f"User {str(user_id)[:6]}"
