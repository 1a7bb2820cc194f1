"""Profile data model."""

from pydantic import BaseModel, NonNegativeInt


class ProfileData(BaseModel):
    """Public account metadata."""

    handle: str
    name: str
    followers_count: NonNegativeInt = 0
    following_count: NonNegativeInt = 0
    avatar_url: str | None = None


class ProfileMedia(BaseModel):
    """Avatar and banner image URLs for one account."""

    handle: str
    avatar_url: str | None = None
    banner_url: str | None = None
