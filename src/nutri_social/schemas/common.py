"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from datetime import datetime
from typing import Annotated

from pydantic import AfterValidator, BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from nutri_social.db.time import as_utc

# SQLite hands back naive datetimes; responses always carry UTC.
UtcDateTime = Annotated[datetime, AfterValidator(as_utc)]


class CamelModel(BaseModel):
    """Base schema exposing camelCase JSON while accepting snake_case input too."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class LikeState(CamelModel):
    """Resulting like state after a toggle or lookup."""

    liked: bool


class FavoriteState(CamelModel):
    """Resulting favorite state after a toggle."""

    favorited: bool


class FollowState(CamelModel):
    """Resulting follow state after a toggle or lookup."""

    following: bool
