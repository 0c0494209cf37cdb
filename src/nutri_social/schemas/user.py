"""User-related Pydantic schemas."""

from .common import CamelModel


class UserSummary(CamelModel):
    """Sanitized public view of a user; never carries email or credentials."""

    id: int
    username: str
    display_name: str
