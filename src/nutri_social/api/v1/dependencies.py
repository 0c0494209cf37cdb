"""Shared API dependencies for authentication and service wiring."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from nutri_social.core.exceptions import AuthenticationRequired
from nutri_social.core.security import decode_access_token
from nutri_social.core.settings import settings
from nutri_social.db.session import get_db
from nutri_social.models import User
from nutri_social.repositories.base import SocialRepository
from nutri_social.repositories.memory import InMemorySocialRepository
from nutri_social.repositories.sql import SqlSocialRepository
from nutri_social.services import InteractionService, ListingService

# HTTP Bearer scheme; a missing header is reported by get_current_user instead
bearer_scheme = HTTPBearer(auto_error=False)

# Type alias for database session dependency
SessionDep = Annotated[Session, Depends(get_db)]


@lru_cache(maxsize=1)
def get_memory_repository() -> InMemorySocialRepository:
    """Return the process-wide in-memory repository."""
    return InMemorySocialRepository()


def get_repository(db: SessionDep) -> SocialRepository:
    """Return the repository selected by ``STORAGE_BACKEND``."""
    if settings.storage_backend == "memory":
        return get_memory_repository()
    return SqlSocialRepository(db)


RepositoryDep = Annotated[SocialRepository, Depends(get_repository)]


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(bearer_scheme)],
    repository: RepositoryDep,
) -> User:
    """Get the current authenticated user from the bearer token.

    Args:
        credentials: HTTP Bearer token credentials, if any were sent
        repository: Repository used to load the user

    Returns:
        User object for the authenticated user

    Raises:
        AuthenticationRequired: If the token is missing or invalid, or the user is gone
    """
    if credentials is None:
        raise AuthenticationRequired()
    user_id = decode_access_token(credentials.credentials)
    if user_id is None:
        raise AuthenticationRequired("Could not validate credentials")
    user = repository.get_user(user_id)
    if user is None:
        raise AuthenticationRequired("User not found")
    return user


def get_interaction_service(repository: RepositoryDep) -> InteractionService:
    return InteractionService(repository)


def get_listing_service(repository: RepositoryDep) -> ListingService:
    return ListingService(repository)


# Type alias for current user dependency
CurrentUserDep = Annotated[User, Depends(get_current_user)]
InteractionServiceDep = Annotated[InteractionService, Depends(get_interaction_service)]
ListingServiceDep = Annotated[ListingService, Depends(get_listing_service)]
