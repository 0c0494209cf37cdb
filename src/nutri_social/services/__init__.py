"""Business logic services for the NutriSocial application."""

from .interactions import InteractionService
from .listings import ListingService

__all__ = [
    "InteractionService",
    "ListingService",
]
