"""Challenge endpoints: catalogue, participation and progress."""

from fastapi import APIRouter, Response, status

from nutri_social.api.v1.dependencies import (
    CurrentUserDep,
    InteractionServiceDep,
    ListingServiceDep,
)
from nutri_social.schemas.challenge import (
    ChallengeCreate,
    ChallengeResponse,
    ChallengeUpdate,
    ParticipantResponse,
    ProgressUpdate,
)

router = APIRouter(prefix="/challenges", tags=["challenges"])


@router.get("", response_model=list[ChallengeResponse])
async def list_challenges(
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
) -> list[ChallengeResponse]:
    return listings.list_challenges()


@router.get("/active", response_model=list[ChallengeResponse])
async def list_active_challenges(
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
) -> list[ChallengeResponse]:
    """Challenges running right now, soonest ending first."""
    return listings.list_active_challenges()


@router.post("", response_model=ChallengeResponse, status_code=status.HTTP_201_CREATED)
def create_challenge(
    challenge_data: ChallengeCreate,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
) -> ChallengeResponse:
    challenge = interactions.create_challenge(challenge_data)
    return ChallengeResponse.model_validate(challenge)


@router.get("/{challenge_id}", response_model=ChallengeResponse)
async def get_challenge(
    challenge_id: int,
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
) -> ChallengeResponse:
    return listings.get_challenge(challenge_id)


@router.patch("/{challenge_id}", response_model=ChallengeResponse)
def update_challenge(
    challenge_id: int,
    challenge_data: ChallengeUpdate,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
) -> ChallengeResponse:
    challenge = interactions.update_challenge(challenge_id, challenge_data)
    return ChallengeResponse.model_validate(challenge)


@router.post("/{challenge_id}/join", response_model=ParticipantResponse)
def join_challenge(
    challenge_id: int,
    response: Response,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
) -> ParticipantResponse:
    """Join a challenge.

    Answers 201 when the user was enrolled by this call and 200 with the
    existing participation when they had already joined.
    """
    participant, created = interactions.join_challenge(challenge_id, current_user.id)
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return ParticipantResponse.model_validate(participant)


@router.get("/{challenge_id}/participants", response_model=list[ParticipantResponse])
async def list_participants(
    challenge_id: int,
    current_user: CurrentUserDep,
    listings: ListingServiceDep,
) -> list[ParticipantResponse]:
    return listings.list_challenge_participants(challenge_id)


@router.put("/{challenge_id}/progress", response_model=ParticipantResponse)
def update_progress(
    challenge_id: int,
    progress_data: ProgressUpdate,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
) -> ParticipantResponse:
    """Record absolute progress; reaching the goal completes the challenge."""
    participant = interactions.update_progress(
        challenge_id, current_user.id, progress_data.progress
    )
    return ParticipantResponse.model_validate(participant)


@router.post("/{challenge_id}/complete", response_model=ParticipantResponse)
def complete_challenge(
    challenge_id: int,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
) -> ParticipantResponse:
    participant = interactions.complete_challenge(challenge_id, current_user.id)
    return ParticipantResponse.model_validate(participant)
