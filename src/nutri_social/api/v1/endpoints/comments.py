"""Comment endpoints addressed by comment id."""

from fastapi import APIRouter, Response, status

from nutri_social.api.v1.dependencies import CurrentUserDep, InteractionServiceDep
from nutri_social.repositories.base import RelationKind
from nutri_social.schemas.common import LikeState
from nutri_social.schemas.post import CommentResponse, CommentUpdate
from nutri_social.services.listings import to_comment_response

router = APIRouter(prefix="/comments", tags=["comments"])


@router.post("/{comment_id}/like", response_model=LikeState)
def toggle_comment_like(
    comment_id: int,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
) -> LikeState:
    """Like the comment, or remove the like if it is already there."""
    return LikeState(liked=interactions.toggle_comment_like(comment_id, current_user.id))


@router.patch("/{comment_id}", response_model=CommentResponse)
def update_comment(
    comment_id: int,
    comment_data: CommentUpdate,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
) -> CommentResponse:
    comment = interactions.update_comment(comment_id, current_user.id, comment_data.content)
    liked = interactions.repository.relation(RelationKind.COMMENT_LIKE).exists(
        current_user.id, comment.id
    )
    return to_comment_response(comment, liked_by_me=liked)


@router.delete("/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_comment(
    comment_id: int,
    current_user: CurrentUserDep,
    interactions: InteractionServiceDep,
) -> Response:
    """Delete a comment together with its likes."""
    interactions.delete_comment(comment_id, current_user.id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
