# snapcast/api/endpoints/auth.py

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from snapcast.api.dependencies import get_current_user
from snapcast.models.auth import SessionUser, User, UserResponse
from snapcast.shared.db.database import get_db_session

router = APIRouter()


@router.get("/me", response_model=UserResponse, summary="Who the session belongs to")
def read_current_user(
    db: Session = Depends(get_db_session),
    current_user: SessionUser = Depends(get_current_user),
):
    user = db.get(User, current_user.user_id)
    if user is None:
        # No users row until the first upload; answer from the token
        return UserResponse(id=current_user.user_id, email=current_user.email)
    return UserResponse.model_validate(user)
