"""
Session API Routes
Sign-out tears down the caller's live streams and notification state.
"""

from fastapi import APIRouter, Depends

from app.auth.verify import current_user_id
from app.models.api.session_response import SignOutResponse
from app.session import ApplicationSession, get_app_session

router = APIRouter(prefix="/session", tags=["session"])


@router.post("/sign-out", response_model=SignOutResponse)
async def sign_out(
    user_id: str = Depends(current_user_id),
    session: ApplicationSession = Depends(get_app_session),
):
    result = await session.sign_out(user_id)
    return SignOutResponse(success=True, **result)
