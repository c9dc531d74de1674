from fastapi import APIRouter, Depends

from ..models import AuthCheck
from ..security import require_user_id

router = APIRouter(tags=["auth"])


@router.get("/test-auth", response_model=AuthCheck, summary="Echo the caller's user id")
async def test_auth(user_id: str = Depends(require_user_id)):
    return AuthCheck(userId=user_id)
