from typing import Optional

from fastapi import APIRouter, Depends, Request, Response

from ..config import settings
from ..models.models import User
from ..schemas.auth import MeResponse, LogoutResponse
from .security import get_optional_user


router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/me", response_model=Optional[MeResponse])
def me(user: Optional[User] = Depends(get_optional_user)):
    if user is None:
        return None
    return MeResponse.model_validate(user)


@router.post("/logout", response_model=LogoutResponse)
def logout(request: Request, response: Response):
    response.delete_cookie(
        settings.session_cookie_name,
        path="/",
        secure=request.url.scheme == "https",
        httponly=True,
        samesite="lax",
    )
    return LogoutResponse(success=True)
