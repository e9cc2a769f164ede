# pyright: reportMissingTypeStubs=false
"""
Authentication API endpoints.

Handles admin email/password login.
"""

import logging
from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from core.database import get_db
from services.admin_auth_service import AdminAuthService
from auth.dependencies import UserContext, require_admin
from api.responses import LoginResponse

logger = logging.getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    email: str
    password: str


@router.post("/login", summary="Admin login")
async def login(request: LoginRequest, db: Session = Depends(get_db)) -> LoginResponse:
    """
    Exchange admin credentials for a bearer access token.

    Wrong credentials are reported as 401 without revealing which part failed.
    """
    user, token = AdminAuthService.login(db, request.email, request.password)
    return LoginResponse(access_token=token, user_id=user.id, email=user.email)


@router.get("/me", summary="Current admin")
async def me(user: UserContext = Depends(require_admin)) -> dict[str, object]:
    return {"user_id": user.user_id, "email": user.email, "role": user.role}
