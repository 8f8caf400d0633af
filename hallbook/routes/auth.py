"""Admin authentication route."""

import logging

from fastapi import APIRouter, HTTPException, status

from hallbook.core.auth import authenticate_admin, create_access_token
from hallbook.schemas import LoginRequest, TokenResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["auth"])


@router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest):
    if not authenticate_admin(body.email, body.password):
        logger.warning("Failed admin login for %s", body.email)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")

    return TokenResponse(access_token=create_access_token(body.email.lower()))
