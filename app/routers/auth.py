"""
Authentication endpoints – email/password accounts with Bearer JWT tokens.
"""

import logging

from fastapi import APIRouter, HTTPException, Request, status

from app import db
from app.dependencies import CurrentUser, create_jwt, hash_password, verify_password
from app.models import AuthResponse, LoginRequest, RegisterRequest, User, UserRole
from app.rate_limit import AUTH, limiter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    operation_id="register",
    summary="Create an account and receive a token",
)
@limiter.limit(AUTH)
async def register(request: Request, body: RegisterRequest) -> AuthResponse:
    """
    Register a player or turf owner. Admin accounts cannot be self-registered.
    A taken email yields 409.
    """
    user = await db.create_user(
        body.email,
        hash_password(body.password),
        body.name,
        phone=body.phone,
        role=UserRole(body.role),
    )
    return AuthResponse(
        message="User registered successfully",
        user=user,
        token=create_jwt(user),
    )


@router.post(
    "/login",
    response_model=AuthResponse,
    operation_id="login",
    summary="Exchange email and password for a token",
)
@limiter.limit(AUTH)
async def login(request: Request, body: LoginRequest) -> AuthResponse:
    credentials = await db.get_user_credentials(body.email)
    if credentials is None or not verify_password(body.password, credentials[1]):
        logger.info("Failed login for %s", body.email)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password",
        )

    user = credentials[0]
    return AuthResponse(
        message="Login successful",
        user=user,
        token=create_jwt(user),
    )


@router.get(
    "/me",
    response_model=User,
    operation_id="getMe",
    summary="Get current authenticated user info",
)
async def get_me(current_user: CurrentUser) -> User:
    return current_user
