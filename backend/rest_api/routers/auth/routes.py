"""
Authentication router.
Handles staff login and the current-user lookup.
"""

from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from rest_api.models import User, UserBranchRole
from shared.config.logging import auth_logger as logger, mask_email
from shared.config.settings import settings
from shared.infrastructure.db import get_db
from shared.security.auth import current_user_context, sign_jwt
from shared.security.password import verify_password
from shared.security.rate_limit import limiter
from shared.utils.schemas import LoginRequest, LoginResponse, UserInfo


router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/login", response_model=LoginResponse)
@limiter.limit(settings.login_rate_limit)
def login(request: Request, body: LoginRequest, db: Session = Depends(get_db)) -> LoginResponse:
    """
    Authenticate a staff member and return an access token.

    The token contains:
    - sub: user ID
    - branch_ids: branches the user works in
    - roles: roles the user holds in any of them
    - email: user's email

    Rate limited per client IP.
    """
    user = db.scalar(
        select(User).where(User.email == body.email, User.is_active.is_(True))
    )
    if not user or not verify_password(body.password, user.password):
        logger.warning(
            "LOGIN_FAILED: Invalid credentials",
            email=mask_email(body.email),
            user_id=user.id if user else None,
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email o contraseña inválidos",
        )

    branch_roles = db.execute(
        select(UserBranchRole).where(UserBranchRole.user_id == user.id)
    ).scalars().all()
    branch_ids = sorted({r.branch_id for r in branch_roles})
    roles = sorted({r.role for r in branch_roles})

    if not branch_ids:
        logger.warning("LOGIN_FAILED: No branch assignments", email=mask_email(body.email), user_id=user.id)
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="El usuario no tiene sucursales asignadas",
        )

    access_token = sign_jwt({
        "sub": str(user.id),
        "branch_ids": branch_ids,
        "roles": roles,
        "email": user.email,
    })

    logger.info("LOGIN_SUCCESS", email=mask_email(user.email), user_id=user.id, roles=roles, branch_count=len(branch_ids))

    return LoginResponse(
        access_token=access_token,
        token_type="Bearer",
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=UserInfo(
            id=user.id,
            email=user.email,
            branch_ids=branch_ids,
            roles=roles,
        ),
    )


@router.get("/me", response_model=UserInfo)
def get_current_user(ctx: dict[str, Any] = Depends(current_user_context)) -> UserInfo:
    """Get current authenticated user info."""
    return UserInfo(
        id=int(ctx["sub"]),
        email=ctx.get("email", ""),
        branch_ids=ctx["branch_ids"],
        roles=ctx["roles"],
    )
