"""
Authentication and authorization utilities.

Two kinds of bearer credentials exist:
- Staff JWTs (``Authorization: Bearer``), carrying roles and branch ids.
- Table order tokens, encoded in the table QR code and sent back by the
  diner's device as ``X-Table-Token``. They grant order creation on one table
  (and optionally one session) only.
"""

from __future__ import annotations

import time
import uuid
from datetime import datetime, timezone
from typing import Any

import jwt
from fastapi import Header, HTTPException, status

from shared.config.constants import TABLE_ORDER_SCOPE
from shared.config.settings import JWT_SECRET, JWT_ISSUER, JWT_AUDIENCE, settings
from shared.config.logging import get_logger
from shared.utils.exceptions import BranchAccessError, InsufficientRoleError

logger = get_logger(__name__)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


# =============================================================================
# Staff JWT
# =============================================================================


def sign_jwt(payload: dict[str, Any], ttl_seconds: int | None = None) -> str:
    """
    Sign a staff access token.

    Args:
        payload: Claims (sub, email, branch_ids, roles).
        ttl_seconds: Lifetime. Defaults to settings.jwt_access_token_expire_minutes.
    """
    if ttl_seconds is None:
        ttl_seconds = settings.jwt_access_token_expire_minutes * 60

    now = int(time.time())
    data = {
        **payload,
        "iss": JWT_ISSUER,
        "aud": JWT_AUDIENCE,
        "iat": now,
        "exp": now + ttl_seconds,
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(data, JWT_SECRET, algorithm="HS256")


def verify_jwt(token: str) -> dict[str, Any]:
    """
    Verify and decode a staff access token.

    Raises:
        HTTPException 401: expired, badly signed, wrong audience or missing claims.
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=["HS256"],
            audience=JWT_AUDIENCE,
            issuer=JWT_ISSUER,
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token expirado")
    except jwt.InvalidTokenError as e:
        logger.warning("JWT validation failed", error=str(e))
        raise _unauthorized("Token inválido")

    try:
        int(payload["sub"])
    except (KeyError, ValueError, TypeError):
        raise _unauthorized("Token inválido: sujeto ausente o mal formado")

    if not isinstance(payload.get("roles", []), list) or not isinstance(payload.get("branch_ids", []), list):
        raise _unauthorized("Token inválido: claims mal formados")

    return payload


def get_bearer_token(authorization: str | None) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header."""
    if not authorization:
        raise _unauthorized("Falta el header Authorization")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise _unauthorized("Formato de Authorization inválido. Se esperaba: Bearer <token>")
    return token.strip()


def current_user_context(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any]:
    """
    FastAPI dependency returning the staff token claims.

    Usage:
        @router.get("/tables")
        def list_tables(ctx: dict = Depends(current_user_context)):
            require_roles(ctx, ["ADMIN", "MANAGER", "WAITER"])
    """
    return verify_jwt(get_bearer_token(authorization))


def optional_user_context(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> dict[str, Any] | None:
    """Like current_user_context, but None when no Authorization header is sent."""
    if not authorization:
        return None
    return verify_jwt(get_bearer_token(authorization))


def user_id_of(ctx: dict[str, Any] | None) -> int | None:
    """Staff user id from token claims."""
    if not ctx or "sub" not in ctx:
        return None
    return int(ctx["sub"])


def require_roles(ctx: dict[str, Any], allowed: list[str]) -> None:
    """Raise 403 unless the user holds one of ``allowed``."""
    if not set(ctx.get("roles", [])).intersection(allowed):
        raise InsufficientRoleError(list(allowed), user_id=ctx.get("sub"))


def require_branch(ctx: dict[str, Any], branch_id: int) -> None:
    """Raise 403 unless ``branch_id`` is one of the user's branches."""
    if branch_id not in set(ctx.get("branch_ids", [])):
        raise BranchAccessError(branch_id, user_id=ctx.get("sub"))


# =============================================================================
# Table order tokens (QR self-ordering)
# =============================================================================


def sign_table_order_token(
    table_id: int,
    branch_id: int,
    session_id: int | None = None,
    ttl_seconds: int | None = None,
) -> tuple[str, datetime]:
    """
    Sign a token allowing orders on one table.

    Returns:
        (token, expires_at)
    """
    if ttl_seconds is None:
        ttl_seconds = settings.table_token_expire_hours * 60 * 60

    now = int(time.time())
    claims: dict[str, Any] = {
        "tableId": table_id,
        "branchId": branch_id,
        "scope": TABLE_ORDER_SCOPE,
        "iss": JWT_ISSUER,
        "aud": settings.table_token_audience,
        "iat": now,
        "exp": now + ttl_seconds,
    }
    if session_id is not None:
        claims["sessionId"] = session_id

    token = jwt.encode(claims, JWT_SECRET, algorithm="HS256")
    return token, datetime.fromtimestamp(now + ttl_seconds, tz=timezone.utc)


def verify_table_order_token(token: str) -> dict[str, int | None]:
    """
    Verify a table order token.

    Returns:
        Dict with table_id, branch_id, session_id (None when unbound).

    Raises:
        HTTPException 401: expired, bad signature, wrong audience or scope.
    """
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET,
            algorithms=["HS256"],
            audience=settings.table_token_audience,
            issuer=JWT_ISSUER,
        )
    except jwt.ExpiredSignatureError:
        raise _unauthorized("Token de mesa expirado")
    except jwt.InvalidTokenError as e:
        logger.warning("Table token validation failed", error=str(e))
        raise _unauthorized("Token de mesa inválido")

    if payload.get("scope") != TABLE_ORDER_SCOPE:
        raise _unauthorized("Token de mesa inválido: scope incorrecto")

    try:
        session_id = payload.get("sessionId")
        return {
            "table_id": int(payload["tableId"]),
            "branch_id": int(payload["branchId"]),
            "session_id": int(session_id) if session_id is not None else None,
        }
    except (KeyError, ValueError, TypeError):
        raise _unauthorized("Token de mesa inválido: claims mal formados")


def optional_table_context(
    x_table_token: str | None = Header(default=None, alias="X-Table-Token"),
) -> dict[str, int | None] | None:
    """Table token claims if the header is present, else None."""
    if not x_table_token:
        return None
    return verify_table_order_token(x_table_token)
