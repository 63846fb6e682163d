"""
Request Authentication
======================
Resolves the Bearer token on a request to the Pulse user record and
enforces health-data consent. Shared by every router.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, status

from pulse.db.supabase import get_supabase_client

logger = logging.getLogger(__name__)


def _unauthorized(message: str, code: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail={"message": message, "code": code},
    )


def get_authenticated_user(authorization: str) -> dict:
    """Verify the Supabase JWT and return the matching ``users`` row.

    Raises HTTPException 401 for a missing or bad token and 404 when the
    token is valid but no profile row exists.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise _unauthorized("Missing or invalid authorization header", "auth_required")

    token = authorization.removeprefix("Bearer ").strip()
    if not token:
        raise _unauthorized("Empty bearer token", "auth_required")

    db = get_supabase_client()

    try:
        auth_response = db.auth.get_user(token)
    except Exception as exc:
        logger.warning("Auth token verification failed: %s", exc)
        raise _unauthorized("Invalid or expired token", "auth_invalid") from exc

    if not auth_response or not auth_response.user:
        raise _unauthorized("User not found for token", "auth_invalid")

    result = (
        db.table("users")
        .select("*")
        .eq("id", auth_response.user.id)
        .maybe_single()
        .execute()
    )

    if not result or not result.data:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"message": "User profile not found", "code": "user_not_found"},
        )

    return result.data


def require_health_data_consent(user: dict) -> None:
    """Raise 403 unless the user has agreed to health data processing."""
    if not user.get("health_data_consent"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail={
                "message": (
                    "Health data consent is required for readiness scoring. "
                    "Please grant consent in your settings."
                ),
                "code": "consent_required",
            },
        )
