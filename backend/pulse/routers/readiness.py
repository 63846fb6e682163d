"""
Readiness Router
================
POST /api/v1/readiness/today : Score today from the morning check-in.

Scoring also closes the feedback loop: the prediction made last night
for today is resolved against this score, producing a training example
for the user's personalized model.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Header, HTTPException, status

from pulse.auth import get_authenticated_user, require_health_data_consent
from pulse.models.readiness import ReadinessRequest, ReadinessScore
from pulse.services.prediction_service import get_prediction_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/readiness", tags=["readiness"])


@router.post(
    "/today",
    response_model=ReadinessScore,
    status_code=status.HTTP_200_OK,
    summary="Calculate today's readiness score",
    description=(
        "Scores today's readiness from HRV, resting heart rate, sleep and the "
        "self-reported energy level. Missing metrics are skipped and their "
        "weight is redistributed; confidence reflects how many were present."
    ),
    responses={
        200: {"description": "Readiness score calculated"},
        401: {"description": "Authentication required"},
        403: {"description": "Health data consent not granted"},
        422: {"description": "No metrics and no energy level provided"},
    },
)
async def score_today(
    body: ReadinessRequest,
    authorization: str = Header(..., description="Bearer token from Supabase Auth"),
) -> ReadinessScore:
    """Calculate and store today's readiness score."""
    user = get_authenticated_user(authorization)
    require_health_data_consent(user)
    user_id: str = user["id"]

    service = get_prediction_service()
    try:
        readiness = await service.record_readiness(user_id, body.metrics, body.energy_level)
    except Exception as exc:
        logger.exception("Failed to record readiness for user %s", user_id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"message": "Failed to save readiness score", "code": "db_error"},
        ) from exc

    if readiness is None:
        raise HTTPException(
            status_code=422,
            detail={
                "message": "At least one metric or an energy level is required",
                "code": "no_data",
            },
        )

    return readiness
