"""
Predictions Router
==================
POST /api/v1/predictions/tomorrow : Predict tomorrow from tonight's check-in.
GET  /api/v1/predictions/today : The prediction made for today, if any.
GET  /api/v1/predictions/recent : Predictions for the last N days.
GET  /api/v1/predictions/accuracy : Accuracy stats over resolved predictions.

Only one prediction exists per target day: repeating the evening check-in
returns the prediction already stored.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Query, status

from pulse.auth import get_authenticated_user, require_health_data_consent
from pulse.models.prediction import Prediction, PredictionAccuracyStats, PredictionRequest
from pulse.services.prediction_service import get_prediction_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/predictions", tags=["predictions"])


def _db_error(message: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"message": message, "code": "db_error"},
    )


@router.post(
    "/tomorrow",
    response_model=Prediction,
    status_code=status.HTTP_201_CREATED,
    summary="Predict tomorrow's readiness",
    responses={
        201: {"description": "Prediction created (or the existing one returned)"},
        401: {"description": "Authentication required"},
        403: {"description": "Health data consent not granted"},
    },
)
async def predict_tomorrow(
    body: PredictionRequest,
    authorization: str = Header(..., description="Bearer token from Supabase Auth"),
) -> Prediction:
    user = get_authenticated_user(authorization)
    require_health_data_consent(user)
    user_id: str = user["id"]

    service = get_prediction_service()
    try:
        return await service.create_prediction(user_id, body.metrics, body.energy_level)
    except Exception as exc:
        logger.exception("Failed to create prediction for user %s", user_id)
        raise _db_error("Failed to save prediction") from exc


@router.get(
    "/today",
    response_model=Optional[Prediction],
    summary="Get the prediction made for today",
)
async def get_today(
    authorization: str = Header(..., description="Bearer token from Supabase Auth"),
) -> Optional[Prediction]:
    user = get_authenticated_user(authorization)
    return await get_prediction_service().get_todays_prediction(user["id"])


@router.get(
    "/recent",
    response_model=list[Prediction],
    summary="List recent predictions, newest first",
)
async def get_recent(
    days: Optional[int] = Query(default=None, ge=1, le=365),
    authorization: str = Header(..., description="Bearer token from Supabase Auth"),
) -> list[Prediction]:
    user = get_authenticated_user(authorization)
    return await get_prediction_service().get_recent_predictions(user["id"], days)


@router.get(
    "/accuracy",
    response_model=PredictionAccuracyStats,
    summary="Prediction accuracy statistics",
)
async def get_accuracy(
    authorization: str = Header(..., description="Bearer token from Supabase Auth"),
) -> PredictionAccuracyStats:
    user = get_authenticated_user(authorization)
    return await get_prediction_service().get_accuracy_stats(user["id"])
