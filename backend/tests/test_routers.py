"""
Tests for the readiness and predictions endpoints
=================================================
Covers:
- POST /api/v1/readiness/today: happy path, no data -> 422, db failure -> 500
- POST /api/v1/predictions/tomorrow: happy path, validation of energy_level
- GET  /api/v1/predictions/today|recent|accuracy response shapes
- Consent: rejects when health_data_consent is False (403)
- Auth: missing header (422), invalid token (401), unknown user (404)

Run: pytest tests/test_routers.py -v
"""

from __future__ import annotations

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Optional
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from pulse.models.metrics import MetricsSnapshot
from pulse.models.prediction import Prediction, PredictionAccuracyStats, PredictionSource
from pulse.models.readiness import ReadinessConfidence
from pulse.services.readiness_calculator import ReadinessCalculator

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

_USER_ID = str(uuid.uuid4())

_USER_WITH_CONSENT = {
    "id": _USER_ID,
    "email": "test@example.com",
    "health_data_consent": True,
}

_USER_NO_CONSENT = {**_USER_WITH_CONSENT, "health_data_consent": False}

AUTH_HEADER = {"Authorization": "Bearer fake-valid-token"}

_TODAY = date(2026, 2, 24)

_METRICS_BODY = {
    "date": _TODAY.isoformat(),
    "hrv": 60,
    "resting_heart_rate": 55,
    "sleep_duration": 8 * 3600,
}

_PREDICTION = Prediction(
    created_at=datetime(2026, 2, 24, 21, 0, tzinfo=timezone.utc),
    target_date=_TODAY + timedelta(days=1),
    predicted_score=72,
    confidence=ReadinessConfidence.FULL,
    source=PredictionSource.BLENDED,
    input_metrics=MetricsSnapshot(**_METRICS_BODY),
    input_energy_level=4,
)


def _mock_auth_db(user_data: Optional[dict]) -> MagicMock:
    mock_db = MagicMock()
    if user_data:
        mock_user = MagicMock()
        mock_user.user = MagicMock()
        mock_user.user.id = user_data["id"]
        mock_db.auth.get_user.return_value = mock_user

        user_select = MagicMock()
        user_select.data = user_data
        mock_db.table.return_value.select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = user_select
    else:
        mock_db.auth.get_user.side_effect = Exception("Invalid token")
    return mock_db


def _mock_service() -> MagicMock:
    svc = MagicMock()
    readiness = ReadinessCalculator().calculate(MetricsSnapshot(**_METRICS_BODY), 4)
    svc.record_readiness = AsyncMock(return_value=readiness)
    svc.create_prediction = AsyncMock(return_value=_PREDICTION)
    svc.get_todays_prediction = AsyncMock(return_value=None)
    svc.get_recent_predictions = AsyncMock(return_value=[_PREDICTION, _PREDICTION.resolved(70)])
    svc.get_accuracy_stats = AsyncMock(return_value=PredictionAccuracyStats(
        total_predictions=1, average_error=2.0, average_accuracy=98.0,
        excellent_count=1, good_count=0, fair_count=0, poor_count=0,
    ))
    return svc


def _client(user_data: Optional[dict], service: MagicMock):
    from pulse.main import app

    patches = [
        patch("pulse.auth.get_supabase_client", return_value=_mock_auth_db(user_data)),
        patch("pulse.routers.readiness.get_prediction_service", return_value=service),
        patch("pulse.routers.predictions.get_prediction_service", return_value=service),
    ]
    return TestClient(app), patches


def _call(method: str, url: str, user_data=_USER_WITH_CONSENT, service=None, **kwargs):
    service = service or _mock_service()
    client, patches = _client(user_data, service)
    for p in patches:
        p.start()
    try:
        return getattr(client, method)(url, **kwargs), service
    finally:
        for p in patches:
            p.stop()


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------

class TestReadinessEndpoint:

    def test_happy_path(self):
        resp, svc = _call(
            "post", "/api/v1/readiness/today",
            json={"metrics": _METRICS_BODY, "energy_level": 4}, headers=AUTH_HEADER,
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["score"] == 82
        assert data["confidence"] == "full"
        assert data["breakdown"]["hrv"] == 70
        svc.record_readiness.assert_awaited_once()
        user_id, metrics, energy = svc.record_readiness.await_args.args
        assert user_id == _USER_ID
        assert metrics.hrv == 60
        assert energy == 4

    def test_no_data_is_422(self):
        svc = _mock_service()
        svc.record_readiness = AsyncMock(return_value=None)
        resp, _ = _call(
            "post", "/api/v1/readiness/today", service=svc,
            json={"metrics": {"date": _TODAY.isoformat()}}, headers=AUTH_HEADER,
        )
        assert resp.status_code == 422
        assert resp.json()["detail"]["code"] == "no_data"

    def test_energy_out_of_range_rejected(self):
        resp, _ = _call(
            "post", "/api/v1/readiness/today",
            json={"metrics": _METRICS_BODY, "energy_level": 6}, headers=AUTH_HEADER,
        )
        assert resp.status_code == 422

    def test_negative_reading_rejected(self):
        resp, svc = _call(
            "post", "/api/v1/readiness/today",
            json={"metrics": {**_METRICS_BODY, "hrv": -5}, "energy_level": 4}, headers=AUTH_HEADER,
        )
        assert resp.status_code == 422
        svc.record_readiness.assert_not_awaited()

    def test_db_failure_is_500(self):
        svc = _mock_service()
        svc.record_readiness = AsyncMock(side_effect=RuntimeError("connection reset"))
        resp, _ = _call(
            "post", "/api/v1/readiness/today", service=svc,
            json={"metrics": _METRICS_BODY, "energy_level": 3}, headers=AUTH_HEADER,
        )
        assert resp.status_code == 500
        assert resp.json()["detail"]["code"] == "db_error"

    def test_requires_consent(self):
        resp, svc = _call(
            "post", "/api/v1/readiness/today", user_data=_USER_NO_CONSENT,
            json={"metrics": _METRICS_BODY, "energy_level": 4}, headers=AUTH_HEADER,
        )
        assert resp.status_code == 403
        assert resp.json()["detail"]["code"] == "consent_required"
        svc.record_readiness.assert_not_awaited()


# ---------------------------------------------------------------------------
# Predictions
# ---------------------------------------------------------------------------

class TestPredictionsEndpoints:

    def test_predict_tomorrow(self):
        resp, svc = _call(
            "post", "/api/v1/predictions/tomorrow",
            json={"metrics": _METRICS_BODY, "energy_level": 4}, headers=AUTH_HEADER,
        )

        assert resp.status_code == 201
        data = resp.json()
        assert data["id"] == _PREDICTION.id
        assert data["predicted_score"] == 72
        assert data["source"] == "blended"
        assert data["actual_score"] is None
        assert data["target_date"] == (_TODAY + timedelta(days=1)).isoformat()

    def test_predict_without_metrics(self):
        resp, svc = _call(
            "post", "/api/v1/predictions/tomorrow",
            json={"energy_level": 2}, headers=AUTH_HEADER,
        )
        assert resp.status_code == 201
        _, metrics, energy = svc.create_prediction.await_args.args
        assert metrics is None
        assert energy == 2

    def test_predict_requires_consent(self):
        resp, _ = _call(
            "post", "/api/v1/predictions/tomorrow", user_data=_USER_NO_CONSENT,
            json={"energy_level": 2}, headers=AUTH_HEADER,
        )
        assert resp.status_code == 403

    def test_today_none(self):
        resp, _ = _call("get", "/api/v1/predictions/today", headers=AUTH_HEADER)
        assert resp.status_code == 200
        assert resp.json() is None

    def test_recent(self):
        resp, svc = _call("get", "/api/v1/predictions/recent?days=7", headers=AUTH_HEADER)
        assert resp.status_code == 200
        data = resp.json()
        assert len(data) == 2
        assert data[1]["actual_score"] == 70
        svc.get_recent_predictions.assert_awaited_once_with(_USER_ID, 7)

    def test_recent_days_validated(self):
        resp, _ = _call("get", "/api/v1/predictions/recent?days=0", headers=AUTH_HEADER)
        assert resp.status_code == 422

    def test_accuracy(self):
        resp, _ = _call("get", "/api/v1/predictions/accuracy", headers=AUTH_HEADER)
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_predictions"] == 1
        assert data["average_accuracy"] == 98.0
        assert data["recent_trend"] is None


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------

class TestAuth:

    def test_missing_header(self):
        resp, _ = _call("get", "/api/v1/predictions/accuracy")
        assert resp.status_code in (401, 422)

    def test_invalid_token(self):
        resp, _ = _call("get", "/api/v1/predictions/accuracy", user_data=None, headers=AUTH_HEADER)
        assert resp.status_code == 401
        assert resp.json()["detail"]["code"] == "auth_invalid"

    def test_malformed_header(self):
        resp, _ = _call("get", "/api/v1/predictions/accuracy", headers={"Authorization": "Token abc"})
        assert resp.status_code == 401
        assert resp.json()["detail"]["code"] == "auth_required"

    def test_unknown_user(self):
        mock_db = _mock_auth_db(_USER_WITH_CONSENT)
        mock_db.table.return_value.select.return_value.eq.return_value.maybe_single.return_value.execute.return_value = MagicMock(data=None)
        with patch("pulse.auth.get_supabase_client", return_value=mock_db):
            from pulse.main import app
            resp = TestClient(app).get("/api/v1/predictions/accuracy", headers=AUTH_HEADER)
        assert resp.status_code == 404

    def test_health_check(self):
        from pulse.main import app
        resp = TestClient(app).get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json()["service"] == "pulse-api"
