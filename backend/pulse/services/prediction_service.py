"""
Prediction Service
==================
Orchestrates the readiness feedback loop for each user:

    evening   create_prediction()          predict tomorrow, store it
    morning   record_readiness()           score today, store it, and
                                           resolve the prediction made
                                           for today
              resolve -> training example  stored in training_examples
              retrain()                    refit the user's model on all
                                           stored examples, persist it

Tables used: ``predictions``, ``readiness_scores``, ``training_examples``,
``personalized_models``.

Each user gets one in-process PersonalizedReadinessModel, restored from
``personalized_models`` on first use. Database errors are not caught
here; the routers decide how to surface them.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, Optional

from pulse.config import get_settings
from pulse.db.supabase import get_supabase_client
from pulse.ml.personalized_model import PersonalizedReadinessModel
from pulse.ml.training_example import TrainingExample
from pulse.models.metrics import MetricsSnapshot
from pulse.models.prediction import Prediction, PredictionAccuracyStats
from pulse.models.readiness import ReadinessScore
from pulse.services.accuracy import compute_accuracy_stats
from pulse.services.prediction_engine import PredictionEngine

logger = logging.getLogger(__name__)


class PredictionService:
    """Creates, resolves and learns from readiness predictions."""

    def __init__(self) -> None:
        self._db = get_supabase_client()
        self._settings = get_settings()
        self._engines: dict[str, PredictionEngine] = {}

    # ------------------------------------------------------------------
    # Model management
    # ------------------------------------------------------------------

    def engine_for(self, user_id: str) -> PredictionEngine:
        """Return the user's engine, restoring their saved model once."""
        engine = self._engines.get(user_id)
        if engine is not None:
            return engine

        model = PersonalizedReadinessModel()
        result = (
            self._db.table("personalized_models")
            .select("*")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        if result.data:
            model.load_row(result.data[0])
            logger.debug(
                "Restored model for user %s (%d examples)",
                user_id, model.training_example_count,
            )

        engine = PredictionEngine(model=model, use_model=self._settings.enable_personalized_model)
        self._engines[user_id] = engine
        return engine

    async def retrain(self, user_id: str) -> bool:
        """Refit the user's model on every stored training example."""
        result = (
            self._db.table("training_examples")
            .select("*")
            .eq("user_id", user_id)
            .order("date")
            .execute()
        )
        examples = [TrainingExample.from_row(row) for row in result.data or []]

        model = self.engine_for(user_id).model
        if not model.train(examples):
            logger.debug("Model for user %s not retrained (%d examples)", user_id, len(examples))
            return False

        self._db.table("personalized_models").upsert(
            model.to_row(user_id), on_conflict="user_id"
        ).execute()
        logger.info("Retrained model for user %s on %d examples", user_id, len(examples))
        return True

    # ------------------------------------------------------------------
    # Prediction creation / retrieval
    # ------------------------------------------------------------------

    async def create_prediction(
        self,
        user_id: str,
        metrics: MetricsSnapshot | None,
        energy_level: Optional[int],
    ) -> Prediction:
        """Predict tomorrow, or return the prediction already made for it."""
        prediction = self.engine_for(user_id).predict(metrics, energy_level)

        existing = await self.get_prediction_for(user_id, prediction.target_date)
        if existing is not None:
            logger.debug("Prediction for %s already exists for user %s", prediction.target_date, user_id)
            return existing

        self._db.table("predictions").insert(prediction.to_row(user_id)).execute()
        logger.info(
            "Stored %s prediction %d for user %s on %s",
            prediction.source.value, prediction.predicted_score, user_id, prediction.target_date,
        )
        return prediction

    async def get_prediction_for(self, user_id: str, target_date: date) -> Prediction | None:
        result = (
            self._db.table("predictions")
            .select("*")
            .eq("user_id", user_id)
            .eq("target_date", target_date.isoformat())
            .limit(1)
            .execute()
        )
        if not result.data:
            return None
        return Prediction(**result.data[0])

    async def get_todays_prediction(self, user_id: str) -> Prediction | None:
        return await self.get_prediction_for(user_id, datetime.now(timezone.utc).date())

    async def get_recent_predictions(self, user_id: str, days: int | None = None) -> list[Prediction]:
        days = days or self._settings.recent_predictions_days
        start = datetime.now(timezone.utc).date() - timedelta(days=days)
        result = (
            self._db.table("predictions")
            .select("*")
            .eq("user_id", user_id)
            .gte("target_date", start.isoformat())
            .order("target_date", desc=True)
            .execute()
        )
        return [Prediction(**row) for row in result.data or []]

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    async def _resolve(self, user_id: str, prediction: Prediction, actual_score: int) -> Prediction:
        resolved, example = self.engine_for(user_id).resolve(prediction, actual_score)

        self._db.table("predictions").update({
            "actual_score": resolved.actual_score,
            "actual_score_recorded_at": resolved.actual_score_recorded_at.isoformat(),
        }).eq("id", resolved.id).execute()

        if example is not None:
            self._db.table("training_examples").insert(example.to_row(user_id)).execute()
        else:
            logger.debug("Prediction %s had no input metrics; no training example", prediction.id)

        return resolved

    async def resolve_todays_prediction(self, user_id: str, actual_score: int) -> Prediction | None:
        """Resolve today's prediction if one exists and is still open."""
        prediction = await self.get_todays_prediction(user_id)
        if prediction is None or prediction.is_resolved:
            return None

        resolved = await self._resolve(user_id, prediction, actual_score)
        await self.retrain(user_id)
        return resolved

    async def resolve_unresolved_predictions(
        self,
        user_id: str,
        scores: Iterable[ReadinessScore],
    ) -> list[Prediction]:
        """Resolve every open prediction whose target day has a score."""
        scores_by_date = {s.date: s.score for s in scores}

        result = (
            self._db.table("predictions")
            .select("*")
            .eq("user_id", user_id)
            .is_("actual_score", "null")
            .execute()
        )

        resolved: list[Prediction] = []
        for row in result.data or []:
            prediction = Prediction(**row)
            actual = scores_by_date.get(prediction.target_date)
            if actual is None:
                continue
            resolved.append(await self._resolve(user_id, prediction, actual))

        if resolved:
            logger.info("Resolved %d backlog predictions for user %s", len(resolved), user_id)
            await self.retrain(user_id)
        return resolved

    # ------------------------------------------------------------------
    # Readiness
    # ------------------------------------------------------------------

    async def record_readiness(
        self,
        user_id: str,
        metrics: MetricsSnapshot,
        energy_level: Optional[int],
    ) -> ReadinessScore | None:
        """Score the day (rules blended with the model), store it, and close
        out the prediction made for it.
        """
        engine = self.engine_for(user_id)
        readiness = engine.score_today(metrics, energy_level)
        if readiness is None:
            return None

        row = {"user_id": user_id, **readiness.model_dump(mode="json")}
        self._db.table("readiness_scores").upsert(row, on_conflict="user_id,date").execute()

        await self.resolve_unresolved_predictions(user_id, [readiness])
        return readiness

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    async def get_accuracy_stats(self, user_id: str) -> PredictionAccuracyStats:
        result = (
            self._db.table("predictions")
            .select("*")
            .eq("user_id", user_id)
            .not_.is_("actual_score", "null")
            .execute()
        )
        return compute_accuracy_stats(Prediction(**row) for row in result.data or [])


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_default_service: PredictionService | None = None


def get_prediction_service() -> PredictionService:
    global _default_service
    if _default_service is None:
        _default_service = PredictionService()
    return _default_service
