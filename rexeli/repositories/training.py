"""Training-pipeline repositories."""

from __future__ import annotations

from typing import Any

from sqlalchemy import case, func, select

from rexeli.domain.training import (
    FineTuningJob,
    TrainingDocument,
    TrainingRun,
    TrainingTrigger,
    VerificationEdit,
)
from rexeli.repositories.base import BaseRepository


class TrainingDocumentRepository(BaseRepository[TrainingDocument]):
    model = TrainingDocument

    async def list_pending(self, document_type: str, *, limit: int) -> list[TrainingDocument]:
        result = await self._session.execute(
            select(TrainingDocument)
            .where(
                TrainingDocument.document_type == document_type,
                TrainingDocument.processing_status == "pending",
            )
            .order_by(TrainingDocument.created_at.asc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_for_training(
        self, document_type: str, *, split: str | None = None,
    ) -> list[TrainingDocument]:
        """Verified documents that are included in training, oldest first."""
        q = select(TrainingDocument).where(
            TrainingDocument.document_type == document_type,
            TrainingDocument.is_verified.is_(True),
            TrainingDocument.include_in_training.is_(True),
        )
        if split is not None:
            q = q.where(TrainingDocument.dataset_split == split)
        result = await self._session.execute(q.order_by(TrainingDocument.created_at.asc()))
        return list(result.scalars().all())

    async def count_verified(self, document_type: str) -> int:
        return await self.count(document_type=document_type, is_verified=True)

    async def metrics_by_type(self) -> dict[str, dict[str, Any]]:
        def _count_where(cond):
            return func.coalesce(func.sum(case((cond, 1), else_=0)), 0)

        result = await self._session.execute(
            select(
                TrainingDocument.document_type,
                func.count(TrainingDocument.id),
                _count_where(TrainingDocument.processing_status == "pending"),
                _count_where(TrainingDocument.processing_status == "completed"),
                _count_where(TrainingDocument.processing_status == "failed"),
                _count_where(TrainingDocument.verification_status == "verified"),
                _count_where(TrainingDocument.verification_status == "rejected"),
                _count_where(TrainingDocument.dataset_split == "train"),
                _count_where(TrainingDocument.dataset_split == "validation"),
                func.avg(TrainingDocument.quality_score),
            ).group_by(TrainingDocument.document_type)
        )
        metrics: dict[str, dict[str, Any]] = {}
        for row in result.all():
            metrics[row[0]] = {
                "total_documents": row[1],
                "pending_documents": int(row[2]),
                "completed_documents": int(row[3]),
                "failed_documents": int(row[4]),
                "verified_documents": int(row[5]),
                "rejected_documents": int(row[6]),
                "train_set_size": int(row[7]),
                "validation_set_size": int(row[8]),
                "avg_quality_score": round(float(row[9]), 3) if row[9] is not None else None,
            }
        return metrics


class VerificationEditRepository(BaseRepository[VerificationEdit]):
    model = VerificationEdit


class TrainingTriggerRepository(BaseRepository[TrainingTrigger]):
    model = TrainingTrigger

    async def get_or_create(self, document_type: str) -> TrainingTrigger:
        result = await self._session.execute(
            select(TrainingTrigger).where(TrainingTrigger.document_type == document_type)
        )
        trigger = result.scalars().first()
        if trigger is None:
            trigger = await self.create(document_type=document_type)
        return trigger


class FineTuningJobRepository(BaseRepository[FineTuningJob]):
    model = FineTuningJob

    async def list_submitted_running(self) -> list[FineTuningJob]:
        result = await self._session.execute(
            select(FineTuningJob)
            .where(
                FineTuningJob.status == "running",
                FineTuningJob.openai_job_id.is_not(None),
            )
            .order_by(FineTuningJob.created_at.asc())
        )
        return list(result.scalars().all())


class TrainingRunRepository(BaseRepository[TrainingRun]):
    model = TrainingRun
