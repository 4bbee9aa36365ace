import logging
import uuid
from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from community_analytics.ml.models import MLModel
from community_analytics.utils import utcnow


logger = logging.getLogger(__name__)


class MLModelRepository:
    """Repository for ML model database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_model(
        self,
        model_name: str,
        model_type: str,
        model_version: str,
        model_data: str,
        model_metadata: dict[str, Any],
        performance_metrics: dict[str, Any],
        training_data_hash: Optional[str] = None,
    ) -> MLModel:
        """
        Store a new model. New models are always inactive.

        Args:
            model_name: Human readable model name
            model_type: Model type
            model_version: Model version string
            model_data: Base64 text of the encoded parameters
            model_metadata: Training metadata
            performance_metrics: Evaluation metrics
            training_data_hash: Hash of the training set

        Returns:
            MLModel: Created model
        """
        model = MLModel(
            model_name=model_name,
            model_type=model_type,
            model_version=model_version,
            model_data=model_data,
            model_metadata=model_metadata,
            performance_metrics=performance_metrics,
            training_data_hash=training_data_hash,
            is_active=False,
        )

        self.session.add(model)
        await self.session.commit()
        await self.session.refresh(model)

        logger.info(
            "Stored %s model %s v%s (id=%s)",
            model.model_type,
            model.model_name,
            model.model_version,
            model.id,
        )

        return model

    async def get_models(self, model_type: Optional[str] = None) -> list[MLModel]:
        """Get models, newest first."""
        query = select(MLModel).order_by(
            MLModel.created_at.desc()  # type: ignore[attr-defined]
        )

        if model_type:
            query = query.where(
                MLModel.model_type == model_type  # type: ignore[arg-type]
            )

        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_model(self, model_id: uuid.UUID) -> Optional[MLModel]:
        return await self.session.get(MLModel, model_id)

    async def get_active_model(self, model_type: str) -> Optional[MLModel]:
        query = (
            select(MLModel)
            .where(MLModel.model_type == model_type)  # type: ignore[arg-type]
            .where(MLModel.is_active == True)  # type: ignore[arg-type]  # noqa: E712
        )

        result = await self.session.execute(query)
        return result.scalars().first()

    async def activate_model(self, model_id: uuid.UUID) -> Optional[MLModel]:
        """
        Make a model the only active model of its type.

        Locks the target row and every row of the same type, deactivates the
        siblings and activates the target in one transaction. Rolls back on
        any failure.

        Args:
            model_id: ID of the model to activate

        Returns:
            MLModel or None: Activated model, None if the ID is unknown
        """
        try:
            model = await self.session.get(MLModel, model_id, with_for_update=True)
            if model is None:
                await self.session.rollback()
                return None

            model_type = model.model_type

            await self.session.execute(
                select(MLModel.id)
                .where(MLModel.model_type == model_type)  # type: ignore[arg-type]
                .with_for_update()
            )

            # Siblings first so the active-per-type index is never violated
            await self.session.execute(
                update(MLModel)
                .where(MLModel.model_type == model_type)  # type: ignore[arg-type]
                .where(MLModel.id != model_id)  # type: ignore[arg-type]
                .values(is_active=False)
            )
            await self.session.execute(
                update(MLModel)
                .where(MLModel.id == model_id)  # type: ignore[arg-type]
                .values(is_active=True)
            )

            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

        await self.session.refresh(model)

        logger.info("Activated %s model %s", model_type, model_id)

        return model

    async def update_metrics(
        self, model: MLModel, metrics: dict[str, Any]
    ) -> MLModel:
        model.performance_metrics = metrics
        model.updated_at = utcnow()

        self.session.add(model)
        await self.session.commit()
        await self.session.refresh(model)

        logger.info("Updated performance metrics of model %s", model.id)

        return model

    async def delete_model(self, model: MLModel) -> None:
        await self.session.delete(model)
        await self.session.commit()

        logger.info("Deleted %s model %s", model.model_type, model.id)
