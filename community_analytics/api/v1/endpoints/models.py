import logging
import uuid
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from kombu.exceptions import OperationalError

from community_analytics.api.dependencies import (
    model_store_dependency,
    orchestrator_dependency,
)
from community_analytics.insights.service import AnalyticsOrchestrator
from community_analytics.ml.schemas import (
    BatchPredictionRequest,
    MetricsUpdate,
    MLModelRead,
    ModelPrediction,
    ModelType,
    PredictionRequest,
    TrainingResult,
)
from community_analytics.ml.service import ModelStore
from community_analytics.tasks.analytics_tasks import train_models as train_models_task


logger = logging.getLogger(__name__)

router = APIRouter()

MODEL_STORE = Depends(model_store_dependency)
ORCHESTRATOR = Depends(orchestrator_dependency)
MODEL_TYPE_QUERY = Query(None, description="Filter by model type")


@router.get(
    "",
    response_model=list[MLModelRead],
    summary="List stored models",
    description="List stored models, newest first.",
)
async def list_models(
    model_type: Optional[ModelType] = MODEL_TYPE_QUERY,
    store: ModelStore = MODEL_STORE,
) -> list[MLModelRead]:
    models = await store.get_models(model_type)
    return [MLModelRead.model_validate(m) for m in models]


@router.post(
    "/train",
    response_model=TrainingResult,
    summary="Train and activate the built-in models",
)
async def train_models(
    orchestrator: AnalyticsOrchestrator = ORCHESTRATOR,
) -> TrainingResult:
    return await orchestrator.train_models()


@router.post(
    "/train/async",
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue model training on the worker",
)
async def queue_model_training() -> dict[str, str]:
    try:
        task = train_models_task.delay()
    except (OperationalError, ConnectionError) as e:
        logger.error(f"Failed to connect to Celery broker: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Task queue is unavailable",
        ) from e

    logger.info(f"Queued model training task (ID: {task.id})")
    return {"task_id": task.id}


@router.get(
    "/{model_id}",
    response_model=MLModelRead,
    summary="Get a stored model",
)
async def get_model(
    model_id: uuid.UUID,
    store: ModelStore = MODEL_STORE,
) -> MLModelRead:
    return MLModelRead.model_validate(await store.get_model(model_id))


@router.get(
    "/{model_id}/performance",
    summary="Get the performance metrics of a model",
)
async def get_model_performance(
    model_id: uuid.UUID,
    store: ModelStore = MODEL_STORE,
) -> dict[str, Any]:
    return await store.get_model_performance(model_id)


@router.post(
    "/{model_id}/activate",
    response_model=MLModelRead,
    summary="Activate a model",
    description=(
        "Make the model the only active model of its type. Every other "
        "model of the same type is deactivated in the same transaction."
    ),
)
async def activate_model(
    model_id: uuid.UUID,
    store: ModelStore = MODEL_STORE,
) -> MLModelRead:
    return MLModelRead.model_validate(await store.activate_model(model_id))


@router.put(
    "/{model_id}/metrics",
    response_model=MLModelRead,
    summary="Replace the performance metrics of a model",
)
async def update_model_metrics(
    model_id: uuid.UUID,
    request: MetricsUpdate,
    store: ModelStore = MODEL_STORE,
) -> MLModelRead:
    model = await store.update_metrics(model_id, request.metrics)
    return MLModelRead.model_validate(model)


@router.delete(
    "/{model_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a model",
)
async def delete_model(
    model_id: uuid.UUID,
    store: ModelStore = MODEL_STORE,
) -> Response:
    await store.delete_model(model_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/{model_type}/predict",
    response_model=ModelPrediction,
    summary="Predict with the active model of a type",
)
async def predict(
    model_type: ModelType,
    request: PredictionRequest,
    store: ModelStore = MODEL_STORE,
) -> ModelPrediction:
    return await store.predict(model_type, request.input)


@router.post(
    "/{model_type}/batch-predict",
    response_model=list[ModelPrediction],
    summary="Predict a batch of inputs with the active model of a type",
)
async def batch_predict(
    model_type: ModelType,
    request: BatchPredictionRequest,
    store: ModelStore = MODEL_STORE,
) -> list[ModelPrediction]:
    return await store.batch_predict(model_type, request.inputs)
