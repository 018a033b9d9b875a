"""Minimal FastAPI application for the Contract Blueprint pipeline.

This module exposes a thin HTTP API around BlueprintPipeline without
changing its internal logic.

Usage (from project root, after installing fastapi and uvicorn):

    uvicorn contract_blueprint.api.app:app --reload

Analysis backends are deployment-specific; install them with
configure_pipeline() at startup, or override the get_pipeline dependency.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..pipeline import BlueprintPipeline, PipelineConfig
from ..review.corrections import CorrectionSet, InvalidOverrideError


logger = logging.getLogger(__name__)

app = FastAPI(title="Contract Blueprint API", version="0.1.0")

_pipeline: Optional[BlueprintPipeline] = None


def _get_max_workers_from_env() -> int:
    """Degree of per-batch parallelism from CONTRACT_BLUEPRINT_MAX_WORKERS."""
    value = os.getenv("CONTRACT_BLUEPRINT_MAX_WORKERS")
    if value is None or not value.strip().isdigit():
        return PipelineConfig.max_workers
    return max(1, int(value))


def configure_pipeline(pipeline: BlueprintPipeline) -> None:
    """Install the pipeline instance the endpoints use."""
    global _pipeline
    _pipeline = pipeline


def get_pipeline() -> BlueprintPipeline:
    """Dependency returning the shared pipeline, created on first use."""
    global _pipeline
    if _pipeline is None:
        _pipeline = BlueprintPipeline(
            config=PipelineConfig(
                max_workers=_get_max_workers_from_env(),
                config_dir=os.getenv("CONTRACT_BLUEPRINT_CONFIG_DIR"),
            )
        )
    return _pipeline


class AnalyzeRequest(BaseModel):
    """Body of an analysis request."""
    user_id: Optional[str] = None


class CorrectionRequest(BaseModel):
    """User corrections keyed by field name, e.g. {"base_rate": "0.12"}."""
    corrections: Dict[str, Any] = Field(default_factory=dict)
    user_id: Optional[str] = None
    comment: Optional[str] = None


@app.post("/api/batches/{batch_id}/analyze")
def analyze_batch(
    batch_id: str,
    request: Optional[AnalyzeRequest] = None,
    pipeline: BlueprintPipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Run the pipeline over every document uploaded under a batch.

    Returns the new blueprint with per-field provenance, the routing
    decision of each document, the validation report and the ids of
    documents that could not be analyzed.
    """
    user_id = request.user_id if request else None
    result = pipeline.analyze_batch(batch_id, user_id=user_id)

    if not result.success and not result.decisions:
        raise HTTPException(status_code=404, detail="; ".join(result.errors))

    status_code = 200 if result.success else 422
    return JSONResponse(status_code=status_code, content=result.to_dict())


@app.get("/api/batches/{batch_id}/blueprint")
def get_blueprint(
    batch_id: str,
    pipeline: BlueprintPipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Return the current blueprint snapshot of a batch."""
    store = pipeline.snapshot_store
    record = store.get_current(batch_id) if store else None
    if record is None:
        raise HTTPException(status_code=404, detail=f"No blueprint for batch {batch_id}")

    return JSONResponse(
        status_code=200,
        content={
            "snapshot_id": record["id"],
            "batch_id": batch_id,
            "blueprint": record["blueprint"],
            "validation": record["validation"],
            "created_at": record["created_at"],
            "created_by": record["created_by"],
        },
    )


@app.post("/api/batches/{batch_id}/corrections")
def apply_corrections(
    batch_id: str,
    request: CorrectionRequest,
    pipeline: BlueprintPipeline = Depends(get_pipeline),
) -> JSONResponse:
    """Apply user corrections to the current blueprint of a batch.

    Every value is normalized with the field's parser; a value that cannot
    be interpreted rejects the whole request with 400.
    """
    blueprint = pipeline.get_current_blueprint(batch_id)
    if blueprint is None:
        raise HTTPException(status_code=404, detail=f"No blueprint for batch {batch_id}")

    settings = pipeline.config_manager
    corrections = CorrectionSet(settings.business_rules, settings.field_mappings)
    try:
        for name, value in request.corrections.items():
            corrections.set(name, value, user_id=request.user_id, comment=request.comment)
    except InvalidOverrideError as exc:
        raise HTTPException(status_code=400, detail=exc.to_dict()) from exc

    result = pipeline.apply_corrections(blueprint, corrections, user_id=request.user_id)
    return JSONResponse(
        status_code=200,
        content={
            "snapshot_id": result.snapshot_id,
            "blueprint": result.blueprint.to_dict(),
            "provenance": result.blueprint.provenance(),
            "validation": result.validation.to_dict(),
            "overrides": corrections.to_dict(),
        },
    )
