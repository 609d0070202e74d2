"""应用模型路由

POST /api/models/synthesize: 从会话或模式 ID 列表合成模型。
GET /api/models: 模型列表（min_confidence 筛选，分页）。
GET /api/models/{model_id}: 模型详情，include_patterns 时附带来源模式。
GET /api/models/{model_id}/versions: 版本历史。
PATCH /api/models/{model_id}: 部分更新，补丁号自动递增。
DELETE /api/models/{model_id}: 删除模型及其版本历史。
"""

from fastapi import APIRouter, Body, Depends, Query
from patternforge.core.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from patternforge.core.models import ApplicationModel, ModelUpdate
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse, Response

from ..deps import get_model_service
from ..services.model_service import ModelService

router = APIRouter()


class SynthesizeRequest(BaseModel):
    """合成请求体：session_id 与 pattern_ids 二选一，同时提供时以 session_id 为准"""

    session_id: str | None = Field(default=None, description="会话 ID")
    pattern_ids: list[str] | None = Field(default=None, description="模式 ID 列表")
    name: str | None = Field(default=None, min_length=1, description="模型名称")
    description: str | None = Field(default=None, description="模型描述")


def _model_summary(model: ApplicationModel) -> dict:
    return {
        "model_id": model.model_id,
        "version": model.version,
        "name": model.name,
        "description": model.description,
        "confidence": model.confidence,
        "entity_count": len(model.entities),
        "screen_count": len(model.screens),
        "workflow_count": len(model.workflows),
        "created_at": model.created_at.isoformat(),
        "updated_at": model.updated_at.isoformat(),
    }


@router.post("/api/models/synthesize", status_code=201)
async def synthesize_model(
    body: SynthesizeRequest,
    service: ModelService = Depends(get_model_service),
):
    model = await service.synthesize(
        session_id=body.session_id,
        pattern_ids=body.pattern_ids,
        name=body.name,
        description=body.description,
    )
    return JSONResponse(status_code=201, content=model.model_dump(mode="json"))


@router.get("/api/models")
async def list_models(
    min_confidence: float | None = Query(default=None, ge=0.0, le=1.0),
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(default=0, ge=0),
    service: ModelService = Depends(get_model_service),
):
    models, total = await service.list_models(min_confidence, limit, offset)
    return {
        "models": [_model_summary(m) for m in models],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/api/models/{model_id}")
async def get_model(
    model_id: str,
    include_patterns: bool = Query(default=False, description="附带来源模式"),
    service: ModelService = Depends(get_model_service),
):
    model = await service.get_model(model_id)
    data = {"model": model.model_dump(mode="json")}
    if include_patterns:
        patterns = await service.get_source_patterns(model)
        data["patterns"] = [p.model_dump(mode="json") for p in patterns]
    return data


@router.get("/api/models/{model_id}/versions")
async def list_versions(model_id: str, service: ModelService = Depends(get_model_service)):
    versions = await service.list_versions(model_id)
    return {
        "model_id": model_id,
        "versions": [
            {"version": v.version, "updated_at": v.updated_at.isoformat(), "name": v.name}
            for v in versions
        ],
    }


@router.patch("/api/models/{model_id}")
async def update_model(
    model_id: str,
    update: ModelUpdate = Body(...),
    service: ModelService = Depends(get_model_service),
):
    """只替换请求中出现的字段；name 显式为 null 时返回 422"""
    model = await service.update_model(model_id, update)
    return model.model_dump(mode="json")


@router.delete("/api/models/{model_id}", status_code=204)
async def delete_model(model_id: str, service: ModelService = Depends(get_model_service)):
    await service.delete_model(model_id)
    return Response(status_code=204)
