"""模式路由

GET /api/patterns: 条件查询模式（session_id / type / min_confidence），按置信度倒序。
GET /api/patterns/policy: 当前生效的打分策略。
GET /api/patterns/stats/summary: 按类型统计。
GET /api/patterns/definitions: 模式定义列表（active_only 筛选）。
POST /api/patterns/definitions: 创建模式定义，ID 已存在时 409。
GET /api/patterns/definitions/{definition_id}: 定义详情。
PUT /api/patterns/definitions/{definition_id}: 部分更新（含启用/停用）。
DELETE /api/patterns/definitions/{definition_id}: 删除定义，已识别的模式保留。
GET /api/patterns/{pattern_id}: 模式详情，附带组成事件。
"""

from fastapi import APIRouter, Body, Depends, Query
from patternforge.core.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from patternforge.core.exceptions import NotFoundError
from patternforge.core.models import DefinitionCreate, DefinitionUpdate, PatternType
from starlette.responses import JSONResponse, Response

from ..deps import get_definition_service, get_recognition_service, get_store_group
from ..services.definition_service import DefinitionService
from ..services.recognition_service import RecognitionService

router = APIRouter()


@router.get("/api/patterns")
async def list_patterns(
    session_id: str | None = Query(default=None, description="按会话筛选"),
    type: PatternType | None = Query(default=None, description="按模式类型筛选"),
    min_confidence: float | None = Query(default=None, ge=0.0, le=1.0),
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(default=0, ge=0),
    store_group=Depends(get_store_group),
):
    patterns, total = await store_group.pattern_store.query_patterns(
        session_id=session_id,
        pattern_type=type.value if type else None,
        min_confidence=min_confidence,
        limit=limit,
        offset=offset,
    )
    return {
        "patterns": [p.model_dump(mode="json") for p in patterns],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/api/patterns/policy")
async def get_policy(recognition: RecognitionService = Depends(get_recognition_service)):
    """当前识别使用的打分策略"""
    policy = recognition.policy
    return {"label": policy.label, **policy.model_dump(mode="json")}


@router.get("/api/patterns/stats/summary")
async def pattern_stats(store_group=Depends(get_store_group)):
    return await store_group.pattern_store.summary()


@router.get("/api/patterns/definitions")
async def list_definitions(
    active_only: bool = Query(default=False, description="只返回启用的定义"),
    service: DefinitionService = Depends(get_definition_service),
):
    definitions = await service.list_definitions(active_only=active_only)
    return {
        "definitions": [d.model_dump(mode="json") for d in definitions],
        "count": len(definitions),
    }


@router.post("/api/patterns/definitions", status_code=201)
async def create_definition(
    body: DefinitionCreate,
    service: DefinitionService = Depends(get_definition_service),
):
    definition = await service.create_definition(body)
    return JSONResponse(status_code=201, content=definition.model_dump(mode="json"))


@router.get("/api/patterns/definitions/{definition_id}")
async def get_definition(
    definition_id: str, service: DefinitionService = Depends(get_definition_service)
):
    definition = await service.get_definition(definition_id)
    return definition.model_dump(mode="json")


@router.put("/api/patterns/definitions/{definition_id}")
async def update_definition(
    definition_id: str,
    update: DefinitionUpdate = Body(...),
    service: DefinitionService = Depends(get_definition_service),
):
    definition = await service.update_definition(definition_id, update)
    return definition.model_dump(mode="json")


@router.delete("/api/patterns/definitions/{definition_id}", status_code=204)
async def delete_definition(
    definition_id: str, service: DefinitionService = Depends(get_definition_service)
):
    await service.delete_definition(definition_id)
    return Response(status_code=204)


@router.get("/api/patterns/{pattern_id}")
async def get_pattern(pattern_id: str, store_group=Depends(get_store_group)):
    pattern = await store_group.pattern_store.get_pattern(pattern_id)
    if pattern is None:
        raise NotFoundError("pattern", pattern_id)
    events = await store_group.event_store.get_events_by_ids(
        pattern.session_id, pattern.event_ids
    )
    return {
        "pattern": pattern.model_dump(mode="json"),
        "events": [e.model_dump(mode="json") for e in events],
    }
