"""事件路由

POST /api/events: 批量上报事件，返回 accepted/rejected/duplicates 计数。
GET /api/events: 条件查询事件。
GET /api/events/stats/summary: 按类型统计。
GET /api/events/{event_id}: 单条事件。
"""

from fastapi import APIRouter, Depends, Query, Request
from patternforge.core.config import (
    DEFAULT_PAGE_LIMIT,
    MAX_BATCH_SIZE,
    MAX_PAGE_LIMIT,
    recognize_on_close,
)
from patternforge.core.exceptions import NotFoundError
from pydantic import BaseModel, Field
from starlette.responses import JSONResponse

from ..deps import get_ingest_service, get_store_group
from ..services.ingest_service import IngestOutcome, IngestService

router = APIRouter()


class IngestRequest(BaseModel):
    """事件上报请求体；单条事件的校验在服务层逐条进行"""

    events: list = Field(description="原始事件数组")


@router.post("/api/events", response_model=IngestOutcome)
async def ingest_events(
    body: IngestRequest,
    request: Request,
    service: IngestService = Depends(get_ingest_service),
):
    """批量上报事件

    - 不合法的单条事件被拒绝并列出原因，不影响其他事件
    - 重复事件（同会话同 ID）被忽略，计入 accepted 与 duplicates
    - 存储不可用时整批回滚，返回 503 retryable
    """
    if len(body.events) > MAX_BATCH_SIZE:
        return JSONResponse(
            status_code=400,
            content={
                "error": {
                    "code": "BATCH_TOO_LARGE",
                    "message": f"Batch of {len(body.events)} events exceeds limit {MAX_BATCH_SIZE}",
                }
            },
        )

    outcome = await service.ingest(body.events)

    recognition_service = getattr(request.app.state, "recognition_service", None)
    if recognition_service is not None and recognize_on_close():
        for session_id in outcome.closed_sessions:
            recognition_service.schedule(session_id)

    return outcome


@router.get("/api/events")
async def list_events(
    session_id: str | None = Query(default=None, description="按会话筛选"),
    type: str | None = Query(default=None, description="按事件类型筛选"),
    start_time: int | None = Query(default=None, description="起始时间（epoch ms，含）"),
    end_time: int | None = Query(default=None, description="结束时间（epoch ms，含）"),
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(default=0, ge=0),
    store_group=Depends(get_store_group),
):
    """条件查询事件，按 (timestamp, seq) 倒序"""
    events, total = await store_group.event_store.query_events(
        session_id=session_id,
        event_type=type,
        start_time=start_time,
        end_time=end_time,
        limit=limit,
        offset=offset,
    )
    return {
        "events": [e.model_dump(mode="json") for e in events],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/api/events/stats/summary")
async def event_stats(store_group=Depends(get_store_group)):
    """事件统计：总数与按类型计数"""
    by_type = await store_group.event_store.count_by_type()
    return {"total_events": sum(by_type.values()), "by_type": by_type}


@router.get("/api/events/{event_id}")
async def get_event(
    event_id: str,
    session_id: str | None = Query(default=None, description="会话 ID（事件 ID 只在会话内唯一）"),
    store_group=Depends(get_store_group),
):
    event = await store_group.event_store.get_event(event_id, session_id)
    if event is None:
        raise NotFoundError("event", event_id)
    return event.model_dump(mode="json")
