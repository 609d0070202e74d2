"""会话路由

GET /api/sessions: 会话列表，支持 user_id / active 筛选与分页。
GET /api/sessions/stats/summary: 会话统计。
GET /api/sessions/{session_id}: 会话详情，include_events 时附带事件。
POST /api/sessions/{session_id}/close: 关闭会话。
POST /api/sessions/{session_id}/recognize: 识别会话模式。
DELETE /api/sessions/{session_id}: 级联删除会话、事件与模式。
"""

from fastapi import APIRouter, Depends, Query
from patternforge.core.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT, recognize_on_close
from patternforge.core.models import Session
from starlette.responses import Response

from ..deps import get_recognition_service, get_session_service, get_store_group
from ..services.recognition_service import RecognitionService
from ..services.session_service import SessionService

router = APIRouter()


def _session_to_dict(session: Session) -> dict:
    data = session.model_dump(mode="json")
    data["active"] = session.active
    return data


@router.get("/api/sessions")
async def list_sessions(
    user_id: str | None = Query(default=None, description="按用户筛选"),
    active: bool | None = Query(default=None, description="true 只看活跃，false 只看已关闭"),
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(default=0, ge=0),
    store_group=Depends(get_store_group),
):
    """查询会话列表，按 start_time 倒序"""
    sessions, total = await store_group.session_store.list_sessions(
        user_id=user_id, active=active, limit=limit, offset=offset
    )
    return {
        "sessions": [_session_to_dict(s) for s in sessions],
        "total": total,
        "limit": limit,
        "offset": offset,
    }


@router.get("/api/sessions/stats/summary")
async def session_stats(store_group=Depends(get_store_group)):
    return await store_group.session_store.summary()


@router.get("/api/sessions/{session_id}")
async def get_session(
    session_id: str,
    include_events: bool = Query(default=False, description="附带会话全部事件"),
    service: SessionService = Depends(get_session_service),
    store_group=Depends(get_store_group),
):
    session = await service.get_session(session_id)
    data = {"session": _session_to_dict(session)}
    if include_events:
        events = await store_group.event_store.get_events_for_session(session_id)
        data["events"] = [e.model_dump(mode="json") for e in events]
    return data


@router.post("/api/sessions/{session_id}/close")
async def close_session(
    session_id: str,
    service: SessionService = Depends(get_session_service),
    recognition: RecognitionService = Depends(get_recognition_service),
):
    """关闭会话；开启 PATTERNFORGE_RECOGNIZE_ON_CLOSE 时后台触发识别"""
    session, closed = await service.close_session(session_id)
    if closed and recognize_on_close():
        recognition.schedule(session_id)
    return {"session": _session_to_dict(session), "closed": closed}


@router.post("/api/sessions/{session_id}/recognize")
async def recognize_session(
    session_id: str,
    recognition: RecognitionService = Depends(get_recognition_service),
):
    """同步识别会话模式并替换已存储的模式集合"""
    patterns = await recognition.recognize(session_id)
    return {
        "session_id": session_id,
        "policy": recognition.policy.label,
        "patterns": [p.model_dump(mode="json") for p in patterns],
    }


@router.delete("/api/sessions/{session_id}", status_code=204)
async def delete_session(
    session_id: str,
    service: SessionService = Depends(get_session_service),
):
    await service.delete_session(session_id)
    return Response(status_code=204)
