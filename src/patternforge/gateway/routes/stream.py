"""SSE 事件流路由

GET /api/stream/session/{session_id}: 实时推送指定会话的入库事件。
先推送历史事件（Last-Event-ID 为 seq 时只推送其后的事件），再推送新事件；
会话已关闭时推送完历史即结束；流打开期间会话被关闭或删除时，推送完剩余事件后结束。
"""

import asyncio
import json

from fastapi import APIRouter, Depends, Request
from patternforge.core.config import SSE_HEARTBEAT_INTERVAL
from patternforge.core.exceptions import NotFoundError
from patternforge.core.models import Event
from sse_starlette.sse import EventSourceResponse

from ..deps import get_sse_hub, get_store_group

router = APIRouter()


def _event_to_sse(event: Event) -> dict:
    return {
        "id": str(event.seq),
        "event": event.type.value,
        "data": json.dumps(event.model_dump(mode="json"), ensure_ascii=False),
    }


async def _still_active(store_group, session_id: str) -> bool:
    session = await store_group.session_store.get_session(session_id)
    return session is not None and session.active


@router.get("/api/stream/session/{session_id}")
async def stream_session_events(
    session_id: str,
    request: Request,
    store_group=Depends(get_store_group),
    sse_hub=Depends(get_sse_hub),
):
    """SSE 事件流端点

    1. 推送历史事件
    2. 会话已关闭时结束
    3. 注册到 SSEHub，实时推送新事件，收到结束标记 None 后结束
    4. 心跳保活，心跳时复查会话状态
    """
    if await store_group.session_store.get_session(session_id) is None:
        raise NotFoundError("session", session_id)

    last_event_id = request.headers.get("last-event-id")
    after_seq = int(last_event_id) if last_event_id and last_event_id.isdigit() else None

    async def event_generator():
        # 先订阅再读历史，读取期间入库的事件不会丢失
        queue = await sse_hub.subscribe(session_id)
        try:
            if after_seq is not None:
                history = await store_group.event_store.get_events_after(session_id, after_seq)
            else:
                history = await store_group.event_store.get_events_for_session(session_id)
            sent = {e.seq for e in history}
            for event in history:
                yield _event_to_sse(event)

            closed = not await _still_active(store_group, session_id)
            while True:
                if closed and queue.empty():
                    return
                try:
                    event = await asyncio.wait_for(queue.get(), timeout=SSE_HEARTBEAT_INTERVAL)
                except TimeoutError:
                    # close-idle 等进程外关闭不经过 SSEHub，心跳时复查会话状态
                    if not await _still_active(store_group, session_id):
                        return
                    yield {"comment": "heartbeat"}
                    continue
                if event is None:
                    closed = True
                    continue
                if event.seq in sent:
                    continue
                sent.add(event.seq)
                yield _event_to_sse(event)
        finally:
            await sse_hub.unsubscribe(session_id, queue)

    return EventSourceResponse(event_generator())
