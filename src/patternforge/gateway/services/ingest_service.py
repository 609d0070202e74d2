"""IngestService -- 事件批量入库

处理流程：
1. 逐条规范化校验，不合法的事件单独拒绝，不影响同批其他事件
2. 获取本批涉及的全部会话锁（排序后依次获取）
3. 单事务写入事件并更新会话聚合；session_end 系统事件关闭会话
4. 新插入的事件推送给 SSE 订阅者

重复事件（同会话同 event_id）计入 accepted，同时单独统计 duplicates，
重试整批是安全的。
"""

import structlog
from pydantic import BaseModel, Field

from patternforge.core.exceptions import ValidationFailedError
from patternforge.core.models import EventType, SessionMetadata
from patternforge.core.normalize import extract_session_metadata, normalize_event
from patternforge.core.store import StoreGroup
from patternforge.core.store.transaction import append_events_and_update_sessions

from .session_locks import SessionLockRegistry
from .sse_hub import SSEHub

log = structlog.get_logger()

SESSION_END_ACTION = "session_end"


class RejectedEvent(BaseModel):
    """单条被拒绝事件"""

    index: int = Field(description="在请求 events 数组中的下标")
    reason: str = Field(description="拒绝原因")


class IngestOutcome(BaseModel):
    """一次入库的结果"""

    accepted: int = 0
    rejected: int = 0
    duplicates: int = 0
    errors: list[RejectedEvent] = Field(default_factory=list)
    closed_sessions: list[str] = Field(default_factory=list, exclude=True)


class IngestService:
    """事件入库业务服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        session_locks: SessionLockRegistry,
        sse_hub: SSEHub | None = None,
    ) -> None:
        self._stores = store_group
        self._locks = session_locks
        self._sse_hub = sse_hub

    async def ingest(self, raw_events: list) -> IngestOutcome:
        """入库一批原始事件

        Raises:
            StorageUnavailableError: 数据库不可用，整批已回滚
        """
        outcome = IngestOutcome()
        events = []
        session_metadata: dict[str, SessionMetadata] = {}
        closing: set[str] = set()

        for index, raw in enumerate(raw_events):
            try:
                event = normalize_event(raw)
                metadata = extract_session_metadata(raw)
            except ValidationFailedError as e:
                outcome.errors.append(RejectedEvent(index=index, reason=e.message))
                continue
            except Exception as e:
                # 单条事件的任何规范化异常都只拒绝该条
                log.warning("event_normalize_failed", index=index, error=repr(e))
                outcome.errors.append(
                    RejectedEvent(index=index, reason=f"malformed event: {type(e).__name__}")
                )
                continue
            events.append(event)

            if metadata is not None:
                session_metadata[event.session_id] = metadata
            if event.type == EventType.SYSTEM and event.metadata.action == SESSION_END_ACTION:
                closing.add(event.session_id)

        outcome.rejected = len(outcome.errors)
        if not events:
            if outcome.rejected:
                log.info("ingest_all_rejected", rejected=outcome.rejected)
            return outcome

        session_ids = {e.session_id for e in events}
        async with self._locks.hold(session_ids):
            # 单连接：不同会话只在这段写事务上排队，规范化已在锁外完成
            async with self._stores.write_lock:
                inserted = await append_events_and_update_sessions(
                    self._stores.conn,
                    self._stores.event_store,
                    self._stores.session_store,
                    events,
                    session_metadata=session_metadata,
                    closing_session_ids=closing,
                )

        outcome.accepted = len(events)
        outcome.duplicates = len(events) - len(inserted)
        outcome.closed_sessions = sorted(closing)

        if self._sse_hub is not None:
            for event in inserted:
                await self._sse_hub.broadcast(event.session_id, event)
            for session_id in outcome.closed_sessions:
                await self._sse_hub.close_session(session_id)

        await log.ainfo(
            "events_ingested",
            sessions=len(session_ids),
            accepted=outcome.accepted,
            inserted=len(inserted),
            duplicates=outcome.duplicates,
            rejected=outcome.rejected,
            closed_sessions=outcome.closed_sessions,
        )
        return outcome
