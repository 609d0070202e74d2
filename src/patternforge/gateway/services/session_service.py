"""SessionService -- 会话查询、关闭与级联删除

关闭与删除同样持有会话锁，和同一会话的入库批次串行；
完成后通知 SSE 订阅者结束事件流。
"""

import structlog

from patternforge.core.exceptions import NotFoundError
from patternforge.core.models import Session
from patternforge.core.store import StoreGroup
from patternforge.core.store.transaction import close_sessions, delete_session_cascade

from .session_locks import SessionLockRegistry
from .sse_hub import SSEHub

log = structlog.get_logger()


class SessionService:
    """会话业务服务"""

    def __init__(
        self,
        store_group: StoreGroup,
        session_locks: SessionLockRegistry,
        sse_hub: SSEHub | None = None,
    ) -> None:
        self._stores = store_group
        self._locks = session_locks
        self._sse_hub = sse_hub

    async def get_session(self, session_id: str) -> Session:
        """
        Raises:
            NotFoundError: 会话不存在
        """
        session = await self._stores.session_store.get_session(session_id)
        if session is None:
            raise NotFoundError("session", session_id)
        return session

    async def close_session(self, session_id: str) -> tuple[Session, bool]:
        """关闭会话，已关闭的会话保持不变

        Returns:
            (关闭后的会话, 本次是否由活跃变为关闭)
        """
        await self.get_session(session_id)
        async with self._locks.hold([session_id]):
            async with self._stores.write_lock:
                closed = await close_sessions(
                    self._stores.conn, self._stores.session_store, [session_id]
                )
        if closed:
            if self._sse_hub is not None:
                await self._sse_hub.close_session(session_id)
            await log.ainfo("session_closed", session_id=session_id)
        return await self.get_session(session_id), bool(closed)

    async def delete_session(self, session_id: str) -> None:
        """级联删除会话的事件与模式

        Raises:
            NotFoundError: 会话不存在
        """
        async with self._locks.hold([session_id]):
            async with self._stores.write_lock:
                deleted = await delete_session_cascade(
                    self._stores.conn,
                    self._stores.event_store,
                    self._stores.session_store,
                    self._stores.pattern_store,
                    session_id,
                )
        if not deleted:
            raise NotFoundError("session", session_id)
        if self._sse_hub is not None:
            await self._sse_hub.close_session(session_id)
        await log.ainfo("session_deleted", session_id=session_id)
