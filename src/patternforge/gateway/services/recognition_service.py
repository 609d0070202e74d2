"""RecognitionService -- 会话模式识别

加载会话事件快照与启用的模式定义 -> 运行识别引擎 -> 原子替换该会话的模式集合。
模式定义每次识别前重新读取，增删改立即对下一次识别生效。
会话关闭后可以作为后台任务运行，失败只记录日志，不影响入库请求。
"""

import asyncio

import structlog

from patternforge.core.exceptions import NotFoundError
from patternforge.core.models import RecognizedPattern
from patternforge.core.store import StoreGroup
from patternforge.core.store.transaction import replace_session_patterns
from patternforge.engine import RecognitionEngine

log = structlog.get_logger()


class RecognitionService:
    """模式识别业务服务"""

    def __init__(self, store_group: StoreGroup, engine: RecognitionEngine) -> None:
        self._stores = store_group
        self._engine = engine
        self._background: set[asyncio.Task] = set()

    @property
    def policy(self):
        return self._engine.policy

    async def recognize(self, session_id: str) -> list[RecognizedPattern]:
        """识别并持久化会话模式

        Raises:
            NotFoundError: 会话不存在，不写入任何数据
            StorageUnavailableError: 写入失败，已回滚
        """
        session = await self._stores.session_store.get_session(session_id)
        if session is None:
            raise NotFoundError("session", session_id)

        events = await self._stores.event_store.get_events_for_session(session_id)
        definitions = await self._stores.definition_store.list_definitions(active_only=True)
        patterns = self._engine.with_definitions(definitions).recognize(events)

        async with self._stores.write_lock:
            await replace_session_patterns(
                self._stores.conn,
                self._stores.pattern_store,
                session_id,
                patterns,
            )

        await log.ainfo(
            "session_recognized",
            session_id=session_id,
            event_count=len(events),
            pattern_count=len(patterns),
            definition_count=len(definitions),
            policy=self._engine.policy.label,
        )
        return patterns

    def schedule(self, session_id: str) -> asyncio.Task:
        """后台运行识别；任务引用保留到结束"""
        task = asyncio.create_task(self._run_background(session_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def _run_background(self, session_id: str) -> None:
        try:
            await self.recognize(session_id)
        except Exception as e:
            log.error(
                "background_recognition_failed",
                session_id=session_id,
                error=str(e),
                error_type=type(e).__name__,
            )

    async def drain(self) -> None:
        """等待所有后台识别结束（关闭应用前调用）"""
        if self._background:
            await asyncio.gather(*self._background, return_exceptions=True)
