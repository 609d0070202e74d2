"""EventBuffer -- 采集端事件缓冲

事件先进入内存队列，满足任一条件时批量上报：
- 队列长度达到 batch_size
- 定时 flush 循环触发（start() 启动）
- close() 时做最后一次尽力 flush

上报失败且可恢复时，整批按原顺序放回队首（at-least-once，
服务端按事件 ID 去重）；不可恢复的拒绝直接丢弃该批并记录错误。
队列超过 max_queue 时丢弃最旧的事件。
"""

import asyncio
import time
from collections import deque
from typing import Any

import structlog
from ulid import ULID

from .client import IngestClient, IngestResult
from .config import CaptureConfig
from .exceptions import CaptureError

log = structlog.get_logger()


class EventBuffer:
    """单会话的事件缓冲区"""

    def __init__(
        self,
        client: IngestClient,
        config: CaptureConfig | None = None,
        session_id: str | None = None,
        user_id: str | None = None,
        session_metadata: dict[str, Any] | None = None,
    ) -> None:
        """
        Args:
            client: 上报客户端
            config: 采集配置，缺省使用默认值
            session_id: 会话 ID，缺省生成新的 ULID
            user_id: 用户 ID
            session_metadata: 会话级 metadata（viewport/locale 等），随第一条事件上报
        """
        self._client = client
        self._config = config or CaptureConfig()
        self.session_id = session_id or str(ULID())
        self.user_id = user_id
        self._session_metadata = session_metadata
        self._queue: deque[dict[str, Any]] = deque()
        self._flush_lock = asyncio.Lock()
        self._task: asyncio.Task | None = None
        self._closed = False
        self.dropped = 0

    @property
    def pending(self) -> int:
        return len(self._queue)

    def build_event(self, event_type: str, **metadata: Any) -> dict[str, Any]:
        """构建一条上报格式的事件"""
        event: dict[str, Any] = {
            "id": str(ULID()),
            "sessionId": self.session_id,
            "type": event_type,
            "timestamp": int(time.time() * 1000),
            "metadata": metadata,
        }
        if self.user_id:
            event["userId"] = self.user_id
        if self._session_metadata is not None:
            event["sessionMetadata"] = self._session_metadata
            self._session_metadata = None
        return event

    async def track(self, event_type: str, **metadata: Any) -> dict[str, Any]:
        """记录一条事件并入队"""
        event = self.build_event(event_type, **metadata)
        await self.enqueue(event)
        return event

    async def enqueue(self, event: dict[str, Any]) -> None:
        """入队一条预先构建的事件；队列达到 batch_size 时立即 flush"""
        if self._closed:
            raise CaptureError("event buffer is closed", recoverable=False)
        self._queue.append(event)
        self._trim()
        if len(self._queue) >= self._config.batch_size:
            await self.flush()

    def _trim(self) -> None:
        overflow = len(self._queue) - self._config.max_queue
        if overflow <= 0:
            return
        for _ in range(overflow):
            self._queue.popleft()
        self.dropped += overflow
        log.warning(
            "capture_queue_overflow",
            session_id=self.session_id,
            dropped=overflow,
            max_queue=self._config.max_queue,
        )

    async def flush(self) -> IngestResult | None:
        """上报队列中最多 batch_size 条事件

        Returns:
            上报结果；队列为空或本次失败时返回 None
        """
        async with self._flush_lock:
            if not self._queue:
                return None
            size = min(len(self._queue), self._config.batch_size)
            batch = [self._queue.popleft() for _ in range(size)]

            try:
                result = await self._client.submit_batch(batch)
            except CaptureError as e:
                if e.recoverable:
                    # 原顺序放回队首
                    self._queue.extendleft(reversed(batch))
                    self._trim()
                    log.warning(
                        "capture_flush_requeued",
                        session_id=self.session_id,
                        batch_size=len(batch),
                        error=str(e),
                    )
                else:
                    log.error(
                        "capture_batch_dropped",
                        session_id=self.session_id,
                        batch_size=len(batch),
                        error=str(e),
                    )
                return None

            log.debug(
                "capture_flushed",
                session_id=self.session_id,
                accepted=result.accepted,
                rejected=result.rejected,
            )
            return result

    async def _flush_loop(self) -> None:
        while True:
            await asyncio.sleep(self._config.flush_interval_s)
            await self.flush()

    def start(self) -> None:
        """启动定时 flush 循环（需在事件循环内调用）"""
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._flush_loop())

    async def close(self) -> None:
        """停止定时循环并尽力上报剩余事件

        剩余事件只尝试一轮；仍失败的事件留在队列中，pending 可查询。
        """
        self._closed = True
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        while self._queue:
            before = len(self._queue)
            await self.flush()
            if len(self._queue) >= before:
                log.warning(
                    "capture_close_incomplete",
                    session_id=self.session_id,
                    pending=len(self._queue),
                )
                break
