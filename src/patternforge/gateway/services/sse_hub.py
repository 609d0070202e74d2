"""SSEHub -- 内存中会话事件广播器

每个订阅者持有一个 asyncio.Queue，支持 subscribe/unsubscribe/broadcast；
会话关闭时投递结束标记 None。
"""

import asyncio
from collections import defaultdict

from patternforge.core.models.event import Event


class SSEHub:
    """SSE 事件广播器 -- 基于 asyncio.Queue 的发布/订阅模式"""

    def __init__(self, queue_maxsize: int = 1000) -> None:
        # session_id -> set of asyncio.Queue
        self._subscribers: dict[str, set[asyncio.Queue]] = defaultdict(set)
        self._queue_maxsize = queue_maxsize

    def subscriber_count(self, session_id: str) -> int:
        return len(self._subscribers.get(session_id, ()))

    async def subscribe(self, session_id: str) -> asyncio.Queue:
        """订阅指定会话的事件流

        Returns:
            asyncio.Queue 实例，新入库的事件会被推送到此队列
        """
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_maxsize)
        self._subscribers[session_id].add(queue)
        return queue

    async def unsubscribe(self, session_id: str, queue: asyncio.Queue) -> None:
        """取消订阅"""
        self._subscribers[session_id].discard(queue)
        if not self._subscribers[session_id]:
            del self._subscribers[session_id]

    async def broadcast(self, session_id: str, event: Event) -> None:
        """向指定会话的所有订阅者广播事件；队列已满的订阅者被移除"""
        dead_queues = []
        for queue in self._subscribers.get(session_id, set()):
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                dead_queues.append(queue)

        for q in dead_queues:
            self._subscribers[session_id].discard(q)
        if session_id in self._subscribers and not self._subscribers[session_id]:
            del self._subscribers[session_id]

    async def close_session(self, session_id: str) -> None:
        """会话已关闭：向所有订阅者投递结束标记 None 并移除订阅"""
        for queue in self._subscribers.pop(session_id, set()):
            try:
                queue.put_nowait(None)
            except asyncio.QueueFull:
                # 队列已满的订阅者拿不到标记，由心跳时的会话状态复查结束
                continue
