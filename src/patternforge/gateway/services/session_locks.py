"""SessionLockRegistry -- 会话级互斥锁

同一会话的并发批次串行化 "追加事件 + 更新会话聚合"；不同会话互不阻塞。
所有会话共享一条 SQLite 连接，真正的写事务仍由 StoreGroup.write_lock 串行；
会话锁覆盖的是事务之外的等待（关闭、删除、另一批次），持有期间不影响其他会话。
锁在最后一个持有/等待者释放后立即回收，注册表不会随会话数无限增长。
"""

import asyncio
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager


class SessionLockRegistry:
    """按 session_id 分配 asyncio.Lock，注入到 app.state"""

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._refs: dict[str, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def _acquire_ref(self, session_id: str) -> asyncio.Lock:
        lock = self._locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[session_id] = lock
        self._refs[session_id] = self._refs.get(session_id, 0) + 1
        return lock

    def _release_ref(self, session_id: str) -> None:
        remaining = self._refs[session_id] - 1
        if remaining:
            self._refs[session_id] = remaining
        else:
            del self._refs[session_id]
            del self._locks[session_id]

    @asynccontextmanager
    async def hold(self, session_ids: Iterable[str]) -> AsyncIterator[None]:
        """按排序后的顺序获取一组会话锁，避免批次之间死锁"""
        ordered = sorted(set(session_ids))
        acquired: list[str] = []
        try:
            for session_id in ordered:
                lock = self._acquire_ref(session_id)
                try:
                    await lock.acquire()
                except BaseException:
                    self._release_ref(session_id)
                    raise
                acquired.append(session_id)
            yield
        finally:
            for session_id in reversed(acquired):
                self._locks[session_id].release()
                self._release_ref(session_id)
