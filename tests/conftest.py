"""全局 pytest 配置 -- 临时 SQLite StoreGroup、事件工厂与 Gateway 测试客户端"""

from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from patternforge.core.models import Event, EventMetadata, EventType
from patternforge.core.store import StoreGroup, create_store_group

# S1 场景：导航到订单页 -> 点击 "New Order" -> 提交订单表单，2 秒内完成
S1_BASE_TS = 1_700_000_000_000


@pytest_asyncio.fixture
async def store_group(tmp_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """提供已初始化的临时 StoreGroup"""
    group = await create_store_group(str(tmp_path / "sqlite" / "test.db"))
    yield group
    await group.conn.close()


@pytest.fixture
def make_event() -> Callable[..., Event]:
    """构造规范化 Event 的工厂，metadata 字段以关键字参数传入"""

    def _make(
        event_id: str,
        event_type: str,
        timestamp: int,
        session_id: str = "S1",
        seq: int = 0,
        user_id: str | None = None,
        **metadata,
    ) -> Event:
        return Event(
            event_id=event_id,
            session_id=session_id,
            user_id=user_id,
            type=EventType(event_type),
            timestamp=timestamp,
            metadata=EventMetadata(**metadata),
            seq=seq,
        )

    return _make


@pytest.fixture
def s1_raw_events() -> list[dict]:
    """S1 场景的原始上报事件（采集端 camelCase 格式）"""
    return [
        {
            "id": "e1",
            "sessionId": "S1",
            "userId": "u1",
            "type": "navigation",
            "timestamp": S1_BASE_TS,
            "metadata": {"from": "/", "to": "/orders"},
            "sessionMetadata": {
                "userAgent": "Mozilla/5.0",
                "viewport": {"width": 1440, "height": 900},
                "language": "en-US",
            },
        },
        {
            "id": "e2",
            "sessionId": "S1",
            "userId": "u1",
            "type": "interaction",
            "timestamp": S1_BASE_TS + 500,
            "metadata": {
                "screen": "/orders",
                "interactionType": "click",
                "elementText": "New Order",
                "elementId": "new-order-btn",
            },
        },
        {
            "id": "e3",
            "sessionId": "S1",
            "userId": "u1",
            "type": "form",
            "timestamp": S1_BASE_TS + 1500,
            "metadata": {"screen": "/orders", "formAction": "submit", "formId": "orderForm"},
        },
    ]


@pytest.fixture
def s1_events(make_event) -> list[Event]:
    """S1 场景的规范化事件（已分配 seq）"""
    return [
        make_event("e1", "navigation", S1_BASE_TS, seq=1, screen="/orders", from_screen="/"),
        make_event(
            "e2",
            "interaction",
            S1_BASE_TS + 500,
            seq=2,
            screen="/orders",
            action="click",
            element_text="New Order",
            element_id="new-order-btn",
        ),
        make_event(
            "e3",
            "form",
            S1_BASE_TS + 1500,
            seq=3,
            screen="/orders",
            action="submit",
            form_id="orderForm",
        ),
    ]


@pytest_asyncio.fixture
async def app(store_group: StoreGroup, monkeypatch: pytest.MonkeyPatch):
    """创建测试用 FastAPI app，关闭会话后的自动识别默认关闭"""
    monkeypatch.setenv("PATTERNFORGE_RECOGNIZE_ON_CLOSE", "false")
    monkeypatch.setenv("LOGFIRE_SEND_TO_LOGFIRE", "false")

    from patternforge.gateway.main import create_app, init_app_state

    application = create_app()
    init_app_state(application, store_group)
    yield application

    await application.state.recognition_service.drain()


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
