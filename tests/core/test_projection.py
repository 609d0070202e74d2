"""Projection 重建测试

测试内容：
1. 被破坏的聚合字段可以从 events 表重建
2. metadata、user_id、关闭状态在重建后保留
3. 事件已被清理的会话 event_count 归零
"""

from patternforge.core.models import DeviceClass, SessionMetadata
from patternforge.core.projection import rebuild_all
from patternforge.core.store.transaction import append_events_and_update_sessions, close_sessions


class TestProjectionRebuild:
    async def test_rebuild_restores_aggregates(self, store_group, s1_events):
        await append_events_and_update_sessions(
            store_group.conn,
            store_group.event_store,
            store_group.session_store,
            s1_events,
            session_metadata={"S1": SessionMetadata(device_class=DeviceClass.TABLET)},
        )
        await close_sessions(store_group.conn, store_group.session_store, ["S1"])
        before = await store_group.session_store.get_session("S1")

        # 人为破坏 projection
        await store_group.conn.execute(
            "UPDATE sessions SET event_count = 99, start_time = 0 WHERE session_id = 'S1'"
        )
        await store_group.conn.commit()

        processed = await rebuild_all(
            store_group.conn, store_group.event_store, store_group.session_store
        )
        assert processed == 3

        after = await store_group.session_store.get_session("S1")
        assert after.event_count == 3
        assert after.start_time == s1_events[0].timestamp
        assert after.last_event_time == s1_events[-1].timestamp
        assert after.end_time == before.end_time
        assert after.metadata.device_class == DeviceClass.TABLET
        assert after.created_at == before.created_at

    async def test_pruned_session_kept_with_zero_count(self, store_group, make_event):
        await append_events_and_update_sessions(
            store_group.conn,
            store_group.event_store,
            store_group.session_store,
            [make_event("e1", "interaction", 1000, session_id="old")],
        )
        await store_group.event_store.delete_events_before(5000)
        await store_group.conn.commit()

        await rebuild_all(store_group.conn, store_group.event_store, store_group.session_store)

        session = await store_group.session_store.get_session("old")
        assert session is not None
        assert session.event_count == 0
        assert session.start_time == 1000
